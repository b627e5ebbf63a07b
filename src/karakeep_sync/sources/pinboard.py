"""Pinboard source adapter — dumps every bookmark in a single request."""

from __future__ import annotations

import logging
from typing import Generator

import httpx

from karakeep_sync.config import Config
from karakeep_sync.errors import ConfigError, FetchError
from karakeep_sync.sources.base import Batch, BookmarkItem, SourceAdapter, single_batch

logger = logging.getLogger(__name__)

PINBOARD_POSTS_URL = "https://api.pinboard.in/v1/posts/all"


def parse_posts(posts: list[dict]) -> Batch:
    return [
        BookmarkItem(
            title=post.get("description", ""),
            url=post["href"],
            created_at=post.get("time"),
        )
        for post in posts
    ]


class PinboardAdapter(SourceAdapter):
    """Adapter for all bookmarks of a Pinboard account.

    Pinboard has no incremental listing, so the stream is always a single
    batch holding every bookmark. A failed fetch fails the run.
    """

    def __init__(
        self,
        config: Config,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(config, transport)
        self._settings = config.pinboard

    def list_name(self) -> str:
        return "Pinboard"

    def is_activated(self) -> bool:
        return bool(self._settings.token)

    def recurring_schedule(self) -> str:
        return self._settings.schedule

    def open_batch_stream(self) -> Generator[Batch, None, None]:
        if not self._settings.token:
            raise ConfigError("Pinboard token is not set")

        logger.info("Fetching Pinboard bookmarks")
        with self._http_client() as client:
            try:
                resp = client.get(
                    PINBOARD_POSTS_URL,
                    params={"auth_token": self._settings.token, "format": "json"},
                )
                resp.raise_for_status()
                items = parse_posts(resp.json())
            except httpx.HTTPStatusError as exc:
                raise FetchError(
                    f"Failed to fetch Pinboard bookmarks: {exc.response.status_code}"
                ) from exc
            except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
                raise FetchError("Failed to fetch Pinboard bookmarks") from exc

        logger.info("Fetched %d Pinboard bookmarks", len(items))
        return single_batch(items)
