"""Reddit source adapter — pages through the user's saved posts via OAuth."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Generator

import httpx

from karakeep_sync.config import Config
from karakeep_sync.errors import AuthError, ConfigError, FetchError
from karakeep_sync.sources.base import Batch, BookmarkItem, SourceAdapter, paginate

logger = logging.getLogger(__name__)

REDDIT_TOKEN_URL = "https://www.reddit.com/api/v1/access_token"
REDDIT_API_URL = "https://oauth.reddit.com"
_USER_AGENT = "karakeep-sync/0.1"
_UNKNOWN_TITLE = "(unknown title reddit post)"
# Sentinel cursor for the first page; Reddit's own cursors are never empty
_FIRST_PAGE = ""


@dataclass(frozen=True)
class RedditSession:
    """An authenticated Reddit API session for one user."""

    access_token: str
    username: str


def parse_saved_listing(data: dict) -> tuple[Batch, str | None]:
    """Map a saved-items listing to bookmarks and the ``after`` cursor."""
    listing = data["data"]
    items: Batch = []
    for child in listing["children"]:
        post = child["data"]
        items.append(
            BookmarkItem(
                title=post.get("title") or _UNKNOWN_TITLE,
                url=f"https://reddit.com{post['permalink']}",
            )
        )
    return items, listing.get("after") or None


class RedditSavedAdapter(SourceAdapter):
    """Adapter for the saved posts and comments of a Reddit user."""

    def __init__(
        self,
        config: Config,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(config, transport)
        self._settings = config.reddit

    def list_name(self) -> str:
        return "Reddit Saved"

    def is_activated(self) -> bool:
        return bool(
            self._settings.client_id
            and self._settings.client_secret
            and self._settings.refresh_token
        )

    def recurring_schedule(self) -> str:
        return self._settings.schedule

    def open_batch_stream(self) -> Generator[Batch, None, None]:
        if not self.is_activated():
            raise ConfigError("Reddit client id, client secret and refresh token must be set")

        client = self._http_client(headers={"User-Agent": _USER_AGENT})
        try:
            session = self._refresh(client)
        except BaseException:
            client.close()
            raise

        return paginate(
            lambda after: self._fetch_page(client, session, after),
            _FIRST_PAGE,
            source=self.list_name(),
            client=client,
        )

    def _refresh(self, client: httpx.Client) -> RedditSession:
        """Exchange the refresh token for an access token and resolve the username."""
        try:
            resp = client.post(
                REDDIT_TOKEN_URL,
                auth=(self._settings.client_id, self._settings.client_secret),
                data={
                    "grant_type": "refresh_token",
                    "refresh_token": self._settings.refresh_token,
                },
            )
            resp.raise_for_status()
            access_token = resp.json().get("access_token")
        except (httpx.HTTPError, ValueError) as exc:
            raise AuthError("Reddit token refresh failed") from exc
        if not access_token:
            raise AuthError("Reddit token response did not contain an access token")

        try:
            resp = client.get(
                f"{REDDIT_API_URL}/api/v1/me",
                headers={"Authorization": f"Bearer {access_token}"},
            )
            resp.raise_for_status()
            username = resp.json().get("name")
        except (httpx.HTTPError, ValueError) as exc:
            raise AuthError("Failed to resolve Reddit username") from exc
        if not username:
            raise AuthError("Reddit identity response did not contain a username")

        logger.debug("Authenticated with Reddit as u/%s", username)
        return RedditSession(access_token=access_token, username=username)

    def _fetch_page(
        self,
        client: httpx.Client,
        session: RedditSession,
        after: str,
    ) -> tuple[Batch, str | None]:
        params = {"after": after} if after else None
        try:
            resp = client.get(
                f"{REDDIT_API_URL}/user/{session.username}/saved",
                params=params,
                headers={"Authorization": f"Bearer {session.access_token}"},
            )
            resp.raise_for_status()
            return parse_saved_listing(resp.json())
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            raise FetchError(f"Failed to fetch Reddit saved items after={after!r}") from exc
