"""Hacker News source adapter — scrapes the user's upvoted submissions."""

from __future__ import annotations

import logging
from typing import Generator

import httpx
from bs4 import BeautifulSoup

from karakeep_sync.config import Config
from karakeep_sync.errors import AuthError, ConfigError, FetchError
from karakeep_sync.sources.base import Batch, BookmarkItem, SourceAdapter, paginate

logger = logging.getLogger(__name__)

HN_BASE_URL = "https://news.ycombinator.com"
_STORY_SELECTOR = "tr.athing td.title span.titleline > a"
_MORE_SELECTOR = "a.morelink"


def username_from_auth(auth: str) -> str | None:
    """The HN auth cookie value is ``<username>&<hash>``."""
    username = auth.split("&", 1)[0].strip()
    return username or None


def parse_stories(soup: BeautifulSoup, base_url: str = HN_BASE_URL) -> Batch:
    """Extract story links from a listing page, in page order."""
    items: Batch = []
    for link in soup.select(_STORY_SELECTOR):
        url = link.get("href", "")
        # Self posts link to their own discussion page
        if url.startswith("item?"):
            url = f"{base_url}/{url}"
        items.append(BookmarkItem(title=link.get_text().strip(), url=url))
    return items


def parse_more_link(soup: BeautifulSoup) -> str | None:
    """Return the relative path of the "More" link, or None on the last page."""
    link = soup.select_one(_MORE_SELECTOR)
    if link is None:
        return None
    href = link.get("href")
    return href.lstrip("/") if href else None


class HNUpvotedAdapter(SourceAdapter):
    """Adapter for the upvoted submissions of a logged-in HN user."""

    def __init__(
        self,
        config: Config,
        transport: httpx.BaseTransport | None = None,
        base_url: str = HN_BASE_URL,
    ) -> None:
        super().__init__(config, transport)
        self._settings = config.hn
        self._base_url = base_url.rstrip("/")

    def list_name(self) -> str:
        return "HN Upvoted"

    def is_activated(self) -> bool:
        return bool(self._settings.auth)

    def recurring_schedule(self) -> str:
        return self._settings.schedule

    def open_batch_stream(self) -> Generator[Batch, None, None]:
        auth = self._settings.auth
        if not auth:
            raise ConfigError("HN auth token is not set")
        if any(ch in auth for ch in ";\r\n\t "):
            raise AuthError("HN auth token is not a valid cookie value")
        username = username_from_auth(auth)
        if username is None:
            raise AuthError("Failed to extract username from HN auth token")

        cookies = httpx.Cookies()
        cookies.set("user", auth, domain=httpx.URL(self._base_url).host)
        client = self._http_client(cookies=cookies, follow_redirects=True)

        return paginate(
            lambda path: self._fetch_page(client, path),
            f"upvoted?id={username}",
            source=self.list_name(),
            client=client,
        )

    def _fetch_page(self, client: httpx.Client, path: str) -> tuple[Batch, str | None]:
        url = f"{self._base_url}/{path}"
        try:
            resp = client.get(url)
            resp.raise_for_status()
            soup = BeautifulSoup(resp.text, "html.parser")
        except (httpx.HTTPError, ValueError) as exc:
            raise FetchError(f"Failed to fetch HN page {url}") from exc

        return parse_stories(soup, self._base_url), parse_more_link(soup)
