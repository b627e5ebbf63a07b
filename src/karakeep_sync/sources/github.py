"""GitHub source adapter — pages through the user's starred repositories."""

from __future__ import annotations

import logging
import re
from typing import Generator
from urllib.parse import urlsplit

import httpx

from karakeep_sync.config import Config
from karakeep_sync.errors import ConfigError, FetchError
from karakeep_sync.sources.base import Batch, BookmarkItem, SourceAdapter, paginate

logger = logging.getLogger(__name__)

GITHUB_STARRED_URL = "https://api.github.com/user/starred"
_FIRST_PAGE = "?per_page=100"
_LINK_RE = re.compile(r"<([^>]*)>\s*((?:;\s*[^,;]+)*)")
_REL_RE = re.compile(r"""rel\s*=\s*"?([^";]+)"?""")


def next_page_query(link_header: str | None) -> str | None:
    """Return the query string (with leading ``?``) of the ``rel="next"`` link.

    Returns None when the header is absent or has no next relation.
    """
    if not link_header:
        return None
    for match in _LINK_RE.finditer(link_header):
        url, params = match.group(1), match.group(2)
        rel = _REL_RE.search(params)
        if rel is None or "next" not in rel.group(1).split():
            continue
        query = urlsplit(url).query
        return f"?{query}" if query else None
    return None


def parse_starred(repos: list[dict]) -> Batch:
    return [
        BookmarkItem(title=repo["full_name"], url=repo["html_url"])
        for repo in repos
    ]


class GitHubStarredAdapter(SourceAdapter):
    """Adapter for the repositories starred by the token's owner."""

    def __init__(
        self,
        config: Config,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        super().__init__(config, transport)
        self._settings = config.github

    def list_name(self) -> str:
        return "GitHub Starred"

    def is_activated(self) -> bool:
        return bool(self._settings.token)

    def recurring_schedule(self) -> str:
        return self._settings.schedule

    def open_batch_stream(self) -> Generator[Batch, None, None]:
        if not self._settings.token:
            raise ConfigError("GitHub token is not set")

        client = self._http_client(
            headers={
                "Accept": "application/vnd.github+json",
                "Authorization": f"Bearer {self._settings.token}",
            },
        )
        return paginate(
            lambda query: self._fetch_page(client, query),
            _FIRST_PAGE,
            source=self.list_name(),
            client=client,
        )

    def _fetch_page(self, client: httpx.Client, query: str) -> tuple[Batch, str | None]:
        try:
            resp = client.get(f"{GITHUB_STARRED_URL}{query}")
            resp.raise_for_status()
            items = parse_starred(resp.json())
        except (httpx.HTTPError, ValueError, KeyError, TypeError) as exc:
            raise FetchError(f"Failed to fetch GitHub stars{query}") from exc

        remaining = resp.headers.get("X-RateLimit-Remaining")
        if remaining is not None and remaining.isdigit() and int(remaining) <= 1:
            logger.warning(
                "GitHub API rate limit nearly exhausted (%s remaining)", remaining
            )
        return items, next_page_query(resp.headers.get("Link"))
