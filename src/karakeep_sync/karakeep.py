"""Karakeep API client — the sink every source is mirrored into."""

from __future__ import annotations

import logging
from urllib.parse import quote, urlsplit

import httpx

from karakeep_sync.errors import SinkError
from karakeep_sync.sources.base import BookmarkItem

logger = logging.getLogger(__name__)

_LIST_DESCRIPTION = "Auto-created list from karakeep-sync"
_LIST_ICON = "🚀"
_DEFAULT_PORTS = {"http": 80, "https": 443}
# Characters left as-is when percent-encoding; existing escapes are kept
_PATH_SAFE = "/%:@!$&'()*+,;=[]|^\\"
_QUERY_SAFE = "/?%:@!$&()*+,;=[]|^\\`{}"


def _remove_dot_segments(path: str) -> str:
    """Resolve ``.`` and ``..`` segments of an absolute path (RFC 3986)."""
    segments = path.split("/")[1:]
    resolved: list[str] = []
    for index, segment in enumerate(segments):
        last = index == len(segments) - 1
        if segment == ".":
            if last:
                resolved.append("")
        elif segment == "..":
            if resolved:
                resolved.pop()
            if last:
                resolved.append("")
        else:
            resolved.append(segment)
    return "/" + "/".join(resolved)


def normalize_url(url: str) -> str | None:
    """Parse a URL into a canonical form for equality checks.

    Scheme and host are lower-cased, an internationalized host is converted
    to its IDNA form, and a default port is dropped. The path is
    percent-encoded with dot segments resolved, and an empty path becomes
    ``/``. A bare ``?`` is kept distinct from no query. The fragment is
    ignored. Returns None for anything that does not parse as an absolute
    URL.
    """
    url = url.strip()
    try:
        parts = urlsplit(url)
        port = parts.port
        host = parts.hostname
        if host and not host.isascii():
            host = host.encode("idna").decode("ascii")
    except (ValueError, AttributeError):
        return None
    if not parts.scheme or not host:
        return None

    scheme = parts.scheme.lower()
    netloc = host.lower()
    if ":" in netloc:
        netloc = f"[{netloc}]"
    if port is not None and port != _DEFAULT_PORTS.get(scheme):
        netloc = f"{netloc}:{port}"
    if parts.username is not None:
        userinfo = parts.username
        if parts.password is not None:
            userinfo = f"{userinfo}:{parts.password}"
        netloc = f"{userinfo}@{netloc}"

    path = _remove_dot_segments(quote(parts.path or "/", safe=_PATH_SAFE))
    normalized = f"{scheme}://{netloc}{path}"
    if "?" in url.split("#", 1)[0]:
        normalized += "?" + quote(parts.query, safe=_QUERY_SAFE)
    return normalized


def urls_match(left: str, right: str) -> bool:
    """True iff both URLs parse and are equal once normalized."""
    left_norm = normalize_url(left)
    right_norm = normalize_url(right)
    return left_norm is not None and left_norm == right_norm


class KarakeepClient:
    """Bearer-authenticated client for the subset of the Karakeep API sync needs.

    Every mutation is idempotent: lists are resolved by name, bookmarks by
    URL, and list membership is a PUT.
    """

    def __init__(
        self,
        base_url: str,
        auth_token: str,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = httpx.Client(
            base_url=f"{base_url.rstrip('/')}/api/v1",
            headers={"Authorization": f"Bearer {auth_token}"},
            timeout=timeout,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    def __enter__(self) -> KarakeepClient:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            resp = self._client.request(method, path, **kwargs)
            resp.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise SinkError(
                f"Karakeep {method} {path} returned {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            raise SinkError(f"Karakeep {method} {path} failed: {exc}") from exc
        return resp

    def _request_json(self, method: str, path: str, **kwargs) -> dict:
        resp = self._request(method, path, **kwargs)
        try:
            data = resp.json()
        except ValueError as exc:
            raise SinkError(f"Karakeep {method} {path} returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise SinkError(f"Karakeep {method} {path} returned unexpected JSON: {data!r}")
        return data

    @staticmethod
    def _require_id(data: dict, what: str) -> str:
        item_id = data.get("id")
        if not isinstance(item_id, str) or not item_id:
            raise SinkError(f"Failed to create {what}, response did not contain an ID: {data!r}")
        return item_id

    def ensure_list_exists(self, list_name: str) -> str:
        """Return the id of the list called ``list_name``, creating it if absent."""
        data = self._request_json("GET", "/lists")
        lists = data.get("lists")
        if not isinstance(lists, list):
            raise SinkError(f"Karakeep list response did not contain lists: {data!r}")

        for entry in lists:
            if entry.get("name") == list_name and entry.get("id"):
                return entry["id"]

        logger.info("Creating Karakeep list '%s'", list_name)
        data = self._request_json(
            "POST",
            "/lists",
            json={"name": list_name, "description": _LIST_DESCRIPTION, "icon": _LIST_ICON},
        )
        return self._require_id(data, "list")

    def check_exists_bookmark(self, bookmark_url: str) -> str | None:
        """Return the id of the bookmark whose URL equals ``bookmark_url``, if any."""
        data = self._request_json(
            "GET",
            "/bookmarks/search",
            params={"q": bookmark_url, "includeContent": "false", "limit": "1"},
        )
        bookmarks = data.get("bookmarks")
        if not isinstance(bookmarks, list):
            raise SinkError(f"Karakeep search response did not contain bookmarks: {data!r}")
        if not bookmarks:
            return None

        candidate = bookmarks[0]
        candidate_url = (candidate.get("content") or {}).get("url") or ""
        if not urls_match(bookmark_url, candidate_url):
            return None
        bookmark_id = candidate.get("id")
        if not bookmark_id:
            raise SinkError(f"Karakeep search result did not contain an ID: {candidate!r}")
        return bookmark_id

    def create_bookmark(
        self,
        title: str,
        url: str,
        created_at: str | None = None,
    ) -> str:
        """Create a link bookmark and return its id."""
        payload = {"type": "link", "title": title, "url": url}
        if created_at:
            payload["createdAt"] = created_at
        data = self._request_json("POST", "/bookmarks", json=payload)
        return self._require_id(data, "bookmark")

    def ensure_bookmark_in_list(self, bookmark_id: str, list_id: str) -> None:
        self._request("PUT", f"/lists/{list_id}/bookmarks/{bookmark_id}")

    def upsert_bookmark_to_list(self, bookmark: BookmarkItem, list_id: str) -> bool:
        """Make sure ``bookmark`` exists and is in the list.

        Returns True if the bookmark was created, False if it already existed.
        """
        logger.debug("Checking if bookmark exists: %s", bookmark.url)
        bookmark_id = self.check_exists_bookmark(bookmark.url)
        created = bookmark_id is None

        if created:
            logger.info("Creating bookmark: %s - %s", bookmark.title, bookmark.url)
            bookmark_id = self.create_bookmark(
                bookmark.title, bookmark.url, bookmark.created_at
            )

        logger.debug("Adding bookmark %s to list %s", bookmark_id, list_id)
        self.ensure_bookmark_in_list(bookmark_id, list_id)
        return created
