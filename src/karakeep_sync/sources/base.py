"""Source adapter interface and the shared pagination driver."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Generator, TypeVar

import httpx

from karakeep_sync.config import Config
from karakeep_sync.errors import FetchError

logger = logging.getLogger(__name__)

CursorT = TypeVar("CursorT")


@dataclass(frozen=True)
class BookmarkItem:
    """One saved item from a source, ready to be mirrored into Karakeep."""

    title: str
    url: str
    created_at: str | None = None


Batch = list[BookmarkItem]


class SourceAdapter(ABC):
    """Abstract base class for source adapters.

    Every adapter knows how to authenticate against one provider, page
    through the user's saved items newest-first, and map them to
    BookmarkItems. The sync engine is source-agnostic.
    """

    def __init__(
        self,
        config: Config,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._timeout = config.http_timeout_seconds
        self._transport = transport

    @abstractmethod
    def list_name(self) -> str:
        """Name of the Karakeep list this source's items are grouped into."""

    @abstractmethod
    def is_activated(self) -> bool:
        """True iff every credential this source needs is configured."""

    @abstractmethod
    def recurring_schedule(self) -> str:
        """Crontab expression or alias for how often this source syncs."""

    @abstractmethod
    def open_batch_stream(self) -> Generator[Batch, None, None]:
        """Authenticate and return a lazy, finite stream of batches.

        Batches are emitted most-recently-saved first. Each call starts
        over from the newest item.

        The returned generator is closed by the consumer when it stops early.
        """

    def _http_client(self, **kwargs) -> httpx.Client:
        return httpx.Client(
            timeout=self._timeout,
            transport=self._transport,
            **kwargs,
        )


def single_batch(items: Batch) -> Generator[Batch, None, None]:
    """A stream holding exactly one batch, for sources without pagination."""
    yield items


def paginate(
    fetch_page: Callable[[CursorT], tuple[Batch, CursorT | None]],
    start: CursorT,
    *,
    source: str,
    client: httpx.Client | None = None,
) -> Generator[Batch, None, None]:
    """Drive a cursor-based page fetcher as a lazy batch stream.

    The stream ends when ``fetch_page`` returns ``None`` as the next cursor.
    A FetchError is a soft stop: it is logged and the stream simply ends,
    so a failed page looks the same to the consumer as an exhausted source.
    The next scheduled run picks up anything that was missed.

    ``client``, when given, is closed once the stream finishes or is closed.
    """
    cursor: CursorT | None = start
    try:
        while cursor is not None:
            try:
                items, next_cursor = fetch_page(cursor)
            except FetchError as exc:
                logger.warning(
                    "Stopping %s stream early at cursor %r: %s", source, cursor, exc
                )
                return
            logger.debug(
                "Fetched %d items from %s, next cursor: %r",
                len(items), source, next_cursor,
            )
            cursor = next_cursor
            yield items
    finally:
        if client is not None:
            client.close()
