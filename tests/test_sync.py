"""Tests for karakeep_sync.sync — the sync engine and its early-stop rule."""

from __future__ import annotations

import httpx
import pytest

from karakeep_sync.config import Config, HNSettings
from karakeep_sync.errors import AuthError, SinkError
from karakeep_sync.karakeep import KarakeepClient
from karakeep_sync.sources.base import BookmarkItem, SourceAdapter
from karakeep_sync.sources.hn import HNUpvotedAdapter
from karakeep_sync.sync import CONSECUTIVE_EXISTING_LIMIT, sync

_CONFIG = Config(karakeep_url="https://karakeep.test", karakeep_auth="secret")


def _item(name: str) -> BookmarkItem:
    return BookmarkItem(title=name, url=f"https://example.com/{name}")


class _StaticAdapter(SourceAdapter):
    """Adapter that replays fixed batches and records how far it was pulled."""

    def __init__(self, batches, list_name="Test List"):
        super().__init__(_CONFIG)
        self._batches = batches
        self._list_name = list_name
        self.opened = 0
        self.batches_pulled = 0
        self.closed = False

    def list_name(self):
        return self._list_name

    def is_activated(self):
        return True

    def recurring_schedule(self):
        return "@daily"

    def open_batch_stream(self):
        self.opened += 1

        def stream():
            try:
                for batch in self._batches:
                    self.batches_pulled += 1
                    yield list(batch)
            finally:
                self.closed = True

        return stream()


class _FakeKarakeep:
    """In-memory stand-in for KarakeepClient's idempotent operations."""

    def __init__(self, existing=()):
        self.bookmarks = {url: f"bm-{i}" for i, url in enumerate(existing)}
        self.lists: dict[str, str] = {}
        self.memberships: set[tuple[str, str]] = set()
        self.upserted: list[str] = []

    def ensure_list_exists(self, list_name):
        return self.lists.setdefault(list_name, f"list-{len(self.lists)}")

    def upsert_bookmark_to_list(self, bookmark, list_id):
        self.upserted.append(bookmark.url)
        created = bookmark.url not in self.bookmarks
        if created:
            self.bookmarks[bookmark.url] = f"bm-{len(self.bookmarks)}"
        self.memberships.add((self.bookmarks[bookmark.url], list_id))
        return created


class TestSync:
    def test_creates_every_new_item(self):
        adapter = _StaticAdapter([[_item("a"), _item("b")], [_item("c")]])
        sink = _FakeKarakeep()

        assert sync(adapter, sink) == 3
        assert set(sink.bookmarks) == {f"https://example.com/{n}" for n in "abc"}
        list_id = sink.lists["Test List"]
        assert {list_id} == {lid for _, lid in sink.memberships}
        assert len(sink.memberships) == 3

    def test_existing_items_are_added_to_list(self):
        existing = [_item("old")]
        adapter = _StaticAdapter([existing + [_item("new")]])
        sink = _FakeKarakeep(existing=[i.url for i in existing])

        assert sync(adapter, sink) == 1
        list_id = sink.lists["Test List"]
        assert ("bm-0", list_id) in sink.memberships

    def test_early_stop_after_five_consecutive_existing(self):
        new = [_item(f"new{i}") for i in range(3)]
        old = [_item(f"old{i}") for i in range(CONSECUTIVE_EXISTING_LIMIT)]
        tail = [_item("tail0"), _item("tail1")]
        adapter = _StaticAdapter([new + old + tail])
        sink = _FakeKarakeep(existing=[i.url for i in old + tail])

        assert sync(adapter, sink) == 3
        assert sink.upserted == [i.url for i in new + old]

    def test_early_stop_does_not_pull_further_batches(self):
        old = [_item(f"old{i}") for i in range(CONSECUTIVE_EXISTING_LIMIT)]
        adapter = _StaticAdapter([old, [_item("never")]])
        sink = _FakeKarakeep(existing=[i.url for i in old])

        assert sync(adapter, sink) == 0
        assert adapter.batches_pulled == 1
        assert adapter.closed is True
        assert "https://example.com/never" not in sink.upserted

    def test_consecutive_count_spans_batches(self):
        old = [_item(f"old{i}") for i in range(CONSECUTIVE_EXISTING_LIMIT + 1)]
        adapter = _StaticAdapter([old[:2], old[2:4], old[4:]])
        sink = _FakeKarakeep(existing=[i.url for i in old])

        assert sync(adapter, sink) == 0
        assert len(sink.upserted) == CONSECUTIVE_EXISTING_LIMIT

    def test_new_item_resets_consecutive_count(self):
        # new, existing, new, then five existing: stops after the 5th existing
        e = [_item(f"e{i}") for i in range(6)]
        batch = [_item("n1"), e[0], _item("n2"), e[1], e[2], e[3], e[4], e[5]]
        adapter = _StaticAdapter([batch])
        sink = _FakeKarakeep(existing=[i.url for i in e])

        assert sync(adapter, sink) == 2
        assert len(sink.upserted) == 8

    def test_four_existing_then_new_keeps_going(self):
        old = [_item(f"old{i}") for i in range(CONSECUTIVE_EXISTING_LIMIT - 1)]
        adapter = _StaticAdapter([old + [_item("fresh")], [_item("fresh2")]])
        sink = _FakeKarakeep(existing=[i.url for i in old])

        assert sync(adapter, sink) == 2
        assert adapter.batches_pulled == 2

    def test_second_run_is_idempotent(self):
        items = [_item(f"i{n}") for n in range(8)]
        adapter = _StaticAdapter([items[:4], items[4:]])
        sink = _FakeKarakeep()

        assert sync(adapter, sink) == 8
        bookmarks = dict(sink.bookmarks)
        memberships = set(sink.memberships)
        lists = dict(sink.lists)

        assert sync(adapter, sink) == 0
        assert sink.bookmarks == bookmarks
        assert sink.memberships == memberships
        assert sink.lists == lists

    def test_empty_stream(self):
        adapter = _StaticAdapter([])
        sink = _FakeKarakeep()

        assert sync(adapter, sink) == 0
        assert "Test List" in sink.lists

    def test_list_resolved_before_stream_opened(self):
        class _FailingSink(_FakeKarakeep):
            def ensure_list_exists(self, list_name):
                raise SinkError("lists unavailable")

        adapter = _StaticAdapter([[_item("a")]])

        with pytest.raises(SinkError):
            sync(adapter, _FailingSink())
        assert adapter.opened == 0

    def test_sink_error_mid_run_propagates(self):
        class _BrokenSink(_FakeKarakeep):
            def upsert_bookmark_to_list(self, bookmark, list_id):
                if bookmark.url.endswith("b"):
                    raise SinkError("create failed")
                return super().upsert_bookmark_to_list(bookmark, list_id)

        adapter = _StaticAdapter([[_item("a"), _item("b"), _item("c")]])

        with pytest.raises(SinkError):
            sync(adapter, _BrokenSink())
        assert adapter.closed is True

    def test_auth_error_from_adapter_propagates(self):
        class _Unauthorized(_StaticAdapter):
            def open_batch_stream(self):
                raise AuthError("token refresh failed")

        with pytest.raises(AuthError):
            sync(_Unauthorized([]), _FakeKarakeep())


_PAGE_ONE = """
<html><body><table>
  <tr class="athing"><td class="title"><span class="titleline">
    <a href="https://example.com/story1">Story One</a>
  </span></td></tr>
</table>
<a class="morelink" href="?p=2">More</a>
</body></html>
"""

_PAGE_TWO = """
<html><body><table>
  <tr class="athing"><td class="title"><span class="titleline">
    <a href="https://example.com/story2">Story Two</a>
  </span></td></tr>
</table></body></html>
"""


class TestSyncEndToEnd:
    def test_hn_two_pages_into_karakeep(self):
        created: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            host, path = request.url.host, request.url.path
            if host == "news.ycombinator.com":
                if path == "/upvoted":
                    return httpx.Response(200, text=_PAGE_ONE)
                if path == "/" and request.url.params.get("p") == "2":
                    return httpx.Response(200, text=_PAGE_TWO)
            if host == "karakeep.test":
                if path == "/api/v1/lists" and request.method == "GET":
                    return httpx.Response(200, json={"lists": [{"id": "l1", "name": "HN Upvoted"}]})
                if path == "/api/v1/bookmarks/search":
                    return httpx.Response(200, json={"bookmarks": []})
                if path == "/api/v1/bookmarks" and request.method == "POST":
                    created.append(request)
                    return httpx.Response(201, json={"id": f"bm-{len(created)}"})
                if path.startswith("/api/v1/lists/l1/bookmarks/") and request.method == "PUT":
                    return httpx.Response(204)
            return httpx.Response(404)

        transport = httpx.MockTransport(handler)
        config = Config(
            karakeep_url="https://karakeep.test",
            karakeep_auth="secret",
            hn=HNSettings(auth="alice&hash"),
        )
        adapter = HNUpvotedAdapter(config, transport=transport)
        client = KarakeepClient(config.karakeep_url, config.karakeep_auth, transport=transport)

        assert sync(adapter, client) == 2
        assert len(created) == 2
