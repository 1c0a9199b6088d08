"""Tests for the feed cache service."""

from datetime import datetime, timedelta, timezone

import pytest

from tracker.app.schemas import FeedItem
from tracker.app.services.feed_cache import FeedCache


def _item(item_id, minutes, title=""):
    base = datetime(2025, 9, 1, 8, 0, tzinfo=timezone.utc)
    return FeedItem(item_id=item_id, timestamp=base + timedelta(minutes=minutes), title=title)


class TestFeedMerge:
    """Tests for merge_new_items and append_older."""

    def _cache(self, backend, clock):
        return FeedCache(backend, min_check_interval=timedelta(minutes=5), clock=clock)

    @pytest.mark.asyncio
    async def test_first_page_is_stored(self, memory_backend, clock, cache_key):
        cache = self._cache(memory_backend, clock)
        merged = await cache.merge_new_items(
            cache_key, [_item("1", 1), _item("2", 2)], next_cursor="p2"
        )
        assert [i.item_id for i in merged] == ["2", "1"]

        cached = await cache.get(cache_key)
        assert cached.next_cursor == "p2"
        assert cached.has_more is True

    @pytest.mark.asyncio
    async def test_merge_dedupes_and_sorts(self, memory_backend, clock, cache_key):
        cache = self._cache(memory_backend, clock)
        await cache.merge_new_items(cache_key, [_item("1", 1, "old"), _item("2", 2)])

        merged = await cache.merge_new_items(
            cache_key, [_item("3", 3), _item("1", 1, "new"), _item("3", 3)]
        )
        assert [i.item_id for i in merged] == ["3", "2", "1"]
        # The cached copy wins
        assert merged[2].title == "old"

    @pytest.mark.asyncio
    async def test_cursor_preserved_without_new_one(self, memory_backend, clock, cache_key):
        cache = self._cache(memory_backend, clock)
        await cache.merge_new_items(cache_key, [_item("1", 1)], next_cursor="p2")
        await cache.merge_new_items(cache_key, [_item("2", 2)])

        cached = await cache.get(cache_key)
        assert cached.next_cursor == "p2"
        assert len(cached.items) == 2

    @pytest.mark.asyncio
    async def test_cursor_replaced_when_given(self, memory_backend, clock, cache_key):
        cache = self._cache(memory_backend, clock)
        await cache.merge_new_items(cache_key, [_item("1", 1)], next_cursor="p2")
        await cache.append_older(cache_key, [_item("0", -10)], next_cursor=3, has_more=False)

        cached = await cache.get(cache_key)
        assert cached.next_cursor == 3
        assert cached.has_more is False
        assert [i.item_id for i in cached.items] == ["1", "0"]
        assert cached.oldest == _item("0", -10).timestamp
        assert cached.newest == _item("1", 1).timestamp

    @pytest.mark.asyncio
    async def test_nothing_new_keeps_entry(self, memory_backend, clock, cache_key):
        cache = self._cache(memory_backend, clock)
        await cache.merge_new_items(cache_key, [_item("1", 1)])
        written_at = (await cache.get(cache_key)).cached_at

        clock.advance(minutes=30)
        merged = await cache.merge_new_items(cache_key, [_item("1", 1)])
        assert [i.item_id for i in merged] == ["1"]
        assert (await cache.get(cache_key)).cached_at == written_at

    @pytest.mark.asyncio
    async def test_overlapping_older_page_updates_paging(self, memory_backend, clock, cache_key):
        cache = self._cache(memory_backend, clock)
        await cache.merge_new_items(cache_key, [_item("1", 1)], next_cursor="page2")
        written_at = (await cache.get(cache_key)).cached_at

        clock.advance(minutes=30)
        merged = await cache.append_older(
            cache_key, [_item("1", 1)], next_cursor="page3", has_more=False
        )

        cached = await cache.get(cache_key)
        assert [i.item_id for i in merged] == ["1"]
        assert (cached.next_cursor, cached.has_more) == ("page3", False)
        assert cached.cached_at == written_at

    @pytest.mark.asyncio
    async def test_same_timestamp_ordered_by_id(self, memory_backend, clock, cache_key):
        cache = self._cache(memory_backend, clock)
        merged = await cache.merge_new_items(cache_key, [_item("a", 1), _item("b", 1)])
        assert [i.item_id for i in merged] == ["b", "a"]

    @pytest.mark.asyncio
    async def test_corrupt_entry_is_a_miss(self, memory_backend, clock, cache_key):
        await memory_backend.set("feed:abc:42:7", b"{broken")
        cache = self._cache(memory_backend, clock)
        assert await cache.get(cache_key) is None

    @pytest.mark.asyncio
    async def test_status_and_clear(self, memory_backend, clock, cache_key):
        cache = self._cache(memory_backend, clock)
        await cache.merge_new_items(cache_key, [_item("1", 1), _item("2", 2)])
        clock.advance(minutes=7)

        status = await cache.status(cache_key)
        assert status["has_cached_data"] is True
        assert status["item_count"] == 2
        assert status["cache_age"] == "7m ago"

        await cache.clear(cache_key)
        status = await cache.status(cache_key)
        assert status["has_cached_data"] is False
        assert status["item_count"] == 0


class TestShouldCheckForNewItems:
    @pytest.mark.asyncio
    async def test_throttled(self, memory_backend, clock, cache_key):
        cache = FeedCache(memory_backend, min_check_interval=timedelta(minutes=5), clock=clock)

        assert await cache.should_check_for_new_items(cache_key) is True
        clock.advance(minutes=2)
        assert await cache.should_check_for_new_items(cache_key) is False
        clock.advance(minutes=3)
        assert await cache.should_check_for_new_items(cache_key) is True
        assert await cache.should_check_for_new_items(cache_key) is False

    @pytest.mark.asyncio
    async def test_unreadable_check_time(self, memory_backend, clock, cache_key):
        await memory_backend.set("feed_last_check:abc:42:7", b"garbage")
        cache = FeedCache(memory_backend, clock=clock)
        assert await cache.should_check_for_new_items(cache_key) is True
