"""Feed cache service with merge semantics.

Unlike attendance summaries, feed pages are merged into the cached list
rather than replacing it. Items are de-duplicated by ``item_id`` and kept
newest first.

Cache key formats:
    feed:{institution}:{user_id}:{session_id}
    feed_last_check:{institution}:{user_id}:{session_id}
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Union

from pydantic import TypeAdapter

from tracker.app.core.cache import CacheBackend
from tracker.app.core.config import settings
from tracker.app.core.logging import get_logger
from tracker.app.core.utils import describe_age, utc_now
from tracker.app.schemas import CacheKey, FeedItem

logger = get_logger(__name__)

Cursor = Union[str, int, None]

_ITEMS = TypeAdapter(list[FeedItem])


@dataclass
class CachedFeed:
    """Feed state stored in cache.

    Attributes:
        items: Cached items, newest first
        cached_at: When the list was last written
        next_cursor: Opaque pagination cursor for the next older page
        has_more: Whether older pages remain upstream
    """

    items: list[FeedItem]
    cached_at: datetime
    next_cursor: Cursor = None
    has_more: bool = field(default=True)

    @property
    def newest(self) -> Optional[datetime]:
        return self.items[0].timestamp if self.items else None

    @property
    def oldest(self) -> Optional[datetime]:
        return self.items[-1].timestamp if self.items else None

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON serialization."""
        return {
            "items": _ITEMS.dump_python(self.items, mode="json"),
            "cached_at": self.cached_at.isoformat(),
            "next_cursor": self.next_cursor,
            "has_more": self.has_more,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "CachedFeed":
        """Create from dictionary."""
        cached_at = datetime.fromisoformat(data["cached_at"])
        if cached_at.tzinfo is None:
            cached_at = cached_at.replace(tzinfo=timezone.utc)
        return cls(
            items=_ITEMS.validate_python(data["items"]),
            cached_at=cached_at,
            next_cursor=data.get("next_cursor"),
            has_more=data.get("has_more", True),
        )


def _sort_newest_first(items: list[FeedItem]) -> list[FeedItem]:
    return sorted(items, key=lambda item: (item.timestamp, item.item_id), reverse=True)


class FeedCache:
    """Service for caching and merging activity feed pages.

    Provides:
    - Merge of newly fetched items into the cached list
    - Appending of older pages while paginating
    - Throttling of "check for new items" requests
    """

    CACHE_KEY_PREFIX = "feed"
    LAST_CHECK_PREFIX = "feed_last_check"

    def __init__(
        self,
        backend: CacheBackend,
        min_check_interval: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._backend = backend
        self.min_check_interval = min_check_interval or timedelta(
            seconds=settings.feed_min_check_interval_seconds
        )
        self._clock = clock

    async def get(self, key: CacheKey) -> Optional[CachedFeed]:
        data = await self._backend.get(key.storage_key(self.CACHE_KEY_PREFIX))
        if data is None:
            return None

        try:
            return CachedFeed.from_dict(json.loads(data.decode("utf-8")))
        except (json.JSONDecodeError, UnicodeDecodeError, KeyError, TypeError, ValueError):
            # Invalid cache data, treat as miss
            logger.warning("Discarding unreadable feed cache entry", extra=key.log_context())
            return None

    async def _store(self, key: CacheKey, feed: CachedFeed) -> None:
        data = json.dumps(feed.to_dict()).encode("utf-8")
        await self._backend.set(key.storage_key(self.CACHE_KEY_PREFIX), data, ttl=0)

    async def _merge(
        self,
        key: CacheKey,
        items: list[FeedItem],
        next_cursor: Cursor,
        has_more: bool,
    ) -> list[FeedItem]:
        existing = await self.get(key)
        if existing is None:
            merged = _sort_newest_first(self._dedupe(items))
            await self._store(
                key,
                CachedFeed(
                    items=merged,
                    cached_at=self._clock(),
                    next_cursor=next_cursor,
                    has_more=has_more,
                ),
            )
            return merged

        cursor = next_cursor if next_cursor is not None else existing.next_cursor
        known = {item.item_id for item in existing.items}
        unique = [item for item in self._dedupe(items) if item.item_id not in known]
        if not unique:
            if (cursor, has_more) != (existing.next_cursor, existing.has_more):
                # Paging moved on over a page we already hold
                await self._store(
                    key,
                    CachedFeed(
                        items=existing.items,
                        cached_at=existing.cached_at,
                        next_cursor=cursor,
                        has_more=has_more,
                    ),
                )
            return existing.items

        merged = _sort_newest_first(existing.items + unique)
        await self._store(
            key,
            CachedFeed(
                items=merged,
                cached_at=self._clock(),
                next_cursor=cursor,
                has_more=has_more,
            ),
        )
        logger.debug(
            f"Merged {len(unique)} new feed items ({len(merged)} total)",
            extra=key.log_context(),
        )
        return merged

    @staticmethod
    def _dedupe(items: list[FeedItem]) -> list[FeedItem]:
        seen: dict[str, FeedItem] = {}
        for item in items:
            seen.setdefault(item.item_id, item)
        return list(seen.values())

    async def merge_new_items(
        self,
        key: CacheKey,
        items: list[FeedItem],
        next_cursor: Cursor = None,
        has_more: bool = True,
    ) -> list[FeedItem]:
        """Merge freshly fetched items into the cached list.

        Cached copies win over incoming duplicates. The stored cursor is
        kept unless ``next_cursor`` is given.

        Returns:
            The merged list, newest first
        """
        return await self._merge(key, items, next_cursor, has_more)

    async def append_older(
        self,
        key: CacheKey,
        items: list[FeedItem],
        next_cursor: Cursor = None,
        has_more: bool = True,
    ) -> list[FeedItem]:
        """Add a page of older items fetched while paginating."""
        return await self._merge(key, items, next_cursor, has_more)

    async def should_check_for_new_items(self, key: CacheKey) -> bool:
        """Return True at most once per ``min_check_interval``.

        A True answer records the check time.
        """
        check_key = key.storage_key(self.LAST_CHECK_PREFIX)
        now = self._clock()
        data = await self._backend.get(check_key)

        if data is not None:
            try:
                last_check = datetime.fromisoformat(data.decode("utf-8"))
            except (UnicodeDecodeError, ValueError):
                last_check = None
            if last_check is not None:
                if last_check.tzinfo is None:
                    last_check = last_check.replace(tzinfo=timezone.utc)
                if now - last_check < self.min_check_interval:
                    return False

        await self._backend.set(check_key, now.isoformat().encode("utf-8"), ttl=0)
        return True

    async def status(self, key: CacheKey) -> dict[str, Any]:
        """Summarize the cached feed for diagnostics."""
        cached = await self.get(key)
        return {
            "has_cached_data": cached is not None,
            "item_count": len(cached.items) if cached else 0,
            "oldest": cached.oldest.isoformat() if cached and cached.oldest else None,
            "newest": cached.newest.isoformat() if cached and cached.newest else None,
            "cached_at": cached.cached_at.isoformat() if cached else None,
            "cache_age": self.age_description(cached) if cached else None,
        }

    async def clear(self, key: CacheKey) -> None:
        await self._backend.delete(key.storage_key(self.CACHE_KEY_PREFIX))
        await self._backend.delete(key.storage_key(self.LAST_CHECK_PREFIX))

    def age_description(self, feed: CachedFeed) -> str:
        return describe_age(self._clock() - feed.cached_at)
