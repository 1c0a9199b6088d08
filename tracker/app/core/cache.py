"""Cache abstraction layer for the tracker application.

Provides a pluggable cache backend system with in-memory, Redis and
database implementations. The database backend survives process restarts
and is the default store for attendance data.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import asyncio
import time

from tracker.app.core.logging import get_logger

logger = get_logger(__name__)


@dataclass
class _CacheEntry:
    """Stored bytes plus an optional absolute expiry (epoch seconds)."""

    value: bytes
    expires_at: float | None = None

    def is_expired(self) -> bool:
        if self.expires_at is None:
            return False
        return time.time() > self.expires_at


class CacheBackend(ABC):
    """Byte store shared by the attendance and feed caches.

    Keys are opaque strings built by the callers (``attendance:<inst>:<user>:<session>``).
    Freshness is judged by the callers from the stored payload, so they
    write with ``ttl=0``; a positive ``ttl`` lets the backend drop the
    value on its own.
    """

    @abstractmethod
    async def get(self, key: str) -> bytes | None:
        """Return the stored bytes, or None when missing or expired."""

    @abstractmethod
    async def set(self, key: str, value: bytes, ttl: int = 0) -> None:
        """Store ``value`` under ``key``, replacing any previous value.

        Args:
            key: Storage key.
            value: Serialized payload.
            ttl: Seconds until the backend drops the value. Zero or less
                keeps it until overwritten or deleted.
        """

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``. Missing keys are ignored."""

    @abstractmethod
    async def exists(self, key: str) -> bool:
        """True when ``key`` holds a value that has not expired."""

    @abstractmethod
    async def clear(self) -> None:
        """Drop every stored value."""


class InMemoryCache(CacheBackend):
    """Process-local backend guarded by an ``asyncio.Lock``.

    Nothing survives a restart, so it suits tests and one-shot tools.
    """

    def __init__(self) -> None:
        self._data: dict[str, _CacheEntry] = {}
        self._lock = asyncio.Lock()

    async def get(self, key: str) -> bytes | None:
        async with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return None
            if entry.is_expired():
                del self._data[key]
                return None
            return entry.value

    async def set(self, key: str, value: bytes, ttl: int = 0) -> None:
        async with self._lock:
            expires_at = time.time() + ttl if ttl > 0 else None
            self._data[key] = _CacheEntry(value=value, expires_at=expires_at)

    async def delete(self, key: str) -> None:
        async with self._lock:
            self._data.pop(key, None)

    async def exists(self, key: str) -> bool:
        async with self._lock:
            entry = self._data.get(key)
            if entry is None:
                return False
            if entry.is_expired():
                del self._data[key]
                return False
            return True

    async def clear(self) -> None:
        async with self._lock:
            self._data.clear()

    async def cleanup_expired(self) -> int:
        """Purge expired entries and return how many were removed."""
        async with self._lock:
            expired_keys = [
                key for key, entry in self._data.items() if entry.is_expired()
            ]
            for key in expired_keys:
                del self._data[key]
            return len(expired_keys)


class RedisCache(CacheBackend):
    """Backend on a Redis database, for trackers sharing one store.

    Example:
        >>> cache = RedisCache("redis://localhost:6379/0")
        >>> await cache.set("attendance:abc:42:7", b"{...}")
    """

    def __init__(self, redis_url: str) -> None:
        import redis.asyncio as aioredis

        self._redis_url = redis_url
        self._redis = None
        self._client_class = aioredis.from_url

    async def _get_client(self):
        if self._redis is None:
            self._redis = self._client_class(self._redis_url)
        return self._redis

    async def get(self, key: str) -> bytes | None:
        client = await self._get_client()
        return await client.get(key)

    async def set(self, key: str, value: bytes, ttl: int = 0) -> None:
        client = await self._get_client()
        if ttl > 0:
            await client.setex(key, ttl, value)
        else:
            await client.set(key, value)

    async def delete(self, key: str) -> None:
        client = await self._get_client()
        await client.delete(key)

    async def exists(self, key: str) -> bool:
        client = await self._get_client()
        return await client.exists(key) > 0

    async def clear(self) -> None:
        """Drop every stored value.

        Runs FLUSHDB, so point ``redis_url`` at a database of its own.
        """
        client = await self._get_client()
        await client.flushdb()

    async def close(self) -> None:
        """Release the connection pool."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None


class DatabaseCache(CacheBackend):
    """SQLAlchemy-backed cache that persists across process lifetimes.

    Each key maps to one row of the ``cache_entries`` table. The schema is
    created lazily on first use.

    Example:
        >>> cache = DatabaseCache("sqlite+aiosqlite:///attendance_cache.db")
        >>> await cache.set("attendance:abc:42:7", b"{...}")
    """

    def __init__(self, database_url: str | None = None) -> None:
        self._database_url = database_url
        self._schema_ready = False
        self._schema_lock = asyncio.Lock()

    async def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        async with self._schema_lock:
            if not self._schema_ready:
                from tracker.app.db.async_session import init_cache_schema

                await init_cache_schema(self._database_url)
                self._schema_ready = True

    @staticmethod
    def _is_expired(expires_at: datetime | None) -> bool:
        if expires_at is None:
            return False
        # SQLite drops tzinfo on the way back
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return datetime.now(timezone.utc) > expires_at

    async def get(self, key: str) -> bytes | None:
        from tracker.app.db.async_session import get_async_session
        from tracker.app.db.models import CacheRecord

        await self._ensure_schema()
        async with get_async_session(self._database_url) as session:
            record = await session.get(CacheRecord, key)
            if record is None:
                return None
            if self._is_expired(record.expires_at):
                await session.delete(record)
                await session.commit()
                return None
            return record.value

    async def set(self, key: str, value: bytes, ttl: int = 0) -> None:
        from tracker.app.db.async_session import get_async_session
        from tracker.app.db.models import CacheRecord

        await self._ensure_schema()
        now = datetime.now(timezone.utc)
        expires_at = now + timedelta(seconds=ttl) if ttl > 0 else None
        async with get_async_session(self._database_url) as session:
            await session.merge(
                CacheRecord(key=key, value=value, updated_at=now, expires_at=expires_at)
            )
            await session.commit()

    async def delete(self, key: str) -> None:
        from sqlalchemy import delete

        from tracker.app.db.async_session import get_async_session
        from tracker.app.db.models import CacheRecord

        await self._ensure_schema()
        async with get_async_session(self._database_url) as session:
            await session.execute(delete(CacheRecord).where(CacheRecord.key == key))
            await session.commit()

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    async def clear(self) -> None:
        from sqlalchemy import delete

        from tracker.app.db.async_session import get_async_session
        from tracker.app.db.models import CacheRecord

        await self._ensure_schema()
        async with get_async_session(self._database_url) as session:
            await session.execute(delete(CacheRecord))
            await session.commit()


# Process-wide backend, built on first use
_cache_instance: CacheBackend | None = None


def get_cache(
    backend: str | None = None,
    redis_url: str | None = None,
    database_url: str | None = None,
    force_new: bool = False,
) -> CacheBackend:
    """Return the process-wide backend, creating it on first use.

    Returns the same instance on subsequent calls unless ``force_new`` is
    set. Components should receive the backend explicitly; this helper is
    for wiring at application start.

    Args:
        backend: 'memory', 'redis', 'database', or None to use
            settings.cache_backend.
        redis_url: Redis connection URL. If not provided, uses settings.redis_url.
        database_url: SQLAlchemy URL. If not provided, uses
            settings.cache_database_url.
        force_new: Build a fresh backend even if one is already held.

    Returns:
        A CacheBackend instance.
    """
    global _cache_instance

    if _cache_instance is not None and not force_new:
        return _cache_instance

    from tracker.app.core.config import settings

    choice = backend or settings.cache_backend

    if choice == "redis":
        _cache_instance = RedisCache(redis_url or settings.redis_url)
    elif choice == "database":
        _cache_instance = DatabaseCache(database_url or settings.cache_database_url)
    elif choice == "memory":
        _cache_instance = InMemoryCache()
    else:
        raise ValueError(f"Unknown cache backend: {choice!r}")

    logger.debug(f"Using {type(_cache_instance).__name__} cache backend")
    return _cache_instance


def reset_cache() -> None:
    """Forget the process-wide backend so the next call rebuilds it."""
    global _cache_instance
    _cache_instance = None
