"""Persisted attendance summaries keyed by (user, institution, session).

Entries are written to the backend without expiry. Freshness is decided
here against ``ttl`` so that a stale entry can still be served when the
portal is unreachable.

Storage key format: attendance:{institution}:{user_id}:{session_id}
"""

import json
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Generic, Optional, TypeVar

from pydantic import TypeAdapter

from tracker.app.core.cache import CacheBackend
from tracker.app.core.config import settings
from tracker.app.core.logging import get_logger
from tracker.app.core.utils import describe_age, utc_now
from tracker.app.schemas import CacheKey, SubjectAttendance

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached payload and the time it was fetched (timezone-aware UTC)."""

    payload: T
    fetched_at: datetime

    def age(self, now: datetime) -> timedelta:
        return now - self.fetched_at


_SUBJECTS = TypeAdapter(list[SubjectAttendance])


class AttendanceCache:
    """Read/write access to cached attendance summaries.

    A hit is returned regardless of age; callers use ``is_valid`` to decide
    whether a background refresh is due. Corrupt payloads are treated as a
    miss.
    """

    CACHE_KEY_PREFIX = "attendance"

    def __init__(
        self,
        backend: CacheBackend,
        ttl: Optional[timedelta] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._backend = backend
        self.ttl = ttl if ttl is not None else timedelta(
            seconds=settings.attendance_cache_ttl_seconds
        )
        self._clock = clock

    def _make_key(self, key: CacheKey) -> str:
        return key.storage_key(self.CACHE_KEY_PREFIX)

    async def get(self, key: CacheKey) -> Optional[CacheEntry[list[SubjectAttendance]]]:
        data = await self._backend.get(self._make_key(key))
        if data is None:
            return None

        try:
            raw = json.loads(data.decode("utf-8"))
            fetched_at = datetime.fromisoformat(raw["fetched_at"])
            if fetched_at.tzinfo is None:
                fetched_at = fetched_at.replace(tzinfo=timezone.utc)
            payload = _SUBJECTS.validate_python(raw["payload"])
        except (json.JSONDecodeError, UnicodeDecodeError, KeyError, TypeError, ValueError) as exc:
            # ValidationError is a ValueError
            logger.warning(
                f"Discarding unreadable cache entry: {type(exc).__name__}",
                extra=key.log_context(),
            )
            return None

        return CacheEntry(payload=payload, fetched_at=fetched_at)

    async def put(
        self, key: CacheKey, payload: list[SubjectAttendance]
    ) -> CacheEntry[list[SubjectAttendance]]:
        """Overwrite the entry for ``key`` and stamp it with the current time."""
        entry = CacheEntry(payload=list(payload), fetched_at=self._clock())
        data = json.dumps(
            {
                "fetched_at": entry.fetched_at.isoformat(),
                "payload": _SUBJECTS.dump_python(entry.payload, mode="json"),
            }
        ).encode("utf-8")
        await self._backend.set(self._make_key(key), data, ttl=0)
        logger.debug(f"Cached {len(entry.payload)} subjects", extra=key.log_context())
        return entry

    async def clear(self, key: CacheKey) -> None:
        await self._backend.delete(self._make_key(key))

    def is_valid(self, entry: CacheEntry) -> bool:
        return entry.age(self._clock()) < self.ttl

    def age_description(self, entry: CacheEntry) -> str:
        return describe_age(entry.age(self._clock()))

