"""Tests for the attendance cache service."""

import json
from datetime import timedelta
from decimal import Decimal

import pytest

from tracker.app.core.cache import InMemoryCache
from tracker.app.schemas import CacheKey, SubjectAttendance
from tracker.app.services.attendance_cache import AttendanceCache


def _subjects():
    return [
        SubjectAttendance(
            subject_name="Data Structures",
            subject_code="CS201",
            teacher="Jane Doe",
            session_start="01 Jul 2025",
            session_end="28 Nov 2025",
            lectures_delivered=20,
            lectures_attended=14,
            lectures_absent=3,
            duty_leave_used=2,
            medical_leave_used=1,
            approved_duty_leave=2,
            approved_medical_leave_quota=3,
            reported_percentage=Decimal("85.00"),
        ),
        SubjectAttendance(subject_name="Operating Systems", subject_code="CS301"),
    ]


class TestCacheKey:
    def test_storage_key(self, cache_key):
        assert cache_key.storage_key() == "attendance:abc:42:7"
        assert cache_key.storage_key("feed") == "feed:abc:42:7"

    def test_keys_are_distinct_per_session(self):
        a = CacheKey(user_id="42", institution="abc", session_id="7")
        b = CacheKey(user_id="42", institution="abc", session_id="8")
        assert a.storage_key() != b.storage_key()


class TestAttendanceCache:
    """Tests for AttendanceCache."""

    def _cache(self, backend, clock):
        return AttendanceCache(backend, ttl=timedelta(hours=1), clock=clock)

    @pytest.mark.asyncio
    async def test_miss(self, memory_backend, clock, cache_key):
        cache = self._cache(memory_backend, clock)
        assert await cache.get(cache_key) is None

    @pytest.mark.asyncio
    async def test_round_trip_is_field_for_field_equal(self, memory_backend, clock, cache_key):
        cache = self._cache(memory_backend, clock)
        await cache.put(cache_key, _subjects())

        entry = await cache.get(cache_key)
        assert entry is not None
        assert entry.payload == _subjects()
        assert entry.fetched_at == clock.now
        assert cache.is_valid(entry)

    @pytest.mark.asyncio
    async def test_put_overwrites(self, memory_backend, clock, cache_key):
        cache = self._cache(memory_backend, clock)
        await cache.put(cache_key, _subjects())
        clock.advance(minutes=10)
        await cache.put(cache_key, _subjects()[:1])

        entry = await cache.get(cache_key)
        assert len(entry.payload) == 1
        assert entry.fetched_at == clock.now

    @pytest.mark.asyncio
    async def test_stale_entry_still_returned(self, memory_backend, clock, cache_key):
        cache = self._cache(memory_backend, clock)
        await cache.put(cache_key, _subjects())
        clock.advance(hours=5)

        entry = await cache.get(cache_key)
        assert entry is not None
        assert not cache.is_valid(entry)

    @pytest.mark.asyncio
    async def test_validity_boundary(self, memory_backend, clock, cache_key):
        cache = self._cache(memory_backend, clock)
        entry = await cache.put(cache_key, _subjects())
        clock.advance(minutes=59, seconds=59)
        assert cache.is_valid(entry)
        clock.advance(seconds=1)
        assert not cache.is_valid(entry)

    @pytest.mark.asyncio
    async def test_entries_written_without_backend_expiry(self, clock, cache_key):
        backend = InMemoryCache()
        cache = self._cache(backend, clock)
        await cache.put(cache_key, _subjects())
        assert backend._data["attendance:abc:42:7"].expires_at is None

    @pytest.mark.asyncio
    async def test_persisted_layout(self, memory_backend, clock, cache_key):
        cache = self._cache(memory_backend, clock)
        await cache.put(cache_key, _subjects())

        raw = json.loads(await memory_backend.get("attendance:abc:42:7"))
        assert raw["fetched_at"] == clock.now.isoformat()
        assert raw["payload"][0]["subject_code"] == "CS201"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "payload",
        [b"not json", b'{"payload": []}', b'{"fetched_at": "yesterday", "payload": []}',
         b'{"fetched_at": "2025-09-01T08:00:00+00:00", "payload": [{"lectures_delivered": 3}]}',
         b"\xff\xfe"],
    )
    async def test_corrupt_entry_is_a_miss(self, memory_backend, clock, cache_key, payload):
        await memory_backend.set("attendance:abc:42:7", payload)
        cache = self._cache(memory_backend, clock)
        assert await cache.get(cache_key) is None

    @pytest.mark.asyncio
    async def test_clear(self, memory_backend, clock, cache_key):
        cache = self._cache(memory_backend, clock)
        await cache.put(cache_key, _subjects())
        await cache.clear(cache_key)
        assert await cache.get(cache_key) is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "delta,expected",
        [
            (timedelta(seconds=30), "Just now"),
            (timedelta(minutes=5), "5m ago"),
            (timedelta(hours=3, minutes=10), "3h ago"),
            (timedelta(days=2, hours=1), "2d ago"),
            (timedelta(minutes=-5), "Just now"),
        ],
    )
    async def test_age_description(self, memory_backend, clock, cache_key, delta, expected):
        cache = self._cache(memory_backend, clock)
        entry = await cache.put(cache_key, _subjects())
        clock.now = entry.fetched_at + delta
        assert cache.age_description(entry) == expected

    def test_default_ttl_from_settings(self, memory_backend):
        cache = AttendanceCache(memory_backend)
        assert cache.ttl == timedelta(hours=1)
