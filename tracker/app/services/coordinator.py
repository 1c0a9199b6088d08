"""Attendance coordinator: cache-first loading with live refresh.

Lifecycle for one (user, institution, session) key:

1. ``activate()`` shows cached data immediately when there is any. A stale
   entry schedules a silent background refresh; a miss triggers a live fetch.
2. ``refresh()`` is the user-initiated path; it always goes to the portal
   and always reports its outcome.
3. ``close()`` detaches the consumer. Fetches already in flight still write
   through to the cache but no longer touch ``state``.

At most one portal fetch runs at a time; concurrent callers share it.
"""

import asyncio
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Optional

from tracker.app.core.logging import get_log_context, get_logger
from tracker.app.core.utils import utc_now
from tracker.app.exceptions import TrackerException
from tracker.app.portal.retry import is_network_error
from tracker.app.portal.source import MarkupSource
from tracker.app.schemas import CacheKey, SubjectAttendance
from tracker.app.services.attendance_cache import AttendanceCache, CacheEntry
from tracker.app.services.extractor import (
    RegisterExtractor,
    RegisterLink,
    SummaryExtractor,
    link_registers,
)
from tracker.app.services.projector import AttendanceProjector, ProjectionResult

logger = get_logger(__name__)


@dataclass(frozen=True)
class AttendanceState:
    """Snapshot of what the consumer should display."""

    subjects: list[SubjectAttendance] = field(default_factory=list)
    fetched_at: Optional[datetime] = None
    cache_age: Optional[str] = None
    is_offline: bool = False
    is_loading: bool = False
    is_refreshing: bool = False
    error: Optional[str] = None
    can_retry: bool = False


@dataclass(frozen=True)
class RefreshOutcome:
    success: bool
    error: Optional[str] = None
    is_network_error: bool = False


def _describe_error(exc: BaseException) -> str:
    if isinstance(exc, TrackerException):
        return exc.message
    return str(exc) or type(exc).__name__


class AttendanceCoordinator:
    """Keeps one student's attendance state in sync with cache and portal.

    Args:
        key: Whose attendance this coordinator serves
        source: Where summary and register markup come from
        cache: Persisted attendance summaries
        extractor: Summary markup extractor
        register_extractor: Register markup extractor
        projector: Used by ``projection_for``
        on_change: Called with the new state after every state change
    """

    def __init__(
        self,
        key: CacheKey,
        source: MarkupSource,
        cache: AttendanceCache,
        extractor: Optional[SummaryExtractor] = None,
        register_extractor: Optional[RegisterExtractor] = None,
        projector: Optional[AttendanceProjector] = None,
        on_change: Optional[Callable[[AttendanceState], None]] = None,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self.key = key
        self.source = source
        self.cache = cache
        self.extractor = extractor or SummaryExtractor()
        self.register_extractor = register_extractor or RegisterExtractor()
        self.projector = projector or AttendanceProjector()
        self.on_change = on_change
        self._clock = clock

        self.state = AttendanceState()
        self._closed = False
        self._fetch_task: Optional[asyncio.Task] = None
        self._background_task: Optional[asyncio.Task] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def _log_context(self, refresh_kind: Optional[str] = None, **extra) -> dict:
        return get_log_context(
            user_id=self.key.user_id,
            institution=self.key.institution,
            session_id=self.key.session_id,
            refresh_kind=refresh_kind,
            **extra,
        )

    def _update(self, **changes) -> None:
        if self._closed:
            return
        self.state = replace(self.state, **changes)
        if self.on_change is not None:
            self.on_change(self.state)

    def _show_entry(self, entry: CacheEntry[list[SubjectAttendance]], **changes) -> None:
        self._update(
            subjects=list(entry.payload),
            fetched_at=entry.fetched_at,
            cache_age=self.cache.age_description(entry),
            is_loading=False,
            **changes,
        )

    def _show_fetched(self, subjects: list[SubjectAttendance], fetched_at: datetime) -> None:
        self._update(
            subjects=subjects,
            fetched_at=fetched_at,
            cache_age="Just now",
            is_offline=False,
            is_loading=False,
            is_refreshing=False,
            error=None,
            can_retry=False,
        )

    async def activate(self) -> None:
        """Show cached data, then refresh it in the background if stale.

        Falls back to a live fetch when nothing is cached.
        """
        self._update(is_loading=True, error=None, can_retry=False)

        entry = await self.cache.get(self.key)
        if entry is not None:
            self._show_entry(entry)
            if not self._closed and not self.cache.is_valid(entry):
                logger.debug(
                    f"Cache entry is stale ({self.state.cache_age}), refreshing in background",
                    extra=self._log_context("background"),
                )
                self._background_task = asyncio.create_task(self._background_refresh())
            return

        await self._foreground_fetch("initial")

    async def refresh(self) -> RefreshOutcome:
        """User-initiated refresh. Always fetches live and reports the result."""
        self._update(is_refreshing=True)
        return await self._foreground_fetch("user")

    async def _fetch_and_store(self) -> tuple[list[SubjectAttendance], datetime]:
        loop = asyncio.get_running_loop()
        start = loop.time()

        markup = await self.source.fetch_summary(self.key)
        subjects = self.extractor.extract(markup)

        if subjects:
            entry = await self.cache.put(self.key, subjects)
            fetched_at = entry.fetched_at
        else:
            logger.warning(
                "Portal returned no readable subjects, cache left untouched",
                extra=self._log_context(),
            )
            fetched_at = self._clock()

        logger.info(
            f"Fetched {len(subjects)} subjects",
            extra=self._log_context(duration_ms=round((loop.time() - start) * 1000, 1)),
        )
        return subjects, fetched_at

    async def _fetch(self) -> tuple[list[SubjectAttendance], datetime]:
        """Run a portal fetch, joining the one in flight if there is one."""
        if self._fetch_task is None or self._fetch_task.done():
            self._fetch_task = asyncio.create_task(self._fetch_and_store())
        # A cancelled caller must not cancel the fetch other callers share
        return await asyncio.shield(self._fetch_task)

    async def _foreground_fetch(self, refresh_kind: str) -> RefreshOutcome:
        try:
            subjects, fetched_at = await self._fetch()
        except Exception as exc:
            network = is_network_error(exc)
            message = _describe_error(exc)
            logger.warning(
                f"Attendance fetch failed: {type(exc).__name__}: {message}",
                extra=self._log_context(refresh_kind),
            )
            await self._handle_failure(network, message)
            return RefreshOutcome(success=False, error=message, is_network_error=network)

        self._show_fetched(subjects, fetched_at)
        return RefreshOutcome(success=True)

    async def _handle_failure(self, network: bool, message: str) -> None:
        if self._closed:
            return

        if self.state.subjects:
            self._update(
                is_offline=self.state.is_offline or network,
                is_loading=False,
                is_refreshing=False,
            )
            return

        # Last resort: anything cached, however old
        entry = await self.cache.get(self.key)
        if entry is not None:
            self._show_entry(entry, is_offline=network, is_refreshing=False)
            return

        self._update(
            is_loading=False,
            is_refreshing=False,
            error=message,
            can_retry=True,
        )

    async def _background_refresh(self) -> None:
        try:
            subjects, fetched_at = await self._fetch()
        except Exception as exc:
            logger.warning(
                f"Background refresh failed: {type(exc).__name__}: {_describe_error(exc)}",
                extra=self._log_context("background"),
            )
            return

        self._show_fetched(subjects, fetched_at)

    async def wait_for_background(self) -> None:
        """Wait for a pending background refresh, if any."""
        if self._background_task is not None:
            await self._background_task

    def close(self) -> None:
        """Stop applying results to ``state``. In-flight fetches are not cancelled."""
        self._closed = True

    async def load_register(self) -> list[RegisterLink]:
        """Fetch the per-lecture register and link it to the current subjects.

        Raises:
            PortalFetchError: If the register cannot be fetched.
        """
        markup = await self.source.fetch_register(self.key)
        registers = self.register_extractor.extract(markup)
        return link_registers(registers, self.state.subjects)

    def find_subject(self, subject_code: str) -> Optional[SubjectAttendance]:
        wanted = subject_code.strip().casefold()
        for subject in self.state.subjects:
            if subject.subject_code.strip().casefold() == wanted:
                return subject
        return None

    def projection_for(
        self, subject_code: str, classes_to_miss: Optional[int] = None
    ) -> Optional[ProjectionResult]:
        """Project attendance for a displayed subject, or None if it is unknown."""
        subject = self.find_subject(subject_code)
        if subject is None:
            return None
        return self.projector.project(subject, classes_to_miss)
