"""Services package for the tracker.

This package provides:
- Markup extraction for the summary and register views
- Attendance and feed caches on top of the core cache backends
- Attendance projection
- The coordinator tying cache and portal together
"""

from tracker.app.services.attendance_cache import AttendanceCache, CacheEntry
from tracker.app.services.coordinator import (
    AttendanceCoordinator,
    AttendanceState,
    RefreshOutcome,
)
from tracker.app.services.extractor import (
    LineClassifier,
    RegisterExtractor,
    RegisterLink,
    SummaryExtractor,
    link_registers,
)
from tracker.app.services.feed_cache import CachedFeed, FeedCache
from tracker.app.services.projector import (
    AttendanceProjector,
    ProjectionPolicy,
    ProjectionResult,
    ProjectionStatus,
    current_percentage,
)

__all__ = [
    # Caches
    "AttendanceCache",
    "CacheEntry",
    "CachedFeed",
    "FeedCache",
    # Coordinator
    "AttendanceCoordinator",
    "AttendanceState",
    "RefreshOutcome",
    # Extraction
    "LineClassifier",
    "RegisterExtractor",
    "RegisterLink",
    "SummaryExtractor",
    "link_registers",
    # Projection
    "AttendanceProjector",
    "ProjectionPolicy",
    "ProjectionResult",
    "ProjectionStatus",
    "current_percentage",
]
