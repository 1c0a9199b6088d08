"""Database package for the tracker.

This package provides:
- The persistent cache table (CacheRecord)
- Asynchronous session management
"""

from tracker.app.db.base import Base
from tracker.app.db.models import CacheRecord
from tracker.app.db.async_session import (
    close_async_engine,
    get_async_engine,
    get_async_session,
    get_async_session_maker,
    init_cache_schema,
)

__all__ = [
    "Base",
    "CacheRecord",
    "close_async_engine",
    "get_async_engine",
    "get_async_session",
    "get_async_session_maker",
    "init_cache_schema",
]
