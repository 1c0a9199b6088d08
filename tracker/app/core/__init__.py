"""Core utilities for the tracker application."""

from tracker.app.core.cache import (
    CacheBackend,
    DatabaseCache,
    InMemoryCache,
    RedisCache,
    get_cache,
    reset_cache,
)
from tracker.app.core.config import settings
from tracker.app.core.logging import get_logger, setup_logging
from tracker.app.core.utils import describe_age, normalize_text, utc_now

__all__ = [
    "CacheBackend",
    "DatabaseCache",
    "InMemoryCache",
    "RedisCache",
    "get_cache",
    "reset_cache",
    "settings",
    "get_logger",
    "setup_logging",
    "describe_age",
    "normalize_text",
    "utc_now",
]
