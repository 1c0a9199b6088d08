"""Async database session management for SQLAlchemy 2.0+.

The database only backs the persistent cache, so the default target is a
local SQLite file driven through aiosqlite.
"""

from contextlib import asynccontextmanager
from functools import lru_cache
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from tracker.app.core.config import settings
from tracker.app.core.logging import get_logger

logger = get_logger(__name__)


@lru_cache(maxsize=8)
def get_async_engine(database_url: str | None = None) -> AsyncEngine:
    """Get or create the async database engine for a URL.

    Cached with lru_cache so every caller sharing a URL shares one engine.

    Args:
        database_url: Optional database URL. Uses settings if not provided.

    Returns:
        AsyncEngine instance
    """
    url = database_url or settings.cache_database_url
    engine = create_async_engine(url, echo=False, future=True)
    logger.info(f"Created async cache engine ({engine.url.get_backend_name()})")
    return engine


@lru_cache(maxsize=8)
def get_async_session_maker(
    database_url: str | None = None,
) -> async_sessionmaker[AsyncSession]:
    """Get the async session maker bound to the engine for a URL."""
    return async_sessionmaker(
        bind=get_async_engine(database_url),
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def get_async_session(
    database_url: str | None = None,
) -> AsyncGenerator[AsyncSession, None]:
    """Async context manager for database sessions.

    Usage:
        async with get_async_session() as session:
            result = await session.execute(...)

    Yields:
        AsyncSession: Database session
    """
    session_maker = get_async_session_maker(database_url)
    async with session_maker() as session:
        try:
            yield session
        finally:
            await session.close()


async def init_cache_schema(database_url: str | None = None) -> None:
    """Create the cache tables if they do not exist yet."""
    from tracker.app.db.base import Base
    from tracker.app.db import models  # noqa: F401  (registers tables)

    engine = get_async_engine(database_url)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_async_engine(database_url: str | None = None) -> None:
    """Dispose the engine for a URL and forget the cached instances."""
    engine = get_async_engine(database_url)
    try:
        await engine.dispose()
        logger.debug("Async engine disposed successfully")
    except RuntimeError:
        # Event loop mismatch - connection already closed or different loop
        logger.debug("Engine dispose encountered RuntimeError (event loop mismatch)")

    get_async_session_maker.cache_clear()
    get_async_engine.cache_clear()
