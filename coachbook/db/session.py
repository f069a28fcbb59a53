from __future__ import annotations

from collections.abc import AsyncGenerator
import asyncio
import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from coachbook.core.settings import get_settings

logger = logging.getLogger(__name__)

_engines_by_loop: dict[int, AsyncEngine] = {}
_sessionmakers_by_loop: dict[int, async_sessionmaker[AsyncSession]] = {}


def _loop_cache_key() -> int:
    # asyncpg connections are tied to the event loop they were opened on, so
    # each loop (e.g. one per pytest-asyncio test) gets its own engine.
    try:
        loop = asyncio.get_running_loop()
    except RuntimeError:
        loop = asyncio.get_event_loop()
    return id(loop)


def get_engine() -> AsyncEngine:
    key = _loop_cache_key()
    engine = _engines_by_loop.get(key)
    if engine is None:
        settings = get_settings()
        engine = create_async_engine(
            settings.database_url,
            pool_pre_ping=True,
            pool_size=settings.database_pool_size,
        )
        _engines_by_loop[key] = engine
    return engine


def get_session_maker() -> async_sessionmaker[AsyncSession]:
    key = _loop_cache_key()
    maker = _sessionmakers_by_loop.get(key)
    if maker is None:
        maker = async_sessionmaker(
            bind=get_engine(),
            expire_on_commit=False,
            autoflush=False,
            autocommit=False,
        )
        _sessionmakers_by_loop[key] = maker
    return maker


async def dispose_engine() -> None:
    """Close the pool owned by the running loop. Called on application shutdown."""
    key = _loop_cache_key()
    _sessionmakers_by_loop.pop(key, None)
    engine = _engines_by_loop.pop(key, None)
    if engine is not None:
        await engine.dispose()
        logger.info("Database engine disposed")


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    SessionLocal = get_session_maker()
    async with SessionLocal() as session:
        yield session
