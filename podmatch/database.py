"""Async database engine and session management.

Uses SQLAlchemy 2.0 async with the asyncpg driver in production and
aiosqlite in tests. Graceful degradation: if the database is unavailable,
the app keeps serving search and matching without persistence.
"""

import logging

from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from podmatch.config import settings

logger = logging.getLogger(__name__)


def build_engine(url: str) -> AsyncEngine:
    """Create an engine; SQLite gets a single shared connection instead of a pool."""
    if url.startswith("sqlite"):
        return create_async_engine(
            url,
            echo=False,
            poolclass=StaticPool,
        )
    return create_async_engine(
        url,
        echo=False,
        pool_size=5,
        max_overflow=10,
        pool_pre_ping=True,
    )


def build_session_factory(bind: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind, class_=AsyncSession, expire_on_commit=False)


engine = build_engine(settings.database_url)
async_session_factory = build_session_factory(engine)


async def init_db(bind: AsyncEngine | None = None) -> bool:
    """Create tables if they don't exist. Returns True on success."""
    from podmatch.models import Base

    try:
        async with (bind or engine).begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database initialized successfully")
        return True
    except Exception as e:
        logger.warning("Database unavailable, continuing without persistence: %s", str(e)[:200])
        return False


async def close_db(bind: AsyncEngine | None = None):
    """Dispose engine connections on shutdown."""
    await (bind or engine).dispose()
    logger.info("Database connections closed")
