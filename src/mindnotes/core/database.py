"""
Database Layer

Async SQLAlchemy 2.0 over asyncpg. One engine per process, created on
first use so importing the package never opens a connection.

Three consumers share the session factory:
    - request handlers, through the ``get_db`` dependency;
    - background index tasks, which outlive the request session;
    - ``scripts/reindex_notes.py``.
"""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from mindnotes.core.config import settings

logger = logging.getLogger(__name__)

_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Process-wide async engine, built lazily from ``settings.DATABASE_URL``."""
    global _engine  # noqa: PLW0603
    if _engine is None:
        _engine = create_async_engine(
            settings.DATABASE_URL,
            pool_size=settings.DB_POOL_SIZE,
            pool_pre_ping=True,
        )
        logger.info(
            "Engine ready for %s@%s:%s/%s",
            settings.POSTGRES_USER,
            settings.POSTGRES_HOST,
            settings.POSTGRES_PORT,
            settings.POSTGRES_DB,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the engine (``expire_on_commit=False``)."""
    global _session_factory  # noqa: PLW0603
    if _session_factory is None:
        # Notes are serialized after commit; attributes must stay loaded
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Request-scoped session; closed when the response is done, even on errors."""
    async with get_session_factory()() as session:
        yield session


async def dispose_engine() -> None:
    """Close pooled connections and forget the engine (shutdown, end of script)."""
    global _engine, _session_factory  # noqa: PLW0603
    if _engine is None:
        return
    await _engine.dispose()
    _engine = None
    _session_factory = None
    logger.info("Engine disposed")
