"""
Record Store Database Layer

Async SQLAlchemy setup for the clinic record store (pets, medical records).
The suggestion service only reads from it: patient-context lookups and
reindexing.

Design:
    - Lazy initialization: engine created on first use, not at import.
    - get_session_factory: returns a reusable async session maker.
    - check_database: connectivity probe used at startup and by /health.
"""

from __future__ import annotations

import logging

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from soap_assist.core.config import settings

logger = logging.getLogger(__name__)

# Module-level singletons (lazy)
_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def get_engine() -> AsyncEngine:
    """Get or create the async SQLAlchemy engine (singleton)."""
    global _engine  # noqa: PLW0603
    if _engine is None:
        _engine = create_async_engine(settings.DATABASE_URL, echo=False, pool_size=5)
        logger.info(
            "Database engine created: %s@%s",
            settings.POSTGRES_USER,
            settings.POSTGRES_HOST,
        )
    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get or create the async session factory (singleton)."""
    global _session_factory  # noqa: PLW0603
    if _session_factory is None:
        # expire_on_commit=False: prevents implicit I/O after commit
        _session_factory = async_sessionmaker(get_engine(), expire_on_commit=False)
    return _session_factory


async def check_database() -> bool:
    """Run a trivial query; False if the record store is unreachable."""
    try:
        async with get_engine().connect() as conn:
            await conn.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning("Database check failed: %s", e)
        return False


async def dispose_engine() -> None:
    """Dispose the engine at application shutdown."""
    global _engine, _session_factory  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
        logger.info("Database engine disposed")
