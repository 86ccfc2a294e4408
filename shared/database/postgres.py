"""
Relational Database Connection

Async SQLAlchemy setup for the activity store. PostgreSQL (psycopg) in
production; any SQLAlchemy async dialect can be plugged in through
``Settings.database_url``.
"""

from typing import Any

import structlog
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from shared.config import settings

logger = structlog.get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for SQLAlchemy models."""


_engine: AsyncEngine | None = None
_session_factory: async_sessionmaker[AsyncSession] | None = None


def build_engine(
    database_url: str,
    isolation_level: str | None = None,
    echo: bool = False,
    **engine_kwargs: Any,
) -> AsyncEngine:
    """
    Create an async engine.

    Args:
        database_url: Async SQLAlchemy URL
        isolation_level: Transaction isolation level (None = driver default)
        echo: Echo SQL statements
        **engine_kwargs: Extra keyword arguments for create_async_engine

    Returns:
        AsyncEngine: Configured engine
    """
    if isolation_level is not None:
        engine_kwargs["isolation_level"] = isolation_level

    return create_async_engine(database_url, echo=echo, pool_pre_ping=True, **engine_kwargs)


def build_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory used by repositories and the enrollment engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_engine() -> AsyncEngine:
    """
    Get (and lazily create) the process-wide engine.

    Returns:
        AsyncEngine: Engine built from settings
    """
    global _engine

    if _engine is None:
        url = settings.async_database_url
        kwargs: dict[str, Any] = {}
        if url.startswith("postgresql"):
            kwargs["pool_size"] = settings.db_pool_size
            kwargs["max_overflow"] = settings.db_max_overflow

        _engine = build_engine(
            url,
            isolation_level=settings.db_isolation_level,
            echo=settings.debug,
            **kwargs,
        )
        logger.info("Database engine created", dialect=_engine.dialect.name)

    return _engine


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get (and lazily create) the process-wide session factory."""
    global _session_factory

    if _session_factory is None:
        _session_factory = build_session_factory(get_engine())

    return _session_factory


async def init_db(engine: AsyncEngine | None = None) -> None:
    """Initialize database - create all tables."""
    # Registers the activity tables on Base.metadata
    import services.activity_service.models  # noqa: F401

    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database initialized", dialect=engine.dialect.name)


async def close_db() -> None:
    """Close database connections."""
    global _engine, _session_factory

    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None
    logger.info("Database connections closed")
