"""
Async database engine and session factory.

Uses SQLAlchemy 2.x async engine with the asyncpg driver. The engine is
owned by the TimescaleDB storage adapter rather than held in module state,
so each application instance (and each test) builds its own.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)


def create_engine(database_url: str) -> AsyncEngine:
    """Create an async SQLAlchemy engine.

    Args:
        database_url: SQLAlchemy URL, e.g. ``postgresql+asyncpg://...``.

    Returns:
        AsyncEngine: Configured async engine with connection health checks.
    """
    return create_async_engine(database_url, echo=False, pool_pre_ping=True)


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create an async session factory bound to *engine*.

    Args:
        engine: Async engine to bind sessions to.

    Returns:
        async_sessionmaker: Factory for creating AsyncSession instances.
    """
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
