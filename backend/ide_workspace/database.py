"""
IDE Workspace — Database Session Management
============================================

What:  Async SQLAlchemy engine, session factory, and FastAPI dependency.
How:   Creates an async engine (NullPool for SQLite files, a sized pool for
       server databases), provides a session dependency that commits on
       success and rolls back on error.
Who:   Used by route handlers via FastAPI's dependency injection system, and
       by tests that build their own engine through `make_engine`.
When:  Engine is created at module import; sessions are created per-request.

Connection Strategy:
    SQLite (default):   NullPool. Each session opens its own connection, so
                        sessions created on different event loops never share
                        an aiosqlite worker thread.
    Server databases:   pool_size / max_overflow / pool_pre_ping from settings,
                        pool_recycle=3600.
"""

import logging
from typing import AsyncGenerator

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import NullPool

from ide_workspace.config import settings

logger = logging.getLogger(__name__)


def make_engine(url: str) -> AsyncEngine:
    """
    Builds an async engine for `url` with pool settings suited to the driver.

    Args:
        url: SQLAlchemy async URL (sqlite+aiosqlite://, postgresql+asyncpg://, ...)
    """
    echo = settings.log_level == "DEBUG"
    if url.startswith("sqlite"):
        return create_async_engine(url, poolclass=NullPool, echo=echo)
    return create_async_engine(
        url,
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_pre_ping=settings.db_pool_pre_ping,
        pool_recycle=3600,
        echo=echo,
    )


# ── Engine Configuration ──────────────────────────────────────────────────
engine = make_engine(settings.database_url)

# ── Session Factory ───────────────────────────────────────────────────────
# expire_on_commit=False: ORM attributes stay readable after commit
async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


# ── Base Model ────────────────────────────────────────────────────────────
class Base(DeclarativeBase):
    """
    Base class for all SQLAlchemy ORM models.

    Models register with the shared metadata, which Alembic and
    `init_models()` both read.
    """
    pass


# ── Session Dependency ────────────────────────────────────────────────────
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    FastAPI dependency that provides a database session per request.

    How it works:
        1. Creates a new session from the factory
        2. Yields it to the route handler
        3. On success: commits the transaction
        4. On error: rolls back and re-raises for the global error handler
        5. Always: closes the session

    Example usage in a route:
        @router.get("/projects")
        async def list_projects(db: AsyncSession = Depends(get_db_session)):
            return await project_store.list_projects(db)
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# ── Lifecycle Helpers ─────────────────────────────────────────────────────
async def init_models(bind: AsyncEngine = None) -> None:
    """
    Creates any missing tables for the registered models.

    When:  Application startup when `settings.auto_create_schema` is on, and
           test fixtures that need a fresh schema.
    """
    # Model modules must be imported so their tables join Base.metadata
    from ide_workspace.models import project  # noqa: F401

    target = bind or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema ready")


async def dispose_engine() -> None:
    """
    What:  Closes all connections held by the engine.
    When:  Called during application shutdown (lifespan handler).
    """
    await engine.dispose()
