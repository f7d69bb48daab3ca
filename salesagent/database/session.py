"""
Sales Agent - Database Session Management

Async SQLAlchemy session factory with connection pooling.

Usage:
    from salesagent.database.session import get_db_session, init_db

    # Initialize on startup
    await init_db()

    # Use in async context
    async with get_db_session() as session:
        result = await session.execute(select(Conversation))
        conversations = result.scalars().all()
"""

from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy import text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from salesagent.config.logging_config import get_logger
from salesagent.config.settings import get_conversation_settings
from salesagent.database.models import Base

logger = get_logger(__name__)

# Engine and session factory are created on first use so importing this
# module never opens a connection or requires a driver.
_engine: Optional[AsyncEngine] = None
_session_factory: Optional[async_sessionmaker] = None


def create_engine_for(database_url: str) -> AsyncEngine:
    """
    Create an async engine for a database URL.

    PostgreSQL gets a bounded connection pool; SQLite (used by tests) keeps
    the dialect defaults since it does not accept pool sizing arguments.
    """
    if database_url.startswith("sqlite"):
        return create_async_engine(database_url, echo=False)

    return create_async_engine(
        database_url,
        echo=False,  # Set to True for SQL query logging
        pool_size=5,  # Adjust based on expected concurrent sessions
        max_overflow=10,  # Allow up to 15 total connections (5 + 10)
        pool_pre_ping=True,  # Test connections before use
        pool_recycle=3600,  # Recycle connections after 1 hour
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker:
    """Async session factory bound to an engine."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,  # Don't expire objects after commit
        autoflush=False,  # Manual control of flush operations
    )


def get_engine() -> AsyncEngine:
    """Get the process-wide engine (created from DATABASE_URL on first call)."""
    global _engine, _session_factory
    if _engine is None:
        _engine = create_engine_for(get_conversation_settings().database_url)
        _session_factory = create_session_factory(_engine)
    return _engine


async def init_db(engine: Optional[AsyncEngine] = None) -> None:
    """
    Initialize database schema.

    Creates all tables defined in models.py if they don't exist.

    Note: For production, use Alembic migrations instead of create_all().
    """
    engine = engine or get_engine()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Close all pooled connections (application shutdown)."""
    global _engine, _session_factory
    if _engine is not None:
        await _engine.dispose()
        _engine = None
        _session_factory = None


@asynccontextmanager
async def session_scope(factory: async_sessionmaker) -> AsyncGenerator[AsyncSession, None]:
    """
    Unit of work on a session from factory.

    Automatically commits on success, rolls back on exception.
    """
    session = factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Async context manager for database sessions on the process-wide engine.

    Automatically commits on success, rolls back on exception.
    """
    get_engine()
    async with session_scope(_session_factory) as session:
        yield session


async def check_db_connection() -> bool:
    """
    Check database connectivity.

    Returns:
        bool: True if database is reachable, False otherwise
    """
    try:
        async with get_db_session() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"❌ Database connection failed: {e}")
        return False
