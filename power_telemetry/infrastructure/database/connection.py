"""
Database connection management for the energy tiers.

Provides async SQLAlchemy engine and session management. PostgreSQL
(asyncpg) in deployment, SQLite (aiosqlite) for local runs and tests.
"""
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncContextManager, AsyncGenerator, Callable, Dict, Optional

from sqlalchemy import MetaData, event, text
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from ...config import get_settings

settings = get_settings()

logger = logging.getLogger(__name__)


# Naming convention for database constraints
NAMING_CONVENTION = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_name)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

metadata = MetaData(naming_convention=NAMING_CONVENTION)


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    metadata = metadata


# A callable returning a transactional session scope, e.g. get_db_session
SessionScope = Callable[[], AsyncContextManager[AsyncSession]]


class DatabaseManager:
    """
    Manages database connections and sessions.

    The engine and session factory are created lazily and shared
    process-wide.
    """

    _engine: Optional[AsyncEngine] = None
    _session_factory: Optional[async_sessionmaker[AsyncSession]] = None

    @classmethod
    def get_engine(cls) -> AsyncEngine:
        """Get or create the async database engine."""
        if cls._engine is None:
            options: Dict[str, Any] = {
                "echo": settings.database.echo_sql,
                "pool_pre_ping": True,
            }
            if not settings.database.is_sqlite:
                options.update(
                    pool_size=settings.database.pool_size,
                    max_overflow=settings.database.max_overflow,
                    pool_recycle=3600,
                )
            cls._engine = create_async_engine(settings.database.url, **options)

            if not settings.database.is_sqlite:
                @event.listens_for(cls._engine.sync_engine, "connect")
                def set_timezone(dbapi_conn, connection_record):
                    """Timestamps are written and compared in UTC."""
                    cursor = dbapi_conn.cursor()
                    cursor.execute("SET timezone = 'UTC'")
                    cursor.close()

        return cls._engine

    @classmethod
    def get_session_factory(cls) -> async_sessionmaker[AsyncSession]:
        """Get or create the async session factory."""
        if cls._session_factory is None:
            cls._session_factory = async_sessionmaker(
                bind=cls.get_engine(),
                class_=AsyncSession,
                expire_on_commit=False,
                autoflush=False,
            )
        return cls._session_factory

    @classmethod
    async def close(cls) -> None:
        """Close the database engine and all connections."""
        if cls._engine is not None:
            await cls._engine.dispose()
            cls._engine = None
            cls._session_factory = None


@asynccontextmanager
async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a transactional scope around a series of operations.
    """
    session_factory = DatabaseManager.get_session_factory()
    session = session_factory()
    try:
        yield session
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    finally:
        await session.close()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for FastAPI to get database session."""
    async with get_db_session() as session:
        yield session


async def init_db() -> None:
    """
    Create the energy tables if they do not exist.

    Deployments normally run the Alembic migrations instead; this keeps
    local SQLite runs self-contained.
    """
    engine = DatabaseManager.get_engine()

    async with engine.begin() as conn:
        # Import models to register with metadata
        from .models import energy_model  # noqa: F401

        await conn.run_sync(Base.metadata.create_all)


async def health_check() -> bool:
    """Check database connectivity."""
    try:
        async with get_db_session() as session:
            await session.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.warning(f"Database health check failed: {e}")
        return False
