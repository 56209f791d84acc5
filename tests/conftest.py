"""
Shared pytest fixtures for the power telemetry tests.

Provides fixtures for:
- Database sessions (mocked, and in-memory SQLite via aiosqlite)
- Session scopes for the services and workers
- API client (httpx)
"""
import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from unittest.mock import AsyncMock, MagicMock

# Test environment configuration
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("MQTT_ENABLED", "false")
os.environ.setdefault("DEFAULT_TIMEZONE", "Asia/Jakarta")

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from power_telemetry.infrastructure.database.models import Base  # noqa: E402


# ============================================================================
# Database Fixtures
# ============================================================================

@pytest.fixture
def mock_db_session():
    """
    Mock database session for unit tests.

    Returns an AsyncMock that can be configured per test.
    """
    session = AsyncMock()
    session.execute = AsyncMock(return_value=MagicMock(scalars=MagicMock(return_value=MagicMock(all=MagicMock(return_value=[])))))
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    session.close = AsyncMock()
    session.flush = AsyncMock()
    session.add = MagicMock()
    return session


@pytest_asyncio.fixture
async def db_engine():
    """
    In-memory SQLite engine with the energy tables created.

    StaticPool keeps a single connection so every session sees the same
    database.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(
        bind=db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
def session_scope(session_factory):
    """Transactional scope with the same contract as get_db_session."""

    @asynccontextmanager
    async def scope() -> AsyncGenerator[AsyncSession, None]:
        session = session_factory()
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()

    return scope


@pytest_asyncio.fixture
async def db_session(session_factory):
    """Session for repository tests; committed explicitly by the test."""
    async with session_factory() as session:
        yield session


# ============================================================================
# API Client Fixtures
# ============================================================================

@pytest.fixture
def worker_manager(session_scope):
    """WorkerManager wired to the in-memory store; workers are not started."""
    from power_telemetry.application.services import RollupService
    from power_telemetry.config import get_settings
    from power_telemetry.infrastructure.database.repositories import ScopedHourlyWriter
    from power_telemetry.workers import WorkerManager

    settings = get_settings()
    return WorkerManager(
        app_settings=settings,
        hourly_writer=ScopedHourlyWriter(session_scope),
        rollup_service=RollupService(session_scope, timezone_name=settings.default_timezone),
    )


@pytest_asyncio.fixture
async def api_client(session_scope, worker_manager):
    """
    Test API client backed by the in-memory store.

    The lifespan is not run; the worker manager is attached directly.
    """
    import httpx

    from power_telemetry.api.dependencies import (
        get_alert_service,
        get_db_session,
        get_worker_manager,
    )
    from power_telemetry.application.services import AlertService
    from power_telemetry.main import create_app

    app = create_app()
    app.state.worker_manager = worker_manager

    async def override_db_session():
        async with session_scope() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_db_session
    app.dependency_overrides[get_worker_manager] = lambda: worker_manager
    app.dependency_overrides[get_alert_service] = lambda: AlertService(session_scope)

    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client

    app.dependency_overrides.clear()


# ============================================================================
# Utility Fixtures
# ============================================================================

@pytest.fixture
def anyio_backend():
    """Configure anyio backend for async tests."""
    return "asyncio"
