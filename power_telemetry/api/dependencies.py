"""
FastAPI dependencies for the telemetry API.

Provides database sessions and service instances via dependency injection.
The worker manager is created in the application lifespan and kept on
app.state.
"""
from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from ..application.services import AlertService, IngestionService
from ..config import AppSettings, get_settings
from ..infrastructure.database.connection import get_db
from ..workers.rollup_worker import RollupWorker
from ..workers.worker_manager import WorkerManager


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session for dependency injection."""
    async for session in get_db():
        yield session


def get_app_settings() -> AppSettings:
    return get_settings()


def get_worker_manager(request: Request) -> WorkerManager:
    """Worker manager started by the application lifespan."""
    return request.app.state.worker_manager


def get_ingestion_service(
    manager: WorkerManager = Depends(get_worker_manager),
) -> IngestionService:
    return manager.ingestion


def get_rollup_worker(
    manager: WorkerManager = Depends(get_worker_manager),
) -> RollupWorker:
    return manager.rollup_worker


def get_alert_service() -> AlertService:
    return AlertService()
