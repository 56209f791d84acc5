"""
FastAPI application entry point for the power telemetry service.

This is the backend for:
- MQTT ingestion of power-meter readings
- Periodic flush of buffered readings into the hourly tier
- Daily, weekly and monthly energy rollups
- Consumption alerts
"""
import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .config import get_settings
from .infrastructure.database.connection import DatabaseManager, init_db
from .workers.worker_manager import WorkerManager

settings = get_settings()

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure root logging from settings."""
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format=settings.log_format,
    )
    # paho logs every reconnect attempt at debug
    logging.getLogger("paho").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator:
    """
    Application lifespan handler.

    Manages startup and shutdown tasks.
    """
    # Startup
    logger.info(f"Starting {settings.app_name} v{settings.app_version}")
    logger.info(f"Environment: {settings.environment}")

    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")
        raise

    manager = WorkerManager(settings)
    app.state.worker_manager = manager
    await manager.start_all()

    yield

    # Shutdown
    logger.info("Shutting down application...")
    await manager.stop_all()
    await DatabaseManager.close()
    logger.info("Shutdown complete")


def create_app() -> FastAPI:
    """
    Application factory.

    Creates and configures the FastAPI application.
    """
    configure_logging()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        description="Power meter telemetry API - ingestion, energy rollups and alerts",
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        openapi_url="/openapi.json" if settings.debug else None,
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register exception handlers
    register_exception_handlers(app)

    # Register routes
    register_routes(app)

    return app


def register_exception_handlers(app: FastAPI) -> None:
    """Register global exception handlers."""

    from .domain.exceptions import (
        DomainException,
        ValidationException,
        TransientIOError,
        TransportNotConnected,
    )

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=exc.to_dict(),
        )

    @app.exception_handler(ValidationException)
    async def validation_handler(request: Request, exc: ValidationException):
        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=exc.to_dict(),
        )

    @app.exception_handler(TransportNotConnected)
    async def transport_handler(request: Request, exc: TransportNotConnected):
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=exc.to_dict(),
        )

    @app.exception_handler(TransientIOError)
    async def transient_io_handler(request: Request, exc: TransientIOError):
        logger.error(f"Transient I/O error: {exc.message}")
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=exc.to_dict(),
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled exception: {exc}")

        if settings.debug:
            return JSONResponse(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                content={
                    'error': 'INTERNAL_ERROR',
                    'message': str(exc),
                    'type': type(exc).__name__,
                },
            )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                'error': 'INTERNAL_ERROR',
                'message': 'An internal error occurred',
            },
        )


def register_routes(app: FastAPI) -> None:
    """Register API routes."""

    from fastapi import APIRouter

    from .api.v1 import api_router

    stats_router = APIRouter(prefix=f"{settings.api_prefix}/{settings.api_version}")

    @app.get("/health", tags=["Health"])
    async def health_check(request: Request):
        """Check application health."""
        from .infrastructure.database.connection import health_check as db_health

        db_ok = await db_health()
        manager = getattr(request.app.state, "worker_manager", None)
        workers = manager.get_health() if manager else None

        return {
            'status': 'healthy' if db_ok and workers and workers['healthy'] else 'unhealthy',
            'services': {
                'database': 'up' if db_ok else 'down',
                'workers': workers,
            },
            'version': settings.app_version,
            'environment': settings.environment,
        }

    @app.get("/", tags=["Root"])
    async def root():
        """Root endpoint."""
        return {
            'name': settings.app_name,
            'version': settings.app_version,
            'api_docs': '/docs' if settings.debug else None,
        }

    # Stats endpoint (for monitoring)
    @stats_router.get("/stats", tags=["Health"])
    async def get_stats(request: Request):
        """Get worker and buffer statistics."""
        manager = getattr(request.app.state, "worker_manager", None)
        if manager is None:
            return {'workers': None}
        return manager.get_stats()

    app.include_router(api_router)
    app.include_router(stats_router)


# Create application instance
app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "power_telemetry.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
    )
