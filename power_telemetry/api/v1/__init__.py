"""
API Version 1 routes.

Includes telemetry ingestion, rollups, energy tiers, alerts and device control.
"""
from fastapi import APIRouter

from ...config import get_settings
from .telemetry import router as telemetry_router
from .rollups import router as rollups_router
from .energy import router as energy_router
from .alerts import router as alerts_router
from .device import router as device_router

settings = get_settings()

# Main API router that includes all sub-routers
api_router = APIRouter(prefix=f"{settings.api_prefix}/{settings.api_version}")

api_router.include_router(telemetry_router)
api_router.include_router(rollups_router)
api_router.include_router(energy_router)
api_router.include_router(alerts_router)
api_router.include_router(device_router)

__all__ = [
    "api_router",
    "telemetry_router",
    "rollups_router",
    "energy_router",
    "alerts_router",
    "device_router",
]
