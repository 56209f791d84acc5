"""
Energy tier API endpoints.

Read access to the daily, weekly and monthly tiers, plus maintenance.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_app_settings, get_db_session
from ..schemas import (
    ClearResponse,
    DailyRecordResponse,
    EnergyStatsResponse,
    MonthlyRecordResponse,
    WeeklyRecordResponse,
)
from ...config import AppSettings
from ...domain.entities import RollupTier
from ...infrastructure.database.repositories import (
    EnergyRollupRepository,
    HourlyEnergyRepository,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/energy", tags=["Energy"])


@router.get("/daily", response_model=List[DailyRecordResponse])
async def list_daily(
    limit: int = Query(30, ge=1, le=3660),
    session: AsyncSession = Depends(get_db_session),
) -> List[DailyRecordResponse]:
    """Daily records, newest first."""
    records = await EnergyRollupRepository(session).list_daily(limit=limit)
    return [DailyRecordResponse.model_validate(r) for r in records]


@router.get("/weekly", response_model=List[WeeklyRecordResponse])
async def list_weekly(
    limit: int = Query(12, ge=1, le=520),
    session: AsyncSession = Depends(get_db_session),
) -> List[WeeklyRecordResponse]:
    """Weekly records, newest first."""
    records = await EnergyRollupRepository(session).list_weekly(limit=limit)
    return [WeeklyRecordResponse.model_validate(r) for r in records]


@router.get("/monthly", response_model=List[MonthlyRecordResponse])
async def list_monthly(
    limit: int = Query(12, ge=1, le=120),
    session: AsyncSession = Depends(get_db_session),
) -> List[MonthlyRecordResponse]:
    """Monthly records, newest first."""
    records = await EnergyRollupRepository(session).list_monthly(limit=limit)
    return [MonthlyRecordResponse.model_validate(r) for r in records]


@router.get("/stats", response_model=EnergyStatsResponse)
async def get_energy_stats(
    session: AsyncSession = Depends(get_db_session),
) -> EnergyStatsResponse:
    """Row counts per tier and the time span of the hourly tier."""
    hourly = HourlyEnergyRepository(session)
    rollups = EnergyRollupRepository(session)
    oldest, newest = await hourly.get_time_range()

    return EnergyStatsResponse(
        hourly_count=await hourly.count(),
        daily_count=await rollups.count(RollupTier.DAILY),
        weekly_count=await rollups.count(RollupTier.WEEKLY),
        monthly_count=await rollups.count(RollupTier.MONTHLY),
        oldest_hourly=oldest,
        newest_hourly=newest,
    )


@router.delete(
    "/{tier}",
    response_model=ClearResponse,
    summary="Clear one tier",
    description="Delete every row of a tier. Disabled in production.",
)
async def clear_tier(
    tier: RollupTier,
    session: AsyncSession = Depends(get_db_session),
    app_settings: AppSettings = Depends(get_app_settings),
) -> ClearResponse:
    if app_settings.is_production:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Clearing energy tiers is disabled in production",
        )

    if tier == RollupTier.HOURLY:
        deleted = await HourlyEnergyRepository(session).clear()
    else:
        deleted = await EnergyRollupRepository(session).clear(tier)
    return ClearResponse(tier=tier.value, deleted=deleted)
