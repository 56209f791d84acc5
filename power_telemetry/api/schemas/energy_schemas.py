"""
Pydantic schemas for rollup and energy tier endpoints.
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel

from ...domain.entities import MonthlySource


class RollupResultResponse(BaseModel):
    """Outcome of one rollup operation."""
    tier: str
    success: bool
    records_written: int
    records_failed: int
    periods: List[str]
    failed_periods: List[str]

    class Config:
        from_attributes = True


class RunAllResponse(BaseModel):
    """Outcome of daily, weekly and monthly rollups run in sequence."""
    success: bool
    results: List[RollupResultResponse]


class DailyRecordResponse(BaseModel):
    id: int
    date: date
    total_energy: float
    avg_energy: float
    max_energy: float
    min_energy: float
    hour_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class WeeklyRecordResponse(BaseModel):
    id: int
    year: int
    week: int
    week_start: date
    week_end: date
    total_energy: float
    avg_daily_energy: float
    peak_date: Optional[date] = None
    peak_energy: float
    day_count: int
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class MonthlyRecordResponse(BaseModel):
    id: int
    year: int
    month: int
    total_energy: float
    avg_daily_energy: float
    peak_date: Optional[date] = None
    peak_energy: float
    day_count: int
    source: MonthlySource
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class EnergyStatsResponse(BaseModel):
    """Row counts per tier and the span of the hourly tier."""
    hourly_count: int
    daily_count: int
    weekly_count: int
    monthly_count: int
    oldest_hourly: Optional[datetime] = None
    newest_hourly: Optional[datetime] = None


class ClearResponse(BaseModel):
    tier: str
    deleted: int
