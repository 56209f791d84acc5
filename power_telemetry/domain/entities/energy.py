"""
Energy tier entities.

Hourly records are written once per flush window; daily, weekly and
monthly records are derived from the tier below and upserted by period key.
"""
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class RollupTier(str, Enum):
    """Tiers of the rollup cascade."""
    HOURLY = "hourly"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class MonthlySource(str, Enum):
    """Which tier a monthly record was computed from."""
    DAILY = "daily"
    WEEKLY = "weekly"


@dataclass
class HourlyRecord:
    """One averaged flush window. Immutable once written."""
    timestamp: datetime
    energy_kwh: float
    voltage: float
    current: float
    power_factor: float
    frequency: float
    sample_count: int = 0
    id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass
class DailyRecord:
    """Aggregate of the hourly records of one local calendar date."""
    date: date
    total_energy: float
    avg_energy: float
    max_energy: float
    min_energy: float
    hour_count: int = 0
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class WeeklyRecord:
    """
    Aggregate of the daily records of one ISO-8601 week.

    peak_energy and day_count are kept so a monthly record built from
    weeks can still report the peak day and a per-day average.
    """
    year: int
    week: int
    week_start: date
    week_end: date
    total_energy: float
    avg_daily_energy: float
    peak_date: Optional[date]
    peak_energy: float = 0.0
    day_count: int = 0
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def period_key(self) -> str:
        return f"{self.year}-W{self.week:02d}"


@dataclass
class MonthlyRecord:
    """Aggregate of one calendar month, from daily or weekly records."""
    year: int
    month: int
    total_energy: float
    avg_daily_energy: float
    peak_date: Optional[date]
    peak_energy: float = 0.0
    day_count: int = 0
    source: MonthlySource = MonthlySource.DAILY
    id: Optional[int] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def period_key(self) -> str:
        return f"{self.year}-{self.month:02d}"


@dataclass
class RollupResult:
    """Outcome of one rollup operation."""
    tier: RollupTier
    records_written: int = 0
    records_failed: int = 0
    periods: List[str] = field(default_factory=list)
    failed_periods: List[str] = field(default_factory=list)

    @property
    def success(self) -> bool:
        return self.records_failed == 0

    def record_written(self, period: str) -> None:
        self.records_written += 1
        self.periods.append(period)

    def record_failed(self, period: str) -> None:
        self.records_failed += 1
        self.failed_periods.append(period)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tier": self.tier.value,
            "success": self.success,
            "records_written": self.records_written,
            "records_failed": self.records_failed,
            "periods": list(self.periods),
            "failed_periods": list(self.failed_periods),
        }
