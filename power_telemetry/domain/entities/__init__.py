from .telemetry import Sample, AveragedSample, PAYLOAD_ALIASES
from .energy import (
    RollupTier,
    MonthlySource,
    HourlyRecord,
    DailyRecord,
    WeeklyRecord,
    MonthlyRecord,
    RollupResult,
)
from .alert import AlertType, AlertSeverity, EnergyAlert

__all__ = [
    "Sample",
    "AveragedSample",
    "PAYLOAD_ALIASES",
    "RollupTier",
    "MonthlySource",
    "HourlyRecord",
    "DailyRecord",
    "WeeklyRecord",
    "MonthlyRecord",
    "RollupResult",
    "AlertType",
    "AlertSeverity",
    "EnergyAlert",
]
