"""
Consumption alert entities derived from weekly records.

Alerts are computed on read and never stored.
"""
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional


class AlertType(str, Enum):
    HIGH_CONSUMPTION = "high_consumption"
    UNUSUAL_PATTERN = "unusual_pattern"
    PEAK_USAGE = "peak_usage"


class AlertSeverity(str, Enum):
    INFO = "info"
    WARNING = "warning"
    CRITICAL = "critical"


@dataclass
class EnergyAlert:
    """One flagged week."""
    id: int
    type: AlertType
    severity: AlertSeverity
    message: str
    year: int
    week: int
    value: float
    threshold: float
    peak_date: Optional[date] = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def period_key(self) -> str:
        return f"{self.year}-W{self.week:02d}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.value,
            "message": self.message,
            "period": self.period_key,
            "year": self.year,
            "week": self.week,
            "value": self.value,
            "threshold": self.threshold,
            "peak_date": self.peak_date.isoformat() if self.peak_date else None,
            "created_at": self.created_at.isoformat(),
        }
