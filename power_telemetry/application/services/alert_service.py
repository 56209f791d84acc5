"""
Alert Service - threshold checks over recent weekly consumption.

Pure read: nothing is written back to the store.
"""
import logging
from typing import Any, Dict, List, Optional

from ...config import AlertSettings, get_settings
from ...domain.entities import (
    AlertSeverity,
    AlertType,
    EnergyAlert,
    WeeklyRecord,
)
from ...domain.exceptions import TransientIOError
from ...domain.value_objects import exact_sum, round_energy
from ...infrastructure.database.connection import SessionScope, get_db_session
from ...infrastructure.database.repositories import EnergyRollupRepository

logger = logging.getLogger(__name__)


class AlertService:
    """
    Flags weeks whose consumption strays from the recent average.

    The average is taken over the last `lookback_weeks` weekly records.
    A week can trip several checks at once. When none trips, the highest
    and lowest weeks are reported at info severity so there is always
    something to show.
    """

    def __init__(
        self,
        session_scope: SessionScope = get_db_session,
        alert_settings: Optional[AlertSettings] = None,
    ):
        self._session_scope = session_scope
        self._settings = alert_settings or get_settings().alerts

    async def get_recent_weeks(self) -> List[WeeklyRecord]:
        """Most recent weeks, oldest first."""
        try:
            async with self._session_scope() as session:
                repo = EnergyRollupRepository(session)
                weeks = await repo.list_weekly(limit=self._settings.lookback_weeks)
        except Exception as e:
            raise TransientIOError("weekly read", e) from e
        return list(reversed(weeks))

    async def generate_alerts(self) -> List[EnergyAlert]:
        weeks = await self.get_recent_weeks()
        if not weeks:
            logger.warning("No weekly data found; no alerts generated")
            return []
        alerts = evaluate_weeks(weeks, self._settings)
        logger.info(f"Generated {len(alerts)} alert(s) from {len(weeks)} week(s)")
        return alerts

    async def get_alert_summary(self) -> Dict[str, Any]:
        alerts = await self.generate_alerts()
        return summarize(alerts)


def evaluate_weeks(weeks: List[WeeklyRecord], alert_settings: AlertSettings) -> List[EnergyAlert]:
    """
    Run the threshold checks over a window of weeks (oldest first).
    """
    average = float(exact_sum(w.total_energy for w in weeks) / len(weeks))
    high_threshold = average * alert_settings.high_multiplier
    low_threshold = average * alert_settings.low_multiplier
    daily_threshold = (average / 7) * alert_settings.daily_multiplier

    logger.debug(
        f"Average weekly consumption {average:.2f} kWh "
        f"(high>{high_threshold:.2f}, low<{low_threshold:.2f}, daily>{daily_threshold:.2f})"
    )

    alerts: List[EnergyAlert] = []

    def add(week: WeeklyRecord, alert_type: AlertType, severity: AlertSeverity,
            message: str, value: float, threshold: float) -> None:
        alerts.append(EnergyAlert(
            id=len(alerts) + 1,
            type=alert_type,
            severity=severity,
            message=f"Week {week.week}, {week.year}: {message}",
            year=week.year,
            week=week.week,
            value=value,
            threshold=round_energy(threshold),
            peak_date=week.peak_date,
        ))

    for week in weeks:
        energy = week.total_energy
        if energy > high_threshold:
            add(week, AlertType.HIGH_CONSUMPTION, AlertSeverity.WARNING,
                f"high consumption {energy:.2f} kWh (average {average:.2f} kWh)",
                energy, high_threshold)

        if 0 < energy < low_threshold:
            add(week, AlertType.UNUSUAL_PATTERN, AlertSeverity.INFO,
                f"unusually low consumption {energy:.2f} kWh",
                energy, low_threshold)

        if week.avg_daily_energy > daily_threshold:
            add(week, AlertType.PEAK_USAGE, AlertSeverity.CRITICAL,
                f"daily usage {week.avg_daily_energy:.2f} kWh/day "
                f"(threshold {daily_threshold:.2f} kWh)",
                week.avg_daily_energy, daily_threshold)

    if not alerts:
        # First occurrence wins on equal totals
        highest = weeks[0]
        lowest = weeks[0]
        for week in weeks[1:]:
            if week.total_energy > highest.total_energy:
                highest = week
            if week.total_energy < lowest.total_energy:
                lowest = week

        add(highest, AlertType.HIGH_CONSUMPTION, AlertSeverity.INFO,
            f"highest consumption {highest.total_energy:.2f} kWh "
            f"in the last {len(weeks)} weeks",
            highest.total_energy, average)
        add(lowest, AlertType.UNUSUAL_PATTERN, AlertSeverity.INFO,
            f"lowest consumption {lowest.total_energy:.2f} kWh "
            f"in the last {len(weeks)} weeks",
            lowest.total_energy, average)

    return alerts


def summarize(alerts: List[EnergyAlert]) -> Dict[str, Any]:
    """Counts by severity and by type."""
    summary: Dict[str, Any] = {"total": len(alerts)}
    for severity in AlertSeverity:
        summary[severity.value] = sum(1 for a in alerts if a.severity == severity)
    summary["by_type"] = {
        alert_type.value: sum(1 for a in alerts if a.type == alert_type)
        for alert_type in AlertType
    }
    return summary
