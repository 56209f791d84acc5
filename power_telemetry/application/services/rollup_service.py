"""
Rollup Service - hourly -> daily -> weekly -> monthly aggregation.

Every operation follows the same shape: read the finer tier, group by
the coarser period key, compute total/avg/peak and upsert one row per
group. Each group is written in its own transaction so that one failing
period does not roll back the others.
"""
import logging
from collections import defaultdict
from datetime import date, timedelta
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from ...config import get_settings
from ...domain.entities import (
    DailyRecord,
    HourlyRecord,
    MonthlyRecord,
    MonthlySource,
    RollupResult,
    RollupTier,
    WeeklyRecord,
)
from ...domain.exceptions import InvalidPeriodError, TransientIOError
from ...domain.services import period_calculator as periods
from ...domain.value_objects import exact_sum, round_energy
from ...infrastructure.database.connection import SessionScope, get_db_session
from ...infrastructure.database.repositories import (
    EnergyRollupRepository,
    HourlyEnergyRepository,
)

logger = logging.getLogger(__name__)


# =============================================================================
# Aggregation
# =============================================================================

def _pick_peak(candidates: Iterable[Tuple[Optional[date], float]]) -> Tuple[Optional[date], float]:
    """Highest value wins; ties go to the earliest date."""
    peak_date: Optional[date] = None
    peak_value = 0.0
    for day, value in sorted(candidates, key=lambda c: (c[0] is None, c[0] or date.min)):
        if peak_date is None or value > peak_value:
            peak_date, peak_value = day, value
    return peak_date, peak_value


def build_daily(day: date, hourly: Sequence[HourlyRecord]) -> DailyRecord:
    energies = [h.energy_kwh or 0.0 for h in hourly]
    total = exact_sum(energies)
    return DailyRecord(
        date=day,
        total_energy=round_energy(total),
        avg_energy=round_energy(total / len(energies)),
        max_energy=round_energy(max(energies)),
        min_energy=round_energy(min(energies)),
        hour_count=len(energies),
    )


def build_weekly(year: int, week: int, daily: Sequence[DailyRecord]) -> WeeklyRecord:
    monday, sunday = periods.week_bounds(year, week)
    total = exact_sum(d.total_energy for d in daily)
    peak_date, peak_energy = _pick_peak((d.date, d.total_energy) for d in daily)
    return WeeklyRecord(
        year=year,
        week=week,
        week_start=monday,
        week_end=sunday,
        total_energy=round_energy(total),
        avg_daily_energy=round_energy(total / len(daily)),
        peak_date=peak_date,
        peak_energy=round_energy(peak_energy),
        day_count=len(daily),
    )


def build_monthly_from_daily(year: int, month: int, daily: Sequence[DailyRecord]) -> MonthlyRecord:
    total = exact_sum(d.total_energy for d in daily)
    peak_date, peak_energy = _pick_peak((d.date, d.total_energy) for d in daily)
    return MonthlyRecord(
        year=year,
        month=month,
        total_energy=round_energy(total),
        avg_daily_energy=round_energy(total / len(daily)),
        peak_date=peak_date,
        peak_energy=round_energy(peak_energy),
        day_count=len(daily),
        source=MonthlySource.DAILY,
    )


def build_monthly_from_weekly(year: int, month: int, weekly: Sequence[WeeklyRecord]) -> MonthlyRecord:
    """
    Monthly record from the weeks assigned to the month.

    The daily average divides by the days the weeks actually covered,
    not by the number of weeks.
    """
    total = exact_sum(w.total_energy for w in weekly)
    day_count = sum(w.day_count for w in weekly)
    peak_date, peak_energy = _pick_peak(
        (w.peak_date, w.peak_energy) for w in weekly if w.peak_date is not None
    )
    return MonthlyRecord(
        year=year,
        month=month,
        total_energy=round_energy(total),
        avg_daily_energy=round_energy(total / day_count) if day_count else 0.0,
        peak_date=peak_date,
        peak_energy=round_energy(peak_energy),
        day_count=day_count,
        source=MonthlySource.WEEKLY,
    )


# =============================================================================
# Service
# =============================================================================

class RollupService:
    """
    Runs the rollup cascade against the energy store.

    Reads that fail raise TransientIOError (the whole run is abandoned);
    a failing upsert only fails its own period and is reported through
    RollupResult.records_failed.
    """

    def __init__(
        self,
        session_scope: SessionScope = get_db_session,
        timezone_name: Optional[str] = None,
    ):
        self._session_scope = session_scope
        self._tz = timezone_name or get_settings().default_timezone

    @property
    def timezone_name(self) -> str:
        return self._tz

    # -------------------------------------------------------------------------
    # Hourly -> Daily
    # -------------------------------------------------------------------------

    async def rollup_daily(self, target_date: date) -> RollupResult:
        """Aggregate the hourly records of one local date."""
        return await self._rollup_daily_dates({target_date})

    async def rollup_daily_range(self, start: date, end: date) -> RollupResult:
        """Aggregate every local date in [start, end] that has hourly data."""
        if end < start:
            raise InvalidPeriodError(f"{start}..{end}", "end is before start")
        days = {start + timedelta(days=n) for n in range((end - start).days + 1)}
        return await self._rollup_daily_dates(days)

    async def rollup_daily_pending(self) -> RollupResult:
        """
        Aggregate every date that has hourly data but no daily record yet.
        """
        async def read(session):
            hourly_dates = await HourlyEnergyRepository(session).get_local_dates(self._tz)
            daily_dates = await EnergyRollupRepository(session).get_daily_dates()
            return hourly_dates - daily_dates

        pending = await self._read("pending daily dates", read)
        if not pending:
            logger.info("No pending daily rollups")
            return RollupResult(tier=RollupTier.DAILY)

        logger.info(f"Catching up {len(pending)} pending daily rollup(s)")
        return await self._rollup_daily_dates(pending)

    async def _rollup_daily_dates(self, days: Set[date]) -> RollupResult:
        result = RollupResult(tier=RollupTier.DAILY)
        if not days:
            return result

        start, _ = periods.local_day_bounds_utc(min(days), self._tz)
        _, end = periods.local_day_bounds_utc(max(days), self._tz)

        async def read(session):
            return await HourlyEnergyRepository(session).get_range(start, end)

        hourly = await self._read("hourly read", read)

        groups: Dict[date, List[HourlyRecord]] = defaultdict(list)
        for record in hourly:
            day = periods.to_local_date(record.timestamp, self._tz)
            if day in days:
                groups[day].append(record)

        if not groups:
            logger.debug(f"No hourly data for {min(days)}..{max(days)}")
            return result

        for day in sorted(groups):
            record = build_daily(day, groups[day])
            await self._write(result, day.isoformat(), lambda repo, r=record: repo.upsert_daily(r))

        self._log_result(result)
        return result

    # -------------------------------------------------------------------------
    # Daily -> Weekly
    # -------------------------------------------------------------------------

    async def rollup_weekly(self, year: int, week: int) -> RollupResult:
        """Aggregate the daily records of one ISO week."""
        periods.validate_week(year, week)
        result = RollupResult(tier=RollupTier.WEEKLY)
        await self._rollup_one_week(result, year, week)
        self._log_result(result)
        return result

    async def rollup_weekly_for_date(self, day: date) -> RollupResult:
        """Aggregate the ISO week containing `day`."""
        year, week = periods.iso_week_of(day)
        return await self.rollup_weekly(year, week)

    async def rollup_weekly_all(self) -> RollupResult:
        """Aggregate every ISO week that has daily records."""
        async def read(session):
            return await EnergyRollupRepository(session).get_daily_dates()

        days = await self._read("daily dates", read)
        result = RollupResult(tier=RollupTier.WEEKLY)
        for year, week in sorted({periods.iso_week_of(d) for d in days}):
            await self._rollup_one_week(result, year, week)

        self._log_result(result)
        return result

    async def _rollup_one_week(self, result: RollupResult, year: int, week: int) -> None:
        monday, sunday = periods.week_bounds(year, week)

        async def read(session):
            return await EnergyRollupRepository(session).get_daily_range(monday, sunday)

        daily = await self._read("daily read", read)
        if not daily:
            logger.debug(f"No daily data for {year}-W{week:02d}")
            return

        record = build_weekly(year, week, daily)
        await self._write(result, record.period_key, lambda repo: repo.upsert_weekly(record))

    # -------------------------------------------------------------------------
    # Daily / Weekly -> Monthly
    # -------------------------------------------------------------------------

    async def rollup_monthly(self, year: int, month: int) -> RollupResult:
        """Aggregate the daily records of one calendar month."""
        first, last = periods.month_bounds(year, month)
        result = RollupResult(tier=RollupTier.MONTHLY)

        async def read(session):
            return await EnergyRollupRepository(session).get_daily_range(first, last)

        daily = await self._read("daily read", read)
        if not daily:
            logger.debug(f"No daily data for {year}-{month:02d}")
            return result

        record = build_monthly_from_daily(year, month, daily)
        await self._write(result, record.period_key, lambda repo: repo.upsert_monthly(record))
        self._log_result(result)
        return result

    async def rollup_monthly_from_weekly(
        self,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> RollupResult:
        """
        Aggregate weekly records into the months their Mondays fall in.

        With no arguments every month that has weekly records is rebuilt;
        with only a year, every such month of that year. Weekly records
        must be current before this runs.
        """
        if month is not None and year is None:
            raise InvalidPeriodError(f"????-{month:02d}", "month given without year")
        if month is not None:
            periods.validate_month(year, month)
            months = [(year, month)]
        else:
            async def read(session):
                return await EnergyRollupRepository(session).get_weekly_keys()

            keys = await self._read("weekly keys", read)
            months = sorted({periods.month_of_week(y, w) for y, w in keys})
            if year is not None:
                months = [m for m in months if m[0] == year]

        result = RollupResult(tier=RollupTier.MONTHLY)
        for y, m in months:
            await self._rollup_month_from_weeks(result, y, m)

        self._log_result(result)
        return result

    async def _rollup_month_from_weeks(self, result: RollupResult, year: int, month: int) -> None:
        first, last = periods.month_bounds(year, month)

        async def read(session):
            return await EnergyRollupRepository(session).get_weekly_starting_between(first, last)

        weekly = [
            w for w in await self._read("weekly read", read)
            if periods.month_of_week(w.year, w.week) == (year, month)
        ]
        if not weekly:
            logger.debug(f"No weekly data for {year}-{month:02d}")
            return

        record = build_monthly_from_weekly(year, month, weekly)
        await self._write(result, record.period_key, lambda repo: repo.upsert_monthly(record))

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    async def _read(self, operation: str, reader):
        try:
            async with self._session_scope() as session:
                return await reader(session)
        except Exception as e:
            logger.error(f"Rollup {operation} failed: {e}")
            raise TransientIOError(operation, e) from e

    async def _write(self, result: RollupResult, period: str, writer) -> None:
        try:
            async with self._session_scope() as session:
                await writer(EnergyRollupRepository(session))
            result.record_written(period)
        except Exception as e:
            logger.error(f"{result.tier.value} rollup for {period} failed: {e}")
            result.record_failed(period)

    def _log_result(self, result: RollupResult) -> None:
        if result.records_failed:
            logger.warning(
                f"{result.tier.value} rollup: {result.records_written} written, "
                f"{result.records_failed} failed ({', '.join(result.failed_periods)})"
            )
        elif result.records_written:
            logger.info(
                f"{result.tier.value} rollup: {result.records_written} written "
                f"({', '.join(result.periods)})"
            )
