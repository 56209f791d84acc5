"""
Rollup scheduling worker.

Evaluates the daily, weekly and monthly rollup cadences on a fixed tick
and exposes the on-demand entry points used by the API.
"""
import asyncio
import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timezone
from typing import Any, Awaitable, Callable, Dict, Hashable, List, Optional
from zoneinfo import ZoneInfo

from ..application.services.rollup_service import RollupService
from ..config import RollupSettings
from ..domain.entities import RollupResult
from ..domain.exceptions import InvalidPeriodError, PartialBatchFailure
from ..domain.services import period_calculator as periods

logger = logging.getLogger(__name__)


def parse_clock(value: str) -> time:
    hour, _, minute = value.partition(":")
    return time(int(hour), int(minute))


@dataclass
class ScheduledJob:
    """
    A job that fires once per period after its time of day.

    `period_of` maps local "now" to the period key the job runs for, or
    None while the job is not yet due in the current period. A missed
    run (process down at the scheduled minute) fires on the next tick.
    """
    name: str
    period_of: Callable[[datetime], Optional[Hashable]]
    action: Callable[[date], Awaitable[Any]]


def daily_period(at: time) -> Callable[[datetime], Optional[Hashable]]:
    def period_of(now: datetime) -> Optional[Hashable]:
        if now.time() < at:
            return None
        return now.date()
    return period_of


def weekly_period(weekday: int, at: time) -> Callable[[datetime], Optional[Hashable]]:
    def period_of(now: datetime) -> Optional[Hashable]:
        today = now.date()
        if today.weekday() < weekday or (today.weekday() == weekday and now.time() < at):
            return None
        return periods.iso_week_of(today)
    return period_of


def monthly_period(day: int, at: time) -> Callable[[datetime], Optional[Hashable]]:
    def period_of(now: datetime) -> Optional[Hashable]:
        if now.day < day or (now.day == day and now.time() < at):
            return None
        return (now.year, now.month)
    return period_of


class RollupWorker:
    """
    Background worker for the rollup cascade.

    Scheduled jobs (evaluated in the configured timezone):
    - daily at 00:01: yesterday's hourly records -> daily
    - weekly on Monday at 00:05: last ISO week's daily records -> weekly
    - monthly on the 1st at 00:10: last month's daily (or weekly) records -> monthly

    Each job holds its own lock, so a tick never starts a job that is
    still running. The on-demand methods do not take the lock; a manual
    run racing a scheduled one is resolved by the store's upsert.
    """

    def __init__(
        self,
        rollup_service: RollupService,
        rollup_settings: Optional[RollupSettings] = None,
        timezone_name: Optional[str] = None,
    ):
        self._service = rollup_service
        self._settings = rollup_settings or RollupSettings()
        self._tz = timezone_name or rollup_service.timezone_name
        self.tick_interval = self._settings.tick_seconds

        self.jobs: Dict[str, ScheduledJob] = {
            "daily": ScheduledJob(
                name="daily",
                period_of=daily_period(parse_clock(self._settings.daily_at)),
                action=self._scheduled_daily,
            ),
            "weekly": ScheduledJob(
                name="weekly",
                period_of=weekly_period(
                    self._settings.weekly_weekday, parse_clock(self._settings.weekly_at)
                ),
                action=self._scheduled_weekly,
            ),
            "monthly": ScheduledJob(
                name="monthly",
                period_of=monthly_period(
                    self._settings.monthly_day, parse_clock(self._settings.monthly_at)
                ),
                action=self._scheduled_monthly,
            ),
        }
        self._locks: Dict[str, asyncio.Lock] = {name: asyncio.Lock() for name in self.jobs}
        self._last_periods: Dict[str, Hashable] = {}

        # State
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._shutdown_event = asyncio.Event()

        # Stats
        self._ticks = 0
        self._job_runs: Dict[str, int] = {name: 0 for name in self.jobs}
        self._job_failures: Dict[str, int] = {name: 0 for name in self.jobs}
        self._last_run_time: Optional[datetime] = None

    async def start(self) -> None:
        """Start the rollup worker."""
        if self._running:
            logger.warning("Rollup worker already running")
            return

        logger.info(f"Starting rollup worker (timezone {self._tz})")
        self._running = True
        self._shutdown_event.clear()

        self._task = asyncio.create_task(
            self._run_loop(),
            name="rollup_worker",
        )

    async def stop(self) -> None:
        """Stop the rollup worker."""
        if not self._running:
            return

        logger.info("Stopping rollup worker")
        self._running = False
        self._shutdown_event.set()

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

        logger.info(f"Rollup worker stopped. Job runs: {self._job_runs}")

    async def _run_loop(self) -> None:
        """Main scheduling loop."""
        logger.debug("Rollup worker loop started")

        while self._running:
            try:
                await self.tick()

                try:
                    await asyncio.wait_for(
                        self._shutdown_event.wait(),
                        timeout=self.tick_interval,
                    )
                    break  # Shutdown requested
                except asyncio.TimeoutError:
                    pass  # Normal timeout

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error(f"Error in rollup worker loop: {e}")
                await asyncio.sleep(self.tick_interval)

        logger.debug("Rollup worker loop ended")

    async def tick(self, now: Optional[datetime] = None) -> List[str]:
        """
        Run every job that is due.

        Returns:
            Names of the jobs that ran.
        """
        self._ticks += 1
        local_now = (now or datetime.now(timezone.utc)).astimezone(ZoneInfo(self._tz))

        ran = []
        for name, job in self.jobs.items():
            period = job.period_of(local_now)
            if period is None or self._last_periods.get(name) == period:
                continue
            if await self.run_job(name, local_now.date()):
                self._last_periods[name] = period
                ran.append(name)
        return ran

    async def run_job(self, name: str, today: date) -> bool:
        """
        Run one scheduled job unless it is already running.

        Returns:
            False if the job was skipped.
        """
        lock = self._locks[name]
        if lock.locked():
            logger.info(f"Rollup job '{name}' still running; skipping this tick")
            return False

        async with lock:
            self._last_run_time = datetime.now(timezone.utc)
            try:
                await self.jobs[name].action(today)
            except Exception as e:
                # Abandoned until the next period
                self._job_failures[name] += 1
                logger.error(f"Rollup job '{name}' failed: {e}")
            self._job_runs[name] += 1
        return True

    # =========================================================================
    # Scheduled actions
    # =========================================================================

    async def _scheduled_daily(self, today: date) -> RollupResult:
        return self._report(await self._service.rollup_daily(periods.yesterday(today)))

    async def _scheduled_weekly(self, today: date) -> RollupResult:
        year, week = periods.previous_iso_week(today)
        return self._report(await self._service.rollup_weekly(year, week))

    async def _scheduled_monthly(self, today: date) -> RollupResult:
        year, month = periods.previous_month(today)
        if self._settings.monthly_source == "weekly":
            result = await self._service.rollup_monthly_from_weekly(year, month)
        else:
            result = await self._service.rollup_monthly(year, month)
        return self._report(result)

    def _report(self, result: RollupResult) -> RollupResult:
        if result.records_failed:
            failure = PartialBatchFailure(result.tier.value, result.failed_periods)
            logger.error(failure.message)
        return result

    # =========================================================================
    # On-demand entry points
    # =========================================================================

    def _today(self) -> date:
        return periods.local_today(self._tz)

    async def run_daily_rollup(self, target_date: Optional[date] = None) -> RollupResult:
        """Daily rollup for `target_date`, default yesterday."""
        target_date = target_date or periods.yesterday(self._today())
        return self._report(await self._service.rollup_daily(target_date))

    async def run_daily_pending(self) -> RollupResult:
        return self._report(await self._service.rollup_daily_pending())

    async def run_weekly_rollup(
        self,
        year: Optional[int] = None,
        week: Optional[int] = None,
    ) -> RollupResult:
        """Weekly rollup for an ISO week, default last week."""
        if (year is None) != (week is None):
            raise InvalidPeriodError(f"{year}-W{week}", "year and week must be given together")
        if year is None:
            year, week = periods.previous_iso_week(self._today())
        return self._report(await self._service.rollup_weekly(year, week))

    async def run_weekly_all(self) -> RollupResult:
        return self._report(await self._service.rollup_weekly_all())

    async def run_monthly_rollup(
        self,
        from_weekly: bool = False,
        year: Optional[int] = None,
        month: Optional[int] = None,
    ) -> RollupResult:
        """
        Monthly rollup.

        From daily records the default period is last month. From weekly
        records no period means every month that has weekly records.
        """
        if from_weekly:
            return self._report(await self._service.rollup_monthly_from_weekly(year, month))

        if (year is None) != (month is None):
            raise InvalidPeriodError(f"{year}-{month}", "year and month must be given together")
        if year is None:
            year, month = periods.previous_month(self._today())
        return self._report(await self._service.rollup_monthly(year, month))

    async def run_all(self) -> List[RollupResult]:
        """Daily, weekly and monthly rollups for the previous periods, in order."""
        logger.info("Running all rollups")
        results = [
            await self.run_daily_rollup(),
            await self.run_weekly_rollup(),
            await self.run_monthly_rollup(),
        ]
        logger.info("All rollups completed")
        return results

    def get_stats(self) -> Dict[str, Any]:
        """Get worker statistics."""
        return {
            "running": self._running,
            "timezone": self._tz,
            "tick_seconds": self.tick_interval,
            "ticks": self._ticks,
            "job_runs": dict(self._job_runs),
            "job_failures": dict(self._job_failures),
            "last_periods": {k: str(v) for k, v in self._last_periods.items()},
            "last_run_time": self._last_run_time.isoformat() if self._last_run_time else None,
        }

    @property
    def is_running(self) -> bool:
        """Check if worker is running."""
        return self._running
