"""
Unit tests for RollupWorker.

Tests due-time evaluation, catch-up, per-job locking and the on-demand
entry points. The rollup service is mocked.
"""
import asyncio
import logging

import pytest
from datetime import date, datetime, timezone
from unittest.mock import AsyncMock

from power_telemetry.config import RollupSettings
from power_telemetry.domain.entities import RollupResult, RollupTier
from power_telemetry.domain.exceptions import InvalidPeriodError, TransientIOError
from power_telemetry.domain.services import period_calculator as periods
from power_telemetry.workers import RollupWorker
from power_telemetry.workers.rollup_worker import parse_clock


def utc(*args) -> datetime:
    return datetime(*args, tzinfo=timezone.utc)


@pytest.fixture
def mock_rollup_service():
    """Create a mock rollup service."""
    service = AsyncMock()
    service.timezone_name = "UTC"
    service.rollup_daily = AsyncMock(return_value=RollupResult(tier=RollupTier.DAILY))
    service.rollup_daily_pending = AsyncMock(return_value=RollupResult(tier=RollupTier.DAILY))
    service.rollup_weekly = AsyncMock(return_value=RollupResult(tier=RollupTier.WEEKLY))
    service.rollup_weekly_all = AsyncMock(return_value=RollupResult(tier=RollupTier.WEEKLY))
    service.rollup_monthly = AsyncMock(return_value=RollupResult(tier=RollupTier.MONTHLY))
    service.rollup_monthly_from_weekly = AsyncMock(return_value=RollupResult(tier=RollupTier.MONTHLY))
    return service


@pytest.fixture
def worker(mock_rollup_service):
    return RollupWorker(mock_rollup_service, RollupSettings(), timezone_name="UTC")


class TestParseClock:

    def test_parse(self):
        assert parse_clock("00:05").hour == 0
        assert parse_clock("23:59").minute == 59


class TestSchedule:
    """Test which jobs a tick runs."""

    @pytest.mark.asyncio
    async def test_first_tick_catches_up_on_every_job(self, worker, mock_rollup_service):
        ran = await worker.tick(utc(2024, 3, 5, 12, 0))

        assert ran == ["daily", "weekly", "monthly"]
        mock_rollup_service.rollup_daily.assert_awaited_once_with(date(2024, 3, 4))
        mock_rollup_service.rollup_weekly.assert_awaited_once_with(2024, 9)
        mock_rollup_service.rollup_monthly.assert_awaited_once_with(2024, 2)

    @pytest.mark.asyncio
    async def test_each_job_runs_once_per_period(self, worker, mock_rollup_service):
        await worker.tick(utc(2024, 3, 5, 12, 0))

        assert await worker.tick(utc(2024, 3, 5, 12, 1)) == []
        assert await worker.tick(utc(2024, 3, 6, 0, 0)) == []
        assert await worker.tick(utc(2024, 3, 6, 0, 1)) == ["daily"]
        assert mock_rollup_service.rollup_daily.await_count == 2

    @pytest.mark.asyncio
    async def test_weekly_waits_for_its_time_on_monday(self, worker, mock_rollup_service):
        ran = await worker.tick(utc(2024, 3, 4, 0, 3))
        assert "weekly" not in ran

        assert await worker.tick(utc(2024, 3, 4, 0, 5)) == ["weekly"]
        mock_rollup_service.rollup_weekly.assert_awaited_once_with(2024, 9)

    @pytest.mark.asyncio
    async def test_monthly_waits_for_its_time_on_the_first(self, worker, mock_rollup_service):
        ran = await worker.tick(utc(2024, 4, 1, 0, 9))
        assert "monthly" not in ran

        assert "monthly" in await worker.tick(utc(2024, 4, 1, 0, 10))
        mock_rollup_service.rollup_monthly.assert_awaited_once_with(2024, 3)

    @pytest.mark.asyncio
    async def test_monthly_from_weekly_source(self, mock_rollup_service):
        worker = RollupWorker(
            mock_rollup_service, RollupSettings(monthly_source="weekly"), timezone_name="UTC"
        )

        await worker.tick(utc(2024, 3, 5, 12, 0))

        mock_rollup_service.rollup_monthly_from_weekly.assert_awaited_once_with(2024, 2)
        mock_rollup_service.rollup_monthly.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_schedule_uses_local_time(self, mock_rollup_service):
        worker = RollupWorker(mock_rollup_service, RollupSettings(), timezone_name="Asia/Jakarta")

        # 00:30 on the 5th in Jakarta
        await worker.tick(utc(2024, 3, 4, 17, 30))

        mock_rollup_service.rollup_daily.assert_awaited_once_with(date(2024, 3, 4))

    @pytest.mark.asyncio
    async def test_failed_job_waits_for_next_period(self, worker, mock_rollup_service):
        mock_rollup_service.rollup_daily.side_effect = TransientIOError("hourly read")

        ran = await worker.tick(utc(2024, 3, 5, 12, 0))

        assert "daily" in ran
        assert worker.get_stats()["job_failures"]["daily"] == 1
        assert await worker.tick(utc(2024, 3, 5, 13, 0)) == []

    @pytest.mark.asyncio
    async def test_partial_failure_is_logged(self, worker, mock_rollup_service, caplog):
        result = RollupResult(tier=RollupTier.DAILY)
        result.record_failed("2024-03-04")
        mock_rollup_service.rollup_daily.return_value = result

        with caplog.at_level(logging.ERROR):
            await worker.tick(utc(2024, 3, 5, 12, 0))

        assert any("daily rollup: 1 period(s) failed" in r.message for r in caplog.records)


class TestLocking:

    @pytest.mark.asyncio
    async def test_running_job_is_skipped(self, worker, mock_rollup_service):
        async with worker._locks["daily"]:
            assert await worker.run_job("daily", date(2024, 3, 5)) is False
            ran = await worker.tick(utc(2024, 3, 5, 12, 0))

        assert "daily" not in ran
        mock_rollup_service.rollup_daily.assert_not_awaited()

        # Not marked as done, so the next tick picks it up
        assert await worker.tick(utc(2024, 3, 5, 12, 1)) == ["daily"]

    @pytest.mark.asyncio
    async def test_overlapping_ticks_run_a_job_once(self, worker, mock_rollup_service):
        release = asyncio.Event()

        async def slow_daily(target_date):
            await release.wait()
            return RollupResult(tier=RollupTier.DAILY)

        mock_rollup_service.rollup_daily.side_effect = slow_daily

        first = asyncio.create_task(worker.run_job("daily", date(2024, 3, 5)))
        await asyncio.sleep(0)
        second = await worker.run_job("daily", date(2024, 3, 5))
        release.set()

        assert await first is True
        assert second is False
        assert mock_rollup_service.rollup_daily.await_count == 1


class TestOnDemand:

    @pytest.mark.asyncio
    async def test_daily_for_explicit_date(self, worker, mock_rollup_service):
        await worker.run_daily_rollup(date(2024, 3, 5))
        mock_rollup_service.rollup_daily.assert_awaited_once_with(date(2024, 3, 5))

    @pytest.mark.asyncio
    async def test_daily_defaults_to_yesterday(self, worker, mock_rollup_service):
        await worker.run_daily_rollup()
        expected = periods.yesterday(periods.local_today("UTC"))
        mock_rollup_service.rollup_daily.assert_awaited_once_with(expected)

    @pytest.mark.asyncio
    async def test_pending(self, worker, mock_rollup_service):
        await worker.run_daily_pending()
        mock_rollup_service.rollup_daily_pending.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_weekly_explicit(self, worker, mock_rollup_service):
        await worker.run_weekly_rollup(2024, 10)
        mock_rollup_service.rollup_weekly.assert_awaited_once_with(2024, 10)

    @pytest.mark.asyncio
    async def test_weekly_needs_both_year_and_week(self, worker):
        with pytest.raises(InvalidPeriodError):
            await worker.run_weekly_rollup(year=2024)

    @pytest.mark.asyncio
    async def test_weekly_all(self, worker, mock_rollup_service):
        await worker.run_weekly_all()
        mock_rollup_service.rollup_weekly_all.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_monthly_from_weekly_without_period(self, worker, mock_rollup_service):
        await worker.run_monthly_rollup(from_weekly=True)
        mock_rollup_service.rollup_monthly_from_weekly.assert_awaited_once_with(None, None)

    @pytest.mark.asyncio
    async def test_monthly_explicit(self, worker, mock_rollup_service):
        await worker.run_monthly_rollup(year=2024, month=2)
        mock_rollup_service.rollup_monthly.assert_awaited_once_with(2024, 2)

    @pytest.mark.asyncio
    async def test_monthly_needs_both_year_and_month(self, worker):
        with pytest.raises(InvalidPeriodError):
            await worker.run_monthly_rollup(month=2)

    @pytest.mark.asyncio
    async def test_on_demand_ignores_job_lock(self, worker, mock_rollup_service):
        async with worker._locks["daily"]:
            await worker.run_daily_rollup(date(2024, 3, 5))
        mock_rollup_service.rollup_daily.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_run_all_in_order(self, worker, mock_rollup_service):
        results = await worker.run_all()

        assert [r.tier for r in results] == [RollupTier.DAILY, RollupTier.WEEKLY, RollupTier.MONTHLY]


class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_and_stop(self, mock_rollup_service):
        worker = RollupWorker(
            mock_rollup_service, RollupSettings(tick_seconds=3600), timezone_name="UTC"
        )

        await worker.start()
        await asyncio.sleep(0.05)
        assert worker.is_running

        await worker.stop()

        assert not worker.is_running
        assert worker.get_stats()["ticks"] == 1
