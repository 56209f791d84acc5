"""
Unit tests for HourlyEnergyRepository and EnergyRollupRepository.

Run against in-memory SQLite; the upsert path uses the SQLite
ON CONFLICT dialect.
"""
import pytest
from datetime import date, datetime, timedelta, timezone

from power_telemetry.domain.entities import MonthlyRecord, MonthlySource, RollupTier
from power_telemetry.infrastructure.database.repositories import (
    EnergyRollupRepository,
    HourlyEnergyRepository,
    ScopedHourlyWriter,
)
from tests.factories import DailyRecordFactory, HourlyRecordFactory, WeeklyRecordFactory


BASE = datetime(2024, 3, 5, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def hourly_repo(db_session):
    return HourlyEnergyRepository(db_session)


@pytest.fixture
def rollup_repo(db_session):
    return EnergyRollupRepository(db_session)


class TestHourlyEnergyRepository:

    @pytest.mark.asyncio
    async def test_insert_returns_stored_record(self, hourly_repo):
        stored = await hourly_repo.insert(HourlyRecordFactory(timestamp=BASE, energy_kwh=0.0035))

        assert stored.id is not None
        assert stored.energy_kwh == 0.0035
        assert stored.timestamp == BASE
        assert stored.created_at is not None

    @pytest.mark.asyncio
    async def test_naive_timestamp_is_treated_as_utc(self, hourly_repo):
        await hourly_repo.insert(HourlyRecordFactory(timestamp=datetime(2024, 3, 5, 10, 0)))

        records = await hourly_repo.list_recent()

        assert records[0].timestamp == datetime(2024, 3, 5, 10, 0, tzinfo=timezone.utc)

    @pytest.mark.asyncio
    async def test_get_range_is_half_open(self, hourly_repo):
        for hour in range(4):
            await hourly_repo.insert(HourlyRecordFactory(timestamp=BASE + timedelta(hours=hour)))

        records = await hourly_repo.get_range(BASE + timedelta(hours=1), BASE + timedelta(hours=3))

        assert [r.timestamp for r in records] == [
            BASE + timedelta(hours=1),
            BASE + timedelta(hours=2),
        ]

    @pytest.mark.asyncio
    async def test_list_recent_newest_first(self, hourly_repo):
        for hour in range(5):
            await hourly_repo.insert(HourlyRecordFactory(timestamp=BASE + timedelta(hours=hour)))

        records = await hourly_repo.list_recent(limit=2)

        assert [r.timestamp.hour for r in records] == [4, 3]
        assert len(await hourly_repo.list_recent(limit=None)) == 5

    @pytest.mark.asyncio
    async def test_get_local_dates(self, hourly_repo):
        await hourly_repo.insert(HourlyRecordFactory(timestamp=datetime(2024, 3, 4, 16, tzinfo=timezone.utc)))
        await hourly_repo.insert(HourlyRecordFactory(timestamp=datetime(2024, 3, 4, 18, tzinfo=timezone.utc)))

        assert await hourly_repo.get_local_dates("UTC") == {date(2024, 3, 4)}
        assert await hourly_repo.get_local_dates("Asia/Jakarta") == {date(2024, 3, 4), date(2024, 3, 5)}

    @pytest.mark.asyncio
    async def test_count_time_range_and_clear(self, hourly_repo):
        assert await hourly_repo.get_time_range() == (None, None)

        for hour in range(3):
            await hourly_repo.insert(HourlyRecordFactory(timestamp=BASE + timedelta(hours=hour)))

        assert await hourly_repo.count() == 3
        assert await hourly_repo.get_time_range() == (BASE, BASE + timedelta(hours=2))

        assert await hourly_repo.clear() == 3
        assert await hourly_repo.count() == 0

    @pytest.mark.asyncio
    async def test_scoped_writer_commits(self, session_scope):
        writer = ScopedHourlyWriter(session_scope)

        stored = await writer.write(HourlyRecordFactory(timestamp=BASE))

        async with session_scope() as session:
            records = await HourlyEnergyRepository(session).list_recent()
        assert [r.id for r in records] == [stored.id]


class TestEnergyRollupRepository:

    @pytest.mark.asyncio
    async def test_upsert_daily_inserts_then_updates(self, rollup_repo):
        first = await rollup_repo.upsert_daily(DailyRecordFactory(date=date(2024, 3, 5), total_energy=10.0))
        second = await rollup_repo.upsert_daily(DailyRecordFactory(date=date(2024, 3, 5), total_energy=12.0))

        assert second.id == first.id
        assert second.total_energy == 12.0
        assert await rollup_repo.count(RollupTier.DAILY) == 1

    @pytest.mark.asyncio
    async def test_daily_range_and_dates(self, rollup_repo):
        for day in (3, 4, 5, 6):
            await rollup_repo.upsert_daily(DailyRecordFactory(date=date(2024, 3, day)))

        records = await rollup_repo.get_daily_range(date(2024, 3, 4), date(2024, 3, 5))

        assert [r.date for r in records] == [date(2024, 3, 4), date(2024, 3, 5)]
        assert await rollup_repo.get_daily_dates() == {date(2024, 3, d) for d in (3, 4, 5, 6)}
        assert [r.date.day for r in await rollup_repo.list_daily(limit=2)] == [6, 5]

    @pytest.mark.asyncio
    async def test_weekly_upsert_keys_and_listing(self, rollup_repo):
        for week in (11, 9, 10):
            await rollup_repo.upsert_weekly(WeeklyRecordFactory(year=2024, week=week))
        await rollup_repo.upsert_weekly(WeeklyRecordFactory(year=2024, week=10, total_energy=99.0))

        assert await rollup_repo.get_weekly_keys() == [(2024, 9), (2024, 10), (2024, 11)]
        assert (await rollup_repo.get_weekly(2024, 10)).total_energy == 99.0
        assert [w.week for w in await rollup_repo.list_weekly(limit=2)] == [11, 10]

    @pytest.mark.asyncio
    async def test_weekly_starting_between(self, rollup_repo):
        for week in (9, 10, 11):
            await rollup_repo.upsert_weekly(WeeklyRecordFactory(year=2024, week=week))

        records = await rollup_repo.get_weekly_starting_between(date(2024, 3, 1), date(2024, 3, 10))

        assert [r.week for r in records] == [10]

    @pytest.mark.asyncio
    async def test_monthly_round_trip_keeps_source(self, rollup_repo):
        stored = await rollup_repo.upsert_monthly(MonthlyRecord(
            year=2024,
            month=2,
            total_energy=300.0,
            avg_daily_energy=10.34,
            peak_date=date(2024, 2, 10),
            peak_energy=25.0,
            day_count=29,
            source=MonthlySource.WEEKLY,
        ))

        assert stored.source == MonthlySource.WEEKLY
        assert stored.peak_date == date(2024, 2, 10)
        assert stored.created_at is not None
        assert await rollup_repo.get_monthly(2024, 3) is None

    @pytest.mark.asyncio
    async def test_clear_one_tier(self, rollup_repo):
        await rollup_repo.upsert_daily(DailyRecordFactory(date=date(2024, 3, 5)))
        await rollup_repo.upsert_weekly(WeeklyRecordFactory(year=2024, week=10))

        assert await rollup_repo.clear(RollupTier.DAILY) == 1
        assert await rollup_repo.count(RollupTier.DAILY) == 0
        assert await rollup_repo.count(RollupTier.WEEKLY) == 1

    @pytest.mark.asyncio
    async def test_hourly_tier_is_not_handled(self, rollup_repo):
        with pytest.raises(ValueError):
            await rollup_repo.count(RollupTier.HOURLY)


class TestFixedPointColumns:
    """Test that stored quantities keep the column scale."""

    def test_column_scales(self):
        from power_telemetry.infrastructure.database.models import (
            DailyEnergyModel,
            HourlyEnergyModel,
        )

        hourly = HourlyEnergyModel.__table__.c
        assert hourly.energy_kwh.type.impl.scale == 4
        assert hourly.voltage.type.impl.scale == 2
        assert DailyEnergyModel.__table__.c.total_energy.type.impl.scale == 2

    @pytest.mark.asyncio
    async def test_values_are_quantized_half_up_and_read_as_float(self, session_scope):
        async with session_scope() as session:
            await HourlyEnergyRepository(session).insert(
                HourlyRecordFactory(timestamp=BASE, energy_kwh=0.00345, voltage=220.125)
            )
            await EnergyRollupRepository(session).upsert_daily(
                DailyRecordFactory(date=date(2024, 3, 5), total_energy=10.005)
            )

        async with session_scope() as session:
            hourly = await HourlyEnergyRepository(session).list_recent()
            daily = await EnergyRollupRepository(session).get_daily(date(2024, 3, 5))

        assert hourly[0].energy_kwh == 0.0035
        assert hourly[0].voltage == 220.13
        assert isinstance(hourly[0].energy_kwh, float)
        assert daily.total_energy == 10.01
