"""
Repository for the daily, weekly and monthly energy tiers.

Every write is an upsert on the period key, so re-running a rollup
replaces the row instead of duplicating it.
"""
import logging
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Set, Tuple, Type

from sqlalchemy import select, delete, func, desc
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from ..connection import Base
from ..models.energy_model import (
    DailyEnergyModel,
    WeeklyEnergyModel,
    MonthlyEnergyModel,
)
from ....domain.entities import (
    DailyRecord,
    WeeklyRecord,
    MonthlyRecord,
    MonthlySource,
    RollupTier,
)
from ....domain.services.period_calculator import ensure_utc

logger = logging.getLogger(__name__)


class EnergyRollupRepository:
    """
    Repository for the aggregated energy tiers.

    Upserts use INSERT ... ON CONFLICT DO UPDATE on PostgreSQL and SQLite.
    created_at is kept from the first insert; updated_at is refreshed.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    # =========================================================================
    # Upserts
    # =========================================================================

    async def upsert_daily(self, record: DailyRecord) -> DailyRecord:
        values = {
            "date": record.date,
            "total_energy": record.total_energy,
            "avg_energy": record.avg_energy,
            "max_energy": record.max_energy,
            "min_energy": record.min_energy,
            "hour_count": record.hour_count,
        }
        await self._upsert(DailyEnergyModel, values, ["date"])
        stored = await self.get_daily(record.date)
        return stored

    async def upsert_weekly(self, record: WeeklyRecord) -> WeeklyRecord:
        values = {
            "year": record.year,
            "week": record.week,
            "week_start": record.week_start,
            "week_end": record.week_end,
            "total_energy": record.total_energy,
            "avg_daily_energy": record.avg_daily_energy,
            "peak_date": record.peak_date,
            "peak_energy": record.peak_energy,
            "day_count": record.day_count,
        }
        await self._upsert(WeeklyEnergyModel, values, ["year", "week"])
        return await self.get_weekly(record.year, record.week)

    async def upsert_monthly(self, record: MonthlyRecord) -> MonthlyRecord:
        values = {
            "year": record.year,
            "month": record.month,
            "total_energy": record.total_energy,
            "avg_daily_energy": record.avg_daily_energy,
            "peak_date": record.peak_date,
            "peak_energy": record.peak_energy,
            "day_count": record.day_count,
            "source": MonthlySource(record.source).value,
        }
        await self._upsert(MonthlyEnergyModel, values, ["year", "month"])
        return await self.get_monthly(record.year, record.month)

    async def _upsert(
        self,
        model: Type[Base],
        values: Dict[str, Any],
        index_elements: List[str],
    ) -> None:
        now = datetime.now(timezone.utc)
        insert = sqlite_insert if self._dialect_name() == "sqlite" else pg_insert

        stmt = insert(model).values(created_at=now, updated_at=now, **values)
        update_columns = [c for c in values if c not in index_elements]
        stmt = stmt.on_conflict_do_update(
            index_elements=index_elements,
            set_={
                **{c: getattr(stmt.excluded, c) for c in update_columns},
                "updated_at": stmt.excluded.updated_at,
            },
        )
        await self._session.execute(stmt)

    def _dialect_name(self) -> str:
        return self._session.get_bind().dialect.name

    # =========================================================================
    # Daily
    # =========================================================================

    async def get_daily(self, day: date) -> Optional[DailyRecord]:
        query = (
            select(DailyEnergyModel)
            .where(DailyEnergyModel.date == day)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(query)
        model = result.scalar_one_or_none()
        return self._daily_to_entity(model) if model else None

    async def get_daily_range(self, start: date, end: date) -> List[DailyRecord]:
        """Daily records with start <= date <= end, oldest first."""
        query = (
            select(DailyEnergyModel)
            .where(DailyEnergyModel.date >= start, DailyEnergyModel.date <= end)
            .order_by(DailyEnergyModel.date)
        )
        result = await self._session.execute(query)
        return [self._daily_to_entity(m) for m in result.scalars().all()]

    async def get_daily_dates(self) -> Set[date]:
        result = await self._session.execute(select(DailyEnergyModel.date))
        return set(result.scalars().all())

    async def list_daily(self, limit: Optional[int] = 30) -> List[DailyRecord]:
        """Newest first; limit=None returns every row."""
        query = select(DailyEnergyModel).order_by(desc(DailyEnergyModel.date))
        if limit is not None:
            query = query.limit(limit)
        result = await self._session.execute(query)
        return [self._daily_to_entity(m) for m in result.scalars().all()]

    # =========================================================================
    # Weekly
    # =========================================================================

    async def get_weekly(self, year: int, week: int) -> Optional[WeeklyRecord]:
        query = (
            select(WeeklyEnergyModel)
            .where(WeeklyEnergyModel.year == year, WeeklyEnergyModel.week == week)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(query)
        model = result.scalar_one_or_none()
        return self._weekly_to_entity(model) if model else None

    async def get_weekly_starting_between(self, start: date, end: date) -> List[WeeklyRecord]:
        """Weekly records whose Monday falls in [start, end], oldest first."""
        query = (
            select(WeeklyEnergyModel)
            .where(WeeklyEnergyModel.week_start >= start, WeeklyEnergyModel.week_start <= end)
            .order_by(WeeklyEnergyModel.week_start)
        )
        result = await self._session.execute(query)
        return [self._weekly_to_entity(m) for m in result.scalars().all()]

    async def get_weekly_keys(self) -> List[Tuple[int, int]]:
        """(year, week) of every stored weekly record, oldest first."""
        result = await self._session.execute(
            select(WeeklyEnergyModel.year, WeeklyEnergyModel.week)
            .order_by(WeeklyEnergyModel.year, WeeklyEnergyModel.week)
        )
        return [(row.year, row.week) for row in result.all()]

    async def list_weekly(self, limit: Optional[int] = 12) -> List[WeeklyRecord]:
        """Newest first; limit=None returns every row."""
        query = select(WeeklyEnergyModel).order_by(
            desc(WeeklyEnergyModel.year), desc(WeeklyEnergyModel.week)
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self._session.execute(query)
        return [self._weekly_to_entity(m) for m in result.scalars().all()]

    # =========================================================================
    # Monthly
    # =========================================================================

    async def get_monthly(self, year: int, month: int) -> Optional[MonthlyRecord]:
        query = (
            select(MonthlyEnergyModel)
            .where(MonthlyEnergyModel.year == year, MonthlyEnergyModel.month == month)
            .execution_options(populate_existing=True)
        )
        result = await self._session.execute(query)
        model = result.scalar_one_or_none()
        return self._monthly_to_entity(model) if model else None

    async def list_monthly(self, limit: Optional[int] = 12) -> List[MonthlyRecord]:
        """Newest first; limit=None returns every row."""
        query = select(MonthlyEnergyModel).order_by(
            desc(MonthlyEnergyModel.year), desc(MonthlyEnergyModel.month)
        )
        if limit is not None:
            query = query.limit(limit)
        result = await self._session.execute(query)
        return [self._monthly_to_entity(m) for m in result.scalars().all()]

    # =========================================================================
    # Maintenance
    # =========================================================================

    async def count(self, tier: RollupTier) -> int:
        model = self._model_for(tier)
        result = await self._session.execute(select(func.count()).select_from(model))
        return result.scalar_one()

    async def clear(self, tier: RollupTier) -> int:
        """Delete every row of one tier. Returns number of rows deleted."""
        model = self._model_for(tier)
        result = await self._session.execute(delete(model))
        logger.warning(f"Cleared {result.rowcount} {tier.value} records")
        return result.rowcount

    def _model_for(self, tier: RollupTier) -> Type[Base]:
        models = {
            RollupTier.DAILY: DailyEnergyModel,
            RollupTier.WEEKLY: WeeklyEnergyModel,
            RollupTier.MONTHLY: MonthlyEnergyModel,
        }
        if tier not in models:
            raise ValueError(f"Tier {tier.value} is not stored by this repository")
        return models[tier]

    # =========================================================================
    # Mapping
    # =========================================================================

    def _daily_to_entity(self, model: DailyEnergyModel) -> DailyRecord:
        """Convert SQLAlchemy model to domain entity."""
        return DailyRecord(
            id=model.id,
            date=model.date,
            total_energy=model.total_energy,
            avg_energy=model.avg_energy,
            max_energy=model.max_energy,
            min_energy=model.min_energy,
            hour_count=model.hour_count,
            created_at=_utc_or_none(model.created_at),
            updated_at=_utc_or_none(model.updated_at),
        )

    def _weekly_to_entity(self, model: WeeklyEnergyModel) -> WeeklyRecord:
        """Convert SQLAlchemy model to domain entity."""
        return WeeklyRecord(
            id=model.id,
            year=model.year,
            week=model.week,
            week_start=model.week_start,
            week_end=model.week_end,
            total_energy=model.total_energy,
            avg_daily_energy=model.avg_daily_energy,
            peak_date=model.peak_date,
            peak_energy=model.peak_energy,
            day_count=model.day_count,
            created_at=_utc_or_none(model.created_at),
            updated_at=_utc_or_none(model.updated_at),
        )

    def _monthly_to_entity(self, model: MonthlyEnergyModel) -> MonthlyRecord:
        """Convert SQLAlchemy model to domain entity."""
        return MonthlyRecord(
            id=model.id,
            year=model.year,
            month=model.month,
            total_energy=model.total_energy,
            avg_daily_energy=model.avg_daily_energy,
            peak_date=model.peak_date,
            peak_energy=model.peak_energy,
            day_count=model.day_count,
            source=MonthlySource(model.source),
            created_at=_utc_or_none(model.created_at),
            updated_at=_utc_or_none(model.updated_at),
        )


def _utc_or_none(value: Optional[datetime]) -> Optional[datetime]:
    return ensure_utc(value) if value else None
