"""
Repository for the hourly energy tier.

Rows are appended by the flush worker and read back by the daily rollup.
"""
import logging
from datetime import date, datetime, timezone
from typing import List, Optional, Set, Tuple

from sqlalchemy import select, delete, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from ..connection import SessionScope, get_db_session
from ..models.energy_model import HourlyEnergyModel
from ....application.interfaces import HourlyRecordWriter
from ....domain.entities import HourlyRecord
from ....domain.services.period_calculator import ensure_utc, to_local_date

logger = logging.getLogger(__name__)


class HourlyEnergyRepository:
    """
    Repository for hourly energy records.
    """

    def __init__(self, session: AsyncSession):
        self._session = session

    async def insert(self, record: HourlyRecord) -> HourlyRecord:
        """
        Append one hourly record.

        Args:
            record: HourlyRecord to store.

        Returns:
            The stored record with id and created_at populated.
        """
        model = HourlyEnergyModel(
            timestamp=ensure_utc(record.timestamp),
            energy_kwh=record.energy_kwh,
            voltage=record.voltage,
            current=record.current,
            power_factor=record.power_factor,
            frequency=record.frequency,
            sample_count=record.sample_count,
            created_at=datetime.now(timezone.utc),
        )
        self._session.add(model)
        await self._session.flush()
        return self._model_to_entity(model)

    async def get_range(self, start: datetime, end: datetime) -> List[HourlyRecord]:
        """
        Records with start <= timestamp < end, oldest first.
        """
        query = (
            select(HourlyEnergyModel)
            .where(
                HourlyEnergyModel.timestamp >= ensure_utc(start),
                HourlyEnergyModel.timestamp < ensure_utc(end),
            )
            .order_by(HourlyEnergyModel.timestamp)
        )
        result = await self._session.execute(query)
        return [self._model_to_entity(m) for m in result.scalars().all()]

    async def list_recent(self, limit: Optional[int] = 100) -> List[HourlyRecord]:
        """Newest records first; limit=None returns every row."""
        query = select(HourlyEnergyModel).order_by(desc(HourlyEnergyModel.timestamp))
        if limit is not None:
            query = query.limit(limit)
        result = await self._session.execute(query)
        return [self._model_to_entity(m) for m in result.scalars().all()]

    async def get_local_dates(self, tz: str) -> Set[date]:
        """Local calendar dates that have at least one hourly record."""
        result = await self._session.execute(select(HourlyEnergyModel.timestamp))
        return {to_local_date(ts, tz) for ts in result.scalars().all()}

    async def count(self) -> int:
        result = await self._session.execute(
            select(func.count()).select_from(HourlyEnergyModel)
        )
        return result.scalar_one()

    async def get_time_range(self) -> Tuple[Optional[datetime], Optional[datetime]]:
        """Oldest and newest timestamp in the tier."""
        result = await self._session.execute(
            select(
                func.min(HourlyEnergyModel.timestamp),
                func.max(HourlyEnergyModel.timestamp),
            )
        )
        oldest, newest = result.one()
        return (
            ensure_utc(oldest) if oldest else None,
            ensure_utc(newest) if newest else None,
        )

    async def clear(self) -> int:
        """Delete every hourly record. Returns number of rows deleted."""
        result = await self._session.execute(delete(HourlyEnergyModel))
        logger.warning(f"Cleared {result.rowcount} hourly records")
        return result.rowcount

    def _model_to_entity(self, model: HourlyEnergyModel) -> HourlyRecord:
        """Convert SQLAlchemy model to domain entity."""
        return HourlyRecord(
            id=model.id,
            timestamp=ensure_utc(model.timestamp),
            energy_kwh=model.energy_kwh,
            voltage=model.voltage,
            current=model.current,
            power_factor=model.power_factor,
            frequency=model.frequency,
            sample_count=model.sample_count,
            created_at=ensure_utc(model.created_at) if model.created_at else None,
        )


class ScopedHourlyWriter(HourlyRecordWriter):
    """
    HourlyRecordWriter that commits each record in its own session.
    """

    def __init__(self, session_scope: SessionScope = get_db_session):
        self._session_scope = session_scope

    async def write(self, record: HourlyRecord) -> HourlyRecord:
        async with self._session_scope() as session:
            return await HourlyEnergyRepository(session).insert(record)
