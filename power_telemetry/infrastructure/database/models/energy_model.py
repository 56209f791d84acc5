"""
SQLAlchemy models for the energy tiers.

hourly_energy is append-only; the other three tables hold one row per
period key and are written with upserts.
"""
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    Date,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.types import TypeDecorator
from sqlalchemy.orm import Mapped, mapped_column

from ..connection import Base
from ....domain.value_objects.precision import (
    ELECTRICAL_PLACES,
    ENERGY_PLACES,
    SUB_UNIT_PLACES,
    quantize,
)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class FixedPoint(TypeDecorator):
    """
    NUMERIC column that takes and returns floats.

    Bound values are quantized half-up to the column scale, so SQLite
    holds the same digits PostgreSQL would.
    """
    impl = Numeric
    cache_ok = True

    def __init__(self, precision: int, scale: int):
        super().__init__(precision=precision, scale=scale, asdecimal=False)
        self.precision = precision
        self.scale = scale

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        return quantize(value, self.scale)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return float(value)


Energy = FixedPoint(12, ENERGY_PLACES)
SubUnitEnergy = FixedPoint(12, SUB_UNIT_PLACES)
Electrical = FixedPoint(10, ELECTRICAL_PLACES)


# DailyEnergyModel.date shadows the type inside its class body
CalendarDate = date


class HourlyEnergyModel(Base):
    """
    One averaged flush window.
    """
    __tablename__ = "hourly_energy"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    energy_kwh: Mapped[float] = mapped_column(SubUnitEnergy, nullable=False, default=0.0)
    voltage: Mapped[float] = mapped_column(Electrical, nullable=False)
    current: Mapped[float] = mapped_column(Electrical, nullable=False)
    power_factor: Mapped[float] = mapped_column(Electrical, nullable=False)
    frequency: Mapped[float] = mapped_column(Electrical, nullable=False)
    sample_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)

    __table_args__ = (
        Index("idx_hourly_energy_timestamp", "timestamp"),
    )


class DailyEnergyModel(Base):
    """Daily aggregate keyed by local calendar date."""
    __tablename__ = "daily_energy"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    date: Mapped[CalendarDate] = mapped_column(Date, nullable=False)

    total_energy: Mapped[float] = mapped_column(Energy, nullable=False, default=0.0)
    avg_energy: Mapped[float] = mapped_column(Energy, nullable=False, default=0.0)
    max_energy: Mapped[float] = mapped_column(Energy, nullable=False, default=0.0)
    min_energy: Mapped[float] = mapped_column(Energy, nullable=False, default=0.0)
    hour_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("date"),
    )


class WeeklyEnergyModel(Base):
    """Weekly aggregate keyed by ISO year and week."""
    __tablename__ = "weekly_energy"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    week: Mapped[int] = mapped_column(Integer, nullable=False)
    week_start: Mapped[date] = mapped_column(Date, nullable=False)
    week_end: Mapped[date] = mapped_column(Date, nullable=False)

    total_energy: Mapped[float] = mapped_column(Energy, nullable=False, default=0.0)
    avg_daily_energy: Mapped[float] = mapped_column(Energy, nullable=False, default=0.0)
    peak_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    peak_energy: Mapped[float] = mapped_column(Energy, nullable=False, default=0.0)
    day_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("year", "week"),
    )


class MonthlyEnergyModel(Base):
    """Monthly aggregate keyed by calendar year and month."""
    __tablename__ = "monthly_energy"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    year: Mapped[int] = mapped_column(Integer, nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)

    total_energy: Mapped[float] = mapped_column(Energy, nullable=False, default=0.0)
    avg_daily_energy: Mapped[float] = mapped_column(Energy, nullable=False, default=0.0)
    peak_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)
    peak_energy: Mapped[float] = mapped_column(Energy, nullable=False, default=0.0)
    day_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    source: Mapped[str] = mapped_column(String(10), nullable=False, default="daily")

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        UniqueConstraint("year", "month"),
    )
