"""
SQLAlchemy ORM models for the energy tiers.
"""
from ..connection import Base, metadata
from .energy_model import (
    HourlyEnergyModel,
    DailyEnergyModel,
    WeeklyEnergyModel,
    MonthlyEnergyModel,
)

__all__ = [
    # Base
    "Base",
    "metadata",
    # Models
    "HourlyEnergyModel",
    "DailyEnergyModel",
    "WeeklyEnergyModel",
    "MonthlyEnergyModel",
]
