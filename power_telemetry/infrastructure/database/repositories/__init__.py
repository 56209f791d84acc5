# Energy Repository Implementations

from .hourly_energy_repository import HourlyEnergyRepository, ScopedHourlyWriter
from .energy_rollup_repository import EnergyRollupRepository

__all__ = [
    "HourlyEnergyRepository",
    "ScopedHourlyWriter",
    "EnergyRollupRepository",
]
