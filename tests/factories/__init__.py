"""
Test data factories for the power telemetry tests.

Provides factory classes for generating test data.
"""
from .telemetry_factory import MeterPayloadFactory, IndonesianPayloadFactory, SampleFactory
from .energy_factory import HourlyRecordFactory, DailyRecordFactory, WeeklyRecordFactory

__all__ = [
    "MeterPayloadFactory",
    "IndonesianPayloadFactory",
    "SampleFactory",
    "HourlyRecordFactory",
    "DailyRecordFactory",
    "WeeklyRecordFactory",
]
