# Pydantic Schemas for the telemetry and energy API

from .telemetry_schemas import (
    SampleIngestRequest,
    IngestResponse,
    SampleResponse,
    AveragedSampleResponse,
    FlushResponse,
    BufferStatusResponse,
    HourlyRecordResponse,
)
from .energy_schemas import (
    RollupResultResponse,
    RunAllResponse,
    DailyRecordResponse,
    WeeklyRecordResponse,
    MonthlyRecordResponse,
    EnergyStatsResponse,
    ClearResponse,
)
from .alert_schemas import (
    AlertResponse,
    AlertListResponse,
    AlertSummaryResponse,
    PowerControlRequest,
    DeviceCommandResponse,
)

__all__ = [
    # Telemetry
    "SampleIngestRequest",
    "IngestResponse",
    "SampleResponse",
    "AveragedSampleResponse",
    "FlushResponse",
    "BufferStatusResponse",
    "HourlyRecordResponse",
    # Energy
    "RollupResultResponse",
    "RunAllResponse",
    "DailyRecordResponse",
    "WeeklyRecordResponse",
    "MonthlyRecordResponse",
    "EnergyStatsResponse",
    "ClearResponse",
    # Alerts / device
    "AlertResponse",
    "AlertListResponse",
    "AlertSummaryResponse",
    "PowerControlRequest",
    "DeviceCommandResponse",
]
