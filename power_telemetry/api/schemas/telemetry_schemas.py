"""
Pydantic schemas for telemetry API endpoints.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class SampleIngestRequest(BaseModel):
    """
    One meter reading.

    Same shape as the MQTT payload; the meter's own key names
    (tegangan, arus, ...) are accepted as extra fields.
    """
    voltage: Optional[float] = None
    current: Optional[float] = None
    power_factor: Optional[float] = Field(default=None, ge=0, le=1)
    energy_kwh: Optional[float] = None
    frequency: Optional[float] = None
    power_watts: Optional[float] = None

    model_config = {"extra": "allow"}


class IngestResponse(BaseModel):
    """Response for sample ingestion."""
    accepted: bool
    buffer_size: int


class SampleResponse(BaseModel):
    """A buffered sample."""
    voltage: Optional[float] = None
    current: Optional[float] = None
    power_factor: Optional[float] = None
    energy_kwh: Optional[float] = None
    frequency: Optional[float] = None
    power_watts: Optional[float] = None
    captured_at: datetime

    class Config:
        from_attributes = True


class AveragedSampleResponse(BaseModel):
    """Mean of one flush window."""
    sample_count: int
    window_start: datetime
    window_end: datetime
    voltage: Optional[float] = None
    current: Optional[float] = None
    power_factor: Optional[float] = None
    energy_kwh: Optional[float] = None
    frequency: Optional[float] = None
    power_watts: Optional[float] = None

    class Config:
        from_attributes = True


class FlushResponse(BaseModel):
    """Response for a manual flush."""
    flushed: bool
    averaged: Optional[AveragedSampleResponse] = None
    message: str


class BufferStatusResponse(BaseModel):
    """Current buffer state."""
    size: int
    latest_sample: Optional[SampleResponse] = None
    mqtt_connected: bool
    samples: Optional[List[SampleResponse]] = None


class HourlyRecordResponse(BaseModel):
    """A stored hourly record."""
    id: int
    timestamp: datetime
    energy_kwh: float
    voltage: float
    current: float
    power_factor: float
    frequency: float
    sample_count: int

    class Config:
        from_attributes = True
