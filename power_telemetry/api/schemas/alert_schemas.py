"""
Pydantic schemas for alert and device control endpoints.
"""
from datetime import date, datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel


class AlertResponse(BaseModel):
    id: int
    type: str
    severity: str
    message: str
    period: str
    year: int
    week: int
    value: float
    threshold: float
    peak_date: Optional[date] = None
    created_at: datetime


class AlertListResponse(BaseModel):
    total: int
    alerts: List[AlertResponse]


class AlertSummaryResponse(BaseModel):
    total: int
    critical: int
    warning: int
    info: int
    by_type: Dict[str, int]


class PowerControlRequest(BaseModel):
    status: Literal["on", "off"]


class DeviceCommandResponse(BaseModel):
    success: bool
    message: str
