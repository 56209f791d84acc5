"""
Alert API endpoints.
"""
from fastapi import APIRouter, Depends

from ..dependencies import get_alert_service
from ..schemas import AlertListResponse, AlertResponse, AlertSummaryResponse
from ...application.services import AlertService

router = APIRouter(prefix="/alerts", tags=["Alerts"])


@router.get("", response_model=AlertListResponse)
async def list_alerts(
    service: AlertService = Depends(get_alert_service),
) -> AlertListResponse:
    """Alerts computed from the most recent weekly records."""
    alerts = await service.generate_alerts()
    return AlertListResponse(
        total=len(alerts),
        alerts=[AlertResponse(**a.to_dict()) for a in alerts],
    )


@router.get("/summary", response_model=AlertSummaryResponse)
async def get_alert_summary(
    service: AlertService = Depends(get_alert_service),
) -> AlertSummaryResponse:
    """Alert counts by severity and type."""
    return AlertSummaryResponse(**await service.get_alert_summary())
