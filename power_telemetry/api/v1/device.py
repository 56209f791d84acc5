"""
Device control endpoints, published to the meter over MQTT.
"""
from fastapi import APIRouter, Depends

from ..dependencies import get_ingestion_service
from ..schemas import DeviceCommandResponse, PowerControlRequest
from ...application.services import IngestionService

router = APIRouter(prefix="/device", tags=["Device"])


@router.post("/power", response_model=DeviceCommandResponse)
async def power_control(
    request: PowerControlRequest,
    service: IngestionService = Depends(get_ingestion_service),
) -> DeviceCommandResponse:
    """Switch the metered load on or off."""
    service.publish_power_control(request.status)
    return DeviceCommandResponse(success=True, message=f"Power {request.status.upper()} command sent")


@router.post("/reboot", response_model=DeviceCommandResponse)
async def reboot(
    service: IngestionService = Depends(get_ingestion_service),
) -> DeviceCommandResponse:
    """Reboot the meter."""
    service.publish_reboot()
    return DeviceCommandResponse(success=True, message="Reboot command sent")
