"""
Telemetry API endpoints.

Manual ingestion, buffer inspection and the hourly tier.
"""
import logging
from typing import List

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_db_session, get_ingestion_service
from ..schemas import (
    AveragedSampleResponse,
    BufferStatusResponse,
    FlushResponse,
    HourlyRecordResponse,
    IngestResponse,
    SampleIngestRequest,
    SampleResponse,
)
from ...application.services import IngestionService
from ...infrastructure.database.repositories import HourlyEnergyRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/telemetry", tags=["Telemetry"])


@router.post(
    "/ingest",
    response_model=IngestResponse,
    status_code=status.HTTP_202_ACCEPTED,
    summary="Ingest one reading",
    description="Buffer a reading as if it had arrived over MQTT.",
)
async def ingest_sample(
    request: SampleIngestRequest,
    service: IngestionService = Depends(get_ingestion_service),
) -> IngestResponse:
    accepted = service.accept(request.model_dump(exclude_none=True))
    return IngestResponse(accepted=accepted, buffer_size=service.buffer.size())


@router.post(
    "/flush",
    response_model=FlushResponse,
    summary="Flush the buffer now",
)
async def flush_buffer(
    service: IngestionService = Depends(get_ingestion_service),
) -> FlushResponse:
    averaged = await service.flush_now()
    if averaged is None:
        return FlushResponse(flushed=False, message="Buffer empty, nothing flushed")

    return FlushResponse(
        flushed=True,
        averaged=AveragedSampleResponse.model_validate(averaged),
        message=f"Flushed {averaged.sample_count} samples",
    )


@router.get(
    "/buffer",
    response_model=BufferStatusResponse,
    summary="Buffer status",
)
async def get_buffer_status(
    include_samples: bool = Query(False, description="Include every buffered sample"),
    service: IngestionService = Depends(get_ingestion_service),
) -> BufferStatusResponse:
    buffer_status = service.get_buffer_status()
    samples = None
    if include_samples:
        samples = [SampleResponse.model_validate(s) for s in service.get_buffered_samples()]
    return BufferStatusResponse(**buffer_status, samples=samples)


@router.get(
    "/hourly",
    response_model=List[HourlyRecordResponse],
    summary="Recent hourly records",
)
async def list_hourly(
    limit: int = Query(100, ge=1, le=10000),
    session: AsyncSession = Depends(get_db_session),
) -> List[HourlyRecordResponse]:
    records = await HourlyEnergyRepository(session).list_recent(limit=limit)
    return [HourlyRecordResponse.model_validate(r) for r in records]
