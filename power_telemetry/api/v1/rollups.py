"""
Rollup API endpoints.

On-demand triggers for the daily, weekly and monthly rollups. A result
with failed periods is returned with HTTP 207 and success=false.
"""
import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response, status

from ..dependencies import get_rollup_worker
from ..schemas import RollupResultResponse, RunAllResponse
from ...domain.entities import RollupResult
from ...workers.rollup_worker import RollupWorker

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/rollups", tags=["Rollups"])


def _respond(result: RollupResult, response: Response) -> RollupResultResponse:
    if not result.success:
        response.status_code = status.HTTP_207_MULTI_STATUS
    return RollupResultResponse(**result.to_dict())


@router.post(
    "/daily",
    response_model=RollupResultResponse,
    summary="Hourly to daily rollup",
    description="Aggregate one local date, yesterday by default.",
)
async def rollup_daily(
    response: Response,
    target_date: Optional[date] = Query(None, alias="date"),
    worker: RollupWorker = Depends(get_rollup_worker),
) -> RollupResultResponse:
    return _respond(await worker.run_daily_rollup(target_date), response)


@router.post(
    "/daily/pending",
    response_model=RollupResultResponse,
    summary="Catch up daily rollups",
    description="Aggregate every date with hourly data but no daily record.",
)
async def rollup_daily_pending(
    response: Response,
    worker: RollupWorker = Depends(get_rollup_worker),
) -> RollupResultResponse:
    return _respond(await worker.run_daily_pending(), response)


@router.post(
    "/weekly",
    response_model=RollupResultResponse,
    summary="Daily to weekly rollup",
    description="Aggregate one ISO week, last week by default.",
)
async def rollup_weekly(
    response: Response,
    year: Optional[int] = Query(None),
    week: Optional[int] = Query(None),
    worker: RollupWorker = Depends(get_rollup_worker),
) -> RollupResultResponse:
    return _respond(await worker.run_weekly_rollup(year, week), response)


@router.post(
    "/weekly/all",
    response_model=RollupResultResponse,
    summary="Rebuild every weekly record",
)
async def rollup_weekly_all(
    response: Response,
    worker: RollupWorker = Depends(get_rollup_worker),
) -> RollupResultResponse:
    return _respond(await worker.run_weekly_all(), response)


@router.post(
    "/monthly",
    response_model=RollupResultResponse,
    summary="Monthly rollup",
    description=(
        "From daily records (default: last month) or, with from_weekly=true, "
        "from weekly records (default: every month with weekly data)."
    ),
)
async def rollup_monthly(
    response: Response,
    from_weekly: bool = Query(False),
    year: Optional[int] = Query(None),
    month: Optional[int] = Query(None),
    worker: RollupWorker = Depends(get_rollup_worker),
) -> RollupResultResponse:
    result = await worker.run_monthly_rollup(from_weekly=from_weekly, year=year, month=month)
    return _respond(result, response)


@router.post(
    "/run-all",
    response_model=RunAllResponse,
    summary="Run daily, weekly and monthly rollups",
)
async def run_all(
    response: Response,
    worker: RollupWorker = Depends(get_rollup_worker),
) -> RunAllResponse:
    results = await worker.run_all()
    success = all(r.success for r in results)
    if not success:
        response.status_code = status.HTTP_207_MULTI_STATUS
    return RunAllResponse(
        success=success,
        results=[RollupResultResponse(**r.to_dict()) for r in results],
    )
