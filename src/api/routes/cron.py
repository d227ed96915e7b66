"""Scheduled update trigger.

GET and POST /cron/update-cases are equivalent: schedulers that can
only issue GETs and manual POST triggers both run one pipeline batch.
Both require the shared cron secret as a bearer token.
"""

import structlog
from fastapi import APIRouter, Depends

from src.api.dependencies import get_update_pipeline, verify_cron_secret
from src.models.responses import UpdateRunResponse
from src.services.tracking.pipeline import UpdatePipeline

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

router = APIRouter(prefix="/cron", tags=["cron"], dependencies=[Depends(verify_cron_secret)])


async def _run(pipeline: UpdatePipeline) -> UpdateRunResponse:
    summary = await pipeline.run()
    return UpdateRunResponse(
        cases_checked=summary.cases_checked,
        updates_found=summary.updates_found,
        error_count=summary.error_count,
        reminders_sent=summary.reminders_sent,
        unresolved=summary.unresolved,
        stopped_early=summary.stopped_early,
        duration_ms=summary.duration_ms,
    )


@router.get("/update-cases", response_model=UpdateRunResponse, summary="Run one update batch")
async def update_cases_get(
    pipeline: UpdatePipeline = Depends(get_update_pipeline),
) -> UpdateRunResponse:
    return await _run(pipeline)


@router.post("/update-cases", response_model=UpdateRunResponse, summary="Run one update batch")
async def update_cases_post(
    pipeline: UpdatePipeline = Depends(get_update_pipeline),
) -> UpdateRunResponse:
    return await _run(pipeline)
