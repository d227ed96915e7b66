"""Completion callback from an external update runner."""

import structlog
from fastapi import APIRouter, Depends

from src.api.dependencies import verify_cron_secret
from src.models.requests import RunnerWebhookRequest
from src.models.responses import WebhookAckResponse

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

router = APIRouter(prefix="/webhook", tags=["cron"], dependencies=[Depends(verify_cron_secret)])


@router.post("", response_model=WebhookAckResponse, summary="Acknowledge a runner callback")
async def runner_webhook(request: RunnerWebhookRequest) -> WebhookAckResponse:
    logger.info("runner_webhook_received", event_name=request.event, summary=request.summary)
    return WebhookAckResponse(event=request.event)
