"""Health check and Prometheus metrics endpoints.

/health probes PostgreSQL through the app's engine and reports whether
the optional integrations (CAPTCHA solver, aggregator, Telegram) are
configured. Missing credentials degrade the status; they never fail it.
"""

import time

import structlog
from fastapi import APIRouter, Depends
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy.ext.asyncio import AsyncEngine
from starlette.responses import Response

from src.api.dependencies import get_engine, get_settings_from_app
from src.core.config import Settings
from src.db.session import ping_database
from src.models.responses import DependencyHealth, HealthResponse

router = APIRouter(tags=["observability"])
logger: structlog.stdlib.BoundLogger = structlog.get_logger()

_APP_VERSION = "0.1.0"
_start_time: float = time.time()


# ---------------------------------------------------------------------------
# Dependency probes
# ---------------------------------------------------------------------------


async def _probe_postgres(engine: AsyncEngine | None) -> DependencyHealth:
    """Round-trip ``SELECT 1`` through the pool."""
    if engine is None:
        return DependencyHealth(
            name="postgresql", status="not_configured", details="engine not started"
        )
    start = time.perf_counter()
    try:
        await ping_database(engine)
    except Exception as exc:
        latency = (time.perf_counter() - start) * 1000
        return DependencyHealth(
            name="postgresql",
            status="unhealthy",
            latency_ms=round(latency, 2),
            details=str(exc)[:200],
        )
    latency = (time.perf_counter() - start) * 1000
    return DependencyHealth(name="postgresql", status="healthy", latency_ms=round(latency, 2))


def _credential_probe(name: str, configured: bool) -> DependencyHealth:
    return DependencyHealth(name=name, status="healthy" if configured else "not_configured")


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.get("/health", response_model=HealthResponse)
async def health_check(
    settings: Settings = Depends(get_settings_from_app),
    engine: AsyncEngine | None = Depends(get_engine),
) -> HealthResponse:
    """Check API and infrastructure dependency health."""
    solver_configured = (
        bool(settings.anthropic_api_key)
        if settings.captcha_solver_model.startswith("claude")
        else bool(settings.azure_openai_endpoint and settings.azure_openai_key)
    )
    dependencies = [
        await _probe_postgres(engine),
        _credential_probe("captcha_solver", solver_configured),
        _credential_probe("aggregator_api", bool(settings.aggregator_api_key)),
        _credential_probe("telegram", bool(settings.telegram_bot_token)),
    ]

    has_unhealthy = any(d.status == "unhealthy" for d in dependencies)
    all_healthy = all(d.status == "healthy" for d in dependencies)

    if all_healthy:
        status = "healthy"
    elif has_unhealthy:
        status = "unhealthy"
    else:
        status = "degraded"

    return HealthResponse(
        status=status,
        version=_APP_VERSION,
        uptime_seconds=round(time.time() - _start_time, 2),
        dependencies=dependencies,
    )


@router.get("/metrics")
async def metrics() -> Response:
    """Expose Prometheus metrics for scraping."""
    return Response(
        content=generate_latest(),
        media_type=CONTENT_TYPE_LATEST,
    )
