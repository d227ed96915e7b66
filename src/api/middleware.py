"""Request tracing middleware and structured exception handlers.

Every request gets an ID (the caller's X-Request-ID or a fresh UUID)
bound to structlog contextvars, so every log line a request produces
carries it, including those emitted deep inside a cron-triggered update
run. Latency is recorded per route template, not per raw path.
Exception handlers turn TrackerError subclasses into the JSON error
envelope. Stack traces never reach the client.
"""

import time
import uuid

import structlog
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from prometheus_client import Counter, Histogram
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.routing import Match

from src.core.exceptions import (
    DuplicateCaseError,
    NotFoundError,
    ProviderError,
    TrackerError,
    UnauthorizedError,
)

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

REQUEST_COUNT = Counter(
    "tracker_http_requests_total",
    "HTTP requests served by the tracker API",
    ["method", "route", "status_code"],
)
REQUEST_LATENCY = Histogram(
    "tracker_http_request_duration_seconds",
    "HTTP request latency in seconds",
    ["method", "route"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60),
)

# Probes hit these every few seconds; they are counted but not logged.
_QUIET_SUFFIXES = ("/health", "/metrics")


def _route_template(request: Request) -> str:
    for route in request.app.router.routes:
        match, _ = route.matches(request.scope)
        if match is Match.FULL:
            return getattr(route, "path", request.url.path)
    return "unmatched"


def _envelope(error: str, message: str, details: dict, request_id: str | None) -> dict:
    return {"error": error, "message": message, "details": details, "request_id": request_id}


class RequestTracingMiddleware(BaseHTTPMiddleware):
    """Assign a request ID, bind it to the log context, and time the request."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        path = request.url.path
        quiet = path.endswith(_QUIET_SUFFIXES)

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.perf_counter()
        if not quiet:
            logger.info("request_started", method=request.method, path=path)

        try:
            response = await call_next(request)
        except Exception:
            logger.exception("request_failed", method=request.method, path=path)
            response = JSONResponse(
                status_code=500,
                content=_envelope(
                    "internal_server_error", "An unexpected error occurred.", {}, request_id
                ),
            )

        duration = time.perf_counter() - start
        route = _route_template(request)
        REQUEST_COUNT.labels(
            method=request.method, route=route, status_code=response.status_code
        ).inc()
        REQUEST_LATENCY.labels(method=request.method, route=route).observe(duration)

        response.headers["X-Request-ID"] = request_id
        if not quiet:
            logger.info(
                "request_completed",
                method=request.method,
                path=path,
                status_code=response.status_code,
                duration_seconds=round(duration, 4),
            )
        return response


# ---------------------------------------------------------------------------
# Exception → JSON response handlers
# ---------------------------------------------------------------------------


def _request_id() -> str | None:
    """Pull the current request ID from structlog context, if bound."""
    ctx: dict[str, str] = structlog.contextvars.get_contextvars()
    return ctx.get("request_id")


def _error_response(status_code: int, error: str, exc: TrackerError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=_envelope(error, exc.message, exc.details, _request_id()),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Map the tracker's exception hierarchy onto HTTP status codes."""

    @app.exception_handler(UnauthorizedError)
    async def _unauthorized(request: Request, exc: UnauthorizedError) -> JSONResponse:
        logger.warning("unauthorized_request", path=str(request.url.path))
        return _error_response(401, "unauthorized", exc)

    @app.exception_handler(NotFoundError)
    async def _not_found(request: Request, exc: NotFoundError) -> JSONResponse:
        return _error_response(404, "not_found", exc)

    @app.exception_handler(DuplicateCaseError)
    async def _duplicate(request: Request, exc: DuplicateCaseError) -> JSONResponse:
        return _error_response(409, "duplicate_case", exc)

    @app.exception_handler(ProviderError)
    async def _upstream(request: Request, exc: ProviderError) -> JSONResponse:
        logger.warning("upstream_failure", error_type=type(exc).__name__, message=exc.message)
        return _error_response(502, "upstream_error", exc)

    @app.exception_handler(TrackerError)
    async def _tracker(request: Request, exc: TrackerError) -> JSONResponse:
        logger.error(
            "tracker_error",
            error_type=type(exc).__name__,
            message=exc.message,
            details=exc.details,
        )
        return _error_response(500, type(exc).__name__, exc)

    @app.exception_handler(Exception)
    async def _unhandled(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("unhandled_error", error_type=type(exc).__name__)
        return JSONResponse(
            status_code=500,
            content=_envelope(
                "internal_server_error", "An unexpected error occurred.", {}, _request_id()
            ),
        )
