"""FastAPI application factory and lifespan management.

create_app() builds the fully configured application: logging,
middleware, exception handlers, and routes. The lifespan context
manager owns the database engine and the service graph (providers,
resolution, pipeline, notifications) for the life of the process.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI

from src.api.dependencies import get_settings
from src.api.middleware import RequestTracingMiddleware, register_exception_handlers
from src.api.routes import api_router
from src.core.config import Settings
from src.core.logging import setup_logging
from src.db.session import create_engine, create_session_factory
from src.services.container import build_services

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

APP_VERSION = "0.1.0"


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown."""
    settings: Settings = app.state.settings
    logger.info(
        "application_starting",
        version=APP_VERSION,
        debug=settings.debug,
        search_policy=settings.search_policy.value,
    )

    engine = create_engine(settings)
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    app.state.services = build_services(settings, app.state.session_factory)

    yield

    logger.info("application_shutting_down")
    await app.state.services.close()
    await engine.dispose()


def create_app(settings: Settings | None = None) -> FastAPI:
    """Build and return a fully configured FastAPI application."""
    if settings is None:
        settings = get_settings()

    setup_logging(settings)

    app = FastAPI(
        title="Court Case Tracker",
        description="Tracks Indian court cases across official portals and alerts on changes",
        version=APP_VERSION,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None,
        lifespan=lifespan,
    )

    app.state.settings = settings

    app.add_middleware(RequestTracingMiddleware)

    register_exception_handlers(app)

    app.include_router(api_router, prefix=settings.api_prefix)

    return app
