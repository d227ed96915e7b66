"""FastAPI dependency injection providers.

Every external resource the API layer needs is accessed through a
Depends() callable defined here. Services are resolved from app.state,
which the lifespan populates at startup.
"""

import hmac
from functools import lru_cache

from fastapi import Depends, Header, Request
from sqlalchemy.ext.asyncio import AsyncEngine

from src.core.config import Settings
from src.core.exceptions import UnauthorizedError
from src.services.courts.resolution import CourtResolutionService
from src.services.tracking.pipeline import UpdatePipeline
from src.services.tracking.tracker import CaseTracker


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return the cached application settings singleton."""
    from src.core.config import Settings

    return Settings()


def get_settings_from_app(request: Request) -> Settings:
    """Retrieve settings stored on the running app instance.

    Preferred over the cached version inside route handlers since
    it respects the settings the app was actually started with
    (important for tests that override config).
    """
    settings: Settings = request.app.state.settings
    return settings


def get_engine(request: Request) -> AsyncEngine | None:
    """The app's database engine, or ``None`` before the lifespan has run."""
    return getattr(request.app.state, "engine", None)


def get_resolution_service(request: Request) -> CourtResolutionService:
    """Retrieve the shared resolution service from app state."""
    resolver: CourtResolutionService = request.app.state.services.resolver
    return resolver


def get_update_pipeline(request: Request) -> UpdatePipeline:
    pipeline: UpdatePipeline = request.app.state.services.pipeline
    return pipeline


def get_case_tracker(request: Request) -> CaseTracker:
    tracker: CaseTracker = request.app.state.services.tracker
    return tracker


def verify_cron_secret(
    authorization: str | None = Header(default=None),
    settings: Settings = Depends(get_settings_from_app),
) -> None:
    """Require ``Authorization: Bearer <cron_secret>`` exactly.

    An unset secret rejects every request rather than accepting any.
    """
    expected = f"Bearer {settings.cron_secret}"
    if not settings.cron_secret or not hmac.compare_digest(
        (authorization or "").encode(), expected.encode()
    ):
        msg = "Missing or invalid cron secret"
        raise UnauthorizedError(msg)
