"""Wiring for the long-lived service objects.

The API lifespan and the batch job both build exactly one of each
service here and pass them down explicitly. Nothing is a module global.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from src.services.captcha.solver import CaptchaSolver
from src.services.courts.aggregator import LegalAggregatorApiProvider
from src.services.courts.ecourts import EcourtsProvider
from src.services.courts.public_search import PublicCaseSearchProvider
from src.services.courts.resolution import CourtResolutionService
from src.services.courts.supreme_court import SupremeCourtProvider
from src.services.notifications.dispatcher import NotificationDispatcher
from src.services.notifications.email import EmailTransport
from src.services.notifications.telegram import TelegramTransport
from src.services.tracking.pipeline import UpdatePipeline
from src.services.tracking.store import SqlCaseStore
from src.services.tracking.tracker import CaseTracker

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from src.core.config import Settings


@dataclass
class TrackerServices:
    resolver: CourtResolutionService
    store: SqlCaseStore
    dispatcher: NotificationDispatcher
    pipeline: UpdatePipeline
    tracker: CaseTracker
    telegram: TelegramTransport

    async def close(self) -> None:
        await self.resolver.close()
        await self.telegram.close()


def build_services(
    settings: Settings,
    session_factory: async_sessionmaker[AsyncSession],
) -> TrackerServices:
    """Construct providers, resolution, persistence and notification services."""
    solver = CaptchaSolver(settings)
    resolver = CourtResolutionService(
        SupremeCourtProvider(settings, solver),
        EcourtsProvider(settings, solver),
        LegalAggregatorApiProvider(settings),
        PublicCaseSearchProvider(settings),
        policy=settings.search_policy,
    )
    store = SqlCaseStore(session_factory)
    telegram = TelegramTransport(settings)
    dispatcher = NotificationDispatcher(store, telegram, EmailTransport(settings))
    pipeline = UpdatePipeline(
        store=store,
        resolver=resolver,
        dispatcher=dispatcher,
        case_delay_seconds=settings.pipeline_case_delay_seconds,
        budget_seconds=settings.pipeline_budget_seconds,
        reminder_window_hours=settings.reminder_window_hours,
    )
    return TrackerServices(
        resolver=resolver,
        store=store,
        dispatcher=dispatcher,
        pipeline=pipeline,
        tracker=CaseTracker(store=store, resolver=resolver),
        telegram=telegram,
    )
