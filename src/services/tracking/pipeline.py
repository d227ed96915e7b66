"""Batch update run over every active tracked case.

UpdatePipeline.run:
  1. reads active cases, least recently checked first
  2. per case: resolve, diff, save the snapshot, record events, notify
  3. stops taking new cases once the run budget is spent
  4. sends hearing reminders for cases heard within the reminder window

One case failing never stops the batch. Only failing to read the case
list at all is fatal.
"""

from __future__ import annotations

import asyncio
import re
import time
from collections.abc import Awaitable, Callable
from datetime import UTC, date, datetime, timedelta
from typing import TYPE_CHECKING

import structlog
from dateutil import parser as date_parser

from src.core.logging import bind_case_context, clear_case_context
from src.core.metrics import CASES_CHECKED, CHANGE_EVENTS
from src.models.domain import ChangeEvent, ChangeKind, DeliveryStatus, PipelineSummary
from src.services.notifications.dispatcher import NotificationContext
from src.services.tracking.change_detector import detect

if TYPE_CHECKING:
    from src.services.courts.resolution import CourtResolutionService
    from src.services.notifications.dispatcher import NotificationDispatcher
    from src.services.tracking.store import CaseStore, TrackedCase

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

_YEAR_FIRST_RE = re.compile(r"^\s*\d{4}[-/.]")


def parse_hearing_date(value: str | None) -> date | None:
    """Parse a court-published date. Day-first unless it starts with the year.

    Indian portals print ``15-03-2025`` or ``15 March 2025``; ISO dates
    from the aggregator start with the year.
    """
    if not value or not value.strip():
        return None
    try:
        parsed = date_parser.parse(value, dayfirst=not _YEAR_FIRST_RE.match(value))
    except (ValueError, OverflowError):
        return None
    return parsed.date()


def _utcnow() -> datetime:
    return datetime.now(UTC)


class UpdatePipeline:
    """One bounded pass over the tracked cases."""

    def __init__(
        self,
        *,
        store: CaseStore,
        resolver: CourtResolutionService,
        dispatcher: NotificationDispatcher,
        case_delay_seconds: float = 1.0,
        budget_seconds: float = 55.0,
        reminder_window_hours: int = 24,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = _utcnow,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._store = store
        self._resolver = resolver
        self._dispatcher = dispatcher
        self._case_delay = case_delay_seconds
        self._budget = budget_seconds
        self._reminder_window = timedelta(hours=reminder_window_hours)
        self._clock = clock
        self._now = now
        self._sleep = sleep

    async def run(self) -> PipelineSummary:
        """Run one batch and report what it did.

        Raises:
            DatabaseError: the active case list could not be read.
        """
        started = self._clock()
        cases = await self._store.list_active()
        logger.info("update_run_started", cases_total=len(cases))

        checked = 0
        updates = 0
        unresolved = 0
        errors = 0
        stopped_early = False

        for case in cases:
            if self._clock() - started > self._budget:
                stopped_early = True
                logger.warning(
                    "update_run_budget_exhausted",
                    cases_checked=checked,
                    cases_remaining=len(cases) - checked - errors,
                )
                break

            bind_case_context(case.id, case.identifier.court_category.value)
            try:
                events = await self._process_case(case)
                checked += 1
                CASES_CHECKED.inc()
                if events is None:
                    unresolved += 1
                else:
                    updates += len(events)
            except Exception:
                logger.exception("case_update_failed")
                errors += 1
            finally:
                clear_case_context()

            await self._sleep(self._case_delay)

        reminders, reminder_errors = await self._send_reminders()

        summary = PipelineSummary(
            cases_total=len(cases),
            cases_checked=checked,
            updates_found=updates,
            unresolved=unresolved,
            error_count=errors + reminder_errors,
            reminders_sent=reminders,
            stopped_early=stopped_early,
            duration_ms=int((self._clock() - started) * 1000),
        )
        logger.info("update_run_completed", **summary.model_dump())
        return summary

    async def _process_case(self, case: TrackedCase) -> list[ChangeEvent] | None:
        """Resolve and apply one case. ``None`` when no source could resolve it."""
        snapshot = await self._resolver.resolve_status(case.identifier)
        checked_at = self._now()

        if snapshot is None:
            logger.warning("case_unresolved_this_run", title=case.title)
            await self._store.mark_checked(case.id, checked_at)
            return None

        events = detect(case.state, snapshot)
        # Snapshot first: a later failure must not make the next run see
        # the same change again.
        await self._store.save_snapshot(
            case.id,
            snapshot,
            checked_at=checked_at,
            changed_at=checked_at if events else None,
        )

        context = NotificationContext(
            user_id=case.user_id,
            case_id=case.id,
            case_title=case.title,
            court_name=case.court_name,
        )
        for event in events:
            await self._store.append_event(case.id, event, details={"source": "update_run"})
            CHANGE_EVENTS.labels(kind=event.kind.value).inc()
            logger.info(
                "case_change_detected",
                kind=event.kind.value,
                old_value=event.old_value,
                new_value=event.new_value,
            )
            try:
                await self._dispatcher.dispatch(event, context)
            except Exception:
                logger.exception("case_notification_failed", kind=event.kind.value)
        return events

    async def _send_reminders(self) -> tuple[int, int]:
        """Remind users of hearings inside the window, once per case per day.

        Returns ``(reminders_sent, errors)``.
        """
        now = self._now()
        today = now.date()
        horizon = (now + self._reminder_window).date()
        start_of_day = datetime.combine(today, datetime.min.time(), tzinfo=now.tzinfo)

        try:
            cases = await self._store.list_active()
        except Exception:
            logger.exception("reminder_sweep_failed")
            return 0, 1

        sent = 0
        errors = 0
        for case in cases:
            hearing = parse_hearing_date(case.next_hearing_date)
            if hearing is None or not today <= hearing <= horizon:
                continue
            try:
                if await self._store.reminder_logged_since(case.id, start_of_day):
                    continue
                event = ChangeEvent(
                    field="next_hearing_date",
                    kind=ChangeKind.HEARING_REMINDER,
                    new_value=f"Hearing scheduled for {case.next_hearing_date}",
                )
                attempts = await self._dispatcher.dispatch(
                    event,
                    NotificationContext(
                        user_id=case.user_id,
                        case_id=case.id,
                        case_title=case.title,
                        court_name=case.court_name,
                    ),
                )
            except Exception:
                logger.exception("hearing_reminder_failed", case_id=case.id)
                errors += 1
                continue
            if any(a.status is DeliveryStatus.SENT for a in attempts):
                sent += 1
                CHANGE_EVENTS.labels(kind=ChangeKind.HEARING_REMINDER.value).inc()

        if sent:
            logger.info("hearing_reminders_sent", count=sent)
        return sent, errors
