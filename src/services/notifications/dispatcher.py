"""Fan a change event out to the user's enabled alert channels."""

from __future__ import annotations

from collections.abc import Awaitable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from src.core.exceptions import NotificationError
from src.models.domain import AlertChannel, ChangeEvent, DeliveryAttempt, DeliveryStatus
from src.services.notifications.formatters import (
    format_email_html,
    format_subject,
    format_telegram_message,
)

if TYPE_CHECKING:
    from src.services.notifications.email import EmailTransport
    from src.services.notifications.telegram import TelegramTransport
    from src.services.tracking.store import CaseStore

logger: structlog.stdlib.BoundLogger = structlog.get_logger()


@dataclass(frozen=True)
class NotificationContext:
    """The case an event belongs to, as the recipient should see it."""

    user_id: str
    case_id: str
    case_title: str
    court_name: str | None = None


class NotificationDispatcher:
    """Delivers events over Telegram and email and logs every attempt.

    A channel is used when the user enabled it and supplied its address.
    Each attempt is written to the alert log as sent or failed; a failing
    transport is recorded, never raised.
    """

    def __init__(
        self,
        store: CaseStore,
        telegram: TelegramTransport,
        email: EmailTransport,
    ) -> None:
        self._store = store
        self._telegram = telegram
        self._email = email

    async def dispatch(
        self, event: ChangeEvent, context: NotificationContext
    ) -> list[DeliveryAttempt]:
        profile = await self._store.get_profile(context.user_id)
        if profile is None:
            logger.warning("notification_profile_missing", user_id=context.user_id)
            return []

        subject = format_subject(context.case_title, event)
        attempts: list[DeliveryAttempt] = []

        if profile.telegram_alerts and profile.telegram_chat_id:
            message = format_telegram_message(context.case_title, event, context.court_name)
            attempt = await self._deliver(
                AlertChannel.TELEGRAM,
                subject,
                self._telegram.send(profile.telegram_chat_id, message),
            )
            await self._store.record_delivery(
                user_id=context.user_id, case_id=context.case_id, attempt=attempt, message=message
            )
            attempts.append(attempt)

        if profile.email_alerts and profile.email:
            html_body = format_email_html(context.case_title, event, context.court_name)
            attempt = await self._deliver(
                AlertChannel.EMAIL,
                subject,
                self._email.send(profile.email, subject, html_body),
            )
            await self._store.record_delivery(
                user_id=context.user_id, case_id=context.case_id, attempt=attempt, message=html_body
            )
            attempts.append(attempt)

        logger.info(
            "notification_dispatched",
            case_id=context.case_id,
            kind=event.kind.value,
            channels=[a.channel.value for a in attempts],
            failed=sum(1 for a in attempts if a.status is DeliveryStatus.FAILED),
        )
        return attempts

    async def _deliver(
        self, channel: AlertChannel, subject: str, send: Awaitable[None]
    ) -> DeliveryAttempt:
        try:
            await send
        except NotificationError as exc:
            logger.warning("notification_failed", channel=channel.value, error=exc.message)
            return DeliveryAttempt(
                channel=channel, status=DeliveryStatus.FAILED, subject=subject, error=exc.message
            )
        return DeliveryAttempt(channel=channel, status=DeliveryStatus.SENT, subject=subject)
