"""SMTP email transport.

``smtplib`` is blocking, so each send runs in a worker thread.
"""

from __future__ import annotations

import asyncio
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from typing import TYPE_CHECKING

import structlog

from src.core.exceptions import NotificationError

if TYPE_CHECKING:
    from src.core.config import Settings

logger: structlog.stdlib.BoundLogger = structlog.get_logger()


class EmailTransport:
    """Sends HTML email over STARTTLS SMTP with the configured account."""

    def __init__(self, settings: Settings) -> None:
        self._host = settings.smtp_host
        self._port = settings.smtp_port
        self._user = settings.smtp_user
        self._password = settings.smtp_password
        self._sender_name = settings.smtp_sender_name

    @property
    def is_configured(self) -> bool:
        return bool(self._user and self._password)

    def build_message(self, to: str, subject: str, html_body: str) -> EmailMessage:
        message = EmailMessage()
        message["From"] = formataddr((self._sender_name, self._user))
        message["To"] = to
        message["Subject"] = subject
        message.set_content("This message requires an HTML-capable mail client.")
        message.add_alternative(html_body, subtype="html")
        return message

    async def send(self, to: str, subject: str, html_body: str) -> None:
        if not self.is_configured:
            msg = "SMTP credentials are not configured"
            raise NotificationError(msg)

        message = self.build_message(to, subject, html_body)
        try:
            await asyncio.to_thread(self._deliver, message)
        except (smtplib.SMTPException, OSError) as exc:
            msg = f"SMTP delivery failed: {exc}"
            raise NotificationError(msg, details={"to": to}) from exc
        logger.info("email_sent", to=to)

    def _deliver(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self._host, self._port, timeout=15) as smtp:
            smtp.starttls()
            smtp.login(self._user, self._password)
            smtp.send_message(message)
