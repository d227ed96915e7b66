"""Telegram Bot API transport."""

from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import structlog

from src.core.exceptions import NotificationError

if TYPE_CHECKING:
    from src.core.config import Settings

logger: structlog.stdlib.BoundLogger = structlog.get_logger()


class TelegramTransport:
    """Sends HTML messages through ``sendMessage``.

    Raises ``NotificationError`` on any failure, including a 200 reply
    whose ``ok`` flag is false.
    """

    def __init__(
        self,
        settings: Settings,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._token = settings.telegram_bot_token
        self._api_url = settings.telegram_api_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(timeout=10.0)
        self._owns_client = http_client is None

    @property
    def is_configured(self) -> bool:
        return bool(self._token)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def send(self, chat_id: str, message: str) -> None:
        if not self.is_configured:
            msg = "Telegram bot token is not configured"
            raise NotificationError(msg)

        try:
            response = await self._client.post(
                f"{self._api_url}/bot{self._token}/sendMessage",
                json={
                    "chat_id": chat_id,
                    "text": message,
                    "parse_mode": "HTML",
                    "disable_web_page_preview": True,
                },
            )
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            msg = f"Telegram request failed: {exc}"
            raise NotificationError(msg, details={"chat_id": chat_id}) from exc

        if not isinstance(payload, dict) or not payload.get("ok"):
            description = payload.get("description") if isinstance(payload, dict) else None
            msg = f"Telegram rejected the message: {description or response.status_code}"
            raise NotificationError(msg, details={"chat_id": chat_id})

        logger.info("telegram_message_sent", chat_id=chat_id)
