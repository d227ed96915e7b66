"""Vision-model CAPTCHA solver.

Court portals guard their case-status forms with a small arithmetic
image ("6 + 4"). The image is sent to a multimodal model with a fixed
instruction and the first integer in the reply is taken as the answer.
Routes to Azure OpenAI or Anthropic based on the configured model name.

``solve`` never raises: an unconfigured backend, a failed request, or a
reply without a number all come back as ``None`` and the caller's own
retry policy decides what happens next.
"""

from __future__ import annotations

import base64
import re
from typing import TYPE_CHECKING

import structlog

from src.core.exceptions import SolverUnavailableError

if TYPE_CHECKING:
    from src.core.config import Settings

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

SYSTEM_PROMPT = (
    "You are a CAPTCHA solver. The image shows a simple math expression like "
    "'6 + 4' or '9 - 3'. Read the numbers and operator, calculate the result, "
    "and respond with ONLY the numeric answer. Nothing else."
)
USER_PROMPT = "Solve this math CAPTCHA. Reply with only the number."

_NUMBER_RE = re.compile(r"-?\d+")


def sniff_media_type(image_bytes: bytes) -> str:
    """Best-effort MIME type from magic bytes; portals mostly serve PNG."""
    if image_bytes.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    if image_bytes[:6] in (b"GIF87a", b"GIF89a"):
        return "image/gif"
    return "image/png"


def first_number(reply: str) -> str | None:
    """Pull the first (optionally negative) integer token out of a model reply."""
    match = _NUMBER_RE.search(reply)
    return match.group(0) if match else None


class CaptchaSolver:
    """Async arithmetic-CAPTCHA solver over a vision LLM.

    Clients are created lazily on first use; tests inject mocks through
    the constructor instead.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        openai_client: object | None = None,
        anthropic_client: object | None = None,
    ) -> None:
        self._settings = settings
        self._model = settings.captcha_solver_model
        self._openai_client = openai_client
        self._anthropic_client = anthropic_client

    @staticmethod
    def is_anthropic_model(model: str) -> bool:
        """Check whether a model name belongs to Anthropic."""
        return model.startswith("claude")

    @property
    def is_configured(self) -> bool:
        if self.is_anthropic_model(self._model):
            return bool(self._settings.anthropic_api_key) or self._anthropic_client is not None
        return bool(
            self._settings.azure_openai_endpoint and self._settings.azure_openai_key
        ) or self._openai_client is not None

    def _get_openai(self) -> object:
        if self._openai_client is None:
            from openai import AsyncAzureOpenAI

            self._openai_client = AsyncAzureOpenAI(
                azure_endpoint=self._settings.azure_openai_endpoint.rstrip("/"),
                api_key=self._settings.azure_openai_key,
                api_version=self._settings.azure_openai_api_version,
                timeout=self._settings.captcha_timeout_seconds,
                max_retries=0,
            )
        return self._openai_client

    def _get_anthropic(self) -> object:
        if self._anthropic_client is None:
            from anthropic import AsyncAnthropic

            self._anthropic_client = AsyncAnthropic(
                api_key=self._settings.anthropic_api_key,
                timeout=self._settings.captcha_timeout_seconds,
                max_retries=0,
            )
        return self._anthropic_client

    async def solve(self, image_bytes: bytes) -> str | None:
        """Return the numeric answer shown in ``image_bytes``, or ``None``."""
        if not self.is_configured:
            logger.warning("captcha_solver_not_configured", model=self._model)
            return None
        if not image_bytes:
            logger.warning("captcha_image_empty")
            return None

        try:
            if self.is_anthropic_model(self._model):
                reply = await self._call_anthropic(image_bytes)
            else:
                reply = await self._call_openai(image_bytes)
        except SolverUnavailableError as exc:
            logger.warning("captcha_solver_failed", model=self._model, error=exc.message)
            return None

        answer = first_number(reply)
        if answer is None:
            logger.warning("captcha_reply_unparseable", model=self._model, reply=reply[:50])
            return None

        logger.info("captcha_solved", model=self._model, answer=answer)
        return answer

    async def _call_openai(self, image_bytes: bytes) -> str:
        from openai import APIError, AsyncAzureOpenAI

        client: AsyncAzureOpenAI = self._get_openai()  # type: ignore[assignment]
        encoded = base64.b64encode(image_bytes).decode("ascii")
        data_url = f"data:{sniff_media_type(image_bytes)};base64,{encoded}"
        try:
            response = await client.chat.completions.create(
                model=self._model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {
                        "role": "user",
                        "content": [
                            {"type": "text", "text": USER_PROMPT},
                            {"type": "image_url", "image_url": {"url": data_url}},
                        ],
                    },
                ],
                temperature=0,
                max_tokens=self._settings.captcha_max_tokens,
            )
        except APIError as exc:
            msg = f"Azure OpenAI error: {exc}"
            raise SolverUnavailableError(msg) from exc

        if not response.choices:
            return ""
        return (response.choices[0].message.content or "").strip()

    async def _call_anthropic(self, image_bytes: bytes) -> str:
        from anthropic import APIError, AsyncAnthropic

        client: AsyncAnthropic = self._get_anthropic()  # type: ignore[assignment]
        try:
            response = await client.messages.create(
                model=self._model,
                system=SYSTEM_PROMPT,
                messages=[
                    {
                        "role": "user",
                        "content": [
                            {
                                "type": "image",
                                "source": {
                                    "type": "base64",
                                    "media_type": sniff_media_type(image_bytes),
                                    "data": base64.b64encode(image_bytes).decode("ascii"),
                                },
                            },
                            {"type": "text", "text": USER_PROMPT},
                        ],
                    }
                ],
                temperature=0,
                max_tokens=self._settings.captcha_max_tokens,
            )
        except APIError as exc:
            msg = f"Anthropic API error: {exc}"
            raise SolverUnavailableError(msg) from exc

        from anthropic.types import TextBlock

        first = response.content[0] if response.content else None
        return first.text.strip() if isinstance(first, TextBlock) else ""
