"""Shared retry-with-fresh-session helper for CAPTCHA-gated lookups.

Every provider lookup follows the same shape: negotiate a session,
submit the query, and on a rejected CAPTCHA (or a session that could
not be opened) start over with a brand-new session. The attempt bound
is fixed per lookup; exhausting it means "this provider could not
resolve it", which is ``None`` rather than an exception.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import TypeVar

import structlog
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
)

from src.core.exceptions import CaptchaRejectedError, SessionError

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

T = TypeVar("T")

DEFAULT_ATTEMPTS = 3


def _log_retry(provider: str, operation: str) -> Callable[[RetryCallState], None]:
    def _before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        logger.warning(
            "lookup_attempt_failed",
            provider=provider,
            operation=operation,
            attempt=state.attempt_number,
            error_type=type(exc).__name__ if exc else None,
            error=str(exc) if exc else None,
        )

    return _before_sleep


async def with_fresh_session(
    attempt_fn: Callable[[int], Awaitable[T]],
    *,
    provider: str,
    operation: str,
    attempts: int = DEFAULT_ATTEMPTS,
) -> T | None:
    """Run ``attempt_fn(attempt_number)`` until it returns or the bound is hit.

    ``attempt_fn`` must negotiate its own session. ``SessionError`` and
    ``CaptchaRejectedError`` trigger another attempt; any other exception
    (notably ``UpstreamTransportError``) propagates immediately.
    """
    result: T | None = None
    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(attempts),
            retry=retry_if_exception_type((CaptchaRejectedError, SessionError)),
            before_sleep=_log_retry(provider, operation),
            reraise=True,
        ):
            with attempt:
                result = await attempt_fn(attempt.retry_state.attempt_number)
    except (CaptchaRejectedError, SessionError) as exc:
        logger.warning(
            "lookup_attempts_exhausted",
            provider=provider,
            operation=operation,
            attempts=attempts,
            error_type=type(exc).__name__,
            error=exc.message,
        )
        return None
    return result
