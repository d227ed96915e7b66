"""Custom exception hierarchy for the case tracker.

Every service-layer error inherits from TrackerError, giving the API
layer a single base class to catch and translate into structured JSON
responses. Provider errors stay inside the resolution layer: the
orchestrator logs them and moves on to the next source.
"""

from __future__ import annotations

from typing import Any


class TrackerError(Exception):
    """Base exception for all case tracker errors."""

    def __init__(
        self,
        message: str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.details: dict[str, Any] = details or {}
        super().__init__(message)


class ProviderError(TrackerError):
    """Raised when a court data provider cannot complete a lookup."""


class SolverUnavailableError(ProviderError):
    """Raised when the CAPTCHA vision backend is unconfigured or failing."""


class SessionError(ProviderError):
    """Raised when a portal session (cookies, token, CAPTCHA) cannot be negotiated."""


class CaptchaRejectedError(ProviderError):
    """Raised when the upstream portal rejects the submitted CAPTCHA answer."""


class UpstreamTransportError(ProviderError):
    """Raised on network failure, timeout, or an unexplained non-2xx response."""


class NoRecordFoundError(ProviderError):
    """Raised when an upstream explicitly reports no matching case."""


class DatabaseError(TrackerError):
    """Raised when a database operation fails."""


class NotificationError(TrackerError):
    """Raised when a notification transport fails to deliver."""


class UnauthorizedError(TrackerError):
    """Raised when a trigger request carries the wrong shared secret."""


class DuplicateCaseError(TrackerError):
    """Raised when a user tries to track a case they already track."""


class NotFoundError(TrackerError):
    """Raised when a requested resource does not exist."""
