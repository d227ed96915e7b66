"""API response schemas.

Every outbound response is serialized through one of these models.
Structured error responses are included. The API never leaks raw
stack traces.
"""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from src.models.domain import ChangeKind, CourtCategory, SearchPolicy, SearchResult

# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class DependencyHealth(BaseModel):
    """Health status of a single infrastructure dependency."""

    model_config = ConfigDict(frozen=True)

    name: str
    status: str = Field(..., description="'healthy', 'unhealthy', or 'not_configured'")
    latency_ms: float | None = None
    details: str | None = None


class HealthResponse(BaseModel):
    """Aggregate health check response."""

    model_config = ConfigDict(frozen=True)

    status: str = Field(..., description="'healthy', 'degraded', or 'unhealthy'")
    version: str
    uptime_seconds: float
    dependencies: list[DependencyHealth]


# ---------------------------------------------------------------------------
# Update runs
# ---------------------------------------------------------------------------


class UpdateRunResponse(BaseModel):
    """Summary of one update run, as returned to the scheduler."""

    model_config = ConfigDict(frozen=True)

    success: bool = True
    cases_checked: int
    updates_found: int
    error_count: int
    reminders_sent: int
    unresolved: int = 0
    stopped_early: bool = False
    duration_ms: int


class WebhookAckResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    received: bool = True
    event: str


# ---------------------------------------------------------------------------
# Search
# ---------------------------------------------------------------------------


class PartySearchResponse(BaseModel):
    """Party-name search results."""

    model_config = ConfigDict(frozen=True)

    query: str
    court_category: CourtCategory | None = None
    policy: SearchPolicy
    total: int
    results: list[SearchResult]


# ---------------------------------------------------------------------------
# Cases
# ---------------------------------------------------------------------------


class TrackedCaseResponse(BaseModel):
    """A case the user now tracks."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    court_category: CourtCategory
    case_type: str
    case_number: str
    case_year: str
    cnr_number: str | None = None
    court_name: str | None = None
    title: str
    current_status: str
    next_hearing_date: str | None = None
    last_order_date: str | None = None
    judges: str | None = None
    tags: list[str] = Field(default_factory=list)
    notes: str | None = None
    is_active: bool = True
    last_checked_at: datetime | None = None
    last_changed_at: datetime | None = None


class CaseListResponse(BaseModel):
    """A user's active tracked cases."""

    model_config = ConfigDict(frozen=True)

    total: int
    cases: list[TrackedCaseResponse]


class CaseUpdateResponse(BaseModel):
    """One entry of a case's change history."""

    model_config = ConfigDict(frozen=True)

    id: int
    kind: ChangeKind
    field: str
    old_value: str | None = None
    new_value: str
    details: dict[str, object] = Field(default_factory=dict)
    created_at: datetime


class CaseDetailResponse(BaseModel):
    """A tracked case with its most recent change records."""

    model_config = ConfigDict(frozen=True)

    case: TrackedCaseResponse
    updates: list[CaseUpdateResponse]


class CaseDeletedResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    deleted: bool = True


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Structured error body returned by every exception handler."""

    model_config = ConfigDict(frozen=True)

    error: str
    message: str
    details: dict[str, object] = Field(default_factory=dict)
    request_id: str | None = None
