"""Core domain models and enumerations.

These are the canonical data shapes for the case tracker. Every provider
normalises its upstream representation into these types, never raw
dicts. Frozen models are used for value objects that should be immutable
once created.
"""

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

# Status court portals report for an undecided case.
DEFAULT_STATUS = "Pending"
# Sentinel stored on a freshly tracked case that has never been resolved.
UNKNOWN_STATUS = "Unknown"

# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class CourtCategory(StrEnum):
    """Indian court tiers a case can be tracked in."""

    SUPREME_COURT = "SC"
    HIGH_COURT = "HC"
    DISTRICT_COURT = "DC"
    TRIBUNAL = "NCLT"
    CONSUMER_FORUM = "CF"

    @property
    def uses_district_portal(self) -> bool:
        """District, tribunal and consumer cases share the district eCourts portal."""
        return self in (
            CourtCategory.DISTRICT_COURT,
            CourtCategory.TRIBUNAL,
            CourtCategory.CONSUMER_FORUM,
        )


class ChangeKind(StrEnum):
    """Kinds of change a tracked case can undergo."""

    STATUS_CHANGE = "status_change"
    HEARING_DATE_CHANGE = "hearing_date_change"
    NEW_ORDER = "new_order"
    JUDGE_CHANGE = "judge_change"
    NEW_CASE = "new_case"
    HEARING_REMINDER = "hearing_reminder"


class SearchPolicy(StrEnum):
    """Provider ordering for party-name search."""

    OFFICIAL_FIRST = "official_first"
    PUBLIC_FIRST = "public_first"
    MERGE = "merge"


class AlertChannel(StrEnum):
    """Notification delivery channels."""

    TELEGRAM = "telegram"
    EMAIL = "email"


class DeliveryStatus(StrEnum):
    """Outcome of a single delivery attempt."""

    SENT = "sent"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Lookup keys
# ---------------------------------------------------------------------------


class CaseIdentifier(BaseModel):
    """The addressable key used to resolve a case upstream.

    Either the (case type, number, year) triple or the CNR registry
    number must be present. When both are, registry lookup is preferred
    because it needs no routing codes.
    """

    model_config = ConfigDict(frozen=True)

    court_category: CourtCategory
    case_type: str = ""
    case_type_code: str | None = None
    case_number: str = ""
    case_year: str = ""
    cnr_number: str | None = Field(
        default=None,
        description="16-character national Case Number Record, e.g. 'DLHC010012342025'",
    )
    court_code: str | None = None
    state_code: str | None = None
    district_code: str | None = None

    @model_validator(mode="after")
    def _require_addressable_key(self) -> "CaseIdentifier":
        has_triple = bool(self.case_type.strip() and self.case_number.strip() and self.case_year.strip())
        if not has_triple and not self.has_registry_number:
            msg = "either case_type + case_number + case_year or cnr_number is required"
            raise ValueError(msg)
        return self

    @property
    def has_registry_number(self) -> bool:
        return bool(self.cnr_number and self.cnr_number.strip())


# ---------------------------------------------------------------------------
# Resolution results
# ---------------------------------------------------------------------------


class HearingEntry(BaseModel):
    """One row of a case's hearing history."""

    model_config = ConfigDict(frozen=True)

    date: str
    purpose: str = ""
    court_number: str | None = None
    judge: str | None = None
    order_details: str | None = None


class OrderEntry(BaseModel):
    """One order or judgment passed in a case."""

    model_config = ConfigDict(frozen=True)

    date: str
    order_type: str = "Order"
    summary: str | None = None
    document_url: str | None = None


_OPTIONAL_TEXT_FIELDS = (
    "petitioner",
    "respondent",
    "petitioner_advocate",
    "respondent_advocate",
    "judges",
    "filing_date",
    "registration_date",
    "decision_date",
    "next_hearing_date",
    "last_order_date",
    "last_order_summary",
)


def derive_title(petitioner: str | None, respondent: str | None) -> str:
    """Build a case title from the parties when upstream supplies none."""
    if petitioner and respondent:
        return f"{petitioner} vs {respondent}"
    return petitioner or respondent or "Unknown"


class CaseSnapshot(BaseModel):
    """Normalised point-in-time view of a case, as returned by a provider.

    Absent upstream data is ``None``, never a placeholder string. The only
    exception is ``current_status``, which falls back to the literal
    ``"Pending"`` that court portals themselves use for undecided cases.
    """

    model_config = ConfigDict(frozen=True)

    title: str = Field(..., min_length=1)
    current_status: str = DEFAULT_STATUS
    petitioner: str | None = None
    respondent: str | None = None
    petitioner_advocate: str | None = None
    respondent_advocate: str | None = None
    judges: str | None = None
    filing_date: str | None = None
    registration_date: str | None = None
    decision_date: str | None = None
    next_hearing_date: str | None = None
    last_order_date: str | None = None
    last_order_summary: str | None = None
    hearing_history: list[HearingEntry] = Field(default_factory=list)
    orders: list[OrderEntry] = Field(default_factory=list)
    acts: list[str] | None = None
    raw_payload: dict[str, Any] = Field(
        default_factory=dict,
        description="Unparsed upstream response, kept for audit only",
    )

    @model_validator(mode="before")
    @classmethod
    def _normalise(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        values = dict(data)
        for name in _OPTIONAL_TEXT_FIELDS:
            value = values.get(name)
            if isinstance(value, str):
                value = value.strip()
            values[name] = value or None
        status = values.get("current_status")
        values["current_status"] = (status.strip() if isinstance(status, str) else "") or DEFAULT_STATUS
        title = values.get("title")
        title = title.strip() if isinstance(title, str) else ""
        values["title"] = title or derive_title(values["petitioner"], values["respondent"])
        if not values.get("acts"):
            values["acts"] = None
        return values


class SearchResult(BaseModel):
    """Summary of a case returned by party-name search.

    Carries just enough to let a user pick the right case and start
    tracking it.
    """

    model_config = ConfigDict(frozen=True)

    title: str
    case_number: str = ""
    case_year: str = ""
    case_type: str = ""
    court_category: CourtCategory
    court_name: str = ""
    court_code: str | None = None
    cnr_number: str | None = None
    status: str | None = None
    petitioner: str | None = None
    respondent: str | None = None
    next_hearing_date: str | None = None
    source: str = Field(default="", description="Provider name that produced this result")


# ---------------------------------------------------------------------------
# Change detection
# ---------------------------------------------------------------------------


class CaseState(BaseModel):
    """The comparable subset of a tracked case's last known state."""

    model_config = ConfigDict(frozen=True)

    current_status: str | None = None
    next_hearing_date: str | None = None
    last_order_date: str | None = None
    judges: str | None = None


class ChangeEvent(BaseModel):
    """A single detected change to a tracked case. Immutable once created."""

    model_config = ConfigDict(frozen=True)

    field: str = Field(..., min_length=1, description="e.g. 'current_status'")
    kind: ChangeKind
    old_value: str | None = None
    new_value: str = Field(..., min_length=1)


# ---------------------------------------------------------------------------
# Batch run + delivery
# ---------------------------------------------------------------------------


class PipelineSummary(BaseModel):
    """Counters reported at the end of one update run."""

    model_config = ConfigDict(frozen=True)

    cases_total: int = Field(default=0, ge=0)
    cases_checked: int = Field(default=0, ge=0)
    updates_found: int = Field(default=0, ge=0)
    unresolved: int = Field(default=0, ge=0)
    error_count: int = Field(default=0, ge=0)
    reminders_sent: int = Field(default=0, ge=0)
    stopped_early: bool = False
    duration_ms: int = Field(default=0, ge=0)


class DeliveryAttempt(BaseModel):
    """Outcome of delivering one event over one channel."""

    model_config = ConfigDict(frozen=True)

    channel: AlertChannel
    status: DeliveryStatus
    subject: str
    error: str | None = None
