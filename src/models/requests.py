"""API request schemas.

Every inbound request body is validated through one of these models.
No raw dicts ever reach the service layer.
"""

from typing import Annotated, Any

from pydantic import BaseModel, ConfigDict, Field

from src.models.domain import CaseIdentifier, CourtCategory

# ---------------------------------------------------------------------------
# Cases
# ---------------------------------------------------------------------------


class TrackCaseRequest(BaseModel):
    """Start tracking a case for a user."""

    model_config = ConfigDict(frozen=True)

    user_id: str = Field(..., min_length=1, max_length=36)
    court_category: CourtCategory
    case_type: str = Field(default="", max_length=100, description="e.g. 'W.P.(C)' or 'Civil Appeal'")
    case_type_code: str | None = Field(default=None, max_length=20)
    case_number: str = Field(default="", max_length=50)
    case_year: str = Field(default="", max_length=4, pattern=r"^(\d{4})?$")
    cnr_number: str | None = Field(default=None, max_length=32)
    court_code: str | None = None
    state_code: str | None = None
    district_code: str | None = None
    court_name: str | None = Field(default=None, max_length=200)
    title: str | None = Field(default=None, max_length=500)

    def to_identifier(self) -> CaseIdentifier:
        """Raises ``pydantic.ValidationError`` when neither key is complete."""
        return CaseIdentifier(
            court_category=self.court_category,
            case_type=self.case_type,
            case_type_code=self.case_type_code,
            case_number=self.case_number,
            case_year=self.case_year,
            cnr_number=self.cnr_number,
            court_code=self.court_code,
            state_code=self.state_code,
            district_code=self.district_code,
        )


class UpdateCaseRequest(BaseModel):
    """User edits to a tracked case. Omitted fields are left unchanged.

    Setting ``is_active`` to false stops polling without deleting history.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    tags: list[Annotated[str, Field(min_length=1, max_length=50)]] | None = Field(
        default=None, max_length=20
    )
    notes: str | None = Field(default=None, max_length=5000)
    is_active: bool | None = None

    def changes(self) -> dict[str, Any]:
        """Only the fields the caller actually sent. ``notes: null`` clears the notes."""
        sent = self.model_dump(exclude_unset=True)
        return {name: value for name, value in sent.items() if value is not None or name == "notes"}


# ---------------------------------------------------------------------------
# Webhook
# ---------------------------------------------------------------------------


class RunnerWebhookRequest(BaseModel):
    """Completion callback posted by an external scheduled runner."""

    model_config = ConfigDict(frozen=True)

    event: str = Field(default="update_run_completed", max_length=100)
    summary: dict[str, Any] = Field(default_factory=dict)
