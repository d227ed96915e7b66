"""Case tracking endpoints.

POST   /cases:            resolve a case once and start tracking it for a user
GET    /cases:            the user's active cases, filterable by court, status and tag
GET    /cases/{case_id}:  one case with its most recent change records
PATCH  /cases/{case_id}:  edit tags, notes or the active flag
DELETE /cases/{case_id}:  stop tracking and drop the case's history
"""

from typing import Annotated

import structlog
from fastapi import APIRouter, Depends, Query, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from src.api.dependencies import get_case_tracker
from src.models.domain import CourtCategory
from src.models.requests import TrackCaseRequest, UpdateCaseRequest
from src.models.responses import (
    CaseDeletedResponse,
    CaseDetailResponse,
    CaseListResponse,
    CaseUpdateResponse,
    TrackedCaseResponse,
)
from src.services.tracking.store import TrackedCase
from src.services.tracking.tracker import CaseTracker

logger: structlog.stdlib.BoundLogger = structlog.get_logger()

router = APIRouter(prefix="/cases", tags=["cases"])

UserId = Annotated[str, Query(min_length=1, max_length=100, description="Owner of the tracked cases")]


def _to_response(case: TrackedCase) -> TrackedCaseResponse:
    return TrackedCaseResponse(
        id=case.id,
        user_id=case.user_id,
        court_category=case.identifier.court_category,
        case_type=case.identifier.case_type,
        case_number=case.identifier.case_number,
        case_year=case.identifier.case_year,
        cnr_number=case.identifier.cnr_number,
        court_name=case.court_name,
        title=case.title,
        current_status=case.current_status,
        next_hearing_date=case.next_hearing_date,
        last_order_date=case.last_order_date,
        judges=case.judges,
        tags=case.tags,
        notes=case.notes,
        is_active=case.is_active,
        last_checked_at=case.last_checked_at,
        last_changed_at=case.last_changed_at,
    )


@router.post(
    "",
    response_model=TrackedCaseResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Start tracking a case",
)
async def track_case(
    request: TrackCaseRequest,
    tracker: CaseTracker = Depends(get_case_tracker),
) -> TrackedCaseResponse:
    """Add a case to the user's tracked list. 409 if already tracked."""
    try:
        identifier = request.to_identifier()
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False, include_context=False)) from exc

    case = await tracker.track(
        request.user_id,
        identifier,
        court_name=request.court_name,
        title=request.title,
    )
    return _to_response(case)


@router.get("", response_model=CaseListResponse, summary="List tracked cases")
async def list_cases(
    user_id: UserId,
    court_category: CourtCategory | None = None,
    case_status: str | None = Query(default=None, alias="status", max_length=200),
    tag: str | None = Query(default=None, min_length=1, max_length=50),
    tracker: CaseTracker = Depends(get_case_tracker),
) -> CaseListResponse:
    """Active cases for the user, newest first."""
    cases = await tracker.list_cases(
        user_id, court_category=court_category, status=case_status, tag=tag
    )
    return CaseListResponse(total=len(cases), cases=[_to_response(c) for c in cases])


@router.get("/{case_id}", response_model=CaseDetailResponse, summary="Get a tracked case")
async def get_case(
    case_id: str,
    user_id: UserId,
    tracker: CaseTracker = Depends(get_case_tracker),
) -> CaseDetailResponse:
    """The case plus its last 50 change records, newest first. 404 if not the user's."""
    case, updates = await tracker.get_case(user_id, case_id)
    return CaseDetailResponse(
        case=_to_response(case),
        updates=[CaseUpdateResponse(**update.model_dump()) for update in updates],
    )


@router.patch("/{case_id}", response_model=TrackedCaseResponse, summary="Edit a tracked case")
async def update_case(
    case_id: str,
    request: UpdateCaseRequest,
    user_id: UserId,
    tracker: CaseTracker = Depends(get_case_tracker),
) -> TrackedCaseResponse:
    """Change tags, notes or ``is_active``. ``is_active: false`` pauses tracking."""
    case = await tracker.update_case(user_id, case_id, request.changes())
    return _to_response(case)


@router.delete("/{case_id}", response_model=CaseDeletedResponse, summary="Stop tracking a case")
async def delete_case(
    case_id: str,
    user_id: UserId,
    tracker: CaseTracker = Depends(get_case_tracker),
) -> CaseDeletedResponse:
    """Remove the case and its change history."""
    await tracker.delete_case(user_id, case_id)
    return CaseDeletedResponse(id=case_id)
