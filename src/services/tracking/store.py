"""Persistence boundary for tracked cases, change records and alert logs.

The pipeline, tracker and dispatcher depend on the ``CaseStore``
protocol only. ``SqlCaseStore`` implements it over the repositories with
one short transaction per call, so work already written survives a run
that stops part way.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Any, Protocol

import structlog
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.exc import SQLAlchemyError

from src.core.exceptions import DatabaseError
from src.db.repositories import AlertLogRepo, CaseRepo, CaseUpdateRepo, ProfileRepo
from src.db.session import get_session
from src.models.database import TrackedCaseRow
from src.models.domain import (
    UNKNOWN_STATUS,
    CaseIdentifier,
    CaseSnapshot,
    CaseState,
    ChangeEvent,
    CourtCategory,
    ChangeKind,
    DeliveryAttempt,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger: structlog.stdlib.BoundLogger = structlog.get_logger()


class TrackedCase(BaseModel):
    """A user's tracked case as the pipeline sees it."""

    model_config = ConfigDict(frozen=True)

    id: str
    user_id: str
    identifier: CaseIdentifier
    title: str
    court_name: str | None = None
    current_status: str = UNKNOWN_STATUS
    next_hearing_date: str | None = None
    last_order_date: str | None = None
    judges: str | None = None
    last_checked_at: datetime | None = None
    last_changed_at: datetime | None = None
    tags: list[str] = Field(default_factory=list)
    notes: str | None = None
    is_active: bool = True

    @property
    def state(self) -> CaseState:
        return CaseState(
            current_status=self.current_status,
            next_hearing_date=self.next_hearing_date,
            last_order_date=self.last_order_date,
            judges=self.judges,
        )


class CaseUpdateRecord(BaseModel):
    """One stored change record, as shown in a case's history."""

    model_config = ConfigDict(frozen=True)

    id: int
    kind: ChangeKind
    field: str
    old_value: str | None = None
    new_value: str
    details: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime


class AlertProfile(BaseModel):
    """Where and how a user wants to be notified."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    full_name: str | None = None
    email: str | None = None
    telegram_chat_id: str | None = None
    email_alerts: bool = True
    telegram_alerts: bool = False


class CaseStore(Protocol):
    async def list_active(self) -> list[TrackedCase]: ...

    async def find_duplicate(self, user_id: str, identifier: CaseIdentifier) -> TrackedCase | None: ...

    async def create_case(
        self,
        user_id: str,
        identifier: CaseIdentifier,
        *,
        title: str,
        court_name: str | None = None,
        snapshot: CaseSnapshot | None = None,
    ) -> TrackedCase: ...

    async def append_event(
        self, case_id: str, event: ChangeEvent, *, details: dict[str, Any] | None = None
    ) -> None: ...

    async def save_snapshot(
        self,
        case_id: str,
        snapshot: CaseSnapshot,
        *,
        checked_at: datetime,
        changed_at: datetime | None = None,
    ) -> None: ...

    async def mark_checked(self, case_id: str, checked_at: datetime) -> None: ...

    async def reminder_logged_since(self, case_id: str, since: datetime) -> bool: ...

    async def get_profile(self, user_id: str) -> AlertProfile | None: ...

    async def record_delivery(
        self,
        *,
        user_id: str,
        case_id: str | None,
        attempt: DeliveryAttempt,
        message: str,
    ) -> None: ...

    async def list_for_user(
        self,
        user_id: str,
        *,
        court_category: CourtCategory | None = None,
        status: str | None = None,
        tag: str | None = None,
    ) -> list[TrackedCase]: ...

    async def get_case(self, case_id: str) -> TrackedCase | None: ...

    async def list_updates(self, case_id: str, *, limit: int = 50) -> list[CaseUpdateRecord]: ...

    async def update_case(self, case_id: str, values: dict[str, Any]) -> TrackedCase | None: ...

    async def delete_case(self, case_id: str) -> bool: ...


def snapshot_columns(snapshot: CaseSnapshot) -> dict[str, Any]:
    """Column values a fresh snapshot overwrites.

    Fields the snapshot leaves empty are omitted, so the stored value
    survives a lookup that simply did not report it. The title is never
    overwritten: it belongs to the user once the case is tracked.
    """
    values: dict[str, Any] = {
        "current_status": snapshot.current_status,
        "raw_payload": snapshot.raw_payload,
    }
    for name in (
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
        "acts",
    ):
        value = getattr(snapshot, name)
        if value is not None:
            values[name] = value
    if snapshot.hearing_history:
        values["hearing_history"] = [entry.model_dump() for entry in snapshot.hearing_history]
    if snapshot.orders:
        values["orders"] = [entry.model_dump() for entry in snapshot.orders]
    return values


def _to_tracked_case(row: TrackedCaseRow) -> TrackedCase:
    return TrackedCase(
        id=row.id,
        user_id=row.user_id,
        identifier=CaseIdentifier(
            court_category=CourtCategory(row.court_category),
            case_type=row.case_type,
            case_type_code=row.case_type_code,
            case_number=row.case_number,
            case_year=row.case_year,
            cnr_number=row.cnr_number,
            court_code=row.court_code,
            state_code=row.state_code,
            district_code=row.district_code,
        ),
        title=row.title,
        court_name=row.court_name,
        current_status=row.current_status or UNKNOWN_STATUS,
        next_hearing_date=row.next_hearing_date,
        last_order_date=row.last_order_date,
        judges=row.judges,
        last_checked_at=row.last_checked_at,
        last_changed_at=row.last_changed_at,
        tags=list(row.tags or []),
        notes=row.notes,
        is_active=row.is_active,
    )


class SqlCaseStore:
    """``CaseStore`` backed by PostgreSQL through the repository layer."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def list_active(self) -> list[TrackedCase]:
        try:
            async with get_session(self._session_factory) as session:
                rows = await CaseRepo(session).list_active()
                return [_to_tracked_case(row) for row in rows]
        except SQLAlchemyError as exc:
            msg = "Failed to read active cases"
            raise DatabaseError(msg, details={"error": str(exc)}) from exc

    async def find_duplicate(self, user_id: str, identifier: CaseIdentifier) -> TrackedCase | None:
        try:
            async with get_session(self._session_factory) as session:
                row = await CaseRepo(session).find_duplicate(
                    user_id,
                    court_category=identifier.court_category.value,
                    case_number=identifier.case_number,
                    case_year=identifier.case_year,
                    cnr_number=identifier.cnr_number,
                )
                return _to_tracked_case(row) if row else None
        except SQLAlchemyError as exc:
            msg = "Failed to check for a duplicate case"
            raise DatabaseError(msg, details={"error": str(exc)}) from exc

    async def create_case(
        self,
        user_id: str,
        identifier: CaseIdentifier,
        *,
        title: str,
        court_name: str | None = None,
        snapshot: CaseSnapshot | None = None,
    ) -> TrackedCase:
        row = TrackedCaseRow(
            user_id=user_id,
            court_category=identifier.court_category.value,
            case_type=identifier.case_type,
            case_type_code=identifier.case_type_code,
            case_number=identifier.case_number,
            case_year=identifier.case_year,
            cnr_number=identifier.cnr_number,
            court_name=court_name,
            court_code=identifier.court_code,
            state_code=identifier.state_code,
            district_code=identifier.district_code,
            title=title,
            current_status=UNKNOWN_STATUS,
            tags=[],
            is_active=True,
        )
        if snapshot is not None:
            for name, value in snapshot_columns(snapshot).items():
                setattr(row, name, value)
            row.title = title or snapshot.title
        try:
            async with get_session(self._session_factory) as session:
                created = await CaseRepo(session).create(row)
                logger.info("tracked_case_created", case_id=created.id, user_id=user_id)
                return _to_tracked_case(created)
        except SQLAlchemyError as exc:
            msg = "Failed to create tracked case"
            raise DatabaseError(msg, details={"error": str(exc)}) from exc

    async def append_event(
        self, case_id: str, event: ChangeEvent, *, details: dict[str, Any] | None = None
    ) -> None:
        try:
            async with get_session(self._session_factory) as session:
                await CaseUpdateRepo(session).append(case_id, event, details=details)
        except SQLAlchemyError as exc:
            msg = "Failed to record change event"
            raise DatabaseError(msg, details={"case_id": case_id, "error": str(exc)}) from exc

    async def save_snapshot(
        self,
        case_id: str,
        snapshot: CaseSnapshot,
        *,
        checked_at: datetime,
        changed_at: datetime | None = None,
    ) -> None:
        values = snapshot_columns(snapshot)
        values["last_checked_at"] = checked_at
        if changed_at is not None:
            values["last_changed_at"] = changed_at
        try:
            async with get_session(self._session_factory) as session:
                await CaseRepo(session).update_fields(case_id, values)
        except SQLAlchemyError as exc:
            msg = "Failed to save case snapshot"
            raise DatabaseError(msg, details={"case_id": case_id, "error": str(exc)}) from exc

    async def mark_checked(self, case_id: str, checked_at: datetime) -> None:
        try:
            async with get_session(self._session_factory) as session:
                await CaseRepo(session).mark_checked(case_id, checked_at)
        except SQLAlchemyError as exc:
            msg = "Failed to mark case checked"
            raise DatabaseError(msg, details={"case_id": case_id, "error": str(exc)}) from exc

    async def reminder_logged_since(self, case_id: str, since: datetime) -> bool:
        try:
            async with get_session(self._session_factory) as session:
                return await AlertLogRepo(session).reminder_logged_since(case_id, since)
        except SQLAlchemyError as exc:
            msg = "Failed to read reminder log"
            raise DatabaseError(msg, details={"case_id": case_id, "error": str(exc)}) from exc

    async def get_profile(self, user_id: str) -> AlertProfile | None:
        try:
            async with get_session(self._session_factory) as session:
                row = await ProfileRepo(session).get_by_id(user_id)
        except SQLAlchemyError as exc:
            msg = "Failed to load profile"
            raise DatabaseError(msg, details={"user_id": user_id, "error": str(exc)}) from exc
        if row is None:
            return None
        return AlertProfile(
            user_id=row.id,
            full_name=row.full_name,
            email=row.email,
            telegram_chat_id=row.telegram_chat_id,
            email_alerts=row.email_alerts,
            telegram_alerts=row.telegram_alerts,
        )

    async def record_delivery(
        self,
        *,
        user_id: str,
        case_id: str | None,
        attempt: DeliveryAttempt,
        message: str,
    ) -> None:
        try:
            async with get_session(self._session_factory) as session:
                await AlertLogRepo(session).record(
                    user_id=user_id, case_id=case_id, attempt=attempt, message=message
                )
        except SQLAlchemyError as exc:
            msg = "Failed to record delivery attempt"
            raise DatabaseError(msg, details={"case_id": case_id, "error": str(exc)}) from exc

    async def list_for_user(
        self,
        user_id: str,
        *,
        court_category: CourtCategory | None = None,
        status: str | None = None,
        tag: str | None = None,
    ) -> list[TrackedCase]:
        try:
            async with get_session(self._session_factory) as session:
                rows = await CaseRepo(session).list_for_user(
                    user_id,
                    court_category=court_category.value if court_category else None,
                    status=status,
                    tag=tag,
                )
                return [_to_tracked_case(row) for row in rows]
        except SQLAlchemyError as exc:
            msg = "Failed to list tracked cases"
            raise DatabaseError(msg, details={"user_id": user_id, "error": str(exc)}) from exc

    async def get_case(self, case_id: str) -> TrackedCase | None:
        try:
            async with get_session(self._session_factory) as session:
                row = await CaseRepo(session).get_by_id(case_id)
                return _to_tracked_case(row) if row else None
        except SQLAlchemyError as exc:
            msg = "Failed to load tracked case"
            raise DatabaseError(msg, details={"case_id": case_id, "error": str(exc)}) from exc

    async def list_updates(self, case_id: str, *, limit: int = 50) -> list[CaseUpdateRecord]:
        try:
            async with get_session(self._session_factory) as session:
                rows = await CaseUpdateRepo(session).list_for_case(case_id, limit=limit)
                return [
                    CaseUpdateRecord(
                        id=row.id,
                        kind=ChangeKind(row.update_type),
                        field=row.field_name,
                        old_value=row.old_value,
                        new_value=row.new_value,
                        details=row.details or {},
                        created_at=row.created_at,
                    )
                    for row in rows
                ]
        except SQLAlchemyError as exc:
            msg = "Failed to load case history"
            raise DatabaseError(msg, details={"case_id": case_id, "error": str(exc)}) from exc

    async def update_case(self, case_id: str, values: dict[str, Any]) -> TrackedCase | None:
        try:
            async with get_session(self._session_factory) as session:
                repo = CaseRepo(session)
                if values:
                    await repo.update_fields(case_id, values)
                row = await repo.get_by_id(case_id)
                return _to_tracked_case(row) if row else None
        except SQLAlchemyError as exc:
            msg = "Failed to update tracked case"
            raise DatabaseError(msg, details={"case_id": case_id, "error": str(exc)}) from exc

    async def delete_case(self, case_id: str) -> bool:
        try:
            async with get_session(self._session_factory) as session:
                return await CaseRepo(session).delete(case_id)
        except SQLAlchemyError as exc:
            msg = "Failed to delete tracked case"
            raise DatabaseError(msg, details={"case_id": case_id, "error": str(exc)}) from exc
