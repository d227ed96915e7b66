"""Add, list, edit and remove the cases a user tracks."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import structlog

from src.core.exceptions import DuplicateCaseError, NotFoundError
from src.models.domain import (
    UNKNOWN_STATUS,
    CaseIdentifier,
    ChangeEvent,
    ChangeKind,
    CourtCategory,
    derive_title,
)

if TYPE_CHECKING:
    from src.services.courts.resolution import CourtResolutionService
    from src.services.tracking.store import CaseStore, CaseUpdateRecord, TrackedCase

logger: structlog.stdlib.BoundLogger = structlog.get_logger()


class CaseTracker:
    """A user's tracked cases: adding, listing, editing and removing them.

    Every operation is scoped to the caller's ``user_id``; a case owned by
    someone else is reported as not found.
    """

    # The only columns a user may change; everything else is synced by
    # the update pipeline.
    EDITABLE_FIELDS = frozenset({"tags", "notes", "is_active"})

    def __init__(self, *, store: CaseStore, resolver: CourtResolutionService) -> None:
        self._store = store
        self._resolver = resolver

    async def track(
        self,
        user_id: str,
        identifier: CaseIdentifier,
        *,
        court_name: str | None = None,
        title: str | None = None,
    ) -> TrackedCase:
        """Resolve the case once, store it, and append a ``new_case`` record.

        A case no provider can resolve right now is still tracked, with
        status ``"Unknown"`` so its first successful poll is not reported
        as a status change.

        Raises:
            DuplicateCaseError: the user already tracks this case.
        """
        existing = await self._store.find_duplicate(user_id, identifier)
        if existing is not None:
            msg = "Case is already being tracked"
            raise DuplicateCaseError(msg, details={"case_id": existing.id})

        snapshot = await self._resolver.resolve_status(identifier)
        resolved_title = (title or "").strip()
        if not resolved_title:
            resolved_title = snapshot.title if snapshot else self._fallback_title(identifier)

        case = await self._store.create_case(
            user_id,
            identifier,
            title=resolved_title,
            court_name=court_name,
            snapshot=snapshot,
        )
        await self._store.append_event(
            case.id,
            ChangeEvent(
                field="case",
                kind=ChangeKind.NEW_CASE,
                new_value=f"Started tracking {resolved_title}",
            ),
            details={"resolved": snapshot is not None},
        )
        logger.info(
            "case_tracked",
            case_id=case.id,
            user_id=user_id,
            resolved=snapshot is not None,
            status=case.current_status if snapshot else UNKNOWN_STATUS,
        )
        return case

    async def list_cases(
        self,
        user_id: str,
        *,
        court_category: CourtCategory | None = None,
        status: str | None = None,
        tag: str | None = None,
    ) -> list[TrackedCase]:
        """Active cases for the user, newest first."""
        return await self._store.list_for_user(
            user_id, court_category=court_category, status=status, tag=tag
        )

    async def get_case(
        self, user_id: str, case_id: str, *, history_limit: int = 50
    ) -> tuple[TrackedCase, list[CaseUpdateRecord]]:
        """The case and its most recent change records.

        Raises:
            NotFoundError: no such case for this user.
        """
        case = await self._owned_case(user_id, case_id)
        updates = await self._store.list_updates(case_id, limit=history_limit)
        return case, updates

    async def update_case(self, user_id: str, case_id: str, changes: dict[str, Any]) -> TrackedCase:
        """Apply user edits to tags, notes or the active flag.

        Clearing ``is_active`` is the soft delete: the case stays in the
        store but the pipeline stops polling it.
        """
        unknown = set(changes) - self.EDITABLE_FIELDS
        if unknown:
            msg = f"Fields not editable: {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        await self._owned_case(user_id, case_id)
        updated = await self._store.update_case(case_id, changes)
        if updated is None:
            msg = "Case not found"
            raise NotFoundError(msg, details={"case_id": case_id})
        logger.info("case_edited", case_id=case_id, fields=sorted(changes))
        return updated

    async def delete_case(self, user_id: str, case_id: str) -> None:
        """Remove the case and its history for good."""
        await self._owned_case(user_id, case_id)
        await self._store.delete_case(case_id)
        logger.info("case_deleted", case_id=case_id, user_id=user_id)

    async def _owned_case(self, user_id: str, case_id: str) -> TrackedCase:
        case = await self._store.get_case(case_id)
        if case is None or case.user_id != user_id:
            msg = "Case not found"
            raise NotFoundError(msg, details={"case_id": case_id})
        return case

    @staticmethod
    def _fallback_title(identifier: CaseIdentifier) -> str:
        if identifier.case_number:
            return f"{identifier.case_type} {identifier.case_number}/{identifier.case_year}".strip()
        return derive_title(None, identifier.cnr_number)
