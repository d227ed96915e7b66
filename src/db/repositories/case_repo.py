"""Repository for tracked case CRUD operations.

All database access for the tracked_cases table is encapsulated here.
Services never execute raw SQL. They call repository methods.
"""

from datetime import datetime

from sqlalchemy import CursorResult, delete, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.database import TrackedCaseRow


class CaseRepo:
    """Async repository for tracked cases."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create(self, case: TrackedCaseRow) -> TrackedCaseRow:
        """Insert a tracked case and return it with generated fields populated."""
        self._session.add(case)
        await self._session.flush()
        return case

    async def get_by_id(self, case_id: str) -> TrackedCaseRow | None:
        """Fetch a tracked case by its primary key."""
        stmt = select(TrackedCaseRow).where(TrackedCaseRow.id == case_id)
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def find_duplicate(
        self,
        user_id: str,
        *,
        court_category: str,
        case_number: str,
        case_year: str,
        cnr_number: str | None = None,
    ) -> TrackedCaseRow | None:
        """Return the user's existing case with the same court key or CNR, if any."""
        conditions = []
        if case_number:
            conditions.append(
                (TrackedCaseRow.court_category == court_category)
                & (TrackedCaseRow.case_number == case_number)
                & (TrackedCaseRow.case_year == case_year)
            )
        if cnr_number:
            conditions.append(TrackedCaseRow.cnr_number == cnr_number)
        if not conditions:
            return None

        stmt = (
            select(TrackedCaseRow)
            .where(TrackedCaseRow.user_id == user_id, or_(*conditions))
            .limit(1)
        )
        result = await self._session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_active(self) -> list[TrackedCaseRow]:
        """Active cases ordered oldest-checked first, never-checked cases leading."""
        stmt = (
            select(TrackedCaseRow)
            .where(TrackedCaseRow.is_active.is_(True))
            .order_by(TrackedCaseRow.last_checked_at.asc().nulls_first())
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def list_for_user(
        self,
        user_id: str,
        *,
        court_category: str | None = None,
        status: str | None = None,
        tag: str | None = None,
        active_only: bool = True,
        limit: int = 100,
    ) -> list[TrackedCaseRow]:
        """List a user's cases, newest first, optionally filtered."""
        stmt = select(TrackedCaseRow).where(TrackedCaseRow.user_id == user_id)
        if active_only:
            stmt = stmt.where(TrackedCaseRow.is_active.is_(True))
        if court_category:
            stmt = stmt.where(TrackedCaseRow.court_category == court_category)
        if status:
            stmt = stmt.where(TrackedCaseRow.current_status == status)
        if tag:
            stmt = stmt.where(TrackedCaseRow.tags.contains([tag]))
        stmt = stmt.order_by(TrackedCaseRow.created_at.desc()).limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def update_fields(self, case_id: str, values: dict[str, object]) -> bool:
        """Overwrite the given columns. Returns True if the row existed."""
        if not values:
            return False
        stmt = update(TrackedCaseRow).where(TrackedCaseRow.id == case_id).values(**values)
        cursor: CursorResult[tuple[()]] = await self._session.execute(stmt)  # type: ignore[assignment]
        return cursor.rowcount > 0

    async def mark_checked(self, case_id: str, checked_at: datetime) -> bool:
        """Advance last_checked_at without touching the snapshot."""
        return await self.update_fields(case_id, {"last_checked_at": checked_at})

    async def delete(self, case_id: str) -> bool:
        """Hard-delete a case; its change records cascade. True if it existed."""
        stmt = delete(TrackedCaseRow).where(TrackedCaseRow.id == case_id)
        cursor: CursorResult[tuple[()]] = await self._session.execute(stmt)  # type: ignore[assignment]
        return cursor.rowcount > 0
