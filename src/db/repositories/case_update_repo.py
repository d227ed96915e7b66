"""Repository for the append-only case_updates audit table."""

from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.database import CaseUpdateRow
from src.models.domain import ChangeEvent


class CaseUpdateRepo:
    """Async repository for change records."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def append(
        self,
        case_id: str,
        event: ChangeEvent,
        *,
        details: dict[str, Any] | None = None,
    ) -> CaseUpdateRow:
        """Record one change event against a case."""
        row = CaseUpdateRow(
            case_id=case_id,
            update_type=event.kind.value,
            field_name=event.field,
            old_value=event.old_value,
            new_value=event.new_value,
            details=details or {},
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def list_for_case(self, case_id: str, *, limit: int = 50) -> list[CaseUpdateRow]:
        """Most recent change records for a case."""
        stmt = (
            select(CaseUpdateRow)
            .where(CaseUpdateRow.case_id == case_id)
            .order_by(CaseUpdateRow.created_at.desc())
            .limit(limit)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())
