"""Repository for notification delivery records.

One row per (event, channel) attempt. The reminder sweep reads this
table back to avoid sending the same hearing reminder twice in a day.
"""

from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from src.models.database import AlertLogRow
from src.models.domain import DeliveryAttempt, DeliveryStatus

REMINDER_SUBJECT_MARKER = "HEARING REMINDER"


class AlertLogRepo:
    """Async repository for alert delivery attempts."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def record(
        self,
        *,
        user_id: str,
        case_id: str | None,
        attempt: DeliveryAttempt,
        message: str,
    ) -> AlertLogRow:
        """Persist the outcome of one delivery attempt."""
        row = AlertLogRow(
            user_id=user_id,
            case_id=case_id,
            alert_type=attempt.channel.value,
            subject=attempt.subject,
            message=message,
            status=attempt.status.value,
            error_details=attempt.error,
        )
        self._session.add(row)
        await self._session.flush()
        return row

    async def reminder_logged_since(self, case_id: str, since: datetime) -> bool:
        """True if a hearing reminder for this case was delivered at or after ``since``.

        Failed attempts do not count, so the next run tries again.
        """
        stmt = select(func.count(AlertLogRow.id)).where(
            AlertLogRow.case_id == case_id,
            AlertLogRow.subject.ilike(f"%{REMINDER_SUBJECT_MARKER}%"),
            AlertLogRow.status == DeliveryStatus.SENT.value,
            AlertLogRow.sent_at >= since,
        )
        result = await self._session.execute(stmt)
        return result.scalar_one() > 0
