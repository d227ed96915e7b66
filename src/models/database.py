"""SQLAlchemy 2.0 ORM models for all database tables.

These map directly to the PostgreSQL schema. Domain enums are stored as
VARCHAR via their StrEnum string values. Case dates are kept as the
strings the courts publish; only bookkeeping timestamps are real
TIMESTAMPTZ columns.
"""

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


def _new_id() -> str:
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Shared base for all ORM models."""


# ---------------------------------------------------------------------------
# profiles
# ---------------------------------------------------------------------------


class ProfileRow(Base):
    """A user and their notification preferences."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    full_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    email: Mapped[str | None] = mapped_column(Text, nullable=True)
    telegram_chat_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    email_alerts: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="true")
    telegram_alerts: Mapped[bool] = mapped_column(Boolean, nullable=False, server_default="false")
    reminder_hours_before: Mapped[int] = mapped_column(Integer, nullable=False, server_default="24")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    cases: Mapped[list["TrackedCaseRow"]] = relationship(
        back_populates="profile", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<ProfileRow id={self.id!r} email={self.email!r}>"


# ---------------------------------------------------------------------------
# tracked_cases
# ---------------------------------------------------------------------------


class TrackedCaseRow(Base):
    """A case a user follows, with its last known snapshot flattened in."""

    __tablename__ = "tracked_cases"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_id)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Identifier
    court_category: Mapped[str] = mapped_column(String(10), nullable=False, index=True)
    case_type: Mapped[str] = mapped_column(String(100), nullable=False, server_default="")
    case_type_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    case_number: Mapped[str] = mapped_column(String(50), nullable=False, server_default="")
    case_year: Mapped[str] = mapped_column(String(4), nullable=False, server_default="")
    cnr_number: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
    court_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    court_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    state_code: Mapped[str | None] = mapped_column(String(10), nullable=True)
    district_code: Mapped[str | None] = mapped_column(String(10), nullable=True)

    # Snapshot
    title: Mapped[str] = mapped_column(Text, nullable=False)
    petitioner: Mapped[str | None] = mapped_column(Text, nullable=True)
    respondent: Mapped[str | None] = mapped_column(Text, nullable=True)
    petitioner_advocate: Mapped[str | None] = mapped_column(Text, nullable=True)
    respondent_advocate: Mapped[str | None] = mapped_column(Text, nullable=True)
    judges: Mapped[str | None] = mapped_column(Text, nullable=True)
    filing_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    registration_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    decision_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    current_status: Mapped[str] = mapped_column(Text, nullable=False, server_default="Unknown")
    next_hearing_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    last_order_date: Mapped[str | None] = mapped_column(String(32), nullable=True)
    last_order_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    hearing_history: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONB, nullable=False, server_default="[]"
    )
    orders: Mapped[list[dict[str, Any]]] = mapped_column(JSONB, nullable=False, server_default="[]")
    acts: Mapped[list[str] | None] = mapped_column(JSONB, nullable=True)
    raw_payload: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, server_default="{}")

    # Tracking metadata
    tags: Mapped[list[str]] = mapped_column(JSONB, nullable=False, server_default="[]")
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(
        Boolean, nullable=False, server_default="true", index=True
    )
    last_checked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    profile: Mapped["ProfileRow"] = relationship(back_populates="cases")
    updates: Mapped[list["CaseUpdateRow"]] = relationship(
        back_populates="case", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index(
            "ix_tracked_cases_user_case",
            "user_id",
            "court_category",
            "case_number",
            "case_year",
            unique=True,
        ),
        Index("ix_tracked_cases_active_checked", "is_active", "last_checked_at"),
    )

    def __repr__(self) -> str:
        return (
            f"<TrackedCaseRow id={self.id!r} "
            f"{self.court_category} {self.case_type}/{self.case_number}/{self.case_year}>"
        )


# ---------------------------------------------------------------------------
# case_updates
# ---------------------------------------------------------------------------


class CaseUpdateRow(Base):
    """Append-only audit record of one detected change."""

    __tablename__ = "case_updates"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    case_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("tracked_cases.id", ondelete="CASCADE"), nullable=False, index=True
    )
    update_type: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    field_name: Mapped[str] = mapped_column(String(50), nullable=False)
    old_value: Mapped[str | None] = mapped_column(Text, nullable=True)
    new_value: Mapped[str] = mapped_column(Text, nullable=False)
    details: Mapped[dict[str, Any]] = mapped_column(JSONB, nullable=False, server_default="{}")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    case: Mapped["TrackedCaseRow"] = relationship(back_populates="updates")

    def __repr__(self) -> str:
        return f"<CaseUpdateRow id={self.id} case={self.case_id!r} type={self.update_type!r}>"


# ---------------------------------------------------------------------------
# alert_log
# ---------------------------------------------------------------------------


class AlertLogRow(Base):
    """One delivery attempt of one notification over one channel."""

    __tablename__ = "alert_log"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("profiles.id", ondelete="CASCADE"), nullable=False, index=True
    )
    case_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("tracked_cases.id", ondelete="SET NULL"), nullable=True, index=True
    )
    alert_type: Mapped[str] = mapped_column(String(20), nullable=False)
    subject: Mapped[str] = mapped_column(Text, nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20), nullable=False, server_default="pending", index=True
    )
    error_details: Mapped[str | None] = mapped_column(Text, nullable=True)
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )

    __table_args__ = (Index("ix_alert_log_case_sent", "case_id", "sent_at"),)

    def __repr__(self) -> str:
        return (
            f"<AlertLogRow id={self.id} case={self.case_id!r} "
            f"type={self.alert_type!r} status={self.status!r}>"
        )
