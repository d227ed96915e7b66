"""Tests for database repository classes.

Requires a running Postgres instance (Docker). Each test gets its own
transaction that is rolled back, so tests are isolated and leave no
persistent data.
"""

from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.db.repositories import AlertLogRepo, CaseRepo, CaseUpdateRepo, ProfileRepo
from src.models.database import ProfileRow, TrackedCaseRow
from src.models.domain import (
    AlertChannel,
    ChangeEvent,
    ChangeKind,
    DeliveryAttempt,
    DeliveryStatus,
)

pytestmark = pytest.mark.integration

_COUNTER = 0


async def _make_profile(session: AsyncSession, **overrides: object) -> ProfileRow:
    defaults: dict[str, object] = {
        "full_name": "Asha Verma",
        "email": "asha@example.com",
        "telegram_chat_id": "424242",
        "telegram_alerts": True,
    }
    defaults.update(overrides)
    return await ProfileRepo(session).create(ProfileRow(**defaults))


def _make_case(user_id: str, **overrides: object) -> TrackedCaseRow:
    global _COUNTER
    _COUNTER += 1
    defaults: dict[str, object] = {
        "user_id": user_id,
        "court_category": "DC",
        "case_type": "CS",
        "case_number": str(1000 + _COUNTER),
        "case_year": "2023",
        "title": f"Test Case #{_COUNTER}",
        "current_status": "Pending",
    }
    defaults.update(overrides)
    return TrackedCaseRow(**defaults)


# ===========================================================================
# ProfileRepo
# ===========================================================================


class TestProfileRepo:
    async def test_create_and_get_by_id(self, db_session: AsyncSession):
        created = await _make_profile(db_session)
        assert created.id is not None

        fetched = await ProfileRepo(db_session).get_by_id(created.id)
        assert fetched is not None
        assert fetched.email == "asha@example.com"
        assert fetched.email_alerts is True
        assert fetched.reminder_hours_before == 24

    async def test_missing_profile(self, db_session: AsyncSession):
        assert await ProfileRepo(db_session).get_by_id("no-such-user") is None


# ===========================================================================
# CaseRepo
# ===========================================================================


class TestCaseRepo:
    async def test_create_and_get_by_id(self, db_session: AsyncSession):
        profile = await _make_profile(db_session)
        repo = CaseRepo(db_session)

        created = await repo.create(_make_case(profile.id, title="Ravi Kumar vs State"))
        assert created.id is not None

        fetched = await repo.get_by_id(created.id)
        assert fetched is not None
        assert fetched.title == "Ravi Kumar vs State"
        assert fetched.is_active is True
        assert fetched.hearing_history == []

    async def test_find_duplicate_by_court_key(self, db_session: AsyncSession):
        profile = await _make_profile(db_session)
        repo = CaseRepo(db_session)
        created = await repo.create(_make_case(profile.id, case_number="77"))

        found = await repo.find_duplicate(
            profile.id, court_category="DC", case_number="77", case_year="2023"
        )
        assert found is not None
        assert found.id == created.id

        other_year = await repo.find_duplicate(
            profile.id, court_category="DC", case_number="77", case_year="2024"
        )
        assert other_year is None

    async def test_find_duplicate_by_cnr(self, db_session: AsyncSession):
        profile = await _make_profile(db_session)
        repo = CaseRepo(db_session)
        created = await repo.create(
            _make_case(profile.id, court_category="HC", cnr_number="DLHC010012342025")
        )

        found = await repo.find_duplicate(
            profile.id,
            court_category="HC",
            case_number="",
            case_year="",
            cnr_number="DLHC010012342025",
        )
        assert found is not None
        assert found.id == created.id

    async def test_find_duplicate_scoped_to_user(self, db_session: AsyncSession):
        owner = await _make_profile(db_session)
        stranger = await _make_profile(db_session, email="other@example.com")
        repo = CaseRepo(db_session)
        await repo.create(_make_case(owner.id, case_number="88"))

        found = await repo.find_duplicate(
            stranger.id, court_category="DC", case_number="88", case_year="2023"
        )
        assert found is None

    async def test_find_duplicate_without_keys(self, db_session: AsyncSession):
        profile = await _make_profile(db_session)
        found = await CaseRepo(db_session).find_duplicate(
            profile.id, court_category="DC", case_number="", case_year=""
        )
        assert found is None

    async def test_list_active_least_recently_checked_first(self, db_session: AsyncSession):
        profile = await _make_profile(db_session)
        repo = CaseRepo(db_session)
        now = datetime(2025, 2, 28, 9, 0, tzinfo=UTC)

        recent = await repo.create(_make_case(profile.id, last_checked_at=now))
        older = await repo.create(
            _make_case(profile.id, last_checked_at=now - timedelta(days=2))
        )
        never = await repo.create(_make_case(profile.id))
        await repo.create(_make_case(profile.id, is_active=False))

        active = await repo.list_active()
        assert [row.id for row in active] == [never.id, older.id, recent.id]

    async def test_list_for_user(self, db_session: AsyncSession):
        profile = await _make_profile(db_session)
        other = await _make_profile(db_session, email="other@example.com")
        repo = CaseRepo(db_session)
        for _ in range(3):
            await repo.create(_make_case(profile.id))
        await repo.create(_make_case(other.id))

        assert len(await repo.list_for_user(profile.id)) == 3
        assert len(await repo.list_for_user(profile.id, limit=2)) == 2

    async def test_list_for_user_filters(self, db_session: AsyncSession):
        profile = await _make_profile(db_session)
        repo = CaseRepo(db_session)
        civil = await repo.create(_make_case(profile.id, tags=["property"]))
        writ = await repo.create(
            _make_case(
                profile.id,
                court_category="HC",
                current_status="Disposed",
                tags=["property", "urgent"],
            )
        )
        await repo.create(_make_case(profile.id, is_active=False, tags=["urgent"]))

        by_court = await repo.list_for_user(profile.id, court_category="HC")
        by_status = await repo.list_for_user(profile.id, status="Disposed")
        by_tag = await repo.list_for_user(profile.id, tag="urgent")
        shared_tag = await repo.list_for_user(profile.id, tag="property")

        assert [row.id for row in by_court] == [writ.id]
        assert [row.id for row in by_status] == [writ.id]
        assert [row.id for row in by_tag] == [writ.id]
        assert {row.id for row in shared_tag} == {civil.id, writ.id}
        assert len(await repo.list_for_user(profile.id, active_only=False)) == 3

    async def test_update_fields(self, db_session: AsyncSession):
        profile = await _make_profile(db_session)
        repo = CaseRepo(db_session)
        created = await repo.create(_make_case(profile.id))

        updated = await repo.update_fields(
            created.id,
            {"current_status": "Disposed", "orders": [{"order_date": "2025-02-10"}]},
        )
        assert updated is True

        await db_session.refresh(created)
        assert created.current_status == "Disposed"
        assert created.orders == [{"order_date": "2025-02-10"}]

    async def test_update_fields_missing_case(self, db_session: AsyncSession):
        repo = CaseRepo(db_session)
        assert await repo.update_fields("no-such-case", {"current_status": "X"}) is False
        assert await repo.update_fields("no-such-case", {}) is False

    async def test_delete_cascades_history(self, db_session: AsyncSession):
        profile = await _make_profile(db_session)
        repo = CaseRepo(db_session)
        created = await repo.create(_make_case(profile.id))
        event = ChangeEvent(field="case", kind=ChangeKind.NEW_CASE, new_value="Pending")
        await CaseUpdateRepo(db_session).append(created.id, event)

        assert await repo.delete(created.id) is True
        db_session.expunge_all()

        assert await repo.get_by_id(created.id) is None
        assert await CaseUpdateRepo(db_session).list_for_case(created.id) == []
        assert await repo.delete(created.id) is False

    async def test_mark_checked(self, db_session: AsyncSession):
        profile = await _make_profile(db_session)
        repo = CaseRepo(db_session)
        created = await repo.create(_make_case(profile.id))
        checked_at = datetime(2025, 2, 28, 9, 0, tzinfo=UTC)

        assert await repo.mark_checked(created.id, checked_at) is True

        await db_session.refresh(created)
        assert created.last_checked_at == checked_at
        assert created.current_status == "Pending"


# ===========================================================================
# CaseUpdateRepo
# ===========================================================================


class TestCaseUpdateRepo:
    async def test_append_and_list(self, db_session: AsyncSession):
        profile = await _make_profile(db_session)
        case = await CaseRepo(db_session).create(_make_case(profile.id))
        repo = CaseUpdateRepo(db_session)

        event = ChangeEvent(
            field="current_status",
            kind=ChangeKind.STATUS_CHANGE,
            old_value="Pending",
            new_value="Disposed",
        )
        row = await repo.append(case.id, event, details={"source": "ecourts"})
        assert row.id is not None
        assert row.update_type == "status_change"
        assert row.field_name == "current_status"

        rows = await repo.list_for_case(case.id)
        assert len(rows) == 1
        assert rows[0].old_value == "Pending"
        assert rows[0].new_value == "Disposed"
        assert rows[0].details == {"source": "ecourts"}

    async def test_details_default_to_empty(self, db_session: AsyncSession):
        profile = await _make_profile(db_session)
        case = await CaseRepo(db_session).create(_make_case(profile.id))
        event = ChangeEvent(field="case", kind=ChangeKind.NEW_CASE, new_value="Pending")

        row = await CaseUpdateRepo(db_session).append(case.id, event)
        assert row.details == {}
        assert row.old_value is None

    async def test_list_limit(self, db_session: AsyncSession):
        profile = await _make_profile(db_session)
        case = await CaseRepo(db_session).create(_make_case(profile.id))
        repo = CaseUpdateRepo(db_session)
        for day in range(1, 4):
            event = ChangeEvent(
                field="next_hearing_date",
                kind=ChangeKind.HEARING_DATE_CHANGE,
                new_value=f"2025-03-0{day}",
            )
            await repo.append(case.id, event)

        assert len(await repo.list_for_case(case.id, limit=2)) == 2
        assert await repo.list_for_case("no-such-case") == []


# ===========================================================================
# AlertLogRepo
# ===========================================================================


class TestAlertLogRepo:
    async def test_record_attempt(self, db_session: AsyncSession):
        profile = await _make_profile(db_session)
        case = await CaseRepo(db_session).create(_make_case(profile.id))

        attempt = DeliveryAttempt(
            channel=AlertChannel.TELEGRAM,
            status=DeliveryStatus.FAILED,
            subject="Case Update: A vs B - STATUS CHANGE",
            error="chat not found",
        )
        row = await AlertLogRepo(db_session).record(
            user_id=profile.id, case_id=case.id, attempt=attempt, message="<b>hi</b>"
        )

        assert row.id is not None
        assert row.alert_type == "telegram"
        assert row.status == "failed"
        assert row.error_details == "chat not found"

    async def test_reminder_logged_since(self, db_session: AsyncSession):
        profile = await _make_profile(db_session)
        case = await CaseRepo(db_session).create(_make_case(profile.id))
        repo = AlertLogRepo(db_session)
        day_ago = datetime.now(UTC) - timedelta(days=1)

        assert await repo.reminder_logged_since(case.id, day_ago) is False

        attempt = DeliveryAttempt(
            channel=AlertChannel.EMAIL,
            status=DeliveryStatus.SENT,
            subject="Case Update: A vs B - HEARING REMINDER",
        )
        await repo.record(user_id=profile.id, case_id=case.id, attempt=attempt, message="x")

        assert await repo.reminder_logged_since(case.id, day_ago) is True
        tomorrow = datetime.now(UTC) + timedelta(days=1)
        assert await repo.reminder_logged_since(case.id, tomorrow) is False

    async def test_other_alerts_are_not_reminders(self, db_session: AsyncSession):
        profile = await _make_profile(db_session)
        case = await CaseRepo(db_session).create(_make_case(profile.id))
        repo = AlertLogRepo(db_session)

        attempt = DeliveryAttempt(
            channel=AlertChannel.EMAIL,
            status=DeliveryStatus.SENT,
            subject="Case Update: A vs B - STATUS CHANGE",
        )
        await repo.record(user_id=profile.id, case_id=case.id, attempt=attempt, message="x")

        since = datetime.now(UTC) - timedelta(days=1)
        assert await repo.reminder_logged_since(case.id, since) is False

    async def test_failed_reminder_does_not_count(self, db_session: AsyncSession):
        profile = await _make_profile(db_session)
        case = await CaseRepo(db_session).create(_make_case(profile.id))
        repo = AlertLogRepo(db_session)

        attempt = DeliveryAttempt(
            channel=AlertChannel.TELEGRAM,
            status=DeliveryStatus.FAILED,
            subject="Case Update: A vs B - HEARING REMINDER",
            error="chat not found",
        )
        await repo.record(user_id=profile.id, case_id=case.id, attempt=attempt, message="x")

        since = datetime.now(UTC) - timedelta(days=1)
        assert await repo.reminder_logged_since(case.id, since) is False
