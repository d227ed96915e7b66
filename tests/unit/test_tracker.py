"""Tests for tracking, editing and removing a user's cases."""

from unittest.mock import AsyncMock

import pytest

from src.core.exceptions import DuplicateCaseError, NotFoundError
from src.models.domain import ChangeKind, CourtCategory
from src.services.tracking.tracker import CaseTracker
from tests.conftest import InMemoryCaseStore, make_identifier, make_snapshot, make_tracked_case


def _tracker(store: InMemoryCaseStore, snapshot: object = None) -> tuple[CaseTracker, AsyncMock]:
    resolver = AsyncMock()
    resolver.resolve_status = AsyncMock(return_value=snapshot)
    return CaseTracker(store=store, resolver=resolver), resolver


class TestTrack:
    async def test_resolved_case_stored_with_snapshot(self):
        store = InMemoryCaseStore()
        snapshot = make_snapshot(current_status="Disposed", next_hearing_date="01-03-2025")
        tracker, _ = _tracker(store, snapshot)

        case = await tracker.track("user-9", make_identifier(), court_name="Saket")

        assert case.user_id == "user-9"
        assert case.title == "Ravi Kumar vs State of Delhi"
        assert case.current_status == "Disposed"
        assert case.next_hearing_date == "01-03-2025"
        assert case.court_name == "Saket"

        ((case_id, event),) = store.events
        assert case_id == case.id
        assert event.kind is ChangeKind.NEW_CASE
        assert event.new_value == "Started tracking Ravi Kumar vs State of Delhi"

    async def test_explicit_title_wins(self):
        store = InMemoryCaseStore()
        tracker, _ = _tracker(store, make_snapshot())
        case = await tracker.track("user-1", make_identifier(), title="  My matter ")
        assert case.title == "My matter"

    async def test_unresolved_case_still_tracked_as_unknown(self):
        store = InMemoryCaseStore()
        tracker, _ = _tracker(store, None)

        case = await tracker.track("user-1", make_identifier())

        assert case.current_status == "Unknown"
        assert case.title == "CS 1234/2023"
        assert len(store.events) == 1

    async def test_cnr_only_fallback_title(self):
        store = InMemoryCaseStore()
        tracker, _ = _tracker(store, None)
        identifier = make_identifier(
            court_category=CourtCategory.HIGH_COURT,
            case_type="",
            case_number="",
            case_year="",
            cnr_number="HCCNR0001",
        )
        case = await tracker.track("user-1", identifier)
        assert case.title == "HCCNR0001"

    async def test_duplicate_rejected_before_resolving(self):
        existing = make_tracked_case()
        store = InMemoryCaseStore([existing])
        tracker, resolver = _tracker(store, make_snapshot())

        with pytest.raises(DuplicateCaseError) as exc_info:
            await tracker.track("user-1", make_identifier())

        assert exc_info.value.details == {"case_id": existing.id}
        resolver.resolve_status.assert_not_called()

    async def test_same_case_for_another_user_allowed(self):
        store = InMemoryCaseStore([make_tracked_case(user_id="someone-else")])
        tracker, _ = _tracker(store, make_snapshot())
        case = await tracker.track("user-1", make_identifier())
        assert len(store.cases) == 2
        assert case.user_id == "user-1"


class TestManage:
    async def test_get_case_with_history(self):
        store = InMemoryCaseStore()
        tracker, _ = _tracker(store, make_snapshot())
        created = await tracker.track("user-1", make_identifier())

        case, updates = await tracker.get_case("user-1", created.id)

        assert case.id == created.id
        assert [u.kind for u in updates] == [ChangeKind.NEW_CASE]

    async def test_foreign_case_not_found(self):
        case = make_tracked_case(user_id="user-2")
        tracker, _ = _tracker(InMemoryCaseStore([case]))

        with pytest.raises(NotFoundError):
            await tracker.get_case("user-1", case.id)
        with pytest.raises(NotFoundError):
            await tracker.update_case("user-1", case.id, {"notes": "mine now"})
        with pytest.raises(NotFoundError):
            await tracker.delete_case("user-1", case.id)

    async def test_update_editable_fields(self):
        case = make_tracked_case()
        store = InMemoryCaseStore([case])
        tracker, _ = _tracker(store)

        updated = await tracker.update_case(
            "user-1", case.id, {"tags": ["urgent"], "is_active": False}
        )

        assert updated.tags == ["urgent"]
        assert updated.is_active is False
        assert await store.list_active() == []

    async def test_synced_fields_not_editable(self):
        case = make_tracked_case()
        store = InMemoryCaseStore([case])
        tracker, _ = _tracker(store)

        with pytest.raises(ValueError, match="current_status"):
            await tracker.update_case("user-1", case.id, {"current_status": "Disposed"})
        assert store.cases[case.id].current_status == "Pending"

    async def test_list_filters_by_court(self):
        dc = make_tracked_case()
        hc = make_tracked_case(
            identifier=make_identifier(court_category=CourtCategory.HIGH_COURT, case_type="WP(C)")
        )
        tracker, _ = _tracker(InMemoryCaseStore([dc, hc]))

        cases = await tracker.list_cases("user-1", court_category=CourtCategory.HIGH_COURT)

        assert [c.id for c in cases] == [hc.id]

    async def test_delete_removes_case(self):
        case = make_tracked_case()
        store = InMemoryCaseStore([case])
        tracker, _ = _tracker(store)

        await tracker.delete_case("user-1", case.id)

        assert store.cases == {}
