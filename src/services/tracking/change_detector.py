"""Pure diff between a tracked case's last known state and a fresh snapshot.

Four rules, evaluated independently and in a fixed order, so one check
can emit several events. Values are compared as trimmed strings with no
other normalisation. An empty fresh value never produces an event.
"""

from __future__ import annotations

from src.models.domain import (
    UNKNOWN_STATUS,
    CaseSnapshot,
    CaseState,
    ChangeEvent,
    ChangeKind,
)


def _clean(value: str | None) -> str:
    return value.strip() if value else ""


def _order_description(snapshot: CaseSnapshot) -> str:
    date = _clean(snapshot.last_order_date)
    summary = _clean(snapshot.last_order_summary)
    return f"{date}: {summary}" if summary else date


def detect(previous: CaseState, fresh: CaseSnapshot) -> list[ChangeEvent]:
    """Change events implied by ``fresh``, in rule order.

    A previous status of ``"Unknown"`` (or none at all) means the case
    has never been resolved, so the first real status is not a change.
    """
    events: list[ChangeEvent] = []

    old_status = _clean(previous.current_status)
    new_status = _clean(fresh.current_status)
    if new_status and new_status != old_status and old_status not in ("", UNKNOWN_STATUS):
        events.append(
            ChangeEvent(
                field="current_status",
                kind=ChangeKind.STATUS_CHANGE,
                old_value=old_status,
                new_value=new_status,
            )
        )

    old_hearing = _clean(previous.next_hearing_date)
    new_hearing = _clean(fresh.next_hearing_date)
    if new_hearing and new_hearing != old_hearing:
        events.append(
            ChangeEvent(
                field="next_hearing_date",
                kind=ChangeKind.HEARING_DATE_CHANGE,
                old_value=old_hearing or None,
                new_value=new_hearing,
            )
        )

    old_order = _clean(previous.last_order_date)
    new_order = _clean(fresh.last_order_date)
    if new_order and new_order != old_order:
        events.append(
            ChangeEvent(
                field="last_order_date",
                kind=ChangeKind.NEW_ORDER,
                old_value=old_order or None,
                new_value=_order_description(fresh),
            )
        )

    old_judges = _clean(previous.judges)
    new_judges = _clean(fresh.judges)
    if new_judges and new_judges != old_judges:
        events.append(
            ChangeEvent(
                field="judges",
                kind=ChangeKind.JUDGE_CHANGE,
                old_value=old_judges or None,
                new_value=new_judges,
            )
        )

    return events
