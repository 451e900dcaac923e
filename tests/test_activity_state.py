"""Unit tests for the unified activity state projection."""

from __future__ import annotations

from typing import List, Sequence

import pytest

from conftest import make_plan, make_visit
from tube_checkin.activity_state import (
    ActivityStateService,
    order_visits,
    project_activity_state,
)
from tube_checkin.errors import ActivityStateError
from tube_checkin.models import (
    ActivityMode,
    ActivityPlanItem,
    StationVisitRecord,
    VisitStatus,
)


def test_planned_activity_with_one_visit() -> None:
    plan = make_plan("A", "B", "C")
    visits = [make_visit("B", VisitStatus.VERIFIED, minutes=5)]

    state = project_activity_state("act-1", plan, visits)

    assert state.activity_id == "act-1"
    assert state.mode is ActivityMode.PLANNED
    assert [(v.station_id, v.seq_actual) for v in state.visited] == [("B", 1)]
    assert state.remaining is not None
    assert [item.station_id for item in state.remaining] == ["A", "C"]
    assert state.visited_count == 1
    assert state.total_planned_count == 3


def test_unplanned_activity_has_no_remaining() -> None:
    visits = [
        make_visit("X", VisitStatus.VERIFIED, minutes=1),
        make_visit("Y", VisitStatus.PENDING, minutes=2),
    ]

    state = project_activity_state("act-2", [], visits)

    assert state.mode is ActivityMode.UNPLANNED
    assert state.remaining is None
    assert state.visited_count == 2
    assert state.total_planned_count == 0
    assert [v.status for v in state.visited] == [VisitStatus.VERIFIED, VisitStatus.PENDING]


def test_rejected_visits_are_excluded() -> None:
    visits = [
        make_visit("A", VisitStatus.REJECTED, minutes=1),
        make_visit("B", VisitStatus.VERIFIED, minutes=2),
    ]

    state = project_activity_state("act-3", make_plan("A", "B"), visits)

    assert [(v.station_id, v.seq_actual) for v in state.visited] == [("B", 1)]
    assert state.remaining is not None
    assert [item.station_id for item in state.remaining] == ["A"]


def test_plan_without_visits_keeps_full_plan() -> None:
    plan = make_plan("A", "B")
    state = project_activity_state("act-4", plan, [])

    assert state.remaining == tuple(plan)
    assert state.visited == ()
    assert state.visited_count == 0


def test_fully_visited_plan_has_empty_remaining_not_none() -> None:
    visits = [make_visit("A", minutes=1), make_visit("B", minutes=2)]
    state = project_activity_state("act-5", make_plan("A", "B"), visits)

    assert state.mode is ActivityMode.PLANNED
    assert state.remaining == ()


def test_off_plan_visit_counts_but_does_not_touch_remaining() -> None:
    visits = [make_visit("Z", minutes=1), make_visit("A", minutes=2)]
    state = project_activity_state("act-6", make_plan("A", "B"), visits)

    assert state.visited_count == 2
    assert state.remaining is not None
    assert [item.station_id for item in state.remaining] == ["B"]


def test_sequence_follows_timestamps_not_input_order() -> None:
    visits = [
        make_visit("C", minutes=30, seq_actual=1),
        make_visit("A", minutes=10, seq_actual=7),
        make_visit("B", minutes=20, seq_actual=2),
    ]

    state = project_activity_state("act-7", [], visits)

    assert [(v.station_id, v.seq_actual) for v in state.visited] == [
        ("A", 1),
        ("B", 2),
        ("C", 3),
    ]


def test_equal_timestamps_keep_input_order() -> None:
    visits = [make_visit("first", minutes=5), make_visit("second", minutes=5)]
    ordered = order_visits(visits)
    assert [v.station_id for v in ordered] == ["first", "second"]


def test_missing_timestamps_sort_last_in_input_order() -> None:
    visits = [
        make_visit("undated-1", minutes=None),
        make_visit("late", minutes=50),
        make_visit("undated-2", minutes=None),
        make_visit("early", minutes=1),
    ]

    ordered = order_visits(visits)

    assert [v.station_id for v in ordered] == ["early", "late", "undated-1", "undated-2"]
    assert [v.seq_actual for v in ordered] == [1, 2, 3, 4]


def test_remaining_follows_planned_sequence() -> None:
    plan = [
        ActivityPlanItem("C", 3),
        ActivityPlanItem("A", 1, line_hint="Jubilee"),
        ActivityPlanItem("B", 2),
    ]
    state = project_activity_state("act-8", plan, [make_visit("B")])

    assert state.remaining is not None
    assert [item.station_id for item in state.remaining] == ["A", "C"]
    assert state.remaining[0].line_hint == "Jubilee"


def test_projection_is_idempotent_and_does_not_mutate_inputs() -> None:
    plan = make_plan("A", "B", "C")
    visits = [make_visit("C", minutes=3), make_visit("A", VisitStatus.PENDING, minutes=1)]
    snapshot = list(visits)

    first = project_activity_state("act-9", plan, visits)
    second = project_activity_state("act-9", plan, visits)

    assert first == second
    assert visits == snapshot
    assert all(v.seq_actual is None for v in visits)


@pytest.mark.parametrize(
    "visits",
    [
        [],
        [make_visit("A")],
        [make_visit("A"), make_visit("A", minutes=4), make_visit("Q", VisitStatus.PENDING)],
        [make_visit("B", VisitStatus.REJECTED), make_visit("C", minutes=2)],
    ],
)
def test_projection_invariants(visits: List[StationVisitRecord]) -> None:
    plan = make_plan("A", "B", "C")
    state = project_activity_state("act-10", plan, visits)

    visited_ids = {v.station_id for v in state.visited}
    assert state.visited_count == len(state.visited)
    assert state.remaining == tuple(item for item in plan if item.station_id not in visited_ids)


@pytest.mark.parametrize("activity_id", [None, "", "   "])
def test_missing_activity_id_raises(activity_id) -> None:
    with pytest.raises(ActivityStateError):
        project_activity_state(activity_id, make_plan("A"), [])


class FakeStore:
    def __init__(
        self,
        plan: Sequence[ActivityPlanItem],
        visits: Sequence[StationVisitRecord],
    ) -> None:
        self.plan = list(plan)
        self.visits = list(visits)
        self.calls: List[tuple[str, str]] = []

    def list_plan_items(self, activity_id: str) -> List[ActivityPlanItem]:
        self.calls.append(("plan", activity_id))
        return self.plan

    def list_visits(self, activity_id: str) -> List[StationVisitRecord]:
        self.calls.append(("visits", activity_id))
        return self.visits


def test_service_fetches_and_projects() -> None:
    store = FakeStore(make_plan("A", "B"), [make_visit("A", minutes=1)])

    state = ActivityStateService(store).get_state("act-11")

    assert store.calls == [("plan", "act-11"), ("visits", "act-11")]
    assert state.mode is ActivityMode.PLANNED
    assert state.remaining is not None
    assert [item.station_id for item in state.remaining] == ["B"]


def test_service_rejects_missing_id_before_fetching() -> None:
    store = FakeStore([], [])
    with pytest.raises(ActivityStateError):
        ActivityStateService(store).get_state(None)
    assert store.calls == []
