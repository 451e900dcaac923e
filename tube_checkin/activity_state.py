"""Unified activity state: one derived view over planned and free-form journeys.

`project_activity_state` is a pure function of the plan and the raw visit log;
nothing is cached between calls. `ActivityStateService` wires it to a data
store that supplies those two inputs.
"""

from __future__ import annotations

from dataclasses import replace
import logging
from typing import Iterable, List, Optional, Protocol, Sequence, Tuple

from .errors import ActivityStateError
from .models import (
    ActivityMode,
    ActivityPlanItem,
    StationVisitRecord,
    UnifiedActivityState,
    VisitStatus,
)

LOGGER = logging.getLogger(__name__)

_RETAINED_STATUSES = frozenset({VisitStatus.VERIFIED, VisitStatus.PENDING})


class ActivityDataSource(Protocol):
    """Read side of the data store needed to build an activity's state."""

    def list_plan_items(self, activity_id: str) -> Sequence[ActivityPlanItem]: ...

    def list_visits(self, activity_id: str) -> Sequence[StationVisitRecord]: ...


def _require_activity_id(activity_id: Optional[str]) -> str:
    if activity_id is None or not str(activity_id).strip():
        raise ActivityStateError("activity id required")
    return str(activity_id)


def _visit_sort_key(visit: StationVisitRecord) -> Tuple[int, float]:
    # Visits without a usable timestamp go last; sorted() keeps input order for ties.
    if visit.visited_at is None:
        return (1, 0.0)
    return (0, visit.visited_at.timestamp())


def order_visits(raw_visits: Iterable[StationVisitRecord]) -> List[StationVisitRecord]:
    """Drop rejected visits and renumber the rest chronologically from 1.

    Any ``seq_actual`` carried by the input is ignored and replaced.
    """

    retained = [visit for visit in raw_visits if visit.status in _RETAINED_STATUSES]
    retained.sort(key=_visit_sort_key)
    return [replace(visit, seq_actual=index) for index, visit in enumerate(retained, start=1)]


def project_activity_state(
    activity_id: Optional[str],
    plan_items: Sequence[ActivityPlanItem],
    raw_visits: Iterable[StationVisitRecord],
) -> UnifiedActivityState:
    """Merge an activity's plan and visit log into a :class:`UnifiedActivityState`.

    Args:
        activity_id: Identifier of the activity; must be non-empty.
        plan_items: Planned stations. Any non-empty plan makes the activity
            ``planned``.
        raw_visits: Visit log in any order and with any status.

    Returns:
        The derived state. ``remaining`` is the plan (in ``seq_planned`` order)
        minus visited stations for planned activities, ``None`` otherwise.
        Off-plan visits count toward ``visited_count`` only.

    Raises:
        ActivityStateError: If ``activity_id`` is missing or blank.
    """

    resolved_id = _require_activity_id(activity_id)
    visited = tuple(order_visits(raw_visits))

    remaining: Optional[Tuple[ActivityPlanItem, ...]] = None
    if plan_items:
        mode = ActivityMode.PLANNED
        visited_ids = {visit.station_id for visit in visited}
        ordered_plan = sorted(plan_items, key=lambda item: item.seq_planned)
        remaining = tuple(item for item in ordered_plan if item.station_id not in visited_ids)
    else:
        mode = ActivityMode.UNPLANNED

    return UnifiedActivityState(
        activity_id=resolved_id,
        mode=mode,
        visited=visited,
        remaining=remaining,
        visited_count=len(visited),
        total_planned_count=len(plan_items),
    )


class ActivityStateService:
    """Fetch an activity's plan and visits from a store and project them."""

    def __init__(self, store: ActivityDataSource, logger: logging.Logger | None = None):
        self._store = store
        self._log = logger or logging.getLogger(self.__class__.__name__)

    def get_state(self, activity_id: Optional[str]) -> UnifiedActivityState:
        resolved_id = _require_activity_id(activity_id)
        plan_items = list(self._store.list_plan_items(resolved_id))
        visits = list(self._store.list_visits(resolved_id))
        state = project_activity_state(resolved_id, plan_items, visits)
        self._log.debug(
            "Projected activity=%s mode=%s visited=%d planned=%d",
            resolved_id,
            state.mode.value,
            state.visited_count,
            state.total_planned_count,
        )
        return state


__all__ = [
    "ActivityDataSource",
    "ActivityStateService",
    "order_visits",
    "project_activity_state",
]
