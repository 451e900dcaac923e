"""Global pytest fixtures & helpers.

Adds project root to path and provides reusable factories for plan items,
visits and stations so individual test modules stay short.
"""
from __future__ import annotations

import os
import sys
from datetime import datetime, timedelta, timezone

import pytest

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from tube_checkin.models import (
    ActivityPlanItem,
    GeodeticPoint,
    Station,
    StationVisitRecord,
    VerificationLevel,
    VisitStatus,
)

WESTMINSTER = GeodeticPoint(51.5033, -0.1195)
BASE_TIME = datetime(2025, 3, 1, 9, 0, tzinfo=timezone.utc)


# --- Factory helpers -------------------------------------------------
def make_plan(*station_ids: str) -> list[ActivityPlanItem]:
    return [
        ActivityPlanItem(station_id=station_id, seq_planned=index)
        for index, station_id in enumerate(station_ids, start=1)
    ]


def make_visit(
    station_id: str,
    status: VisitStatus | str = VisitStatus.VERIFIED,
    minutes: int | None = 0,
    verification: VerificationLevel | None = None,
    seq_actual: int | None = None,
) -> StationVisitRecord:
    visited_at = None if minutes is None else BASE_TIME + timedelta(minutes=minutes)
    return StationVisitRecord(
        station_id=station_id,
        status=VisitStatus(status),
        visited_at=visited_at,
        seq_actual=seq_actual,
        verification_status=verification,
    )


def make_stations() -> list[Station]:
    return [
        Station("940GZZLUWSM", "Westminster", ("Circle", "District", "Jubilee"), WESTMINSTER),
        Station("940GZZLUWLO", "Waterloo", ("Bakerloo", "Jubilee", "Northern"), GeodeticPoint(51.5031, -0.1132)),
        Station("940GZZLUPAC", "Paddington", ("Bakerloo", "Circle", "District", "Hammersmith & City"), GeodeticPoint(51.5154, -0.1755)),
        Station("940GZZLUPAH", "Paddington", ("Circle", "Hammersmith & City"), GeodeticPoint(51.5180, -0.1790)),
        Station("940GZZLUBNK", "Bank", ("Central", "Northern", "Waterloo & City"), GeodeticPoint(51.5133, -0.0886)),
    ]


# --- Fixtures --------------------------------------------------------
@pytest.fixture(autouse=True)
def clear_radius_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep a developer's local GEOFENCE_RADIUS_METERS out of the tests."""

    monkeypatch.delenv("GEOFENCE_RADIUS_METERS", raising=False)


@pytest.fixture
def westminster() -> GeodeticPoint:
    return WESTMINSTER


@pytest.fixture
def stations() -> list[Station]:
    return make_stations()
