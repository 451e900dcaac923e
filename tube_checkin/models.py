"""Immutable value types shared by the geofence, projection and station modules."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, Tuple

from .config import DEFAULT_GEOFENCE_RADIUS_METERS, DEFAULT_PHOTO_MAX_AGE_SECONDS


class GPSSource(str, Enum):
    """Where the coordinate used for a geofence decision came from."""

    EXIF = "exif"
    DEVICE = "device"
    NONE = "none"


class VisitStatus(str, Enum):
    VERIFIED = "verified"
    PENDING = "pending"
    REJECTED = "rejected"


class ActivityMode(str, Enum):
    PLANNED = "planned"
    UNPLANNED = "unplanned"


class VerificationLevel(str, Enum):
    """Outcome of a photo/GPS check-in, ordered strongest to weakest."""

    LOCATION_VERIFIED = "location_verified"
    PHOTO_VERIFIED = "photo_verified"
    REMOTE_VERIFIED = "remote_verified"
    PENDING = "pending"
    FAILED = "failed"


@dataclass(frozen=True, slots=True)
class GeodeticPoint:
    """WGS84 latitude/longitude pair in decimal degrees."""

    lat: float
    lng: float


@dataclass(frozen=True, slots=True)
class GeofenceCheck:
    within_geofence: bool
    distance: float


@dataclass(frozen=True, slots=True)
class GeofenceResult:
    """Outcome of one geofence validation, with the provenance of the fix used.

    ``distance`` and ``coords`` are ``None`` only when no coordinate source was
    available (``gps_source`` is :attr:`GPSSource.NONE`).
    """

    within_geofence: bool
    distance: Optional[float]
    gps_source: GPSSource
    coords: Optional[GeodeticPoint]
    radius_used: int


@dataclass(frozen=True, slots=True)
class ServerGeofenceCheck:
    """Server-side recomputation of a client-reported geofence check."""

    station_id: str
    valid: bool
    distance: float
    radius_used: int
    gps_source: GPSSource
    client_server_match: Optional[bool]
    timestamp: datetime
    server_calculation: bool = True


@dataclass(frozen=True, slots=True)
class ActivityPlanItem:
    station_id: str
    seq_planned: int
    line_hint: Optional[str] = None


@dataclass(frozen=True, slots=True)
class StationVisitRecord:
    """A recorded visit event.

    ``seq_actual`` is a display-oriented chronological position. It is always
    derived by the projector from ``visited_at`` order and never trusted from
    storage.
    """

    station_id: str
    status: VisitStatus
    visited_at: Optional[datetime]
    seq_actual: Optional[int] = None
    verification_status: Optional[VerificationLevel] = None


@dataclass(frozen=True, slots=True)
class UnifiedActivityState:
    """Derived view over an activity's plan and visit log.

    ``remaining`` is ``None`` for unplanned activities, which is distinct from
    an empty tuple (planned, all stations visited).
    """

    activity_id: str
    mode: ActivityMode
    visited: Tuple[StationVisitRecord, ...]
    remaining: Optional[Tuple[ActivityPlanItem, ...]]
    visited_count: int
    total_planned_count: int


@dataclass(frozen=True, slots=True)
class Station:
    station_id: str
    name: str
    lines: Tuple[str, ...] = ()
    point: Optional[GeodeticPoint] = None
    zone: Optional[str] = None


@dataclass(frozen=True, slots=True)
class AppSettings:
    """Admin-tunable thresholds stored in the ``app_settings`` table."""

    gps_radius_meters: int = DEFAULT_GEOFENCE_RADIUS_METERS
    photo_max_age_seconds: int = DEFAULT_PHOTO_MAX_AGE_SECONDS


__all__ = [
    "ActivityMode",
    "ActivityPlanItem",
    "AppSettings",
    "GeodeticPoint",
    "GeofenceCheck",
    "GeofenceResult",
    "GPSSource",
    "ServerGeofenceCheck",
    "Station",
    "StationVisitRecord",
    "UnifiedActivityState",
    "VerificationLevel",
    "VisitStatus",
]
