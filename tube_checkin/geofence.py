"""Geofence checks with GPS provenance tracking.

The functions here are pure: they perform no I/O beyond the optional,
injected telemetry sink and never raise on odd numeric input. A NaN
coordinate simply yields a NaN distance that fails the check.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging
import math
from typing import Any, Optional, Sequence

import numpy as np
from numpy.typing import NDArray

from .config import (
    CLIENT_DISTANCE_TOLERANCE_M,
    EARTH_RADIUS_M,
    GEOFENCE_TELEMETRY_ENABLED,
    resolve_geofence_radius,
)
from .models import (
    GeodeticPoint,
    GeofenceCheck,
    GeofenceResult,
    GPSSource,
    ServerGeofenceCheck,
)
from .telemetry import TelemetryEvent, TelemetrySink, emit_safely, null_sink

LOGGER = logging.getLogger(__name__)

MetricArray = NDArray[np.float64]


def haversine_m(first: GeodeticPoint, second: GeodeticPoint) -> float:
    """Great-circle distance in metres between two points."""

    sin = math.sin
    cos = math.cos
    radians = math.radians
    lat1_rad = radians(first.lat)
    lat2_rad = radians(second.lat)
    delta_lat = radians(second.lat - first.lat)
    delta_lon = radians(second.lng - first.lng)
    sin_half_lat = sin(delta_lat / 2.0)
    sin_half_lon = sin(delta_lon / 2.0)
    a = sin_half_lat**2 + cos(lat1_rad) * cos(lat2_rad) * sin_half_lon**2
    c = 2.0 * math.atan2(math.sqrt(a), math.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def haversine_many(
    origin: GeodeticPoint,
    lats: Sequence[float] | MetricArray,
    lons: Sequence[float] | MetricArray,
) -> MetricArray:
    """Vectorised Haversine distance from ``origin`` to every (lat, lon) pair."""

    lat2 = np.radians(np.asarray(lats, dtype=float))
    lon2 = np.radians(np.asarray(lons, dtype=float))
    lat1 = math.radians(origin.lat)
    lon1 = math.radians(origin.lng)
    delta_lat = lat2 - lat1
    delta_lon = lon2 - lon1
    a = np.sin(delta_lat / 2.0) ** 2 + math.cos(lat1) * np.cos(lat2) * np.sin(delta_lon / 2.0) ** 2
    c = 2.0 * np.arctan2(np.sqrt(a), np.sqrt(1.0 - a))
    return EARTH_RADIUS_M * c


def round_half_up(value: float) -> float:
    """Round to the nearest whole number, halves away from zero for positives.

    Non-finite values are returned unchanged.
    """

    if not math.isfinite(value):
        return value
    return float(math.floor(value + 0.5))


def is_within_geofence(
    user_point: GeodeticPoint,
    target_point: GeodeticPoint,
    radius_meters: Any = None,
) -> GeofenceCheck:
    """Check whether ``user_point`` lies within the radius of ``target_point``.

    The distance is rounded to a whole metre before the comparison, and the
    boundary is inclusive: a point exactly ``radius`` metres away passes.
    """

    radius = resolve_geofence_radius(radius_meters)
    distance = round_half_up(haversine_m(user_point, target_point))
    return GeofenceCheck(within_geofence=distance <= radius, distance=distance)


def determine_gps_source(
    exif_point: Optional[GeodeticPoint],
    device_point: Optional[GeodeticPoint],
) -> GPSSource:
    """Pick the coordinate source: EXIF always wins over a live device fix."""

    if exif_point is not None:
        return GPSSource.EXIF
    if device_point is not None:
        return GPSSource.DEVICE
    return GPSSource.NONE


def _coords_for_source(
    source: GPSSource,
    exif_point: Optional[GeodeticPoint],
    device_point: Optional[GeodeticPoint],
) -> Optional[GeodeticPoint]:
    if source is GPSSource.EXIF:
        return exif_point
    if source is GPSSource.DEVICE:
        return device_point
    return None


def _point_payload(point: Optional[GeodeticPoint]) -> Optional[dict[str, float]]:
    if point is None:
        return None
    return {"lat": point.lat, "lng": point.lng}


def _telemetry_event(result: GeofenceResult, target_point: GeodeticPoint) -> TelemetryEvent:
    return {
        "result": "PASS" if result.within_geofence else "FAIL",
        "distance": result.distance,
        "radius": result.radius_used,
        "gps_source": result.gps_source.value,
        "target_coords": _point_payload(target_point),
        "user_coords": _point_payload(result.coords),
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


def validate_geofence(
    exif_point: Optional[GeodeticPoint],
    device_point: Optional[GeodeticPoint],
    target_point: GeodeticPoint,
    telemetry_enabled: bool = False,
    *,
    radius_meters: Any = None,
    configured_radius: Any = None,
    sink: TelemetrySink | None = None,
) -> GeofenceResult:
    """Validate a check-in location against a target station.

    Without any coordinate the result fails closed (``within_geofence=False``,
    ``distance=None``). Provenance, coordinates and the resolved radius are
    always populated.
    """

    gps_source = determine_gps_source(exif_point, device_point)
    coords = _coords_for_source(gps_source, exif_point, device_point)
    radius_used = resolve_geofence_radius(radius_meters, configured_radius)

    within = False
    distance: Optional[float] = None
    if coords is not None:
        check = is_within_geofence(coords, target_point, radius_used)
        within = check.within_geofence
        distance = check.distance

    result = GeofenceResult(
        within_geofence=within,
        distance=distance,
        gps_source=gps_source,
        coords=coords,
        radius_used=radius_used,
    )
    if telemetry_enabled:
        emit_safely(sink or null_sink, _telemetry_event(result, target_point))
    return result


class GeofenceValidator:
    """Geofence validation bound to a configured radius and telemetry sink.

    ``radius_meters`` is the injected configuration value; when it is missing
    or invalid the environment and then the 750 m default apply, re-read on
    every call.
    """

    def __init__(
        self,
        *,
        radius_meters: Any = None,
        telemetry_sink: TelemetrySink | None = None,
        telemetry_enabled: bool | None = None,
    ) -> None:
        self._radius_meters = radius_meters
        self._sink = telemetry_sink or null_sink
        if telemetry_enabled is None:
            telemetry_enabled = GEOFENCE_TELEMETRY_ENABLED
        self._telemetry_enabled = telemetry_enabled

    def radius(self, override: Any = None) -> int:
        return resolve_geofence_radius(override, self._radius_meters)

    def is_within(
        self,
        user_point: GeodeticPoint,
        target_point: GeodeticPoint,
        radius_meters: Any = None,
    ) -> GeofenceCheck:
        return is_within_geofence(user_point, target_point, self.radius(radius_meters))

    def validate(
        self,
        exif_point: Optional[GeodeticPoint],
        device_point: Optional[GeodeticPoint],
        target_point: GeodeticPoint,
        *,
        radius_meters: Any = None,
        telemetry_enabled: bool | None = None,
    ) -> GeofenceResult:
        if telemetry_enabled is None:
            telemetry_enabled = self._telemetry_enabled
        return validate_geofence(
            exif_point,
            device_point,
            target_point,
            telemetry_enabled,
            radius_meters=radius_meters,
            configured_radius=self._radius_meters,
            sink=self._sink,
        )


def verify_client_distance(
    user_point: GeodeticPoint,
    target_point: GeodeticPoint,
    station_id: str,
    gps_source: GPSSource | str,
    client_distance: Optional[float] = None,
    radius_meters: Any = None,
) -> ServerGeofenceCheck:
    """Recompute a client's geofence check server-side.

    The pass/fail uses the unrounded distance. When ``client_distance`` is
    given, the client and server figures must agree within 1 m; disagreement is
    logged as a possible tampering signal but does not change ``valid``.
    """

    source = GPSSource(gps_source)
    raw_distance = haversine_m(user_point, target_point)
    radius = resolve_geofence_radius(radius_meters)
    valid = raw_distance <= radius

    match: Optional[bool] = None
    if client_distance is not None:
        difference = abs(raw_distance - float(client_distance))
        match = difference <= CLIENT_DISTANCE_TOLERANCE_M
        if not match:
            LOGGER.warning(
                "Geofence calculation mismatch station=%s client=%s server=%.1f diff=%.1f source=%s",
                station_id,
                client_distance,
                raw_distance,
                difference,
                source.value,
            )

    check = ServerGeofenceCheck(
        station_id=station_id,
        valid=valid,
        distance=round_half_up(raw_distance),
        radius_used=radius,
        gps_source=source,
        client_server_match=match,
        timestamp=datetime.now(timezone.utc),
    )
    LOGGER.info(
        "Server geofence validation station=%s result=%s distance=%s radius=%s source=%s client_match=%s",
        station_id,
        "PASS" if valid else "FAIL",
        check.distance,
        radius,
        source.value,
        match,
    )
    return check


__all__ = [
    "GeofenceValidator",
    "determine_gps_source",
    "haversine_m",
    "haversine_many",
    "is_within_geofence",
    "round_half_up",
    "validate_geofence",
    "verify_client_distance",
]
