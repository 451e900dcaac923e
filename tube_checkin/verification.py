"""Check-in verification decisions and challenge verification rules."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .config import (
    DEFAULT_PHOTO_MAX_AGE_SECONDS,
    PHOTO_MAX_AGE_SECONDS,
    parse_positive_int,
    resolve_geofence_radius,
)
from .geofence import determine_gps_source, haversine_m, round_half_up
from .models import (
    AppSettings,
    GeodeticPoint,
    GPSSource,
    StationVisitRecord,
    VerificationLevel,
)


@dataclass(frozen=True, slots=True)
class CheckinEvidence:
    """Everything known about a photo check-in when deciding its status.

    Attributes:
        ocr_passed: The roundel OCR produced readable station text.
        station_name_matched: The OCR text matched the claimed station.
        captured_at: EXIF ``DateTimeOriginal`` of the photo, if present.
            EXIF carries no zone, so a naive value is read as UTC.
        loaded_at: When the photo was uploaded to the app.
        photo_point: EXIF GPS coordinates, if present.
        load_point: Device GPS at upload time, if available.
        station_point: Coordinates of the claimed station.
    """

    ocr_passed: bool
    station_name_matched: bool
    captured_at: Optional[datetime]
    loaded_at: datetime
    photo_point: Optional[GeodeticPoint]
    load_point: Optional[GeodeticPoint]
    station_point: GeodeticPoint


@dataclass(frozen=True, slots=True)
class VerificationDecision:
    verification_status: VerificationLevel
    pending_reason: Optional[str]
    verification_method: str
    time_diff_seconds: Optional[float]
    gps_distance_meters: Optional[float]
    gps_source: GPSSource


def _epoch_seconds(value: datetime) -> float:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.timestamp()


def derive_verification_status(
    evidence: CheckinEvidence,
    *,
    radius_meters: Any = None,
    photo_max_age_seconds: Any = None,
    settings: AppSettings | None = None,
) -> VerificationDecision:
    """Classify a check-in from its OCR, timestamp and GPS evidence.

    Steps, first match wins:

    1. OCR or station-name mismatch -> ``failed``.
    2. No EXIF capture time -> ``remote_verified``.
    3. Capture/upload gap above ``photo_max_age_seconds`` -> ``remote_verified``.
    4. EXIF GPS, else device GPS, within the radius -> ``location_verified``.
    5. Otherwise -> ``photo_verified``.

    Explicit ``radius_meters``/``photo_max_age_seconds`` beat the store's
    ``settings``, which beat the environment defaults.
    """

    radius = resolve_geofence_radius(
        radius_meters, settings.gps_radius_meters if settings else None
    )
    max_age = (
        parse_positive_int(photo_max_age_seconds)
        or parse_positive_int(settings.photo_max_age_seconds if settings else None)
        or parse_positive_int(PHOTO_MAX_AGE_SECONDS)
        or DEFAULT_PHOTO_MAX_AGE_SECONDS
    )

    if not evidence.ocr_passed or not evidence.station_name_matched:
        return VerificationDecision(
            verification_status=VerificationLevel.FAILED,
            pending_reason="ocr_failed" if not evidence.ocr_passed else "station_mismatch",
            verification_method="ai_image",
            time_diff_seconds=None,
            gps_distance_meters=None,
            gps_source=GPSSource.NONE,
        )

    if evidence.captured_at is None:
        return VerificationDecision(
            verification_status=VerificationLevel.REMOTE_VERIFIED,
            pending_reason="no_exif_timestamp",
            verification_method="ai_image",
            time_diff_seconds=None,
            gps_distance_meters=None,
            gps_source=GPSSource.NONE,
        )

    time_diff = abs(_epoch_seconds(evidence.loaded_at) - _epoch_seconds(evidence.captured_at))
    if time_diff > max_age:
        return VerificationDecision(
            verification_status=VerificationLevel.REMOTE_VERIFIED,
            pending_reason="time_exceeded",
            verification_method="ai_image",
            time_diff_seconds=round_half_up(time_diff),
            gps_distance_meters=None,
            gps_source=determine_gps_source(evidence.photo_point, evidence.load_point),
        )

    gps_source = GPSSource.NONE
    gps_distance: Optional[float] = None
    within = False

    if evidence.photo_point is not None:
        exif_distance = haversine_m(evidence.photo_point, evidence.station_point)
        gps_distance = round_half_up(exif_distance)
        gps_source = GPSSource.EXIF
        within = exif_distance <= radius

    if not within and evidence.load_point is not None:
        load_distance = haversine_m(evidence.load_point, evidence.station_point)
        if gps_source is GPSSource.NONE or load_distance < (gps_distance or float("inf")):
            gps_distance = round_half_up(load_distance)
            gps_source = GPSSource.DEVICE
        if load_distance <= radius:
            within = True
            gps_source = GPSSource.DEVICE

    if within:
        return VerificationDecision(
            verification_status=VerificationLevel.LOCATION_VERIFIED,
            pending_reason=None,
            verification_method="gps",
            time_diff_seconds=round_half_up(time_diff),
            gps_distance_meters=gps_distance,
            gps_source=gps_source,
        )

    return VerificationDecision(
        verification_status=VerificationLevel.PHOTO_VERIFIED,
        pending_reason=None,
        verification_method="ai_image",
        time_diff_seconds=round_half_up(time_diff),
        gps_distance_meters=gps_distance,
        gps_source=gps_source,
    )


# ---------------------------------------------------------------------------
# Challenge verification rules
# ---------------------------------------------------------------------------
# A challenge requiring a level accepts that level and every stronger one.
ACCEPTABLE_STATUSES: Dict[VerificationLevel, Tuple[VerificationLevel, ...]] = {
    VerificationLevel.LOCATION_VERIFIED: (VerificationLevel.LOCATION_VERIFIED,),
    VerificationLevel.PHOTO_VERIFIED: (
        VerificationLevel.LOCATION_VERIFIED,
        VerificationLevel.PHOTO_VERIFIED,
    ),
    VerificationLevel.REMOTE_VERIFIED: (
        VerificationLevel.LOCATION_VERIFIED,
        VerificationLevel.PHOTO_VERIFIED,
        VerificationLevel.REMOTE_VERIFIED,
    ),
}

LEVEL_LABELS: Dict[VerificationLevel, str] = {
    VerificationLevel.LOCATION_VERIFIED: "Location Verified",
    VerificationLevel.PHOTO_VERIFIED: "Photo Verified",
    VerificationLevel.REMOTE_VERIFIED: "Remote Verified",
}


@dataclass(frozen=True, slots=True)
class ChallengeCompletion:
    is_valid: bool
    failed_stations: List[str] = field(default_factory=list)
    message: str = ""


def validate_challenge_completion(
    visits: Sequence[StationVisitRecord],
    required: VerificationLevel | str = VerificationLevel.REMOTE_VERIFIED,
) -> ChallengeCompletion:
    """Check every visit meets the challenge's minimum verification level.

    Visits without a recorded verification status are treated as remote
    verified (legacy rows predate the column).
    """

    required_level = VerificationLevel(required)
    if required_level not in ACCEPTABLE_STATUSES:
        raise ValueError(f"{required_level.value} is not a challenge requirement")
    acceptable = ACCEPTABLE_STATUSES[required_level]

    failed = [
        visit.station_id
        for visit in visits
        if (visit.verification_status or VerificationLevel.REMOTE_VERIFIED) not in acceptable
    ]
    if not failed:
        return ChallengeCompletion(True, [], "All stations meet verification requirements")
    message = (
        f"{len(failed)} station(s) do not meet the "
        f"{LEVEL_LABELS[required_level]} requirement"
    )
    return ChallengeCompletion(False, failed, message)


def highest_verification_level(
    visits: Sequence[StationVisitRecord],
) -> VerificationLevel | None:
    """Return the strictest level that every visit satisfies, if any."""

    if not visits:
        return None
    statuses = [visit.verification_status for visit in visits]
    if all(status is VerificationLevel.LOCATION_VERIFIED for status in statuses):
        return VerificationLevel.LOCATION_VERIFIED
    if all(status in ACCEPTABLE_STATUSES[VerificationLevel.PHOTO_VERIFIED] for status in statuses):
        return VerificationLevel.PHOTO_VERIFIED
    if all(status is not None and status is not VerificationLevel.FAILED for status in statuses):
        return VerificationLevel.REMOTE_VERIFIED
    return None


def activity_verification_level(
    visits: Sequence[StationVisitRecord],
) -> VerificationLevel | None:
    """Return the activity's overall level: its weakest visit."""

    if not visits:
        return None
    statuses = [visit.verification_status for visit in visits]
    if VerificationLevel.REMOTE_VERIFIED in statuses:
        return VerificationLevel.REMOTE_VERIFIED
    if VerificationLevel.PHOTO_VERIFIED in statuses:
        return VerificationLevel.PHOTO_VERIFIED
    if all(status is VerificationLevel.LOCATION_VERIFIED for status in statuses):
        return VerificationLevel.LOCATION_VERIFIED
    return None


__all__ = [
    "ACCEPTABLE_STATUSES",
    "ChallengeCompletion",
    "CheckinEvidence",
    "VerificationDecision",
    "activity_verification_level",
    "derive_verification_status",
    "highest_verification_level",
    "validate_challenge_completion",
]
