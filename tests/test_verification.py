"""Decision-matrix tests for check-in verification and challenge rules."""

from __future__ import annotations

from dataclasses import replace
from datetime import timedelta

import pytest

from conftest import BASE_TIME, WESTMINSTER, make_visit
from tube_checkin.geofence import haversine_m, round_half_up
from tube_checkin.models import AppSettings, GeodeticPoint, GPSSource, VerificationLevel
from tube_checkin.verification import (
    CheckinEvidence,
    activity_verification_level,
    derive_verification_status,
    highest_verification_level,
    validate_challenge_completion,
)

NEAR = GeodeticPoint(51.5040, -0.1190)
FAR = GeodeticPoint(51.5200, -0.1000)
FARTHER = GeodeticPoint(51.5400, -0.0800)


def _evidence(**overrides) -> CheckinEvidence:
    base = CheckinEvidence(
        ocr_passed=True,
        station_name_matched=True,
        captured_at=BASE_TIME,
        loaded_at=BASE_TIME + timedelta(seconds=90),
        photo_point=NEAR,
        load_point=None,
        station_point=WESTMINSTER,
    )
    return replace(base, **overrides)


def test_ocr_failure_is_failed() -> None:
    decision = derive_verification_status(_evidence(ocr_passed=False))
    assert decision.verification_status is VerificationLevel.FAILED
    assert decision.pending_reason == "ocr_failed"
    assert decision.gps_source is GPSSource.NONE


def test_station_mismatch_is_failed() -> None:
    decision = derive_verification_status(_evidence(station_name_matched=False))
    assert decision.verification_status is VerificationLevel.FAILED
    assert decision.pending_reason == "station_mismatch"


def test_missing_exif_timestamp_is_remote() -> None:
    decision = derive_verification_status(_evidence(captured_at=None))
    assert decision.verification_status is VerificationLevel.REMOTE_VERIFIED
    assert decision.pending_reason == "no_exif_timestamp"
    assert decision.time_diff_seconds is None


def test_stale_photo_is_remote() -> None:
    decision = derive_verification_status(
        _evidence(loaded_at=BASE_TIME + timedelta(minutes=20))
    )
    assert decision.verification_status is VerificationLevel.REMOTE_VERIFIED
    assert decision.pending_reason == "time_exceeded"
    assert decision.time_diff_seconds == 1200
    assert decision.gps_source is GPSSource.EXIF


def test_photo_age_threshold_is_configurable() -> None:
    evidence = _evidence(loaded_at=BASE_TIME + timedelta(minutes=20))
    decision = derive_verification_status(evidence, photo_max_age_seconds=3600)
    assert decision.verification_status is VerificationLevel.LOCATION_VERIFIED


def test_exif_gps_within_radius_is_location_verified() -> None:
    decision = derive_verification_status(_evidence())
    assert decision.verification_status is VerificationLevel.LOCATION_VERIFIED
    assert decision.verification_method == "gps"
    assert decision.gps_source is GPSSource.EXIF
    assert decision.gps_distance_meters == round_half_up(haversine_m(NEAR, WESTMINSTER))
    assert decision.time_diff_seconds == 90


def test_device_gps_rescues_far_exif() -> None:
    decision = derive_verification_status(_evidence(photo_point=FAR, load_point=NEAR))
    assert decision.verification_status is VerificationLevel.LOCATION_VERIFIED
    assert decision.gps_source is GPSSource.DEVICE
    assert decision.gps_distance_meters == round_half_up(haversine_m(NEAR, WESTMINSTER))


def test_no_gps_match_is_photo_verified_with_closest_distance() -> None:
    decision = derive_verification_status(_evidence(photo_point=FAR, load_point=FARTHER))
    assert decision.verification_status is VerificationLevel.PHOTO_VERIFIED
    assert decision.verification_method == "ai_image"
    assert decision.gps_source is GPSSource.EXIF
    assert decision.gps_distance_meters == round_half_up(haversine_m(FAR, WESTMINSTER))


def test_device_only_far_is_photo_verified() -> None:
    decision = derive_verification_status(_evidence(photo_point=None, load_point=FAR))
    assert decision.verification_status is VerificationLevel.PHOTO_VERIFIED
    assert decision.gps_source is GPSSource.DEVICE


def test_no_gps_at_all_is_photo_verified() -> None:
    decision = derive_verification_status(_evidence(photo_point=None))
    assert decision.verification_status is VerificationLevel.PHOTO_VERIFIED
    assert decision.gps_source is GPSSource.NONE
    assert decision.gps_distance_meters is None


def test_radius_override_applies() -> None:
    decision = derive_verification_status(_evidence(photo_point=FAR), radius_meters=5000)
    assert decision.verification_status is VerificationLevel.LOCATION_VERIFIED


def test_naive_exif_time_is_compared_as_utc() -> None:
    naive_capture = BASE_TIME.replace(tzinfo=None)
    decision = derive_verification_status(
        _evidence(captured_at=naive_capture, loaded_at=BASE_TIME + timedelta(minutes=2))
    )
    assert decision.verification_status is VerificationLevel.LOCATION_VERIFIED
    assert decision.time_diff_seconds == 120

    late = derive_verification_status(
        _evidence(captured_at=naive_capture, loaded_at=BASE_TIME + timedelta(hours=1))
    )
    assert late.verification_status is VerificationLevel.REMOTE_VERIFIED
    assert late.time_diff_seconds == 3600


def test_store_settings_drive_radius_and_photo_age() -> None:
    settings = AppSettings(gps_radius_meters=50, photo_max_age_seconds=60)

    decision = derive_verification_status(_evidence(), settings=settings)
    assert decision.verification_status is VerificationLevel.REMOTE_VERIFIED
    assert decision.pending_reason == "time_exceeded"

    relaxed = replace(settings, photo_max_age_seconds=3600)
    decision = derive_verification_status(_evidence(), settings=relaxed)
    assert decision.verification_status is VerificationLevel.PHOTO_VERIFIED

    decision = derive_verification_status(_evidence(), settings=relaxed, radius_meters=750)
    assert decision.verification_status is VerificationLevel.LOCATION_VERIFIED


# --- Challenge rules -------------------------------------------------
LOC = VerificationLevel.LOCATION_VERIFIED
PHOTO = VerificationLevel.PHOTO_VERIFIED
REMOTE = VerificationLevel.REMOTE_VERIFIED
FAILED = VerificationLevel.FAILED


def _visits(*levels):
    return [make_visit(f"S{i}", verification=level) for i, level in enumerate(levels)]


def test_photo_challenge_rejects_remote_visits() -> None:
    result = validate_challenge_completion(_visits(LOC, PHOTO, REMOTE), PHOTO)
    assert result.is_valid is False
    assert result.failed_stations == ["S2"]
    assert result.message == "1 station(s) do not meet the Photo Verified requirement"


def test_remote_challenge_accepts_everything_but_failed() -> None:
    assert validate_challenge_completion(_visits(LOC, PHOTO, REMOTE)).is_valid is True
    assert validate_challenge_completion(_visits(FAILED)).failed_stations == ["S0"]


def test_missing_status_counts_as_remote() -> None:
    assert validate_challenge_completion(_visits(None), "remote_verified").is_valid is True
    assert validate_challenge_completion(_visits(None), LOC).is_valid is False


def test_location_challenge_all_pass_message() -> None:
    result = validate_challenge_completion(_visits(LOC, LOC), LOC)
    assert result.is_valid is True
    assert result.failed_stations == []
    assert result.message == "All stations meet verification requirements"


def test_invalid_requirement_rejected() -> None:
    with pytest.raises(ValueError):
        validate_challenge_completion(_visits(LOC), VerificationLevel.PENDING)


@pytest.mark.parametrize(
    ("levels", "expected"),
    [
        ((), None),
        ((LOC, LOC), LOC),
        ((LOC, PHOTO), PHOTO),
        ((LOC, REMOTE), REMOTE),
        ((LOC, FAILED), None),
        ((PHOTO, None), None),
    ],
)
def test_highest_verification_level(levels, expected) -> None:
    assert highest_verification_level(_visits(*levels)) is expected


@pytest.mark.parametrize(
    ("levels", "expected"),
    [
        ((), None),
        ((LOC, LOC), LOC),
        ((LOC, PHOTO), PHOTO),
        ((PHOTO, REMOTE, LOC), REMOTE),
        ((LOC, FAILED), None),
    ],
)
def test_activity_verification_level_is_weakest_link(levels, expected) -> None:
    assert activity_verification_level(_visits(*levels)) is expected
