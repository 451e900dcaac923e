"""Central configuration for the Tube check-in core.

Values are module-level constants imported by the rest of the package. Secrets
and deployment-specific values are read from environment variables (optionally
via a local `.env`). The geofence radius is the exception: it is re-read from
the environment on every validation so runtime reconfiguration applies
immediately.
"""

from __future__ import annotations

import importlib
import math
import os
from typing import Any


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_bool(key: str, default: bool) -> bool:
    value = os.getenv(key)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    return default


# Load .env variables when python-dotenv is available.
_load_dotenv = None
try:
    _dotenv_mod = importlib.import_module("dotenv")
    _load_dotenv = getattr(_dotenv_mod, "load_dotenv", None)
except Exception:
    _load_dotenv = None

if callable(_load_dotenv):
    # Load .env from the current directory or any parent folder.
    _load_dotenv()


# ---------------------------------------------------------------------------
# Geofence settings
# ---------------------------------------------------------------------------
# Radius used when neither the caller nor the environment supplies a valid one.
DEFAULT_GEOFENCE_RADIUS_METERS = 750

# Environment variable consulted on every validation call.
GEOFENCE_RADIUS_ENV = "GEOFENCE_RADIUS_METERS"

# Mean Earth radius used by the Haversine formula.
EARTH_RADIUS_M = 6_371_000.0

# Emit a structured telemetry event per geofence validation.
GEOFENCE_TELEMETRY_ENABLED = _env_bool("GEOFENCE_TELEMETRY_ENABLED", False)

# Server-side re-check tolerance between client and server distances (metres).
CLIENT_DISTANCE_TOLERANCE_M = 1.0


# ---------------------------------------------------------------------------
# Check-in verification settings
# ---------------------------------------------------------------------------
# Photos older than this (EXIF capture vs upload) only earn remote verification.
DEFAULT_PHOTO_MAX_AGE_SECONDS = 600
PHOTO_MAX_AGE_SECONDS = _env_int("PHOTO_MAX_AGE_SECONDS", DEFAULT_PHOTO_MAX_AGE_SECONDS)
if PHOTO_MAX_AGE_SECONDS <= 0:
    PHOTO_MAX_AGE_SECONDS = DEFAULT_PHOTO_MAX_AGE_SECONDS


# ---------------------------------------------------------------------------
# Station resolution
# ---------------------------------------------------------------------------
STATION_FUZZY_THRESHOLD = 0.9
STATION_GPS_ASSIST_RADIUS_M = 500.0
STATION_GPS_ASSIST_THRESHOLD = 0.75
STATION_SUGGESTION_THRESHOLD = 0.5
STATION_SUGGESTION_LIMIT = 3
# Lines appended when disambiguating stations that share a name.
STATION_DISPLAY_MAX_LINES = 3


# ---------------------------------------------------------------------------
# Data store settings
# ---------------------------------------------------------------------------
# Base URL of the PostgREST-style backend (tables under /rest/v1).
DATA_STORE_URL = os.getenv("DATA_STORE_URL", "")
# Anonymous or service key. Do not hardcode secrets.
DATA_STORE_API_KEY = os.getenv("DATA_STORE_API_KEY", "")

# HTTP session pool sizes for concurrent requests.
HTTP_POOL_CONNECTIONS = _env_int("HTTP_POOL_CONNECTIONS", 10)
HTTP_POOL_MAXSIZE = _env_int("HTTP_POOL_MAXSIZE", 10)

# Request timeout in seconds.
REQUEST_TIMEOUT = _env_int("REQUEST_TIMEOUT", 15)

# STORE_MAX_RETRIES covers read timeouts, 5xx, 429 or bad payloads.
STORE_MAX_RETRIES = _env_int("STORE_MAX_RETRIES", 3)
# STORE_CONNECT_RETRIES is handled by the session adapter (connection setup only).
STORE_CONNECT_RETRIES = _env_int("STORE_CONNECT_RETRIES", 2)
# STORE_BACKOFF_MAX_SECONDS caps the exponential backoff per attempt.
STORE_BACKOFF_MAX_SECONDS = _env_float("STORE_BACKOFF_MAX_SECONDS", 4.0)

# Station catalogue cache. The catalogue changes rarely.
STATION_CACHE_TTL_SECONDS = _env_int("STATION_CACHE_TTL_SECONDS", 300)
STATION_CACHE_SIZE = _env_int("STATION_CACHE_SIZE", 4)


def parse_positive_int(value: Any) -> int | None:
    """Return ``value`` as a positive integer, or ``None`` when it is unusable.

    Strings are parsed leniently (surrounding whitespace, a trailing fraction
    like ``"800.0"``); zero, negatives, NaN, infinities and booleans are all
    rejected.
    """

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            return None
    if isinstance(value, float):
        if not math.isfinite(value):
            return None
        value = int(value)
    if not isinstance(value, int):
        return None
    return value if value > 0 else None


def configured_geofence_radius() -> int | None:
    """Return the radius from the environment, or ``None`` when unset/invalid."""

    return parse_positive_int(os.getenv(GEOFENCE_RADIUS_ENV))


def resolve_geofence_radius(override: Any = None, configured: Any = None) -> int:
    """Resolve the active geofence radius in metres.

    Resolution order: explicit ``override`` for this call, then the
    ``configured`` value injected by the caller, then the process environment,
    then :data:`DEFAULT_GEOFENCE_RADIUS_METERS`. Invalid values at any level
    fall through to the next one, so the result is always a positive integer.
    """

    for candidate in (override, configured):
        radius = parse_positive_int(candidate)
        if radius is not None:
            return radius
    radius = configured_geofence_radius()
    if radius is not None:
        return radius
    return DEFAULT_GEOFENCE_RADIUS_METERS
