"""REST client for the remote data store (PostgREST-style ``/rest/v1`` tables)."""

from __future__ import annotations

import logging
from threading import RLock
import time
from typing import Any, Callable, Dict, List, Mapping, Optional

import requests
from cachetools import TTLCache

from .. import config
from ..errors import DataStoreError
from ..models import (
    ActivityPlanItem,
    AppSettings,
    GeodeticPoint,
    Station,
    StationVisitRecord,
    VerificationLevel,
    VisitStatus,
)
from ..utils import parse_iso_datetime
from .response_handling import classify_response_status
from .session import create_default_session

LOGGER = logging.getLogger(__name__)

Row = Dict[str, Any]

_STATIONS_CACHE_KEY = "stations"


def _coerce_float(value: Any) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _coerce_int(value: Any) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def plan_item_from_row(row: Mapping[str, Any]) -> ActivityPlanItem | None:
    station_id = row.get("station_tfl_id")
    seq = _coerce_int(row.get("seq_planned"))
    if not station_id or seq is None:
        return None
    return ActivityPlanItem(
        station_id=str(station_id),
        seq_planned=seq,
        line_hint=row.get("line_hint") or None,
    )


def visit_from_row(row: Mapping[str, Any]) -> StationVisitRecord | None:
    """Build a visit from a ``station_visits`` row.

    An unparseable ``visited_at`` becomes ``None`` rather than dropping the
    row; the projector orders such visits last.
    """

    station_id = row.get("station_tfl_id")
    if not station_id:
        return None
    try:
        status = VisitStatus(row.get("status"))
    except ValueError:
        return None
    try:
        verification = VerificationLevel(row["verification_status"])
    except (KeyError, ValueError):
        verification = None
    return StationVisitRecord(
        station_id=str(station_id),
        status=status,
        visited_at=parse_iso_datetime(row.get("visited_at")),
        verification_status=verification,
    )


def station_from_row(row: Mapping[str, Any]) -> Station | None:
    station_id = row.get("tfl_id") or row.get("id")
    name = row.get("name")
    if not station_id or not name:
        return None
    lat = _coerce_float(row.get("latitude"))
    lng = _coerce_float(row.get("longitude"))
    point = GeodeticPoint(lat, lng) if lat is not None and lng is not None else None
    lines = row.get("lines") or ()
    return Station(
        station_id=str(station_id),
        name=str(name),
        lines=tuple(str(line) for line in lines),
        point=point,
        zone=row.get("zone") or None,
    )


class DataStoreClient:
    """Read-only access to plan items, visits, stations and app settings."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        *,
        session: requests.Session | None = None,
        timeout: int | None = None,
        max_retries: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._base_url = (base_url if base_url is not None else config.DATA_STORE_URL).rstrip("/")
        self._timeout = timeout if timeout is not None else config.REQUEST_TIMEOUT
        # An injected session is used as-is and must already carry any auth headers.
        self._session = session or create_default_session(api_key, timeout=self._timeout)
        self._max_retries = max(1, max_retries if max_retries is not None else config.STORE_MAX_RETRIES)
        self._sleep = sleep
        self._station_cache: TTLCache[str, List[Station]] = TTLCache(
            maxsize=max(1, config.STATION_CACHE_SIZE),
            ttl=max(1, config.STATION_CACHE_TTL_SECONDS),
        )
        self._station_cache_lock = RLock()

    def _url(self, table: str) -> str:
        if not self._base_url:
            raise DataStoreError("DATA_STORE_URL is not configured")
        return f"{self._base_url}/rest/v1/{table}"

    def fetch_rows(self, table: str, params: Dict[str, str], context: str) -> List[Row]:
        """GET ``table`` rows, retrying transient failures with exponential backoff.

        Failed connection attempts are already retried by the session adapter,
        so a ``ConnectionError`` reaching this loop is final.
        """

        url = self._url(table)
        backoff = 1.0
        attempt = 0
        while True:
            attempt += 1
            can_retry = attempt < self._max_retries
            try:
                response = self._session.get(url, params=params, timeout=self._timeout)
            except requests.ConnectionError as exc:
                message = f"{context} connection failed: {exc.__class__.__name__}"
                LOGGER.error(message)
                raise DataStoreError(message) from exc
            except requests.RequestException as exc:
                if can_retry:
                    LOGGER.warning(
                        "%s network error attempt=%s err=%s; retrying in %.1fs",
                        context,
                        attempt,
                        exc.__class__.__name__,
                        backoff,
                    )
                    self._sleep(backoff)
                    backoff = min(backoff * 2, config.STORE_BACKOFF_MAX_SECONDS)
                    continue
                message = f"{context} network error: {exc.__class__.__name__}"
                LOGGER.error(message)
                raise DataStoreError(message) from exc

            action, error = classify_response_status(
                response,
                context,
                attempt=attempt,
                backoff=backoff,
                can_retry=can_retry,
            )
            if action == "retry":
                self._sleep(backoff)
                backoff = min(backoff * 2, config.STORE_BACKOFF_MAX_SECONDS)
                continue
            if action == "raise" and error is not None:
                raise error

            try:
                data = response.json()
            except ValueError as exc:
                if can_retry:
                    LOGGER.warning(
                        "Non-JSON response for %s attempt=%s; retrying in %.1fs",
                        context,
                        attempt,
                        backoff,
                    )
                    self._sleep(backoff)
                    backoff = min(backoff * 2, config.STORE_BACKOFF_MAX_SECONDS)
                    continue
                message = f"{context} returned non-JSON payload"
                LOGGER.error(message)
                raise DataStoreError(message) from exc
            if not isinstance(data, list):
                raise DataStoreError(f"{context} returned {type(data).__name__}, expected a list")
            return [row for row in data if isinstance(row, dict)]

    def list_plan_items(self, activity_id: str) -> List[ActivityPlanItem]:
        rows = self.fetch_rows(
            "activity_plan_item",
            {
                "select": "station_tfl_id,seq_planned,line_hint",
                "activity_id": f"eq.{activity_id}",
                "order": "seq_planned.asc",
            },
            f"plan items activity={activity_id}",
        )
        items = [item for item in (plan_item_from_row(row) for row in rows) if item]
        if len(items) != len(rows):
            LOGGER.warning(
                "Skipped %d malformed plan item rows for activity=%s",
                len(rows) - len(items),
                activity_id,
            )
        return items

    def list_visits(self, activity_id: str) -> List[StationVisitRecord]:
        rows = self.fetch_rows(
            "station_visits",
            {
                "select": "station_tfl_id,status,visited_at,verification_status",
                "activity_id": f"eq.{activity_id}",
                "status": "in.(verified,pending)",
                "order": "visited_at.asc",
            },
            f"visits activity={activity_id}",
        )
        visits = [visit for visit in (visit_from_row(row) for row in rows) if visit]
        if len(visits) != len(rows):
            LOGGER.warning(
                "Skipped %d malformed visit rows for activity=%s",
                len(rows) - len(visits),
                activity_id,
            )
        return visits

    def list_stations(self) -> List[Station]:
        """Return the station catalogue, served from a TTL cache when fresh."""

        with self._station_cache_lock:
            cached = self._station_cache.get(_STATIONS_CACHE_KEY)
        if cached is not None:
            return list(cached)
        rows = self.fetch_rows(
            "stations",
            {"select": "tfl_id,name,latitude,longitude,lines,zone", "order": "name.asc"},
            "stations",
        )
        stations = [station for station in (station_from_row(row) for row in rows) if station]
        with self._station_cache_lock:
            self._station_cache[_STATIONS_CACHE_KEY] = stations
        LOGGER.debug("Cached %d stations", len(stations))
        return list(stations)

    def clear_cache(self) -> None:
        with self._station_cache_lock:
            self._station_cache.clear()

    def fetch_app_settings(self) -> AppSettings:
        """Read admin thresholds, falling back to defaults on any store failure."""

        try:
            rows = self.fetch_rows("app_settings", {"select": "key,value"}, "app settings")
        except DataStoreError as exc:
            LOGGER.warning("Could not fetch app settings, using defaults: %s", exc)
            return AppSettings()
        values = {str(row.get("key")): row.get("value") for row in rows}
        radius = config.parse_positive_int(values.get("GPS_RADIUS_METERS"))
        max_age = config.parse_positive_int(values.get("PHOTO_MAX_AGE_SECONDS"))
        for key, parsed in (("GPS_RADIUS_METERS", radius), ("PHOTO_MAX_AGE_SECONDS", max_age)):
            if key in values and parsed is None:
                LOGGER.warning("Ignoring invalid %s=%r", key, values.get(key))
        return AppSettings(
            gps_radius_meters=radius or config.DEFAULT_GEOFENCE_RADIUS_METERS,
            photo_max_age_seconds=max_age or config.DEFAULT_PHOTO_MAX_AGE_SECONDS,
        )


__all__ = [
    "AppSettings",
    "DataStoreClient",
    "plan_item_from_row",
    "station_from_row",
    "visit_from_row",
]
