"""Command-line entry point: geofence checks, activity state and station lookup."""

from __future__ import annotations

import argparse
import logging
from typing import Sequence

from .activity_state import ActivityStateService
from . import config
from .config import GEOFENCE_TELEMETRY_ENABLED
from .errors import ActivityStateError, DataStoreError, StationResolutionError
from .geofence import GeofenceValidator
from .models import AppSettings, GeodeticPoint
from .stations import resolve_station
from .store import DataStoreClient
from .telemetry import LoggingTelemetrySink
from .utils import to_json

LOGGER = logging.getLogger(__name__)


def _setup_logging(verbose: bool = False) -> None:
    if not logging.getLogger().hasHandlers():
        logging.basicConfig(
            level=logging.DEBUG if verbose else logging.INFO,
            format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        )


def _point(values: Sequence[float] | None) -> GeodeticPoint | None:
    if values is None:
        return None
    lat, lng = values
    return GeodeticPoint(lat=lat, lng=lng)


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tube-checkin",
        description="Geofence and activity-state utilities for Tube station check-ins",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    geofence = sub.add_parser("geofence", help="Validate a check-in location")
    geofence.add_argument(
        "--target", nargs=2, type=float, required=True, metavar=("LAT", "LNG")
    )
    geofence.add_argument("--exif", nargs=2, type=float, metavar=("LAT", "LNG"))
    geofence.add_argument("--device", nargs=2, type=float, metavar=("LAT", "LNG"))
    geofence.add_argument("--radius", type=int, help="Override radius in metres")
    geofence.add_argument(
        "--telemetry",
        action="store_true",
        default=GEOFENCE_TELEMETRY_ENABLED,
        help="Log a telemetry event for the validation",
    )

    state = sub.add_parser("state", help="Show the unified state of an activity")
    state.add_argument("activity_id")

    resolve = sub.add_parser("resolve", help="Match station text to the catalogue")
    resolve.add_argument("text")
    resolve.add_argument("--near", nargs=2, type=float, metavar=("LAT", "LNG"))
    return parser.parse_args(argv)


def _store_settings(client: DataStoreClient | None) -> AppSettings | None:
    """Admin thresholds from the store, or ``None`` when no store is configured."""

    if client is None and not config.DATA_STORE_URL:
        return None
    return (client or DataStoreClient()).fetch_app_settings()


def _cmd_geofence(args: argparse.Namespace, client: DataStoreClient | None) -> int:
    settings = _store_settings(client)
    validator = GeofenceValidator(
        radius_meters=settings.gps_radius_meters if settings else None,
        telemetry_sink=LoggingTelemetrySink(),
    )
    result = validator.validate(
        _point(args.exif),
        _point(args.device),
        GeodeticPoint(*args.target),
        radius_meters=args.radius,
        telemetry_enabled=args.telemetry,
    )
    print(to_json(result))
    return 0


def _cmd_state(args: argparse.Namespace, client: DataStoreClient) -> int:
    state = ActivityStateService(client).get_state(args.activity_id)
    print(to_json(state))
    return 0


def _cmd_resolve(args: argparse.Namespace, client: DataStoreClient) -> int:
    stations = client.list_stations()
    resolved = resolve_station(args.text, None, stations, _point(args.near))
    print(to_json(resolved))
    return 0


def main(argv: list[str] | None = None, client: DataStoreClient | None = None) -> int:
    args = parse_args(argv)
    _setup_logging(args.verbose)

    if args.command == "geofence":
        return _cmd_geofence(args, client)

    try:
        client = client or DataStoreClient()
        if args.command == "state":
            return _cmd_state(args, client)
        return _cmd_resolve(args, client)
    except ActivityStateError as exc:
        LOGGER.error("Invalid request: %s", exc)
        return 2
    except StationResolutionError as exc:
        LOGGER.error("%s", exc)
        for station in exc.suggestions:
            LOGGER.info("Did you mean: %s (%s)", station.name, station.station_id)
        return 1
    except DataStoreError as exc:
        LOGGER.error("Data store request failed: %s", exc)
        return 1
