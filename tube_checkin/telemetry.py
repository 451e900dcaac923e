"""Observability sinks for geofence telemetry.

A sink is any callable accepting a single ``dict`` event. Emission is
fire-and-forget: a failing sink is logged at DEBUG and otherwise ignored so it
can never change a validation outcome.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Dict

LOGGER = logging.getLogger(__name__)

TelemetryEvent = Dict[str, Any]
TelemetrySink = Callable[[TelemetryEvent], None]


def null_sink(_event: TelemetryEvent) -> None:
    """Discard the event."""


class LoggingTelemetrySink:
    """Write telemetry events through :mod:`logging`."""

    def __init__(self, logger: logging.Logger | None = None, level: int = logging.INFO):
        self._log = logger or logging.getLogger("tube_checkin.telemetry.geofence")
        self._level = level

    def __call__(self, event: TelemetryEvent) -> None:
        self._log.log(
            self._level,
            "Geofence validation %s distance=%s radius=%s source=%s",
            event.get("result"),
            event.get("distance"),
            event.get("radius"),
            event.get("gps_source"),
            extra={"telemetry": event},
        )


def emit_safely(sink: TelemetrySink | None, event: TelemetryEvent) -> None:
    """Deliver ``event`` to ``sink`` without ever propagating its failures."""

    if sink is None:
        return
    try:
        sink(event)
    except Exception as exc:
        LOGGER.debug("Telemetry sink failed: %s", exc, exc_info=True)


__all__ = [
    "LoggingTelemetrySink",
    "TelemetryEvent",
    "TelemetrySink",
    "emit_safely",
    "null_sink",
]
