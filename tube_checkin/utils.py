"""General utility helpers shared across modules."""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
import json
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Any


def parse_iso_datetime(value: Any) -> datetime | None:
    """Parse an ISO-8601 timestamp (``Z`` suffix allowed); ``None`` if unusable."""

    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def _normalise_value(value: Any) -> Any:
    """Convert objects to JSON-friendly representations."""

    if isinstance(value, Enum):
        return value.value
    if is_dataclass(value) and not isinstance(value, type):
        return _normalise_value(asdict(value))
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, set):
        return sorted(_normalise_value(item) for item in value)
    if isinstance(value, (list, tuple)):
        return [_normalise_value(item) for item in value]
    if isinstance(value, dict):
        return {str(key): _normalise_value(val) for key, val in value.items()}
    return value


def to_json(value: Any, *, indent: int | None = 2) -> str:
    """Serialise dataclass results (enums, datetimes, tuples included) to JSON."""

    return json.dumps(_normalise_value(value), indent=indent, sort_keys=True)
