"""Central error types used across the application."""

from __future__ import annotations

from typing import Sequence, TYPE_CHECKING

if TYPE_CHECKING:  # pragma: no cover - type checking only
    from .models import Station


class ActivityStateError(ValueError):
    """Raised when an activity projection is requested without a usable activity id."""


class DataStoreError(RuntimeError):
    """Base error for remote data store failures."""


class DataStorePermissionError(DataStoreError):
    """Raised when the store rejects the API key or the caller lacks access."""


class DataStoreNotFoundError(DataStoreError):
    """Raised when the requested table or resource does not exist."""


class StationResolutionError(LookupError):
    """Raised when free text cannot be matched to exactly one station."""

    def __init__(self, message: str, suggestions: Sequence["Station"] = ()) -> None:
        super().__init__(message)
        self.suggestions = tuple(suggestions)


__all__ = [
    "ActivityStateError",
    "DataStoreError",
    "DataStorePermissionError",
    "DataStoreNotFoundError",
    "StationResolutionError",
]
