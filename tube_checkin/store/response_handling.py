"""Shared HTTP response helpers for data store interactions."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

import requests

from ..errors import DataStoreError, DataStoreNotFoundError, DataStorePermissionError

LOGGER = logging.getLogger(__name__)

__all__ = [
    "classify_response_status",
    "extract_error",
]


def classify_response_status(
    response: requests.Response,
    context: str,
    *,
    attempt: int,
    backoff: float,
    can_retry: bool,
) -> Tuple[str, Optional[Exception]]:
    """Return action for a response status: ok, retry, or raise."""

    status = response.status_code
    if status < 400:
        return "ok", None

    detail = extract_error(response)

    def with_detail(message: str) -> str:
        return f"{message} | {detail}" if detail else message

    if status == 429 and can_retry:
        LOGGER.warning(
            "%s rate limited (429) attempt=%s; sleeping %.1fs",
            context,
            attempt,
            backoff,
        )
        return "retry", None

    if status in (401, 403):
        message = with_detail(f"{context} forbidden (status {status})")
        LOGGER.warning(message)
        return "raise", DataStorePermissionError(message)

    if status == 404:
        message = with_detail(f"{context} not found")
        LOGGER.info(message)
        return "raise", DataStoreNotFoundError(message)

    if 500 <= status < 600 and can_retry:
        message = with_detail(f"{context} server error {status}")
        LOGGER.warning("%s; retrying in %.1fs", message, backoff)
        return "retry", None

    message = with_detail(f"{context} request failed (status {status})")
    LOGGER.error(message)
    return "raise", DataStoreError(message)


def extract_error(resp: Optional[requests.Response]) -> Optional[str]:
    """Return compact error info (message, code, hint) from a PostgREST error body."""

    if resp is None:
        return None
    data = _safe_json(resp)
    if data is None:
        return _extract_error_text(resp)
    if not isinstance(data, dict):
        return None
    parts = _collect_error_parts(data)
    return " | ".join(parts) if parts else None


def _safe_json(resp: requests.Response) -> Optional[Any]:
    try:
        return resp.json()
    except ValueError as exc:
        LOGGER.debug("Failed to decode JSON from %s: %s", getattr(resp, "url", "?"), exc)
        return None


def _extract_error_text(resp: requests.Response) -> Optional[str]:
    """Best-effort plain-text extraction when JSON parsing fails."""

    text = getattr(resp, "text", "")
    if not isinstance(text, str):
        return None
    trimmed = text.strip()
    if not trimmed:
        return None
    return (trimmed[:297] + "...") if len(trimmed) > 300 else trimmed


def _collect_error_parts(data: Dict[str, Any]) -> List[str]:
    parts: List[str] = []
    for key in ("message", "code", "details", "hint"):
        value = data.get(key)
        if value:
            parts.append(str(value))
    return parts
