"""Station naming helpers: display-name disambiguation and OCR text resolution."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
import logging
import re
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from .config import (
    STATION_DISPLAY_MAX_LINES,
    STATION_FUZZY_THRESHOLD,
    STATION_GPS_ASSIST_RADIUS_M,
    STATION_GPS_ASSIST_THRESHOLD,
    STATION_SUGGESTION_LIMIT,
    STATION_SUGGESTION_THRESHOLD,
)
from .errors import StationResolutionError
from .geofence import haversine_many
from .models import GeodeticPoint, Station

LOGGER = logging.getLogger(__name__)

_SUFFIX_RE = re.compile(r"\s+(underground\s+)?station$", re.IGNORECASE)
_TUBE_SUFFIX_RE = re.compile(r"\s+tube\s+station$", re.IGNORECASE)
_DASH_RE = re.compile(r"[-–—]")
_QUOTE_RE = re.compile(r"['‘’`\"]")
_PUNCT_RE = re.compile(r"[^\w\s]")
_SPACE_RE = re.compile(r"\s+")


def _disambiguated(station: Station) -> str:
    lines = ", ".join(station.lines[:STATION_DISPLAY_MAX_LINES])
    return f"{station.name} ({lines})" if lines else station.name


def generate_display_names(stations: Sequence[Station]) -> Dict[str, str]:
    """Map station id to a display name unique enough to tell namesakes apart.

    Stations sharing a name (e.g. the two Paddington entries) get up to three
    of their lines appended: ``"Paddington (Bakerloo, District)"``.
    """

    by_name: Dict[str, int] = defaultdict(int)
    for station in stations:
        by_name[station.name] += 1
    return {
        station.station_id: station.name if by_name[station.name] == 1 else _disambiguated(station)
        for station in stations
    }


def station_display_name(
    station_id: str,
    stations: Sequence[Station],
    display_names: Optional[Mapping[str, str]] = None,
) -> str:
    """Return the display name for ``station_id``, or the id itself if unknown."""

    station = next((s for s in stations if s.station_id == station_id), None)
    if station is None:
        return station_id
    if display_names is not None:
        return display_names.get(station_id) or station.name
    namesakes = sum(1 for s in stations if s.name == station.name)
    return station.name if namesakes == 1 else _disambiguated(station)


def normalize_station_name(name: str) -> str:
    """Lower-case and strip suffixes/punctuation so OCR text compares cleanly."""

    text = name.lower().strip()
    text = _SUFFIX_RE.sub("", text)
    text = _TUBE_SUFFIX_RE.sub("", text)
    text = _DASH_RE.sub(" ", text)
    text = text.replace("&", "and")
    text = _QUOTE_RE.sub("", text)
    text = _PUNCT_RE.sub("", text)
    return _SPACE_RE.sub(" ", text).strip()


def levenshtein_distance(first: str, second: str) -> int:
    if len(first) < len(second):
        first, second = second, first
    previous = list(range(len(second) + 1))
    for i, char_a in enumerate(first, start=1):
        current = [i]
        for j, char_b in enumerate(second, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(min(current[j - 1] + 1, previous[j] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def similarity(first: str, second: str) -> float:
    """Edit-distance similarity in ``[0, 1]`` relative to the longer string."""

    if first == second:
        return 1.0
    if not first or not second:
        return 0.0
    longer = max(len(first), len(second))
    return (longer - levenshtein_distance(first, second)) / longer


@dataclass(frozen=True, slots=True)
class ResolvedStation:
    station_id: str
    display_name: str
    base_name: str
    lines: Tuple[str, ...]
    point: Optional[GeodeticPoint]
    matching_rule: str
    score: float
    source: str = "ocr"


@dataclass(frozen=True, slots=True)
class _Candidate:
    station: Station
    score: float
    rule: str


def _exact_matches(search: str, stations: Sequence[Station]) -> List[_Candidate]:
    return [
        _Candidate(station, 1.0, "exact_match")
        for station in stations
        if normalize_station_name(station.name) == search
    ]


def _suffix_matches(search: str, stations: Sequence[Station]) -> List[_Candidate]:
    without_suffix = _SUFFIX_RE.sub("", search).strip()
    with_suffix = f"{search} underground station"
    matches: List[_Candidate] = []
    for station in stations:
        normalized = normalize_station_name(station.name)
        station_without_suffix = _SUFFIX_RE.sub("", normalized).strip()
        if without_suffix == normalized or search == station_without_suffix or with_suffix == normalized:
            matches.append(_Candidate(station, 0.95, "suffix_match"))
    return matches


def _fuzzy_matches(search: str, stations: Sequence[Station]) -> List[_Candidate]:
    matches: List[_Candidate] = []
    for station in stations:
        score = similarity(search, normalize_station_name(station.name))
        if score >= STATION_FUZZY_THRESHOLD:
            matches.append(_Candidate(station, score, "fuzzy_match"))
    return matches


def _gps_assisted_matches(
    search: str, stations: Sequence[Station], user_point: GeodeticPoint
) -> List[_Candidate]:
    located = [station for station in stations if station.point is not None]
    if not located:
        return []
    distances = haversine_many(
        user_point,
        [station.point.lat for station in located],  # type: ignore[union-attr]
        [station.point.lng for station in located],  # type: ignore[union-attr]
    )
    matches: List[_Candidate] = []
    for index in np.nonzero(distances <= STATION_GPS_ASSIST_RADIUS_M)[0]:
        station = located[int(index)]
        score = similarity(search, normalize_station_name(station.name))
        if score >= STATION_GPS_ASSIST_THRESHOLD:
            matches.append(_Candidate(station, score * 0.9, "gps_assisted_fuzzy"))
    return matches


def _suggestions(search: str, stations: Sequence[Station]) -> List[Station]:
    scored = [(similarity(search, normalize_station_name(s.name)), s) for s in stations]
    near = [item for item in scored if item[0] >= STATION_SUGGESTION_THRESHOLD]
    near.sort(key=lambda item: item[0], reverse=True)
    return [station for _, station in near[:STATION_SUGGESTION_LIMIT]]


def resolve_station(
    raw_text: str,
    ai_station_name: Optional[str],
    stations: Sequence[Station],
    user_point: Optional[GeodeticPoint] = None,
) -> ResolvedStation:
    """Match OCR text (or the AI-cleaned station name) to one catalogue station.

    Rules are tried in order and the first that yields candidates wins: exact
    normalised match, "underground station" suffix match, fuzzy match, then a
    looser fuzzy match restricted to stations within 500 m of ``user_point``.

    Raises:
        StationResolutionError: When the catalogue or text is empty, nothing
            matches, or several stations tie for the best score. The error
            carries up to three suggestions.
    """

    if not stations:
        raise StationResolutionError("No stations data available")
    search_text = ai_station_name or raw_text
    if not search_text or not search_text.strip():
        raise StationResolutionError("No station text to match")

    search = normalize_station_name(search_text)
    candidates = _exact_matches(search, stations)
    if not candidates:
        candidates = _suffix_matches(search, stations)
    if not candidates:
        candidates = _fuzzy_matches(search, stations)
    if not candidates and user_point is not None:
        candidates = _gps_assisted_matches(search, stations, user_point)

    if not candidates:
        LOGGER.info("No station match for %r", raw_text)
        raise StationResolutionError(
            f"Could not match station: {raw_text}", _suggestions(search, stations)
        )

    candidates.sort(key=lambda c: c.score, reverse=True)
    winner = candidates[0]
    tied = [c for c in candidates if c.score == winner.score]
    if len(tied) > 1:
        LOGGER.warning("Multiple equally good station matches for %r", raw_text)
        raise StationResolutionError(
            f"Multiple possible matches for: {raw_text}",
            [c.station for c in tied[:STATION_SUGGESTION_LIMIT]],
        )

    display_names = generate_display_names(stations)
    station = winner.station
    LOGGER.info(
        "Station resolved from %r -> id=%s rule=%s score=%.2f",
        raw_text,
        station.station_id,
        winner.rule,
        winner.score,
    )
    return ResolvedStation(
        station_id=station.station_id,
        display_name=display_names.get(station.station_id, station.name),
        base_name=station.name,
        lines=station.lines,
        point=station.point,
        matching_rule=winner.rule,
        score=winner.score,
    )


__all__ = [
    "ResolvedStation",
    "generate_display_names",
    "levenshtein_distance",
    "normalize_station_name",
    "resolve_station",
    "similarity",
    "station_display_name",
]
