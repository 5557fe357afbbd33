"""Per-source category maps and severity rescaling tables."""

from __future__ import annotations

import re
from types import MappingProxyType
from typing import TYPE_CHECKING, Final

from losslocator.domain.model import EventType, SourceType

if TYPE_CHECKING:
    from collections.abc import Mapping

DEFAULT_SEVERITY: Final[float] = 0.5

DEFAULT_SOURCE_CONFIDENCE: Mapping[SourceType, float] = MappingProxyType(
    {
        SourceType.WEATHER: 0.60,
        SourceType.FIRE_COMMERCIAL: 0.75,
        SourceType.FIRE_STATE: 0.65,
        SourceType.CAD: 0.55,
        SourceType.NEWS: 0.60,
        SourceType.DECLARATION: 0.90,
    }
)

# Weather ----------------------------------------------------------------------

NWS_EVENT_TYPES: Mapping[str, EventType] = MappingProxyType(
    {
        "fire weather watch": EventType.FIRE,
        "red flag warning": EventType.FIRE,
        "fire warning": EventType.FIRE,
        "extreme fire danger": EventType.FIRE,
        "high wind warning": EventType.WIND,
        "high wind watch": EventType.WIND,
        "wind advisory": EventType.WIND,
        "extreme wind warning": EventType.WIND,
        "tornado warning": EventType.WIND,
        "tornado watch": EventType.WIND,
        "severe thunderstorm warning": EventType.WIND,
        "severe thunderstorm watch": EventType.WIND,
        "hurricane warning": EventType.WIND,
        "hurricane watch": EventType.WIND,
        "tropical storm warning": EventType.WIND,
        "tropical storm watch": EventType.WIND,
        "severe weather statement": EventType.HAIL,
        "freeze warning": EventType.FREEZE,
        "freeze watch": EventType.FREEZE,
        "hard freeze warning": EventType.FREEZE,
        "hard freeze watch": EventType.FREEZE,
        "frost advisory": EventType.FREEZE,
    }
)

NWS_SEVERITY: Mapping[str, float] = MappingProxyType(
    {"extreme": 0.95, "severe": 0.80, "moderate": 0.60, "minor": 0.40, "unknown": 0.50}
)

# checked in order; the first keyword family that hits wins
STORM_REPORT_KEYWORDS: tuple[tuple[tuple[str, ...], EventType], ...] = (
    (("hail",), EventType.HAIL),
    (("wind", "gust"), EventType.WIND),
    (("fire",), EventType.FIRE),
    (("freeze", "frost", "ice"), EventType.FREEZE),
    (("tornado", "storm", "severe"), EventType.WIND),
)


def storm_report_event_type(category: str) -> EventType | None:
    lowered = category.lower()
    for keywords, event_type in STORM_REPORT_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return event_type
    return None


def storm_report_severity(event_type: EventType, magnitude: float | None) -> float:
    """Hail magnitudes are inches, wind magnitudes are mph."""

    if magnitude is None:
        return DEFAULT_SEVERITY
    if event_type is EventType.HAIL:
        bands = ((2.0, 0.9), (1.0, 0.7), (0.75, 0.6))
    elif event_type is EventType.WIND:
        bands = ((75.0, 0.9), (60.0, 0.7), (50.0, 0.6))
    else:
        return DEFAULT_SEVERITY
    for threshold, severity in bands:
        if magnitude >= threshold:
            return severity
    return 0.4


# Fire -------------------------------------------------------------------------


def severity_from_loss(estimated_loss: float | None) -> float:
    if estimated_loss is None:
        return DEFAULT_SEVERITY
    if estimated_loss < 10_000:
        return 0.25
    if estimated_loss < 50_000:
        return 0.50
    if estimated_loss < 100_000:
        return 0.75
    return 0.90


NFIRS_FIRE_CODES: Final[range] = range(100, 151)

# CAD --------------------------------------------------------------------------

CAD_FIRE_CALL_TYPES: Final[tuple[str, ...]] = (
    "STRUCTURE FIRE",
    "BUILDING FIRE",
    "RESIDENTIAL FIRE",
    "COMMERCIAL FIRE",
    "WORKING FIRE",
    "FIRE ALARM",
    "SMOKE INVESTIGATION",
    "FIRE",
)


def is_cad_fire_call(call_type: str) -> bool:
    upper = call_type.upper()
    return any(fire_type in upper for fire_type in CAD_FIRE_CALL_TYPES)


def cad_severity(call_type: str, priority: str | None) -> float:
    upper = call_type.upper()
    if "WORKING" in upper:
        severity = 0.80
    elif "STRUCTURE" in upper or "BUILDING" in upper:
        severity = 0.70
    elif "ALARM" in upper:
        severity = 0.30
    else:
        severity = 0.40
    if priority is not None and priority.strip().upper() in {"1", "HIGH"}:
        severity = min(0.90, severity + 0.15)
    return round(severity, 2)


# News -------------------------------------------------------------------------

NEWS_KEYWORDS: Mapping[EventType, tuple[str, ...]] = MappingProxyType(
    {
        EventType.FIRE: ("fire", "blaze", "flames", "burning", "burns", "burned", "arson"),
        EventType.WIND: ("wind", "windstorm", "gust", "hurricane", "tornado"),
        EventType.HAIL: ("hail", "hailstorm", "hailstone"),
        EventType.FREEZE: ("freeze", "frozen", "ice storm", "winter storm"),
    }
)
NEWS_SEVERE_TERMS: Final[tuple[str, ...]] = (
    "destroyed",
    "total loss",
    "severe",
    "major",
    "extensive",
)
NEWS_MINOR_TERMS: Final[tuple[str, ...]] = ("damaged", "minor", "contained")

_WORD_CACHE: dict[str, re.Pattern[str]] = {}


def _word(term: str) -> re.Pattern[str]:
    pattern = _WORD_CACHE.get(term)
    if pattern is None:
        pattern = re.compile(rf"\b{re.escape(term)}\b", re.IGNORECASE)
        _WORD_CACHE[term] = pattern
    return pattern


def news_event_type(text: str) -> EventType | None:
    """Keyword family with the most hits; ties go to the earlier family."""

    best: EventType | None = None
    best_hits = 0
    for event_type, keywords in NEWS_KEYWORDS.items():
        hits = sum(len(_word(keyword).findall(text)) for keyword in keywords)
        if hits > best_hits:
            best, best_hits = event_type, hits
    return best


def news_severity(text: str) -> float:
    if any(_word(term).search(text) for term in NEWS_SEVERE_TERMS):
        return 0.80
    if any(_word(term).search(text) for term in NEWS_MINOR_TERMS):
        return 0.40
    return DEFAULT_SEVERITY


# Declarations -----------------------------------------------------------------

DECLARATION_EVENT_TYPES: tuple[tuple[str, EventType], ...] = (
    ("wildfire", EventType.FIRE),
    ("fire", EventType.FIRE),
    ("hurricane", EventType.WIND),
    ("typhoon", EventType.WIND),
    ("tornado", EventType.WIND),
    ("severe ice storm", EventType.FREEZE),
    ("tropical storm", EventType.WIND),
    ("severe storm", EventType.WIND),
    ("freezing", EventType.FREEZE),
    ("snow", EventType.FREEZE),
)

DECLARATION_SEVERITY: Mapping[str, float] = MappingProxyType(
    {"DR": 0.90, "EM": 0.75, "FM": 0.60}
)


def declaration_event_type(incident_type: str) -> EventType | None:
    lowered = incident_type.lower()
    for needle, event_type in DECLARATION_EVENT_TYPES:
        if needle in lowered:
            return event_type
    return None


def declaration_severity(declaration_type: str | None, incident_type: str) -> float:
    severity = DECLARATION_SEVERITY.get((declaration_type or "").strip().upper(), 0.70)
    lowered = incident_type.lower()
    if "hurricane" in lowered or "wildfire" in lowered:
        severity = min(0.95, severity + 0.05)
    return round(severity, 2)


# Places -----------------------------------------------------------------------

US_STATE_CODES: Final[frozenset[str]] = frozenset(
    {
        "AL", "AK", "AZ", "AR", "CA", "CO", "CT", "DE", "FL", "GA",
        "HI", "ID", "IL", "IN", "IA", "KS", "KY", "LA", "ME", "MD",
        "MA", "MI", "MN", "MS", "MO", "MT", "NE", "NV", "NH", "NJ",
        "NM", "NY", "NC", "ND", "OH", "OK", "OR", "PA", "RI", "SC",
        "SD", "TN", "TX", "UT", "VT", "VA", "WA", "WV", "WI", "WY",
        "DC", "PR",
    }
)  # fmt: skip
