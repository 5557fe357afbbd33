"""Map raw per-source payloads into canonical signals."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from logging import getLogger
from types import MappingProxyType
from typing import TYPE_CHECKING, assert_never

from pydantic import ValidationError as PayloadValidationError

from losslocator.domain.errors import ValidationError
from losslocator.domain.model import Coordinates, EventType, Location, Signal, SourceType

from .payloads import (
    CadIncident,
    DisasterDeclaration,
    FireCommercialIncident,
    FireStateIncident,
    Geometry,
    NewsArticle,
    Timestamp,
    WeatherFeature,
)
from .tables import (
    DEFAULT_SEVERITY,
    DEFAULT_SOURCE_CONFIDENCE,
    NFIRS_FIRE_CODES,
    NWS_EVENT_TYPES,
    NWS_SEVERITY,
    US_STATE_CODES,
    cad_severity,
    declaration_event_type,
    declaration_severity,
    is_cad_fire_call,
    news_event_type,
    news_severity,
    severity_from_loss,
    storm_report_event_type,
    storm_report_severity,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

    from losslocator.domain.ports.fetching import RawRecord

log = getLogger(__name__)

_STATE_AFTER_COMMA = re.compile(r",\s*([A-Z]{2})\b")
_STATE_TOKEN = re.compile(r"\b([A-Z]{2})\b")
_ZIP = re.compile(r"\b(\d{5})(?:-\d{4})?\b")
_CITY = re.compile(r"\bin\s+([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)")
_NFIRS_CODE = re.compile(r"^\s*(\d{3})")


@dataclass(frozen=True, slots=True)
class _Draft:
    event_type: EventType
    occurred_at: datetime
    severity: float
    location: Location
    source_event_id: str | None


class EventNormalizer:
    """Turn a :class:`RawRecord` into a :class:`Signal`.

    Returns ``None`` for categories the engine deliberately ignores (floods,
    medical calls, ...). Raises :class:`ValidationError` when the category is
    missing, the event time cannot be read, or the payload does not fit its
    source's schema.
    """

    def __init__(self, source_confidence: Mapping[SourceType, float] | None = None) -> None:
        self._confidence = dict(DEFAULT_SOURCE_CONFIDENCE)
        if source_confidence:
            self._confidence.update(source_confidence)

    def normalize(self, record: RawRecord) -> Signal | None:
        label = f"{record.source_type}/{record.source_name}"
        try:
            draft = self._parse(record)
        except PayloadValidationError as exc:
            fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in exc.errors())
            raise ValidationError(f"{label}: invalid payload ({fields})", source=label) from exc
        except ValidationError as exc:
            raise ValidationError(f"{label}: {exc}", source=label) from exc

        if draft is None:
            log.debug("Dropped unmapped %s record", label)
            return None

        return Signal(
            source_type=record.source_type,
            source_name=record.source_name,
            source_event_id=draft.source_event_id,
            event_type=draft.event_type,
            occurred_at=draft.occurred_at,
            reported_at=record.fetched_at,
            location=draft.location,
            severity_raw=draft.severity,
            source_confidence=self._confidence[record.source_type],
            raw_payload=MappingProxyType(dict(record.payload)),
        )

    def _parse(self, record: RawRecord) -> _Draft | None:
        payload = record.payload
        match record.source_type:
            case SourceType.WEATHER:
                return _weather(WeatherFeature.model_validate(payload))
            case SourceType.FIRE_COMMERCIAL:
                return _fire_commercial(FireCommercialIncident.model_validate(payload))
            case SourceType.FIRE_STATE:
                return _fire_state(FireStateIncident.model_validate(payload))
            case SourceType.CAD:
                return _cad(CadIncident.model_validate(payload))
            case SourceType.NEWS:
                return _news(NewsArticle.model_validate(payload))
            case SourceType.DECLARATION:
                return _declaration(DisasterDeclaration.model_validate(payload))
            case _:
                assert_never(record.source_type)


def normalize_record(record: RawRecord) -> Signal | None:
    """Normalize with the default source confidences."""

    return EventNormalizer().normalize(record)


# Source variants ---------------------------------------------------------------


def _weather(feature: WeatherFeature) -> _Draft | None:
    props = feature.properties
    if props.event is None:
        raise ValidationError("weather feature has no event category")

    if props.is_alert:
        event_type = NWS_EVENT_TYPES.get(props.event.strip().lower())
        if event_type is None:
            return None
        severity = NWS_SEVERITY.get((props.severity or "unknown").lower(), DEFAULT_SEVERITY)
        occurred_at = _first_timestamp("onset", props.onset, props.effective, props.sent)
    else:
        event_type = storm_report_event_type(props.event)
        if event_type is None:
            return None
        severity = storm_report_severity(event_type, props.mag)
        occurred_at = _first_timestamp("time", props.time, props.onset)

    place = props.area_desc or props.place
    return _Draft(
        event_type=event_type,
        occurred_at=occurred_at,
        severity=severity,
        location=Location(
            coordinates=geometry_centroid(feature.geometry),
            state_code=_state_from_text(place),
            address=place,
        ),
        source_event_id=props.id or feature.id,
    )


def _fire_commercial(incident: FireCommercialIncident) -> _Draft:
    if incident.severity is not None and 0.0 <= incident.severity <= 1.0:
        severity = incident.severity
    else:
        severity = severity_from_loss(incident.estimated_loss)
    return _Draft(
        event_type=EventType.FIRE,
        occurred_at=_first_timestamp("incident_date", incident.incident_date),
        severity=severity,
        location=_incident_location(incident),
        source_event_id=incident.id,
    )


def _fire_state(incident: FireStateIncident) -> _Draft | None:
    if incident.incident_type is None:
        raise ValidationError("incident has no incident_type")
    code = _NFIRS_CODE.match(incident.incident_type)
    if code is not None:
        if int(code.group(1)) not in NFIRS_FIRE_CODES:
            return None
    elif "fire" not in incident.incident_type.lower():
        return None
    return _Draft(
        event_type=EventType.FIRE,
        occurred_at=_first_timestamp("incident_date", incident.incident_date, incident.alarm_time),
        severity=severity_from_loss(incident.estimated_loss),
        location=_incident_location(incident),
        source_event_id=incident.id,
    )


def _cad(incident: CadIncident) -> _Draft | None:
    if incident.call_type is None or not incident.call_type.strip():
        raise ValidationError("call has no call_type")
    if not is_cad_fire_call(incident.call_type):
        return None
    return _Draft(
        event_type=EventType.FIRE,
        occurred_at=_first_timestamp("call_time", incident.call_time),
        severity=cad_severity(incident.call_type, incident.priority),
        location=_incident_location(incident),
        source_event_id=incident.id,
    )


def _news(article: NewsArticle) -> _Draft | None:
    text = article.text
    if not text.strip():
        raise ValidationError("article has no title or summary")
    event_type = news_event_type(text)
    if event_type is None:
        return None
    zip_match = _ZIP.search(text)
    city_match = _CITY.search(text)
    state_match = _STATE_AFTER_COMMA.search(text)
    state = state_match.group(1) if state_match else None
    return _Draft(
        event_type=event_type,
        occurred_at=_first_timestamp("published", article.published),
        severity=news_severity(text),
        location=Location(
            zip_code=_clean_zip(zip_match.group(1)) if zip_match else None,
            city=city_match.group(1) if city_match else None,
            state_code=state if state in US_STATE_CODES else None,
        ),
        source_event_id=article.id or article.link,
    )


def _declaration(declaration: DisasterDeclaration) -> _Draft | None:
    if declaration.incident_type is None or not declaration.incident_type.strip():
        raise ValidationError(f"declaration {declaration.disaster_number} has no incidentType")
    event_type = declaration_event_type(declaration.incident_type)
    if event_type is None:
        return None
    county_fips = declaration.county_fips
    source_event_id = f"FEMA-{declaration.disaster_number}"
    if county_fips is not None:
        source_event_id = f"{source_event_id}-{county_fips}"
    return _Draft(
        event_type=event_type,
        occurred_at=_first_timestamp(
            "incidentBeginDate",
            declaration.incident_begin_date,
            declaration.declaration_date,
        ),
        severity=declaration_severity(declaration.declaration_type, declaration.incident_type),
        location=Location(
            coordinates=Coordinates.parse(declaration.latitude, declaration.longitude),
            county_fips=county_fips,
            state_code=_clean_state(declaration.state),
            address=declaration.designated_area,
        ),
        source_event_id=source_event_id,
    )


# Helpers ----------------------------------------------------------------------


def parse_timestamp(value: Timestamp) -> datetime | None:
    """Parse ISO-8601, RFC 2822 or epoch (seconds or milliseconds) into aware UTC."""

    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int | float):
        seconds = value / 1000 if abs(value) > 1e11 else value
        try:
            return datetime.fromtimestamp(seconds, tz=UTC)
        except (OverflowError, OSError, ValueError):
            return None
    text = value.strip()
    if not text:
        return None
    normalized = text[:-1] + "+00:00" if text.endswith(("Z", "z")) else text
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _first_timestamp(field_name: str, *values: Timestamp) -> datetime:
    present = [value for value in values if value is not None and value != ""]
    for value in present:
        parsed = parse_timestamp(value)
        if parsed is not None:
            return parsed
    if present:
        raise ValidationError(f"unparseable {field_name}: {present[0]!r}")
    raise ValidationError(f"missing {field_name}")


def geometry_centroid(geometry: Geometry | None) -> Coordinates | None:
    """Reduce GeoJSON point/polygon/multipolygon geometry to one ``[lng, lat]`` point.

    Polygons use the mean of their first (exterior) ring; multipolygons use the first polygon.
    """

    if geometry is None or geometry.coordinates is None:
        return None
    try:
        match geometry.type:
            case "Point":
                lng, lat = geometry.coordinates[:2]
                return Coordinates.parse(lat, lng)
            case "Polygon":
                ring = geometry.coordinates[0]
            case "MultiPolygon":
                ring = geometry.coordinates[0][0]
            case _:
                return None
        points = [(float(point[0]), float(point[1])) for point in ring]
    except (TypeError, ValueError, IndexError):
        return None
    if len(points) > 1 and points[0] == points[-1]:
        points = points[:-1]
    if not points:
        return None
    lng = sum(point[0] for point in points) / len(points)
    lat = sum(point[1] for point in points) / len(points)
    return Coordinates.parse(lat, lng)


def _incident_location(
    incident: FireCommercialIncident | FireStateIncident | CadIncident,
) -> Location:
    return Location(
        coordinates=Coordinates.parse(incident.latitude, incident.longitude),
        zip_code=_clean_zip(incident.zip),
        state_code=_clean_state(incident.state),
        city=incident.city,
        address=incident.address,
    )


def _clean_zip(value: str | None) -> str | None:
    if value is None:
        return None
    match = _ZIP.search(value)
    if match is None or match.group(1) == "00000":
        return None
    return match.group(1)


def _clean_state(value: str | None) -> str | None:
    if value is None:
        return None
    code = value.strip().upper()
    return code if code in US_STATE_CODES else None


def _state_from_text(text: str | None) -> str | None:
    if not text:
        return None
    for match in _STATE_TOKEN.finditer(text):
        if match.group(1) in US_STATE_CODES:
            return match.group(1)
    return None
