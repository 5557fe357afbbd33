from __future__ import annotations

from datetime import UTC, datetime, timedelta

from losslocator.domain.model import (
    Coordinates,
    EventType,
    GeoAnnotation,
    Location,
    Signal,
    SourceType,
)
from losslocator.domain.normalization import DEFAULT_SOURCE_CONFIDENCE
from losslocator.domain.ports.fetching import RawRecord

NOON = datetime(2024, 6, 1, 12, 0, tzinfo=UTC)
DALLAS = (32.7767, -96.7970)


def make_signal(
    source_type: SourceType = SourceType.WEATHER,
    event_type: EventType = EventType.WIND,
    *,
    at: datetime = NOON,
    minutes: float = 0,
    position: tuple[float, float] | None = DALLAS,
    severity: float = 0.8,
    confidence: float | None = None,
    source_name: str | None = None,
    source_event_id: str | None = None,
    zip_code: str | None = None,
    county_fips: str | None = None,
    state_code: str | None = None,
    geo: GeoAnnotation | None = None,
) -> Signal:
    return Signal(
        source_type=source_type,
        source_name=source_name or str(source_type),
        source_event_id=source_event_id,
        event_type=event_type,
        occurred_at=at + timedelta(minutes=minutes),
        location=Location(
            coordinates=Coordinates(*position) if position is not None else None,
            zip_code=zip_code,
            county_fips=county_fips,
            state_code=state_code,
        ),
        severity_raw=severity,
        source_confidence=(
            confidence if confidence is not None else DEFAULT_SOURCE_CONFIDENCE[source_type]
        ),
        geo=geo,
    )


def cad_payload(
    incident_id: str,
    *,
    call_type: str | None = "STRUCTURE FIRE",
    call_time: str = "2024-06-01T12:00:00Z",
    position: tuple[float, float] = DALLAS,
) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": incident_id,
        "call_time": call_time,
        "latitude": position[0],
        "longitude": position[1],
        "address": "1500 Marilla St",
        "city": "Dallas",
        "state": "TX",
        "zip": "75201",
    }
    if call_type is not None:
        payload["call_type"] = call_type
    return payload


def cad_record(payload: dict[str, object], *, source_name: str = "dallas") -> RawRecord:
    return RawRecord(source_type=SourceType.CAD, source_name=source_name, payload=payload)
