"""Signals: one source's observation of a loss event."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import TYPE_CHECKING

from .entity import new_id
from .primitives import Location

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

    from .enums import EventType, SourcePipeline, SourceType
    from .geo import GeoAnnotation
    from .primitives import Coordinates


@dataclass(frozen=True, slots=True)
class SignalKey:
    """Provider identity of a signal; unique across the store."""

    source_type: SourceType
    source_name: str
    source_event_id: str


@dataclass(frozen=True, eq=False, kw_only=True)
class Signal:
    """Immutable observation. Corrections arrive as new signals, never edits."""

    id: UUID = field(default_factory=new_id)
    source_type: SourceType
    source_name: str
    source_event_id: str | None = None
    event_type: EventType
    occurred_at: datetime
    reported_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    location: Location = field(default_factory=Location)
    severity_raw: float = 0.5
    source_confidence: float = 0.5
    raw_payload: Mapping[str, object] = field(default_factory=lambda: MappingProxyType({}))
    geo: GeoAnnotation | None = None

    def __post_init__(self) -> None:
        if not 0.0 <= self.severity_raw <= 1.0:
            raise ValueError(f"severity_raw must be within [0, 1], got {self.severity_raw}")
        if not 0.0 <= self.source_confidence <= 1.0:
            raise ValueError(
                f"source_confidence must be within [0, 1], got {self.source_confidence}"
            )
        if self.occurred_at.tzinfo is None:
            raise ValueError("occurred_at must be timezone-aware")

    @property
    def key(self) -> SignalKey | None:
        if self.source_event_id is None:
            return None
        return SignalKey(self.source_type, self.source_name, self.source_event_id)

    @property
    def coordinates(self) -> Coordinates | None:
        return self.location.coordinates

    @property
    def pipeline(self) -> SourcePipeline:
        return self.source_type.pipeline

    def describe(self) -> str:
        ident = self.source_event_id or str(self.id)
        return f"{self.source_type}/{self.source_name}/{ident}"
