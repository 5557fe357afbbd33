"""Clusters: deduplicated aggregates of corroborating signals."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .entity import Entity
from .enums import SourceType, VerificationStatus
from .primitives import Coordinates, TimeRange

if TYPE_CHECKING:
    from collections.abc import Sequence
    from uuid import UUID

    from .enums import EventType
    from .geo import GeoAnnotation
    from .signal import Signal


class ClusterMembershipError(ValueError):
    """Raised when a signal cannot join a cluster."""


@dataclass(eq=False, kw_only=True)
class Cluster(Entity):
    """Aggregate believed to represent one real event.

    The cluster owns its member signal ids; signals never point back by field.
    ``confidence_score`` and ``verification_status`` only ever move upwards.
    """

    event_type: EventType
    time_window: TimeRange
    centroid: Coordinates | None = None
    located_count: int = 0
    confidence_score: int = 0
    verification_status: VerificationStatus = VerificationStatus.PROBABLE
    signal_ids: set[UUID] = field(default_factory=set)
    source_types_present: set[SourceType] = field(default_factory=set)
    geo: GeoAnnotation | None = None
    version: int = 0
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    updated_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    @classmethod
    def seed(cls, signals: Sequence[Signal]) -> Cluster:
        """Create an unscored cluster from one or more signals of the same event type."""

        if not signals:
            raise ClusterMembershipError("a cluster needs at least one signal")
        first, *rest = signals
        cluster = cls(
            event_type=first.event_type,
            time_window=TimeRange.instant(first.occurred_at),
        )
        cluster.attach(first)
        for signal in rest:
            cluster.attach(signal)
        return cluster

    @property
    def size(self) -> int:
        return len(self.signal_ids)

    @property
    def is_weather_only(self) -> bool:
        return self.source_types_present == {SourceType.WEATHER}

    def contains(self, signal: Signal) -> bool:
        return signal.id in self.signal_ids

    def attach(self, signal: Signal) -> None:
        """Add a signal: fold its location into the centroid and extend the window."""

        if signal.event_type != self.event_type:
            raise ClusterMembershipError(
                f"signal {signal.describe()} is {signal.event_type}, cluster is {self.event_type}"
            )
        if self.contains(signal):
            raise ClusterMembershipError(f"signal {signal.describe()} already in cluster")

        coordinates = signal.coordinates
        if coordinates is not None:
            self._fold_centroid(coordinates)
        self.time_window = self.time_window.extend(signal.occurred_at)
        self.signal_ids.add(signal.id)
        self.source_types_present.add(signal.source_type)
        if signal.geo is not None:
            self.geo = signal.geo if self.geo is None else self.geo.merge(signal.geo)
        self.updated_at = datetime.now(tz=UTC)

    def apply_score(self, score: int, status: VerificationStatus) -> None:
        """Record a recomputed score; never lets score or status regress."""

        self.confidence_score = max(self.confidence_score, score)
        if status.rank > self.verification_status.rank:
            self.verification_status = status

    def _fold_centroid(self, coordinates: Coordinates) -> None:
        if self.centroid is None:
            self.centroid = coordinates
            self.located_count = 1
            return
        count = self.located_count + 1
        self.centroid = Coordinates(
            latitude=self.centroid.latitude
            + (coordinates.latitude - self.centroid.latitude) / count,
            longitude=self.centroid.longitude
            + (coordinates.longitude - self.centroid.longitude) / count,
        )
        self.located_count = count
