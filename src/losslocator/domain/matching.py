"""Duplicate candidate matching by approximate location and time."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from logging import getLogger
from typing import TYPE_CHECKING

from losslocator.domain.geo import distance_miles, km_to_miles
from losslocator.domain.model import SourcePipeline

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from losslocator.domain.model import Signal, SourceType

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class MatchTolerance:
    """Spatial tolerance paired with its temporal window."""

    distance_miles: float
    window: timedelta

    def tighter(self, other: MatchTolerance) -> MatchTolerance:
        return MatchTolerance(
            distance_miles=min(self.distance_miles, other.distance_miles),
            window=min(self.window, other.window),
        )


FIRE_TOLERANCE = MatchTolerance(distance_miles=0.5, window=timedelta(hours=2))
WEATHER_TOLERANCE = MatchTolerance(distance_miles=km_to_miles(5.0), window=timedelta(hours=24))


@dataclass(frozen=True, slots=True)
class MatchTolerances:
    fire: MatchTolerance = field(default=FIRE_TOLERANCE)
    weather: MatchTolerance = field(default=WEATHER_TOLERANCE)

    def for_pipeline(self, pipeline: SourcePipeline) -> MatchTolerance:
        match pipeline:
            case SourcePipeline.FIRE:
                return self.fire
            case SourcePipeline.WEATHER:
                return self.weather

    def between(self, incoming: SourceType, existing: SourceType) -> MatchTolerance:
        """Tolerance for comparing two signals; the tighter pair wins when pipelines differ."""

        first = self.for_pipeline(incoming.pipeline)
        if incoming.pipeline == existing.pipeline:
            return first
        return first.tighter(self.for_pipeline(existing.pipeline))


@dataclass(frozen=True, slots=True)
class MatchCandidate:
    """A stored signal plus the cluster it currently backs (if any)."""

    signal: Signal
    cluster_id: UUID | None = None
    cluster_size: int = 0


@dataclass(frozen=True, slots=True)
class Match:
    candidate: MatchCandidate
    distance_miles: float
    time_delta: timedelta

    @property
    def cluster_id(self) -> UUID | None:
        return self.candidate.cluster_id


class DuplicateCandidateMatcher:
    """Pick the best existing signal for a new one, or nothing.

    A candidate qualifies only when event type matches, distance is within the
    tolerance and the ``occurred_at`` gap is within the paired window. Among
    qualifying candidates the one backing the larger cluster wins, then the one
    nearest in time, then the nearest in space.
    """

    def __init__(self, tolerances: MatchTolerances | None = None) -> None:
        self.tolerances = tolerances or MatchTolerances()

    def search_tolerance(self, signal: Signal) -> MatchTolerance:
        """Widest tolerance any candidate could be matched with (used for store prefilters)."""

        return self.tolerances.for_pipeline(signal.pipeline)

    def evaluate(self, signal: Signal, candidate: MatchCandidate) -> Match | None:
        existing = candidate.signal
        if existing.id == signal.id or existing.event_type != signal.event_type:
            return None
        here, there = signal.coordinates, existing.coordinates
        if here is None or there is None:
            return None

        tolerance = self.tolerances.between(signal.source_type, existing.source_type)
        time_delta = abs(signal.occurred_at - existing.occurred_at)
        if time_delta > tolerance.window:
            return None
        distance = distance_miles(here.latitude, here.longitude, there.latitude, there.longitude)
        if distance > tolerance.distance_miles:
            return None
        return Match(candidate=candidate, distance_miles=distance, time_delta=time_delta)

    def find_match(self, signal: Signal, candidates: Iterable[MatchCandidate]) -> Match | None:
        if signal.coordinates is None:
            return None
        matches = [
            match
            for candidate in candidates
            if (match := self.evaluate(signal, candidate)) is not None
        ]
        if not matches:
            return None
        best = min(
            matches,
            key=lambda m: (-m.candidate.cluster_size, m.time_delta, m.distance_miles),
        )
        log.debug(
            "Matched %s to %s (%.3f mi, %s apart, %d candidates)",
            signal.describe(),
            best.candidate.signal.describe(),
            best.distance_miles,
            best.time_delta,
            len(matches),
        )
        return best
