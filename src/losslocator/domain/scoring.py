"""Confidence scoring from the set of corroborating source types."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import TYPE_CHECKING

from losslocator.domain.model import CorroborationGroup, SourceType, VerificationStatus

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

DEFAULT_WEIGHTS: Mapping[CorroborationGroup, int] = MappingProxyType(
    {
        CorroborationGroup.WEATHER: 40,
        CorroborationGroup.FIRE_REPORT: 25,
        CorroborationGroup.CAD: 20,
        CorroborationGroup.NEWS: 15,
        CorroborationGroup.DECLARATION: 20,
    }
)


@dataclass(frozen=True, slots=True)
class ScoringConfig:
    weights: Mapping[CorroborationGroup, int] = field(default=DEFAULT_WEIGHTS)
    cap: int = 100
    reported_threshold: int = 60
    confirmed_threshold: int = 85  # strictly above this is confirmed


@dataclass(frozen=True, slots=True)
class ConfidenceScore:
    score: int
    status: VerificationStatus


class ConfidenceScorer:
    def __init__(self, config: ScoringConfig | None = None) -> None:
        self.config = config or ScoringConfig()

    def score(self, source_types: Iterable[SourceType]) -> ConfidenceScore:
        """Sum one contribution per corroboration group, cap it, then derive the tier.

        A weather-only composition can never be confirmed, whatever the number says.
        """

        present = set(source_types)
        groups = {source_type.corroboration_group for source_type in present}
        total = min(self.config.cap, sum(self.config.weights.get(group, 0) for group in groups))
        status = self._tier(total)
        if status is VerificationStatus.CONFIRMED and present <= {SourceType.WEATHER}:
            status = VerificationStatus.REPORTED
        return ConfidenceScore(score=total, status=status)

    def _tier(self, score: int) -> VerificationStatus:
        if score > self.config.confirmed_threshold:
            return VerificationStatus.CONFIRMED
        if score >= self.config.reported_threshold:
            return VerificationStatus.REPORTED
        return VerificationStatus.PROBABLE
