from __future__ import annotations

from types import MappingProxyType

import pytest

from losslocator.domain.model import CorroborationGroup, SourceType, VerificationStatus
from losslocator.domain.scoring import ConfidenceScorer, ScoringConfig


@pytest.fixture
def scorer() -> ConfidenceScorer:
    return ConfidenceScorer()


@pytest.mark.parametrize(
    ("source_types", "score", "status"),
    [
        ({SourceType.WEATHER}, 40, VerificationStatus.PROBABLE),
        ({SourceType.WEATHER, SourceType.CAD}, 60, VerificationStatus.REPORTED),
        ({SourceType.WEATHER, SourceType.CAD, SourceType.NEWS}, 75, VerificationStatus.REPORTED),
        (
            {SourceType.WEATHER, SourceType.CAD, SourceType.NEWS, SourceType.DECLARATION},
            95,
            VerificationStatus.CONFIRMED,
        ),
        ({SourceType.NEWS}, 15, VerificationStatus.PROBABLE),
    ],
)
def test_score_tiers(
    scorer: ConfidenceScorer,
    source_types: set[SourceType],
    score: int,
    status: VerificationStatus,
) -> None:
    result = scorer.score(source_types)
    assert (result.score, result.status) == (score, status)


def test_fire_reports_count_once(scorer: ConfidenceScorer) -> None:
    both = scorer.score({SourceType.FIRE_COMMERCIAL, SourceType.FIRE_STATE})
    one = scorer.score({SourceType.FIRE_STATE})
    assert both.score == one.score == 25


def test_score_is_capped(scorer: ConfidenceScorer) -> None:
    result = scorer.score(set(SourceType))
    assert result.score == 100
    assert result.status is VerificationStatus.CONFIRMED


def test_exactly_85_is_reported() -> None:
    weights = MappingProxyType({CorroborationGroup.CAD: 85})
    result = ConfidenceScorer(ScoringConfig(weights=weights)).score({SourceType.CAD})
    assert result.status is VerificationStatus.REPORTED


def test_weather_only_never_confirmed() -> None:
    weights = MappingProxyType({CorroborationGroup.WEATHER: 100})
    result = ConfidenceScorer(ScoringConfig(weights=weights)).score({SourceType.WEATHER})
    assert result.score == 100
    assert result.status is VerificationStatus.REPORTED


def test_empty_composition(scorer: ConfidenceScorer) -> None:
    result = scorer.score(set())
    assert (result.score, result.status) == (0, VerificationStatus.PROBABLE)
