"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class SourceType(StrEnum):
    WEATHER = "weather"
    FIRE_COMMERCIAL = "fire_commercial"
    FIRE_STATE = "fire_state"
    CAD = "cad"
    NEWS = "news"
    DECLARATION = "declaration"

    @property
    def pipeline(self) -> SourcePipeline:
        """Matching pipeline whose tolerance pair applies to signals of this type."""
        return _PIPELINE_BY_SOURCE[self]

    @property
    def corroboration_group(self) -> CorroborationGroup:
        """Scoring bucket; commercial and state fire reports share one."""
        return _GROUP_BY_SOURCE[self]


class SourcePipeline(StrEnum):
    FIRE = "fire"
    WEATHER = "weather"


class CorroborationGroup(StrEnum):
    WEATHER = "weather"
    FIRE_REPORT = "fire_report"
    CAD = "cad"
    NEWS = "news"
    DECLARATION = "declaration"


class EventType(StrEnum):
    FIRE = "Fire"
    WIND = "Wind"
    HAIL = "Hail"
    FREEZE = "Freeze"


class VerificationStatus(StrEnum):
    PROBABLE = "probable"
    REPORTED = "reported"
    CONFIRMED = "confirmed"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


class ResolutionLevel(StrEnum):
    """Location precision, most precise first."""

    POINT = "point"
    ZIP = "zip"
    COUNTY = "county"
    STATE = "state"

    @property
    def precision(self) -> int:
        return len(_RESOLUTION_ORDER) - _RESOLUTION_ORDER.index(self)


class AuditOutcome(StrEnum):
    SUPPRESSED = "suppressed"
    FAILED = "failed"


class RunStatus(StrEnum):
    RUNNING = "running"
    SUCCESS = "success"
    PARTIAL = "partial"
    FAILED = "failed"


_PIPELINE_BY_SOURCE: dict[SourceType, SourcePipeline] = {
    SourceType.WEATHER: SourcePipeline.WEATHER,
    SourceType.FIRE_COMMERCIAL: SourcePipeline.FIRE,
    SourceType.FIRE_STATE: SourcePipeline.FIRE,
    SourceType.CAD: SourcePipeline.FIRE,
    SourceType.NEWS: SourcePipeline.WEATHER,
    SourceType.DECLARATION: SourcePipeline.WEATHER,
}

_GROUP_BY_SOURCE: dict[SourceType, CorroborationGroup] = {
    SourceType.WEATHER: CorroborationGroup.WEATHER,
    SourceType.FIRE_COMMERCIAL: CorroborationGroup.FIRE_REPORT,
    SourceType.FIRE_STATE: CorroborationGroup.FIRE_REPORT,
    SourceType.CAD: CorroborationGroup.CAD,
    SourceType.NEWS: CorroborationGroup.NEWS,
    SourceType.DECLARATION: CorroborationGroup.DECLARATION,
}

_STATUS_ORDER = (
    VerificationStatus.PROBABLE,
    VerificationStatus.REPORTED,
    VerificationStatus.CONFIRMED,
)

_RESOLUTION_ORDER = (
    ResolutionLevel.POINT,
    ResolutionLevel.ZIP,
    ResolutionLevel.COUNTY,
    ResolutionLevel.STATE,
)
