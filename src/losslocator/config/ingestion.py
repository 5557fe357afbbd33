"""Explicit configuration handed to the ingestion coordinator."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING

from losslocator.domain.assembly import SuppressionPolicy
from losslocator.domain.matching import MatchTolerances
from losslocator.domain.normalization import DEFAULT_SOURCE_CONFIDENCE
from losslocator.domain.scoring import ScoringConfig

from .errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Mapping

    from losslocator.domain.model import SourceType

DEFAULT_RUN_BUDGET_SECONDS = 600.0
DEFAULT_FETCH_ATTEMPTS = 3
DEFAULT_FETCH_BACKOFF_SECONDS = 2.0


@dataclass(frozen=True, slots=True)
class IngestionConfig:
    """Everything a run needs besides its adapters; no module-level state is consulted."""

    tolerances: MatchTolerances = field(default_factory=MatchTolerances)
    scoring: ScoringConfig = field(default_factory=ScoringConfig)
    suppression: SuppressionPolicy = field(default_factory=SuppressionPolicy)
    source_confidence: Mapping[SourceType, float] = field(
        default_factory=lambda: DEFAULT_SOURCE_CONFIDENCE
    )
    fetch_attempts: int = DEFAULT_FETCH_ATTEMPTS
    fetch_backoff_seconds: float = DEFAULT_FETCH_BACKOFF_SECONDS
    fetch_overlap: timedelta = timedelta(hours=1)
    run_budget_seconds: float | None = DEFAULT_RUN_BUDGET_SECONDS
    max_workers: int = 1

    def __post_init__(self) -> None:
        if self.fetch_attempts < 1:
            raise ConfigurationError("fetch_attempts must be at least 1")
        if self.fetch_backoff_seconds < 0:
            raise ConfigurationError("fetch_backoff_seconds must be non-negative")
        if self.run_budget_seconds is not None and self.run_budget_seconds <= 0:
            raise ConfigurationError("run_budget_seconds must be positive")
        if self.max_workers < 1:
            raise ConfigurationError("max_workers must be at least 1")
        for source_type, confidence in self.source_confidence.items():
            if not 0.0 <= confidence <= 1.0:
                raise ConfigurationError(f"source confidence for {source_type} outside [0, 1]")


def _env_number[T: (int, float)](name: str, cast: type[T], default: T) -> T:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return cast(raw.strip())
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def get_ingestion_config(
    *,
    run_budget_seconds: float | None = None,
    max_workers: int | None = None,
) -> IngestionConfig:
    """Build the run configuration from explicit overrides, then environment, then defaults."""

    budget = (
        run_budget_seconds
        if run_budget_seconds is not None
        else _env_number("LOSSLOCATOR_RUN_BUDGET_SECONDS", float, DEFAULT_RUN_BUDGET_SECONDS)
    )
    return IngestionConfig(
        fetch_attempts=_env_number("LOSSLOCATOR_FETCH_ATTEMPTS", int, DEFAULT_FETCH_ATTEMPTS),
        fetch_backoff_seconds=_env_number(
            "LOSSLOCATOR_FETCH_BACKOFF_SECONDS", float, DEFAULT_FETCH_BACKOFF_SECONDS
        ),
        run_budget_seconds=budget,
        max_workers=(
            max_workers
            if max_workers is not None
            else _env_number("LOSSLOCATOR_MAX_WORKERS", int, 1)
        ),
    )
