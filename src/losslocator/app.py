"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Final

from losslocator.adapters.census import CensusReverseGeocoder
from losslocator.adapters.crosswalk_csv import read_crosswalk_csv
from losslocator.adapters.sources import (
    FemaDeclarationFetcher,
    FireIncidentFetcher,
    NwsAlertFetcher,
    SpcStormReportFetcher,
    cad_fetchers,
    news_fetchers,
)
from losslocator.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyReconciliationUnitOfWork,
    is_started,
    startup,
)
from losslocator.config.errors import ConfigurationError
from losslocator.config.ingestion import get_ingestion_config
from losslocator.config.sources import (
    get_cad_config,
    get_fire_commercial_config,
    get_fire_state_config,
    get_news_config,
)
from losslocator.domain.ingestion import IngestionCoordinator
from losslocator.domain.model import SourceType
from losslocator.domain.ports.unit_of_work import ReconciliationUnitOfWork

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime
    from pathlib import Path

    from losslocator.domain.ingestion import RunSummary
    from losslocator.domain.model import AuditEntry, Cluster, Signal
    from losslocator.domain.ports.fetching import FetchResult, SourceFetcher
    from losslocator.domain.ports.geocoding import ReverseGeocoder
    from losslocator.domain.ports.persistence import ClusterQuery

UnitOfWorkFactory = Callable[[], ReconciliationUnitOfWork]

log = getLogger(__name__)

SOURCE_TYPES: Final[dict[str, SourceType]] = {
    "nws": SourceType.WEATHER,
    "spc": SourceType.WEATHER,
    "fema": SourceType.DECLARATION,
    "fire_commercial": SourceType.FIRE_COMMERCIAL,
    "fire_state": SourceType.FIRE_STATE,
    "cad": SourceType.CAD,
    "news": SourceType.NEWS,
}
SOURCE_NAMES: Final[tuple[str, ...]] = tuple(SOURCE_TYPES)


@dataclass(frozen=True, slots=True)
class UnconfiguredSource:
    """Stands in for a source whose configuration failed to load.

    Calling it re-raises the configuration error so the coordinator records a
    failed run for this source while the others proceed.
    """

    source_type: SourceType
    source_name: str
    error: ConfigurationError

    def __call__(self, *, since: datetime | None = None) -> FetchResult:  # noqa: ARG002
        raise self.error


def build_fetchers(names: Sequence[str] | None = None) -> list[SourceFetcher]:
    """Instantiate fetchers for the named sources (all of them by default)."""

    selected = list(names) if names else list(SOURCE_NAMES)
    unknown = sorted(set(selected) - set(SOURCE_TYPES))
    if unknown:
        raise ValueError(f"Unknown source(s): {', '.join(unknown)}")

    fetchers: list[SourceFetcher] = []
    for name in selected:
        try:
            fetchers.extend(_fetchers_for(name))
        except ConfigurationError as exc:
            log.warning("Source %s is not configured: %s", name, exc)
            fetchers.append(UnconfiguredSource(SOURCE_TYPES[name], name, exc))
    return fetchers


def _fetchers_for(name: str) -> list[SourceFetcher]:
    match name:
        case "nws":
            return [NwsAlertFetcher()]
        case "spc":
            return [SpcStormReportFetcher()]
        case "fema":
            return [FemaDeclarationFetcher()]
        case "fire_commercial":
            return [FireIncidentFetcher(get_fire_commercial_config(), SourceType.FIRE_COMMERCIAL)]
        case "fire_state":
            return [FireIncidentFetcher(get_fire_state_config(), SourceType.FIRE_STATE)]
        case "cad":
            return list(cad_fetchers(get_cad_config()))
        case "news":
            return list(news_fetchers(get_news_config()))
        case _:
            raise ValueError(f"Unknown source: {name}")


def _ensure_started() -> None:
    if not is_started():
        startup()


def run_ingestion(
    *,
    sources: Sequence[str] | None = None,
    fetchers: Sequence[SourceFetcher] | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    geocoder: ReverseGeocoder | None = None,
    reverse_geocode: bool = True,
    run_budget_seconds: float | None = None,
    max_workers: int | None = None,
) -> list[RunSummary]:
    """Run one ingestion pass over the selected sources using the configured adapters."""

    if unit_of_work_factory is None:
        _ensure_started()
    effective_uow = unit_of_work_factory or SqlAlchemyReconciliationUnitOfWork
    effective_fetchers = list(fetchers) if fetchers is not None else build_fetchers(sources)
    effective_geocoder = geocoder or (CensusReverseGeocoder() if reverse_geocode else None)
    config = get_ingestion_config(run_budget_seconds=run_budget_seconds, max_workers=max_workers)

    log.info(
        "Starting ingestion: sources=%s, budget=%ss, workers=%d",
        ", ".join(fetcher.source_name for fetcher in effective_fetchers),
        config.run_budget_seconds,
        config.max_workers,
    )
    coordinator = IngestionCoordinator(
        config=config,
        unit_of_work_factory=effective_uow,
        geocoder=effective_geocoder,
    )
    return coordinator.run_all(effective_fetchers)


def query_clusters(
    query: ClusterQuery,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[Cluster]:
    if unit_of_work_factory is None:
        _ensure_started()
    with (unit_of_work_factory or SqlAlchemyReconciliationUnitOfWork)() as uow:
        return uow.repositories.clusters.query(query)


def cluster_signals(
    cluster: Cluster,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[Signal]:
    if unit_of_work_factory is None:
        _ensure_started()
    with (unit_of_work_factory or SqlAlchemyReconciliationUnitOfWork)() as uow:
        return uow.repositories.signals.list_for_cluster(cluster.id)


def recent_audit_entries(
    *,
    limit: int = 50,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[AuditEntry]:
    if unit_of_work_factory is None:
        _ensure_started()
    with (unit_of_work_factory or SqlAlchemyReconciliationUnitOfWork)() as uow:
        return uow.repositories.audit_log.recent(limit=limit)


def load_crosswalk(
    path: Path,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> int:
    """Upsert a ZIP-to-county crosswalk CSV into the store; returns the number of rows."""

    if unit_of_work_factory is None:
        _ensure_started()
    rows = list(read_crosswalk_csv(path))
    with (unit_of_work_factory or SqlAlchemyReconciliationUnitOfWork)() as uow:
        count = uow.repositories.crosswalk.upsert(rows)
        uow.commit()
    log.info("Loaded %d crosswalk rows from %s", count, path)
    return count
