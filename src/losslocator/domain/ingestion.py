"""Ingestion coordinator: one run per source through normalize, resolve and assemble."""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from losslocator.config.errors import ConfigurationError
from losslocator.domain.assembly import AssemblySummary, ClusterAssembler
from losslocator.domain.errors import ValidationError
from losslocator.domain.geo_resolution import GeoResolver
from losslocator.domain.matching import DuplicateCandidateMatcher
from losslocator.domain.model import AuditEntry, AuditOutcome, IngestionRun, RunStatus
from losslocator.domain.normalization import EventNormalizer
from losslocator.domain.ports.fetching import (
    FetchSuccess,
    PermanentFetchFailure,
    TransientFetchFailure,
)
from losslocator.domain.scoring import ConfidenceScorer

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Iterator, Sequence

    from losslocator.config.ingestion import IngestionConfig
    from losslocator.domain.model import Signal, SourceType
    from losslocator.domain.ports.fetching import FetchResult, RawRecord, SourceFetcher
    from losslocator.domain.ports.geocoding import ReverseGeocoder, ZipCountyCrosswalk
    from losslocator.domain.ports.unit_of_work import ReconciliationUnitOfWork

log = getLogger(__name__)


@dataclass(slots=True)
class RunSummary:
    """What operators see for one source run."""

    source_name: str
    source_type: SourceType
    status: RunStatus = RunStatus.RUNNING
    fetched: int = 0
    processed: int = 0
    clustered: int = 0
    merged: int = 0
    suppressed: int = 0
    duplicates: int = 0
    unmapped: int = 0
    failed: int = 0
    cancelled: bool = False
    error: str | None = None
    started_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))

    def absorb(self, assembly: AssemblySummary) -> None:
        self.processed += assembly.processed
        self.clustered += assembly.clustered
        self.merged += assembly.merged
        self.suppressed += assembly.suppressed
        self.duplicates += assembly.duplicates
        self.failed += assembly.failed
        self.cancelled = self.cancelled or assembly.cancelled

    @property
    def skipped(self) -> int:
        return self.suppressed + self.duplicates + self.unmapped + self.failed


class IngestionCoordinator:
    """Drive scheduled runs, one per source, against a shared cluster store.

    A run never reports "nothing happened" when it could not look: fetch,
    configuration and unexpected errors end the run with ``status=failed``
    and an error.
    """

    def __init__(
        self,
        *,
        config: IngestionConfig,
        unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
        geocoder: ReverseGeocoder | None = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config
        self._uow_factory = unit_of_work_factory
        self._geocoder = geocoder
        self._sleep = sleep
        self._clock = clock
        self.normalizer = EventNormalizer(config.source_confidence)
        self.assembler = ClusterAssembler(
            unit_of_work_factory=unit_of_work_factory,
            matcher=DuplicateCandidateMatcher(config.tolerances),
            scorer=ConfidenceScorer(config.scoring),
            suppression=config.suppression,
        )

    def run_all(
        self,
        fetchers: Sequence[SourceFetcher],
        *,
        max_workers: int | None = None,
    ) -> list[RunSummary]:
        """Run every source; independent sources may run concurrently."""

        workers = min(max_workers or self.config.max_workers, len(fetchers))
        if workers <= 1:
            return [self.run_source(fetcher) for fetcher in fetchers]
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="ingest") as pool:
            return list(pool.map(self.run_source, fetchers))

    def run_source(self, fetcher: SourceFetcher) -> RunSummary:
        """Run one source; any error ends this run as failed without touching the others."""

        summary = RunSummary(source_name=fetcher.source_name, source_type=fetcher.source_type)
        run = IngestionRun(source_name=fetcher.source_name, source_type=fetcher.source_type)
        try:
            return self._run(fetcher, run, summary)
        except Exception as exc:
            log.exception("Run for %s aborted", summary.source_name)
            return self._abort(run, summary, f"{type(exc).__name__}: {exc}")

    def _run(self, fetcher: SourceFetcher, run: IngestionRun, summary: RunSummary) -> RunSummary:
        since = self._start_run(run)
        deadline = (
            self._clock() + self.config.run_budget_seconds
            if self.config.run_budget_seconds is not None
            else None
        )
        log.info("Starting %s run for %s (since=%s)", summary.source_type, summary.source_name, since)

        try:
            result = self._fetch(fetcher, since=since)
        except ConfigurationError as exc:
            log.error("Skipping %s: %s", summary.source_name, exc)  # noqa: TRY400
            return self._finish(run, summary, RunStatus.FAILED, error=f"configuration: {exc}")

        match result:
            case FetchSuccess(records=records):
                summary.fetched = len(records)
            case TransientFetchFailure(reason=reason) | PermanentFetchFailure(reason=reason):
                log.error("Fetching %s failed: %s", summary.source_name, reason)
                return self._finish(run, summary, RunStatus.FAILED, error=f"fetch: {reason}")

        def within_budget() -> bool:
            return deadline is None or self._clock() < deadline

        resolver = GeoResolver(crosswalk=self._load_crosswalk(), geocoder=self._geocoder)
        signals = self._signals(records, summary, resolver, within_budget)
        summary.absorb(self.assembler.assemble(signals, should_continue=within_budget))

        status = RunStatus.SUCCESS
        if summary.failed or summary.cancelled:
            status = RunStatus.PARTIAL
        error = "run budget exhausted" if summary.cancelled else None
        return self._finish(run, summary, status, error=error)

    def _signals(
        self,
        records: Iterable[RawRecord],
        summary: RunSummary,
        resolver: GeoResolver,
        within_budget: Callable[[], bool],
    ) -> Iterator[Signal]:
        for record in records:
            if not within_budget():
                summary.cancelled = True
                return
            try:
                signal = self.normalizer.normalize(record)
            except ValidationError as exc:
                log.warning("Skipping malformed record: %s", exc)
                summary.processed += 1
                summary.failed += 1
                self._audit_record(record, str(exc))
                continue
            if signal is None:
                summary.processed += 1
                summary.unmapped += 1
                continue
            try:
                resolved = resolver.resolve(signal)
            except Exception:
                log.exception(
                    "Geo resolution failed for %s; keeping its own location", signal.describe()
                )
                resolved = signal
            yield resolved

    def _fetch(self, fetcher: SourceFetcher, *, since: datetime | None) -> FetchResult:
        attempts = self.config.fetch_attempts
        for attempt in range(1, attempts + 1):
            result = fetcher(since=since)
            if not isinstance(result, TransientFetchFailure) or attempt == attempts:
                return result
            delay = self.config.fetch_backoff_seconds * 2 ** (attempt - 1)
            log.warning(
                "Transient failure fetching %s (attempt %d/%d): %s; retrying in %.1fs",
                fetcher.source_name,
                attempt,
                attempts,
                result.reason,
                delay,
            )
            self._sleep(delay)
        raise AssertionError("unreachable")

    def _start_run(self, run: IngestionRun) -> datetime | None:
        with self._uow_factory() as uow:
            previous = uow.repositories.ingestion_runs.latest_completed(run.source_name)
            uow.repositories.ingestion_runs.add(run)
            uow.commit()
        if previous is None:
            return None
        return previous.started_at - self.config.fetch_overlap

    def _finish(
        self,
        run: IngestionRun,
        summary: RunSummary,
        status: RunStatus,
        *,
        error: str | None = None,
    ) -> RunSummary:
        summary.status = status
        summary.error = error
        run.finish(status, processed=summary.processed, skipped=summary.skipped, error=error)
        with self._uow_factory() as uow:
            uow.repositories.ingestion_runs.update(run)
            uow.commit()
        log.info(
            "Finished %s run: status=%s fetched=%d processed=%d clustered=%d merged=%d "
            "suppressed=%d duplicates=%d unmapped=%d failed=%d%s",
            summary.source_name,
            summary.status,
            summary.fetched,
            summary.processed,
            summary.clustered,
            summary.merged,
            summary.suppressed,
            summary.duplicates,
            summary.unmapped,
            summary.failed,
            f" error={error}" if error else "",
        )
        return summary

    def _abort(self, run: IngestionRun, summary: RunSummary, error: str) -> RunSummary:
        try:
            return self._finish(run, summary, RunStatus.FAILED, error=error)
        except Exception:
            log.exception("Could not record failed run for %s", summary.source_name)
        summary.status = RunStatus.FAILED
        summary.error = error
        return summary

    def _load_crosswalk(self) -> ZipCountyCrosswalk:
        with self._uow_factory() as uow:
            return uow.repositories.crosswalk.load()

    def _audit_record(self, record: RawRecord, reason: str) -> None:
        raw_id = record.payload.get("id")
        self.assembler.audit(
            AuditEntry(
                source_type=record.source_type,
                source_name=record.source_name,
                source_event_id=str(raw_id) if raw_id is not None else None,
                outcome=AuditOutcome.FAILED,
                reason=reason,
            )
        )
