"""Match-or-create-or-suppress assembly of signals into clusters."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from logging import getLogger
from typing import TYPE_CHECKING

from losslocator.domain.errors import ConflictError
from losslocator.domain.geo import bounding_box
from losslocator.domain.matching import DuplicateCandidateMatcher
from losslocator.domain.model import AuditEntry, AuditOutcome, Cluster
from losslocator.domain.ports.persistence import BoundingBox
from losslocator.domain.scoring import ConfidenceScorer

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from uuid import UUID

    from losslocator.domain.matching import Match
    from losslocator.domain.model import Signal
    from losslocator.domain.ports.unit_of_work import (
        ReconciliationRepositories,
        ReconciliationUnitOfWork,
    )

log = getLogger(__name__)

MAX_ATTEMPTS = 2


@dataclass(frozen=True, slots=True)
class SuppressionPolicy:
    """Uncorroborated signals below both thresholds never seed a cluster."""

    min_source_confidence: float = 0.70
    min_severity: float = 0.60

    def reason(self, signal: Signal) -> str | None:
        if (
            signal.source_confidence < self.min_source_confidence
            and signal.severity_raw < self.min_severity
        ):
            return (
                f"uncorroborated: source_confidence {signal.source_confidence:.2f} "
                f"< {self.min_source_confidence:.2f} and severity {signal.severity_raw:.2f} "
                f"< {self.min_severity:.2f}"
            )
        return None


class AssemblyOutcome(StrEnum):
    CLUSTERED = "clustered"
    MERGED = "merged"
    SUPPRESSED = "suppressed"
    DUPLICATE = "duplicate"
    FAILED = "failed"


@dataclass(slots=True)
class AssemblySummary:
    """Per-batch counts; ``processed`` counts every signal taken from the batch."""

    processed: int = 0
    clustered: int = 0
    merged: int = 0
    suppressed: int = 0
    duplicates: int = 0
    failed: int = 0
    cancelled: bool = False
    cluster_ids: set[UUID] = field(default_factory=set)

    def record(self, outcome: AssemblyOutcome, cluster_id: UUID | None = None) -> None:
        self.processed += 1
        match outcome:
            case AssemblyOutcome.CLUSTERED:
                self.clustered += 1
            case AssemblyOutcome.MERGED:
                self.merged += 1
            case AssemblyOutcome.SUPPRESSED:
                self.suppressed += 1
            case AssemblyOutcome.DUPLICATE:
                self.duplicates += 1
            case AssemblyOutcome.FAILED:
                self.failed += 1
        if cluster_id is not None:
            self.cluster_ids.add(cluster_id)

    @property
    def skipped(self) -> int:
        return self.suppressed + self.duplicates + self.failed


class ClusterAssembler:
    """Process signals in arrival order, one atomic transaction per signal.

    Each transaction first takes the event type's match lock, so two runs can
    never both decide "no match" and create twin clusters. Store-level unique
    constraints and cluster versions turn any remaining race into a
    :class:`ConflictError`, which is retried once before the signal is failed.
    """

    def __init__(
        self,
        *,
        unit_of_work_factory: Callable[[], ReconciliationUnitOfWork],
        matcher: DuplicateCandidateMatcher | None = None,
        scorer: ConfidenceScorer | None = None,
        suppression: SuppressionPolicy | None = None,
    ) -> None:
        self._uow_factory = unit_of_work_factory
        self.matcher = matcher or DuplicateCandidateMatcher()
        self.scorer = scorer or ConfidenceScorer()
        self.suppression = suppression or SuppressionPolicy()

    def assemble(
        self,
        signals: Iterable[Signal],
        *,
        should_continue: Callable[[], bool] | None = None,
    ) -> AssemblySummary:
        summary = AssemblySummary()
        for signal in signals:
            if should_continue is not None and not should_continue():
                summary.cancelled = True
                log.warning(
                    "Stopping intake after %d signals: run budget exhausted", summary.processed
                )
                break
            try:
                outcome, cluster_id = self.process(signal)
            except Exception as exc:  # noqa: BLE001
                log.exception("Failed to assemble %s", signal.describe())
                self.record_failure(signal, f"{type(exc).__name__}: {exc}")
                outcome, cluster_id = AssemblyOutcome.FAILED, None
            summary.record(outcome, cluster_id)
        return summary

    def process(self, signal: Signal) -> tuple[AssemblyOutcome, UUID | None]:
        """Run match-or-create for one signal, retrying once on a write conflict."""

        for attempt in range(1, MAX_ATTEMPTS + 1):
            try:
                return self._process_once(signal)
            except ConflictError as exc:
                if attempt == MAX_ATTEMPTS:
                    log.warning("Giving up on %s after conflict: %s", signal.describe(), exc)
                    self.record_failure(signal, f"conflict: {exc}")
                    return AssemblyOutcome.FAILED, None
                log.info("Write conflict on %s, retrying: %s", signal.describe(), exc)
        raise AssertionError("unreachable")

    def record_failure(self, signal: Signal, reason: str) -> None:
        self.audit(
            AuditEntry(
                source_type=signal.source_type,
                source_name=signal.source_name,
                source_event_id=signal.source_event_id,
                outcome=AuditOutcome.FAILED,
                reason=reason,
            )
        )

    def _process_once(self, signal: Signal) -> tuple[AssemblyOutcome, UUID | None]:
        with self._uow_factory() as uow:
            repos = uow.repositories
            key = signal.key
            if key is not None and repos.signals.get_by_key(key) is not None:
                log.debug("Skipping already ingested %s", signal.describe())
                return AssemblyOutcome.DUPLICATE, None

            repos.clusters.lock_scope(signal.event_type)
            match = self._find_match(repos, signal)

            if match is not None and match.cluster_id is not None:
                cluster = repos.clusters.get(match.cluster_id)
                if cluster is None:
                    raise ConflictError(f"cluster {match.cluster_id} disappeared during match")
                cluster.attach(signal)
                self._rescore(cluster)
                repos.signals.add(signal)
                repos.clusters.update(cluster)
                uow.commit()
                log.debug("Merged %s into cluster %s", signal.describe(), cluster.id)
                return AssemblyOutcome.MERGED, cluster.id

            if match is not None and _corroborates(match.candidate.signal, signal):
                # a different kind of source backs a stored, unclustered signal
                cluster = Cluster.seed([match.candidate.signal, signal])
            else:
                reason = self.suppression.reason(signal)
                if reason is not None:
                    repos.signals.add(signal)
                    repos.audit_log.add(self._suppression_entry(signal, reason))
                    uow.commit()
                    log.info("Suppressed %s: %s", signal.describe(), reason)
                    return AssemblyOutcome.SUPPRESSED, None
                cluster = Cluster.seed([signal])

            self._rescore(cluster)
            repos.signals.add(signal)
            repos.clusters.add(cluster)
            uow.commit()
            log.debug(
                "Created cluster %s (%s, score=%d) from %s",
                cluster.id,
                cluster.event_type,
                cluster.confidence_score,
                signal.describe(),
            )
            return AssemblyOutcome.CLUSTERED, cluster.id

    def _find_match(self, repos: ReconciliationRepositories, signal: Signal) -> Match | None:
        coordinates = signal.coordinates
        if coordinates is None:
            return None
        tolerance = self.matcher.search_tolerance(signal)
        min_lat, max_lat, min_lng, max_lng = bounding_box(
            coordinates.latitude,
            coordinates.longitude,
            tolerance.distance_miles,
        )
        candidates = repos.signals.find_candidates(
            event_type=signal.event_type,
            bounds=BoundingBox(min_lat=min_lat, max_lat=max_lat, min_lng=min_lng, max_lng=max_lng),
            start=signal.occurred_at - tolerance.window,
            end=signal.occurred_at + tolerance.window,
        )
        return self.matcher.find_match(signal, candidates)

    def _rescore(self, cluster: Cluster) -> None:
        result = self.scorer.score(cluster.source_types_present)
        cluster.apply_score(result.score, result.status)

    @staticmethod
    def _suppression_entry(signal: Signal, reason: str) -> AuditEntry:
        return AuditEntry(
            source_type=signal.source_type,
            source_name=signal.source_name,
            source_event_id=signal.source_event_id,
            outcome=AuditOutcome.SUPPRESSED,
            reason=reason,
        )

    def audit(self, entry: AuditEntry) -> None:
        """Write an audit entry in its own transaction; audit failures are logged only."""

        try:
            with self._uow_factory() as uow:
                uow.repositories.audit_log.add(entry)
                uow.commit()
        except Exception:  # noqa: BLE001
            log.exception("Could not write audit entry for %s", entry.source_name)


def _corroborates(stored: Signal, incoming: Signal) -> bool:
    return stored.source_type.corroboration_group is not incoming.source_type.corroboration_group
