"""Ports for persisting signals, clusters and run bookkeeping."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

from losslocator.domain.model import AuditEntry, Cluster, IngestionRun, Signal

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import datetime
    from uuid import UUID

    from losslocator.domain.matching import MatchCandidate
    from losslocator.domain.model import EventType, SignalKey, VerificationStatus
    from losslocator.domain.ports.geocoding import CrosswalkRow, ZipCountyCrosswalk


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@dataclass(frozen=True, slots=True, kw_only=True)
class BoundingBox:
    min_lat: float
    max_lat: float
    min_lng: float
    max_lng: float


@dataclass(frozen=True, slots=True, kw_only=True)
class ClusterQuery:
    """Read-side filter for downstream consumers; all fields optional and ANDed."""

    event_type: EventType | None = None
    state_code: str | None = None
    zip_code: str | None = None
    county_fips: str | None = None
    min_score: int | None = None
    max_score: int | None = None
    statuses: frozenset[VerificationStatus] | None = None
    window_start: datetime | None = None
    window_end: datetime | None = None
    limit: int | None = 100


@runtime_checkable
class SignalRepository(Repository[Signal], Protocol):
    """Signals are insert-only; a key collision raises ``ConflictError``."""

    def get(self, signal_id: UUID) -> Signal | None: ...

    def get_by_key(self, key: SignalKey) -> Signal | None: ...

    def cluster_id_for(self, signal_id: UUID) -> UUID | None: ...

    def find_candidates(
        self,
        *,
        event_type: EventType,
        bounds: BoundingBox,
        start: datetime,
        end: datetime,
    ) -> list[MatchCandidate]: ...

    def list_for_cluster(self, cluster_id: UUID) -> list[Signal]: ...


@runtime_checkable
class ClusterRepository(Repository[Cluster], Protocol):
    """Clusters are written with insert-if-absent / update-if-version-matches semantics."""

    def get(self, cluster_id: UUID) -> Cluster | None: ...

    def update(self, cluster: Cluster) -> None: ...

    def lock_scope(self, event_type: EventType) -> None:
        """Serialise match-or-create for one event type until the transaction ends."""
        ...

    def query(self, query: ClusterQuery) -> list[Cluster]: ...


@runtime_checkable
class AuditLogRepository(Repository[AuditEntry], Protocol):
    def recent(self, *, limit: int = 50) -> list[AuditEntry]: ...


@runtime_checkable
class IngestionRunRepository(Repository[IngestionRun], Protocol):
    def update(self, run: IngestionRun) -> None: ...

    def latest_completed(self, source_name: str) -> IngestionRun | None:
        """Most recent run of ``source_name`` that finished with success or partial status."""
        ...


@runtime_checkable
class CrosswalkRepository(Protocol):
    def load(self) -> ZipCountyCrosswalk: ...

    def upsert(self, rows: Iterable[CrosswalkRow]) -> int: ...


__all__ = [
    "AuditLogRepository",
    "BoundingBox",
    "ClusterQuery",
    "ClusterRepository",
    "CrosswalkRepository",
    "IngestionRunRepository",
    "Repository",
    "SignalRepository",
]
