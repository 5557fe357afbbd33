"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import (
    FetchResult,
    FetchSuccess,
    PermanentFetchFailure,
    RawRecord,
    SourceFetcher,
    TransientFetchFailure,
)
from .geocoding import CrosswalkRow, GeoLookup, ReverseGeocoder, ZipCountyCrosswalk
from .persistence import (
    AuditLogRepository,
    BoundingBox,
    ClusterQuery,
    ClusterRepository,
    CrosswalkRepository,
    IngestionRunRepository,
    Repository,
    SignalRepository,
)
from .unit_of_work import (
    ReconciliationRepositories,
    ReconciliationUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
)

__all__ = [
    "AuditLogRepository",
    "BoundingBox",
    "ClusterQuery",
    "ClusterRepository",
    "CrosswalkRepository",
    "CrosswalkRow",
    "FetchResult",
    "FetchSuccess",
    "GeoLookup",
    "IngestionRunRepository",
    "PermanentFetchFailure",
    "RawRecord",
    "ReconciliationRepositories",
    "ReconciliationUnitOfWork",
    "Repository",
    "RepositoryCollection",
    "ReverseGeocoder",
    "SignalRepository",
    "SourceFetcher",
    "TransientFetchFailure",
    "UnitOfWork",
]
