"""Domain model for loss signals and clusters."""

from __future__ import annotations

from .audit import AuditEntry, IngestionRun
from .cluster import Cluster, ClusterMembershipError
from .entity import Entity, new_id
from .enums import (
    AuditOutcome,
    CorroborationGroup,
    EventType,
    ResolutionLevel,
    RunStatus,
    SourcePipeline,
    SourceType,
    VerificationStatus,
)
from .geo import GeoAnnotation
from .primitives import Coordinates, Location, TimeRange
from .signal import Signal, SignalKey

__all__ = [
    "AuditEntry",
    "AuditOutcome",
    "Cluster",
    "ClusterMembershipError",
    "Coordinates",
    "CorroborationGroup",
    "Entity",
    "EventType",
    "GeoAnnotation",
    "IngestionRun",
    "Location",
    "ResolutionLevel",
    "RunStatus",
    "Signal",
    "SignalKey",
    "SourcePipeline",
    "SourceType",
    "TimeRange",
    "VerificationStatus",
    "new_id",
]
