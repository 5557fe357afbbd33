"""SQLAlchemy table metadata for signals, clusters and run bookkeeping."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
)

from losslocator.domain.model import (
    AuditOutcome,
    EventType,
    ResolutionLevel,
    RunStatus,
    SourceType,
    VerificationStatus,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class StringSetType(TypeDecorator[frozenset[str]]):
    """Sorted JSON array of strings; sorting keeps ``LIKE '%"value"%'`` filters stable."""

    impl = String
    cache_ok = True

    def process_bind_param(self, value: frozenset[str] | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(sorted(value))

    def process_result_value(self, value: str | None, dialect: Dialect) -> frozenset[str]:
        _ = dialect
        if value is None:
            return frozenset()
        loaded = json.loads(value)
        if not isinstance(loaded, list):
            return frozenset()
        items = cast(list[Any], loaded)
        return frozenset(item for item in items if isinstance(item, str))


class SourceTypeSetType(TypeDecorator[set[SourceType]]):
    impl = String
    cache_ok = True

    def process_bind_param(self, value: set[SourceType] | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(sorted(source.value for source in value))

    def process_result_value(self, value: str | None, dialect: Dialect) -> set[SourceType]:
        _ = dialect
        if value is None:
            return set()
        loaded = json.loads(value)
        if not isinstance(loaded, list):
            return set()
        items = cast(list[Any], loaded)
        return {SourceType(item) for item in items if isinstance(item, str)}


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

# Signals and clusters ----------------------------------------------------------

signal_table = Table(
    "loss_signal",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("source_type", Enum(SourceType, native_enum=False), nullable=False),
    Column("source_name", String, nullable=False),
    Column("source_event_id", String, nullable=True),
    Column("event_type", Enum(EventType, native_enum=False), nullable=False),
    Column("occurred_at", UTCDateTime(), nullable=False),
    Column("reported_at", UTCDateTime(), nullable=False),
    Column("latitude", Float, nullable=True),
    Column("longitude", Float, nullable=True),
    Column("zip_code", String(5), nullable=True),
    Column("county_fips", String(5), nullable=True),
    Column("state_code", String(2), nullable=True),
    Column("city", String, nullable=True),
    Column("address", String, nullable=True),
    Column("severity_raw", Float, nullable=False),
    Column("source_confidence", Float, nullable=False),
    Column("raw_payload", JSON, nullable=False),
    Column("resolution_level", Enum(ResolutionLevel, native_enum=False), nullable=True),
    Column("geo_zip_codes", StringSetType(), nullable=True),
    Column("geo_county_fips", String(5), nullable=True),
    Column("geo_state_code", String(2), nullable=True),
    UniqueConstraint(
        "source_type",
        "source_name",
        "source_event_id",
        name="uq_loss_signal_source_identity",
    ),
    Index("ix_loss_signal_match", "event_type", "occurred_at"),
    Index("ix_loss_signal_position", "latitude", "longitude"),
)

cluster_table = Table(
    "loss_cluster",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("event_type", Enum(EventType, native_enum=False), nullable=False),
    Column("window_start", UTCDateTime(), nullable=False),
    Column("window_end", UTCDateTime(), nullable=False),
    Column("centroid_latitude", Float, nullable=True),
    Column("centroid_longitude", Float, nullable=True),
    Column("located_count", Integer, nullable=False, default=0),
    Column("confidence_score", Integer, nullable=False, default=0),
    Column(
        "verification_status",
        Enum(VerificationStatus, native_enum=False),
        nullable=False,
    ),
    Column("source_types_present", SourceTypeSetType(), nullable=False),
    Column("resolution_level", Enum(ResolutionLevel, native_enum=False), nullable=True),
    Column("zip_codes", StringSetType(), nullable=True),
    Column("county_fips", String(5), nullable=True),
    Column("state_code", String(2), nullable=True),
    Column("version", Integer, nullable=False, default=0),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=False),
    Index("ix_loss_cluster_window", "event_type", "window_start", "window_end"),
    Index("ix_loss_cluster_region", "state_code", "county_fips"),
)

cluster_signal_table = Table(
    "loss_cluster_signal",
    mapper_registry.metadata,
    Column(
        "cluster_id",
        UUIDColumnType,
        ForeignKey("loss_cluster.id", ondelete="CASCADE"),
        primary_key=True,
    ),
    Column("signal_id", UUIDColumnType, ForeignKey("loss_signal.id"), primary_key=True),
    UniqueConstraint("signal_id", name="uq_loss_cluster_signal_signal"),
)

match_lock_table = Table(
    "cluster_match_lock",
    mapper_registry.metadata,
    Column("event_type", Enum(EventType, native_enum=False), primary_key=True),
    Column("generation", Integer, nullable=False, default=0),
)

# Bookkeeping -------------------------------------------------------------------

audit_log_table = Table(
    "signal_audit_log",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("source_type", Enum(SourceType, native_enum=False), nullable=False),
    Column("source_name", String, nullable=False),
    Column("source_event_id", String, nullable=True),
    Column("outcome", Enum(AuditOutcome, native_enum=False), nullable=False),
    Column("reason", String, nullable=False),
    Column("recorded_at", UTCDateTime(), nullable=False),
    Index("ix_signal_audit_log_recorded", "recorded_at"),
)

ingestion_run_table = Table(
    "ingestion_run",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("source_name", String, nullable=False),
    Column("source_type", Enum(SourceType, native_enum=False), nullable=False),
    Column("started_at", UTCDateTime(), nullable=False),
    Column("completed_at", UTCDateTime(), nullable=True),
    Column("status", Enum(RunStatus, native_enum=False), nullable=False),
    Column("signals_processed", Integer, nullable=False, default=0),
    Column("signals_skipped", Integer, nullable=False, default=0),
    Column("error_message", String, nullable=True),
    Index("ix_ingestion_run_source", "source_name", "started_at"),
)

crosswalk_table = Table(
    "zip_county_crosswalk",
    mapper_registry.metadata,
    Column("zip_code", String(5), primary_key=True),
    Column("county_fips", String(5), nullable=False),
    Column("state_code", String(2), nullable=True),
    Index("ix_zip_county_crosswalk_county", "county_fips"),
)


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the metadata and seed one match lock per event type."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
    with engine.begin() as connection:
        for event_type in EventType:
            connection.execute(
                match_lock_table.insert()
                .prefix_with("OR IGNORE")
                .values(event_type=event_type, generation=0)
            )
