"""Repository implementations backed by SQLAlchemy sessions.

Rows are translated to and from the frozen domain objects explicitly; the
store never hands out live ORM state.
"""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import String, and_, func, select, type_coerce, update
from sqlalchemy.exc import IntegrityError, OperationalError

from losslocator.adapters.sqlalchemy.mappings import (
    audit_log_table,
    cluster_signal_table,
    cluster_table,
    crosswalk_table,
    ingestion_run_table,
    match_lock_table,
    signal_table,
)
from losslocator.domain.errors import ConflictError
from losslocator.domain.matching import MatchCandidate
from losslocator.domain.model import (
    AuditEntry,
    Cluster,
    Coordinates,
    GeoAnnotation,
    IngestionRun,
    Location,
    RunStatus,
    Signal,
    TimeRange,
)
from losslocator.domain.ports.geocoding import CrosswalkRow, ZipCountyCrosswalk

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy import ColumnElement, RowMapping
    from sqlalchemy.orm import Session

    from losslocator.domain.model import EventType, SignalKey
    from losslocator.domain.ports.persistence import BoundingBox, ClusterQuery


def is_lock_timeout(exc: OperationalError) -> bool:
    return "locked" in str(exc.orig).lower()


class SqlAlchemySignalRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Signal) -> None:
        try:
            self.session.execute(signal_table.insert().values(**_signal_values(entity)))
        except IntegrityError as exc:
            raise ConflictError(f"signal {entity.describe()} already stored") from exc
        except OperationalError as exc:
            if is_lock_timeout(exc):
                raise ConflictError(f"store busy while adding {entity.describe()}") from exc
            raise

    def get(self, signal_id: UUID) -> Signal | None:
        row = (
            self.session.execute(select(signal_table).where(signal_table.c.id == signal_id))
            .mappings()
            .one_or_none()
        )
        return _signal_from_row(row) if row is not None else None

    def get_by_key(self, key: SignalKey) -> Signal | None:
        stmt = (
            select(signal_table)
            .where(signal_table.c.source_type == key.source_type)
            .where(signal_table.c.source_name == key.source_name)
            .where(signal_table.c.source_event_id == key.source_event_id)
        )
        row = self.session.execute(stmt).mappings().one_or_none()
        return _signal_from_row(row) if row is not None else None

    def cluster_id_for(self, signal_id: UUID) -> UUID | None:
        stmt = select(cluster_signal_table.c.cluster_id).where(
            cluster_signal_table.c.signal_id == signal_id
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def find_candidates(
        self,
        *,
        event_type: EventType,
        bounds: BoundingBox,
        start: datetime,
        end: datetime,
    ) -> list[MatchCandidate]:
        sizes = (
            select(
                cluster_signal_table.c.cluster_id,
                func.count().label("cluster_size"),
            )
            .group_by(cluster_signal_table.c.cluster_id)
            .subquery()
        )
        stmt = (
            select(signal_table, cluster_signal_table.c.cluster_id, sizes.c.cluster_size)
            .select_from(
                signal_table.outerjoin(
                    cluster_signal_table,
                    cluster_signal_table.c.signal_id == signal_table.c.id,
                ).outerjoin(sizes, sizes.c.cluster_id == cluster_signal_table.c.cluster_id)
            )
            .where(signal_table.c.event_type == event_type)
            .where(signal_table.c.latitude.between(bounds.min_lat, bounds.max_lat))
            .where(signal_table.c.longitude.between(bounds.min_lng, bounds.max_lng))
            .where(signal_table.c.occurred_at.between(start, end))
        )
        return [
            MatchCandidate(
                signal=_signal_from_row(row),
                cluster_id=row["cluster_id"],
                cluster_size=row["cluster_size"] or 0,
            )
            for row in self.session.execute(stmt).mappings()
        ]

    def list_for_cluster(self, cluster_id: UUID) -> list[Signal]:
        stmt = (
            select(signal_table)
            .join(cluster_signal_table, cluster_signal_table.c.signal_id == signal_table.c.id)
            .where(cluster_signal_table.c.cluster_id == cluster_id)
            .order_by(signal_table.c.occurred_at)
        )
        return [_signal_from_row(row) for row in self.session.execute(stmt).mappings()]


class SqlAlchemyClusterRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Cluster) -> None:
        try:
            self.session.execute(cluster_table.insert().values(**_cluster_values(entity)))
            self._link(entity.id, entity.signal_ids)
        except IntegrityError as exc:
            raise ConflictError(f"cluster {entity.id} conflicts with stored state") from exc

    def get(self, cluster_id: UUID) -> Cluster | None:
        row = (
            self.session.execute(select(cluster_table).where(cluster_table.c.id == cluster_id))
            .mappings()
            .one_or_none()
        )
        if row is None:
            return None
        return _cluster_from_row(row, self._signal_ids([cluster_id]).get(cluster_id, set()))

    def update(self, cluster: Cluster) -> None:
        """Write ``cluster`` only if nobody else moved its version since it was read."""

        values = _cluster_values(cluster)
        values["version"] = cluster.version + 1
        stmt = (
            update(cluster_table)
            .where(cluster_table.c.id == cluster.id)
            .where(cluster_table.c.version == cluster.version)
            .values(**values)
        )
        try:
            result = self.session.execute(stmt)
            if result.rowcount != 1:
                raise ConflictError(f"cluster {cluster.id} changed since version {cluster.version}")
            linked = self._signal_ids([cluster.id]).get(cluster.id, set())
            self._link(cluster.id, cluster.signal_ids - linked)
        except IntegrityError as exc:
            raise ConflictError(f"cluster {cluster.id} claims an already linked signal") from exc
        cluster.version += 1

    def lock_scope(self, event_type: EventType) -> None:
        stmt = (
            update(match_lock_table)
            .where(match_lock_table.c.event_type == event_type)
            .values(generation=match_lock_table.c.generation + 1)
        )
        try:
            result = self.session.execute(stmt)
            if result.rowcount == 0:
                self.session.execute(
                    match_lock_table.insert().values(event_type=event_type, generation=1)
                )
        except IntegrityError as exc:
            raise ConflictError(f"match lock for {event_type} created concurrently") from exc
        except OperationalError as exc:
            if is_lock_timeout(exc):
                raise ConflictError(f"match lock for {event_type} is held") from exc
            raise

    def query(self, query: ClusterQuery) -> list[Cluster]:
        conditions: list[ColumnElement[bool]] = []
        columns = cluster_table.c
        if query.event_type is not None:
            conditions.append(columns.event_type == query.event_type)
        if query.state_code is not None:
            conditions.append(columns.state_code == query.state_code.upper())
        if query.county_fips is not None:
            conditions.append(columns.county_fips == query.county_fips)
        if query.zip_code is not None:
            zip_codes = type_coerce(columns.zip_codes, String)
            conditions.append(zip_codes.like(f'%"{query.zip_code}"%'))
        if query.min_score is not None:
            conditions.append(columns.confidence_score >= query.min_score)
        if query.max_score is not None:
            conditions.append(columns.confidence_score <= query.max_score)
        if query.statuses:
            conditions.append(columns.verification_status.in_(sorted(query.statuses)))
        if query.window_start is not None:
            conditions.append(columns.window_end >= query.window_start)
        if query.window_end is not None:
            conditions.append(columns.window_start <= query.window_end)

        stmt = select(cluster_table).order_by(
            columns.confidence_score.desc(),
            columns.window_end.desc(),
        )
        if conditions:
            stmt = stmt.where(and_(*conditions))
        if query.limit is not None:
            stmt = stmt.limit(query.limit)

        rows = list(self.session.execute(stmt).mappings())
        members = self._signal_ids([row["id"] for row in rows])
        return [_cluster_from_row(row, members.get(row["id"], set())) for row in rows]

    def _link(self, cluster_id: UUID, signal_ids: Iterable[UUID]) -> None:
        links = [{"cluster_id": cluster_id, "signal_id": signal_id} for signal_id in signal_ids]
        if links:
            self.session.execute(cluster_signal_table.insert(), links)

    def _signal_ids(self, cluster_ids: Sequence[UUID]) -> dict[UUID, set[UUID]]:
        if not cluster_ids:
            return {}
        stmt = select(cluster_signal_table.c.cluster_id, cluster_signal_table.c.signal_id).where(
            cluster_signal_table.c.cluster_id.in_(cluster_ids)
        )
        members: dict[UUID, set[UUID]] = {}
        for cluster_id, signal_id in self.session.execute(stmt):
            members.setdefault(cluster_id, set()).add(signal_id)
        return members


class SqlAlchemyAuditLogRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: AuditEntry) -> None:
        self.session.execute(
            audit_log_table.insert().values(
                id=entity.id,
                source_type=entity.source_type,
                source_name=entity.source_name,
                source_event_id=entity.source_event_id,
                outcome=entity.outcome,
                reason=entity.reason,
                recorded_at=entity.recorded_at,
            )
        )

    def recent(self, *, limit: int = 50) -> list[AuditEntry]:
        stmt = select(audit_log_table).order_by(audit_log_table.c.recorded_at.desc()).limit(limit)
        return [AuditEntry(**dict(row)) for row in self.session.execute(stmt).mappings()]


class SqlAlchemyIngestionRunRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: IngestionRun) -> None:
        self.session.execute(ingestion_run_table.insert().values(**_run_values(entity)))

    def update(self, run: IngestionRun) -> None:
        self.session.execute(
            update(ingestion_run_table)
            .where(ingestion_run_table.c.id == run.id)
            .values(**_run_values(run))
        )

    def latest_completed(self, source_name: str) -> IngestionRun | None:
        stmt = (
            select(ingestion_run_table)
            .where(ingestion_run_table.c.source_name == source_name)
            .where(ingestion_run_table.c.status.in_([RunStatus.SUCCESS, RunStatus.PARTIAL]))
            .order_by(ingestion_run_table.c.started_at.desc())
            .limit(1)
        )
        row = self.session.execute(stmt).mappings().one_or_none()
        return IngestionRun(**dict(row)) if row is not None else None


class SqlAlchemyCrosswalkRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def load(self) -> ZipCountyCrosswalk:
        stmt = select(crosswalk_table).order_by(crosswalk_table.c.zip_code)
        return ZipCountyCrosswalk.from_rows(
            CrosswalkRow(**dict(row)) for row in self.session.execute(stmt).mappings()
        )

    def upsert(self, rows: Iterable[CrosswalkRow]) -> int:
        values = [
            {"zip_code": row.zip_code, "county_fips": row.county_fips, "state_code": row.state_code}
            for row in rows
        ]
        if not values:
            return 0
        self.session.execute(crosswalk_table.insert().prefix_with("OR REPLACE"), values)
        return len(values)


# Row translation ---------------------------------------------------------------


def _signal_values(signal: Signal) -> dict[str, Any]:
    location = signal.location
    coordinates = location.coordinates
    geo = signal.geo
    return {
        "id": signal.id,
        "source_type": signal.source_type,
        "source_name": signal.source_name,
        "source_event_id": signal.source_event_id,
        "event_type": signal.event_type,
        "occurred_at": signal.occurred_at,
        "reported_at": signal.reported_at,
        "latitude": coordinates.latitude if coordinates else None,
        "longitude": coordinates.longitude if coordinates else None,
        "zip_code": location.zip_code,
        "county_fips": location.county_fips,
        "state_code": location.state_code,
        "city": location.city,
        "address": location.address,
        "severity_raw": signal.severity_raw,
        "source_confidence": signal.source_confidence,
        "raw_payload": dict(signal.raw_payload),
        "resolution_level": geo.resolution_level if geo else None,
        "geo_zip_codes": frozenset(geo.zip_codes) if geo else None,
        "geo_county_fips": geo.county_fips if geo else None,
        "geo_state_code": geo.state_code if geo else None,
    }


def _signal_from_row(row: RowMapping) -> Signal:
    geo = None
    if row["resolution_level"] is not None:
        geo = GeoAnnotation(
            resolution_level=row["resolution_level"],
            zip_codes=tuple(sorted(row["geo_zip_codes"] or ())),
            county_fips=row["geo_county_fips"],
            state_code=row["geo_state_code"],
        )
    latitude, longitude = row["latitude"], row["longitude"]
    payload = cast("Mapping[str, object]", row["raw_payload"] or {})
    return Signal(
        id=row["id"],
        source_type=row["source_type"],
        source_name=row["source_name"],
        source_event_id=row["source_event_id"],
        event_type=row["event_type"],
        occurred_at=row["occurred_at"],
        reported_at=row["reported_at"],
        location=Location(
            coordinates=(
                Coordinates(latitude=latitude, longitude=longitude)
                if latitude is not None and longitude is not None
                else None
            ),
            zip_code=row["zip_code"],
            county_fips=row["county_fips"],
            state_code=row["state_code"],
            city=row["city"],
            address=row["address"],
        ),
        severity_raw=row["severity_raw"],
        source_confidence=row["source_confidence"],
        raw_payload=MappingProxyType(dict(payload)),
        geo=geo,
    )


def _cluster_values(cluster: Cluster) -> dict[str, Any]:
    geo = cluster.geo
    centroid = cluster.centroid
    return {
        "id": cluster.id,
        "event_type": cluster.event_type,
        "window_start": cluster.time_window.start,
        "window_end": cluster.time_window.end,
        "centroid_latitude": centroid.latitude if centroid else None,
        "centroid_longitude": centroid.longitude if centroid else None,
        "located_count": cluster.located_count,
        "confidence_score": cluster.confidence_score,
        "verification_status": cluster.verification_status,
        "source_types_present": set(cluster.source_types_present),
        "resolution_level": geo.resolution_level if geo else None,
        "zip_codes": frozenset(geo.zip_codes) if geo else None,
        "county_fips": geo.county_fips if geo else None,
        "state_code": geo.state_code if geo else None,
        "version": cluster.version,
        "created_at": cluster.created_at,
        "updated_at": cluster.updated_at,
    }


def _cluster_from_row(row: RowMapping, signal_ids: set[UUID]) -> Cluster:
    geo = None
    if row["resolution_level"] is not None:
        geo = GeoAnnotation(
            resolution_level=row["resolution_level"],
            zip_codes=tuple(sorted(row["zip_codes"] or ())),
            county_fips=row["county_fips"],
            state_code=row["state_code"],
        )
    latitude, longitude = row["centroid_latitude"], row["centroid_longitude"]
    return Cluster(
        id=row["id"],
        event_type=row["event_type"],
        time_window=TimeRange(start=row["window_start"], end=row["window_end"]),
        centroid=(
            Coordinates(latitude=latitude, longitude=longitude)
            if latitude is not None and longitude is not None
            else None
        ),
        located_count=row["located_count"],
        confidence_score=row["confidence_score"],
        verification_status=row["verification_status"],
        signal_ids=set(signal_ids),
        source_types_present=set(row["source_types_present"]),
        geo=geo,
        version=row["version"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _run_values(run: IngestionRun) -> dict[str, Any]:
    return {
        "id": run.id,
        "source_name": run.source_name,
        "source_type": run.source_type,
        "started_at": run.started_at,
        "completed_at": run.completed_at,
        "status": run.status,
        "signals_processed": run.signals_processed,
        "signals_skipped": run.signals_skipped,
        "error_message": run.error_message,
    }


if TYPE_CHECKING:
    from losslocator.domain.ports.persistence import (
        AuditLogRepository,
        ClusterRepository,
        CrosswalkRepository,
        IngestionRunRepository,
        SignalRepository,
    )

    _session_stub = cast("Session", object())
    _signal_repo: SignalRepository = SqlAlchemySignalRepository(_session_stub)
    _cluster_repo: ClusterRepository = SqlAlchemyClusterRepository(_session_stub)
    _audit_repo: AuditLogRepository = SqlAlchemyAuditLogRepository(_session_stub)
    _run_repo: IngestionRunRepository = SqlAlchemyIngestionRunRepository(_session_stub)
    _crosswalk_repo: CrosswalkRepository = SqlAlchemyCrosswalkRepository(_session_stub)
