"""End-to-end reconciliation against the SQLAlchemy store on in-memory SQLite."""

from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from losslocator.app import cluster_signals, query_clusters, recent_audit_entries
from losslocator.config.ingestion import IngestionConfig
from losslocator.domain.assembly import AssemblyOutcome, ClusterAssembler
from losslocator.domain.ingestion import IngestionCoordinator
from losslocator.domain.model import (
    AuditOutcome,
    EventType,
    ResolutionLevel,
    RunStatus,
    SourceType,
    VerificationStatus,
)
from losslocator.domain.ports.fetching import FetchSuccess
from losslocator.domain.ports.geocoding import CrosswalkRow
from losslocator.domain.ports.persistence import ClusterQuery
from tests.helpers.fakes import FakeFetcher
from tests.helpers.signals import cad_payload, cad_record, make_signal

if TYPE_CHECKING:
    from collections.abc import Callable

    from losslocator.adapters.sqlalchemy.unit_of_work import SqlAlchemyReconciliationUnitOfWork

    UowFactory = Callable[[], SqlAlchemyReconciliationUnitOfWork]


@pytest.fixture
def assembler(sqlite_unit_of_work: UowFactory) -> ClusterAssembler:
    return ClusterAssembler(unit_of_work_factory=sqlite_unit_of_work)


def test_dallas_wind_event_is_confirmed_in_the_store(
    assembler: ClusterAssembler,
    sqlite_unit_of_work: UowFactory,
) -> None:
    signals = [
        make_signal(SourceType.WEATHER, source_event_id="nws-1"),
        make_signal(SourceType.CAD, position=(32.7770, -96.7965), minutes=30),
        make_signal(SourceType.NEWS, position=(32.7772, -96.7968), minutes=60),
        make_signal(SourceType.DECLARATION, position=(32.7765, -96.7972), minutes=90),
    ]

    summary = assembler.assemble(signals)

    assert (summary.clustered, summary.merged) == (1, 3)
    [cluster] = query_clusters(ClusterQuery(), unit_of_work_factory=sqlite_unit_of_work)
    assert cluster.confidence_score == 95
    assert cluster.verification_status is VerificationStatus.CONFIRMED
    assert cluster.version == 3
    assert cluster.size == 4
    members = cluster_signals(cluster, unit_of_work_factory=sqlite_unit_of_work)
    assert [signal.id for signal in members] == [signal.id for signal in signals]


def test_weather_only_cluster_stays_below_confirmed(
    assembler: ClusterAssembler,
    sqlite_unit_of_work: UowFactory,
) -> None:
    assembler.assemble(
        [
            make_signal(SourceType.WEATHER, source_name="nws", source_event_id="a"),
            make_signal(SourceType.WEATHER, source_name="spc", source_event_id="b", minutes=45),
        ]
    )

    [cluster] = query_clusters(ClusterQuery(), unit_of_work_factory=sqlite_unit_of_work)
    assert cluster.source_types_present == {SourceType.WEATHER}
    assert cluster.verification_status is not VerificationStatus.CONFIRMED
    assert cluster.confidence_score == 40


def test_suppressed_signal_is_audited_and_later_corroborated(
    assembler: ClusterAssembler,
    sqlite_unit_of_work: UowFactory,
) -> None:
    hail = make_signal(SourceType.NEWS, EventType.HAIL, severity=0.3, source_event_id="n-1")
    report = make_signal(SourceType.CAD, EventType.HAIL, minutes=20, source_event_id="c-1")

    outcome, cluster_id = assembler.process(hail)
    assert (outcome, cluster_id) == (AssemblyOutcome.SUPPRESSED, None)
    assert query_clusters(ClusterQuery(), unit_of_work_factory=sqlite_unit_of_work) == []
    [entry] = recent_audit_entries(unit_of_work_factory=sqlite_unit_of_work)
    assert entry.outcome is AuditOutcome.SUPPRESSED
    assert entry.source_event_id == "n-1"

    outcome, cluster_id = assembler.process(report)
    assert outcome is AssemblyOutcome.CLUSTERED
    [cluster] = query_clusters(ClusterQuery(), unit_of_work_factory=sqlite_unit_of_work)
    assert cluster.id == cluster_id
    assert cluster.signal_ids == {hail.id, report.id}
    assert cluster.confidence_score == 35


def test_reprocessing_a_stored_signal_is_a_no_op(
    assembler: ClusterAssembler,
    sqlite_unit_of_work: UowFactory,
) -> None:
    signal = make_signal(SourceType.CAD, EventType.FIRE, source_event_id="c-9")
    assembler.process(signal)

    replay = make_signal(SourceType.CAD, EventType.FIRE, source_event_id="c-9")
    outcome, _ = assembler.process(replay)

    assert outcome is AssemblyOutcome.DUPLICATE
    [cluster] = query_clusters(ClusterQuery(), unit_of_work_factory=sqlite_unit_of_work)
    assert cluster.size == 1
    assert cluster.version == 0


def test_ingestion_run_resolves_geography_and_moves_watermark(
    sqlite_unit_of_work: UowFactory,
) -> None:
    with sqlite_unit_of_work() as uow:
        uow.repositories.crosswalk.upsert([CrosswalkRow("75201", "48113", "TX")])
        uow.commit()
    coordinator = IngestionCoordinator(
        config=IngestionConfig(run_budget_seconds=None),
        unit_of_work_factory=sqlite_unit_of_work,
    )
    fetcher = FakeFetcher(
        SourceType.CAD,
        "dallas",
        [
            FetchSuccess(
                (
                    cad_record(cad_payload("C-1")),
                    cad_record(cad_payload("C-2", call_time="2024-06-01T12:40:00Z")),
                )
            )
        ],
    )

    first = coordinator.run_source(fetcher)
    second = coordinator.run_source(fetcher)

    assert first.status is RunStatus.SUCCESS
    assert (first.clustered, first.merged) == (1, 1)
    assert second.duplicates == 2
    assert fetcher.calls[0] is None
    assert fetcher.calls[1] is not None
    assert fetcher.calls[1] < first.started_at
    assert first.started_at - fetcher.calls[1] <= timedelta(hours=1, seconds=1)

    [cluster] = query_clusters(
        ClusterQuery(county_fips="48113", event_type=EventType.FIRE),
        unit_of_work_factory=sqlite_unit_of_work,
    )
    assert cluster.geo is not None
    assert cluster.geo.resolution_level is ResolutionLevel.POINT
    assert cluster.geo.zip_codes == ("75201",)
    assert cluster.geo.state_code == "TX"
    assert cluster.source_types_present == {SourceType.CAD}


def test_low_quality_reports_of_one_kind_stay_suppressed(
    assembler: ClusterAssembler,
    sqlite_unit_of_work: UowFactory,
) -> None:
    reports = [
        make_signal(
            SourceType.WEATHER,
            EventType.HAIL,
            severity=0.3,
            confidence=0.6,
            minutes=minutes,
            source_event_id=event_id,
        )
        for minutes, event_id in [(0, "spc-1"), (10, "spc-2")]
    ]
    replay_without_id = [
        make_signal(SourceType.WEATHER, EventType.HAIL, severity=0.3, confidence=0.6)
        for _ in range(2)
    ]

    summary = assembler.assemble(reports)
    for signal in replay_without_id:
        assembler.assemble([signal])

    assert (summary.clustered, summary.suppressed) == (0, 2)
    assert query_clusters(ClusterQuery(), unit_of_work_factory=sqlite_unit_of_work) == []
    entries = recent_audit_entries(unit_of_work_factory=sqlite_unit_of_work)
    assert len(entries) == 4
    assert {entry.outcome for entry in entries} == {AuditOutcome.SUPPRESSED}
