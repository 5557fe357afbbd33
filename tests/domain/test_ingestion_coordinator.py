from __future__ import annotations

from datetime import timedelta
from typing import TYPE_CHECKING

import pytest

from losslocator.app import UnconfiguredSource
from losslocator.config.errors import MissingConfigurationError
from losslocator.config.ingestion import IngestionConfig
from losslocator.domain.ingestion import IngestionCoordinator
from losslocator.domain.model import (
    AuditOutcome,
    ResolutionLevel,
    RunStatus,
    SourceType,
)
from losslocator.domain.ports.fetching import (
    FetchSuccess,
    PermanentFetchFailure,
    TransientFetchFailure,
)
from losslocator.domain.ports.geocoding import GeoLookup
from tests.helpers.fakes import FakeFetcher, FakeGeocoder
from tests.helpers.signals import DALLAS, cad_payload, cad_record

if TYPE_CHECKING:
    from collections.abc import Callable

    from tests.helpers.fakes import FakeStore, FakeUnitOfWork


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def sleeps() -> list[float]:
    return []


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def make_coordinator(
    fake_unit_of_work: Callable[[], FakeUnitOfWork],
    sleeps: list[float],
    clock: FakeClock,
) -> Callable[..., IngestionCoordinator]:
    def factory(**overrides: object) -> IngestionCoordinator:
        geocoder = overrides.pop("geocoder", None)
        config = IngestionConfig(**overrides)  # type: ignore[arg-type]
        return IngestionCoordinator(
            config=config,
            unit_of_work_factory=fake_unit_of_work,
            geocoder=geocoder,  # type: ignore[arg-type]
            sleep=sleeps.append,
            clock=clock,
        )

    return factory


def _cad_fetcher(*payloads: dict[str, object]) -> FakeFetcher:
    records = tuple(cad_record(payload) for payload in payloads)
    return FakeFetcher(SourceType.CAD, "dallas", [FetchSuccess(records)])


def test_successful_run_clusters_records(
    make_coordinator: Callable[..., IngestionCoordinator],
    fake_store: FakeStore,
) -> None:
    fetcher = _cad_fetcher(cad_payload("C-1"), cad_payload("C-2", call_time="2024-06-01T12:20:00Z"))

    summary = make_coordinator().run_source(fetcher)

    assert summary.status is RunStatus.SUCCESS
    assert (summary.fetched, summary.processed) == (2, 2)
    assert (summary.clustered, summary.merged) == (1, 1)
    assert summary.error is None
    assert len(fake_store.clusters) == 1
    [run] = fake_store.runs.values()
    assert run.status is RunStatus.SUCCESS
    assert run.signals_processed == 2
    assert run.signals_skipped == 0
    assert run.completed_at is not None


def test_unmapped_and_malformed_records_are_counted(
    make_coordinator: Callable[..., IngestionCoordinator],
    fake_store: FakeStore,
) -> None:
    fetcher = _cad_fetcher(
        cad_payload("C-1"),
        cad_payload("C-2", call_type="MEDICAL EMERGENCY"),
        cad_payload("C-3", call_type=None),
    )

    summary = make_coordinator().run_source(fetcher)

    assert summary.status is RunStatus.PARTIAL
    assert summary.processed == 3
    assert (summary.clustered, summary.unmapped, summary.failed) == (1, 1, 1)
    assert summary.skipped == 2
    [entry] = fake_store.audit_entries
    assert entry.outcome is AuditOutcome.FAILED
    assert entry.source_event_id == "C-3"
    assert "call_type" in entry.reason


def test_reingest_of_same_feed_is_idempotent(
    make_coordinator: Callable[..., IngestionCoordinator],
    fake_store: FakeStore,
) -> None:
    coordinator = make_coordinator()
    coordinator.run_source(_cad_fetcher(cad_payload("C-1")))

    summary = coordinator.run_source(_cad_fetcher(cad_payload("C-1")))

    assert summary.duplicates == 1
    assert summary.status is RunStatus.SUCCESS
    assert len(fake_store.signals) == 1
    assert len(fake_store.clusters) == 1


def test_transient_failure_is_retried_with_backoff(
    make_coordinator: Callable[..., IngestionCoordinator],
    sleeps: list[float],
) -> None:
    fetcher = FakeFetcher(
        SourceType.CAD,
        "dallas",
        [
            TransientFetchFailure("HTTP 503"),
            TransientFetchFailure("ReadTimeout"),
            FetchSuccess((cad_record(cad_payload("C-1")),)),
        ],
    )

    summary = make_coordinator(fetch_backoff_seconds=1.5).run_source(fetcher)

    assert summary.status is RunStatus.SUCCESS
    assert sleeps == [1.5, 3.0]
    assert len(fetcher.calls) == 3


def test_exhausted_retries_fail_the_run(
    make_coordinator: Callable[..., IngestionCoordinator],
    fake_store: FakeStore,
    sleeps: list[float],
) -> None:
    fetcher = FakeFetcher(SourceType.CAD, "dallas", [TransientFetchFailure("HTTP 503")])

    summary = make_coordinator(fetch_attempts=2, fetch_backoff_seconds=1.0).run_source(fetcher)

    assert summary.status is RunStatus.FAILED
    assert summary.error == "fetch: HTTP 503"
    assert sleeps == [1.0]
    [run] = fake_store.runs.values()
    assert run.status is RunStatus.FAILED
    assert run.error_message == "fetch: HTTP 503"


def test_permanent_failure_is_not_retried(
    make_coordinator: Callable[..., IngestionCoordinator],
    sleeps: list[float],
) -> None:
    fetcher = FakeFetcher(SourceType.CAD, "dallas", [PermanentFetchFailure("HTTP 401")])

    summary = make_coordinator().run_source(fetcher)

    assert summary.status is RunStatus.FAILED
    assert len(fetcher.calls) == 1
    assert sleeps == []


def test_missing_configuration_fails_only_that_source(
    make_coordinator: Callable[..., IngestionCoordinator],
) -> None:
    broken = UnconfiguredSource(
        SourceType.FIRE_COMMERCIAL,
        "fire_commercial",
        MissingConfigurationError("Missing configuration for: FIRE_COMMERCIAL_API_KEY"),
    )

    broken_summary, ok_summary = make_coordinator().run_all(
        [broken, _cad_fetcher(cad_payload("C-1"))]
    )

    assert broken_summary.status is RunStatus.FAILED
    assert broken_summary.error is not None
    assert broken_summary.error.startswith("configuration:")
    assert "FIRE_COMMERCIAL_API_KEY" in broken_summary.error
    assert ok_summary.status is RunStatus.SUCCESS


def test_exhausted_budget_cancels_intake(
    make_coordinator: Callable[..., IngestionCoordinator],
    fake_store: FakeStore,
    clock: FakeClock,
) -> None:
    def slow_fetch() -> None:
        clock.now += 120.0

    fetcher = _cad_fetcher(cad_payload("C-1"), cad_payload("C-2"))
    fetcher.on_call = slow_fetch

    summary = make_coordinator(run_budget_seconds=60.0).run_source(fetcher)

    assert summary.cancelled
    assert summary.status is RunStatus.PARTIAL
    assert summary.error == "run budget exhausted"
    assert summary.processed == 0
    assert fake_store.clusters == {}


def test_next_run_starts_from_previous_run_with_overlap(
    make_coordinator: Callable[..., IngestionCoordinator],
    fake_store: FakeStore,
) -> None:
    coordinator = make_coordinator(fetch_overlap=timedelta(minutes=30))
    fetcher = _cad_fetcher(cad_payload("C-1"))

    coordinator.run_source(fetcher)
    [first_run] = fake_store.runs.values()
    coordinator.run_source(fetcher)

    assert fetcher.calls[0] is None
    assert fetcher.calls[1] == first_run.started_at - timedelta(minutes=30)


def test_failed_run_does_not_move_the_watermark(
    make_coordinator: Callable[..., IngestionCoordinator],
) -> None:
    coordinator = make_coordinator()
    fetcher = FakeFetcher(SourceType.CAD, "dallas", [PermanentFetchFailure("HTTP 500")])

    coordinator.run_source(fetcher)
    coordinator.run_source(fetcher)

    assert fetcher.calls == [None, None]


def test_signals_are_geo_resolved_before_assembly(
    make_coordinator: Callable[..., IngestionCoordinator],
    fake_store: FakeStore,
) -> None:
    geocoder = FakeGeocoder(lookups={DALLAS: GeoLookup("75201", "48113", "TX")})
    payload = cad_payload("C-1")
    del payload["zip"]

    make_coordinator(geocoder=geocoder).run_source(_cad_fetcher(payload))

    [signal] = fake_store.signals.values()
    assert signal.geo is not None
    assert signal.geo.resolution_level is ResolutionLevel.POINT
    assert signal.geo.county_fips == "48113"
    [cluster] = fake_store.clusters.values()
    assert cluster.geo is not None
    assert cluster.geo.zip_codes == ("75201",)


def test_run_all_keeps_fetcher_order(
    make_coordinator: Callable[..., IngestionCoordinator],
) -> None:
    first = FakeFetcher(SourceType.CAD, "dallas", [FetchSuccess(())])
    second = FakeFetcher(SourceType.NEWS, "dmn", [FetchSuccess(())])

    summaries = make_coordinator().run_all([first, second])

    assert [summary.source_name for summary in summaries] == ["dallas", "dmn"]
    assert all(summary.status is RunStatus.SUCCESS for summary in summaries)


def test_unexpected_error_fails_only_that_source(
    make_coordinator: Callable[..., IngestionCoordinator],
    fake_store: FakeStore,
) -> None:
    def store_offline() -> None:
        raise RuntimeError("store offline")

    broken = _cad_fetcher(cad_payload("C-1"))
    broken.on_call = store_offline
    sibling = FakeFetcher(SourceType.NEWS, "dmn", [FetchSuccess(())])

    broken_summary, sibling_summary = make_coordinator().run_all([broken, sibling])

    assert broken_summary.status is RunStatus.FAILED
    assert broken_summary.error == "RuntimeError: store offline"
    assert sibling_summary.status is RunStatus.SUCCESS
    statuses = {run.source_name: run.status for run in fake_store.runs.values()}
    assert statuses == {"dallas": RunStatus.FAILED, "dmn": RunStatus.SUCCESS}


def test_geocoder_malfunction_keeps_the_record(
    make_coordinator: Callable[..., IngestionCoordinator],
    fake_store: FakeStore,
) -> None:
    geocoder = FakeGeocoder(error=ValueError("Expecting value: line 1 column 1"))
    payload = cad_payload("C-1")
    del payload["zip"]

    summary = make_coordinator(geocoder=geocoder).run_source(_cad_fetcher(payload))

    assert summary.status is RunStatus.SUCCESS
    assert summary.clustered == 1
    [signal] = fake_store.signals.values()
    assert signal.geo is None
    assert len(geocoder.calls) == 1
