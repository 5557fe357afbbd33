from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from losslocator.domain.ingestion import RunSummary
from losslocator.domain.model import (
    Cluster,
    EventType,
    GeoAnnotation,
    ResolutionLevel,
    RunStatus,
    SourceType,
    VerificationStatus,
)
from losslocator.ui import cli
from tests.helpers.signals import make_signal

if TYPE_CHECKING:
    from losslocator.domain.ports.persistence import ClusterQuery


def _summary(name: str, status: RunStatus, **counts: int) -> RunSummary:
    summary = RunSummary(source_name=name, source_type=SourceType.CAD, status=status)
    for key, value in counts.items():
        setattr(summary, key, value)
    return summary


def _capture_ingestion(
    monkeypatch: pytest.MonkeyPatch,
    summaries: list[RunSummary] | None = None,
) -> dict[str, object]:
    captured: dict[str, object] = {}

    def fake_run_ingestion(**kwargs: object) -> list[RunSummary]:
        captured.update(kwargs)
        return summaries or []

    monkeypatch.setattr(cli, "run_ingestion", fake_run_ingestion)
    return captured


def test_ingest_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = _capture_ingestion(monkeypatch)

    cli.main(["ingest"])

    assert captured == {
        "sources": None,
        "run_budget_seconds": None,
        "max_workers": None,
        "reverse_geocode": True,
    }


def test_ingest_with_flags_prints_summaries(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    captured = _capture_ingestion(
        monkeypatch,
        [_summary("dallas", RunStatus.SUCCESS, fetched=3, processed=3, clustered=2, merged=1)],
    )

    cli.main(
        [
            "ingest",
            "--source",
            "cad",
            "--source",
            "news",
            "--budget-seconds",
            "30",
            "--max-workers",
            "2",
            "--no-geocode",
        ]
    )

    assert captured["sources"] == ["cad", "news"]
    assert captured["run_budget_seconds"] == 30.0
    assert captured["max_workers"] == 2
    assert captured["reverse_geocode"] is False
    output = capsys.readouterr().out
    assert "dallas: success fetched=3 processed=3 clustered=2 merged=1" in output


def test_ingest_exits_nonzero_when_every_source_failed(monkeypatch: pytest.MonkeyPatch) -> None:
    failed = _summary("nws", RunStatus.FAILED)
    failed.error = "fetch: HTTP 503"
    _capture_ingestion(monkeypatch, [failed])

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["ingest"])

    assert excinfo.value.code == 1


def test_ingest_partial_failure_is_not_fatal(monkeypatch: pytest.MonkeyPatch) -> None:
    _capture_ingestion(
        monkeypatch,
        [_summary("nws", RunStatus.FAILED), _summary("dallas", RunStatus.SUCCESS)],
    )

    cli.main(["ingest"])


@pytest.mark.parametrize(
    "argv",
    [
        ["ingest", "--budget-seconds", "0"],
        ["ingest", "--max-workers", "0"],
        ["clusters", "--zip", "123"],
        ["clusters", "--county", "dallas"],
        ["clusters", "--min-score", "101"],
        ["clusters", "--since", "yesterday"],
        ["clusters", "--since", "2024-06-02T00:00:00Z", "--until", "2024-06-01T00:00:00Z"],
        ["--log-level", "chatty", "ingest"],
        ["ingest", "--source", "twitter"],
    ],
)
def test_invalid_arguments_exit_with_usage_error(
    monkeypatch: pytest.MonkeyPatch,
    argv: list[str],
) -> None:
    _capture_ingestion(monkeypatch)
    monkeypatch.setattr(cli, "query_clusters", lambda query: [])

    with pytest.raises(SystemExit) as excinfo:
        cli.main(argv)

    assert excinfo.value.code == 2


def test_clusters_builds_query_and_prints(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    cluster = Cluster.seed([make_signal(SourceType.CAD, EventType.FIRE)])
    cluster.apply_score(60, VerificationStatus.REPORTED)
    cluster.geo = GeoAnnotation(
        resolution_level=ResolutionLevel.POINT,
        zip_codes=("75201",),
        county_fips="48113",
        state_code="TX",
    )
    seen: list[ClusterQuery] = []

    def fake_query(query: ClusterQuery) -> list[Cluster]:
        seen.append(query)
        return [cluster]

    monkeypatch.setattr(cli, "query_clusters", fake_query)

    cli.main(
        [
            "clusters",
            "--event-type",
            "Fire",
            "--state",
            "tx",
            "--min-score",
            "60",
            "--status",
            "reported",
            "--status",
            "confirmed",
            "--since",
            "2024-06-01T00:00:00",
            "--limit",
            "5",
        ]
    )

    [query] = seen
    assert query.event_type is EventType.FIRE
    assert query.state_code == "TX"
    assert query.min_score == 60
    assert query.statuses == frozenset({VerificationStatus.REPORTED, VerificationStatus.CONFIRMED})
    assert query.window_start == datetime(2024, 6, 1, tzinfo=UTC)
    assert query.window_end is None
    assert query.limit == 5
    output = capsys.readouterr().out
    assert str(cluster.id) in output
    assert "score= 60" in output
    assert "point:TX/48113/75201" in output


def test_load_crosswalk_command(monkeypatch: pytest.MonkeyPatch) -> None:
    seen: list[Path] = []

    def fake_load(path: Path) -> int:
        seen.append(path)
        return 3

    monkeypatch.setattr(cli, "load_crosswalk", fake_load)

    cli.main(["load-crosswalk", "zips.csv"])

    assert seen == [Path("zips.csv")]


def test_runtime_failure_exits_with_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def broken(**_: object) -> list[RunSummary]:
        raise RuntimeError("database is gone")

    monkeypatch.setattr(cli, "run_ingestion", broken)

    with pytest.raises(SystemExit) as excinfo:
        cli.main(["ingest"])

    assert excinfo.value.code == 1
