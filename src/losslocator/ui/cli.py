from __future__ import annotations

import argparse
import logging
import sys
from datetime import UTC, datetime
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING

from dotenv import load_dotenv

from losslocator.app import SOURCE_NAMES, load_crosswalk, query_clusters, run_ingestion
from losslocator.config import ConfigurationError, configure_logging, resolve_log_level
from losslocator.domain.model import EventType, RunStatus, VerificationStatus
from losslocator.domain.ports.persistence import ClusterQuery

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from losslocator.domain.ingestion import RunSummary
    from losslocator.domain.model import Cluster

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Reconcile loss signals into event clusters")
    parser.add_argument(
        "--log-level",
        type=str,
        help="Logging level (defaults to LOSSLOCATOR_LOG_LEVEL or INFO)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    ingest = subparsers.add_parser("ingest", help="Fetch sources and assemble clusters")
    ingest.add_argument(
        "--source",
        action="append",
        choices=SOURCE_NAMES,
        dest="sources",
        help="Source to ingest; repeat for several (default: all)",
    )
    ingest.add_argument(
        "--budget-seconds",
        type=float,
        help="Wall-clock budget per source run (defaults to config)",
    )
    ingest.add_argument(
        "--max-workers",
        type=int,
        help="Number of sources to run concurrently (defaults to config)",
    )
    ingest.add_argument(
        "--no-geocode",
        action="store_true",
        help="Skip reverse geocoding of signal coordinates",
    )

    clusters = subparsers.add_parser("clusters", help="Query stored clusters")
    clusters.add_argument(
        "--event-type",
        type=str,
        choices=[event_type.value for event_type in EventType],
        help="Only clusters of this event type",
    )
    clusters.add_argument("--state", type=str, help="Two-letter state code")
    clusters.add_argument("--zip", type=str, help="Five-digit ZIP code")
    clusters.add_argument("--county", type=str, help="Five-digit county FIPS code")
    clusters.add_argument("--min-score", type=int, help="Minimum confidence score")
    clusters.add_argument(
        "--status",
        action="append",
        choices=[status.value for status in VerificationStatus],
        dest="statuses",
        help="Verification status; repeat for several",
    )
    clusters.add_argument(
        "--since",
        type=str,
        help="ISO-8601 timestamp (UTC); clusters whose window ends at or after it",
    )
    clusters.add_argument(
        "--until",
        type=str,
        help="ISO-8601 timestamp (UTC); clusters whose window starts at or before it",
    )
    clusters.add_argument(
        "--limit",
        type=int,
        default=100,
        help="Maximum number of clusters to print (default: %(default)s)",
    )

    crosswalk = subparsers.add_parser("load-crosswalk", help="Load a ZIP-to-county CSV")
    crosswalk.add_argument("path", type=Path, help="CSV file with zip and county columns")

    return parser.parse_args(list(argv))


def _parse_iso_datetime(value: str) -> datetime:
    try:
        normalized = value.strip()
        if normalized.endswith("Z"):
            normalized = normalized[:-1] + "+00:00"
        dt = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise ValueError(f"Invalid ISO timestamp: {value}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _build_query(args: argparse.Namespace) -> ClusterQuery:
    since = _parse_iso_datetime(args.since) if args.since else None
    until = _parse_iso_datetime(args.until) if args.until else None
    if since and until and since > until:
        raise ValueError("--since must not be after --until")
    if args.min_score is not None and not 0 <= args.min_score <= 100:
        raise ValueError("--min-score must be between 0 and 100")
    if args.zip is not None and not (len(args.zip) == 5 and args.zip.isdigit()):
        raise ValueError(f"Invalid ZIP code: {args.zip}")
    if args.county is not None and not (len(args.county) == 5 and args.county.isdigit()):
        raise ValueError(f"Invalid county FIPS code: {args.county}")
    return ClusterQuery(
        event_type=EventType(args.event_type) if args.event_type else None,
        state_code=args.state.upper() if args.state else None,
        zip_code=args.zip,
        county_fips=args.county,
        min_score=args.min_score,
        statuses=(
            frozenset(VerificationStatus(status) for status in args.statuses)
            if args.statuses
            else None
        ),
        window_start=since,
        window_end=until,
        limit=args.limit,
    )


def _validate_ingest(args: argparse.Namespace) -> None:
    if args.budget_seconds is not None and args.budget_seconds <= 0:
        raise ValueError("--budget-seconds must be positive")
    if args.max_workers is not None and args.max_workers < 1:
        raise ValueError("--max-workers must be at least 1")


def format_cluster(cluster: Cluster) -> str:
    geo = cluster.geo
    where = "unresolved"
    if geo is not None:
        parts = [geo.state_code, geo.county_fips, ",".join(geo.zip_codes[:3]) or None]
        where = f"{geo.resolution_level}:" + "/".join(part for part in parts if part)
    sources = ",".join(sorted(cluster.source_types_present))
    return (
        f"{cluster.id} {cluster.event_type:<6} score={cluster.confidence_score:>3} "
        f"{cluster.verification_status:<9} signals={cluster.size} sources={sources} "
        f"{where} {cluster.time_window.start.isoformat()}..{cluster.time_window.end.isoformat()}"
    )


def format_summary(summary: RunSummary) -> str:
    text = (
        f"{summary.source_name}: {summary.status} fetched={summary.fetched} "
        f"processed={summary.processed} clustered={summary.clustered} merged={summary.merged} "
        f"suppressed={summary.suppressed} duplicates={summary.duplicates} "
        f"unmapped={summary.unmapped} failed={summary.failed}"
    )
    if summary.error:
        text += f" error={summary.error}"
    return text


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    load_dotenv()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        configure_logging(level=resolve_log_level(parsed_args.log_level))
        query: ClusterQuery | None = None
        if parsed_args.command == "clusters":
            query = _build_query(parsed_args)
        elif parsed_args.command == "ingest":
            _validate_ingest(parsed_args)
    except (ValueError, ConfigurationError):
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        if parsed_args.command == "ingest":
            summaries = run_ingestion(
                sources=parsed_args.sources,
                run_budget_seconds=parsed_args.budget_seconds,
                max_workers=parsed_args.max_workers,
                reverse_geocode=not parsed_args.no_geocode,
            )
            for summary in summaries:
                print(format_summary(summary))  # noqa: T201
            if summaries and all(summary.status is RunStatus.FAILED for summary in summaries):
                log.error("Every source run failed")
                sys.exit(1)
        elif parsed_args.command == "clusters" and query is not None:
            for cluster in query_clusters(query):
                print(format_cluster(cluster))  # noqa: T201
        elif parsed_args.command == "load-crosswalk":
            count = load_crosswalk(parsed_args.path)
            log.info("Crosswalk now holds %d updated rows", count)
        else:
            raise ValueError(f"Unsupported command: {parsed_args.command}")  # noqa: TRY301

    except Exception:
        log.exception("Fatal error")
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


if __name__ == "__main__":
    signal(SIGINT, sigint_handler)
    main()
