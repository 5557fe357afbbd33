"""Source fetchers returning raw records for the ingestion coordinator."""

from __future__ import annotations

from .base import UnexpectedPayloadError, run_fetch, unwrap_records
from .cad import CadFeedFetcher, cad_fetchers
from .fema import FemaDeclarationFetcher
from .fire import FireIncidentFetcher
from .news import NewsFeedFetcher, news_fetchers, parse_feed
from .weather import NwsAlertFetcher, SpcStormReportFetcher

__all__ = [
    "CadFeedFetcher",
    "FemaDeclarationFetcher",
    "FireIncidentFetcher",
    "NewsFeedFetcher",
    "NwsAlertFetcher",
    "SpcStormReportFetcher",
    "UnexpectedPayloadError",
    "cad_fetchers",
    "news_fetchers",
    "parse_feed",
    "run_fetch",
    "unwrap_records",
]
