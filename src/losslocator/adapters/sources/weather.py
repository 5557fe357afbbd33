"""Weather fetchers: NWS active alerts and SPC storm reports (GeoJSON features)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from losslocator.adapters.http_resilience import default_client_factory
from losslocator.config.sources import get_nws_config, get_spc_config
from losslocator.domain.model import SourceType

from .base import run_fetch, unwrap_records

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from losslocator.config.sources import NwsConfig, SpcConfig
    from losslocator.domain.ports.fetching import FetchResult, SourceFetcher

    from .base import ClientFactory


@dataclass(slots=True)
class NwsAlertFetcher:
    """Actual (non-test) alerts currently active; the feed has no history to page."""

    config: NwsConfig = field(default_factory=get_nws_config)
    client_factory: ClientFactory = field(default=default_client_factory)

    @property
    def source_type(self) -> SourceType:
        return SourceType.WEATHER

    @property
    def source_name(self) -> str:
        return "nws"

    def __call__(self, *, since: datetime | None = None) -> FetchResult:  # noqa: ARG002
        return run_fetch(self.source_type, self.source_name, self._fetch)

    async def _fetch(self) -> list[Mapping[str, object]]:
        params: dict[str, str | int] = {"status": "actual", "message_type": "alert"}
        if self.config.area:
            params["area"] = self.config.area
        async with self.client_factory(self.config.resilience) as client:
            payload = await client.get_json("/alerts/active", params=params)
        return unwrap_records(payload, "features")


@dataclass(slots=True)
class SpcStormReportFetcher:
    """Today's filtered tornado, wind and hail reports."""

    config: SpcConfig = field(default_factory=get_spc_config)
    client_factory: ClientFactory = field(default=default_client_factory)

    @property
    def source_type(self) -> SourceType:
        return SourceType.WEATHER

    @property
    def source_name(self) -> str:
        return "spc"

    def __call__(self, *, since: datetime | None = None) -> FetchResult:  # noqa: ARG002
        return run_fetch(self.source_type, self.source_name, self._fetch)

    async def _fetch(self) -> list[Mapping[str, object]]:
        async with self.client_factory(self.config.resilience) as client:
            payload = await client.get_json(self.config.report_path)
        return unwrap_records(payload, "features")


if TYPE_CHECKING:
    _nws_check: SourceFetcher = NwsAlertFetcher()
    _spc_check: SourceFetcher = SpcStormReportFetcher()
