"""OpenFEMA disaster declaration summaries, one record per designated county."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from losslocator.adapters.http_resilience import default_client_factory
from losslocator.config.sources import get_fema_config
from losslocator.domain.model import SourceType

from .base import run_fetch, unwrap_records

if TYPE_CHECKING:
    from collections.abc import Mapping

    from losslocator.adapters.http_resilience import SourceClient
    from losslocator.config.sources import FemaConfig
    from losslocator.domain.ports.fetching import FetchResult, SourceFetcher

    from .base import ClientFactory

DECLARATIONS_PATH = "/v2/DisasterDeclarationsSummaries"
MAX_PAGES = 20


@dataclass(slots=True)
class FemaDeclarationFetcher:
    config: FemaConfig = field(default_factory=get_fema_config)
    client_factory: ClientFactory = field(default=default_client_factory)

    @property
    def source_type(self) -> SourceType:
        return SourceType.DECLARATION

    @property
    def source_name(self) -> str:
        return "fema"

    def __call__(self, *, since: datetime | None = None) -> FetchResult:
        start = datetime.now(tz=UTC) - self.config.lookback
        if since is not None and since > start:
            start = since
        return run_fetch(self.source_type, self.source_name, lambda: self._fetch(start))

    async def _fetch(self, start: datetime) -> list[Mapping[str, object]]:
        records: list[Mapping[str, object]] = []
        async with self.client_factory(self.config.resilience) as client:
            for page in range(MAX_PAGES):
                skip = page * self.config.page_size
                batch = await self._request_page(client, start=start, skip=skip)
                records.extend(batch)
                if len(batch) < self.config.page_size:
                    break
        return records

    async def _request_page(
        self,
        client: SourceClient,
        *,
        start: datetime,
        skip: int,
    ) -> list[Mapping[str, object]]:
        params: dict[str, str | int] = {
            "$filter": f"declarationDate ge '{start.strftime('%Y-%m-%dT%H:%M:%S.000Z')}'",
            "$orderby": "declarationDate desc",
            "$top": self.config.page_size,
        }
        if skip:
            params["$skip"] = skip
        payload = await client.get_json(DECLARATIONS_PATH, params=params)
        return unwrap_records(payload, "DisasterDeclarationsSummaries")


if TYPE_CHECKING:
    _fetcher_check: SourceFetcher = FemaDeclarationFetcher()
