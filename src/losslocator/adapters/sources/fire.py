"""Fire incident APIs: the commercial aggregator and the state NFIRS feed."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from losslocator.adapters.http_resilience import default_client_factory
from losslocator.domain.model import SourceType

from .base import bearer, run_fetch, unwrap_records

if TYPE_CHECKING:
    from collections.abc import Mapping

    from losslocator.config.sources import FireApiConfig
    from losslocator.domain.ports.fetching import FetchResult

    from .base import ClientFactory


@dataclass(slots=True)
class FireIncidentFetcher:
    """``GET {url}/incidents?start_date=..&end_date=..`` with an optional bearer key.

    Both providers expose the same query shape; the source type decides which
    normalization variant applies to the records.
    """

    config: FireApiConfig
    kind: SourceType = SourceType.FIRE_COMMERCIAL
    lookback: timedelta = timedelta(days=1)
    client_factory: ClientFactory = field(default=default_client_factory)

    def __post_init__(self) -> None:
        if self.kind not in {SourceType.FIRE_COMMERCIAL, SourceType.FIRE_STATE}:
            raise ValueError(f"not a fire source type: {self.kind}")

    @property
    def source_type(self) -> SourceType:
        return self.kind

    @property
    def source_name(self) -> str:
        return self.config.name

    def __call__(self, *, since: datetime | None = None) -> FetchResult:
        end = datetime.now(tz=UTC)
        start = since if since is not None else end - self.lookback
        return run_fetch(self.source_type, self.source_name, lambda: self._fetch(start, end))

    async def _fetch(self, start: datetime, end: datetime) -> list[Mapping[str, object]]:
        params: dict[str, str | int] = {
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
        }
        url = f"{self.config.url.rstrip('/')}/incidents"
        async with self.client_factory(self.config.resilience) as client:
            headers = bearer(self.config.api_key)
            payload = await client.get_json(url, params=params, headers=headers)
        return unwrap_records(payload, "incidents", "results")
