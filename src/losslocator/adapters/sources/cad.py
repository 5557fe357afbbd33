"""Computer-aided-dispatch JSON feeds (PulsePoint-style incident lists)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from losslocator.adapters.http_resilience import default_client_factory
from losslocator.config.http_resilience import ResilienceConfig
from losslocator.domain.model import SourceType

from .base import run_fetch, unwrap_records

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from losslocator.config.sources import FeedConfig
    from losslocator.domain.ports.fetching import FetchResult

    from .base import ClientFactory


@dataclass(slots=True)
class CadFeedFetcher:
    """One dispatch feed. Calls of every type are returned; the normalizer keeps fire calls."""

    provider: str
    url: str
    resilience: ResilienceConfig = field(default_factory=lambda: ResilienceConfig(name="cad"))
    client_factory: ClientFactory = field(default=default_client_factory)

    @property
    def source_type(self) -> SourceType:
        return SourceType.CAD

    @property
    def source_name(self) -> str:
        return self.provider

    def __call__(self, *, since: datetime | None = None) -> FetchResult:  # noqa: ARG002
        return run_fetch(self.source_type, self.source_name, self._fetch)

    async def _fetch(self) -> list[Mapping[str, object]]:
        async with self.client_factory(self.resilience) as client:
            payload = await client.get_json(self.url)
        return unwrap_records(payload, "incidents", "calls", "alerts")


def cad_fetchers(
    config: FeedConfig,
    *,
    client_factory: ClientFactory = default_client_factory,
) -> list[CadFeedFetcher]:
    return [
        CadFeedFetcher(
            provider=provider,
            url=url,
            resilience=config.resilience,
            client_factory=client_factory,
        )
        for provider, url in config.feeds.items()
    ]
