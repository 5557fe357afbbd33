"""RSS/Atom news feeds, fetched with the resilient client and parsed by feedparser."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

import feedparser

from losslocator.adapters.http_resilience import default_client_factory
from losslocator.config.http_resilience import ResilienceConfig
from losslocator.domain.model import SourceType

from .base import UnexpectedPayloadError, run_fetch

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime

    from losslocator.config.sources import FeedConfig
    from losslocator.domain.ports.fetching import FetchResult

    from .base import ClientFactory

log = getLogger(__name__)


def entry_payload(feed_name: str, entry: Mapping[str, object]) -> dict[str, object]:
    """Flatten a feedparser entry into the fields the news normalizer reads."""

    return {
        "id": entry.get("id") or entry.get("link"),
        "title": entry.get("title") or "",
        "summary": entry.get("summary") or entry.get("description"),
        "link": entry.get("link"),
        "published": entry.get("published") or entry.get("updated"),
        "feed": feed_name,
    }


def parse_feed(feed_name: str, content: str) -> list[Mapping[str, object]]:
    parsed = feedparser.parse(content)
    if parsed.bozo and not parsed.entries:
        raise UnexpectedPayloadError(f"unparseable feed: {parsed.get('bozo_exception')}")
    if parsed.bozo:
        log.warning("Feed %s parsed with issues: %s", feed_name, parsed.get("bozo_exception"))
    return [entry_payload(feed_name, entry) for entry in parsed.entries]


@dataclass(slots=True)
class NewsFeedFetcher:
    feed_name: str
    url: str
    resilience: ResilienceConfig = field(default_factory=lambda: ResilienceConfig(name="news"))
    client_factory: ClientFactory = field(default=default_client_factory)

    @property
    def source_type(self) -> SourceType:
        return SourceType.NEWS

    @property
    def source_name(self) -> str:
        return self.feed_name

    def __call__(self, *, since: datetime | None = None) -> FetchResult:  # noqa: ARG002
        return run_fetch(self.source_type, self.source_name, self._fetch)

    async def _fetch(self) -> list[Mapping[str, object]]:
        async with self.client_factory(self.resilience) as client:
            response = await client.get(self.url)
            response.raise_for_status()
        return parse_feed(self.feed_name, response.text)


def news_fetchers(
    config: FeedConfig,
    *,
    client_factory: ClientFactory = default_client_factory,
) -> list[NewsFeedFetcher]:
    return [
        NewsFeedFetcher(
            feed_name=name,
            url=url,
            resilience=config.resilience,
            client_factory=client_factory,
        )
        for name, url in config.feeds.items()
    ]
