"""Async HTTP client shared by every upstream source.

Each client wraps one upstream: requests go through an ``aiolimiter`` budget,
``httpx_retries`` replays transport failures and retryable statuses, and
responses may be kept in a hishel cache when the upstream's answers are stable.
"""

from __future__ import annotations

import json
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
from aiolimiter import AsyncLimiter
from hishel import AsyncSqliteStorage, FilterPolicy
from hishel import Response as HishelCacheResponse
from hishel._policies import BaseFilter
from hishel.httpx import AsyncCacheClient
from httpx_retries import Retry, RetryTransport

from losslocator.config.storage import get_storage_config

if TYPE_CHECKING:
    from collections.abc import Mapping
    from types import TracebackType

    from losslocator.config.http_resilience import (
        CacheConfig,
        ResilienceConfig,
        RetryPolicy,
        ShouldCacheHook,
    )

log = getLogger(__name__)


def build_retry(policy: RetryPolicy) -> Retry:
    return Retry(
        total=policy.total,
        backoff_factor=policy.backoff_factor,
        max_backoff_wait=policy.max_backoff_wait,
        respect_retry_after_header=policy.respect_retry_after_header,
        allowed_methods=tuple(policy.allowed_methods),
        status_forcelist=tuple(policy.status_forcelist),
        retry_on_exceptions=policy.retry_on_exceptions,
        backoff_jitter=policy.backoff_jitter,
    )


class SourceClient:
    """Rate-limited, retrying client for a single upstream."""

    def __init__(self, config: ResilienceConfig) -> None:
        self.config = config
        self._limiter = (
            AsyncLimiter(config.ratelimit.max_calls, config.ratelimit.per_seconds)
            if config.ratelimit is not None
            else None
        )
        self._client = self._open(config)

    def _open(self, config: ResilienceConfig) -> httpx.AsyncClient:
        transport = RetryTransport(retry=build_retry(config.retry))
        common = {
            "base_url": config.base_url or "",
            "timeout": config.timeout_seconds,
            "headers": dict(config.default_headers or {}),
            "event_hooks": {"response": [self._log_response]},
            "transport": transport,
        }
        storage, policy = _build_cache_components(config.cache)
        if storage is None:
            return httpx.AsyncClient(**common)
        return AsyncCacheClient(**common, storage=storage, policy=policy)

    async def _log_response(self, response: httpx.Response) -> None:
        log.debug(
            "%s: %s %s -> %d",
            self.config.name,
            response.request.method,
            response.request.url,
            response.status_code,
        )

    async def __aenter__(self) -> SourceClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def get(
        self,
        url: str,
        *,
        params: Mapping[str, str | int] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        query = dict(params) if params else None
        if self._limiter is None:
            return await self._client.get(url, params=query, headers=headers)
        async with self._limiter:
            return await self._client.get(url, params=query, headers=headers)

    async def get_json(
        self,
        url: str,
        *,
        params: Mapping[str, str | int] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> object:
        """GET ``url`` and decode its JSON body; error statuses raise ``HTTPStatusError``."""

        response = await self.get(url, params=params, headers=headers)
        response.raise_for_status()
        return response.json()


def default_client_factory(config: ResilienceConfig) -> SourceClient:
    return SourceClient(config)


class _PayloadCacheFilter(BaseFilter[HishelCacheResponse]):
    """Keep a response only if it is a 200 whose JSON body satisfies ``predicate``."""

    def __init__(self, predicate: ShouldCacheHook) -> None:
        self._predicate = predicate

    def needs_body(self) -> bool:
        return True

    def apply(self, item: HishelCacheResponse, body: bytes | None) -> bool:
        if item.status_code != 200 or body is None:
            return False
        try:
            payload = json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError):
            return False
        return bool(self._predicate(payload))


def _build_cache_components(
    config: CacheConfig | None,
) -> tuple[AsyncSqliteStorage | None, FilterPolicy | None]:
    if config is None or not config.enabled:
        return None, None

    match config.backend:
        case "sqlite":
            database_path = config.sqlite_path or str(get_storage_config().http_cache_path())
        case "memory":
            database_path = ":memory:"
        case _:
            raise ValueError(f"Unsupported cache backend: {config.backend}")

    storage = AsyncSqliteStorage(
        database_path=database_path,
        default_ttl=config.default_ttl_seconds,
        refresh_ttl_on_access=config.refresh_ttl_on_access,
    )
    policy = (
        FilterPolicy(response_filters=[_PayloadCacheFilter(config.should_cache)])
        if config.should_cache is not None
        else None
    )
    return storage, policy
