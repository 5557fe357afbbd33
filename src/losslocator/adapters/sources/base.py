"""Shared plumbing for source fetchers: sync entry point, error classification."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

import httpx
import pydantic

from losslocator.domain.ports.fetching import (
    FetchSuccess,
    PermanentFetchFailure,
    RawRecord,
    TransientFetchFailure,
)

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable, Mapping, Sequence

    from losslocator.adapters.http_resilience import SourceClient
    from losslocator.config.http_resilience import ResilienceConfig
    from losslocator.domain.model import SourceType
    from losslocator.domain.ports.fetching import FetchResult

    type ClientFactory = Callable[[ResilienceConfig], SourceClient]

log = getLogger(__name__)

TRANSIENT_STATUS_CODES = frozenset({408, 425, 429})


class UnexpectedPayloadError(ValueError):
    """The response parsed but does not have the shape the source documents."""


def run_fetch(
    source_type: SourceType,
    source_name: str,
    fetch: Callable[[], Awaitable[Sequence[Mapping[str, object]]]],
) -> FetchResult:
    """Run an async fetch to completion and translate its outcome into a ``FetchResult``.

    Transport errors, 5xx and throttling responses are transient; other HTTP
    errors and unreadable bodies are permanent.
    """

    try:
        payloads = asyncio.run(fetch())
    except httpx.HTTPStatusError as exc:
        status = exc.response.status_code
        reason = f"HTTP {status} from {exc.request.url}"
        if status >= 500 or status in TRANSIENT_STATUS_CODES:
            return TransientFetchFailure(reason)
        return PermanentFetchFailure(reason)
    except httpx.TransportError as exc:
        return TransientFetchFailure(f"{type(exc).__name__}: {exc}")
    except httpx.HTTPError as exc:
        return TransientFetchFailure(str(exc))
    except pydantic.ValidationError as exc:
        return PermanentFetchFailure(f"unexpected response shape: {exc.error_count()} errors")
    except ValueError as exc:
        return PermanentFetchFailure(f"unreadable response: {exc}")

    fetched_at = datetime.now(tz=UTC)
    log.debug("Fetched %d records from %s", len(payloads), source_name)
    return FetchSuccess(
        tuple(
            RawRecord(
                source_type=source_type,
                source_name=source_name,
                payload=payload,
                fetched_at=fetched_at,
            )
            for payload in payloads
        )
    )


def unwrap_records(payload: object, *keys: str) -> list[Mapping[str, object]]:
    """Accept a bare list or the first list found under ``keys`` in an envelope."""

    if isinstance(payload, dict):
        for key in keys:
            value = payload.get(key)
            if isinstance(value, list):
                payload = value
                break
        else:
            raise UnexpectedPayloadError(f"expected one of {', '.join(keys)} in response")
    if not isinstance(payload, list):
        raise UnexpectedPayloadError(f"expected a list of records, got {type(payload).__name__}")
    return [item for item in payload if isinstance(item, dict)]


def bearer(api_key: str | None) -> dict[str, str] | None:
    return {"Authorization": f"Bearer {api_key}"} if api_key else None
