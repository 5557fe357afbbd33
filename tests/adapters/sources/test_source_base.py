from __future__ import annotations

from typing import TYPE_CHECKING

import httpx
import pytest

from losslocator.adapters.sources import UnexpectedPayloadError, run_fetch, unwrap_records
from losslocator.config.http_resilience import ResilienceConfig
from losslocator.domain.model import SourceType
from losslocator.domain.ports.fetching import (
    FetchSuccess,
    PermanentFetchFailure,
    TransientFetchFailure,
)
from tests.helpers.http import make_client_factory

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from losslocator.domain.ports.fetching import FetchResult

RESILIENCE = ResilienceConfig(name="test", base_url="https://feeds.example")


def _fetch_with(handler: Callable[[httpx.Request], httpx.Response]) -> FetchResult:
    factory = make_client_factory(handler)

    async def fetch() -> list[Mapping[str, object]]:
        async with factory(RESILIENCE) as client:
            payload = await client.get_json("/incidents")
        return unwrap_records(payload, "incidents")

    return run_fetch(SourceType.CAD, "dallas", fetch)


def test_unwrap_records_accepts_bare_lists_and_envelopes() -> None:
    assert unwrap_records([{"id": 1}, "noise"], "items") == [{"id": 1}]
    assert unwrap_records({"results": [{"id": 2}]}, "incidents", "results") == [{"id": 2}]


def test_unwrap_records_rejects_unknown_shapes() -> None:
    with pytest.raises(UnexpectedPayloadError):
        unwrap_records({"data": []}, "incidents")
    with pytest.raises(UnexpectedPayloadError):
        unwrap_records("nope", "incidents")


def test_run_fetch_wraps_records() -> None:
    result = _fetch_with(
        lambda request: httpx.Response(200, json={"incidents": [{"id": "C-1"}, {"id": "C-2"}]})
    )

    assert isinstance(result, FetchSuccess)
    assert [record.payload["id"] for record in result.records] == ["C-1", "C-2"]
    assert {record.source_name for record in result.records} == {"dallas"}
    assert {record.source_type for record in result.records} == {SourceType.CAD}


@pytest.mark.parametrize("status", [500, 503, 429, 408])
def test_server_errors_and_throttling_are_transient(status: int) -> None:
    result = _fetch_with(lambda request: httpx.Response(status))

    assert isinstance(result, TransientFetchFailure)
    assert f"HTTP {status}" in result.reason


@pytest.mark.parametrize("status", [400, 401, 404])
def test_client_errors_are_permanent(status: int) -> None:
    result = _fetch_with(lambda request: httpx.Response(status))

    assert isinstance(result, PermanentFetchFailure)
    assert f"HTTP {status}" in result.reason


def test_unreadable_body_is_permanent() -> None:
    result = _fetch_with(lambda request: httpx.Response(200, text="<html>oops</html>"))

    assert isinstance(result, PermanentFetchFailure)
    assert "unreadable response" in result.reason


def test_unexpected_envelope_is_permanent() -> None:
    result = _fetch_with(lambda request: httpx.Response(200, json={"data": []}))

    assert isinstance(result, PermanentFetchFailure)


def test_connection_errors_are_transient() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    result = _fetch_with(handler)

    assert isinstance(result, TransientFetchFailure)
    assert "ConnectError" in result.reason
