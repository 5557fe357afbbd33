from __future__ import annotations

import httpx

from losslocator.adapters.sources import CadFeedFetcher, cad_fetchers
from losslocator.config.sources import FeedConfig
from losslocator.domain.model import SourceType
from losslocator.domain.ports.fetching import FetchSuccess, TransientFetchFailure
from tests.helpers.http import make_client_factory
from tests.helpers.signals import cad_payload


def test_cad_fetcher_returns_every_call() -> None:
    calls = [cad_payload("C-1"), cad_payload("C-2", call_type="MEDICAL EMERGENCY")]
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json={"calls": calls})

    fetcher = CadFeedFetcher(
        "dallas",
        "https://cad.example/dallas.json",
        client_factory=make_client_factory(handler),
    )
    result = fetcher()

    assert isinstance(result, FetchSuccess)
    assert [record.payload["id"] for record in result.records] == ["C-1", "C-2"]
    assert {record.source_type for record in result.records} == {SourceType.CAD}
    assert {record.source_name for record in result.records} == {"dallas"}
    assert seen == ["https://cad.example/dallas.json"]


def test_cad_fetchers_build_one_fetcher_per_feed() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.host == "down.example":
            return httpx.Response(503)
        return httpx.Response(200, json=[cad_payload("C-9")])

    config = FeedConfig(
        feeds={"dallas": "https://cad.example/feed", "tarrant": "https://down.example/feed"}
    )
    fetchers = cad_fetchers(config, client_factory=make_client_factory(handler))

    assert [fetcher.source_name for fetcher in fetchers] == ["dallas", "tarrant"]
    assert isinstance(fetchers[0](), FetchSuccess)
    assert isinstance(fetchers[1](), TransientFetchFailure)
