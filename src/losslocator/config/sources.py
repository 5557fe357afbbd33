"""Per-source fetcher configuration values."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Final

from .env import optional_env_var, parse_named_urls, require_env_vars
from .http_resilience import (
    DEFAULT_USER_AGENT,
    CacheConfig,
    RateLimit,
    ResilienceConfig,
    RetryPolicy,
)

if TYPE_CHECKING:
    from .http_resilience import ShouldCacheHook

NWS_BASE_URL: Final[str] = "https://api.weather.gov"
SPC_BASE_URL: Final[str] = "https://www.spc.noaa.gov"
FEMA_BASE_URL: Final[str] = "https://www.fema.gov/api/open"
CENSUS_GEOCODER_BASE_URL: Final[str] = "https://geocoding.geo.census.gov"
CENSUS_CACHE_TTL_SECONDS: Final[float] = 30 * 24 * 3600.0


@dataclass(frozen=True, slots=True)
class NwsConfig:
    """NWS asks every client to identify itself with a contact User-Agent."""

    user_agent: str
    resilience: ResilienceConfig
    area: str | None = None


@dataclass(frozen=True, slots=True)
class SpcConfig:
    resilience: ResilienceConfig
    report_path: str = "/climo/reports/today_filtered.json"


@dataclass(frozen=True, slots=True)
class FemaConfig:
    resilience: ResilienceConfig
    lookback: timedelta = timedelta(days=90)
    page_size: int = 1000


@dataclass(frozen=True, slots=True)
class FireApiConfig:
    """Shared shape of the commercial and state fire incident APIs."""

    name: str
    url: str
    resilience: ResilienceConfig
    api_key: str | None = None


@dataclass(frozen=True, slots=True)
class FeedConfig:
    """A set of named JSON or RSS feeds polled by one fetcher each."""

    feeds: dict[str, str]
    resilience: ResilienceConfig = field(
        default_factory=lambda: ResilienceConfig(name="feeds")
    )


@dataclass(frozen=True, slots=True)
class CensusGeocoderConfig:
    resilience: ResilienceConfig
    benchmark: str = "Public_AR_Current"
    vintage: str = "Current_Current"


def _headers(user_agent: str = DEFAULT_USER_AGENT, **extra: str) -> dict[str, str]:
    return {"User-Agent": user_agent, "Accept": "application/json", **extra}


def get_nws_config(*, area: str | None = None) -> NwsConfig:
    user_agent = optional_env_var("NWS_USER_AGENT") or DEFAULT_USER_AGENT
    return NwsConfig(
        user_agent=user_agent,
        area=area,
        resilience=ResilienceConfig(
            name="nws",
            base_url=NWS_BASE_URL,
            ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
            default_headers=_headers(user_agent, Accept="application/geo+json"),
        ),
    )


def get_spc_config() -> SpcConfig:
    return SpcConfig(
        resilience=ResilienceConfig(
            name="spc",
            base_url=SPC_BASE_URL,
            default_headers=_headers(),
        ),
    )


def get_fema_config(*, lookback: timedelta | None = None) -> FemaConfig:
    return FemaConfig(
        lookback=lookback or timedelta(days=90),
        resilience=ResilienceConfig(
            name="fema",
            base_url=FEMA_BASE_URL,
            timeout_seconds=30.0,
            ratelimit=RateLimit(max_calls=2, per_seconds=1.0),
            default_headers=_headers(),
        ),
    )


def get_fire_commercial_config() -> FireApiConfig:
    values = require_env_vars(("FIRE_COMMERCIAL_API_URL", "FIRE_COMMERCIAL_API_KEY"))
    return FireApiConfig(
        name="fire_commercial",
        url=values["FIRE_COMMERCIAL_API_URL"],
        api_key=values["FIRE_COMMERCIAL_API_KEY"],
        resilience=ResilienceConfig(
            name="fire_commercial",
            ratelimit=RateLimit(max_calls=2, per_seconds=1.0),
            default_headers=_headers(),
        ),
    )


def get_fire_state_config() -> FireApiConfig:
    values = require_env_vars(("FIRE_STATE_API_URL",))
    return FireApiConfig(
        name="fire_state",
        url=values["FIRE_STATE_API_URL"],
        api_key=optional_env_var("FIRE_STATE_API_KEY"),
        resilience=ResilienceConfig(name="fire_state", default_headers=_headers()),
    )


def get_cad_config() -> FeedConfig:
    values = require_env_vars(("CAD_FEED_URLS",))
    return FeedConfig(
        feeds=parse_named_urls("CAD_FEED_URLS", values["CAD_FEED_URLS"]),
        resilience=ResilienceConfig(name="cad", default_headers=_headers()),
    )


def get_news_config() -> FeedConfig:
    values = require_env_vars(("NEWS_FEED_URLS",))
    return FeedConfig(
        feeds=parse_named_urls("NEWS_FEED_URLS", values["NEWS_FEED_URLS"]),
        resilience=ResilienceConfig(
            name="news",
            # feeds are XML; httpx decodes them to text for feedparser
            default_headers={"User-Agent": DEFAULT_USER_AGENT},
        ),
    )


def get_census_geocoder_config(
    *, cache_predicate: ShouldCacheHook | None = None
) -> CensusGeocoderConfig:
    """Census lookups are cached on disk; geography boundaries change once a vintage."""

    return CensusGeocoderConfig(
        resilience=ResilienceConfig(
            name="census",
            base_url=CENSUS_GEOCODER_BASE_URL,
            timeout_seconds=10.0,
            retry=RetryPolicy(total=2),
            ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
            cache=CacheConfig(
                backend="sqlite",
                default_ttl_seconds=CENSUS_CACHE_TTL_SECONDS,
                should_cache=cache_predicate,
            ),
            default_headers=_headers(),
        ),
    )
