"""Application configuration helpers."""

from __future__ import annotations

from .env import optional_env_var, parse_named_urls, require_env_vars
from .errors import ConfigurationError, MissingConfigurationError
from .http_resilience import (
    DEFAULT_USER_AGENT,
    CacheConfig,
    RateLimit,
    ResilienceConfig,
    RetryPolicy,
)
from .logging import configure_logging, resolve_log_level
from .sources import (
    CensusGeocoderConfig,
    FeedConfig,
    FemaConfig,
    FireApiConfig,
    NwsConfig,
    SpcConfig,
    get_cad_config,
    get_census_geocoder_config,
    get_fema_config,
    get_fire_commercial_config,
    get_fire_state_config,
    get_news_config,
    get_nws_config,
    get_spc_config,
)
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "DEFAULT_USER_AGENT",
    "CacheConfig",
    "CensusGeocoderConfig",
    "ConfigurationError",
    "DatabaseConfig",
    "FeedConfig",
    "FemaConfig",
    "FireApiConfig",
    "MissingConfigurationError",
    "NwsConfig",
    "RateLimit",
    "ResilienceConfig",
    "RetryPolicy",
    "SpcConfig",
    "StorageConfig",
    "configure_logging",
    "get_cad_config",
    "get_census_geocoder_config",
    "get_database_config",
    "get_fema_config",
    "get_fire_commercial_config",
    "get_fire_state_config",
    "get_news_config",
    "get_nws_config",
    "get_spc_config",
    "get_storage_config",
    "optional_env_var",
    "parse_named_urls",
    "require_env_vars",
    "resolve_log_level",
]
