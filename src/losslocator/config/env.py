"""Environment variable loaders for configuration."""

from __future__ import annotations

import os
from typing import TYPE_CHECKING

from .errors import ConfigurationError, MissingConfigurationError

if TYPE_CHECKING:
    from collections.abc import Sequence


def require_env_vars(names: Sequence[str]) -> dict[str, str]:
    """Return the given environment variables or raise if any are missing/blank."""

    missing: list[str] = []
    values: dict[str, str] = {}
    for name in names:
        value = os.getenv(name)
        if value is None or not value.strip():
            missing.append(name)
            continue
        values[name] = value.strip()

    if missing:
        missing_list = ", ".join(sorted(missing))
        raise MissingConfigurationError(f"Missing configuration for: {missing_list}")

    return values


def optional_env_var(name: str) -> str | None:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


def parse_named_urls(name: str, raw: str) -> dict[str, str]:
    """Parse ``label=url`` pairs separated by commas.

    Entries without a label are keyed by their position (``feed-1``, ``feed-2`` ...).
    """

    parsed: dict[str, str] = {}
    for position, chunk in enumerate(raw.split(","), start=1):
        entry = chunk.strip()
        if not entry:
            continue
        label, sep, url = entry.partition("=")
        if not sep:
            label, url = f"feed-{position}", entry
        label, url = label.strip(), url.strip()
        if not url.startswith(("http://", "https://")):
            raise ConfigurationError(f"{name}: invalid URL for {label!r}: {url!r}")
        parsed[label] = url
    if not parsed:
        raise MissingConfigurationError(f"Missing configuration for: {name}")
    return parsed
