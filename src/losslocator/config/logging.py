"""Logging setup for the ingestion CLI and scheduled runs."""

from __future__ import annotations

import logging
import os

from .errors import ConfigurationError

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
LOG_LEVEL_ENV = "LOSSLOCATOR_LOG_LEVEL"


def resolve_log_level(value: str | None = None) -> int:
    """Translate a level name (or the ``LOSSLOCATOR_LOG_LEVEL`` variable) to a level number."""

    raw = value if value is not None else os.getenv(LOG_LEVEL_ENV)
    if raw is None or not raw.strip():
        return logging.INFO
    level = logging.getLevelNamesMapping().get(raw.strip().upper())
    if level is None:
        raise ConfigurationError(f"Unknown log level: {raw!r}")
    return level


def configure_logging(*, level: int | None = None, force: bool = False) -> None:
    """Initialise the root logger with the run-log format.

    ``level`` defaults to :func:`resolve_log_level`. Pass ``force=True`` to reconfigure
    during tests.
    """

    logging.basicConfig(
        level=resolve_log_level() if level is None else level,
        format=LOG_FORMAT,
        datefmt="%H:%M:%S",
        force=force,
    )
    # httpx logs every request at INFO; keep run logs readable
    logging.getLogger("httpx").setLevel(logging.WARNING)
