"""Error taxonomy for ingestion and reconciliation."""

from __future__ import annotations

from losslocator.config.errors import ConfigurationError, MissingConfigurationError


class ValidationError(ValueError):
    """A raw record is malformed; skip it and continue the batch."""

    def __init__(self, message: str, *, source: str | None = None) -> None:
        super().__init__(message)
        self.source = source


class TransientSourceError(RuntimeError):
    """A fetch or geocode timed out or hit a 5xx; worth retrying later."""


class ConflictError(RuntimeError):
    """A concurrent writer won the race on the cluster store."""


__all__ = [
    "ConfigurationError",
    "ConflictError",
    "MissingConfigurationError",
    "TransientSourceError",
    "ValidationError",
]
