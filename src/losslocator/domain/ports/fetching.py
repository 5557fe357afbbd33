"""Ports for fetching raw records from external loss sources."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Mapping

    from losslocator.domain.model import SourceType


@dataclass(frozen=True, slots=True)
class RawRecord:
    """One untouched provider record, tagged with where it came from."""

    source_type: SourceType
    source_name: str
    payload: Mapping[str, object]
    fetched_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))


@dataclass(frozen=True, slots=True)
class FetchSuccess:
    records: tuple[RawRecord, ...]


@dataclass(frozen=True, slots=True)
class TransientFetchFailure:
    """Timeout, connection error or 5xx after transport retries; retry later."""

    reason: str


@dataclass(frozen=True, slots=True)
class PermanentFetchFailure:
    """Rejected request or unreadable response; retrying will not help."""

    reason: str


type FetchResult = FetchSuccess | TransientFetchFailure | PermanentFetchFailure


@runtime_checkable
class SourceFetcher(Protocol):
    """Callable port returning every raw record a source currently publishes.

    Implementations report failures through the result type instead of raising;
    only missing configuration surfaces as ``ConfigurationError``.
    """

    @property
    def source_type(self) -> SourceType: ...

    @property
    def source_name(self) -> str: ...

    def __call__(self, *, since: datetime | None = None) -> FetchResult: ...


__all__ = [
    "FetchResult",
    "FetchSuccess",
    "PermanentFetchFailure",
    "RawRecord",
    "SourceFetcher",
    "TransientFetchFailure",
]
