"""Audit trail and run bookkeeping."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from .entity import Entity
from .enums import RunStatus

if TYPE_CHECKING:
    from .enums import AuditOutcome, SourceType


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(eq=False, kw_only=True)
class AuditEntry(Entity):
    """Why a signal was suppressed or failed."""

    source_type: SourceType
    source_name: str
    source_event_id: str | None
    outcome: AuditOutcome
    reason: str
    recorded_at: datetime = field(default_factory=_utcnow)


@dataclass(eq=False, kw_only=True)
class IngestionRun(Entity):
    """One run of one source, as seen by operators."""

    source_name: str
    source_type: SourceType
    started_at: datetime = field(default_factory=_utcnow)
    completed_at: datetime | None = None
    status: RunStatus = RunStatus.RUNNING
    signals_processed: int = 0
    signals_skipped: int = 0
    error_message: str | None = None

    def finish(
        self,
        status: RunStatus,
        *,
        processed: int,
        skipped: int,
        error: str | None = None,
    ) -> None:
        self.status = status
        self.signals_processed = processed
        self.signals_skipped = skipped
        self.error_message = error
        self.completed_at = _utcnow()
