"""SQLAlchemy adapter package for the cluster store."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry
from .repositories import (
    SqlAlchemyAuditLogRepository,
    SqlAlchemyClusterRepository,
    SqlAlchemyCrosswalkRepository,
    SqlAlchemyIngestionRunRepository,
    SqlAlchemySignalRepository,
)
from .unit_of_work import (
    SqlAlchemyReconciliationUnitOfWork,
    StartupError,
    is_started,
    shutdown,
    startup,
)

__all__ = [
    "SqlAlchemyAuditLogRepository",
    "SqlAlchemyClusterRepository",
    "SqlAlchemyCrosswalkRepository",
    "SqlAlchemyIngestionRunRepository",
    "SqlAlchemyReconciliationUnitOfWork",
    "SqlAlchemySignalRepository",
    "StartupError",
    "create_all_tables",
    "is_started",
    "mapper_registry",
    "shutdown",
    "startup",
]
