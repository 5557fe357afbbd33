"""SQLAlchemy-backed unit of work for reconciliation transactions."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING, Literal

from sqlalchemy import create_engine, event
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from losslocator.adapters.sqlalchemy.mappings import create_all_tables
from losslocator.adapters.sqlalchemy.repositories import (
    SqlAlchemyAuditLogRepository,
    SqlAlchemyClusterRepository,
    SqlAlchemyCrosswalkRepository,
    SqlAlchemyIngestionRunRepository,
    SqlAlchemySignalRepository,
    is_lock_timeout,
)
from losslocator.config.storage import get_database_config
from losslocator.domain.errors import ConflictError
from losslocator.domain.ports.unit_of_work import ReconciliationRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine

log = getLogger(__name__)

SQLITE_BUSY_TIMEOUT_SECONDS = 5.0


class StartupError(RuntimeError):
    """Raised when the store is used before :func:`startup` or reconfigured by accident."""


@dataclass(slots=True)
class _StoreState:
    engine: Engine | None = None
    sessions: sessionmaker[Session] | None = None


_STATE = _StoreState()


def _build_engine(database_uri: str, *, echo: bool = False) -> Engine:
    if not database_uri.startswith("sqlite"):
        return create_engine(database_uri, echo=echo, future=True)

    engine = create_engine(
        database_uri,
        echo=echo,
        future=True,
        connect_args={"timeout": SQLITE_BUSY_TIMEOUT_SECONDS, "check_same_thread": False},
    )
    file_backed = ":memory:" not in database_uri

    @event.listens_for(engine, "connect")
    def _configure_connection(dbapi_connection: object, _record: object) -> None:
        cursor = dbapi_connection.cursor()  # pyright: ignore[reportAttributeAccessIssue]
        cursor.execute("PRAGMA foreign_keys=ON")
        if file_backed:
            # concurrent source runs read while one of them holds the write lock
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    return engine


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Create the schema if needed and make units of work available."""

    if _STATE.engine is not None and not force:
        raise StartupError("Cluster store already initialised. Pass force=True to reconfigure.")

    if engine is None:
        config = get_database_config()
        engine = _build_engine(database_uri or config.uri, echo=config.echo)
    create_all_tables(engine)

    _STATE.engine = engine
    _STATE.sessions = sessionmaker(bind=engine, expire_on_commit=False)
    log.debug("Cluster store ready at %s", engine.url.render_as_string(hide_password=True))


def configured_engine() -> Engine | None:
    return _STATE.engine


def is_started() -> bool:
    return _STATE.engine is not None


def shutdown() -> None:
    """Dispose the managed engine and reset state (primarily for tests)."""

    if _STATE.engine is not None:
        _STATE.engine.dispose()
    _STATE.engine = None
    _STATE.sessions = None


class SqlAlchemyReconciliationUnitOfWork:
    """One match-or-create transaction, or one bookkeeping write.

    A commit that loses the SQLite write lock to a concurrent run surfaces as
    :class:`ConflictError`, which the assembler retries like any other race.
    """

    def __init__(self) -> None:
        if _STATE.sessions is None:
            raise StartupError(
                "Cluster store not initialised. Call losslocator.adapters.sqlalchemy."
                "unit_of_work.startup() before requesting a unit of work."
            )
        self._sessions = _STATE.sessions
        self._session: Session | None = None
        self._repositories: ReconciliationRepositories | None = None

    def __enter__(self) -> SqlAlchemyReconciliationUnitOfWork:
        if self._session is not None:
            raise StartupError("Unit of work already entered")
        session = self._sessions()
        self._session = session
        self._repositories = ReconciliationRepositories(
            signals=SqlAlchemySignalRepository(session),
            clusters=SqlAlchemyClusterRepository(session),
            audit_log=SqlAlchemyAuditLogRepository(session),
            ingestion_runs=SqlAlchemyIngestionRunRepository(session),
            crosswalk=SqlAlchemyCrosswalkRepository(session),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        session = self.session
        try:
            if exc_type is not None:
                session.rollback()
        finally:
            session.close()
            self._session = None
            self._repositories = None
        return False

    @property
    def session(self) -> Session:
        if self._session is None:
            raise StartupError("Unit of work session not initialised")
        return self._session

    @property
    def repositories(self) -> ReconciliationRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work session not initialised")
        return self._repositories

    def commit(self) -> None:
        try:
            self.session.commit()
        except OperationalError as exc:
            if is_lock_timeout(exc):
                raise ConflictError("cluster store busy at commit") from exc
            raise

    def rollback(self) -> None:
        self.session.rollback()


if TYPE_CHECKING:
    from losslocator.domain.ports.unit_of_work import ReconciliationUnitOfWork

    _uow_check: ReconciliationUnitOfWork = SqlAlchemyReconciliationUnitOfWork()
