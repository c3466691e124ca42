"""SQLAlchemy unit of work for conflict detection and resolution.

The adapter owns one engine per process. :func:`startup` creates it (or adopts one handed in
by tests), migrates the schema to head and maps the domain model; every
:class:`SqlAlchemyUnitOfWork` then opens its own session from the shared factory.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Literal, Self

from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from expensync.adapters.sqlalchemy.mappings import start_mappers
from expensync.adapters.sqlalchemy.migrations import upgrade_head
from expensync.adapters.sqlalchemy.repositories import (
    SqlAlchemyConflictRepository,
    SqlAlchemyExpenseRepository,
    SqlAlchemyResolutionHistoryRepository,
    SqlAlchemySyncSessionRepository,
)
from expensync.config import get_database_config
from expensync.domain.ports.unit_of_work import ConflictRepositories

if TYPE_CHECKING:
    from types import TracebackType

    from sqlalchemy.engine import Engine


class StartupError(RuntimeError):
    """Raised when the adapter is used before :func:`startup` or configured twice."""


_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None


def startup(
    *,
    engine: Engine | None = None,
    database_uri: str | None = None,
    force: bool = False,
) -> None:
    """Bring the schema to the latest revision, map the model and bind the session factory."""

    global _engine, _session_factory  # noqa: PLW0603

    if _engine is not None and not force:
        raise StartupError(
            "SQLAlchemy adapter already initialised. Pass force=True to reconfigure."
        )

    bound = engine or create_engine(database_uri or get_database_config().uri, future=True)
    start_mappers()
    upgrade_head(engine=bound)
    _engine = bound
    _session_factory = sessionmaker(bind=bound, expire_on_commit=False)


def configured_engine() -> Engine | None:
    return _engine


def is_started() -> bool:
    return _engine is not None


def shutdown() -> None:
    """Dispose the managed engine; the next unit of work needs a fresh :func:`startup`."""

    global _engine, _session_factory  # noqa: PLW0603

    if _engine is not None:
        _engine.dispose()
    _engine = None
    _session_factory = None


class SqlAlchemyUnitOfWork:
    """One session, and the repositories bound to it, per ``with`` block."""

    def __init__(self) -> None:
        if _session_factory is None:
            raise StartupError(
                "SQLAlchemy adapter not initialised. Call "
                "expensync.adapters.sqlalchemy.unit_of_work.startup() first."
            )
        self._session_factory = _session_factory
        self._session: Session | None = None
        self._repositories: ConflictRepositories | None = None

    def __enter__(self) -> Self:
        if self._session is not None:
            raise StartupError("Unit of work is already in use")
        session = self._session_factory()
        self._session = session
        self._repositories = ConflictRepositories(
            expenses=SqlAlchemyExpenseRepository(session),
            conflicts=SqlAlchemyConflictRepository(session),
            sessions=SqlAlchemySyncSessionRepository(session),
            history=SqlAlchemyResolutionHistoryRepository(session),
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
            raise StartupError("Unit of work has no open session; use it as a context manager")
        return self._session

    @property
    def repositories(self) -> ConflictRepositories:
        if self._repositories is None:
            raise StartupError("Unit of work has no open session; use it as a context manager")
        return self._repositories

    def flush(self) -> None:
        self.session.flush()

    def commit(self) -> None:
        self.session.commit()

    def rollback(self) -> None:
        self.session.rollback()


if TYPE_CHECKING:
    from expensync.domain.ports.unit_of_work import ConflictUnitOfWork

    _uow_check: ConflictUnitOfWork = SqlAlchemyUnitOfWork()
