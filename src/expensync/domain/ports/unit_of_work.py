"""Transaction boundary used by detection and resolution."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, Self, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from expensync.domain.ports.persistence import (
        ConflictRepository,
        ExpenseRepository,
        ResolutionHistoryRepository,
        SyncSessionRepository,
    )


@dataclass(slots=True)
class ConflictRepositories:
    """Repositories that share one transaction."""

    expenses: ExpenseRepository
    conflicts: ConflictRepository
    sessions: SyncSessionRepository
    history: ResolutionHistoryRepository


@runtime_checkable
class ConflictUnitOfWork(Protocol):
    """One transaction over :class:`ConflictRepositories`.

    Leaving the ``with`` block through an exception rolls back; nothing is committed unless
    :meth:`commit` is called explicitly.
    """

    @property
    def repositories(self) -> ConflictRepositories: ...

    def __enter__(self) -> Self: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def flush(self) -> None:
        """Send pending writes so store-assigned ids become available."""
        ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...
