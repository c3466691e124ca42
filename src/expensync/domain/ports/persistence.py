"""Ports for persisting expenses, conflicts and their resolution history."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from expensync.domain.model import (
    Conflict,
    ConflictResolutionRecord,
    Expense,
    SyncSession,
)

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import date
    from decimal import Decimal

    from expensync.domain.model import ConflictStatus, ConflictType, ExpenseStatus


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...

    def get(self, entity_id: int) -> TEntity | None: ...


@runtime_checkable
class ExpenseRepository(Repository[Expense], Protocol):
    """Persistence contract for expenses."""

    def find_candidates(
        self,
        *,
        account_id: int,
        around: date,
        start: date,
        end: date,
        min_amount: Decimal,
        max_amount: Decimal,
        status: ExpenseStatus,
        limit: int,
    ) -> list[Expense]:
        """Expenses of one account and status dated within ``[start, end]``.

        Only amounts within ``[min_amount, max_amount]`` qualify. At most ``limit`` rows come
        back, closest to ``around`` first and then by id.
        """
        ...

    def find_by_import_hash(
        self, *, account_id: int, import_hash: str, status: ExpenseStatus | None = None
    ) -> Expense | None: ...


@runtime_checkable
class ConflictRepository(Repository[Conflict], Protocol):
    """Persistence contract for conflicts."""

    def get_for_update(self, conflict_id: int) -> Conflict | None:
        """Load a conflict, locking its row until the transaction ends where supported."""
        ...

    def find_pending_for_pair(
        self, *, existing_expense_id: int, new_expense_id: int | None
    ) -> Conflict | None: ...

    def pending_ids(self, conflict_ids: Iterable[int]) -> list[int]:
        """The subset of ``conflict_ids`` that exist and are pending, ascending."""
        ...

    def list_auto_resolvable(
        self, *, min_score: float, session_id: int | None = None
    ) -> list[Conflict]: ...

    def find(
        self,
        *,
        status: ConflictStatus | None = None,
        conflict_type: ConflictType | None = None,
        session_id: int | None = None,
        limit: int | None = None,
    ) -> list[Conflict]:
        """Conflicts ordered by priority, then score (both descending), then id."""
        ...

    def count_by_status(self, *, session_id: int | None = None) -> dict[ConflictStatus, int]: ...

    def count_by_type(self, *, session_id: int | None = None) -> dict[ConflictType, int]: ...


@runtime_checkable
class SyncSessionRepository(Repository[SyncSession], Protocol):
    """Persistence contract for ingestion runs."""


@runtime_checkable
class ResolutionHistoryRepository(Repository[ConflictResolutionRecord], Protocol):
    """Persistence contract for the resolution audit trail."""

    def latest_live(self, conflict_id: int) -> ConflictResolutionRecord | None:
        """Most recent record for the conflict that has not been undone (undo records excluded)."""
        ...

    def for_conflict(self, conflict_id: int) -> list[ConflictResolutionRecord]: ...
