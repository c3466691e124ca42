"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import case, func, select

from expensync.adapters.sqlalchemy.mappings import (
    conflict_resolution_table,
    conflict_table,
    expense_table,
)
from expensync.domain.model import (
    TYPE_PRIORITY,
    Conflict,
    ConflictResolutionRecord,
    ConflictStatus,
    ConflictType,
    Expense,
    SyncSession,
)
from expensync.domain.model.enums import UNDO_ACTION

if TYPE_CHECKING:
    from collections.abc import Iterable
    from datetime import date
    from decimal import Decimal

    from sqlalchemy import Select
    from sqlalchemy.orm import Session

    from expensync.domain.model import ExpenseStatus

_PRIORITY = case(
    {conflict_type: priority for conflict_type, priority in TYPE_PRIORITY.items()},
    value=conflict_table.c.conflict_type,
    else_=0,
)


class SqlAlchemyRepository[TEntity]:
    """Shared ``add``/``get`` for entities with integer identities."""

    def __init__(self, session: Session, entity_cls: type[TEntity]) -> None:
        self.session = session
        self._entity_cls = entity_cls

    def add(self, entity: TEntity) -> None:
        self.session.add(entity)

    def get(self, entity_id: int) -> TEntity | None:
        return self.session.get(self._entity_cls, entity_id)


class SqlAlchemyExpenseRepository(SqlAlchemyRepository[Expense]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Expense)

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
        days_apart = func.abs(
            func.julianday(expense_table.c.transaction_date) - func.julianday(around.isoformat())
        )
        stmt = (
            select(Expense)
            .where(expense_table.c.account_id == account_id)
            .where(expense_table.c.status == status)
            .where(expense_table.c.transaction_date.between(start, end))
            .where(expense_table.c.amount.between(min_amount, max_amount))
            .order_by(days_apart, expense_table.c.id)
            .limit(limit)
        )
        return list(self.session.execute(stmt).scalars())

    def find_by_import_hash(
        self, *, account_id: int, import_hash: str, status: ExpenseStatus | None = None
    ) -> Expense | None:
        stmt = (
            select(Expense)
            .where(expense_table.c.account_id == account_id)
            .where(expense_table.c.import_hash == import_hash)
        )
        if status is not None:
            stmt = stmt.where(expense_table.c.status == status)
        stmt = stmt.order_by(expense_table.c.id).limit(1)
        return self.session.execute(stmt).scalar_one_or_none()


class SqlAlchemyConflictRepository(SqlAlchemyRepository[Conflict]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, Conflict)

    def get_for_update(self, conflict_id: int) -> Conflict | None:
        stmt = select(Conflict).where(conflict_table.c.id == conflict_id).with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def find_pending_for_pair(
        self, *, existing_expense_id: int, new_expense_id: int | None
    ) -> Conflict | None:
        new_column = conflict_table.c.new_expense_id
        stmt = (
            select(Conflict)
            .where(conflict_table.c.existing_expense_id == existing_expense_id)
            .where(new_column.is_(None) if new_expense_id is None else new_column == new_expense_id)
            .where(conflict_table.c.status == ConflictStatus.PENDING)
            .order_by(conflict_table.c.id)
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def pending_ids(self, conflict_ids: Iterable[int]) -> list[int]:
        requested = list(conflict_ids)
        if not requested:
            return []
        stmt = (
            select(conflict_table.c.id)
            .where(conflict_table.c.id.in_(requested))
            .where(conflict_table.c.status == ConflictStatus.PENDING)
            .order_by(conflict_table.c.id)
        )
        return list(self.session.execute(stmt).scalars())

    def list_auto_resolvable(
        self, *, min_score: float, session_id: int | None = None
    ) -> list[Conflict]:
        stmt = (
            select(Conflict)
            .where(conflict_table.c.status == ConflictStatus.PENDING)
            .where(conflict_table.c.conflict_type == ConflictType.DUPLICATE)
            .where(conflict_table.c.similarity_score >= min_score)
        )
        stmt = self._in_session(stmt, session_id)
        return list(self.session.execute(self._prioritised(stmt)).scalars())

    def find(
        self,
        *,
        status: ConflictStatus | None = None,
        conflict_type: ConflictType | None = None,
        session_id: int | None = None,
        limit: int | None = None,
    ) -> list[Conflict]:
        stmt = select(Conflict)
        if status is not None:
            stmt = stmt.where(conflict_table.c.status == status)
        if conflict_type is not None:
            stmt = stmt.where(conflict_table.c.conflict_type == conflict_type)
        stmt = self._prioritised(self._in_session(stmt, session_id))
        if limit is not None:
            stmt = stmt.limit(limit)
        return list(self.session.execute(stmt).scalars())

    def count_by_status(self, *, session_id: int | None = None) -> dict[ConflictStatus, int]:
        stmt = select(conflict_table.c.status, func.count()).group_by(conflict_table.c.status)
        rows = self.session.execute(self._in_session(stmt, session_id)).all()
        counts = dict.fromkeys(ConflictStatus, 0)
        counts.update({ConflictStatus(status): count for status, count in rows})
        return counts

    def count_by_type(self, *, session_id: int | None = None) -> dict[ConflictType, int]:
        stmt = select(conflict_table.c.conflict_type, func.count()).group_by(
            conflict_table.c.conflict_type
        )
        rows = self.session.execute(self._in_session(stmt, session_id)).all()
        counts = dict.fromkeys(ConflictType, 0)
        counts.update({ConflictType(conflict_type): count for conflict_type, count in rows})
        return counts

    @staticmethod
    def _in_session(stmt: Select[Any], session_id: int | None) -> Select[Any]:
        if session_id is None:
            return stmt
        return stmt.where(conflict_table.c.session_id == session_id)

    @staticmethod
    def _prioritised(stmt: Select[Any]) -> Select[Any]:
        return stmt.order_by(
            _PRIORITY.desc(),
            conflict_table.c.similarity_score.desc(),
            conflict_table.c.id,
        )


class SqlAlchemySyncSessionRepository(SqlAlchemyRepository[SyncSession]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, SyncSession)


class SqlAlchemyResolutionHistoryRepository(SqlAlchemyRepository[ConflictResolutionRecord]):
    def __init__(self, session: Session) -> None:
        super().__init__(session, ConflictResolutionRecord)

    def latest_live(self, conflict_id: int) -> ConflictResolutionRecord | None:
        stmt = (
            select(ConflictResolutionRecord)
            .where(conflict_resolution_table.c.conflict_id == conflict_id)
            .where(conflict_resolution_table.c.undone.is_(False))
            .where(conflict_resolution_table.c.action != UNDO_ACTION)
            .order_by(conflict_resolution_table.c.id.desc())
            .limit(1)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def for_conflict(self, conflict_id: int) -> list[ConflictResolutionRecord]:
        stmt = (
            select(ConflictResolutionRecord)
            .where(conflict_resolution_table.c.conflict_id == conflict_id)
            .order_by(conflict_resolution_table.c.id)
        )
        return list(self.session.execute(stmt).scalars())
