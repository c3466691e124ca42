"""Exercise the SQLAlchemy repositories and unit of work against SQLite."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import TYPE_CHECKING

import pytest
from sqlalchemy import inspect, select, text
from sqlalchemy.exc import IntegrityError

from expensync.adapters.sqlalchemy.mappings import expense_table
from expensync.adapters.sqlalchemy.unit_of_work import (
    SqlAlchemyUnitOfWork,
    StartupError,
    configured_engine,
    is_started,
    startup,
)
from expensync.domain.model import (
    Conflict,
    ConflictStatus,
    ConflictType,
    ExpenseStatus,
)
from tests.helpers.expenses import load_expense, make_expense, seed_conflict, seed_expenses

if TYPE_CHECKING:
    from collections.abc import Callable

    from sqlalchemy.engine import Engine
    from sqlalchemy.orm import Session

pytestmark = pytest.mark.integration

type UowFactory = Callable[[], SqlAlchemyUnitOfWork]


def test_migrations_create_schema(sqlite_engine: Engine) -> None:
    inspector = inspect(sqlite_engine)

    assert {"expense", "sync_conflict", "sync_session", "conflict_resolution"} <= set(
        inspector.get_table_names()
    )
    index_names = {index["name"] for index in inspector.get_indexes("sync_conflict")}
    assert "uq_sync_conflict_pending_pair" in index_names


def test_money_is_stored_as_integer_cents(
    sqlite_unit_of_work: UowFactory, sqlite_session: Session
) -> None:
    (expense_id,) = seed_expenses(sqlite_unit_of_work, make_expense(amount="1234.56"))

    stored = sqlite_session.execute(
        select(expense_table.c.amount, expense_table.c.status).where(
            expense_table.c.id == expense_id
        )
    ).one()
    raw = sqlite_session.execute(
        text("SELECT amount, status FROM expense WHERE id = :id"), {"id": expense_id}
    ).one()

    assert stored.amount == Decimal("1234.56")
    assert raw.amount == 123456
    assert raw.status == "processed"
    assert load_expense(sqlite_unit_of_work, expense_id).amount == Decimal("1234.56")


def test_find_candidates_is_scoped(sqlite_unit_of_work: UowFactory) -> None:
    inside, *_ = seed_expenses(
        sqlite_unit_of_work,
        make_expense(transaction_date=date(2024, 3, 9)),
        make_expense(transaction_date=date(2024, 3, 20)),
        make_expense(account_id=2),
        make_expense(status=ExpenseStatus.DUPLICATE),
        make_expense(amount="13499.99"),
        make_expense(amount="16500.01"),
    )

    with sqlite_unit_of_work() as uow:
        candidates = uow.repositories.expenses.find_candidates(
            account_id=1,
            around=date(2024, 3, 10),
            start=date(2024, 3, 7),
            end=date(2024, 3, 13),
            min_amount=Decimal("13500.00"),
            max_amount=Decimal("16500.00"),
            status=ExpenseStatus.PROCESSED,
            limit=10,
        )

    assert [candidate.id for candidate in candidates] == [inside]


def test_find_candidates_keeps_the_closest_dates_under_the_limit(
    sqlite_unit_of_work: UowFactory,
) -> None:
    far, _, near, same_day, near_after = seed_expenses(
        sqlite_unit_of_work,
        make_expense(transaction_date=date(2024, 3, 8)),
        make_expense(transaction_date=date(2024, 3, 7)),
        make_expense(transaction_date=date(2024, 3, 11)),
        make_expense(transaction_date=date(2024, 3, 10)),
        make_expense(transaction_date=date(2024, 3, 9)),
    )

    with sqlite_unit_of_work() as uow:
        candidates = uow.repositories.expenses.find_candidates(
            account_id=1,
            around=date(2024, 3, 10),
            start=date(2024, 3, 7),
            end=date(2024, 3, 13),
            min_amount=Decimal("13500.00"),
            max_amount=Decimal("16500.00"),
            status=ExpenseStatus.PROCESSED,
            limit=4,
        )

    assert [candidate.id for candidate in candidates] == [same_day, near, near_after, far]


def test_conflicts_are_listed_by_priority(sqlite_unit_of_work: UowFactory) -> None:
    needs_review = seed_conflict(
        sqlite_unit_of_work, conflict_type=ConflictType.NEEDS_REVIEW, similarity_score=99
    )
    similar = seed_conflict(
        sqlite_unit_of_work, conflict_type=ConflictType.SIMILAR, similarity_score=80
    )
    weak_duplicate = seed_conflict(sqlite_unit_of_work, similarity_score=91)
    strong_duplicate = seed_conflict(sqlite_unit_of_work, similarity_score=97)
    resolved = seed_conflict(sqlite_unit_of_work, similarity_score=99.5, resolved=True)

    with sqlite_unit_of_work() as uow:
        conflicts = uow.repositories.conflicts
        pending = [conflict.id for conflict in conflicts.find(status=ConflictStatus.PENDING)]
        duplicates = [
            conflict.id for conflict in conflicts.find(conflict_type=ConflictType.DUPLICATE)
        ]
        limited = [conflict.id for conflict in conflicts.find(limit=2)]
        by_status = conflicts.count_by_status()
        by_type = conflicts.count_by_type()

    assert pending == [strong_duplicate, weak_duplicate, similar, needs_review]
    assert duplicates == [resolved, strong_duplicate, weak_duplicate]
    assert limited == [resolved, strong_duplicate]
    assert by_status == {
        ConflictStatus.PENDING: 4,
        ConflictStatus.RESOLVED: 1,
        ConflictStatus.IGNORED: 0,
    }
    assert by_type[ConflictType.DUPLICATE] == 3
    assert by_type[ConflictType.NEEDS_REVIEW] == 1


def test_pending_ids_filters_unknown_and_resolved(sqlite_unit_of_work: UowFactory) -> None:
    pending = seed_conflict(sqlite_unit_of_work)
    resolved = seed_conflict(sqlite_unit_of_work, resolved=True)

    with sqlite_unit_of_work() as uow:
        assert uow.repositories.conflicts.pending_ids([resolved, 12345, pending]) == [pending]
        assert uow.repositories.conflicts.pending_ids([]) == []


def test_only_one_pending_conflict_per_pair(sqlite_unit_of_work: UowFactory) -> None:
    conflict_id = seed_conflict(sqlite_unit_of_work)
    with sqlite_unit_of_work() as uow:
        original = uow.repositories.conflicts.get(conflict_id)
        assert original is not None
        pair = (original.existing_expense_id, original.new_expense_id)

    with pytest.raises(IntegrityError), sqlite_unit_of_work() as uow:
        uow.repositories.conflicts.add(
            Conflict(
                existing_expense_id=pair[0],
                new_expense_id=pair[1],
                conflict_type=ConflictType.SIMILAR,
                similarity_score=75,
            )
        )
        uow.commit()

    with sqlite_unit_of_work() as uow:
        found = uow.repositories.conflicts.find_pending_for_pair(
            existing_expense_id=pair[0], new_expense_id=pair[1]
        )
    assert found is not None
    assert found.id == conflict_id


def test_unit_of_work_rolls_back_on_error(sqlite_unit_of_work: UowFactory) -> None:
    expense = make_expense()

    with pytest.raises(RuntimeError), sqlite_unit_of_work() as uow:
        uow.repositories.expenses.add(expense)
        uow.flush()
        raise RuntimeError("boom")

    with sqlite_unit_of_work() as uow:
        assert uow.session.execute(select(expense_table.c.id)).all() == []


def test_startup_guards_against_double_initialisation(sqlite_unit_of_work: UowFactory) -> None:
    _ = sqlite_unit_of_work
    assert is_started()
    engine = configured_engine()
    assert engine is not None

    with pytest.raises(StartupError, match="already initialised"):
        startup(engine=engine)


def test_repositories_require_an_open_session(sqlite_unit_of_work: UowFactory) -> None:
    uow = sqlite_unit_of_work()

    with pytest.raises(StartupError):
        _ = uow.repositories
