from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from expensync.domain.model import (
    ExpenseStatus,
    ExpenseValidationError,
    IncomingExpense,
    InvalidIncomingExpenseError,
    UnpersistedEntityError,
)
from tests.helpers.expenses import make_expense, make_incoming


def test_expense_normalises_values() -> None:
    expense = make_expense(amount="12.5", currency=" USD ")

    assert expense.amount == Decimal("12.50")
    assert expense.currency == "usd"
    assert expense.status is ExpenseStatus.PROCESSED


def test_expense_rejects_non_positive_amount() -> None:
    with pytest.raises(ExpenseValidationError, match="greater than 0"):
        make_expense(amount="0")


def test_update_reports_only_changed_fields() -> None:
    expense = make_expense()

    changes = expense.update({"description": "Nueva", "currency": "crc", "amount": "20000"})

    assert changes == {
        "description": ("Compra supermercado", "Nueva"),
        "amount": (Decimal("15000.00"), Decimal("20000.00")),
    }
    assert expense.updated_at is not None


def test_update_is_all_or_nothing() -> None:
    expense = make_expense()

    with pytest.raises(ExpenseValidationError):
        expense.update({"description": "Nueva", "amount": "-5"})

    assert expense.description == "Compra supermercado"
    assert expense.amount == Decimal("15000.00")
    assert expense.updated_at is None


@pytest.mark.parametrize(
    "changes",
    [
        {"import_hash": "abc"},
        {"transaction_date": "not a date"},
        {"status": "archived"},
        {"category_id": "food"},
        {"amount": "NaN"},
    ],
)
def test_update_rejects_invalid_changes(changes: dict[str, object]) -> None:
    with pytest.raises(ExpenseValidationError):
        make_expense().update(changes)


def test_mark_duplicate_and_processed_record_notes() -> None:
    expense = make_expense(status=ExpenseStatus.PENDING)

    changes = expense.mark_duplicate("Duplicate of expense #4")

    assert expense.status is ExpenseStatus.DUPLICATE
    assert expense.notes == "Duplicate of expense #4"
    assert changes["status"] == (ExpenseStatus.PENDING, ExpenseStatus.DUPLICATE)

    expense.mark_processed()
    assert expense.status is ExpenseStatus.PROCESSED
    assert expense.notes == "Duplicate of expense #4"


def test_snapshot_is_json_compatible() -> None:
    expense = make_expense()
    expense.id = 7

    snapshot = expense.snapshot()

    assert snapshot["id"] == 7
    assert snapshot["amount"] == "15000.00"
    assert snapshot["transaction_date"] == "2024-03-10"
    assert snapshot["status"] == "processed"


def test_persisted_id_requires_identity() -> None:
    with pytest.raises(UnpersistedEntityError):
        _ = make_expense().persisted_id


def test_incoming_expense_from_mapping() -> None:
    incoming = IncomingExpense.from_mapping(
        {
            "account_id": 3,
            "amount": "2500",
            "transaction_date": "2024-03-11T14:05:00",
            "merchant_name": "  Uber  ",
            "description": "",
            "currency": None,
        }
    )

    assert incoming.amount == Decimal("2500.00")
    assert incoming.transaction_date == date(2024, 3, 11)
    assert incoming.merchant_name == "Uber"
    assert incoming.description is None
    assert incoming.currency == "crc"


@pytest.mark.parametrize(
    ("data", "message"),
    [
        ({"amount": "1", "transaction_date": "2024-03-11"}, "account_id"),
        ({"account_id": 1, "transaction_date": "2024-03-11"}, "amount"),
        ({"account_id": 1, "amount": "-3", "transaction_date": "2024-03-11"}, "greater than 0"),
        ({"account_id": "1", "amount": "3", "transaction_date": "2024-03-11"}, "account id"),
        ({"account_id": 1, "amount": "3", "transaction_date": "yesterday"}, "date"),
        (
            {"account_id": 1, "amount": "3", "transaction_date": "2024-03-11", "category_id": "x"},
            "category",
        ),
    ],
)
def test_incoming_expense_rejects_malformed_mappings(
    data: dict[str, object], message: str
) -> None:
    with pytest.raises(InvalidIncomingExpenseError, match=message):
        IncomingExpense.from_mapping(data)


def test_import_hash_ignores_case_and_padding() -> None:
    first = make_incoming(merchant_name="Uber", description="Viaje")
    second = make_incoming(merchant_name=" UBER ", description="viaje")

    assert first.import_hash == second.import_hash
    assert first.import_hash != make_incoming(amount="15000.01").import_hash


def test_to_expense_is_pending_with_import_hash() -> None:
    incoming = make_incoming()

    expense = incoming.to_expense()

    assert expense.status is ExpenseStatus.PENDING
    assert expense.import_hash == incoming.import_hash
    assert expense.id is None
