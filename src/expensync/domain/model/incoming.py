"""Normalized transaction records handed over by the ingestion pipeline."""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from .expense import (
    DEFAULT_CURRENCY,
    Expense,
    ExpenseValidationError,
    coerce_amount,
    coerce_currency,
    coerce_date,
)

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import date
    from decimal import Decimal

REQUIRED_KEYS: Final[tuple[str, ...]] = ("account_id", "amount", "transaction_date")


class InvalidIncomingExpenseError(ValueError):
    """Raised when an incoming record cannot be interpreted as an expense."""


def _optional_text(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise InvalidIncomingExpenseError(f"Expected text, got {value!r}")
    return value.strip() or None


@dataclass(frozen=True, slots=True, kw_only=True)
class IncomingExpense:
    account_id: int
    amount: Decimal
    transaction_date: date
    merchant_name: str | None = None
    description: str | None = None
    currency: str = DEFAULT_CURRENCY
    category_id: int | None = None

    def __post_init__(self) -> None:
        if isinstance(self.account_id, bool) or not isinstance(self.account_id, int):
            raise InvalidIncomingExpenseError(f"Invalid account id: {self.account_id!r}")
        try:
            amount = coerce_amount(self.amount)
            transaction_date = coerce_date(self.transaction_date)
            currency = coerce_currency(self.currency)
        except ExpenseValidationError as exc:
            raise InvalidIncomingExpenseError(str(exc)) from exc
        if amount <= 0:
            raise InvalidIncomingExpenseError(f"Amount must be greater than 0 (got {amount})")
        object.__setattr__(self, "amount", amount)
        object.__setattr__(self, "transaction_date", transaction_date)
        object.__setattr__(self, "currency", currency)

    @classmethod
    def from_mapping(cls, data: Mapping[str, object]) -> IncomingExpense:
        missing = [name for name in REQUIRED_KEYS if data.get(name) is None]
        if missing:
            raise InvalidIncomingExpenseError(f"Missing field(s): {', '.join(missing)}")
        category_id = data.get("category_id")
        if category_id is not None and (
            isinstance(category_id, bool) or not isinstance(category_id, int)
        ):
            raise InvalidIncomingExpenseError(f"Invalid category id: {category_id!r}")
        return cls(
            account_id=data["account_id"],  # pyright: ignore[reportArgumentType]
            amount=data["amount"],  # pyright: ignore[reportArgumentType]
            transaction_date=data["transaction_date"],  # pyright: ignore[reportArgumentType]
            merchant_name=_optional_text(data.get("merchant_name")),
            description=_optional_text(data.get("description")),
            currency=data.get("currency") or DEFAULT_CURRENCY,  # pyright: ignore[reportArgumentType]
            category_id=category_id,
        )

    @property
    def import_hash(self) -> str:
        """Content fingerprint used to recognise re-ingestion of the same record."""

        parts = (
            str(self.account_id),
            self.transaction_date.isoformat(),
            str(self.amount),
            (self.merchant_name or "").strip().lower(),
            (self.description or "").strip().lower(),
            self.currency,
        )
        return hashlib.sha256("|".join(parts).encode()).hexdigest()

    def field_values(self) -> dict[str, object]:
        return {
            "amount": self.amount,
            "transaction_date": self.transaction_date,
            "merchant_name": self.merchant_name,
            "description": self.description,
            "currency": self.currency,
            "category_id": self.category_id,
        }

    def to_expense(self) -> Expense:
        """Materialise the record as a new expense awaiting conflict resolution."""

        return Expense(
            account_id=self.account_id,
            amount=self.amount,
            transaction_date=self.transaction_date,
            merchant_name=self.merchant_name,
            description=self.description,
            currency=self.currency,
            category_id=self.category_id,
            import_hash=self.import_hash,
        )
