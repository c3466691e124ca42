"""Expenses as seen by the conflict engine.

Expenses are created by the ingestion side. The engine only changes their status,
notes and (for merged/custom resolutions) content fields, always through
:meth:`Expense.update` so the same validation applies to every write.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING, Final, cast

from .entity import Entity, utcnow
from .enums import ExpenseStatus
from .serialization import to_json_compatible

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

MONEY_QUANTUM: Final[Decimal] = Decimal("0.01")
DEFAULT_CURRENCY: Final[str] = "crc"

CONTENT_FIELDS: Final[tuple[str, ...]] = (
    "amount",
    "transaction_date",
    "merchant_name",
    "description",
    "currency",
    "category_id",
)
MERGEABLE_FIELDS: Final[frozenset[str]] = frozenset((*CONTENT_FIELDS, "notes"))
EDITABLE_FIELDS: Final[frozenset[str]] = frozenset((*CONTENT_FIELDS, "status", "notes"))


class ExpenseValidationError(ValueError):
    """Raised when an expense would end up violating its business rules."""


def coerce_amount(value: object) -> Decimal:
    if isinstance(value, bool):
        raise ExpenseValidationError(f"Invalid amount: {value!r}")
    try:
        amount = value if isinstance(value, Decimal) else Decimal(str(value))
    except (InvalidOperation, ValueError) as exc:
        raise ExpenseValidationError(f"Invalid amount: {value!r}") from exc
    if not amount.is_finite():
        raise ExpenseValidationError(f"Invalid amount: {value!r}")
    return amount.quantize(MONEY_QUANTUM)


def coerce_date(value: object) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError as exc:
            raise ExpenseValidationError(f"Invalid transaction date: {value!r}") from exc
    raise ExpenseValidationError(f"Invalid transaction date: {value!r}")


def coerce_currency(value: object) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ExpenseValidationError(f"Invalid currency: {value!r}")
    return value.strip().lower()


def _coerce_optional_text(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ExpenseValidationError(f"Expected text, got {value!r}")
    return value


def _coerce_category(value: object) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ExpenseValidationError(f"Invalid category id: {value!r}")
    try:
        return int(value)  # pyright: ignore[reportArgumentType]
    except (TypeError, ValueError) as exc:
        raise ExpenseValidationError(f"Invalid category id: {value!r}") from exc


def _coerce_status(value: object) -> ExpenseStatus:
    try:
        return ExpenseStatus(value)
    except ValueError as exc:
        raise ExpenseValidationError(f"Invalid expense status: {value!r}") from exc


_COERCERS: Final[dict[str, Callable[[object], object]]] = {
    "amount": coerce_amount,
    "transaction_date": coerce_date,
    "merchant_name": _coerce_optional_text,
    "description": _coerce_optional_text,
    "currency": coerce_currency,
    "category_id": _coerce_category,
    "status": _coerce_status,
    "notes": _coerce_optional_text,
}


@dataclass(eq=False, kw_only=True)
class Expense(Entity):
    account_id: int
    amount: Decimal
    transaction_date: date
    merchant_name: str | None = None
    description: str | None = None
    currency: str = DEFAULT_CURRENCY
    category_id: int | None = None
    notes: str | None = None
    status: ExpenseStatus = ExpenseStatus.PENDING
    import_hash: str | None = None
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime | None = None

    def __post_init__(self) -> None:
        self.amount = coerce_amount(self.amount)
        self.transaction_date = coerce_date(self.transaction_date)
        self.currency = coerce_currency(self.currency)
        self.status = _coerce_status(self.status)
        _check_amount(self.amount)

    def update(self, changes: Mapping[str, object]) -> dict[str, tuple[object, object]]:
        """Validate and apply attribute changes, returning ``{field: (old, new)}``.

        Nothing is assigned unless every value is valid.
        """

        unknown = sorted(set(changes) - EDITABLE_FIELDS)
        if unknown:
            raise ExpenseValidationError(f"Unknown expense attribute(s): {', '.join(unknown)}")

        coerced = {name: _COERCERS[name](value) for name, value in changes.items()}
        if "amount" in coerced:
            _check_amount(coerced["amount"])  # pyright: ignore[reportArgumentType]

        applied: dict[str, tuple[object, object]] = {}
        for name, value in coerced.items():
            old = getattr(self, name)
            if old == value:
                continue
            setattr(self, name, value)
            applied[name] = (old, value)
        if applied:
            self.updated_at = utcnow()
        return applied

    def mark_duplicate(self, note: str | None = None) -> dict[str, tuple[object, object]]:
        changes: dict[str, object] = {"status": ExpenseStatus.DUPLICATE}
        if note is not None:
            changes["notes"] = note
        return self.update(changes)

    def mark_processed(self, note: str | None = None) -> dict[str, tuple[object, object]]:
        changes: dict[str, object] = {"status": ExpenseStatus.PROCESSED}
        if note is not None:
            changes["notes"] = note
        return self.update(changes)

    def attributes(self) -> dict[str, object]:
        return {
            "id": self.id,
            "account_id": self.account_id,
            "amount": self.amount,
            "transaction_date": self.transaction_date,
            "merchant_name": self.merchant_name,
            "description": self.description,
            "currency": self.currency,
            "category_id": self.category_id,
            "notes": self.notes,
            "status": self.status,
            "import_hash": self.import_hash,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }

    def snapshot(self) -> dict[str, object]:
        """JSON-storable copy of :meth:`attributes` for audit records."""

        return cast("dict[str, object]", to_json_compatible(self.attributes()))


def _check_amount(amount: Decimal) -> None:
    if amount <= 0:
        raise ExpenseValidationError(f"Amount must be greater than 0 (got {amount})")
