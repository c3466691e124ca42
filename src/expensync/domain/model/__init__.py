"""Domain model for expenses and the conflicts between them."""

from __future__ import annotations

from .conflict import TYPE_PRIORITY, Conflict, ConflictStateError
from .entity import Entity, UnpersistedEntityError, utcnow
from .enums import (
    UNDO_ACTION,
    ConflictStatus,
    ConflictType,
    ExpenseStatus,
    ResolutionAction,
    ResolutionMethod,
)
from .expense import (
    CONTENT_FIELDS,
    DEFAULT_CURRENCY,
    EDITABLE_FIELDS,
    MERGEABLE_FIELDS,
    Expense,
    ExpenseValidationError,
)
from .history import ConflictResolutionRecord
from .incoming import IncomingExpense, InvalidIncomingExpenseError
from .serialization import to_json_compatible
from .session import SyncSession

__all__ = [
    "CONTENT_FIELDS",
    "DEFAULT_CURRENCY",
    "EDITABLE_FIELDS",
    "MERGEABLE_FIELDS",
    "TYPE_PRIORITY",
    "UNDO_ACTION",
    "Conflict",
    "ConflictResolutionRecord",
    "ConflictStateError",
    "ConflictStatus",
    "ConflictType",
    "Entity",
    "Expense",
    "ExpenseStatus",
    "ExpenseValidationError",
    "IncomingExpense",
    "InvalidIncomingExpenseError",
    "ResolutionAction",
    "ResolutionMethod",
    "SyncSession",
    "UnpersistedEntityError",
    "to_json_compatible",
    "utcnow",
]
