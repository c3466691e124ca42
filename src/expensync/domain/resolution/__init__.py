"""Conflict resolution: single, bulk, automatic, undo and merge preview."""

from __future__ import annotations

from .actions import (
    MERGE_SOURCE_NEW,
    Custom,
    InvalidResolutionError,
    KeepBoth,
    KeepExisting,
    KeepNew,
    Merge,
    Resolution,
    merge_command,
    parse_action,
    parse_resolution,
)
from .auto import AutoResolver
from .bulk import BulkResolutionResult, BulkResolver, FailedConflict
from .resolver import (
    AppliedChanges,
    ConflictNotFoundError,
    ConflictResolver,
    MissingExpenseError,
    apply_resolution,
)

__all__ = [
    "MERGE_SOURCE_NEW",
    "AppliedChanges",
    "AutoResolver",
    "BulkResolutionResult",
    "BulkResolver",
    "ConflictNotFoundError",
    "ConflictResolver",
    "Custom",
    "FailedConflict",
    "InvalidResolutionError",
    "KeepBoth",
    "KeepExisting",
    "KeepNew",
    "Merge",
    "MissingExpenseError",
    "Resolution",
    "apply_resolution",
    "merge_command",
    "parse_action",
    "parse_resolution",
]
