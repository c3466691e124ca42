"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class ExpenseStatus(StrEnum):
    PENDING = "pending"
    PROCESSED = "processed"
    DUPLICATE = "duplicate"


class ConflictType(StrEnum):
    DUPLICATE = "duplicate"
    SIMILAR = "similar"
    NEEDS_REVIEW = "needs_review"


class ConflictStatus(StrEnum):
    PENDING = "pending"
    RESOLVED = "resolved"
    IGNORED = "ignored"


class ResolutionAction(StrEnum):
    KEEP_EXISTING = "keep_existing"
    KEEP_NEW = "keep_new"
    KEEP_BOTH = "keep_both"
    MERGED = "merged"
    CUSTOM = "custom"


class ResolutionMethod(StrEnum):
    """Who drove a resolution: an operator or the auto-resolver."""

    MANUAL = "manual"
    AUTO = "auto"


UNDO_ACTION = "undo"
