"""SQLAlchemy adapter package for expensync."""

from __future__ import annotations

from .mappings import mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyConflictRepository,
    SqlAlchemyExpenseRepository,
    SqlAlchemyResolutionHistoryRepository,
    SqlAlchemySyncSessionRepository,
)

__all__ = [
    "SqlAlchemyConflictRepository",
    "SqlAlchemyExpenseRepository",
    "SqlAlchemyResolutionHistoryRepository",
    "SqlAlchemySyncSessionRepository",
    "mapper_registry",
    "start_mappers",
]
