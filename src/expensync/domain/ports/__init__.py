"""Ports (interfaces) for external collaborators."""

from __future__ import annotations

from .analytics import NullResolutionAnalytics, ResolutionAnalytics
from .persistence import (
    ConflictRepository,
    ExpenseRepository,
    Repository,
    ResolutionHistoryRepository,
    SyncSessionRepository,
)
from .unit_of_work import ConflictRepositories, ConflictUnitOfWork

__all__ = [
    "ConflictRepositories",
    "ConflictRepository",
    "ConflictUnitOfWork",
    "ExpenseRepository",
    "NullResolutionAnalytics",
    "Repository",
    "ResolutionAnalytics",
    "ResolutionHistoryRepository",
    "SyncSessionRepository",
]
