"""Conflicts pair an existing expense with a newly ingested one.

State machine::

    pending --resolve--> resolved --undo--> pending
    pending ------------ ignored

``resolution_action``, ``resolution_data``, ``resolved_by`` and ``resolved_at`` are
set together on resolve and cleared together on undo.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from .entity import Entity, utcnow
from .enums import ConflictStatus, ConflictType

if TYPE_CHECKING:
    from datetime import datetime

    from .enums import ResolutionAction

TYPE_PRIORITY: Final[dict[ConflictType, int]] = {
    ConflictType.DUPLICATE: 3,
    ConflictType.SIMILAR: 2,
    ConflictType.NEEDS_REVIEW: 1,
}


class ConflictStateError(RuntimeError):
    """Raised when a state transition is not allowed from the current status."""


@dataclass(eq=False, kw_only=True)
class Conflict(Entity):
    existing_expense_id: int
    new_expense_id: int | None = None
    session_id: int | None = None
    conflict_type: ConflictType
    similarity_score: float
    status: ConflictStatus = ConflictStatus.PENDING
    resolution_action: ResolutionAction | None = None
    resolution_data: dict[str, object] | None = None
    resolved_by: str | None = None
    resolved_at: datetime | None = None
    differences: dict[str, object] = field(default_factory=dict[str, object])
    conflict_data: dict[str, object] = field(default_factory=dict[str, object])
    created_at: datetime = field(default_factory=utcnow)

    def __post_init__(self) -> None:
        if not 0 <= self.similarity_score <= 100:  # noqa: PLR2004
            raise ValueError(
                f"similarity_score must be within [0, 100], got {self.similarity_score}"
            )
        if not self.has_consistent_resolution:
            raise ValueError("resolution fields must be set iff the conflict is resolved")

    @property
    def is_pending(self) -> bool:
        return self.status is ConflictStatus.PENDING

    @property
    def is_resolved(self) -> bool:
        return self.status is ConflictStatus.RESOLVED

    @property
    def priority(self) -> int:
        """Ordering weight derived from the type; higher sorts first."""

        return TYPE_PRIORITY[self.conflict_type]

    @property
    def has_consistent_resolution(self) -> bool:
        fields = (self.resolution_action, self.resolution_data, self.resolved_by, self.resolved_at)
        if self.status is ConflictStatus.RESOLVED:
            return all(value is not None for value in fields)
        return all(value is None for value in fields)

    @property
    def formatted_similarity_score(self) -> str:
        return f"{self.similarity_score:.1f}%"

    def mark_resolved(
        self,
        action: ResolutionAction,
        *,
        resolution_data: dict[str, object],
        resolved_by: str,
        resolved_at: datetime | None = None,
    ) -> None:
        if self.status is not ConflictStatus.PENDING:
            raise ConflictStateError(
                f"Conflict #{self.id} cannot be resolved from status {self.status}"
            )
        self.status = ConflictStatus.RESOLVED
        self.resolution_action = action
        self.resolution_data = resolution_data
        self.resolved_by = resolved_by
        self.resolved_at = resolved_at or utcnow()

    def revert_resolution(self) -> None:
        if self.status is not ConflictStatus.RESOLVED:
            raise ConflictStateError(f"Conflict #{self.id} is not resolved (status {self.status})")
        self.status = ConflictStatus.PENDING
        self.resolution_action = None
        self.resolution_data = None
        self.resolved_by = None
        self.resolved_at = None

    def ignore(self) -> None:
        if self.status is not ConflictStatus.PENDING:
            raise ConflictStateError(
                f"Conflict #{self.id} cannot be ignored from status {self.status}"
            )
        self.status = ConflictStatus.IGNORED
