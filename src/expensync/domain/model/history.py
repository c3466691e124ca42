"""Audit trail of resolutions and undos applied to a conflict."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .entity import Entity, utcnow
from .enums import ResolutionMethod

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(eq=False, kw_only=True)
class ConflictResolutionRecord(Entity):
    """One applied resolution (or undo), with expense snapshots from both sides of it.

    ``action`` holds a :class:`~expensync.domain.model.enums.ResolutionAction` value or
    ``"undo"``. ``before_state``/``after_state`` map ``"existing"``/``"new"`` to expense
    snapshots; the new side is ``None`` when the conflict had no new expense.
    """

    conflict_id: int
    action: str
    resolved_by: str
    resolution_method: ResolutionMethod = ResolutionMethod.MANUAL
    before_state: dict[str, object] = field(default_factory=dict[str, object])
    after_state: dict[str, object] = field(default_factory=dict[str, object])
    changes_made: dict[str, object] = field(default_factory=dict[str, object])
    undone: bool = False
    undone_at: datetime | None = None
    created_at: datetime = field(default_factory=utcnow)

    def mark_undone(self, when: datetime | None = None) -> None:
        self.undone = True
        self.undone_at = when or utcnow()
