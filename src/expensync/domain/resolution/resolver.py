"""Single-conflict resolution, undo and merge preview.

Every mutating call runs in its own unit of work: the conflict row is re-read (and
locked where the store supports it), the pending/resolved precondition is checked
again, and the expense updates, the conflict transition and the history record are
committed together or not at all. Failures never escape; they end up in
:attr:`ConflictResolver.errors` and the call returns ``False``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, assert_never, cast

from expensync.config.resolution import ResolutionConfig
from expensync.domain.model import (
    UNDO_ACTION,
    ConflictResolutionRecord,
    ResolutionMethod,
    to_json_compatible,
    utcnow,
)
from expensync.domain.ports import NullResolutionAnalytics

from .actions import (
    Custom,
    InvalidResolutionError,
    KeepBoth,
    KeepExisting,
    KeepNew,
    Merge,
    merge_command,
    parse_resolution,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping
    from datetime import datetime

    from expensync.domain.model import Conflict, Expense, ResolutionAction
    from expensync.domain.ports import ConflictUnitOfWork, ResolutionAnalytics

    from .actions import Resolution

log = logging.getLogger(__name__)

type Changes = dict[str, tuple[object, object]]


class ConflictNotFoundError(LookupError):
    def __init__(self, conflict_id: int) -> None:
        self.conflict_id = conflict_id
        super().__init__(f"Conflict #{conflict_id} not found")


class MissingExpenseError(LookupError):
    """Raised when a conflict points at an expense that is not in the store."""


@dataclass(slots=True)
class AppliedChanges:
    existing: Changes
    new: Changes

    def as_dict(self) -> dict[str, object]:
        return cast(
            "dict[str, object]",
            to_json_compatible(
                {
                    "existing": _from_to(self.existing),
                    "new": _from_to(self.new),
                }
            ),
        )


def _from_to(changes: Changes) -> dict[str, dict[str, object]]:
    return {name: {"from": old, "to": new} for name, (old, new) in changes.items()}


def apply_resolution(
    command: Resolution,
    existing: Expense,
    new: Expense | None,
) -> AppliedChanges:
    """Mutate the expenses of one conflict as the command prescribes.

    Raises :class:`~expensync.domain.model.ExpenseValidationError` for invalid values and
    :class:`MissingExpenseError` when a merge has no new expense to take values from.
    """

    existing_changes: Changes = {}
    new_changes: Changes = {}
    match command:
        case KeepExisting():
            if new is not None:
                new_changes = new.mark_duplicate(f"Duplicate of expense #{existing.id}")
        case KeepNew():
            note = f"Replaced by expense #{new.id}" if new is not None else None
            existing_changes = existing.mark_duplicate(note)
            if new is not None:
                new_changes = new.mark_processed()
        case KeepBoth():
            existing_changes = existing.mark_processed()
            if new is not None:
                new_changes = new.mark_processed("Kept as separate expense")
        case Merge():
            if new is None:
                raise MissingExpenseError("Conflict has no new expense to merge from")
            updates = {name: getattr(new, name) for name in command.fields_from_new}
            if updates:
                existing_changes = existing.update(updates)
            new_changes = new.mark_duplicate(f"Merged into expense #{existing.id}")
        case Custom():
            if command.existing_expense:
                existing_changes = existing.update(command.existing_expense)
            if command.new_expense and new is not None:
                new_changes = new.update(command.new_expense)
        case _:
            assert_never(command)
    return AppliedChanges(existing=existing_changes, new=new_changes)


def _snapshots(existing: Expense, new: Expense | None) -> dict[str, object]:
    return {"existing": existing.snapshot(), "new": new.snapshot() if new is not None else None}


class ConflictResolver:
    """Resolve, undo or preview one conflict, identified by id."""

    def __init__(
        self,
        conflict_id: int,
        unit_of_work_factory: Callable[[], ConflictUnitOfWork],
        *,
        config: ResolutionConfig | None = None,
        analytics: ResolutionAnalytics | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.conflict_id = conflict_id
        self.unit_of_work_factory = unit_of_work_factory
        self.config = config or ResolutionConfig()
        self.analytics = analytics or NullResolutionAnalytics()
        self.clock = clock
        self.errors: list[str] = []
        self.conflict: Conflict | None = None

    # resolve -----------------------------------------------------------------

    def resolve(
        self,
        action: str | ResolutionAction,
        options: Mapping[str, object] | None = None,
    ) -> bool:
        try:
            command = parse_resolution(action, options)
        except InvalidResolutionError as exc:
            self._error(str(exc))
            return False
        return self.apply(command)

    def apply(self, command: Resolution) -> bool:
        resolved_by = command.resolved_by or self.config.manual_actor
        method = self._method_for(resolved_by)
        try:
            with self.unit_of_work_factory() as uow:
                repositories = uow.repositories
                conflict = repositories.conflicts.get_for_update(self.conflict_id)
                if conflict is None:
                    raise ConflictNotFoundError(self.conflict_id)
                self.conflict = conflict
                if not conflict.is_pending:
                    self._error(
                        f"Conflict #{self.conflict_id} is not pending (status: {conflict.status})"
                    )
                    return False

                existing, new = self._load_expenses(uow, conflict)
                before = _snapshots(existing, new)
                changes = apply_resolution(command, existing, new)
                conflict.mark_resolved(
                    command.action,
                    resolution_data=command.resolution_data(),
                    resolved_by=resolved_by,
                    resolved_at=self.clock(),
                )
                repositories.history.add(
                    ConflictResolutionRecord(
                        conflict_id=conflict.persisted_id,
                        action=command.action.value,
                        resolved_by=resolved_by,
                        resolution_method=method,
                        before_state=before,
                        after_state=_snapshots(existing, new),
                        changes_made=changes.as_dict(),
                        created_at=self.clock(),
                    )
                )
                uow.commit()
        except ConflictNotFoundError as exc:
            self._error(str(exc))
            return False
        except Exception as exc:  # noqa: BLE001
            self.conflict = None
            self._error(f"Resolution failed: {exc}")
            log.error("Failed to resolve conflict #%s: %s", self.conflict_id, exc)
            return False

        self._record_resolution(command.action, resolved_by, method)
        return True

    def _load_expenses(
        self, uow: ConflictUnitOfWork, conflict: Conflict
    ) -> tuple[Expense, Expense | None]:
        expenses = uow.repositories.expenses
        existing = expenses.get(conflict.existing_expense_id)
        if existing is None:
            raise MissingExpenseError(
                f"Existing expense #{conflict.existing_expense_id} of conflict "
                f"#{self.conflict_id} not found"
            )
        new = expenses.get(conflict.new_expense_id) if conflict.new_expense_id is not None else None
        if new is None and conflict.new_expense_id is not None:
            log.warning(
                "New expense #%s of conflict #%s is missing",
                conflict.new_expense_id,
                self.conflict_id,
            )
        return existing, new

    def _method_for(self, resolved_by: str) -> ResolutionMethod:
        if resolved_by == self.config.auto_actor:
            return ResolutionMethod.AUTO
        return ResolutionMethod.MANUAL

    def _record_resolution(
        self, action: ResolutionAction, resolved_by: str, method: ResolutionMethod
    ) -> None:
        log.info(
            "Resolved conflict #%s with action %s by %s",
            self.conflict_id,
            action,
            resolved_by,
            extra={
                "conflict_id": self.conflict_id,
                "resolution_action": action.value,
                "resolved_by": resolved_by,
                "resolution_method": method.value,
            },
        )
        self._increment(f"resolutions:{action.value}:count")
        self._increment("resolutions:total:count")
        self._increment(f"resolutions:{method.value}:count")

    def _increment(self, key: str) -> None:
        try:
            self.analytics.increment(key)
        except Exception:  # noqa: BLE001
            log.warning("Could not record analytics counter %s", key, exc_info=True)

    # undo --------------------------------------------------------------------

    def undo_resolution(self, *, undone_by: str | None = None) -> bool:
        """Return a resolved conflict to pending.

        Only the conflict's own resolution fields are reverted. Expense status and content
        changes made by the original resolution stay as they are.
        """

        actor = undone_by or self.config.manual_actor
        try:
            with self.unit_of_work_factory() as uow:
                repositories = uow.repositories
                conflict = repositories.conflicts.get_for_update(self.conflict_id)
                if conflict is None:
                    raise ConflictNotFoundError(self.conflict_id)
                self.conflict = conflict
                if not conflict.is_resolved:
                    self._error(
                        f"Conflict #{self.conflict_id} is not resolved (status: {conflict.status})"
                    )
                    return False

                reverted_action = conflict.resolution_action
                conflict.revert_resolution()
                latest = repositories.history.latest_live(conflict.persisted_id)
                if latest is not None:
                    latest.mark_undone(self.clock())
                existing, new = self._load_expenses(uow, conflict)
                state = _snapshots(existing, new)
                repositories.history.add(
                    ConflictResolutionRecord(
                        conflict_id=conflict.persisted_id,
                        action=UNDO_ACTION,
                        resolved_by=actor,
                        resolution_method=self._method_for(actor),
                        before_state=state,
                        after_state=state,
                        changes_made=cast(
                            "dict[str, object]",
                            to_json_compatible({"reverted_action": reverted_action}),
                        ),
                        created_at=self.clock(),
                    )
                )
                uow.commit()
        except ConflictNotFoundError as exc:
            self._error(str(exc))
            return False
        except Exception as exc:  # noqa: BLE001
            self.conflict = None
            self._error(f"Failed to undo resolution: {exc}")
            log.error("Failed to undo conflict #%s: %s", self.conflict_id, exc)
            return False

        log.info("Undid resolution %s of conflict #%s", reverted_action, self.conflict_id)
        self._increment(f"resolutions:{UNDO_ACTION}:count")
        return True

    # preview -----------------------------------------------------------------

    def preview_merge(self, merge_fields: Mapping[str, object]) -> dict[str, object] | None:
        """Existing expense attributes as a merge with ``merge_fields`` would leave them.

        ``None`` when the conflict has no new expense (or cannot be read). Nothing is written.
        """

        loaded = self._read_pair(merge_fields)
        if loaded is None:
            return None
        command, existing, new = loaded
        preview = existing.attributes()
        for name in command.fields_from_new:
            preview[name] = getattr(new, name)
        return preview

    def merge_changes(
        self, merge_fields: Mapping[str, object]
    ) -> dict[str, dict[str, object]] | None:
        """Only the fields a merge would actually change, as ``{"from", "to"}`` pairs."""

        loaded = self._read_pair(merge_fields)
        if loaded is None:
            return None
        command, existing, new = loaded
        changes: dict[str, dict[str, object]] = {}
        for name in command.fields_from_new:
            before, after = getattr(existing, name), getattr(new, name)
            if before != after:
                changes[name] = {"from": before, "to": after}
        return changes

    def _read_pair(
        self, merge_fields: Mapping[str, object]
    ) -> tuple[Merge, Expense, Expense] | None:
        try:
            command = merge_command(merge_fields)
        except InvalidResolutionError as exc:
            self._error(str(exc))
            return None

        with self.unit_of_work_factory() as uow:
            conflict = uow.repositories.conflicts.get(self.conflict_id)
            if conflict is None:
                self._error(str(ConflictNotFoundError(self.conflict_id)))
                return None
            self.conflict = conflict
            if conflict.new_expense_id is None:
                return None
            existing, new = self._load_expenses(uow, conflict)
        if new is None:
            return None
        return command, existing, new

    def _error(self, message: str) -> None:
        self.errors.append(message)

