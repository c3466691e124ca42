"""Apply one resolution to many conflicts, each in its own transaction."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from expensync.domain.model import utcnow

from .actions import InvalidResolutionError, parse_resolution
from .resolver import ConflictResolver

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping
    from datetime import datetime

    from expensync.config.resolution import ResolutionConfig
    from expensync.domain.model import ResolutionAction
    from expensync.domain.ports import ConflictUnitOfWork, ResolutionAnalytics

log = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class FailedConflict:
    id: int
    errors: tuple[str, ...]

    def as_dict(self) -> dict[str, object]:
        return {"id": self.id, "errors": list(self.errors)}


@dataclass(slots=True)
class BulkResolutionResult:
    resolved_count: int = 0
    failed_conflicts: list[FailedConflict] = field(default_factory=list[FailedConflict])

    @property
    def failed_count(self) -> int:
        return len(self.failed_conflicts)

    def as_dict(self) -> dict[str, object]:
        return {
            "resolved_count": self.resolved_count,
            "failed_count": self.failed_count,
            "failed_conflicts": [failure.as_dict() for failure in self.failed_conflicts],
        }


class BulkResolver:
    """Resolve the pending conflicts among a set of ids with the same action.

    Ids that do not exist or are no longer pending are skipped and counted nowhere.
    A failing conflict is reported in the result and does not stop the others.
    """

    def __init__(
        self,
        unit_of_work_factory: Callable[[], ConflictUnitOfWork],
        *,
        config: ResolutionConfig | None = None,
        analytics: ResolutionAnalytics | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.unit_of_work_factory = unit_of_work_factory
        self.config = config
        self.analytics = analytics
        self.clock = clock

    def bulk_resolve(
        self,
        conflict_ids: Iterable[int],
        action: str | ResolutionAction,
        options: Mapping[str, object] | None = None,
    ) -> BulkResolutionResult:
        result = BulkResolutionResult()
        requested = sorted(set(conflict_ids))
        if not requested:
            return result

        with self.unit_of_work_factory() as uow:
            pending_ids = uow.repositories.conflicts.pending_ids(requested)
        log.info(
            "Bulk %s: %d requested, %d pending", action, len(requested), len(pending_ids)
        )

        try:
            command = parse_resolution(action, options)
        except InvalidResolutionError as exc:
            result.failed_conflicts.extend(
                FailedConflict(id=conflict_id, errors=(str(exc),)) for conflict_id in pending_ids
            )
            return result

        for conflict_id in pending_ids:
            resolver = self._resolver(conflict_id)
            if resolver.apply(command):
                result.resolved_count += 1
            else:
                result.failed_conflicts.append(
                    FailedConflict(id=conflict_id, errors=tuple(resolver.errors))
                )

        log.info(
            "Bulk %s finished: resolved=%d, failed=%d",
            action,
            result.resolved_count,
            result.failed_count,
        )
        return result

    def _resolver(self, conflict_id: int) -> ConflictResolver:
        return ConflictResolver(
            conflict_id,
            self.unit_of_work_factory,
            config=self.config,
            analytics=self.analytics,
            clock=self.clock,
        )
