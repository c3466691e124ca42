"""Automatic resolution of near-certain duplicates."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from expensync.config.resolution import ResolutionConfig

from .actions import KeepExisting
from .resolver import ConflictResolver

if TYPE_CHECKING:
    from collections.abc import Callable

    from expensync.domain.ports import ConflictUnitOfWork, ResolutionAnalytics

log = logging.getLogger(__name__)


class AutoResolver:
    """Resolve pending duplicate conflicts scoring at or above the auto-resolve threshold.

    Each qualifying conflict is resolved with ``keep_existing`` on behalf of the
    configured automated actor. Anything below the threshold stays pending for review.
    """

    def __init__(
        self,
        unit_of_work_factory: Callable[[], ConflictUnitOfWork],
        *,
        config: ResolutionConfig | None = None,
        analytics: ResolutionAnalytics | None = None,
    ) -> None:
        self.unit_of_work_factory = unit_of_work_factory
        self.config = config or ResolutionConfig()
        self.analytics = analytics
        self.errors: dict[int, list[str]] = {}

    def auto_resolve_obvious_duplicates(self, *, session_id: int | None = None) -> int:
        with self.unit_of_work_factory() as uow:
            candidates = uow.repositories.conflicts.list_auto_resolvable(
                min_score=self.config.auto_resolve_threshold, session_id=session_id
            )
        conflict_ids = [conflict.persisted_id for conflict in candidates]

        command = KeepExisting(resolved_by=self.config.auto_actor)
        resolved = 0
        for conflict_id in conflict_ids:
            resolver = ConflictResolver(
                conflict_id,
                self.unit_of_work_factory,
                config=self.config,
                analytics=self.analytics,
            )
            if resolver.apply(command):
                resolved += 1
                continue
            self.errors[conflict_id] = resolver.errors
            log.warning(
                "Auto-resolution of conflict #%s failed: %s",
                conflict_id,
                "; ".join(resolver.errors),
            )

        log.info(
            "Auto-resolved %d of %d duplicate conflict(s) at >= %.1f",
            resolved,
            len(conflict_ids),
            self.config.auto_resolve_threshold,
        )
        return resolved
