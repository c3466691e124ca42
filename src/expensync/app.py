"""Application orchestration entry points."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from logging import getLogger
from typing import TYPE_CHECKING

from expensync.adapters.analytics import JsonFileResolutionAnalytics
from expensync.adapters.ingestion import read_batch
from expensync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, is_started, startup
from expensync.config import (
    get_detection_config,
    get_resolution_config,
    get_storage_config,
)
from expensync.domain.detection import BatchDetector, ConflictDetector
from expensync.domain.model import ConflictStateError, ExpenseStatus, SyncSession
from expensync.domain.ports.unit_of_work import ConflictUnitOfWork
from expensync.domain.resolution import (
    AutoResolver,
    BulkResolver,
    ConflictNotFoundError,
    ConflictResolver,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping, Sequence
    from pathlib import Path

    from expensync.adapters.ingestion import RejectedRecord
    from expensync.config import DetectionConfig, ResolutionConfig
    from expensync.domain.detection import DetectionFailure, IncomingRecord
    from expensync.domain.model import (
        Conflict,
        ConflictResolutionRecord,
        ConflictStatus,
        ConflictType,
        Expense,
        IncomingExpense,
        ResolutionAction,
    )
    from expensync.domain.ports import ResolutionAnalytics
    from expensync.domain.resolution import BulkResolutionResult

UnitOfWorkFactory = Callable[[], ConflictUnitOfWork]


log = getLogger(__name__)


@dataclass(slots=True)
class DetectionReport:
    session_id: int
    conflicts: list[Conflict] = field(default_factory=list["Conflict"])
    failures: list[DetectionFailure] = field(default_factory=list["DetectionFailure"])
    rejected: list[RejectedRecord] = field(default_factory=list["RejectedRecord"])
    auto_resolved: int = 0


@dataclass(slots=True)
class ResolutionOutcome:
    success: bool
    errors: list[str]
    conflict: Conflict | None = None


@dataclass(slots=True)
class ConflictDetails:
    conflict: Conflict
    existing_expense: Expense | None
    new_expense: Expense | None
    history: list[ConflictResolutionRecord]


@dataclass(slots=True)
class MergePreview:
    attributes: dict[str, object]
    changes: dict[str, dict[str, object]]


@dataclass(slots=True)
class ConflictStatistics:
    by_status: dict[str, int]
    by_type: dict[str, int]
    counters: dict[str, int]


def _unit_of_work_factory(factory: UnitOfWorkFactory | None) -> UnitOfWorkFactory:
    if factory is not None:
        return factory
    if not is_started():
        startup()
    return SqlAlchemyUnitOfWork


def default_analytics() -> JsonFileResolutionAnalytics:
    return JsonFileResolutionAnalytics(get_storage_config().analytics_path())


def store_expenses(
    records: Iterable[IncomingExpense],
    *,
    status: ExpenseStatus = ExpenseStatus.PROCESSED,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[Expense]:
    """Persist already-accepted expenses (the pool new records are compared against)."""

    uow_factory = _unit_of_work_factory(unit_of_work_factory)
    stored: list[Expense] = []
    with uow_factory() as uow:
        for record in records:
            expense = record.to_expense()
            expense.status = status
            uow.repositories.expenses.add(expense)
            stored.append(expense)
        uow.commit()
    log.info("Stored %d %s expense(s)", len(stored), status)
    return stored


def open_sync_session(
    *,
    source: str | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> SyncSession:
    uow_factory = _unit_of_work_factory(unit_of_work_factory)
    session = SyncSession(source=source)
    with uow_factory() as uow:
        uow.repositories.sessions.add(session)
        uow.commit()
    log.info("Opened sync session #%s (source=%s)", session.id, source)
    return session


def detect_conflicts(
    records: Sequence[IncomingRecord],
    *,
    source: str | None = None,
    auto_resolve: bool = False,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    detection_config: DetectionConfig | None = None,
    resolution_config: ResolutionConfig | None = None,
    analytics: ResolutionAnalytics | None = None,
) -> DetectionReport:
    """Run detection for one ingestion batch, optionally auto-resolving obvious duplicates."""

    uow_factory = _unit_of_work_factory(unit_of_work_factory)
    session = open_sync_session(source=source, unit_of_work_factory=uow_factory)
    detector = ConflictDetector(
        uow_factory,
        config=detection_config or get_detection_config(),
        session_id=session.persisted_id,
    )
    batch = BatchDetector(detector)
    report = DetectionReport(
        session_id=session.persisted_id,
        conflicts=batch.detect_batch(records),
        failures=batch.failures,
    )
    if auto_resolve:
        report.auto_resolved = auto_resolve_conflicts(
            session_id=session.persisted_id,
            unit_of_work_factory=uow_factory,
            config=resolution_config,
            analytics=analytics,
        )
    log.info(
        "Detection for session #%s: records=%d, conflicts=%d, failures=%d, auto_resolved=%d",
        report.session_id,
        len(records),
        len(report.conflicts),
        len(report.failures),
        report.auto_resolved,
    )
    return report


def import_batch_file(
    path: Path,
    *,
    auto_resolve: bool = False,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    detection_config: DetectionConfig | None = None,
    resolution_config: ResolutionConfig | None = None,
    analytics: ResolutionAnalytics | None = None,
) -> DetectionReport:
    batch = read_batch(path)
    report = detect_conflicts(
        batch.records,
        source=batch.source or path.name,
        auto_resolve=auto_resolve,
        unit_of_work_factory=unit_of_work_factory,
        detection_config=detection_config,
        resolution_config=resolution_config,
        analytics=analytics,
    )
    report.failures = [
        replace(failure, position=batch.positions[failure.position])
        if failure.position is not None
        else failure
        for failure in report.failures
    ]
    report.rejected = list(batch.rejected)
    return report


def list_conflicts(
    *,
    status: ConflictStatus | None = None,
    conflict_type: ConflictType | None = None,
    session_id: int | None = None,
    limit: int | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[Conflict]:
    uow_factory = _unit_of_work_factory(unit_of_work_factory)
    with uow_factory() as uow:
        return uow.repositories.conflicts.find(
            status=status, conflict_type=conflict_type, session_id=session_id, limit=limit
        )


def get_conflict_details(
    conflict_id: int,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ConflictDetails | None:
    uow_factory = _unit_of_work_factory(unit_of_work_factory)
    with uow_factory() as uow:
        repositories = uow.repositories
        conflict = repositories.conflicts.get(conflict_id)
        if conflict is None:
            return None
        new_expense = (
            repositories.expenses.get(conflict.new_expense_id)
            if conflict.new_expense_id is not None
            else None
        )
        return ConflictDetails(
            conflict=conflict,
            existing_expense=repositories.expenses.get(conflict.existing_expense_id),
            new_expense=new_expense,
            history=repositories.history.for_conflict(conflict_id),
        )


def resolve_conflict(
    conflict_id: int,
    action: str | ResolutionAction,
    options: Mapping[str, object] | None = None,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ResolutionConfig | None = None,
    analytics: ResolutionAnalytics | None = None,
) -> ResolutionOutcome:
    resolver = ConflictResolver(
        conflict_id,
        _unit_of_work_factory(unit_of_work_factory),
        config=config or get_resolution_config(),
        analytics=analytics,
    )
    success = resolver.resolve(action, options)
    return ResolutionOutcome(success=success, errors=resolver.errors, conflict=resolver.conflict)


def bulk_resolve_conflicts(
    conflict_ids: Iterable[int],
    action: str | ResolutionAction,
    options: Mapping[str, object] | None = None,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ResolutionConfig | None = None,
    analytics: ResolutionAnalytics | None = None,
) -> BulkResolutionResult:
    resolver = BulkResolver(
        _unit_of_work_factory(unit_of_work_factory),
        config=config or get_resolution_config(),
        analytics=analytics,
    )
    return resolver.bulk_resolve(conflict_ids, action, options)


def undo_resolution(
    conflict_id: int,
    *,
    undone_by: str | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ResolutionConfig | None = None,
    analytics: ResolutionAnalytics | None = None,
) -> ResolutionOutcome:
    resolver = ConflictResolver(
        conflict_id,
        _unit_of_work_factory(unit_of_work_factory),
        config=config or get_resolution_config(),
        analytics=analytics,
    )
    success = resolver.undo_resolution(undone_by=undone_by)
    return ResolutionOutcome(success=success, errors=resolver.errors, conflict=resolver.conflict)


def auto_resolve_conflicts(
    *,
    session_id: int | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    config: ResolutionConfig | None = None,
    analytics: ResolutionAnalytics | None = None,
) -> int:
    effective_config = config or get_resolution_config()
    effective_config.check_against(get_detection_config().duplicate_threshold)
    resolver = AutoResolver(
        _unit_of_work_factory(unit_of_work_factory),
        config=effective_config,
        analytics=analytics,
    )
    return resolver.auto_resolve_obvious_duplicates(session_id=session_id)


def ignore_conflict(
    conflict_id: int,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ResolutionOutcome:
    """Dismiss a pending conflict without touching either expense."""

    uow_factory = _unit_of_work_factory(unit_of_work_factory)
    with uow_factory() as uow:
        conflict = uow.repositories.conflicts.get_for_update(conflict_id)
        if conflict is None:
            missing = ConflictNotFoundError(conflict_id)
            return ResolutionOutcome(success=False, errors=[str(missing)])
        try:
            conflict.ignore()
        except ConflictStateError as exc:
            return ResolutionOutcome(success=False, errors=[str(exc)], conflict=conflict)
        uow.commit()
    log.info("Ignored conflict #%s", conflict_id)
    return ResolutionOutcome(success=True, errors=[], conflict=conflict)


def preview_merge(
    conflict_id: int,
    merge_fields: Mapping[str, object],
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> MergePreview | None:
    resolver = ConflictResolver(conflict_id, _unit_of_work_factory(unit_of_work_factory))
    attributes = resolver.preview_merge(merge_fields)
    if attributes is None:
        return None
    return MergePreview(attributes=attributes, changes=resolver.merge_changes(merge_fields) or {})


def conflict_statistics(
    *,
    session_id: int | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    analytics: JsonFileResolutionAnalytics | None = None,
) -> ConflictStatistics:
    uow_factory = _unit_of_work_factory(unit_of_work_factory)
    with uow_factory() as uow:
        conflicts = uow.repositories.conflicts
        by_status = conflicts.count_by_status(session_id=session_id)
        by_type = conflicts.count_by_type(session_id=session_id)
    return ConflictStatistics(
        by_status={status.value: count for status, count in by_status.items()},
        by_type={conflict_type.value: count for conflict_type, count in by_type.items()},
        counters=analytics.read() if analytics is not None else {},
    )
