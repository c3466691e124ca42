"""Turn incoming records into persisted conflicts against stored expenses.

For each record the detector

1. selects processed expenses of the same account dated within the configured window and
   priced within the amount tolerance, closest dates first,
2. scores each candidate with :class:`~expensync.domain.similarity.SimilarityScorer`,
3. keeps the best one (closest date, then lowest id on ties), and
4. when the best score reaches the similar threshold, stores the record as a pending
   expense together with exactly one pending conflict.

Detection never raises for bad input or store failures; those are kept on the
detector as :class:`DetectionFailure` entries instead.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Final

from expensync.config.detection import DetectionConfig
from expensync.domain.model import (
    CONTENT_FIELDS,
    Conflict,
    ExpenseStatus,
    IncomingExpense,
    InvalidIncomingExpenseError,
    to_json_compatible,
    utcnow,
)
from expensync.domain.similarity import ScoreBreakdown, SimilarityScorer, classify

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Sequence
    from datetime import datetime

    from expensync.domain.model import Expense
    from expensync.domain.ports import ConflictUnitOfWork

log = logging.getLogger(__name__)

DETECTION_METHOD: Final[str] = "automatic"
ALGORITHM_VERSION: Final[str] = "1.0"

type IncomingRecord = IncomingExpense | Mapping[str, object]


@dataclass(frozen=True, slots=True)
class DetectionFailure:
    """A record that could not be checked; ``position`` is its index within a batch."""

    reason: str
    record: object
    position: int | None = None


@dataclass(frozen=True, slots=True)
class CandidateMatch:
    expense: Expense
    breakdown: ScoreBreakdown

    @property
    def score(self) -> float:
        return self.breakdown.total


def best_match(
    incoming: IncomingExpense,
    candidates: Iterable[Expense],
    *,
    scorer: SimilarityScorer,
) -> CandidateMatch | None:
    """Highest-scoring candidate; ties go to the closest date, then the lowest id."""

    best: CandidateMatch | None = None
    best_key: tuple[float, int, int] | None = None
    for candidate in candidates:
        breakdown = scorer.breakdown(candidate, incoming)
        days_apart = abs((candidate.transaction_date - incoming.transaction_date).days)
        key = (-breakdown.total, days_apart, candidate.persisted_id)
        if best_key is None or key < best_key:
            best, best_key = CandidateMatch(candidate, breakdown), key
    return best


def amount_band(amount: Decimal, tolerance: float) -> tuple[Decimal, Decimal]:
    """Inclusive ``(low, high)`` amounts within ``tolerance`` of ``amount``."""

    spread = abs(amount) * Decimal(str(tolerance))
    return amount - spread, amount + spread


def compute_differences(existing: Expense, incoming: IncomingExpense) -> dict[str, object]:
    """Per-field ``{"existing", "new", "match"}`` comparison of the content fields."""

    incoming_values = incoming.field_values()
    differences: dict[str, object] = {}
    for name in CONTENT_FIELDS:
        existing_value = getattr(existing, name)
        new_value = incoming_values[name]
        differences[name] = to_json_compatible(
            {"existing": existing_value, "new": new_value, "match": existing_value == new_value}
        )
    return differences


class ConflictDetector:
    """Detect conflicts for single records, one unit of work per record."""

    def __init__(
        self,
        unit_of_work_factory: Callable[[], ConflictUnitOfWork],
        *,
        config: DetectionConfig | None = None,
        scorer: SimilarityScorer | None = None,
        session_id: int | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.unit_of_work_factory = unit_of_work_factory
        self.config = config or DetectionConfig()
        self.scorer = scorer or SimilarityScorer.from_config(self.config)
        self.session_id = session_id
        self.clock = clock
        self.failures: list[DetectionFailure] = []

    @property
    def errors(self) -> list[str]:
        return [failure.reason for failure in self.failures]

    def detect(self, record: IncomingRecord, *, position: int | None = None) -> Conflict | None:
        try:
            incoming = _as_incoming(record)
        except InvalidIncomingExpenseError as exc:
            self._fail(f"Invalid incoming expense: {exc}", record, position)
            return None

        try:
            with self.unit_of_work_factory() as uow:
                conflict = self._detect(uow, incoming)
                if conflict is not None:
                    uow.commit()
        except Exception as exc:  # noqa: BLE001
            log.exception("Conflict detection failed for account %s", incoming.account_id)
            self._fail(f"Failed to create conflict: {exc}", record, position)
            return None
        return conflict

    def detect_batch(self, records: Iterable[IncomingRecord]) -> list[Conflict]:
        return BatchDetector(self).detect_batch(records)

    def _detect(self, uow: ConflictUnitOfWork, incoming: IncomingExpense) -> Conflict | None:
        repositories = uow.repositories
        window = timedelta(days=self.config.date_window_days)
        min_amount, max_amount = amount_band(incoming.amount, self.config.amount_tolerance)
        candidates = repositories.expenses.find_candidates(
            account_id=incoming.account_id,
            around=incoming.transaction_date,
            start=incoming.transaction_date - window,
            end=incoming.transaction_date + window,
            min_amount=min_amount,
            max_amount=max_amount,
            status=ExpenseStatus.PROCESSED,
            limit=self.config.candidate_limit,
        )
        match = best_match(incoming, candidates, scorer=self.scorer)
        if match is None:
            return None
        conflict_type = classify(
            match.score,
            duplicate_threshold=self.config.duplicate_threshold,
            similar_threshold=self.config.similar_threshold,
        )
        if conflict_type is None:
            log.debug(
                "Best candidate #%s scored %.2f; no conflict", match.expense.id, match.score
            )
            return None

        existing_id = match.expense.persisted_id
        new_expense = repositories.expenses.find_by_import_hash(
            account_id=incoming.account_id,
            import_hash=incoming.import_hash,
            status=ExpenseStatus.PENDING,
        )
        if new_expense is None:
            new_expense = incoming.to_expense()
            repositories.expenses.add(new_expense)
            uow.flush()
        else:
            pending = repositories.conflicts.find_pending_for_pair(
                existing_expense_id=existing_id, new_expense_id=new_expense.persisted_id
            )
            if pending is not None:
                log.info(
                    "Record already has pending conflict #%s against expense #%s",
                    pending.id,
                    existing_id,
                )
                return pending

        conflict = Conflict(
            existing_expense_id=existing_id,
            new_expense_id=new_expense.persisted_id,
            session_id=self.session_id,
            conflict_type=conflict_type,
            similarity_score=match.score,
            differences=compute_differences(match.expense, incoming),
            conflict_data={
                "detection_method": DETECTION_METHOD,
                "algorithm_version": ALGORITHM_VERSION,
                "detected_at": self.clock().isoformat(),
                "scores": match.breakdown.as_dict(),
            },
            created_at=self.clock(),
        )
        repositories.conflicts.add(conflict)
        uow.flush()
        log.info(
            "Detected %s conflict #%s: expense #%s vs new expense #%s (score %.2f)",
            conflict_type,
            conflict.id,
            existing_id,
            new_expense.id,
            match.score,
        )
        return conflict

    def _fail(self, reason: str, record: object, position: int | None) -> None:
        log.warning("Skipping record%s: %s", "" if position is None else f" #{position}", reason)
        self.failures.append(DetectionFailure(reason=reason, record=record, position=position))


@dataclass(slots=True)
class BatchDetector:
    """Run a :class:`ConflictDetector` over many records, keeping input order."""

    detector: ConflictDetector
    failures: list[DetectionFailure] = field(default_factory=list[DetectionFailure])

    def detect_batch(self, records: Iterable[IncomingRecord]) -> list[Conflict]:
        conflicts: list[Conflict] = []
        already_failed = len(self.detector.failures)
        for position, record in enumerate(records):
            conflict = self.detector.detect(record, position=position)
            if conflict is not None:
                conflicts.append(conflict)
        self.failures.extend(self.detector.failures[already_failed:])
        log.info(
            "Batch detection finished: %d conflict(s), %d failure(s)",
            len(conflicts),
            len(self.failures),
        )
        return conflicts


def _as_incoming(record: IncomingRecord) -> IncomingExpense:
    if isinstance(record, IncomingExpense):
        return record
    if isinstance(record, Mapping):
        return IncomingExpense.from_mapping(record)
    raise InvalidIncomingExpenseError(f"Unsupported record type: {type(record).__name__}")


def summarize_failures(failures: Sequence[DetectionFailure]) -> list[dict[str, object]]:
    return [{"position": failure.position, "reason": failure.reason} for failure in failures]
