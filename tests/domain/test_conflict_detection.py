from __future__ import annotations

from datetime import timedelta
from decimal import Decimal
from typing import TYPE_CHECKING, Never

import pytest

from expensync.config import DetectionConfig, WeightsConfig
from expensync.domain.detection import (
    ALGORITHM_VERSION,
    BatchDetector,
    ConflictDetector,
    amount_band,
    best_match,
    summarize_failures,
)
from expensync.domain.model import ConflictStatus, ConflictType, ExpenseStatus
from expensync.domain.similarity import SimilarityScorer
from tests.helpers.expenses import (
    DEFAULT_DATE,
    load_expense,
    make_expense,
    make_incoming,
    seed_expenses,
)

if TYPE_CHECKING:
    from collections.abc import Callable

    from expensync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork


def _pending_conflicts(uow_factory: Callable[[], SqlAlchemyUnitOfWork]) -> list[int]:
    with uow_factory() as uow:
        return [
            conflict.persisted_id
            for conflict in uow.repositories.conflicts.find(status=ConflictStatus.PENDING)
        ]


def test_best_match_prefers_closest_date_then_lowest_id() -> None:
    scorer = SimilarityScorer(WeightsConfig(date=0))
    incoming = make_incoming()
    far = make_expense(transaction_date=DEFAULT_DATE + timedelta(days=2))
    far.id = 1
    near_high_id = make_expense(transaction_date=DEFAULT_DATE - timedelta(days=1))
    near_high_id.id = 9
    near_low_id = make_expense(transaction_date=DEFAULT_DATE + timedelta(days=1))
    near_low_id.id = 4

    match = best_match(incoming, [far, near_high_id, near_low_id], scorer=scorer)

    assert match is not None
    assert match.expense is near_low_id
    assert match.score == 100


def test_best_match_without_candidates() -> None:
    assert best_match(make_incoming(), [], scorer=SimilarityScorer()) is None


@pytest.mark.integration
def test_detect_creates_duplicate_conflict(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    (existing_id,) = seed_expenses(sqlite_unit_of_work, make_expense())
    detector = ConflictDetector(sqlite_unit_of_work)

    conflict = detector.detect(make_incoming(description="Compra super"))

    assert conflict is not None
    assert conflict.conflict_type is ConflictType.DUPLICATE
    assert conflict.status is ConflictStatus.PENDING
    assert conflict.existing_expense_id == existing_id
    assert conflict.similarity_score == 96.32
    assert conflict.differences["description"] == {
        "existing": "Compra supermercado",
        "new": "Compra super",
        "match": False,
    }
    assert conflict.differences["amount"] == {
        "existing": "15000.00",
        "new": "15000.00",
        "match": True,
    }
    assert conflict.conflict_data["algorithm_version"] == ALGORITHM_VERSION
    assert conflict.conflict_data["scores"]["description"] == 63.16  # type: ignore[index]

    new_expense = load_expense(sqlite_unit_of_work, conflict.new_expense_id)
    assert new_expense.status is ExpenseStatus.PENDING
    assert new_expense.description == "Compra super"
    assert new_expense.import_hash is not None


@pytest.mark.integration
def test_detect_classifies_similar_matches(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    seed_expenses(sqlite_unit_of_work, make_expense())

    conflict = ConflictDetector(sqlite_unit_of_work).detect(make_incoming(amount="15500.00"))

    assert conflict is not None
    assert conflict.conflict_type is ConflictType.SIMILAR
    assert conflict.similarity_score == 88


@pytest.mark.integration
@pytest.mark.parametrize(
    "existing_kwargs",
    [
        {"account_id": 2},
        {"status": ExpenseStatus.DUPLICATE},
        {"status": ExpenseStatus.PENDING},
        {"transaction_date": DEFAULT_DATE - timedelta(days=4)},
        {"amount": "2500.00", "merchant_name": "Uber", "description": "Viaje"},
    ],
)
def test_detect_ignores_out_of_scope_or_unrelated_expenses(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
    existing_kwargs: dict[str, object],
) -> None:
    seed_expenses(sqlite_unit_of_work, make_expense(**existing_kwargs))  # type: ignore[arg-type]
    detector = ConflictDetector(sqlite_unit_of_work)

    assert detector.detect(make_incoming()) is None
    assert detector.failures == []
    with sqlite_unit_of_work() as uow:
        stored = uow.repositories.expenses.find_by_import_hash(
            account_id=1, import_hash=make_incoming().import_hash
        )
    assert stored is None


@pytest.mark.integration
def test_detect_honours_configured_window(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    seed_expenses(
        sqlite_unit_of_work, make_expense(transaction_date=DEFAULT_DATE - timedelta(days=1))
    )
    detector = ConflictDetector(sqlite_unit_of_work, config=DetectionConfig(date_window_days=0))

    assert detector.detect(make_incoming()) is None


@pytest.mark.integration
def test_repeated_detection_reuses_the_pending_conflict(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    seed_expenses(sqlite_unit_of_work, make_expense())
    detector = ConflictDetector(sqlite_unit_of_work)

    first = detector.detect(make_incoming())
    second = detector.detect(make_incoming())

    assert first is not None
    assert second is not None
    assert second.id == first.id
    assert second.new_expense_id == first.new_expense_id
    assert _pending_conflicts(sqlite_unit_of_work) == [first.id]


@pytest.mark.integration
def test_detection_picks_the_lowest_id_among_equal_candidates(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    first_id, _ = seed_expenses(sqlite_unit_of_work, make_expense(), make_expense())

    conflict = ConflictDetector(sqlite_unit_of_work).detect(make_incoming())

    assert conflict is not None
    assert conflict.existing_expense_id == first_id


@pytest.mark.integration
def test_exact_match_is_found_in_a_crowded_window(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    limit = DetectionConfig().candidate_limit
    three_days_before = DEFAULT_DATE - timedelta(days=3)
    cheap_same_day = [
        make_expense(amount=f"{500 + index}.00", merchant_name=f"Soda {index}")
        for index in range(limit)
    ]
    close_amount_days_before = [
        make_expense(
            amount=f"{14500 + index}.00",
            transaction_date=three_days_before,
            merchant_name=f"Soda {index}",
            description="Almuerzo",
        )
        for index in range(limit)
    ]
    *_, exact_id = seed_expenses(
        sqlite_unit_of_work, *cheap_same_day, *close_amount_days_before, make_expense()
    )

    conflict = ConflictDetector(sqlite_unit_of_work).detect(make_incoming())

    assert conflict is not None
    assert conflict.conflict_type is ConflictType.DUPLICATE
    assert conflict.existing_expense_id == exact_id
    assert conflict.similarity_score == 100


@pytest.mark.parametrize(
    ("amount", "tolerance", "expected"),
    [
        ("15000.00", 0.10, ("13500.00", "16500.00")),
        ("-200.00", 0.10, ("-220.00", "-180.00")),
        ("80.00", 0.0, ("80.00", "80.00")),
    ],
)
def test_amount_band(amount: str, tolerance: float, expected: tuple[str, str]) -> None:
    low, high = amount_band(Decimal(amount), tolerance)

    assert (low, high) == (Decimal(expected[0]), Decimal(expected[1]))


@pytest.mark.integration
def test_batch_skips_malformed_records_and_keeps_order(
    sqlite_unit_of_work: Callable[[], SqlAlchemyUnitOfWork],
) -> None:
    seed_expenses(
        sqlite_unit_of_work,
        make_expense(),
        make_expense(amount="2500.00", merchant_name="Uber", description="Viaje"),
    )
    detector = ConflictDetector(sqlite_unit_of_work, session_id=None)
    batch = BatchDetector(detector)

    conflicts = batch.detect_batch(
        [
            make_incoming(amount="2500.00", merchant_name="Uber", description="Viaje"),
            {"account_id": 1, "transaction_date": "2024-03-10"},
            {"account_id": 1, "amount": "9999", "transaction_date": "2024-03-10"},
            {
                "account_id": 1,
                "amount": "15000",
                "transaction_date": "2024-03-10",
                "merchant_name": "Automercado Escazu",
                "description": "Compra supermercado",
            },
        ]
    )

    assert [conflict.similarity_score for conflict in conflicts] == [100, 100]
    assert load_expense(sqlite_unit_of_work, conflicts[0].new_expense_id).merchant_name == "Uber"
    assert summarize_failures(batch.failures) == [
        {"position": 1, "reason": "Invalid incoming expense: Missing field(s): amount"}
    ]
    assert detector.errors == ["Invalid incoming expense: Missing field(s): amount"]


def test_store_failures_are_reported_not_raised() -> None:
    def broken_factory() -> Never:
        raise RuntimeError("database is locked")

    detector = ConflictDetector(broken_factory)

    assert detector.detect(make_incoming(), position=3) is None
    assert detector.failures[0].position == 3
    assert detector.errors == ["Failed to create conflict: database is locked"]
