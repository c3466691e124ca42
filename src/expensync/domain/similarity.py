"""Similarity scoring between a stored expense and an incoming record.

The score is a weighted average of four sub-scores, each within [0, 100]:

- amount: tiered by the relative difference; zero across currencies
- merchant name: :func:`string_similarity` of the lowercased names
- transaction date: tiered by days apart
- description: :func:`string_similarity` of the lowercased text

No persistence or I/O happens here.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Final

from rapidfuzz.distance import Levenshtein

from expensync.config.detection import (
    DEFAULT_DUPLICATE_THRESHOLD,
    DEFAULT_SIMILAR_THRESHOLD,
    DetectionConfig,
    WeightsConfig,
)
from expensync.domain.model import ConflictType

if TYPE_CHECKING:
    from datetime import date
    from decimal import Decimal

    from expensync.domain.model import Expense, IncomingExpense

# (upper bound of relative difference, sub-score), checked in order
AMOUNT_TIERS: Final[tuple[tuple[float, float], ...]] = (
    (0.01, 90.0),
    (0.05, 70.0),
    (0.10, 50.0),
)
DATE_SCORES: Final[dict[int, float]] = {0: 100.0, 1: 80.0, 2: 60.0, 3: 40.0}


def string_similarity(first: str, second: str) -> float:
    """Edit-distance similarity in [0, 100].

    Identical strings score 100 (even two empty ones); otherwise an empty side scores 0.
    """

    if first == second:
        return 100.0
    if not first or not second:
        return 0.0
    longer = max(len(first), len(second))
    distance = Levenshtein.distance(first, second)
    return round((longer - distance) * 100.0 / longer, 2)


def amount_similarity(
    existing: Decimal, incoming: Decimal, *, same_currency: bool = True
) -> float:
    if not same_currency:
        return 0.0
    if existing == incoming:
        return 100.0
    base = max(abs(existing), abs(incoming))
    ratio = float(abs(existing - incoming) / base)
    for upper_bound, tier_score in AMOUNT_TIERS:
        if ratio <= upper_bound:
            return tier_score
    return 0.0


def date_similarity(existing: date, incoming: date) -> float:
    return DATE_SCORES.get(abs((existing - incoming).days), 0.0)


def _text(value: str | None) -> str:
    return (value or "").strip().lower()


@dataclass(frozen=True, slots=True)
class ScoreBreakdown:
    amount: float
    merchant: float
    date: float
    description: float
    total: float

    def as_dict(self) -> dict[str, float]:
        return {
            "amount": self.amount,
            "merchant": self.merchant,
            "date": self.date,
            "description": self.description,
            "total": self.total,
        }


@dataclass(frozen=True, slots=True)
class SimilarityScorer:
    weights: WeightsConfig = field(default_factory=WeightsConfig)

    @classmethod
    def from_config(cls, config: DetectionConfig) -> SimilarityScorer:
        return cls(weights=config.weights)

    def score(self, existing: Expense, incoming: IncomingExpense) -> float:
        return self.breakdown(existing, incoming).total

    def breakdown(self, existing: Expense, incoming: IncomingExpense) -> ScoreBreakdown:
        amount = amount_similarity(
            existing.amount,
            incoming.amount,
            same_currency=existing.currency == incoming.currency,
        )
        merchant = string_similarity(_text(existing.merchant_name), _text(incoming.merchant_name))
        day = date_similarity(existing.transaction_date, incoming.transaction_date)
        description = string_similarity(_text(existing.description), _text(incoming.description))

        weights = self.weights
        weight_total = weights.amount + weights.merchant + weights.date + weights.description
        weighted = (
            amount * weights.amount
            + merchant * weights.merchant
            + day * weights.date
            + description * weights.description
        )
        total = min(100.0, max(0.0, round(weighted / weight_total, 2)))
        return ScoreBreakdown(
            amount=amount, merchant=merchant, date=day, description=description, total=total
        )


def classify(
    score: float,
    *,
    duplicate_threshold: float = DEFAULT_DUPLICATE_THRESHOLD,
    similar_threshold: float = DEFAULT_SIMILAR_THRESHOLD,
) -> ConflictType | None:
    """Map a score onto a conflict type; ``None`` means the records are unrelated."""

    if score >= duplicate_threshold:
        return ConflictType.DUPLICATE
    if score >= similar_threshold:
        return ConflictType.SIMILAR
    return None
