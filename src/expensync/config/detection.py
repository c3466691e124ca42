"""Conflict detection defaults and environment overrides."""

from __future__ import annotations

from dataclasses import dataclass, field

from .env import optional_env_float, optional_env_int
from .errors import ConfigurationError

DEFAULT_DUPLICATE_THRESHOLD = 90.0
DEFAULT_SIMILAR_THRESHOLD = 70.0
DEFAULT_DATE_WINDOW_DAYS = 3
DEFAULT_CANDIDATE_LIMIT = 20
DEFAULT_AMOUNT_TOLERANCE = 0.10


@dataclass(frozen=True, slots=True)
class WeightsConfig:
    amount: float = 40.0
    merchant: float = 30.0
    date: float = 20.0
    description: float = 10.0


@dataclass(frozen=True, slots=True)
class DetectionConfig:
    duplicate_threshold: float = DEFAULT_DUPLICATE_THRESHOLD
    similar_threshold: float = DEFAULT_SIMILAR_THRESHOLD
    date_window_days: int = DEFAULT_DATE_WINDOW_DAYS
    candidate_limit: int = DEFAULT_CANDIDATE_LIMIT
    amount_tolerance: float = DEFAULT_AMOUNT_TOLERANCE
    weights: WeightsConfig = field(default_factory=WeightsConfig)

    def __post_init__(self) -> None:
        if not 0 <= self.similar_threshold < self.duplicate_threshold <= 100:  # noqa: PLR2004
            raise ConfigurationError(
                "Thresholds must satisfy 0 <= similar < duplicate <= 100 "
                f"(got similar={self.similar_threshold}, duplicate={self.duplicate_threshold})"
            )
        if self.date_window_days < 0:
            raise ConfigurationError("Date window must be non-negative")
        if self.candidate_limit < 1:
            raise ConfigurationError("Candidate limit must be at least 1")
        if not 0 <= self.amount_tolerance < 1:
            raise ConfigurationError("Amount tolerance must satisfy 0 <= tolerance < 1")
        weights = self.weights
        if min(weights.amount, weights.merchant, weights.date, weights.description) < 0:
            raise ConfigurationError("Scoring weights must be non-negative")
        if weights.amount + weights.merchant + weights.date + weights.description <= 0:
            raise ConfigurationError("Scoring weights must not all be zero")


def get_detection_config() -> DetectionConfig:
    return DetectionConfig(
        duplicate_threshold=optional_env_float(
            "EXPENSYNC_DUPLICATE_THRESHOLD", DEFAULT_DUPLICATE_THRESHOLD
        ),
        similar_threshold=optional_env_float(
            "EXPENSYNC_SIMILAR_THRESHOLD", DEFAULT_SIMILAR_THRESHOLD
        ),
        date_window_days=optional_env_int("EXPENSYNC_DATE_WINDOW_DAYS", DEFAULT_DATE_WINDOW_DAYS),
        candidate_limit=optional_env_int("EXPENSYNC_CANDIDATE_LIMIT", DEFAULT_CANDIDATE_LIMIT),
        amount_tolerance=optional_env_float(
            "EXPENSYNC_AMOUNT_TOLERANCE", DEFAULT_AMOUNT_TOLERANCE
        ),
    )
