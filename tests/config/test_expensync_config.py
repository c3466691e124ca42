from __future__ import annotations

from pathlib import Path

import pytest

from expensync.config import (
    ConfigurationError,
    DetectionConfig,
    ResolutionConfig,
    WeightsConfig,
    get_database_config,
    get_detection_config,
    get_resolution_config,
    get_storage_config,
)


def test_detection_config_defaults() -> None:
    config = DetectionConfig()

    assert config.duplicate_threshold == 90
    assert config.similar_threshold == 70
    assert config.date_window_days == 3
    assert config.amount_tolerance == 0.10
    assert config.weights == WeightsConfig(amount=40, merchant=30, date=20, description=10)


def test_detection_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXPENSYNC_DUPLICATE_THRESHOLD", "92.5")
    monkeypatch.setenv("EXPENSYNC_SIMILAR_THRESHOLD", "60")
    monkeypatch.setenv("EXPENSYNC_DATE_WINDOW_DAYS", "5")
    monkeypatch.setenv("EXPENSYNC_CANDIDATE_LIMIT", " ")
    monkeypatch.setenv("EXPENSYNC_AMOUNT_TOLERANCE", "0.25")

    config = get_detection_config()

    assert config.duplicate_threshold == 92.5
    assert config.similar_threshold == 60
    assert config.date_window_days == 5
    assert config.candidate_limit == DetectionConfig().candidate_limit
    assert config.amount_tolerance == 0.25


def test_detection_config_rejects_non_numeric_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXPENSYNC_DATE_WINDOW_DAYS", "three")

    with pytest.raises(ConfigurationError, match="EXPENSYNC_DATE_WINDOW_DAYS"):
        get_detection_config()


@pytest.mark.parametrize(
    "kwargs",
    [
        {"similar_threshold": 90.0, "duplicate_threshold": 90.0},
        {"duplicate_threshold": 101.0},
        {"date_window_days": -1},
        {"candidate_limit": 0},
        {"amount_tolerance": -0.01},
        {"amount_tolerance": 1.0},
        {"weights": WeightsConfig(amount=0, merchant=0, date=0, description=0)},
        {"weights": WeightsConfig(amount=-1)},
    ],
)
def test_detection_config_validation(kwargs: dict[str, object]) -> None:
    with pytest.raises(ConfigurationError):
        DetectionConfig(**kwargs)  # type: ignore[arg-type]


def test_resolution_config_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("EXPENSYNC_AUTO_RESOLVE_THRESHOLD", "97")
    monkeypatch.setenv("EXPENSYNC_AUTO_ACTOR", "robot")

    config = get_resolution_config()

    assert config.auto_resolve_threshold == 97
    assert config.auto_actor == "robot"
    assert config.manual_actor == "manual"


def test_resolution_config_must_be_stricter_than_detection() -> None:
    ResolutionConfig().check_against(90.0)

    with pytest.raises(ConfigurationError, match="Auto-resolve threshold"):
        ResolutionConfig(auto_resolve_threshold=85.0).check_against(90.0)
    with pytest.raises(ConfigurationError, match="must differ"):
        ResolutionConfig(auto_actor="manual").check_against(90.0)


def test_storage_config_uses_data_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("EXPENSYNC_DATA_DIR", str(tmp_path / "data"))

    storage = get_storage_config()

    assert storage.database_path() == (tmp_path / "data" / "expensync.db").resolve()
    assert storage.analytics_path() == (tmp_path / "data" / "analytics.json").resolve()
    assert (tmp_path / "data").is_dir()


def test_database_config_prefers_explicit_uri(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.setenv("DATABASE_URI", "postgresql+psycopg://localhost/expenses")
    assert get_database_config().uri == "postgresql+psycopg://localhost/expenses"

    monkeypatch.delenv("DATABASE_URI")
    monkeypatch.setenv("EXPENSYNC_DATA_DIR", str(tmp_path))
    assert get_database_config().uri == f"sqlite+pysqlite:///{tmp_path.resolve() / 'expensync.db'}"
