"""Local storage locations: the SQLite database and the resolution counter file.

``EXPENSYNC_DATA_DIR`` moves both files; ``DATABASE_URI`` points the adapter at any other
SQLAlchemy-supported database while the counter file stays in the data directory.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Final

from .env import optional_env_str

APP_DIR_NAME: Final[str] = "expensync"
DEFAULT_DB_FILENAME: Final[str] = "expensync.db"
DEFAULT_ANALYTICS_FILENAME: Final[str] = "analytics.json"


@dataclass(frozen=True, slots=True)
class StorageConfig:
    data_dir: Path
    database_filename: str = DEFAULT_DB_FILENAME
    analytics_filename: str = DEFAULT_ANALYTICS_FILENAME

    def file_path(self, filename: str, *, create_dir: bool = True) -> Path:
        directory = self.data_dir.expanduser().resolve()
        if create_dir:
            directory.mkdir(parents=True, exist_ok=True)
        return directory / filename

    def database_path(self, *, create_dir: bool = True) -> Path:
        return self.file_path(self.database_filename, create_dir=create_dir)

    def analytics_path(self, *, create_dir: bool = True) -> Path:
        return self.file_path(self.analytics_filename, create_dir=create_dir)

    def sqlite_uri(self) -> str:
        return f"sqlite+pysqlite:///{self.database_path()}"


@dataclass(frozen=True, slots=True)
class DatabaseConfig:
    uri: str


def _platform_data_home() -> Path:
    if sys.platform == "win32":
        local_app_data = os.getenv("LOCALAPPDATA")
        return Path(local_app_data) if local_app_data else Path.home() / "AppData" / "Local"
    xdg_data_home = os.getenv("XDG_DATA_HOME")
    return Path(xdg_data_home) if xdg_data_home else Path.home() / ".local" / "share"


def get_storage_config() -> StorageConfig:
    configured = optional_env_str("EXPENSYNC_DATA_DIR", "")
    data_dir = Path(configured) if configured else _platform_data_home() / APP_DIR_NAME
    return StorageConfig(data_dir=data_dir)


def get_database_config(*, storage: StorageConfig | None = None) -> DatabaseConfig:
    uri = optional_env_str("DATABASE_URI", "")
    if uri:
        return DatabaseConfig(uri=uri)
    return DatabaseConfig(uri=(storage or get_storage_config()).sqlite_uri())
