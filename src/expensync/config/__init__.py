"""Application configuration helpers."""

from __future__ import annotations

from .detection import DetectionConfig, WeightsConfig, get_detection_config
from .errors import ConfigurationError
from .logging import configure_logging
from .resolution import ResolutionConfig, get_resolution_config
from .storage import DatabaseConfig, StorageConfig, get_database_config, get_storage_config

__all__ = [
    "ConfigurationError",
    "DatabaseConfig",
    "DetectionConfig",
    "ResolutionConfig",
    "StorageConfig",
    "WeightsConfig",
    "configure_logging",
    "get_database_config",
    "get_detection_config",
    "get_resolution_config",
    "get_storage_config",
]
