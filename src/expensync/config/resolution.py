"""Conflict resolution defaults."""

from __future__ import annotations

from dataclasses import dataclass

from .env import optional_env_float, optional_env_str
from .errors import ConfigurationError

DEFAULT_AUTO_RESOLVE_THRESHOLD = 95.0
DEFAULT_AUTO_ACTOR = "system_auto"
DEFAULT_MANUAL_ACTOR = "manual"


@dataclass(frozen=True, slots=True)
class ResolutionConfig:
    auto_resolve_threshold: float = DEFAULT_AUTO_RESOLVE_THRESHOLD
    auto_actor: str = DEFAULT_AUTO_ACTOR
    manual_actor: str = DEFAULT_MANUAL_ACTOR

    def check_against(self, duplicate_threshold: float) -> None:
        """Auto-resolution must be at least as strict as duplicate detection."""

        if not duplicate_threshold <= self.auto_resolve_threshold <= 100:  # noqa: PLR2004
            raise ConfigurationError(
                "Auto-resolve threshold must lie between the duplicate threshold and 100 "
                f"(got {self.auto_resolve_threshold}, duplicate={duplicate_threshold})"
            )
        if self.auto_actor == self.manual_actor:
            raise ConfigurationError("Automated and manual actor names must differ")


def get_resolution_config() -> ResolutionConfig:
    return ResolutionConfig(
        auto_resolve_threshold=optional_env_float(
            "EXPENSYNC_AUTO_RESOLVE_THRESHOLD", DEFAULT_AUTO_RESOLVE_THRESHOLD
        ),
        auto_actor=optional_env_str("EXPENSYNC_AUTO_ACTOR", DEFAULT_AUTO_ACTOR),
        manual_actor=optional_env_str("EXPENSYNC_MANUAL_ACTOR", DEFAULT_MANUAL_ACTOR),
    )
