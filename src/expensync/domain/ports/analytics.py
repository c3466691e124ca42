"""Port for fire-and-forget resolution counters."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class ResolutionAnalytics(Protocol):
    def increment(self, key: str, amount: int = 1) -> None: ...


class NullResolutionAnalytics:
    """Discards every counter."""

    def increment(self, key: str, amount: int = 1) -> None:
        _ = (key, amount)
