"""Resolution counter backends."""

from __future__ import annotations

import json
import logging
from collections import Counter
from typing import TYPE_CHECKING, cast

if TYPE_CHECKING:
    from pathlib import Path

log = logging.getLogger(__name__)


class InMemoryResolutionAnalytics:
    """Counters kept for the lifetime of the process."""

    def __init__(self) -> None:
        self.counts: Counter[str] = Counter()

    def increment(self, key: str, amount: int = 1) -> None:
        self.counts[key] += amount

    def get(self, key: str) -> int:
        return self.counts[key]


class JsonFileResolutionAnalytics:
    """Counters persisted to a small JSON document so they survive CLI invocations."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def increment(self, key: str, amount: int = 1) -> None:
        counts = self.read()
        counts[key] = counts.get(key, 0) + amount
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(counts, indent=2, sort_keys=True), encoding="utf-8")

    def read(self) -> dict[str, int]:
        if not self.path.exists():
            return {}
        try:
            loaded = json.loads(self.path.read_text(encoding="utf-8"))
        except json.JSONDecodeError:
            log.warning("Ignoring unreadable analytics file %s", self.path)
            return {}
        if not isinstance(loaded, dict):
            return {}
        items = cast("dict[object, object]", loaded)
        return {
            str(key): value
            for key, value in items.items()
            if isinstance(value, int) and not isinstance(value, bool)
        }
