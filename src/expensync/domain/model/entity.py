"""Base building block: store-assigned integer identity."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime


def utcnow() -> datetime:
    return datetime.now(tz=UTC)


class UnpersistedEntityError(RuntimeError):
    """Raised when an identity is required from an entity that was never flushed."""


@dataclass(eq=False, kw_only=True)
class Entity:
    """Identity is assigned by the store; ``None`` until the entity is flushed."""

    id: int | None = None

    @property
    def persisted_id(self) -> int:
        if self.id is None:
            raise UnpersistedEntityError(f"{type(self).__name__} has not been persisted yet")
        return self.id
