"""Ingestion runs that conflicts are attributed to."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .entity import Entity, utcnow

if TYPE_CHECKING:
    from datetime import datetime


@dataclass(eq=False, kw_only=True)
class SyncSession(Entity):
    source: str | None = None
    started_at: datetime = field(default_factory=utcnow)
