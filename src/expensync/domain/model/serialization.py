"""Conversion of domain values into JSON-storable structures."""

from __future__ import annotations

from collections.abc import Mapping
from datetime import date, datetime
from decimal import Decimal
from enum import Enum


def to_json_compatible(value: object) -> object:
    """Recursively convert decimals, dates and enums into JSON-friendly primitives."""

    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Mapping):
        return {str(key): to_json_compatible(item) for key, item in value.items()}  # pyright: ignore[reportUnknownVariableType]
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_json_compatible(item) for item in value]  # pyright: ignore[reportUnknownVariableType]
    return value
