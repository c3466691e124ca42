"""Resolution commands, one variant per action.

Callers speak in ``(action, options)`` pairs; :func:`parse_resolution` turns those into
a typed command carrying only what its action needs. Recognised option keys:

``resolved_by``
    actor recorded on the conflict (defaults to the configured manual actor)
``merge_fields``
    ``{field: source}`` for ``merged``; fields whose source is ``"new"`` are copied
``custom_data``
    ``{"existing_expense": {...}, "new_expense": {...}}`` for ``custom``; either side optional

Any other option is kept as-is in the conflict's ``resolution_data`` for the keep actions.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Final, Literal, cast

from expensync.domain.model import MERGEABLE_FIELDS, ResolutionAction, to_json_compatible

MERGE_SOURCE_NEW: Final[str] = "new"


class InvalidResolutionError(ValueError):
    """Raised when an action name or its options cannot be interpreted."""


def _empty_parameters() -> dict[str, object]:
    return {}


@dataclass(frozen=True, slots=True, kw_only=True)
class KeepExisting:
    """Mark the new expense as a duplicate of the existing one."""

    resolved_by: str | None = None
    parameters: dict[str, object] = field(default_factory=_empty_parameters)
    action: Literal[ResolutionAction.KEEP_EXISTING] = ResolutionAction.KEEP_EXISTING

    def resolution_data(self) -> dict[str, object]:
        return dict(self.parameters)


@dataclass(frozen=True, slots=True, kw_only=True)
class KeepNew:
    """Mark the existing expense as a duplicate and promote the new one."""

    resolved_by: str | None = None
    parameters: dict[str, object] = field(default_factory=_empty_parameters)
    action: Literal[ResolutionAction.KEEP_NEW] = ResolutionAction.KEEP_NEW

    def resolution_data(self) -> dict[str, object]:
        return dict(self.parameters)


@dataclass(frozen=True, slots=True, kw_only=True)
class KeepBoth:
    """Treat both expenses as distinct transactions."""

    resolved_by: str | None = None
    parameters: dict[str, object] = field(default_factory=_empty_parameters)
    action: Literal[ResolutionAction.KEEP_BOTH] = ResolutionAction.KEEP_BOTH

    def resolution_data(self) -> dict[str, object]:
        return dict(self.parameters)


@dataclass(frozen=True, slots=True, kw_only=True)
class Merge:
    """Copy the ``"new"``-tagged fields onto the existing expense."""

    merge_fields: dict[str, str] = field(default_factory=dict[str, str])
    resolved_by: str | None = None
    parameters: dict[str, object] = field(default_factory=_empty_parameters)
    action: Literal[ResolutionAction.MERGED] = ResolutionAction.MERGED

    @property
    def fields_from_new(self) -> tuple[str, ...]:
        """Mergeable fields taken from the new expense, unknown names dropped."""

        return tuple(
            name
            for name, source in self.merge_fields.items()
            if source == MERGE_SOURCE_NEW and name in MERGEABLE_FIELDS
        )

    def resolution_data(self) -> dict[str, object]:
        return {**self.parameters, "merge_fields": dict(self.merge_fields)}


@dataclass(frozen=True, slots=True, kw_only=True)
class Custom:
    """Apply caller-supplied attribute maps to either expense."""

    existing_expense: dict[str, object] | None = None
    new_expense: dict[str, object] | None = None
    resolved_by: str | None = None
    action: Literal[ResolutionAction.CUSTOM] = ResolutionAction.CUSTOM

    def resolution_data(self) -> dict[str, object]:
        payload: dict[str, object] = {}
        if self.existing_expense is not None:
            payload["existing_expense"] = self.existing_expense
        if self.new_expense is not None:
            payload["new_expense"] = self.new_expense
        return cast("dict[str, object]", to_json_compatible(payload))


type Resolution = KeepExisting | KeepNew | KeepBoth | Merge | Custom


def parse_action(action: str | ResolutionAction) -> ResolutionAction:
    try:
        return ResolutionAction(action)
    except ValueError as exc:
        raise InvalidResolutionError(f"Invalid resolution action: {action}") from exc


def parse_resolution(
    action: str | ResolutionAction,
    options: Mapping[str, object] | None = None,
) -> Resolution:
    kind = parse_action(action)
    remaining = dict(options or {})
    resolved_by = _resolved_by(remaining.pop("resolved_by", None))

    if kind is ResolutionAction.KEEP_EXISTING:
        return KeepExisting(resolved_by=resolved_by, parameters=_parameters(remaining))
    if kind is ResolutionAction.KEEP_NEW:
        return KeepNew(resolved_by=resolved_by, parameters=_parameters(remaining))
    if kind is ResolutionAction.KEEP_BOTH:
        return KeepBoth(resolved_by=resolved_by, parameters=_parameters(remaining))
    if kind is ResolutionAction.MERGED:
        merge_fields = _merge_fields(remaining.pop("merge_fields", None))
        return Merge(
            merge_fields=merge_fields,
            resolved_by=resolved_by,
            parameters=_parameters(remaining),
        )
    custom_data = _mapping_or_none(remaining.pop("custom_data", None), "custom_data")
    if custom_data is None:
        return Custom(resolved_by=resolved_by)
    return Custom(
        existing_expense=_mapping_or_none(
            custom_data.get("existing_expense"), "custom_data.existing_expense"
        ),
        new_expense=_mapping_or_none(custom_data.get("new_expense"), "custom_data.new_expense"),
        resolved_by=resolved_by,
    )


def merge_command(merge_fields: Mapping[str, object] | None) -> Merge:
    return Merge(merge_fields=_merge_fields(merge_fields))


def _resolved_by(value: object) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str) or not value.strip():
        raise InvalidResolutionError(f"resolved_by must be a non-empty string, got {value!r}")
    return value.strip()


def _parameters(options: dict[str, object]) -> dict[str, object]:
    options.pop("merge_fields", None)
    options.pop("custom_data", None)
    return cast("dict[str, object]", to_json_compatible(options))


def _merge_fields(value: object) -> dict[str, str]:
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise InvalidResolutionError(f"merge_fields must be a mapping, got {value!r}")
    merge_fields: dict[str, str] = {}
    for name, source in cast("Mapping[object, object]", value).items():
        if not isinstance(name, str) or not isinstance(source, str):
            raise InvalidResolutionError(f"Invalid merge field entry: {name!r} -> {source!r}")
        merge_fields[name] = source
    return merge_fields


def _mapping_or_none(value: object, label: str) -> dict[str, object] | None:
    if value is None:
        return None
    if not isinstance(value, Mapping):
        raise InvalidResolutionError(f"{label} must be a mapping, got {value!r}")
    items = cast("Mapping[object, object]", value)
    if not all(isinstance(key, str) for key in items):
        raise InvalidResolutionError(f"{label} keys must be attribute names")
    return {str(key): item for key, item in items.items()}
