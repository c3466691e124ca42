from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from expensync.domain.model import ResolutionAction
from expensync.domain.resolution import (
    Custom,
    InvalidResolutionError,
    KeepBoth,
    KeepExisting,
    KeepNew,
    Merge,
    parse_action,
    parse_resolution,
)


@pytest.mark.parametrize(
    ("action", "expected"),
    [
        ("keep_existing", KeepExisting),
        ("keep_new", KeepNew),
        ("keep_both", KeepBoth),
        ("merged", Merge),
        (ResolutionAction.CUSTOM, Custom),
    ],
)
def test_each_action_parses_to_its_own_command(action: str, expected: type) -> None:
    command = parse_resolution(action)

    assert isinstance(command, expected)
    assert command.action == ResolutionAction(action)
    assert command.resolved_by is None


@pytest.mark.parametrize("action", ["delete", "", "KEEP_EXISTING"])
def test_unknown_action_is_rejected(action: str) -> None:
    with pytest.raises(InvalidResolutionError, match=f"Invalid resolution action: {action}"):
        parse_action(action)


def test_keep_actions_keep_extra_parameters() -> None:
    command = parse_resolution(
        "keep_both", {"resolved_by": " ana ", "reason": "two coffees", "merge_fields": {}}
    )

    assert isinstance(command, KeepBoth)
    assert command.resolved_by == "ana"
    assert command.resolution_data() == {"reason": "two coffees"}


def test_merge_only_takes_known_fields_tagged_new() -> None:
    command = parse_resolution(
        "merged",
        {
            "merge_fields": {
                "description": "new",
                "merchant_name": "existing",
                "notes": "new",
                "status": "new",
                "amount": "new",
            }
        },
    )

    assert isinstance(command, Merge)
    assert set(command.fields_from_new) == {"description", "notes", "amount"}
    assert command.resolution_data()["merge_fields"] == {
        "description": "new",
        "merchant_name": "existing",
        "notes": "new",
        "status": "new",
        "amount": "new",
    }


def test_custom_payload_is_json_compatible_in_resolution_data() -> None:
    command = parse_resolution(
        "custom",
        {
            "custom_data": {
                "existing_expense": {
                    "amount": Decimal("12.50"),
                    "transaction_date": date(2024, 1, 2),
                },
            }
        },
    )

    assert isinstance(command, Custom)
    assert command.new_expense is None
    assert command.resolution_data() == {
        "existing_expense": {"amount": "12.50", "transaction_date": "2024-01-02"}
    }


@pytest.mark.parametrize(
    ("action", "options"),
    [
        ("merged", {"merge_fields": ["description"]}),
        ("merged", {"merge_fields": {"description": 1}}),
        ("custom", {"custom_data": "amount=5"}),
        ("custom", {"custom_data": {"existing_expense": ["amount"]}}),
        ("keep_existing", {"resolved_by": ""}),
        ("keep_existing", {"resolved_by": 42}),
    ],
)
def test_malformed_options_are_rejected(action: str, options: dict[str, object]) -> None:
    with pytest.raises(InvalidResolutionError):
        parse_resolution(action, options)
