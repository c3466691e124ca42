# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from signal import SIGINT, signal
from typing import TYPE_CHECKING, cast

from dotenv import load_dotenv

from expensync.adapters.ingestion import read_batch
from expensync.app import (
    auto_resolve_conflicts,
    bulk_resolve_conflicts,
    conflict_statistics,
    default_analytics,
    get_conflict_details,
    ignore_conflict,
    import_batch_file,
    list_conflicts,
    preview_merge,
    resolve_conflict,
    store_expenses,
    undo_resolution,
)
from expensync.config import configure_logging
from expensync.domain.detection import summarize_failures
from expensync.domain.model import (
    ConflictStatus,
    ConflictType,
    ResolutionAction,
    to_json_compatible,
)
from expensync.domain.resolution import MERGE_SOURCE_NEW

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from expensync.app import ResolutionOutcome
    from expensync.domain.model import Conflict

log = logging.getLogger(__name__)


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Detect and resolve duplicate expenses")
    subparsers = parser.add_subparsers(dest="command", required=True)

    add = subparsers.add_parser(
        "add-expenses",
        help="Store already-accepted expenses from a batch file",
    )
    add.add_argument("path", type=Path, help="JSON or JSON-lines batch file")

    detect = subparsers.add_parser("detect", help="Detect conflicts for a batch file")
    detect.add_argument("path", type=Path, help="JSON or JSON-lines batch file")
    detect.add_argument(
        "--auto-resolve",
        action="store_true",
        help="Resolve obvious duplicates of this batch right after detection",
    )

    listing = subparsers.add_parser("list", help="List conflicts, highest priority first")
    listing.add_argument(
        "--status",
        choices=[status.value for status in ConflictStatus],
        help="Only conflicts with this status",
    )
    listing.add_argument(
        "--type",
        dest="conflict_type",
        choices=[conflict_type.value for conflict_type in ConflictType],
        help="Only conflicts of this type",
    )
    listing.add_argument("--session-id", type=int, help="Only conflicts of this sync session")
    listing.add_argument("--limit", type=int, help="Maximum number of conflicts to show")

    show = subparsers.add_parser("show", help="Show a conflict with its expenses and history")
    show.add_argument("conflict_id", type=int)

    resolve = subparsers.add_parser("resolve", help="Resolve one conflict")
    resolve.add_argument("conflict_id", type=int)
    _add_resolution_arguments(resolve)

    bulk = subparsers.add_parser("bulk-resolve", help="Resolve many conflicts with one action")
    bulk.add_argument("conflict_ids", type=int, nargs="+")
    _add_resolution_arguments(bulk)

    undo = subparsers.add_parser("undo", help="Return a resolved conflict to pending")
    undo.add_argument("conflict_id", type=int)
    undo.add_argument("--undone-by", type=str, help="Actor recorded for the undo")

    ignore = subparsers.add_parser("ignore", help="Dismiss a pending conflict")
    ignore.add_argument("conflict_id", type=int)

    auto = subparsers.add_parser("auto-resolve", help="Resolve obvious duplicates")
    auto.add_argument("--session-id", type=int, help="Restrict to one sync session")

    preview = subparsers.add_parser(
        "preview-merge",
        help="Show what a merge would do without applying it",
    )
    preview.add_argument("conflict_id", type=int)
    preview.add_argument(
        "--merge-field",
        action="append",
        default=[],
        metavar="FIELD",
        help="Field to take from the new expense (repeatable)",
    )

    stats = subparsers.add_parser("stats", help="Conflict counts and resolution counters")
    stats.add_argument("--session-id", type=int, help="Restrict counts to one sync session")

    return parser.parse_args(list(argv))


def _add_resolution_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "action",
        type=str,
        help=f"One of: {', '.join(action.value for action in ResolutionAction)}",
    )
    parser.add_argument(
        "--merge-field",
        action="append",
        default=[],
        metavar="FIELD",
        help="Field to take from the new expense when merging (repeatable)",
    )
    parser.add_argument(
        "--custom-json",
        type=str,
        help='Custom attributes, e.g. \'{"existing_expense": {"amount": "12.50"}}\'',
    )
    parser.add_argument("--resolved-by", type=str, help="Actor recorded on the conflict")


def _parse_custom_json(value: str) -> dict[str, object]:
    try:
        loaded = json.loads(value)
    except json.JSONDecodeError as exc:
        raise ValueError(f"Invalid --custom-json: {exc}") from exc
    if not isinstance(loaded, dict):
        raise ValueError("--custom-json must be a JSON object")  # noqa: TRY004
    return cast("dict[str, object]", loaded)


def _merge_fields(fields: Sequence[str]) -> dict[str, object]:
    return dict.fromkeys(fields, MERGE_SOURCE_NEW)


def _resolution_options(args: argparse.Namespace) -> dict[str, object]:
    options: dict[str, object] = {}
    if args.resolved_by:
        options["resolved_by"] = args.resolved_by
    if args.merge_field:
        options["merge_fields"] = _merge_fields(args.merge_field)
    if args.custom_json:
        options["custom_data"] = _parse_custom_json(args.custom_json)
    return options


def _conflict_payload(conflict: Conflict | None) -> dict[str, object] | None:
    if conflict is None:
        return None
    return cast(
        "dict[str, object]",
        to_json_compatible(
            {
                "id": conflict.id,
                "existing_expense_id": conflict.existing_expense_id,
                "new_expense_id": conflict.new_expense_id,
                "session_id": conflict.session_id,
                "conflict_type": conflict.conflict_type,
                "similarity_score": conflict.formatted_similarity_score,
                "priority": conflict.priority,
                "status": conflict.status,
                "resolution_action": conflict.resolution_action,
                "resolution_data": conflict.resolution_data,
                "resolved_by": conflict.resolved_by,
                "resolved_at": conflict.resolved_at,
                "differences": conflict.differences,
                "created_at": conflict.created_at,
            }
        ),
    )


def _outcome_payload(outcome: ResolutionOutcome) -> dict[str, object]:
    return {
        "success": outcome.success,
        "errors": outcome.errors,
        "conflict": _conflict_payload(outcome.conflict),
    }


def _emit(payload: object) -> None:
    print(json.dumps(to_json_compatible(payload), indent=2))


def _run(args: argparse.Namespace) -> bool:  # noqa: C901, PLR0911, PLR0912
    """Dispatch one command; ``False`` means the command ran but did not succeed."""

    if args.command == "add-expenses":
        batch = read_batch(args.path)
        stored = store_expenses(batch.records)
        _emit(
            {
                "stored": [expense.id for expense in stored],
                "rejected": [
                    {"position": item.position, "reason": item.reason} for item in batch.rejected
                ],
            }
        )
        return True

    if args.command == "detect":
        report = import_batch_file(
            args.path,
            auto_resolve=args.auto_resolve,
            analytics=default_analytics(),
        )
        _emit(
            {
                "session_id": report.session_id,
                "conflicts": [_conflict_payload(conflict) for conflict in report.conflicts],
                "failures": summarize_failures(report.failures),
                "rejected": [
                    {"position": item.position, "reason": item.reason} for item in report.rejected
                ],
                "auto_resolved": report.auto_resolved,
            }
        )
        return True

    if args.command == "list":
        conflicts = list_conflicts(
            status=ConflictStatus(args.status) if args.status else None,
            conflict_type=ConflictType(args.conflict_type) if args.conflict_type else None,
            session_id=args.session_id,
            limit=args.limit,
        )
        _emit([_conflict_payload(conflict) for conflict in conflicts])
        return True

    if args.command == "show":
        details = get_conflict_details(args.conflict_id)
        if details is None:
            log.error("Conflict #%s not found", args.conflict_id)
            return False
        _emit(
            {
                "conflict": _conflict_payload(details.conflict),
                "existing_expense": (
                    details.existing_expense.attributes() if details.existing_expense else None
                ),
                "new_expense": details.new_expense.attributes() if details.new_expense else None,
                "history": [
                    {
                        "id": record.id,
                        "action": record.action,
                        "resolved_by": record.resolved_by,
                        "resolution_method": record.resolution_method,
                        "changes_made": record.changes_made,
                        "undone": record.undone,
                        "created_at": record.created_at,
                    }
                    for record in details.history
                ],
            }
        )
        return True

    if args.command == "resolve":
        outcome = resolve_conflict(
            args.conflict_id,
            args.action,
            _resolution_options(args),
            analytics=default_analytics(),
        )
        _emit(_outcome_payload(outcome))
        return outcome.success

    if args.command == "bulk-resolve":
        result = bulk_resolve_conflicts(
            args.conflict_ids,
            args.action,
            _resolution_options(args),
            analytics=default_analytics(),
        )
        _emit(result.as_dict())
        return result.failed_count == 0

    if args.command == "undo":
        outcome = undo_resolution(
            args.conflict_id,
            undone_by=args.undone_by,
            analytics=default_analytics(),
        )
        _emit(_outcome_payload(outcome))
        return outcome.success

    if args.command == "ignore":
        outcome = ignore_conflict(args.conflict_id)
        _emit(_outcome_payload(outcome))
        return outcome.success

    if args.command == "auto-resolve":
        resolved = auto_resolve_conflicts(session_id=args.session_id, analytics=default_analytics())
        _emit({"resolved_count": resolved})
        return True

    if args.command == "preview-merge":
        preview = preview_merge(args.conflict_id, _merge_fields(args.merge_field))
        if preview is None:
            log.error("Conflict #%s has nothing to merge", args.conflict_id)
            return False
        _emit({"preview": preview.attributes, "changes": preview.changes})
        return True

    if args.command == "stats":
        stats = conflict_statistics(session_id=args.session_id, analytics=default_analytics())
        _emit({"by_status": stats.by_status, "by_type": stats.by_type, "counters": stats.counters})
        return True

    raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    configure_logging()
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    try:
        parsed_args = _parse_args(args_list)
        if getattr(parsed_args, "custom_json", None):
            _parse_custom_json(parsed_args.custom_json)
    except ValueError:
        log.exception("CLI validation error")
        sys.exit(2)

    try:
        succeeded = _run(parsed_args)
    except Exception:
        log.exception("Fatal error")
        sys.exit(1)
    if not succeeded:
        sys.exit(1)


def sigint_handler(_signal_received: int, _frame: FrameType | None) -> None:
    """Handle SIGINT (Ctrl+C) gracefully."""
    log.info("Closed by user (Ctrl+C)")
    sys.exit(0)


def run() -> None:
    load_dotenv()
    signal(SIGINT, sigint_handler)
    main()


if __name__ == "__main__":
    run()
