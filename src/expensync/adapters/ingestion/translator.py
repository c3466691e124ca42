"""Translate import-pipeline payloads into domain incoming expenses."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from pydantic import ValidationError

from expensync.domain.model import IncomingExpense, InvalidIncomingExpenseError

from .schema import IncomingBatchDocument, IncomingExpensePayload

if TYPE_CHECKING:
    from pathlib import Path

log = logging.getLogger(__name__)


class BatchFormatError(ValueError):
    """Raised when a document is neither a record list nor a batch object."""


@dataclass(frozen=True, slots=True)
class RejectedRecord:
    position: int
    reason: str
    payload: object


@dataclass(slots=True)
class TranslatedBatch:
    source: str | None = None
    records: list[IncomingExpense] = field(default_factory=list[IncomingExpense])
    positions: list[int] = field(default_factory=list[int])
    rejected: list[RejectedRecord] = field(default_factory=list[RejectedRecord])


def translate_payload(payload: IncomingExpensePayload) -> IncomingExpense:
    return IncomingExpense(
        account_id=payload.account_id,
        amount=payload.amount,
        transaction_date=payload.transaction_date,
        merchant_name=payload.merchant_name,
        description=payload.description,
        currency=payload.currency,
        category_id=payload.category_id,
    )


def translate_batch(document: object) -> TranslatedBatch:
    if isinstance(document, list):
        batch_document = IncomingBatchDocument(records=document)
    elif isinstance(document, dict):
        try:
            batch_document = IncomingBatchDocument.model_validate(document)
        except ValidationError as exc:
            raise BatchFormatError(f"Invalid batch document: {exc}") from exc
    else:
        raise BatchFormatError(
            f"Expected a list of records or a batch object, got {type(document).__name__}"
        )

    batch = TranslatedBatch(source=batch_document.source)
    for position, raw in enumerate(batch_document.records):
        try:
            record = translate_payload(IncomingExpensePayload.model_validate(raw))
        except (ValidationError, InvalidIncomingExpenseError) as exc:
            reason = _describe(exc)
            log.warning("Rejecting record #%d: %s", position, reason)
            batch.rejected.append(RejectedRecord(position=position, reason=reason, payload=raw))
            continue
        batch.records.append(record)
        batch.positions.append(position)
    return batch


def read_batch(path: Path) -> TranslatedBatch:
    """Load a ``.json`` document or a ``.jsonl`` file with one record per line."""

    text = path.read_text(encoding="utf-8")
    if path.suffix == ".jsonl":
        document: object = [json.loads(line) for line in text.splitlines() if line.strip()]
    else:
        document = json.loads(text)
    batch = translate_batch(document)
    log.info(
        "Read %d record(s) from %s (%d rejected)", len(batch.records), path, len(batch.rejected)
    )
    return batch


def _describe(exc: ValidationError | InvalidIncomingExpenseError) -> str:
    if isinstance(exc, ValidationError):
        return "; ".join(
            f"{'.'.join(str(part) for part in error['loc']) or 'record'}: {error['msg']}"
            for error in exc.errors()
        )
    return str(exc)
