"""Import-pipeline payload adapter."""

from __future__ import annotations

from .schema import IncomingBatchDocument, IncomingExpensePayload
from .translator import (
    BatchFormatError,
    RejectedRecord,
    TranslatedBatch,
    read_batch,
    translate_batch,
    translate_payload,
)

__all__ = [
    "BatchFormatError",
    "IncomingBatchDocument",
    "IncomingExpensePayload",
    "RejectedRecord",
    "TranslatedBatch",
    "read_batch",
    "translate_batch",
    "translate_payload",
]
