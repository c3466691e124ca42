"""Pydantic models describing the records handed over by the import pipeline.

Two document shapes are accepted: a bare list of records, or an object with an optional
``source`` label and a ``records`` list. Records are validated one at a time so that a
malformed record can be rejected without discarding its siblings.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal  # noqa: TC003

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from expensync.domain.model import DEFAULT_CURRENCY


def _blank_to_none(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped or None
    return value


class IngestionBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class IncomingExpensePayload(IngestionBaseModel):
    account_id: int = Field(validation_alias=AliasChoices("account_id", "email_account_id"))
    amount: Decimal = Field(gt=0)
    transaction_date: date
    merchant_name: str | None = None
    description: str | None = None
    currency: str = DEFAULT_CURRENCY
    category_id: int | None = None

    _normalize_text = field_validator("merchant_name", "description", mode="before")(
        _blank_to_none
    )

    @field_validator("transaction_date", mode="before")
    @classmethod
    def _parse_date(cls, value: object) -> object:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, str) and len(value.strip()) > 10:  # noqa: PLR2004
            return datetime.fromisoformat(value.strip().replace("Z", "+00:00")).date()
        return value

    @field_validator("currency", mode="before")
    @classmethod
    def _normalize_currency(cls, value: object) -> object:
        if value is None:
            return DEFAULT_CURRENCY
        if isinstance(value, str):
            return value.strip().lower() or DEFAULT_CURRENCY
        return value


class IncomingBatchDocument(IngestionBaseModel):
    source: str | None = None
    records: list[object] = Field(default_factory=list[object])

    _normalize_source = field_validator("source", mode="before")(_blank_to_none)
