"""SQLAlchemy mapping metadata for the expensync domain model."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from decimal import Decimal
from enum import StrEnum
from functools import cache

from sqlalchemy import (
    JSON,
    BigInteger,
    Boolean,
    Column,
    Date,
    DateTime,
    Dialect,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    TypeDecorator,
    orm,
    text,
)
from sqlalchemy.orm import configure_mappers

from expensync.domain.model import (
    Conflict,
    ConflictResolutionRecord,
    ConflictStatus,
    ConflictType,
    Expense,
    ExpenseStatus,
    ResolutionAction,
    ResolutionMethod,
    SyncSession,
)
from expensync.domain.model.expense import MONEY_QUANTUM

log = logging.getLogger(__name__)

CENTS_PER_UNIT = 100


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class Money(TypeDecorator[Decimal]):
    """Decimal amounts stored as integer cents."""

    impl = BigInteger
    cache_ok = True

    def process_bind_param(self, value: Decimal | None, dialect: Dialect) -> int | None:
        _ = dialect
        if value is None:
            return None
        return int((Decimal(value) * CENTS_PER_UNIT).to_integral_value())

    def process_result_value(self, value: int | None, dialect: Dialect) -> Decimal | None:
        _ = dialect
        if value is None:
            return None
        return (Decimal(value) / CENTS_PER_UNIT).quantize(MONEY_QUANTUM)


def _values(enum_cls: type[StrEnum]) -> list[str]:
    return [member.value for member in enum_cls]


def _enum(enum_cls: type[StrEnum], name: str) -> Enum:
    return Enum(
        enum_cls,
        name=name,
        native_enum=False,
        values_callable=_values,
        validate_strings=True,
    )


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

sync_session_table = Table(
    "sync_session",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("source", String, nullable=True),
    Column("started_at", UTCDateTime(), nullable=False),
)

expense_table = Table(
    "expense",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("account_id", Integer, nullable=False),
    Column("amount", Money(), nullable=False),
    Column("transaction_date", Date, nullable=False),
    Column("merchant_name", String, nullable=True),
    Column("description", String, nullable=True),
    Column("currency", String(8), nullable=False),
    Column("category_id", Integer, nullable=True),
    Column("notes", String, nullable=True),
    Column("status", _enum(ExpenseStatus, "expense_status"), nullable=False),
    Column("import_hash", String(64), nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Column("updated_at", UTCDateTime(), nullable=True),
    Index("ix_expense_account_date", "account_id", "transaction_date"),
    Index("ix_expense_account_import_hash", "account_id", "import_hash"),
)

conflict_table = Table(
    "sync_conflict",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("existing_expense_id", Integer, ForeignKey("expense.id"), nullable=False),
    Column("new_expense_id", Integer, ForeignKey("expense.id"), nullable=True),
    Column(
        "session_id",
        Integer,
        ForeignKey("sync_session.id", ondelete="SET NULL"),
        nullable=True,
    ),
    Column("conflict_type", _enum(ConflictType, "conflict_type"), nullable=False),
    Column("similarity_score", Float, nullable=False),
    Column("status", _enum(ConflictStatus, "conflict_status"), nullable=False),
    Column(
        "resolution_action", _enum(ResolutionAction, "resolution_action"), nullable=True
    ),
    Column("resolution_data", JSON, nullable=True),
    Column("resolved_by", String, nullable=True),
    Column("resolved_at", UTCDateTime(), nullable=True),
    Column("differences", JSON, nullable=False),
    Column("conflict_data", JSON, nullable=False),
    Column("created_at", UTCDateTime(), nullable=False),
    Index("ix_sync_conflict_status_type_score", "status", "conflict_type", "similarity_score"),
    Index("ix_sync_conflict_session", "session_id"),
    Index(
        "uq_sync_conflict_pending_pair",
        "existing_expense_id",
        "new_expense_id",
        unique=True,
        sqlite_where=text("status = 'pending'"),
        postgresql_where=text("status = 'pending'"),
    ),
)

conflict_resolution_table = Table(
    "conflict_resolution",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column(
        "conflict_id",
        Integer,
        ForeignKey("sync_conflict.id", ondelete="CASCADE"),
        nullable=False,
    ),
    Column("action", String(32), nullable=False),
    Column("resolved_by", String, nullable=False),
    Column(
        "resolution_method", _enum(ResolutionMethod, "resolution_method"), nullable=False
    ),
    Column("before_state", JSON, nullable=False),
    Column("after_state", JSON, nullable=False),
    Column("changes_made", JSON, nullable=False),
    Column("undone", Boolean, nullable=False),
    Column("undone_at", UTCDateTime(), nullable=True),
    Column("created_at", UTCDateTime(), nullable=False),
    Index("ix_conflict_resolution_conflict", "conflict_id", "created_at"),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model.

    Entities refer to each other by id only, so no relationships are mapped.
    """

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(SyncSession, sync_session_table)
    mapper_registry.map_imperatively(Expense, expense_table)
    mapper_registry.map_imperatively(Conflict, conflict_table)
    mapper_registry.map_imperatively(ConflictResolutionRecord, conflict_resolution_table)

    configure_mappers()
    return mapper_registry

