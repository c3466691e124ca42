"""Initial schema: expenses, sync sessions, conflicts and resolution history.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-09-28 10:12:44
"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

from expensync.adapters.sqlalchemy.mappings import Money, UTCDateTime

revision: str = "0001_initial_schema"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

EXPENSE_STATUSES = ("pending", "processed", "duplicate")
CONFLICT_TYPES = ("duplicate", "similar", "needs_review")
CONFLICT_STATUSES = ("pending", "resolved", "ignored")
RESOLUTION_ACTIONS = ("keep_existing", "keep_new", "keep_both", "merged", "custom")
RESOLUTION_METHODS = ("manual", "auto")


def _enum(name: str, values: tuple[str, ...]) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False)


def upgrade() -> None:
    op.create_table(
        "sync_session",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("source", sa.String(), nullable=True),
        sa.Column("started_at", UTCDateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_sync_session")),
    )

    op.create_table(
        "expense",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("account_id", sa.Integer(), nullable=False),
        sa.Column("amount", Money(), nullable=False),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("merchant_name", sa.String(), nullable=True),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("category_id", sa.Integer(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("status", _enum("expense_status", EXPENSE_STATUSES), nullable=False),
        sa.Column("import_hash", sa.String(length=64), nullable=True),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.Column("updated_at", UTCDateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_expense")),
    )
    op.create_index("ix_expense_account_date", "expense", ["account_id", "transaction_date"])
    op.create_index("ix_expense_account_import_hash", "expense", ["account_id", "import_hash"])

    op.create_table(
        "sync_conflict",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("existing_expense_id", sa.Integer(), nullable=False),
        sa.Column("new_expense_id", sa.Integer(), nullable=True),
        sa.Column("session_id", sa.Integer(), nullable=True),
        sa.Column("conflict_type", _enum("conflict_type", CONFLICT_TYPES), nullable=False),
        sa.Column("similarity_score", sa.Float(), nullable=False),
        sa.Column("status", _enum("conflict_status", CONFLICT_STATUSES), nullable=False),
        sa.Column(
            "resolution_action", _enum("resolution_action", RESOLUTION_ACTIONS), nullable=True
        ),
        sa.Column("resolution_data", sa.JSON(), nullable=True),
        sa.Column("resolved_by", sa.String(), nullable=True),
        sa.Column("resolved_at", UTCDateTime(), nullable=True),
        sa.Column("differences", sa.JSON(), nullable=False),
        sa.Column("conflict_data", sa.JSON(), nullable=False),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ["existing_expense_id"],
            ["expense.id"],
            name=op.f("fk_sync_conflict_existing_expense_id_expense"),
        ),
        sa.ForeignKeyConstraint(
            ["new_expense_id"],
            ["expense.id"],
            name=op.f("fk_sync_conflict_new_expense_id_expense"),
        ),
        sa.ForeignKeyConstraint(
            ["session_id"],
            ["sync_session.id"],
            name=op.f("fk_sync_conflict_session_id_sync_session"),
            ondelete="SET NULL",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_sync_conflict")),
    )
    op.create_index(
        "ix_sync_conflict_status_type_score",
        "sync_conflict",
        ["status", "conflict_type", "similarity_score"],
    )
    op.create_index("ix_sync_conflict_session", "sync_conflict", ["session_id"])
    op.create_index(
        "uq_sync_conflict_pending_pair",
        "sync_conflict",
        ["existing_expense_id", "new_expense_id"],
        unique=True,
        sqlite_where=sa.text("status = 'pending'"),
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        "conflict_resolution",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("conflict_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("resolved_by", sa.String(), nullable=False),
        sa.Column(
            "resolution_method", _enum("resolution_method", RESOLUTION_METHODS), nullable=False
        ),
        sa.Column("before_state", sa.JSON(), nullable=False),
        sa.Column("after_state", sa.JSON(), nullable=False),
        sa.Column("changes_made", sa.JSON(), nullable=False),
        sa.Column("undone", sa.Boolean(), nullable=False),
        sa.Column("undone_at", UTCDateTime(), nullable=True),
        sa.Column("created_at", UTCDateTime(), nullable=False),
        sa.ForeignKeyConstraint(
            ["conflict_id"],
            ["sync_conflict.id"],
            name=op.f("fk_conflict_resolution_conflict_id_sync_conflict"),
            ondelete="CASCADE",
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_conflict_resolution")),
    )
    op.create_index(
        "ix_conflict_resolution_conflict", "conflict_resolution", ["conflict_id", "created_at"]
    )


def downgrade() -> None:
    op.drop_index("ix_conflict_resolution_conflict", table_name="conflict_resolution")
    op.drop_table("conflict_resolution")
    op.drop_index("uq_sync_conflict_pending_pair", table_name="sync_conflict")
    op.drop_index("ix_sync_conflict_session", table_name="sync_conflict")
    op.drop_index("ix_sync_conflict_status_type_score", table_name="sync_conflict")
    op.drop_table("sync_conflict")
    op.drop_index("ix_expense_account_import_hash", table_name="expense")
    op.drop_index("ix_expense_account_date", table_name="expense")
    op.drop_table("expense")
    op.drop_table("sync_session")
