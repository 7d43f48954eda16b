"""create imprest tables

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

_RECORD_COLUMNS = (
    "hod_approval",
    "accountant_approval",
    "rejection",
    "revision",
    "disbursement",
    "acknowledgment",
    "dispute_resolution",
    "accounting",
    "accounting_revision",
)


def upgrade() -> None:
    op.create_table(
        "imprest_request",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("requested_by", sa.Uuid(), nullable=False),
        sa.Column("employee_name", sa.String(length=255), nullable=False),
        sa.Column("department", sa.String(length=255), nullable=True),
        sa.Column("request_date", sa.Date(), nullable=False),
        sa.Column("payment_reason", sa.String(length=500), nullable=False),
        sa.Column("currency", sa.String(length=10), nullable=False),
        sa.Column("amount", sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column("payment_type", sa.String(length=50), nullable=False),
        sa.Column("explanation", sa.String(), nullable=False),
        sa.Column("attachments", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(length=50), server_default="pending_hod", nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("has_dispute_history", sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        *(sa.Column(name, sa.JSON(), nullable=True) for name in _RECORD_COLUMNS),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_imprest_request_requested_by", "imprest_request", ["requested_by"])
    op.create_index("ix_imprest_request_department", "imprest_request", ["department"])
    op.create_index("ix_imprest_request_status", "imprest_request", ["status"])
    op.create_index("ix_imprest_status_due", "imprest_request", ["status", "due_date"])

    op.create_table(
        "audit_log",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("actor_id", sa.Uuid(), nullable=False),
        sa.Column("entity_type", sa.String(length=50), nullable=False),
        sa.Column("entity_id", sa.Uuid(), nullable=False),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("before_json", sa.JSON(), nullable=True),
        sa.Column("after_json", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_audit_entity", "audit_log", ["entity_type", "entity_id"])
    op.create_index("ix_audit_log_created_at", "audit_log", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_audit_log_created_at", table_name="audit_log")
    op.drop_index("ix_audit_entity", table_name="audit_log")
    op.drop_table("audit_log")
    op.drop_index("ix_imprest_status_due", table_name="imprest_request")
    op.drop_index("ix_imprest_request_status", table_name="imprest_request")
    op.drop_index("ix_imprest_request_department", table_name="imprest_request")
    op.drop_index("ix_imprest_request_requested_by", table_name="imprest_request")
    op.drop_table("imprest_request")
