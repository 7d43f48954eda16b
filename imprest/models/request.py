# ruff: noqa: TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal
from typing import Any, TypeVar

import sqlalchemy as sa
from pydantic import BaseModel
from sqlmodel import Field

from imprest.models.base import TimestampMixin, UUIDBase
from imprest.models.enums import ImprestStatus

RecordT = TypeVar("RecordT", bound=BaseModel)

# Event record columns, each owned by exactly one transition.
RECORD_FIELDS = (
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


class ImprestRequest(UUIDBase, TimestampMixin, table=True):
    """A cash-advance request and every lifecycle event it has passed through."""

    __tablename__ = "imprest_request"
    __table_args__ = (sa.Index("ix_imprest_status_due", "status", "due_date"),)

    # Static fields, fixed at creation.
    requested_by: uuid.UUID = Field(index=True)
    employee_name: str = Field(max_length=255)
    department: str | None = Field(default=None, max_length=255, index=True)
    request_date: date
    payment_reason: str = Field(max_length=500)
    currency: str = Field(max_length=10)
    amount: Decimal = Field(max_digits=14, decimal_places=2)
    payment_type: str = Field(max_length=50)
    explanation: str
    attachments: list[dict[str, Any]] = Field(default_factory=list, sa_type=sa.JSON)

    # Workflow state.
    status: str = Field(
        default=ImprestStatus.PENDING_HOD, max_length=50, index=True, sa_column_kwargs={"server_default": "pending_hod"}
    )
    due_date: datetime = Field(sa_type=sa.DateTime(timezone=True))  # ty: ignore[invalid-argument-type]
    has_dispute_history: bool = Field(default=False, sa_column_kwargs={"server_default": sa.false()})
    version: int = Field(default=1)

    hod_approval: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    accountant_approval: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    rejection: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    revision: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    disbursement: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    acknowledgment: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    dispute_resolution: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    accounting: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)
    accounting_revision: dict[str, Any] | None = Field(default=None, sa_type=sa.JSON)

    def get_record(self, name: str, record_type: type[RecordT]) -> RecordT | None:
        """Load an event record column as its typed model."""
        raw = getattr(self, name)
        if raw is None:
            return None
        return record_type.model_validate(raw)

    def set_record(self, name: str, record: BaseModel) -> None:
        """Store a typed event record in its JSON column."""
        if name not in RECORD_FIELDS:
            msg = f"Unknown event record: {name}"
            raise ValueError(msg)
        setattr(self, name, record.model_dump(mode="json"))
