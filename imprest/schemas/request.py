# ruff: noqa: TC001, TC003
from __future__ import annotations

import uuid
from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field

from imprest.models.enums import ImprestStatus, PaymentType
from imprest.models.records import (
    AccountingRecord,
    AcknowledgmentRecord,
    ApprovalRecord,
    AttachmentRef,
    DisbursementRecord,
    DisputeResolutionRecord,
    RejectionRecord,
    RevisionRecord,
)

# ---------------------------------------------------------------------------
# Request payloads
# ---------------------------------------------------------------------------


class CreateImprestPayload(BaseModel):
    """Request body for raising a new imprest request."""

    payment_reason: str = Field(min_length=1, max_length=500)
    currency: str = Field(min_length=1, max_length=10)
    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    payment_type: PaymentType
    explanation: str = Field(min_length=1)
    attachments: list[AttachmentRef] = Field(default_factory=list)


class ApprovalPayload(BaseModel):
    """Request body for HOD, accountant and accounting approvals."""

    comments: str | None = Field(default=None, max_length=1000)


class RejectionPayload(BaseModel):
    reason: str = Field(max_length=1000)


class RevisionPayload(BaseModel):
    reason: str = Field(max_length=1000)


class DisbursementPayload(BaseModel):
    """Request body for recording a disbursement."""

    amount: Decimal = Field(gt=0, max_digits=14, decimal_places=2)
    comments: str | None = Field(default=None, max_length=1000)


class AcknowledgmentPayload(BaseModel):
    """Requester's confirmation (or denial) of having received the funds."""

    received: bool
    comments: str | None = Field(default=None, max_length=1000)


class DisputeResolutionPayload(BaseModel):
    """``resolution="disbursed"`` confirms the funds; anything else cancels the request."""

    resolution: str = Field(max_length=50)
    admin_comments: str | None = Field(default=None, max_length=1000)


class ReceiptLine(BaseModel):
    """One expense line; its file is the receipt file at the same position."""

    description: str = Field(min_length=1, max_length=500)
    amount: Decimal = Field(max_digits=14, decimal_places=2)


class AccountingPayload(BaseModel):
    """Receipts accounting for the disbursed funds."""

    receipts: list[ReceiptLine] = Field(default_factory=list)
    receipt_files: list[AttachmentRef] = Field(default_factory=list)
    comments: str | None = Field(default=None, max_length=2000)


# ---------------------------------------------------------------------------
# Response schemas
# ---------------------------------------------------------------------------


class ImprestResponse(BaseModel):
    """Response schema for a single imprest request."""

    id: uuid.UUID
    requested_by: uuid.UUID
    employee_name: str
    department: str | None
    request_date: date
    payment_reason: str
    currency: str
    amount: Decimal
    payment_type: PaymentType
    explanation: str
    attachments: list[AttachmentRef]
    status: ImprestStatus
    is_terminal: bool
    due_date: datetime
    has_dispute_history: bool
    version: int
    hod_approval: ApprovalRecord | None
    accountant_approval: ApprovalRecord | None
    rejection: RejectionRecord | None
    revision: RevisionRecord | None
    disbursement: DisbursementRecord | None
    acknowledgment: AcknowledgmentRecord | None
    dispute_resolution: DisputeResolutionRecord | None
    accounting: AccountingRecord | None
    accounting_revision: RevisionRecord | None
    created_at: datetime
    updated_at: datetime


class ImprestListResponse(BaseModel):
    """Paginated list of imprest requests."""

    items: list[ImprestResponse]
    total: int


class OverdueSweepResponse(BaseModel):
    """Response from the overdue check trigger."""

    target_date: date
    processed: int
    marked_overdue: int
    skipped: int
    errors: int
