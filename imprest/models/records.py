# ruff: noqa: TC003
"""Typed event records stored in the JSON columns of an imprest request."""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class AttachmentRef(BaseModel):
    """A file already uploaded to blob storage."""

    file_name: str = Field(min_length=1, max_length=255)
    file_url: str = Field(min_length=1, max_length=2048)
    uploaded_at: datetime


class ApprovalRecord(BaseModel):
    """HOD or accountant sign-off."""

    approved_by: uuid.UUID
    approved_at: datetime
    comments: str | None = None


class RejectionRecord(BaseModel):
    rejected_by: uuid.UUID
    rejected_at: datetime
    reason: str


class RevisionRecord(BaseModel):
    """Sent back to the requester (or, for accounting, back to the spender)."""

    requested_by: uuid.UUID
    requested_at: datetime
    reason: str
    resubmitted_at: datetime | None = None


class DisbursementRecord(BaseModel):
    disbursed_by: uuid.UUID
    disbursed_at: datetime
    amount: Decimal
    comments: str | None = None


class AcknowledgmentRecord(BaseModel):
    acknowledged_by: uuid.UUID
    acknowledged_at: datetime
    received: bool
    comments: str | None = None


class DisputeResolutionRecord(BaseModel):
    resolved_by: uuid.UUID
    resolved_at: datetime
    resolution: str
    admin_comments: str | None = None


class Receipt(BaseModel):
    """One expense line backed by an uploaded receipt file."""

    description: str
    amount: Decimal
    receipt_url: str
    uploaded_at: datetime


class AccountingRecord(BaseModel):
    """Receipts submitted against the disbursed amount, plus the accountant's sign-off."""

    submitted_by: uuid.UUID
    submitted_at: datetime
    receipts: list[Receipt]
    total_amount: Decimal
    balance: Decimal
    comments: str | None = None
    approved_by: uuid.UUID | None = None
    approved_at: datetime | None = None
