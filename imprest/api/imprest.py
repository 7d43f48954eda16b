# ruff: noqa: B008, TC001, TC003
from __future__ import annotations

import uuid
from datetime import date

from fastapi import APIRouter, Query, status

from imprest.api.deps import AdminDep, AuthDep
from imprest.db import SessionDep
from imprest.models.enums import ImprestStatus
from imprest.schemas.request import (
    AccountingPayload,
    AcknowledgmentPayload,
    ApprovalPayload,
    CreateImprestPayload,
    DisbursementPayload,
    DisputeResolutionPayload,
    ImprestListResponse,
    ImprestResponse,
    OverdueSweepResponse,
    RejectionPayload,
    RevisionPayload,
)
from imprest.services import request as request_service

imprest_router = APIRouter(
    prefix="/imprest",
    tags=["imprest"],
)


# ---------------------------------------------------------------------------
# Creation and queries
# ---------------------------------------------------------------------------


@imprest_router.post("", response_model=ImprestResponse, status_code=status.HTTP_201_CREATED)
async def create_request(
    payload: CreateImprestPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ImprestResponse:
    """Raise a new imprest request."""
    return await request_service.create_request(session, auth, payload)


@imprest_router.get("", response_model=ImprestListResponse)
async def list_requests(
    session: SessionDep,
    auth: AuthDep,
    status_filter: ImprestStatus | None = Query(default=None, alias="status"),
    department: str | None = Query(default=None),
    requested_by: uuid.UUID | None = Query(default=None),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> ImprestListResponse:
    """List imprest requests with optional filters."""
    return await request_service.list_requests(session, status_filter, department, requested_by, offset, limit)


@imprest_router.get("/mine", response_model=ImprestListResponse)
async def list_my_requests(
    session: SessionDep,
    auth: AuthDep,
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=100),
) -> ImprestListResponse:
    """List the caller's own imprest requests."""
    return await request_service.list_my_requests(session, auth, offset, limit)


@imprest_router.post("/overdue/check", response_model=OverdueSweepResponse)
async def trigger_overdue_check(
    session: SessionDep,
    auth: AdminDep,
    target_date: date | None = Query(default=None),
) -> OverdueSweepResponse:
    """Manually run the overdue check for a specific date (admin only).

    The scheduled worker runs the same sweep once a day; re-running it for a
    date that was already processed changes nothing.
    """
    result = await request_service.run_overdue_check(session, target_date)
    return OverdueSweepResponse(
        target_date=result.target_date,
        processed=result.processed,
        marked_overdue=result.marked_overdue,
        skipped=result.skipped,
        errors=result.errors,
    )


@imprest_router.get("/{request_id}", response_model=ImprestResponse)
async def get_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> ImprestResponse:
    """Get a single imprest request."""
    return await request_service.get_request(session, request_id)


# ---------------------------------------------------------------------------
# Approval stage
# ---------------------------------------------------------------------------


@imprest_router.post("/{request_id}/approve/hod", response_model=ImprestResponse)
async def approve_by_hod(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: ApprovalPayload | None = None,
) -> ImprestResponse:
    """Approve a request as head of department."""
    return await request_service.approve_by_hod(session, auth, request_id, payload or ApprovalPayload())


@imprest_router.post("/{request_id}/approve/accountant", response_model=ImprestResponse)
async def approve_by_accountant(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: ApprovalPayload | None = None,
) -> ImprestResponse:
    """Approve a request as accountant."""
    return await request_service.approve_by_accountant(session, auth, request_id, payload or ApprovalPayload())


@imprest_router.post("/{request_id}/reject", response_model=ImprestResponse)
async def reject_request(
    request_id: uuid.UUID,
    payload: RejectionPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ImprestResponse:
    return await request_service.reject_request(session, auth, request_id, payload)


@imprest_router.post("/{request_id}/revision", response_model=ImprestResponse)
async def request_revision(
    request_id: uuid.UUID,
    payload: RevisionPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ImprestResponse:
    """Send a pending request back to its requester for changes."""
    return await request_service.request_revision(session, auth, request_id, payload)


@imprest_router.post("/{request_id}/resubmit", response_model=ImprestResponse)
async def resubmit_request(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
) -> ImprestResponse:
    return await request_service.resubmit_request(session, auth, request_id)


# ---------------------------------------------------------------------------
# Disbursement and disputes
# ---------------------------------------------------------------------------


@imprest_router.post("/{request_id}/disburse", response_model=ImprestResponse)
async def record_disbursement(
    request_id: uuid.UUID,
    payload: DisbursementPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ImprestResponse:
    """Record funds handed to the requester (accountant only)."""
    return await request_service.record_disbursement(session, auth, request_id, payload)


@imprest_router.post("/{request_id}/acknowledge", response_model=ImprestResponse)
async def acknowledge_receipt(
    request_id: uuid.UUID,
    payload: AcknowledgmentPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ImprestResponse:
    """Confirm or dispute receipt of disbursed funds (requester only)."""
    return await request_service.acknowledge_receipt(session, auth, request_id, payload)


@imprest_router.post("/{request_id}/dispute/resolve", response_model=ImprestResponse)
async def resolve_dispute(
    request_id: uuid.UUID,
    payload: DisputeResolutionPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ImprestResponse:
    """Settle a disputed disbursement (admin only)."""
    return await request_service.resolve_dispute(session, auth, request_id, payload)


# ---------------------------------------------------------------------------
# Accounting
# ---------------------------------------------------------------------------


@imprest_router.post("/{request_id}/account", response_model=ImprestResponse)
async def submit_accounting(
    request_id: uuid.UUID,
    payload: AccountingPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ImprestResponse:
    """Submit receipts for the disbursed funds."""
    return await request_service.submit_accounting(session, auth, request_id, payload)


@imprest_router.post("/{request_id}/accounting/approve", response_model=ImprestResponse)
async def approve_accounting(
    request_id: uuid.UUID,
    session: SessionDep,
    auth: AuthDep,
    payload: ApprovalPayload | None = None,
) -> ImprestResponse:
    return await request_service.approve_accounting(session, auth, request_id, payload or ApprovalPayload())


@imprest_router.post("/{request_id}/accounting/revision", response_model=ImprestResponse)
async def request_accounting_revision(
    request_id: uuid.UUID,
    payload: RevisionPayload,
    session: SessionDep,
    auth: AuthDep,
) -> ImprestResponse:
    """Return submitted accounting to the requester for correction."""
    return await request_service.request_accounting_revision(session, auth, request_id, payload)
