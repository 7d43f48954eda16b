# ruff: noqa: TC003
"""Access layer for imprest requests: loading, saving, auditing and notifying.

Each public transition follows the same flow:

1. Load the request (row-locked where the backend supports it).
2. Run the lifecycle engine operation; denials raise before any mutation.
3. Save with a compare-and-set on ``version`` and write the audit entry.
4. Commit.
5. Dispatch notification intents; failures are logged, never raised.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import func, select, update
from sqlmodel import col

from imprest.exceptions import AppError, ConflictError, NotFoundError, PreconditionFailedError
from imprest.models.base import ensure_utc
from imprest.models.enums import (
    TERMINAL_STATUSES,
    AuditAction,
    AuditEntityType,
    ImprestAction,
    ImprestStatus,
    PaymentType,
)
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
from imprest.models.request import ImprestRequest
from imprest.schemas.auth import AuthContext
from imprest.schemas.request import ImprestListResponse, ImprestResponse
from imprest.services import lifecycle
from imprest.services.audit import model_to_audit_dict, write_audit_log
from imprest.services.directory import get_user_directory
from imprest.services.notification import dispatch_intents
from imprest.services.transitions import start_of_day

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from imprest.schemas.request import (
        AccountingPayload,
        AcknowledgmentPayload,
        ApprovalPayload,
        CreateImprestPayload,
        DisbursementPayload,
        DisputeResolutionPayload,
        RejectionPayload,
        RevisionPayload,
    )
    from imprest.services.directory import UserInfo
    from imprest.services.lifecycle import TransitionResult

logger = logging.getLogger(__name__)

_AUDIT_ACTIONS: dict[ImprestAction, AuditAction] = {
    ImprestAction.APPROVE_BY_HOD: AuditAction.APPROVE_BY_HOD,
    ImprestAction.APPROVE_BY_ACCOUNTANT: AuditAction.APPROVE_BY_ACCOUNTANT,
    ImprestAction.REJECT: AuditAction.REJECT,
    ImprestAction.REQUEST_REVISION: AuditAction.REQUEST_REVISION,
    ImprestAction.RESUBMIT: AuditAction.RESUBMIT,
    ImprestAction.RECORD_DISBURSEMENT: AuditAction.DISBURSE,
    ImprestAction.ACKNOWLEDGE_RECEIPT: AuditAction.ACKNOWLEDGE,
    ImprestAction.RESOLVE_DISPUTE: AuditAction.RESOLVE_DISPUTE,
    ImprestAction.SUBMIT_ACCOUNTING: AuditAction.SUBMIT_ACCOUNTING,
    ImprestAction.APPROVE_ACCOUNTING: AuditAction.APPROVE_ACCOUNTING,
    ImprestAction.REQUEST_ACCOUNTING_REVISION: AuditAction.REQUEST_ACCOUNTING_REVISION,
    ImprestAction.CHECK_OVERDUE: AuditAction.MARK_OVERDUE,
}


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def build_imprest_response(request: ImprestRequest) -> ImprestResponse:
    """Map a request model to its response schema."""
    return ImprestResponse(
        id=request.id,
        requested_by=request.requested_by,
        employee_name=request.employee_name,
        department=request.department,
        request_date=request.request_date,
        payment_reason=request.payment_reason,
        currency=request.currency,
        amount=request.amount,
        payment_type=PaymentType(request.payment_type),
        explanation=request.explanation,
        attachments=[AttachmentRef.model_validate(a) for a in request.attachments or []],
        status=ImprestStatus(request.status),
        is_terminal=request.status in TERMINAL_STATUSES,
        due_date=ensure_utc(request.due_date),
        has_dispute_history=request.has_dispute_history,
        version=request.version,
        hod_approval=request.get_record("hod_approval", ApprovalRecord),
        accountant_approval=request.get_record("accountant_approval", ApprovalRecord),
        rejection=request.get_record("rejection", RejectionRecord),
        revision=request.get_record("revision", RevisionRecord),
        disbursement=request.get_record("disbursement", DisbursementRecord),
        acknowledgment=request.get_record("acknowledgment", AcknowledgmentRecord),
        dispute_resolution=request.get_record("dispute_resolution", DisputeResolutionRecord),
        accounting=request.get_record("accounting", AccountingRecord),
        accounting_revision=request.get_record("accounting_revision", RevisionRecord),
        created_at=ensure_utc(request.created_at),
        updated_at=ensure_utc(request.updated_at),
    )


async def get_request_by_id(
    session: AsyncSession,
    request_id: uuid.UUID,
    *,
    for_update: bool = False,
) -> ImprestRequest:
    """Fetch a request by ID. Raises 404 if not found."""
    query = select(ImprestRequest).where(col(ImprestRequest.id) == request_id)
    if for_update:
        query = query.with_for_update().execution_options(populate_existing=True)
    result = await session.execute(query)
    request = result.scalar_one_or_none()
    if request is None:
        raise NotFoundError("Imprest request not found")
    return request


async def _get_user_or_404(user_id: uuid.UUID) -> UserInfo:
    user = await get_user_directory().get_user(user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def save_request(session: AsyncSession, request: ImprestRequest, expected_version: int) -> None:
    """Persist ``request`` only if nobody else has saved it since it was loaded.

    Raises ConflictError when the stored version no longer matches.
    """
    result = await session.execute(
        update(ImprestRequest)
        .where(col(ImprestRequest.id) == request.id, col(ImprestRequest.version) == expected_version)
        .values(version=expected_version + 1)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:  # ty: ignore[unresolved-attribute]
        raise ConflictError("Imprest request was modified by another user; reload and try again")
    request.version = expected_version + 1
    await session.flush()


async def _commit_transition(
    session: AsyncSession,
    auth: AuthContext,
    action: ImprestAction,
    transition: TransitionResult,
    expected_version: int,
    before_json: dict,
) -> None:
    """Save, audit and commit one transition. Rolls back on any failure."""
    request = transition.request
    try:
        await save_request(session, request, expected_version)
        await write_audit_log(
            session,
            actor_id=auth.user_id,
            entity_type=AuditEntityType.IMPREST_REQUEST,
            entity_id=request.id,
            action=_AUDIT_ACTIONS[action],
            before_json=before_json,
            after_json=model_to_audit_dict(request),
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    await session.refresh(request)


async def _run_transition(
    session: AsyncSession,
    auth: AuthContext,
    request_id: uuid.UUID,
    action: ImprestAction,
    operation: Callable[[ImprestRequest], TransitionResult],
) -> ImprestResponse:
    request = await get_request_by_id(session, request_id, for_update=True)
    expected_version = request.version
    before_json = model_to_audit_dict(request)

    try:
        transition = operation(request)
    except AppError:
        await session.rollback()
        raise

    await _commit_transition(session, auth, action, transition, expected_version, before_json)
    await dispatch_intents(transition.intents)
    return build_imprest_response(request)


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


async def create_request(
    session: AsyncSession,
    auth: AuthContext,
    payload: CreateImprestPayload,
) -> ImprestResponse:
    """Raise a new imprest request on behalf of the acting user."""
    requester = await _get_user_or_404(auth.user_id)
    transition = lifecycle.create_request(requester, payload)
    request = transition.request

    session.add(request)
    try:
        await session.flush()
        await write_audit_log(
            session,
            actor_id=auth.user_id,
            entity_type=AuditEntityType.IMPREST_REQUEST,
            entity_id=request.id,
            action=AuditAction.CREATE,
            after_json=model_to_audit_dict(request),
        )
        await session.commit()
    except Exception:
        await session.rollback()
        raise
    await session.refresh(request)

    await dispatch_intents(transition.intents)
    return build_imprest_response(request)


async def approve_by_hod(
    session: AsyncSession, auth: AuthContext, request_id: uuid.UUID, payload: ApprovalPayload
) -> ImprestResponse:
    return await _run_transition(
        session,
        auth,
        request_id,
        ImprestAction.APPROVE_BY_HOD,
        lambda r: lifecycle.approve_by_hod(r, auth, payload),
    )


async def approve_by_accountant(
    session: AsyncSession, auth: AuthContext, request_id: uuid.UUID, payload: ApprovalPayload
) -> ImprestResponse:
    return await _run_transition(
        session,
        auth,
        request_id,
        ImprestAction.APPROVE_BY_ACCOUNTANT,
        lambda r: lifecycle.approve_by_accountant(r, auth, payload),
    )


async def reject_request(
    session: AsyncSession, auth: AuthContext, request_id: uuid.UUID, payload: RejectionPayload
) -> ImprestResponse:
    return await _run_transition(
        session, auth, request_id, ImprestAction.REJECT, lambda r: lifecycle.reject(r, auth, payload)
    )


async def request_revision(
    session: AsyncSession, auth: AuthContext, request_id: uuid.UUID, payload: RevisionPayload
) -> ImprestResponse:
    return await _run_transition(
        session,
        auth,
        request_id,
        ImprestAction.REQUEST_REVISION,
        lambda r: lifecycle.request_revision(r, auth, payload),
    )


async def resubmit_request(session: AsyncSession, auth: AuthContext, request_id: uuid.UUID) -> ImprestResponse:
    return await _run_transition(
        session, auth, request_id, ImprestAction.RESUBMIT, lambda r: lifecycle.resubmit(r, auth)
    )


async def record_disbursement(
    session: AsyncSession, auth: AuthContext, request_id: uuid.UUID, payload: DisbursementPayload
) -> ImprestResponse:
    return await _run_transition(
        session,
        auth,
        request_id,
        ImprestAction.RECORD_DISBURSEMENT,
        lambda r: lifecycle.record_disbursement(r, auth, payload),
    )


async def acknowledge_receipt(
    session: AsyncSession, auth: AuthContext, request_id: uuid.UUID, payload: AcknowledgmentPayload
) -> ImprestResponse:
    return await _run_transition(
        session,
        auth,
        request_id,
        ImprestAction.ACKNOWLEDGE_RECEIPT,
        lambda r: lifecycle.acknowledge_receipt(r, auth, payload),
    )


async def resolve_dispute(
    session: AsyncSession, auth: AuthContext, request_id: uuid.UUID, payload: DisputeResolutionPayload
) -> ImprestResponse:
    return await _run_transition(
        session,
        auth,
        request_id,
        ImprestAction.RESOLVE_DISPUTE,
        lambda r: lifecycle.resolve_dispute(r, auth, payload),
    )


async def submit_accounting(
    session: AsyncSession, auth: AuthContext, request_id: uuid.UUID, payload: AccountingPayload
) -> ImprestResponse:
    return await _run_transition(
        session,
        auth,
        request_id,
        ImprestAction.SUBMIT_ACCOUNTING,
        lambda r: lifecycle.submit_accounting(r, auth, payload),
    )


async def approve_accounting(
    session: AsyncSession, auth: AuthContext, request_id: uuid.UUID, payload: ApprovalPayload
) -> ImprestResponse:
    return await _run_transition(
        session,
        auth,
        request_id,
        ImprestAction.APPROVE_ACCOUNTING,
        lambda r: lifecycle.approve_accounting(r, auth, payload),
    )


async def request_accounting_revision(
    session: AsyncSession, auth: AuthContext, request_id: uuid.UUID, payload: RevisionPayload
) -> ImprestResponse:
    return await _run_transition(
        session,
        auth,
        request_id,
        ImprestAction.REQUEST_ACCOUNTING_REVISION,
        lambda r: lifecycle.request_accounting_revision(r, auth, payload),
    )


async def get_request(session: AsyncSession, request_id: uuid.UUID) -> ImprestResponse:
    """Get a single request by ID."""
    request = await get_request_by_id(session, request_id)
    return build_imprest_response(request)


async def list_requests(
    session: AsyncSession,
    status_filter: ImprestStatus | None = None,
    department: str | None = None,
    requested_by: uuid.UUID | None = None,
    offset: int = 0,
    limit: int = 50,
) -> ImprestListResponse:
    """List requests with optional filters, ordered by created_at DESC."""
    filters = []
    if status_filter is not None:
        filters.append(col(ImprestRequest.status) == status_filter.value)
    if department is not None:
        filters.append(col(ImprestRequest.department) == department)
    if requested_by is not None:
        filters.append(col(ImprestRequest.requested_by) == requested_by)

    count_result = await session.execute(select(func.count()).select_from(ImprestRequest).where(*filters))
    total = count_result.scalar_one()

    result = await session.execute(
        select(ImprestRequest)
        .where(*filters)
        .order_by(col(ImprestRequest.created_at).desc())
        .offset(offset)
        .limit(limit)
    )
    requests = list(result.scalars().all())

    return ImprestListResponse(
        items=[build_imprest_response(r) for r in requests],
        total=total,
    )


async def list_my_requests(
    session: AsyncSession,
    auth: AuthContext,
    offset: int = 0,
    limit: int = 50,
) -> ImprestListResponse:
    """List the acting user's own requests."""
    return await list_requests(session, requested_by=auth.user_id, offset=offset, limit=limit)


# ---------------------------------------------------------------------------
# Overdue sweep
# ---------------------------------------------------------------------------


@dataclass
class OverdueSweepResult:
    """Summary of one overdue check."""

    target_date: date
    processed: int = 0
    marked_overdue: int = 0
    skipped: int = 0
    errors: int = 0


async def run_overdue_check(
    session: AsyncSession,
    target_date: date | None = None,
) -> OverdueSweepResult:
    """Move every disbursed request whose due date is before ``target_date`` to overdue.

    Each request is committed on its own; a failure on one is logged and
    counted without stopping the sweep. Re-running for the same date is a
    no-op because overdue requests are no longer disbursed.
    """
    if target_date is None:
        target_date = datetime.now(UTC).date()

    result = OverdueSweepResult(target_date=target_date)
    auth = AuthContext.system()

    candidates = await session.execute(
        select(col(ImprestRequest.id))
        .where(
            col(ImprestRequest.status) == ImprestStatus.DISBURSED.value,
            col(ImprestRequest.due_date) < start_of_day(target_date),
        )
        .order_by(col(ImprestRequest.due_date))
    )
    request_ids = list(candidates.scalars().all())

    for request_id in request_ids:
        result.processed += 1
        try:
            request = await get_request_by_id(session, request_id, for_update=True)
            expected_version = request.version
            before_json = model_to_audit_dict(request)
            try:
                transition = lifecycle.mark_overdue(request, today=target_date)
            except PreconditionFailedError:
                # Accounted for or otherwise moved on since the candidate query.
                await session.rollback()
                result.skipped += 1
                continue

            await _commit_transition(
                session, auth, ImprestAction.CHECK_OVERDUE, transition, expected_version, before_json
            )
            result.marked_overdue += 1
            await dispatch_intents(transition.intents)
        except Exception:
            await session.rollback()
            logger.exception("Overdue check failed for imprest request %s", request_id)
            result.errors += 1

    logger.info(
        "Overdue check for %s: processed=%d overdue=%d skipped=%d errors=%d",
        target_date,
        result.processed,
        result.marked_overdue,
        result.skipped,
        result.errors,
    )
    return result
