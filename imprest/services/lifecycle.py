"""Lifecycle engine for imprest requests.

Every operation here works on one in-memory ``ImprestRequest``: it validates
the transition and its payload first, and only then writes the new status and
the event record. Nothing in this module touches the database or sends
messages; notifications come back as intents on the ``TransitionResult``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from imprest.config import get_settings
from imprest.exceptions import ValidationFailedError
from imprest.models.base import ensure_utc, now_utc
from imprest.models.enums import ImprestAction, ImprestStatus, NotificationAudience, NotificationKind
from imprest.models.records import (
    AccountingRecord,
    AcknowledgmentRecord,
    ApprovalRecord,
    DisbursementRecord,
    DisputeResolutionRecord,
    RejectionRecord,
    RevisionRecord,
)
from imprest.models.request import ImprestRequest
from imprest.schemas.auth import AuthContext
from imprest.services.calculator import calculate_totals, pair_receipts, quantize_money
from imprest.services.notification import NotificationIntent
from imprest.services.transitions import TRANSITIONS, validate_transition

if TYPE_CHECKING:
    from datetime import date, datetime
    from decimal import Decimal

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

logger = logging.getLogger(__name__)

DISPUTE_RESOLVED_DISBURSED = "disbursed"
ACCOUNTING_APPROVAL_PREFIX = "[Accountant Approval] "


@dataclass
class TransitionResult:
    """Outcome of one engine operation."""

    request: ImprestRequest
    action: ImprestAction | None
    previous_status: ImprestStatus | None
    intents: list[NotificationIntent] = field(default_factory=list)

    @property
    def status(self) -> ImprestStatus:
        return ImprestStatus(self.request.status)


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------


def _accounting_window() -> timedelta:
    return timedelta(hours=get_settings().accounting_window_hours)


def _format_money(value: Decimal) -> str:
    return f"{quantize_money(value):,.2f}"


def _format_datetime(value: datetime) -> str:
    return ensure_utc(value).strftime("%Y-%m-%d %H:%M UTC")


def _require_text(value: str | None, field_name: str) -> str:
    if value is None or not value.strip():
        msg = f"{field_name} is required"
        raise ValidationFailedError(msg)
    return value.strip()


def _authorize(
    request: ImprestRequest,
    action: ImprestAction,
    actor: AuthContext,
    *,
    today: date | None = None,
) -> ImprestStatus:
    denial = validate_transition(request, action, actor, today=today)
    if denial is not None:
        raise denial.to_error()
    return ImprestStatus(request.status)


def _move(request: ImprestRequest, action: ImprestAction, target: ImprestStatus, now: datetime) -> None:
    if target not in TRANSITIONS[action].to_statuses:
        msg = f"{action} cannot lead to {target}"
        raise ValueError(msg)
    logger.info("Imprest %s: %s %s -> %s", request.id, action, request.status, target)
    request.status = target.value
    request.updated_at = now


def _payload(request: ImprestRequest, **extra: Any) -> dict[str, Any]:
    """Already-formatted values a notification template may need."""
    values: dict[str, Any] = {
        "employee_name": request.employee_name,
        "department": request.department,
        "currency": request.currency,
        "amount": _format_money(request.amount),
        "payment_reason": request.payment_reason,
        "payment_type": request.payment_type,
        "due_date": _format_datetime(request.due_date),
    }
    disbursement = request.get_record("disbursement", DisbursementRecord)
    if disbursement is not None:
        values["disbursed_amount"] = _format_money(disbursement.amount)
        values["disbursed_at"] = _format_datetime(disbursement.disbursed_at)
    values.update(extra)
    return values


def _intent(
    request: ImprestRequest,
    audience: NotificationAudience,
    kind: NotificationKind,
    **extra: Any,
) -> NotificationIntent:
    return NotificationIntent(
        audience=audience,
        kind=kind,
        request_id=request.id,
        requester_id=request.requested_by,
        department=request.department,
        payload=_payload(request, **extra),
    )


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


def create_request(
    requester: UserInfo,
    payload: CreateImprestPayload,
    *,
    now: datetime | None = None,
) -> TransitionResult:
    """Build a new request in ``pending_hod``.

    The due date set here is a placeholder; it is recomputed when funds are disbursed.
    """
    now = now or now_utc()
    if payload.amount <= 0:
        msg = "Amount must be greater than zero"
        raise ValidationFailedError(msg)

    request = ImprestRequest(
        requested_by=requester.id,
        employee_name=requester.full_name,
        department=requester.department,
        request_date=now.date(),
        payment_reason=_require_text(payload.payment_reason, "Payment reason"),
        currency=_require_text(payload.currency, "Currency").upper(),
        amount=quantize_money(payload.amount),
        payment_type=payload.payment_type.value,
        explanation=_require_text(payload.explanation, "Explanation"),
        attachments=[a.model_dump(mode="json") for a in payload.attachments],
        status=ImprestStatus.PENDING_HOD.value,
        due_date=now + _accounting_window(),
        created_at=now,
        updated_at=now,
    )
    logger.info("Imprest %s created by %s for %s %s", request.id, requester.id, request.currency, request.amount)

    return TransitionResult(
        request=request,
        action=None,
        previous_status=None,
        intents=[
            _intent(
                request,
                NotificationAudience.DEPARTMENT_HOD,
                NotificationKind.REQUEST_SUBMITTED,
                explanation=request.explanation,
                attachment_count=len(request.attachments),
            )
        ],
    )


# ---------------------------------------------------------------------------
# Approval stage
# ---------------------------------------------------------------------------


def approve_by_hod(
    request: ImprestRequest,
    actor: AuthContext,
    payload: ApprovalPayload,
    *,
    now: datetime | None = None,
) -> TransitionResult:
    previous = _authorize(request, ImprestAction.APPROVE_BY_HOD, actor)
    now = now or now_utc()

    request.set_record(
        "hod_approval",
        ApprovalRecord(approved_by=actor.user_id, approved_at=now, comments=payload.comments),
    )
    _move(request, ImprestAction.APPROVE_BY_HOD, ImprestStatus.PENDING_ACCOUNTANT, now)

    comments = payload.comments or "No comments provided"
    return TransitionResult(
        request=request,
        action=ImprestAction.APPROVE_BY_HOD,
        previous_status=previous,
        intents=[
            _intent(
                request,
                NotificationAudience.ACCOUNTANTS,
                NotificationKind.HOD_APPROVED_FOR_ACCOUNTANT,
                comments=comments,
            ),
            _intent(request, NotificationAudience.REQUESTER, NotificationKind.HOD_APPROVED, comments=comments),
        ],
    )


def approve_by_accountant(
    request: ImprestRequest,
    actor: AuthContext,
    payload: ApprovalPayload,
    *,
    now: datetime | None = None,
) -> TransitionResult:
    previous = _authorize(request, ImprestAction.APPROVE_BY_ACCOUNTANT, actor)
    now = now or now_utc()

    request.set_record(
        "accountant_approval",
        ApprovalRecord(approved_by=actor.user_id, approved_at=now, comments=payload.comments),
    )
    _move(request, ImprestAction.APPROVE_BY_ACCOUNTANT, ImprestStatus.APPROVED, now)

    return TransitionResult(
        request=request,
        action=ImprestAction.APPROVE_BY_ACCOUNTANT,
        previous_status=previous,
        intents=[
            _intent(
                request,
                NotificationAudience.REQUESTER,
                NotificationKind.ACCOUNTANT_APPROVED,
                comments=payload.comments or "No comments provided",
            )
        ],
    )


def reject(
    request: ImprestRequest,
    actor: AuthContext,
    payload: RejectionPayload,
    *,
    now: datetime | None = None,
) -> TransitionResult:
    previous = _authorize(request, ImprestAction.REJECT, actor)
    reason = _require_text(payload.reason, "Rejection reason")
    now = now or now_utc()

    request.set_record("rejection", RejectionRecord(rejected_by=actor.user_id, rejected_at=now, reason=reason))
    _move(request, ImprestAction.REJECT, ImprestStatus.REJECTED, now)

    return TransitionResult(
        request=request,
        action=ImprestAction.REJECT,
        previous_status=previous,
        intents=[_intent(request, NotificationAudience.REQUESTER, NotificationKind.REQUEST_REJECTED, reason=reason)],
    )


def request_revision(
    request: ImprestRequest,
    actor: AuthContext,
    payload: RevisionPayload,
    *,
    now: datetime | None = None,
) -> TransitionResult:
    """Send a pending request back to the requester."""
    previous = _authorize(request, ImprestAction.REQUEST_REVISION, actor)
    reason = _require_text(payload.reason, "Revision reason")
    now = now or now_utc()

    request.set_record("revision", RevisionRecord(requested_by=actor.user_id, requested_at=now, reason=reason))
    _move(request, ImprestAction.REQUEST_REVISION, ImprestStatus.REVISION_REQUESTED, now)

    return TransitionResult(
        request=request,
        action=ImprestAction.REQUEST_REVISION,
        previous_status=previous,
        intents=[_intent(request, NotificationAudience.REQUESTER, NotificationKind.REVISION_REQUESTED, reason=reason)],
    )


def resubmit(
    request: ImprestRequest,
    actor: AuthContext,
    *,
    now: datetime | None = None,
) -> TransitionResult:
    """Return a revised request to the start of the approval chain."""
    previous = _authorize(request, ImprestAction.RESUBMIT, actor)
    now = now or now_utc()

    revision = request.get_record("revision", RevisionRecord)
    if revision is not None:
        request.set_record("revision", revision.model_copy(update={"resubmitted_at": now}))
    _move(request, ImprestAction.RESUBMIT, ImprestStatus.PENDING_HOD, now)

    return TransitionResult(
        request=request,
        action=ImprestAction.RESUBMIT,
        previous_status=previous,
        intents=[_intent(request, NotificationAudience.DEPARTMENT_HOD, NotificationKind.REQUEST_RESUBMITTED)],
    )


# ---------------------------------------------------------------------------
# Disbursement, acknowledgment and disputes
# ---------------------------------------------------------------------------


def record_disbursement(
    request: ImprestRequest,
    actor: AuthContext,
    payload: DisbursementPayload,
    *,
    now: datetime | None = None,
) -> TransitionResult:
    """Record the funds handed over and start the accounting clock."""
    previous = _authorize(request, ImprestAction.RECORD_DISBURSEMENT, actor)
    if payload.amount <= 0:
        msg = "Valid disbursement amount is required"
        raise ValidationFailedError(msg)
    if payload.amount > request.amount:
        msg = f"Disbursement amount cannot exceed the requested amount of {_format_money(request.amount)}"
        raise ValidationFailedError(msg)
    now = now or now_utc()

    request.set_record(
        "disbursement",
        DisbursementRecord(
            disbursed_by=actor.user_id,
            disbursed_at=now,
            amount=quantize_money(payload.amount),
            comments=payload.comments,
        ),
    )
    request.due_date = now + _accounting_window()
    _move(request, ImprestAction.RECORD_DISBURSEMENT, ImprestStatus.PENDING_ACKNOWLEDGMENT, now)

    return TransitionResult(
        request=request,
        action=ImprestAction.RECORD_DISBURSEMENT,
        previous_status=previous,
        intents=[
            _intent(request, NotificationAudience.REQUESTER, NotificationKind.FUNDS_DISBURSED, comments=payload.comments)
        ],
    )


def acknowledge_receipt(
    request: ImprestRequest,
    actor: AuthContext,
    payload: AcknowledgmentPayload,
    *,
    now: datetime | None = None,
) -> TransitionResult:
    """Requester confirms (or disputes) receipt of the disbursed funds.

    A confirmed receipt lands in ``resolved_dispute`` rather than ``disbursed``
    whenever the request has ever been disputed.
    """
    previous = _authorize(request, ImprestAction.ACKNOWLEDGE_RECEIPT, actor)
    now = now or now_utc()

    request.set_record(
        "acknowledgment",
        AcknowledgmentRecord(
            acknowledged_by=actor.user_id,
            acknowledged_at=now,
            received=payload.received,
            comments=payload.comments,
        ),
    )
    comments = payload.comments or "No comments provided"

    if payload.received:
        target = ImprestStatus.RESOLVED_DISPUTE if request.has_dispute_history else ImprestStatus.DISBURSED
        _move(request, ImprestAction.ACKNOWLEDGE_RECEIPT, target, now)
        intents = [_intent(request, NotificationAudience.REQUESTER, NotificationKind.RECEIPT_CONFIRMED)]
    else:
        request.has_dispute_history = True
        _move(request, ImprestAction.ACKNOWLEDGE_RECEIPT, ImprestStatus.DISPUTED, now)
        intents = [
            _intent(request, NotificationAudience.ADMINS, NotificationKind.DISPUTE_RAISED_ADMIN, comments=comments),
            _intent(request, NotificationAudience.REQUESTER, NotificationKind.DISPUTE_RAISED, comments=comments),
        ]

    return TransitionResult(
        request=request,
        action=ImprestAction.ACKNOWLEDGE_RECEIPT,
        previous_status=previous,
        intents=intents,
    )


def resolve_dispute(
    request: ImprestRequest,
    actor: AuthContext,
    payload: DisputeResolutionPayload,
    *,
    now: datetime | None = None,
) -> TransitionResult:
    """Admin settles a dispute.

    Exactly ``disbursed`` re-opens acknowledgment; any other resolution cancels.
    """
    previous = _authorize(request, ImprestAction.RESOLVE_DISPUTE, actor)
    resolution = _require_text(payload.resolution, "Resolution")
    now = now or now_utc()

    request.set_record(
        "dispute_resolution",
        DisputeResolutionRecord(
            resolved_by=actor.user_id,
            resolved_at=now,
            resolution=resolution,
            admin_comments=payload.admin_comments,
        ),
    )

    if payload.resolution == DISPUTE_RESOLVED_DISBURSED:
        _move(request, ImprestAction.RESOLVE_DISPUTE, ImprestStatus.RESOLVED_DISPUTE, now)
        intent = _intent(
            request,
            NotificationAudience.REQUESTER,
            NotificationKind.DISPUTE_RESOLVED,
            admin_comments=payload.admin_comments or "Issue has been resolved",
        )
    else:
        _move(request, ImprestAction.RESOLVE_DISPUTE, ImprestStatus.CANCELLED, now)
        intent = _intent(
            request,
            NotificationAudience.REQUESTER,
            NotificationKind.REQUEST_CANCELLED,
            admin_comments=payload.admin_comments or "Request cancelled due to disbursement issues",
        )

    return TransitionResult(
        request=request,
        action=ImprestAction.RESOLVE_DISPUTE,
        previous_status=previous,
        intents=[intent],
    )


# ---------------------------------------------------------------------------
# Accounting
# ---------------------------------------------------------------------------


def _require_disbursement(request: ImprestRequest) -> DisbursementRecord:
    disbursement = request.get_record("disbursement", DisbursementRecord)
    if disbursement is None:
        msg = "Imprest has no disbursement on record"
        raise ValidationFailedError(msg)
    return disbursement


def _require_accounting(request: ImprestRequest) -> AccountingRecord:
    accounting = request.get_record("accounting", AccountingRecord)
    if accounting is None:
        msg = "Imprest has no accounting on record"
        raise ValidationFailedError(msg)
    return accounting


def submit_accounting(
    request: ImprestRequest,
    actor: AuthContext,
    payload: AccountingPayload,
    *,
    now: datetime | None = None,
) -> TransitionResult:
    """Record the requester's receipts and the resulting spend and balance."""
    previous = _authorize(request, ImprestAction.SUBMIT_ACCOUNTING, actor)
    disbursement = _require_disbursement(request)
    receipts = pair_receipts(payload.receipts, payload.receipt_files)
    totals = calculate_totals(disbursement.amount, receipts)
    now = now or now_utc()

    request.set_record(
        "accounting",
        AccountingRecord(
            submitted_by=actor.user_id,
            submitted_at=now,
            receipts=receipts,
            total_amount=totals.total_amount,
            balance=totals.balance,
            comments=payload.comments,
        ),
    )
    _move(request, ImprestAction.SUBMIT_ACCOUNTING, ImprestStatus.PENDING_ACCOUNTING_APPROVAL, now)

    return TransitionResult(
        request=request,
        action=ImprestAction.SUBMIT_ACCOUNTING,
        previous_status=previous,
        intents=[
            _intent(
                request,
                NotificationAudience.ACCOUNTANTS,
                NotificationKind.ACCOUNTING_SUBMITTED,
                total_amount=_format_money(totals.total_amount),
                balance=_format_money(totals.balance),
                receipt_count=len(receipts),
                overspent="Yes" if totals.is_overspent else "No",
            )
        ],
    )


def append_approval_comment(existing: str | None, comments: str | None) -> str | None:
    """Add the accountant's comment below the submitter's, keeping both."""
    if not comments:
        return existing
    addition = f"{ACCOUNTING_APPROVAL_PREFIX}{comments}"
    return f"{existing}\n{addition}" if existing else addition


def approve_accounting(
    request: ImprestRequest,
    actor: AuthContext,
    payload: ApprovalPayload,
    *,
    now: datetime | None = None,
) -> TransitionResult:
    previous = _authorize(request, ImprestAction.APPROVE_ACCOUNTING, actor)
    accounting = _require_accounting(request)
    now = now or now_utc()

    request.set_record(
        "accounting",
        accounting.model_copy(
            update={
                "comments": append_approval_comment(accounting.comments, payload.comments),
                "approved_by": actor.user_id,
                "approved_at": now,
            }
        ),
    )
    _move(request, ImprestAction.APPROVE_ACCOUNTING, ImprestStatus.ACCOUNTED, now)

    return TransitionResult(
        request=request,
        action=ImprestAction.APPROVE_ACCOUNTING,
        previous_status=previous,
        intents=[
            _intent(
                request,
                NotificationAudience.REQUESTER,
                NotificationKind.ACCOUNTING_APPROVED,
                total_amount=_format_money(accounting.total_amount),
                balance=_format_money(accounting.balance),
            )
        ],
    )


def request_accounting_revision(
    request: ImprestRequest,
    actor: AuthContext,
    payload: RevisionPayload,
    *,
    now: datetime | None = None,
) -> TransitionResult:
    """Send submitted accounting back so the requester can correct it."""
    previous = _authorize(request, ImprestAction.REQUEST_ACCOUNTING_REVISION, actor)
    reason = _require_text(payload.reason, "Revision reason")
    accounting = _require_accounting(request)
    now = now or now_utc()

    request.set_record(
        "accounting_revision",
        RevisionRecord(requested_by=actor.user_id, requested_at=now, reason=reason),
    )
    _move(request, ImprestAction.REQUEST_ACCOUNTING_REVISION, ImprestStatus.DISBURSED, now)

    return TransitionResult(
        request=request,
        action=ImprestAction.REQUEST_ACCOUNTING_REVISION,
        previous_status=previous,
        intents=[
            _intent(
                request,
                NotificationAudience.REQUESTER,
                NotificationKind.ACCOUNTING_REVISION_REQUESTED,
                reason=reason,
                total_amount=_format_money(accounting.total_amount),
            )
        ],
    )


# ---------------------------------------------------------------------------
# Overdue sweep
# ---------------------------------------------------------------------------


def mark_overdue(
    request: ImprestRequest,
    *,
    today: date,
    now: datetime | None = None,
) -> TransitionResult:
    """Flag a disbursed request whose accounting due date has passed."""
    previous = _authorize(request, ImprestAction.CHECK_OVERDUE, AuthContext.system(), today=today)
    now = now or now_utc()

    _move(request, ImprestAction.CHECK_OVERDUE, ImprestStatus.OVERDUE, now)

    return TransitionResult(
        request=request,
        action=ImprestAction.CHECK_OVERDUE,
        previous_status=previous,
        intents=[
            _intent(request, NotificationAudience.REQUESTER, NotificationKind.ACCOUNTING_OVERDUE),
            _intent(request, NotificationAudience.DEPARTMENT_HOD, NotificationKind.ACCOUNTING_OVERDUE_HOD),
        ],
    )
