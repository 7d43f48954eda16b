"""Tests for the lifecycle engine: transitions, event records and notification intents.

These run entirely in memory; persistence is covered in test_requests.py.
"""

from __future__ import annotations

import uuid
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import pytest

from imprest.exceptions import PreconditionFailedError, UnauthorizedError, ValidationFailedError
from imprest.models.enums import ImprestStatus, NotificationAudience, NotificationKind, PaymentType, Role
from imprest.models.records import (
    AccountingRecord,
    AcknowledgmentRecord,
    ApprovalRecord,
    AttachmentRef,
    DisbursementRecord,
    RevisionRecord,
)
from imprest.schemas.auth import AuthContext
from imprest.schemas.request import (
    AccountingPayload,
    AcknowledgmentPayload,
    ApprovalPayload,
    CreateImprestPayload,
    DisbursementPayload,
    DisputeResolutionPayload,
    ReceiptLine,
    RejectionPayload,
    RevisionPayload,
)
from imprest.services import lifecycle
from imprest.services.directory import UserInfo

NOW = datetime(2026, 3, 2, 10, 30, tzinfo=UTC)

EMPLOYEE = UserInfo(
    id=uuid.uuid4(),
    first_name="Ama",
    last_name="Mensah",
    email="ama@example.com",
    department="Engineering",
)
REQUESTER = AuthContext(user_id=EMPLOYEE.id)
HOD = AuthContext(user_id=uuid.uuid4(), roles=frozenset({Role.HOD.value}))
ACCOUNTANT = AuthContext(user_id=uuid.uuid4(), roles=frozenset({Role.ACCOUNTANT.value}))
ADMIN = AuthContext(user_id=uuid.uuid4(), roles=frozenset({Role.ADMIN.value}))


def _file(name: str) -> AttachmentRef:
    return AttachmentRef(file_name=name, file_url=f"https://files.example.com/{name}", uploaded_at=NOW)


def _create(amount: str = "1000") -> lifecycle.TransitionResult:
    payload = CreateImprestPayload(
        payment_reason="Field trip to Kumasi",
        currency="usd",
        amount=Decimal(amount),
        payment_type=PaymentType.TRAVEL_CASH,
        explanation="Site survey for the new branch",
        attachments=[_file("budget.pdf")],
    )
    return lifecycle.create_request(EMPLOYEE, payload, now=NOW)


def _approved(amount: str = "1000"):
    request = _create(amount).request
    lifecycle.approve_by_hod(request, HOD, ApprovalPayload(), now=NOW)
    lifecycle.approve_by_accountant(request, ACCOUNTANT, ApprovalPayload(), now=NOW)
    return request


def _disbursed(amount: str = "900", *, at: datetime = NOW):
    request = _approved()
    lifecycle.record_disbursement(request, ACCOUNTANT, DisbursementPayload(amount=Decimal(amount)), now=at)
    lifecycle.acknowledge_receipt(request, REQUESTER, AcknowledgmentPayload(received=True), now=at)
    return request


def _accounting(*amounts: str) -> AccountingPayload:
    return AccountingPayload(
        receipts=[ReceiptLine(description=f"line {i}", amount=Decimal(a)) for i, a in enumerate(amounts)],
        receipt_files=[_file(f"r{i}.pdf") for i, _ in enumerate(amounts)],
        comments="All receipts attached",
    )


def _audiences(result: lifecycle.TransitionResult) -> list[tuple[NotificationAudience, NotificationKind]]:
    return [(i.audience, i.kind) for i in result.intents]


# ---------------------------------------------------------------------------
# Creation
# ---------------------------------------------------------------------------


def test_create_starts_pending_hod() -> None:
    result = _create()
    request = result.request

    assert result.status == ImprestStatus.PENDING_HOD
    assert result.previous_status is None
    assert request.requested_by == EMPLOYEE.id
    assert request.employee_name == "Ama Mensah"
    assert request.department == "Engineering"
    assert request.currency == "USD"
    assert request.amount == Decimal("1000.00")
    assert request.due_date == NOW + timedelta(hours=72)
    assert request.has_dispute_history is False
    assert len(request.attachments) == 1
    assert _audiences(result) == [(NotificationAudience.DEPARTMENT_HOD, NotificationKind.REQUEST_SUBMITTED)]


def test_create_rejects_blank_explanation() -> None:
    payload = CreateImprestPayload(
        payment_reason="Trip",
        currency="USD",
        amount=Decimal("10"),
        payment_type=PaymentType.OTHERS,
        explanation="   ",
    )
    with pytest.raises(ValidationFailedError):
        lifecycle.create_request(EMPLOYEE, payload, now=NOW)


# ---------------------------------------------------------------------------
# Approval stage
# ---------------------------------------------------------------------------


def test_hod_approval_notifies_accountants_and_requester() -> None:
    request = _create().request
    result = lifecycle.approve_by_hod(request, HOD, ApprovalPayload(comments="Fine"), now=NOW)

    assert result.status == ImprestStatus.PENDING_ACCOUNTANT
    assert result.previous_status == ImprestStatus.PENDING_HOD
    approval = request.get_record("hod_approval", ApprovalRecord)
    assert approval is not None
    assert approval.approved_by == HOD.user_id
    assert approval.comments == "Fine"
    assert _audiences(result) == [
        (NotificationAudience.ACCOUNTANTS, NotificationKind.HOD_APPROVED_FOR_ACCOUNTANT),
        (NotificationAudience.REQUESTER, NotificationKind.HOD_APPROVED),
    ]


def test_accountant_approval_moves_to_approved() -> None:
    request = _approved()
    assert request.status == ImprestStatus.APPROVED
    assert request.get_record("accountant_approval", ApprovalRecord) is not None


def test_reject_requires_reason() -> None:
    request = _create().request
    with pytest.raises(ValidationFailedError):
        lifecycle.reject(request, HOD, RejectionPayload(reason="  "), now=NOW)
    assert request.status == ImprestStatus.PENDING_HOD
    assert request.rejection is None


def test_reject_from_pending_accountant() -> None:
    request = _create().request
    lifecycle.approve_by_hod(request, HOD, ApprovalPayload(), now=NOW)
    result = lifecycle.reject(request, ACCOUNTANT, RejectionPayload(reason="Over budget"), now=NOW)

    assert result.status == ImprestStatus.REJECTED
    assert request.rejection is not None
    assert request.rejection["reason"] == "Over budget"
    assert _audiences(result) == [(NotificationAudience.REQUESTER, NotificationKind.REQUEST_REJECTED)]


def test_reject_after_approval_leaves_request_unchanged() -> None:
    request = _approved()
    before = request.model_dump()

    with pytest.raises(PreconditionFailedError):
        lifecycle.reject(request, ACCOUNTANT, RejectionPayload(reason="Too late"), now=NOW)

    assert request.model_dump() == before


def test_wrong_actor_raises_unauthorized_without_mutation() -> None:
    request = _create().request
    with pytest.raises(UnauthorizedError):
        lifecycle.approve_by_hod(request, ACCOUNTANT, ApprovalPayload(), now=NOW)
    assert request.status == ImprestStatus.PENDING_HOD
    assert request.hod_approval is None


def test_revision_and_resubmit_return_to_hod() -> None:
    request = _create().request
    result = lifecycle.request_revision(request, HOD, RevisionPayload(reason="Attach a quote"), now=NOW)
    assert result.status == ImprestStatus.REVISION_REQUESTED
    assert _audiences(result) == [(NotificationAudience.REQUESTER, NotificationKind.REVISION_REQUESTED)]

    later = NOW + timedelta(hours=2)
    result = lifecycle.resubmit(request, REQUESTER, now=later)
    assert result.status == ImprestStatus.PENDING_HOD
    revision = request.get_record("revision", RevisionRecord)
    assert revision is not None
    assert revision.reason == "Attach a quote"
    assert revision.resubmitted_at == later
    assert _audiences(result) == [(NotificationAudience.DEPARTMENT_HOD, NotificationKind.REQUEST_RESUBMITTED)]


def test_only_requester_can_resubmit() -> None:
    request = _create().request
    lifecycle.request_revision(request, HOD, RevisionPayload(reason="Attach a quote"), now=NOW)
    with pytest.raises(UnauthorizedError):
        lifecycle.resubmit(request, HOD, now=NOW)


# ---------------------------------------------------------------------------
# Disbursement and disputes
# ---------------------------------------------------------------------------


def test_disbursement_sets_due_date_from_disbursal_time() -> None:
    request = _approved()
    disbursed_at = NOW + timedelta(days=3, minutes=7)
    result = lifecycle.record_disbursement(
        request, ACCOUNTANT, DisbursementPayload(amount=Decimal("900"), comments="Cash"), now=disbursed_at
    )

    assert result.status == ImprestStatus.PENDING_ACKNOWLEDGMENT
    disbursement = request.get_record("disbursement", DisbursementRecord)
    assert disbursement is not None
    assert disbursement.amount == Decimal("900.00")
    assert request.due_date == disbursement.disbursed_at + timedelta(hours=72)
    assert request.amount == Decimal("1000.00")
    assert _audiences(result) == [(NotificationAudience.REQUESTER, NotificationKind.FUNDS_DISBURSED)]


def test_disbursement_cannot_exceed_requested_amount() -> None:
    request = _approved("1000")
    with pytest.raises(ValidationFailedError, match="cannot exceed"):
        lifecycle.record_disbursement(request, ACCOUNTANT, DisbursementPayload(amount=Decimal("1000.01")), now=NOW)
    assert request.status == ImprestStatus.APPROVED
    assert request.disbursement is None


def test_acknowledge_receipt_moves_to_disbursed() -> None:
    request = _disbursed()
    assert request.status == ImprestStatus.DISBURSED
    ack = request.get_record("acknowledgment", AcknowledgmentRecord)
    assert ack is not None
    assert ack.received is True


def test_dispute_then_resolution_lands_in_resolved_dispute() -> None:
    request = _approved()
    lifecycle.record_disbursement(request, ACCOUNTANT, DisbursementPayload(amount=Decimal("1000")), now=NOW)
    due_date = request.due_date

    result = lifecycle.acknowledge_receipt(
        request, REQUESTER, AcknowledgmentPayload(received=False, comments="Nothing arrived"), now=NOW
    )
    assert result.status == ImprestStatus.DISPUTED
    assert request.has_dispute_history is True
    assert _audiences(result) == [
        (NotificationAudience.ADMINS, NotificationKind.DISPUTE_RAISED_ADMIN),
        (NotificationAudience.REQUESTER, NotificationKind.DISPUTE_RAISED),
    ]

    result = lifecycle.resolve_dispute(request, ADMIN, DisputeResolutionPayload(resolution="disbursed"), now=NOW)
    assert result.status == ImprestStatus.RESOLVED_DISPUTE
    assert _audiences(result) == [(NotificationAudience.REQUESTER, NotificationKind.DISPUTE_RESOLVED)]

    result = lifecycle.acknowledge_receipt(request, REQUESTER, AcknowledgmentPayload(received=True), now=NOW)
    assert result.status == ImprestStatus.RESOLVED_DISPUTE
    assert request.has_dispute_history is True
    assert request.due_date == due_date


def test_second_dispute_after_resolution() -> None:
    request = _approved()
    lifecycle.record_disbursement(request, ACCOUNTANT, DisbursementPayload(amount=Decimal("1000")), now=NOW)
    lifecycle.acknowledge_receipt(request, REQUESTER, AcknowledgmentPayload(received=False), now=NOW)
    lifecycle.resolve_dispute(request, ADMIN, DisputeResolutionPayload(resolution="disbursed"), now=NOW)

    result = lifecycle.acknowledge_receipt(request, REQUESTER, AcknowledgmentPayload(received=False), now=NOW)
    assert result.status == ImprestStatus.DISPUTED


def test_other_resolution_cancels() -> None:
    request = _approved()
    lifecycle.record_disbursement(request, ACCOUNTANT, DisbursementPayload(amount=Decimal("1000")), now=NOW)
    lifecycle.acknowledge_receipt(request, REQUESTER, AcknowledgmentPayload(received=False), now=NOW)

    result = lifecycle.resolve_dispute(
        request, ADMIN, DisputeResolutionPayload(resolution="cancelled", admin_comments="Cheque bounced"), now=NOW
    )
    assert result.status == ImprestStatus.CANCELLED
    assert request.dispute_resolution is not None
    assert request.dispute_resolution["admin_comments"] == "Cheque bounced"
    assert _audiences(result) == [(NotificationAudience.REQUESTER, NotificationKind.REQUEST_CANCELLED)]


@pytest.mark.parametrize("resolution", ["Disbursed", " disbursed ", "DISBURSED", "disbursed."])
def test_only_exact_disbursed_reopens_acknowledgment(resolution: str) -> None:
    request = _approved()
    lifecycle.record_disbursement(request, ACCOUNTANT, DisbursementPayload(amount=Decimal("1000")), now=NOW)
    lifecycle.acknowledge_receipt(request, REQUESTER, AcknowledgmentPayload(received=False), now=NOW)

    result = lifecycle.resolve_dispute(request, ADMIN, DisputeResolutionPayload(resolution=resolution), now=NOW)
    assert result.status == ImprestStatus.CANCELLED


# ---------------------------------------------------------------------------
# Accounting
# ---------------------------------------------------------------------------


def test_full_happy_path() -> None:
    request = _disbursed("900")

    result = lifecycle.submit_accounting(request, REQUESTER, _accounting("400", "300"), now=NOW)
    assert result.status == ImprestStatus.PENDING_ACCOUNTING_APPROVAL
    accounting = request.get_record("accounting", AccountingRecord)
    assert accounting is not None
    assert accounting.total_amount == Decimal("700.00")
    assert accounting.balance == Decimal("200.00")
    assert len(accounting.receipts) == 2
    assert _audiences(result) == [(NotificationAudience.ACCOUNTANTS, NotificationKind.ACCOUNTING_SUBMITTED)]
    assert result.intents[0].payload["overspent"] == "No"

    result = lifecycle.approve_accounting(request, ACCOUNTANT, ApprovalPayload(comments="Balance returned"), now=NOW)
    assert result.status == ImprestStatus.ACCOUNTED
    assert _audiences(result) == [(NotificationAudience.REQUESTER, NotificationKind.ACCOUNTING_APPROVED)]


def test_approve_accounting_keeps_submitter_comments() -> None:
    request = _disbursed()
    lifecycle.submit_accounting(request, REQUESTER, _accounting("100"), now=NOW)
    lifecycle.approve_accounting(request, ACCOUNTANT, ApprovalPayload(comments="Verified"), now=NOW)

    accounting = request.get_record("accounting", AccountingRecord)
    assert accounting is not None
    assert accounting.comments == "All receipts attached\n[Accountant Approval] Verified"
    assert accounting.approved_by == ACCOUNTANT.user_id


@pytest.mark.parametrize(
    ("existing", "comments", "expected"),
    [
        (None, None, None),
        ("Mine", None, "Mine"),
        (None, "Ok", "[Accountant Approval] Ok"),
        ("Mine", "Ok", "Mine\n[Accountant Approval] Ok"),
    ],
)
def test_append_approval_comment(existing: str | None, comments: str | None, expected: str | None) -> None:
    assert lifecycle.append_approval_comment(existing, comments) == expected


def test_overspend_is_reported_not_refused() -> None:
    request = _disbursed("500")
    result = lifecycle.submit_accounting(request, REQUESTER, _accounting("450", "100"), now=NOW)
    accounting = request.get_record("accounting", AccountingRecord)
    assert accounting is not None
    assert accounting.balance == Decimal("-50.00")
    assert result.intents[0].payload["overspent"] == "Yes"


def test_mismatched_receipts_leave_request_disbursed() -> None:
    request = _disbursed()
    payload = AccountingPayload(
        receipts=[ReceiptLine(description="Fuel", amount=Decimal("10"))],
        receipt_files=[],
    )
    with pytest.raises(ValidationFailedError):
        lifecycle.submit_accounting(request, REQUESTER, payload, now=NOW)
    assert request.status == ImprestStatus.DISBURSED
    assert request.accounting is None


def test_accounting_revision_allows_resubmission() -> None:
    request = _disbursed()
    lifecycle.submit_accounting(request, REQUESTER, _accounting("100"), now=NOW)

    result = lifecycle.request_accounting_revision(
        request, ACCOUNTANT, RevisionPayload(reason="Receipt unreadable"), now=NOW
    )
    assert result.status == ImprestStatus.DISBURSED
    assert request.get_record("accounting_revision", RevisionRecord) is not None
    assert _audiences(result) == [(NotificationAudience.REQUESTER, NotificationKind.ACCOUNTING_REVISION_REQUESTED)]

    lifecycle.submit_accounting(request, REQUESTER, _accounting("80", "20"), now=NOW)
    accounting = request.get_record("accounting", AccountingRecord)
    assert accounting is not None
    assert len(accounting.receipts) == 2


# ---------------------------------------------------------------------------
# Overdue
# ---------------------------------------------------------------------------


def test_mark_overdue_notifies_requester_and_hod() -> None:
    request = _disbursed(at=NOW)
    result = lifecycle.mark_overdue(request, today=date(2026, 3, 10))

    assert result.status == ImprestStatus.OVERDUE
    assert result.previous_status == ImprestStatus.DISBURSED
    assert _audiences(result) == [
        (NotificationAudience.REQUESTER, NotificationKind.ACCOUNTING_OVERDUE),
        (NotificationAudience.DEPARTMENT_HOD, NotificationKind.ACCOUNTING_OVERDUE_HOD),
    ]


def test_mark_overdue_before_due_date_is_refused() -> None:
    request = _disbursed(at=NOW)
    with pytest.raises(PreconditionFailedError):
        lifecycle.mark_overdue(request, today=date(2026, 3, 4))
    assert request.status == ImprestStatus.DISBURSED
