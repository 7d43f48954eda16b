from __future__ import annotations

import enum


class ImprestStatus(enum.StrEnum):
    """State machine for imprest requests."""

    PENDING_HOD = "pending_hod"
    PENDING_ACCOUNTANT = "pending_accountant"
    APPROVED = "approved"
    REJECTED = "rejected"
    DISBURSED = "disbursed"
    PENDING_ACKNOWLEDGMENT = "pending_acknowledgment"
    DISPUTED = "disputed"
    RESOLVED_DISPUTE = "resolved_dispute"
    CANCELLED = "cancelled"
    PENDING_ACCOUNTING_APPROVAL = "pending_accounting_approval"
    ACCOUNTED = "accounted"
    OVERDUE = "overdue"
    REVISION_REQUESTED = "revision_requested"


TERMINAL_STATUSES = frozenset({ImprestStatus.REJECTED, ImprestStatus.CANCELLED, ImprestStatus.ACCOUNTED})


class PaymentType(enum.StrEnum):
    """What the advance is for."""

    CONTINGENCY_CASH = "Contingency Cash"
    TRAVEL_CASH = "Travel Cash"
    PURCHASE_CASH = "Purchase Cash"
    OTHERS = "Others"


class Role(enum.StrEnum):
    """Roles recognised by the imprest workflow."""

    EMPLOYEE = "employee"
    HOD = "hod"
    ACCOUNTANT = "accountant"
    ADMIN = "admin"


class ImprestAction(enum.StrEnum):
    """Operations that move a request between states."""

    APPROVE_BY_HOD = "approve_by_hod"
    APPROVE_BY_ACCOUNTANT = "approve_by_accountant"
    REJECT = "reject"
    REQUEST_REVISION = "request_revision"
    RESUBMIT = "resubmit"
    RECORD_DISBURSEMENT = "record_disbursement"
    ACKNOWLEDGE_RECEIPT = "acknowledge_receipt"
    RESOLVE_DISPUTE = "resolve_dispute"
    SUBMIT_ACCOUNTING = "submit_accounting"
    APPROVE_ACCOUNTING = "approve_accounting"
    REQUEST_ACCOUNTING_REVISION = "request_accounting_revision"
    CHECK_OVERDUE = "check_overdue"


class NotificationAudience(enum.StrEnum):
    """Who a notification intent is addressed to."""

    REQUESTER = "requester"
    DEPARTMENT_HOD = "department_hod"
    ACCOUNTANTS = "accountants"
    ADMINS = "admins"


class NotificationKind(enum.StrEnum):
    """Message templates the dispatcher knows how to render."""

    REQUEST_SUBMITTED = "request_submitted"
    HOD_APPROVED_FOR_ACCOUNTANT = "hod_approved_for_accountant"
    HOD_APPROVED = "hod_approved"
    ACCOUNTANT_APPROVED = "accountant_approved"
    REQUEST_REJECTED = "request_rejected"
    REVISION_REQUESTED = "revision_requested"
    REQUEST_RESUBMITTED = "request_resubmitted"
    FUNDS_DISBURSED = "funds_disbursed"
    RECEIPT_CONFIRMED = "receipt_confirmed"
    DISPUTE_RAISED_ADMIN = "dispute_raised_admin"
    DISPUTE_RAISED = "dispute_raised"
    DISPUTE_RESOLVED = "dispute_resolved"
    REQUEST_CANCELLED = "request_cancelled"
    ACCOUNTING_SUBMITTED = "accounting_submitted"
    ACCOUNTING_APPROVED = "accounting_approved"
    ACCOUNTING_REVISION_REQUESTED = "accounting_revision_requested"
    ACCOUNTING_OVERDUE = "accounting_overdue"
    ACCOUNTING_OVERDUE_HOD = "accounting_overdue_hod"


class AuditEntityType(enum.StrEnum):
    """Entity type recorded in the audit log."""

    IMPREST_REQUEST = "IMPREST_REQUEST"


class AuditAction(enum.StrEnum):
    """Action recorded in the audit log."""

    CREATE = "CREATE"
    APPROVE_BY_HOD = "APPROVE_BY_HOD"
    APPROVE_BY_ACCOUNTANT = "APPROVE_BY_ACCOUNTANT"
    REJECT = "REJECT"
    REQUEST_REVISION = "REQUEST_REVISION"
    RESUBMIT = "RESUBMIT"
    DISBURSE = "DISBURSE"
    ACKNOWLEDGE = "ACKNOWLEDGE"
    RESOLVE_DISPUTE = "RESOLVE_DISPUTE"
    SUBMIT_ACCOUNTING = "SUBMIT_ACCOUNTING"
    APPROVE_ACCOUNTING = "APPROVE_ACCOUNTING"
    REQUEST_ACCOUNTING_REVISION = "REQUEST_ACCOUNTING_REVISION"
    MARK_OVERDUE = "MARK_OVERDUE"
