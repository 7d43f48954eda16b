# ruff: noqa: TC003
"""Notification intents and their fire-and-forget delivery.

The lifecycle engine only emits ``NotificationIntent`` values. After a
transition commits, ``dispatch_intents`` resolves each intent to concrete
recipients, renders the message and hands it to the configured dispatcher.
Delivery failures are logged and never propagate.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from pydantic import BaseModel

from imprest.config import get_settings
from imprest.models.enums import NotificationAudience, NotificationKind, Role
from imprest.services.directory import get_user_directory

if TYPE_CHECKING:
    from collections.abc import Iterable

    from imprest.services.directory import UserDirectory, UserInfo

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NotificationIntent:
    """A message the engine wants sent once the transition has committed."""

    audience: NotificationAudience
    kind: NotificationKind
    request_id: uuid.UUID
    requester_id: uuid.UUID
    department: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)


class OutboundNotification(BaseModel):
    """A rendered message for one recipient."""

    request_id: uuid.UUID
    recipient_id: uuid.UUID
    recipient_email: str
    recipient_phone: str | None = None
    kind: NotificationKind
    subject: str
    body: str
    sms: str


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class _Template:
    subject: str
    body: str
    sms: str


_TEMPLATES: dict[NotificationKind, _Template] = {
    NotificationKind.REQUEST_SUBMITTED: _Template(
        subject="New Imprest Request Pending Approval",
        body=(
            "A new imprest request requires your approval:\n\n"
            "- Employee: {employee_name}\n"
            "- Department: {department}\n"
            "- Amount: {currency} {amount}\n"
            "- Purpose: {payment_reason}\n"
            "- Type: {payment_type}\n"
            "- Attachments: {attachment_count}\n\n"
            "{explanation}"
        ),
        sms="New imprest request from {employee_name} ({currency} {amount}) pending your approval.",
    ),
    NotificationKind.HOD_APPROVED_FOR_ACCOUNTANT: _Template(
        subject="Imprest Request Pending Accountant Approval",
        body=(
            "An imprest request has been approved by HOD and requires your review:\n\n"
            "- Employee: {employee_name}\n"
            "- Department: {department}\n"
            "- Amount: {currency} {amount}\n"
            "- Purpose: {payment_reason}\n"
            "- HOD Comments: {comments}"
        ),
        sms="Imprest request from {employee_name} ({currency} {amount}) approved by HOD, pending your review.",
    ),
    NotificationKind.HOD_APPROVED: _Template(
        subject="Imprest Request Approved by HOD",
        body=(
            "Your imprest request has been approved by your HOD and is now pending accountant review:\n\n"
            "- Amount: {currency} {amount}\n"
            "- Purpose: {payment_reason}\n"
            "- HOD Comments: {comments}"
        ),
        sms="Your imprest request ({currency} {amount}) was approved by HOD and is pending accountant review.",
    ),
    NotificationKind.ACCOUNTANT_APPROVED: _Template(
        subject="Imprest Request Approved by Accountant",
        body=(
            "Your imprest request has been approved by the accountant:\n\n"
            "- Amount: {currency} {amount}\n"
            "- Purpose: {payment_reason}\n"
            "- Accountant Comments: {comments}\n\n"
            "The funds will be disbursed shortly. All expenses must be accounted for "
            "within {window_hours} hours of disbursement."
        ),
        sms="Your imprest request ({currency} {amount}) was approved by the accountant. Funds will be disbursed shortly.",
    ),
    NotificationKind.REQUEST_REJECTED: _Template(
        subject="Imprest Request Rejected",
        body=(
            "Your imprest request has been rejected:\n\n"
            "- Amount: {currency} {amount}\n"
            "- Purpose: {payment_reason}\n"
            "- Rejection Reason: {reason}"
        ),
        sms="Your imprest request ({currency} {amount}) has been rejected. Check email for details.",
    ),
    NotificationKind.REVISION_REQUESTED: _Template(
        subject="Imprest Request Returned for Revision",
        body=(
            "Your imprest request has been returned for revision:\n\n"
            "- Amount: {currency} {amount}\n"
            "- Purpose: {payment_reason}\n"
            "- Reason: {reason}\n\n"
            "Resubmit the request once the issue has been addressed."
        ),
        sms="Your imprest request ({currency} {amount}) was returned for revision.",
    ),
    NotificationKind.REQUEST_RESUBMITTED: _Template(
        subject="Imprest Request Resubmitted",
        body=(
            "An imprest request returned for revision has been resubmitted:\n\n"
            "- Employee: {employee_name}\n"
            "- Amount: {currency} {amount}\n"
            "- Purpose: {payment_reason}"
        ),
        sms="Imprest request from {employee_name} ({currency} {amount}) resubmitted for your approval.",
    ),
    NotificationKind.FUNDS_DISBURSED: _Template(
        subject="Imprest Funds Disbursed - Please Acknowledge Receipt",
        body=(
            "Your imprest funds have been disbursed:\n\n"
            "- Amount: {currency} {disbursed_amount}\n"
            "- Purpose: {payment_reason}\n"
            "- Due Date: {due_date}\n"
            "- Comments: {comments}\n\n"
            "Please confirm whether you have received the money. If you have NOT received it, "
            "report this through the portal so it can be investigated.\n\n"
            "All expenses must be accounted for by {due_date}. Unspent funds must be returned."
        ),
        sms="Your imprest funds ({currency} {disbursed_amount}) have been disbursed. Please acknowledge receipt.",
    ),
    NotificationKind.RECEIPT_CONFIRMED: _Template(
        subject="Money Receipt Acknowledged - Proceed with Expenses",
        body=(
            "Thank you for confirming receipt of your imprest funds.\n\n"
            "- Amount: {currency} {disbursed_amount}\n"
            "- Due Date for Accounting: {due_date}\n\n"
            "Keep all receipts and submit your accounting before the due date."
        ),
        sms="Receipt confirmed. Submit accounting by {due_date}.",
    ),
    NotificationKind.DISPUTE_RAISED_ADMIN: _Template(
        subject="URGENT: Imprest Disbursement Dispute Reported",
        body=(
            "A user has reported NOT receiving their imprest disbursement:\n\n"
            "- Employee: {employee_name}\n"
            "- Department: {department}\n"
            "- Amount: {currency} {disbursed_amount}\n"
            "- Purpose: {payment_reason}\n"
            "- Disbursed At: {disbursed_at}\n"
            "- User Comments: {comments}\n\n"
            "Please investigate and resolve the dispute."
        ),
        sms="URGENT: {employee_name} reports NOT receiving imprest funds ({currency} {disbursed_amount}).",
    ),
    NotificationKind.DISPUTE_RAISED: _Template(
        subject="Disbursement Issue Reported - Under Investigation",
        body=(
            "We have received your report that you did not receive the imprest funds.\n\n"
            "- Amount: {currency} {disbursed_amount}\n"
            "- Your Comments: {comments}\n\n"
            "Your report has been escalated to the administrators. "
            "Do not proceed with expenses until the issue is resolved."
        ),
        sms="Your disbursement issue has been reported to administrators. You will be notified once resolved.",
    ),
    NotificationKind.DISPUTE_RESOLVED: _Template(
        subject="Disbursement Issue Resolved - Please Check Again",
        body=(
            "Your disbursement issue has been resolved by the administrator.\n\n"
            "- Admin Comments: {admin_comments}\n"
            "- Amount: {currency} {disbursed_amount}\n\n"
            "Please confirm again whether you have now received the money."
        ),
        sms="Your disbursement issue was resolved. Please confirm receipt of {currency} {disbursed_amount}.",
    ),
    NotificationKind.REQUEST_CANCELLED: _Template(
        subject="Imprest Request Cancelled Due to Disbursement Issues",
        body=(
            "Your imprest request has been cancelled due to disbursement issues that could not be resolved.\n\n"
            "- Amount: {currency} {disbursed_amount}\n"
            "- Admin Comments: {admin_comments}\n\n"
            "You may submit a new imprest request if needed."
        ),
        sms="Your imprest request ({currency} {disbursed_amount}) has been cancelled. You may submit a new request.",
    ),
    NotificationKind.ACCOUNTING_SUBMITTED: _Template(
        subject="Imprest Accounting Pending Approval",
        body=(
            "An imprest accounting has been submitted and is pending your approval:\n\n"
            "- Employee: {employee_name}\n"
            "- Department: {department}\n"
            "- Disbursed Amount: {currency} {disbursed_amount}\n"
            "- Total Spent: {currency} {total_amount}\n"
            "- Balance: {currency} {balance}\n"
            "- Receipts: {receipt_count}\n"
            "- Overspent: {overspent}"
        ),
        sms="Imprest accounting from {employee_name} ({currency} {total_amount} spent) pending your approval.",
    ),
    NotificationKind.ACCOUNTING_APPROVED: _Template(
        subject="Imprest Accounting Approved",
        body=(
            "Your imprest accounting has been reviewed and approved.\n\n"
            "- Disbursed Amount: {currency} {disbursed_amount}\n"
            "- Total Spent: {currency} {total_amount}\n"
            "- Balance: {currency} {balance}"
        ),
        sms="Your imprest accounting has been approved. Balance: {currency} {balance}.",
    ),
    NotificationKind.ACCOUNTING_REVISION_REQUESTED: _Template(
        subject="Imprest Accounting Returned for Revision",
        body=(
            "Your imprest accounting has been returned for revision:\n\n"
            "- Total Spent: {currency} {total_amount}\n"
            "- Reason: {reason}\n\n"
            "Please correct and resubmit your accounting."
        ),
        sms="Your imprest accounting was returned for revision. Please resubmit.",
    ),
    NotificationKind.ACCOUNTING_OVERDUE: _Template(
        subject="URGENT: Imprest Accounting Overdue",
        body=(
            "Your imprest accounting is overdue:\n\n"
            "- Amount: {currency} {amount}\n"
            "- Purpose: {payment_reason}\n"
            "- Due Date: {due_date}\n\n"
            "Please submit your accounting immediately."
        ),
        sms="URGENT: Your imprest accounting is OVERDUE ({currency} {amount}). Submit immediately.",
    ),
    NotificationKind.ACCOUNTING_OVERDUE_HOD: _Template(
        subject="Employee Imprest Accounting Overdue",
        body=(
            "An imprest accounting from your department is overdue:\n\n"
            "- Name: {employee_name}\n"
            "- Department: {department}\n"
            "- Amount: {currency} {amount}\n"
            "- Due Date: {due_date}\n\n"
            "Please follow up with the employee."
        ),
        sms="{employee_name} has overdue imprest accounting ({currency} {amount}). Please follow up.",
    ),
}


class _TemplateValues(dict[str, Any]):
    def __missing__(self, key: str) -> str:
        return "-"


def render_notification(intent: NotificationIntent, recipient: UserInfo) -> OutboundNotification:
    """Render the intent's template for one recipient."""
    template = _TEMPLATES[intent.kind]
    settings = get_settings()
    values = _TemplateValues(
        {key: value for key, value in intent.payload.items() if value is not None},
        window_hours=settings.accounting_window_hours,
    )
    body = (
        f"Dear {recipient.full_name},\n\n"
        f"{template.body.format_map(values)}\n\n"
        f"Best regards,\n{settings.notification_sender}"
    )
    return OutboundNotification(
        request_id=intent.request_id,
        recipient_id=recipient.id,
        recipient_email=recipient.email,
        recipient_phone=recipient.phone_number,
        kind=intent.kind,
        subject=template.subject,
        body=body,
        sms=template.sms.format_map(values),
    )


# ---------------------------------------------------------------------------
# Dispatchers
# ---------------------------------------------------------------------------


@runtime_checkable
class NotificationDispatcher(Protocol):
    """Interface for the outbound email/SMS channel."""

    async def send(self, notification: OutboundNotification) -> None:
        """Deliver one rendered notification."""
        ...


class LoggingNotificationDispatcher:
    """Development dispatcher that writes messages to the log."""

    async def send(self, notification: OutboundNotification) -> None:
        logger.info(
            "Notification %s to %s for request %s: %s",
            notification.kind,
            notification.recipient_email,
            notification.request_id,
            notification.subject,
        )


class InMemoryNotificationDispatcher:
    """Collects notifications for inspection in tests."""

    def __init__(self, *, fail: bool = False) -> None:
        self.sent: list[OutboundNotification] = []
        self.fail = fail

    async def send(self, notification: OutboundNotification) -> None:
        if self.fail:
            msg = "Notification channel unavailable"
            raise ConnectionError(msg)
        self.sent.append(notification)

    def kinds(self) -> list[NotificationKind]:
        return [n.kind for n in self.sent]


_dispatcher: NotificationDispatcher = LoggingNotificationDispatcher()


def get_notification_dispatcher() -> NotificationDispatcher:
    """Return the configured dispatcher."""
    return _dispatcher


def set_notification_dispatcher(dispatcher: NotificationDispatcher) -> None:
    """Override the dispatcher (for testing or production wiring)."""
    global _dispatcher
    _dispatcher = dispatcher


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------


async def resolve_recipients(intent: NotificationIntent, directory: UserDirectory) -> list[UserInfo]:
    """Turn an intent's audience into the users who should receive it."""
    if intent.audience is NotificationAudience.REQUESTER:
        requester = await directory.get_user(intent.requester_id)
        return [requester] if requester is not None else []
    if intent.audience is NotificationAudience.DEPARTMENT_HOD:
        hods = await directory.find_users_by_role(Role.HOD, intent.department)
        if not hods and intent.department is not None:
            hods = await directory.find_users_by_role(Role.HOD)
        return hods
    if intent.audience is NotificationAudience.ACCOUNTANTS:
        return await directory.find_users_by_role(Role.ACCOUNTANT)
    return await directory.find_users_by_role(Role.ADMIN)


async def dispatch_intents(
    intents: Iterable[NotificationIntent],
    *,
    directory: UserDirectory | None = None,
    dispatcher: NotificationDispatcher | None = None,
) -> int:
    """Deliver intents to every recipient. Returns the number of messages sent.

    Never raises: every failure is logged and the remaining messages are still attempted.
    """
    directory = directory or get_user_directory()
    dispatcher = dispatcher or get_notification_dispatcher()
    sent = 0

    for intent in intents:
        try:
            recipients = await resolve_recipients(intent, directory)
        except Exception:
            logger.exception("Could not resolve recipients for %s on request %s", intent.kind, intent.request_id)
            continue

        if not recipients:
            logger.warning("No recipients for %s on request %s", intent.kind, intent.request_id)
            continue

        for recipient in recipients:
            try:
                await dispatcher.send(render_notification(intent, recipient))
                sent += 1
            except Exception:
                logger.exception(
                    "Failed to send %s to %s for request %s", intent.kind, recipient.id, intent.request_id
                )

    return sent
