"""Transition table for imprest requests and the validator that enforces it.

Validation never raises and never touches the request: it returns a
``TransitionDenial`` describing why the action is not allowed, or ``None``.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import UTC, date, datetime, time
from typing import TYPE_CHECKING

from imprest.exceptions import AppError, PreconditionFailedError, UnauthorizedError
from imprest.models.base import ensure_utc
from imprest.models.enums import ImprestAction, ImprestStatus, Role

if TYPE_CHECKING:
    from imprest.models.request import ImprestRequest
    from imprest.schemas.auth import AuthContext


class DenialKind(enum.StrEnum):
    UNAUTHORIZED = "unauthorized"
    PRECONDITION_FAILED = "precondition_failed"


@dataclass(frozen=True)
class TransitionDenial:
    """Why an action was refused."""

    kind: DenialKind
    reason: str

    def to_error(self) -> AppError:
        if self.kind is DenialKind.UNAUTHORIZED:
            return UnauthorizedError(self.reason)
        return PreconditionFailedError(self.reason)


class ActorKind(enum.StrEnum):
    ROLE = "role"
    REQUESTER = "requester"
    SYSTEM = "system"


@dataclass(frozen=True)
class TransitionRule:
    """Who may perform an action, from which states, and where it can lead."""

    from_statuses: frozenset[ImprestStatus]
    to_statuses: frozenset[ImprestStatus]
    status_message: str
    actor: ActorKind = ActorKind.ROLE
    roles: frozenset[Role] = field(default_factory=frozenset)


def _rule(
    from_statuses: set[ImprestStatus],
    to_statuses: set[ImprestStatus],
    status_message: str,
    *,
    actor: ActorKind = ActorKind.ROLE,
    roles: set[Role] | None = None,
) -> TransitionRule:
    return TransitionRule(
        from_statuses=frozenset(from_statuses),
        to_statuses=frozenset(to_statuses),
        status_message=status_message,
        actor=actor,
        roles=frozenset(roles or ()),
    )


S = ImprestStatus

TRANSITIONS: dict[ImprestAction, TransitionRule] = {
    ImprestAction.APPROVE_BY_HOD: _rule(
        {S.PENDING_HOD},
        {S.PENDING_ACCOUNTANT},
        "Imprest request is not pending HOD approval",
        roles={Role.HOD},
    ),
    ImprestAction.APPROVE_BY_ACCOUNTANT: _rule(
        {S.PENDING_ACCOUNTANT},
        {S.APPROVED},
        "Imprest request is not pending accountant approval",
        roles={Role.ACCOUNTANT},
    ),
    ImprestAction.REJECT: _rule(
        {S.PENDING_HOD, S.PENDING_ACCOUNTANT},
        {S.REJECTED},
        "Imprest request cannot be rejected in its current state",
        roles={Role.HOD, Role.ACCOUNTANT},
    ),
    ImprestAction.REQUEST_REVISION: _rule(
        {S.PENDING_HOD, S.PENDING_ACCOUNTANT},
        {S.REVISION_REQUESTED},
        "Revision can only be requested while the request is pending approval",
        roles={Role.HOD, Role.ACCOUNTANT},
    ),
    ImprestAction.RESUBMIT: _rule(
        {S.REVISION_REQUESTED},
        {S.PENDING_HOD},
        "Only requests sent back for revision can be resubmitted",
        actor=ActorKind.REQUESTER,
    ),
    ImprestAction.RECORD_DISBURSEMENT: _rule(
        {S.APPROVED},
        {S.PENDING_ACKNOWLEDGMENT},
        "Imprest request is not approved for disbursement",
        roles={Role.ACCOUNTANT},
    ),
    ImprestAction.ACKNOWLEDGE_RECEIPT: _rule(
        {S.PENDING_ACKNOWLEDGMENT, S.RESOLVED_DISPUTE},
        {S.DISBURSED, S.RESOLVED_DISPUTE, S.DISPUTED},
        "Imprest request is not pending acknowledgment",
        actor=ActorKind.REQUESTER,
    ),
    ImprestAction.RESOLVE_DISPUTE: _rule(
        {S.DISPUTED},
        {S.RESOLVED_DISPUTE, S.CANCELLED},
        "Imprest request is not in disputed status",
        roles={Role.ADMIN},
    ),
    ImprestAction.SUBMIT_ACCOUNTING: _rule(
        {S.DISBURSED},
        {S.PENDING_ACCOUNTING_APPROVAL},
        "Imprest must be disbursed before accounting",
        actor=ActorKind.REQUESTER,
    ),
    ImprestAction.APPROVE_ACCOUNTING: _rule(
        {S.PENDING_ACCOUNTING_APPROVAL},
        {S.ACCOUNTED},
        "Imprest accounting is not pending approval",
        roles={Role.ACCOUNTANT},
    ),
    ImprestAction.REQUEST_ACCOUNTING_REVISION: _rule(
        {S.PENDING_ACCOUNTING_APPROVAL},
        {S.DISBURSED},
        "Imprest accounting is not pending approval",
        roles={Role.ACCOUNTANT},
    ),
    ImprestAction.CHECK_OVERDUE: _rule(
        {S.DISBURSED},
        {S.OVERDUE},
        "Only disbursed requests can become overdue",
        actor=ActorKind.SYSTEM,
    ),
}


# Revision may only be requested by the approver the request is currently waiting on.
REVISION_STAGE_ROLES: dict[ImprestStatus, Role] = {
    S.PENDING_HOD: Role.HOD,
    S.PENDING_ACCOUNTANT: Role.ACCOUNTANT,
}


def start_of_day(day: date) -> datetime:
    """Midnight UTC at the start of ``day``."""
    return datetime.combine(day, time.min, tzinfo=UTC)


def _check_actor(rule: TransitionRule, request: ImprestRequest, actor: AuthContext) -> TransitionDenial | None:
    if rule.actor is ActorKind.SYSTEM:
        if not actor.is_system:
            return TransitionDenial(DenialKind.UNAUTHORIZED, "Only the scheduler can perform this action")
        return None
    if rule.actor is ActorKind.REQUESTER:
        if actor.user_id != request.requested_by:
            return TransitionDenial(DenialKind.UNAUTHORIZED, "Only the requester can perform this action")
        return None
    if not actor.has_any_role(*rule.roles):
        required = " or ".join(sorted(role.value for role in rule.roles))
        return TransitionDenial(DenialKind.UNAUTHORIZED, f"User does not hold the required role ({required})")
    return None


def validate_transition(
    request: ImprestRequest,
    action: ImprestAction,
    actor: AuthContext,
    *,
    today: date | None = None,
) -> TransitionDenial | None:
    """Return a denial if ``actor`` may not perform ``action`` on ``request`` now.

    The actor is checked before the status.
    """
    rule = TRANSITIONS[action]

    denial = _check_actor(rule, request, actor)
    if denial is not None:
        return denial

    if ImprestStatus(request.status) not in rule.from_statuses:
        return TransitionDenial(DenialKind.PRECONDITION_FAILED, rule.status_message)

    if action is ImprestAction.REQUEST_REVISION:
        stage_role = REVISION_STAGE_ROLES[ImprestStatus(request.status)]
        if not actor.has_role(stage_role):
            return TransitionDenial(
                DenialKind.UNAUTHORIZED, f"Only the {stage_role.value} can request revision at this stage"
            )

    if action is ImprestAction.CHECK_OVERDUE:
        cutoff = start_of_day(today or datetime.now(UTC).date())
        if ensure_utc(request.due_date) >= cutoff:
            return TransitionDenial(DenialKind.PRECONDITION_FAILED, "Imprest request is not past its due date")

    return None

