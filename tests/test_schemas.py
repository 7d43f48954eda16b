"""Unit tests for request payloads, auth context and header parsing."""

from __future__ import annotations

import uuid
from decimal import Decimal

import pytest
from pydantic import ValidationError

from imprest.api.deps import parse_roles
from imprest.exceptions import ValidationFailedError
from imprest.models.enums import PaymentType, Role
from imprest.schemas.auth import SYSTEM_ACTOR_ID, AuthContext
from imprest.schemas.request import (
    AccountingPayload,
    CreateImprestPayload,
    DisbursementPayload,
    ReceiptLine,
)

# ---------------------------------------------------------------------------
# CreateImprestPayload
# ---------------------------------------------------------------------------


def test_create_payload_valid() -> None:
    p = CreateImprestPayload(
        payment_reason="Trip",
        currency="GHS",
        amount=Decimal("150.50"),
        payment_type=PaymentType.CONTINGENCY_CASH,
        explanation="Emergency repairs",
    )
    assert p.attachments == []
    assert p.payment_type == "Contingency Cash"


def test_create_payload_rejects_unknown_payment_type() -> None:
    with pytest.raises(ValidationError):
        CreateImprestPayload(
            payment_reason="Trip",
            currency="GHS",
            amount=Decimal("1"),
            payment_type="Petty Cash",  # type: ignore[arg-type]
            explanation="x",
        )


@pytest.mark.parametrize("amount", ["0", "-1", "1.001"])
def test_create_payload_rejects_bad_amounts(amount: str) -> None:
    with pytest.raises(ValidationError):
        CreateImprestPayload(
            payment_reason="Trip",
            currency="GHS",
            amount=Decimal(amount),
            payment_type=PaymentType.OTHERS,
            explanation="x",
        )


def test_disbursement_payload_requires_positive_amount() -> None:
    with pytest.raises(ValidationError):
        DisbursementPayload(amount=Decimal("0"))


def test_accounting_payload_defaults_to_empty() -> None:
    p = AccountingPayload()
    assert p.receipts == []
    assert p.receipt_files == []


def test_receipt_line_requires_description() -> None:
    with pytest.raises(ValidationError):
        ReceiptLine(description="", amount=Decimal("1"))


# ---------------------------------------------------------------------------
# AuthContext
# ---------------------------------------------------------------------------


def test_auth_context_defaults_to_employee() -> None:
    auth = AuthContext(user_id=uuid.uuid4())
    assert auth.roles == frozenset({"employee"})
    assert auth.is_system is False


def test_system_actor() -> None:
    system = AuthContext.system()
    assert system.is_system is True
    assert system.user_id == SYSTEM_ACTOR_ID
    assert not system.has_any_role(*Role)


# ---------------------------------------------------------------------------
# X-Roles header
# ---------------------------------------------------------------------------


def test_parse_roles_normalises_case_and_spacing() -> None:
    assert parse_roles(" HOD, employee ,") == frozenset({"hod", "employee"})


def test_parse_roles_defaults_to_employee() -> None:
    assert parse_roles("") == frozenset({"employee"})


def test_parse_roles_rejects_unknown_roles() -> None:
    with pytest.raises(ValidationFailedError, match="system"):
        parse_roles("admin,system")
