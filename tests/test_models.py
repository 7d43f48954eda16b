from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from decimal import Decimal

import pytest

from imprest.models import AuditLog, ImprestRequest, SQLModel
from imprest.models.base import ensure_utc
from imprest.models.enums import ImprestStatus
from imprest.models.records import ApprovalRecord, DisbursementRecord

EXPECTED_TABLES = {"audit_log", "imprest_request"}


def _request() -> ImprestRequest:
    return ImprestRequest(
        requested_by=uuid.uuid4(),
        employee_name="Ama Mensah",
        request_date=date(2026, 3, 2),
        payment_reason="Field trip",
        currency="USD",
        amount=Decimal("250.00"),
        payment_type="Purchase Cash",
        explanation="Stationery",
        due_date=datetime(2026, 3, 5, tzinfo=UTC),
    )


def test_all_tables_registered() -> None:
    table_names = set(SQLModel.metadata.tables.keys())
    assert EXPECTED_TABLES.issubset(table_names)


def test_imprest_request_defaults() -> None:
    request = _request()
    assert request.id is not None
    assert request.status == ImprestStatus.PENDING_HOD
    assert request.version == 1
    assert request.has_dispute_history is False
    assert request.attachments == []
    assert request.hod_approval is None


def test_record_round_trip_through_json_column() -> None:
    request = _request()
    approver = uuid.uuid4()
    approved_at = datetime(2026, 3, 2, 12, 0, tzinfo=UTC)

    request.set_record("hod_approval", ApprovalRecord(approved_by=approver, approved_at=approved_at))

    assert request.hod_approval == {
        "approved_by": str(approver),
        "approved_at": "2026-03-02T12:00:00Z",
        "comments": None,
    }
    record = request.get_record("hod_approval", ApprovalRecord)
    assert record is not None
    assert record.approved_by == approver
    assert record.approved_at == approved_at


def test_decimal_record_keeps_precision() -> None:
    request = _request()
    request.set_record(
        "disbursement",
        DisbursementRecord(
            disbursed_by=uuid.uuid4(), disbursed_at=datetime.now(UTC), amount=Decimal("199.99")
        ),
    )
    record = request.get_record("disbursement", DisbursementRecord)
    assert record is not None
    assert record.amount == Decimal("199.99")


def test_set_unknown_record_raises() -> None:
    with pytest.raises(ValueError, match="Unknown event record"):
        _request().set_record("payroll", ApprovalRecord(approved_by=uuid.uuid4(), approved_at=datetime.now(UTC)))


def test_ensure_utc_attaches_timezone_to_naive_values() -> None:
    naive = datetime(2026, 1, 1, 8, 0)
    assert ensure_utc(naive).tzinfo is UTC
    aware = datetime(2026, 1, 1, 8, 0, tzinfo=UTC)
    assert ensure_utc(aware) is aware


def test_audit_log_instantiation() -> None:
    log = AuditLog(
        actor_id=uuid.uuid4(),
        entity_type="IMPREST_REQUEST",
        entity_id=uuid.uuid4(),
        action="CREATE",
        after_json={"status": "pending_hod"},
    )
    assert log.before_json is None
    assert log.created_at is not None


def test_engine_options_per_backend() -> None:
    from imprest.db import engine_options

    sqlite = engine_options("sqlite+aiosqlite:///:memory:")
    assert sqlite["connect_args"] == {"check_same_thread": False}
    assert "pool_pre_ping" not in sqlite

    postgres = engine_options("postgresql+asyncpg://u:p@db:5432/imprest", echo=True)
    assert postgres == {"echo": True, "pool_pre_ping": True}
