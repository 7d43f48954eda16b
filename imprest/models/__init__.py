from sqlmodel import SQLModel

from imprest.models.audit import AuditLog
from imprest.models.base import TimestampMixin, UUIDBase
from imprest.models.enums import (
    AuditAction,
    AuditEntityType,
    ImprestAction,
    ImprestStatus,
    NotificationAudience,
    NotificationKind,
    PaymentType,
    Role,
)
from imprest.models.request import ImprestRequest

__all__ = [
    "AuditAction",
    "AuditEntityType",
    "AuditLog",
    "ImprestAction",
    "ImprestRequest",
    "ImprestStatus",
    "NotificationAudience",
    "NotificationKind",
    "PaymentType",
    "Role",
    "SQLModel",
    "TimestampMixin",
    "UUIDBase",
]
