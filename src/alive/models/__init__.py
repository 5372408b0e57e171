"""SQLModel database models."""

from alive.models.audit_log import AuditLog, AuditLogRead, LogSeverity
from alive.models.base import TimestampMixin
from alive.models.identity import (
    CODE_FIELDS,
    PHONE_PATTERN,
    SENSITIVE_FIELDS,
    CodePurpose,
    Identity,
    IdentityRead,
    IdentityStatus,
    IdentityUpdate,
)

__all__ = [
    "CODE_FIELDS",
    "PHONE_PATTERN",
    "SENSITIVE_FIELDS",
    "AuditLog",
    "AuditLogRead",
    "CodePurpose",
    "Identity",
    "IdentityRead",
    "IdentityStatus",
    "IdentityUpdate",
    "LogSeverity",
    "TimestampMixin",
]
