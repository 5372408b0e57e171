"""Audit log entries for security-relevant events."""

from datetime import datetime
from enum import Enum

from sqlalchemy import Text
from sqlmodel import Field, SQLModel

from alive.models.base import TimestampMixin, generate_nanoid


class LogSeverity(str, Enum):
    """Severity of an audit entry, mirrored onto the Python log level."""

    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditLog(TimestampMixin, SQLModel, table=True):
    """One recorded event, with the request that triggered it when known."""

    __tablename__ = "audit_logs"

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    title: str = Field(max_length=255)
    message: str = Field(sa_type=Text)  # type: ignore[call-overload]
    severity: str = Field(default=LogSeverity.INFO.value, max_length=20, index=True)
    actor_id: str | None = Field(default=None, max_length=21, index=True)

    # Request context
    ip_address: str | None = Field(default=None, max_length=64)
    user_agent: str | None = Field(default=None, max_length=512)
    method: str | None = Field(default=None, max_length=10)
    path: str | None = Field(default=None, max_length=512)
    request_id: str | None = Field(default=None, max_length=64)


class AuditLogRead(SQLModel):
    """Schema for reading an audit entry."""

    id: str
    title: str
    message: str
    severity: str
    actor_id: str | None
    ip_address: str | None
    path: str | None
    request_id: str | None
    created_at: datetime | None = None
