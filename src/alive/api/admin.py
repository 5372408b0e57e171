"""Admin endpoints for reviewing the audit log."""

from typing import Annotated

from fastapi import APIRouter, Query

from alive.api.deps import AdminUser, AuditDep
from alive.models import AuditLogRead, LogSeverity
from alive.schemas import PaginatedResponse

router = APIRouter()


@router.get("/audit-logs", response_model=PaginatedResponse[AuditLogRead])
async def list_audit_logs(
    audit: AuditDep,
    _admin: AdminUser,
    severity: Annotated[LogSeverity | None, Query()] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    """List audit entries, newest first."""
    entries, total = await audit.list_logs(offset=offset, limit=limit, severity=severity)
    return PaginatedResponse[AuditLogRead](
        items=[AuditLogRead.model_validate(entry) for entry in entries],
        total=total,
        offset=offset,
        limit=limit,
    )
