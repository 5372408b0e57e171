"""Audit log for security-relevant events."""

import logging
from dataclasses import dataclass

from sqlalchemy import func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import col, select

from alive.models import AuditLog, LogSeverity

logger = logging.getLogger(__name__)

_LOG_LEVELS = {
    LogSeverity.INFO: logging.INFO,
    LogSeverity.WARNING: logging.WARNING,
    LogSeverity.ERROR: logging.ERROR,
    LogSeverity.CRITICAL: logging.CRITICAL,
}


@dataclass(frozen=True)
class RequestContext:
    """The parts of an HTTP request worth keeping with an audit entry."""

    ip_address: str | None = None
    user_agent: str | None = None
    method: str | None = None
    path: str | None = None
    request_id: str | None = None


class AuditLogService:
    """Records audit entries and mirrors them to the application log."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create_log(
        self,
        title: str,
        message: str,
        severity: LogSeverity = LogSeverity.INFO,
        actor_id: str | None = None,
        context: RequestContext | None = None,
    ) -> AuditLog | None:
        """Record an entry.

        Fire-and-forget for callers: a failure to persist is logged and
        None is returned.
        """
        logger.log(_LOG_LEVELS[severity], f"{title}: {message}")

        context = context or RequestContext()
        entry = AuditLog(
            title=title,
            message=message,
            severity=severity.value,
            actor_id=actor_id,
            ip_address=context.ip_address,
            user_agent=(context.user_agent or "")[:512] or None,
            method=context.method,
            path=context.path,
            request_id=context.request_id,
        )
        try:
            self.session.add(entry)
            await self.session.commit()
        except Exception:
            logger.exception(f"Failed to save audit log entry {title!r}")
            await self.session.rollback()
            return None
        return entry

    async def list_logs(
        self,
        offset: int = 0,
        limit: int = 20,
        severity: LogSeverity | None = None,
    ) -> tuple[list[AuditLog], int]:
        """Page through entries, newest first."""
        filters = [AuditLog.severity == severity.value] if severity else []

        count_stmt = select(func.count()).select_from(AuditLog).where(*filters)
        total = (await self.session.execute(count_stmt)).scalar_one()

        stmt = (
            select(AuditLog)
            .where(*filters)
            .order_by(col(AuditLog.created_at).desc())
            .offset(offset)
            .limit(limit)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all()), total
