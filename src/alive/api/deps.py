"""FastAPI dependencies for dependency injection."""

import logging
from typing import Annotated

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from alive.api.middleware import get_request_id
from alive.database import get_session
from alive.models import Identity
from alive.services.audit import AuditLogService, RequestContext
from alive.services.auth import verify_token
from alive.services.credentials import CredentialService
from alive.services.identity_store import IdentityStore
from alive.services.notifications import NotificationGateway, get_notification_gateway
from alive.services.rate_limit import (
    RateLimitType,
    check_rate_limit,
    get_client_ip,
    rate_limit_headers,
)

logger = logging.getLogger(__name__)

# Type alias for database session dependency
SessionDep = Annotated[AsyncSession, Depends(get_session)]

# Security scheme
security = HTTPBearer(auto_error=False)


def get_request_context(request: Request) -> RequestContext:
    """Capture request details for audit entries."""
    return RequestContext(
        ip_address=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
        method=request.method,
        path=request.url.path,
        request_id=get_request_id(),
    )


RequestContextDep = Annotated[RequestContext, Depends(get_request_context)]
NotificationsDep = Annotated[NotificationGateway, Depends(get_notification_gateway)]


def get_identity_store(session: SessionDep) -> IdentityStore:
    return IdentityStore(session)


def get_audit_log(session: SessionDep) -> AuditLogService:
    return AuditLogService(session)


StoreDep = Annotated[IdentityStore, Depends(get_identity_store)]
AuditDep = Annotated[AuditLogService, Depends(get_audit_log)]


def get_credential_service(
    store: StoreDep,
    audit: AuditDep,
    notifications: NotificationsDep,
) -> CredentialService:
    """Wire the credential service to this request's session."""
    return CredentialService(store=store, notifications=notifications, audit=audit)


CredentialServiceDep = Annotated[CredentialService, Depends(get_credential_service)]


async def get_current_user(
    session: SessionDep,
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> Identity:
    """Get current authenticated identity or raise 401."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )

    try:
        return await verify_token(session, credentials.credentials)
    except Exception as e:
        logger.debug(f"Token verification failed: {e!r}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        ) from e


async def get_admin_user(
    user: Annotated[Identity, Depends(get_current_user)],
) -> Identity:
    """Get current identity and verify it holds the admin role."""
    if not user.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


# Type aliases for common dependencies
CurrentUser = Annotated[Identity, Depends(get_current_user)]
AdminUser = Annotated[Identity, Depends(get_admin_user)]


class RateLimitDependency:
    """Dependency class for rate limiting endpoints.

    Usage:
        @router.post("/endpoint")
        async def endpoint(
            rate_limit: Annotated[None, Depends(RateLimitDependency(RateLimitType.AUTH))]
        ):
            ...
    """

    def __init__(self, limit_type: RateLimitType) -> None:
        self.limit_type = limit_type

    async def __call__(self, request: Request) -> None:
        """Check rate limit and raise 429 if exceeded."""
        result = await check_rate_limit(request, self.limit_type)

        if not result.success:
            headers = rate_limit_headers(result)
            retry_after = headers.get("Retry-After", "60")
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=f"Rate limit exceeded. Please try again in {retry_after} seconds.",
                headers=headers,
            )


# Pre-configured rate limit dependencies
AuthRateLimit = Annotated[None, Depends(RateLimitDependency(RateLimitType.AUTH))]
OtpRateLimit = Annotated[None, Depends(RateLimitDependency(RateLimitType.OTP))]
