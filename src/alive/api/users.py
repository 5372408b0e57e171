"""Account administration endpoints (admin only)."""

from datetime import UTC, datetime
from typing import Annotated

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, EmailStr, Field

from alive.api.deps import AdminUser, AuditDep, CredentialServiceDep, RequestContextDep, StoreDep
from alive.models import PHONE_PATTERN, IdentityRead, IdentityStatus, IdentityUpdate, LogSeverity
from alive.schemas import PaginatedResponse
from alive.services.auth import sanitize_identity

router = APIRouter()


class CreateUserRequest(BaseModel):
    """Request body for an administrator-created account."""

    email: EmailStr
    phone_number: str = Field(pattern=PHONE_PATTERN)
    national_id: str = Field(min_length=1, max_length=64)
    first_name: str | None = Field(default=None, max_length=120)
    last_name: str | None = Field(default=None, max_length=120)
    roles: list[str] | None = None


class BulkStatusRequest(BaseModel):
    user_ids: list[str] = Field(min_length=1, max_length=500)
    status: IdentityStatus


class BulkDeleteRequest(BaseModel):
    user_ids: list[str] = Field(min_length=1, max_length=500)


class BulkStatusResponse(BaseModel):
    updated: int


class BulkDeleteResponse(BaseModel):
    deleted: int


class BasicInfo(BaseModel):
    """Directory entry: contact fields only."""

    id: str
    first_name: str | None
    last_name: str | None
    email: str
    phone_number: str
    national_id: str


class BasicInfoResponse(BaseModel):
    users: list[BasicInfo]


class UserStatistics(BaseModel):
    total_users: int
    active_users: int
    inactive_users: int
    new_users_this_month: int


@router.get("", response_model=PaginatedResponse[IdentityRead])
async def list_users(
    store: StoreDep,
    _admin: AdminUser,
    status_filter: Annotated[IdentityStatus | None, Query(alias="status")] = None,
    search: Annotated[str | None, Query(max_length=100)] = None,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
    offset: Annotated[int, Query(ge=0)] = 0,
):
    """List accounts, newest first."""
    identities, total = await store.list_identities(
        offset=offset, limit=limit, status=status_filter, search=search
    )
    return PaginatedResponse[IdentityRead](
        items=[sanitize_identity(identity) for identity in identities],
        total=total,
        offset=offset,
        limit=limit,
    )


@router.post("", response_model=IdentityRead, status_code=status.HTTP_201_CREATED)
async def create_user(
    request: CreateUserRequest,
    service: CredentialServiceDep,
    context: RequestContextDep,
    admin: AdminUser,
):
    """Create a pre-verified account and send its temporary password by SMS."""
    identity = await service.create_by_admin(
        email=request.email,
        phone_number=request.phone_number,
        national_id=request.national_id,
        first_name=request.first_name,
        last_name=request.last_name,
        roles=request.roles,
        actor_id=admin.id,
        context=context,
    )
    return sanitize_identity(identity)


@router.get("/statistics", response_model=UserStatistics)
async def get_statistics(store: StoreDep, _admin: AdminUser):
    """Account counts for dashboard cards."""
    now = datetime.now(UTC)
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    return UserStatistics(**await store.statistics(month_start))



@router.get("/basic-info", response_model=BasicInfoResponse)
async def get_basic_info(store: StoreDep, _admin: AdminUser):
    """Contact details for every account."""
    identities = await store.basic_info()
    return BasicInfoResponse(
        users=[BasicInfo.model_validate(identity, from_attributes=True) for identity in identities]
    )


@router.patch("/bulk-status", response_model=BulkStatusResponse)
async def bulk_update_status(
    request: BulkStatusRequest,
    store: StoreDep,
    audit: AuditDep,
    context: RequestContextDep,
    admin: AdminUser,
):
    """Set the same status on many accounts."""
    updated = await store.bulk_update_status(request.user_ids, request.status)
    await audit.create_log(
        "Users Status Updated",
        f"Status set to {request.status.value} on {updated} of {len(request.user_ids)} accounts",
        actor_id=admin.id,
        context=context,
    )
    return BulkStatusResponse(updated=updated)


@router.delete("/bulk", response_model=BulkDeleteResponse)
async def bulk_delete(
    request: BulkDeleteRequest,
    store: StoreDep,
    audit: AuditDep,
    context: RequestContextDep,
    admin: AdminUser,
):
    """Permanently delete many accounts."""
    if admin.id in request.user_ids:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Administrators cannot delete their own account",
        )

    deleted = await store.bulk_delete(request.user_ids)
    await audit.create_log(
        "Users Deleted",
        f"Deleted {deleted} of {len(request.user_ids)} requested accounts: {', '.join(request.user_ids)}",
        LogSeverity.WARNING,
        actor_id=admin.id,
        context=context,
    )
    return BulkDeleteResponse(deleted=deleted)


@router.get("/{user_id}", response_model=IdentityRead)
async def get_user(user_id: str, service: CredentialServiceDep, _admin: AdminUser):
    """Get one account."""
    return sanitize_identity(await service.get_profile(user_id))


@router.patch("/{user_id}", response_model=IdentityRead)
async def update_user(
    user_id: str,
    update: IdentityUpdate,
    store: StoreDep,
    _admin: AdminUser,
):
    """Update profile fields, roles, or status."""
    identity = await store.get(user_id)
    if not identity:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    for field, value in update.model_dump(exclude_unset=True).items():
        if field == "status":
            value = IdentityStatus(value).value
        setattr(identity, field, value)

    await store.save(identity)
    return sanitize_identity(identity)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user(
    user_id: str,
    store: StoreDep,
    audit: AuditDep,
    context: RequestContextDep,
    admin: AdminUser,
):
    """Permanently delete an account."""
    if user_id == admin.id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Administrators cannot delete their own account",
        )

    identity = await store.get(user_id)
    if not identity:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    email = identity.email
    await store.delete(identity)
    await audit.create_log(
        "User Deleted",
        f"Account {email} ({user_id}) deleted by administrator",
        LogSeverity.WARNING,
        actor_id=admin.id,
        context=context,
    )
