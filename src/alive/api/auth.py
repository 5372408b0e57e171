"""Authentication endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, EmailStr, Field

from alive.api.deps import (
    AuthRateLimit,
    CredentialServiceDep,
    CurrentUser,
    OtpRateLimit,
    RequestContextDep,
    StoreDep,
)
from alive.models import PHONE_PATTERN, IdentityRead
from alive.schemas import SuccessResponse
from alive.services.auth import AuthError, create_token, decode_token, sanitize_identity
from alive.services.credentials import OtpChannel

security = HTTPBearer()

router = APIRouter()

CODE_PATTERN = r"^\d{6}$"

Password = Annotated[str, Field(min_length=8, max_length=72)]
Code = Annotated[str, Field(pattern=CODE_PATTERN, description="Six-digit code")]


class RegisterRequest(BaseModel):
    """Request body for registration."""

    email: EmailStr
    phone_number: str = Field(pattern=PHONE_PATTERN, examples=["+254712345678"])
    national_id: str = Field(min_length=1, max_length=64)
    password: Password
    first_name: str | None = Field(default=None, max_length=120)
    last_name: str | None = Field(default=None, max_length=120)


class LoginRequest(BaseModel):
    """Request body for login."""

    email: EmailStr
    password: str = Field(min_length=1, max_length=72)


class VerifyOtpRequest(BaseModel):
    """Request body for OTP verification."""

    email: EmailStr
    email_code: Code
    phone_code: Code


class ResendOtpRequest(BaseModel):
    """Request body for resending one channel's OTP."""

    email: EmailStr
    type: OtpChannel


class PasswordResetRequest(BaseModel):
    email: EmailStr


class PasswordResetConfirm(BaseModel):
    email: EmailStr
    reset_code: Code
    new_password: Password


class UpdatePasswordRequest(BaseModel):
    current_password: str = Field(min_length=1, max_length=72)
    new_password: Password


class TokenResponse(BaseModel):
    """Response containing JWT token."""

    access_token: str
    token_type: str = "bearer"
    user: IdentityRead


@router.post("/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def register(
    request: RegisterRequest,
    service: CredentialServiceDep,
    context: RequestContextDep,
    _rate_limit: AuthRateLimit,
):
    """
    Create an account and send email and phone verification codes.

    The account can log in immediately; verification is tracked separately.
    """
    result = await service.register(
        email=request.email,
        phone_number=request.phone_number,
        national_id=request.national_id,
        password=request.password,
        first_name=request.first_name,
        last_name=request.last_name,
        context=context,
    )
    return TokenResponse(access_token=result.token, user=sanitize_identity(result.identity))


@router.post("/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    service: CredentialServiceDep,
    context: RequestContextDep,
    _rate_limit: AuthRateLimit,
):
    """Exchange email and password for a session token."""
    result = await service.login(request.email, request.password, context=context)
    return TokenResponse(access_token=result.token, user=sanitize_identity(result.identity))


@router.post("/verify-otp", response_model=SuccessResponse)
async def verify_otp(
    request: VerifyOtpRequest,
    service: CredentialServiceDep,
    context: RequestContextDep,
    _rate_limit: OtpRateLimit,
):
    """Confirm the email and phone codes sent at registration."""
    message = await service.verify_otp(
        request.email, request.email_code, request.phone_code, context=context
    )
    return SuccessResponse(message=message)


@router.post("/resend-otp", response_model=SuccessResponse)
async def resend_otp(
    request: ResendOtpRequest,
    service: CredentialServiceDep,
    context: RequestContextDep,
    _rate_limit: OtpRateLimit,
):
    """Send a new code on one channel."""
    message = await service.resend_otp(request.email, request.type, context=context)
    return SuccessResponse(message=message)


@router.post("/password-reset/request", response_model=SuccessResponse)
async def request_password_reset(
    request: PasswordResetRequest,
    service: CredentialServiceDep,
    context: RequestContextDep,
    _rate_limit: AuthRateLimit,
):
    """
    Send a password reset PIN.

    Responds the same way whether or not the email is registered.
    """
    message = await service.request_password_reset(request.email, context=context)
    return SuccessResponse(message=message)


@router.post("/password-reset/confirm", response_model=SuccessResponse)
async def confirm_password_reset(
    request: PasswordResetConfirm,
    service: CredentialServiceDep,
    context: RequestContextDep,
    _rate_limit: OtpRateLimit,
):
    """Set a new password using the emailed PIN."""
    message = await service.confirm_password_reset(
        request.email, request.reset_code, request.new_password, context=context
    )
    return SuccessResponse(message=message)


@router.patch("/password", response_model=SuccessResponse)
async def update_password(
    request: UpdatePasswordRequest,
    user: CurrentUser,
    service: CredentialServiceDep,
    context: RequestContextDep,
):
    """Change the current user's password."""
    message = await service.update_password(
        user.id, request.current_password, request.new_password, context=context
    )
    return SuccessResponse(message=message)


@router.get("/me", response_model=IdentityRead)
async def get_current_user_info(user: CurrentUser):
    """Get current authenticated user info."""
    return sanitize_identity(user)


@router.post("/logout", response_model=SuccessResponse)
async def logout():
    """
    Logout endpoint.

    Tokens are stateless and cannot be revoked; this is for client-side clearing.
    """
    return SuccessResponse(message="Logged out successfully")


@router.post("/refresh", response_model=TokenResponse)
async def refresh(
    store: StoreDep,
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    _rate_limit: AuthRateLimit,
):
    """
    Refresh JWT token.

    Validates the current token and issues a new one with fresh roles
    and extended expiration.
    """
    try:
        payload = decode_token(credentials.credentials)
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        ) from e

    identity_id = payload.get("sub")
    identity = await store.get(identity_id) if identity_id else None
    if not identity or not identity.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    return TokenResponse(access_token=create_token(identity), user=sanitize_identity(identity))
