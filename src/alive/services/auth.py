"""Authentication service for JWT token management."""

from collections.abc import Mapping
from datetime import UTC, datetime, timedelta
from typing import Any

from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession

from alive.config import settings
from alive.models import Identity, IdentityRead
from alive.services.identity_store import IdentityStore

# Keys that must never reach a caller, in both the stored and wire spellings
SENSITIVE_KEYS = frozenset(
    {
        "password",
        "password_hash",
        "pin",
        "resetPasswordPin",
        "resetPasswordExpires",
        "reset_password_pin",
        "reset_password_expires",
        "emailOtp",
        "emailOtpExpires",
        "email_otp",
        "email_otp_expires",
        "phoneOtp",
        "phoneOtpExpires",
        "phone_otp",
        "phone_otp_expires",
    }
)


class AuthError(Exception):
    """Authentication error."""


def _build_payload(subject: str, email: str, roles: list[str]) -> dict[str, Any]:
    issued_at = datetime.now(UTC)
    return {
        "sub": subject,
        "email": email,
        "roles": list(roles),
        "iat": issued_at,
        "exp": issued_at + timedelta(days=settings.jwt_expiration_days),
    }


def create_token(identity: Identity) -> str:
    """Create a JWT token for an identity."""
    payload = _build_payload(str(identity.id), identity.email, identity.roles or [])
    return jwt.encode(payload, settings.session_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.session_secret,
            algorithms=[settings.jwt_algorithm],
        )
        return payload
    except JWTError as e:
        raise AuthError(f"Invalid token: {e}") from e


async def verify_token(session: AsyncSession, token: str) -> Identity:
    """Verify a JWT token and return the associated identity."""
    payload = decode_token(token)

    identity_id = payload.get("sub")
    if not identity_id:
        raise AuthError("Invalid token: missing subject")

    identity = await IdentityStore(session).get(identity_id)
    if not identity:
        raise AuthError("User not found")

    return identity


def sanitize(data: Mapping[str, Any]) -> dict[str, Any]:
    """Drop credential and code fields from an identity-shaped mapping."""
    return {key: value for key, value in data.items() if key not in SENSITIVE_KEYS}


def sanitize_identity(identity: Identity) -> IdentityRead:
    """Whitelisted view of an identity for any response path."""
    return IdentityRead.model_validate(identity)
