"""Identity model: one account with its verification state."""

import re
from datetime import datetime
from enum import Enum

from pydantic import model_validator
from sqlalchemy import JSON, Column, DateTime
from sqlmodel import Field, SQLModel

from alive.models.base import TimestampMixin, generate_nanoid

PHONE_PATTERN = r"^\+?\d{7,15}$"


class IdentityStatus(str, Enum):
    """Account status. Only active accounts may log in."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    SUSPENDED = "suspended"


class CodePurpose(str, Enum):
    """What a one-time code is bound to."""

    EMAIL_OTP = "email-otp"
    PHONE_OTP = "phone-otp"
    PASSWORD_RESET = "password-reset"


# (code field, expiry field) per purpose
CODE_FIELDS: dict[CodePurpose, tuple[str, str]] = {
    CodePurpose.EMAIL_OTP: ("email_otp", "email_otp_expires"),
    CodePurpose.PHONE_OTP: ("phone_otp", "phone_otp_expires"),
    CodePurpose.PASSWORD_RESET: ("reset_password_pin", "reset_password_expires"),
}

# Columns excluded from default store reads
SENSITIVE_FIELDS: tuple[str, ...] = (
    "password_hash",
    *(name for pair in CODE_FIELDS.values() for name in pair),
)


def _expiry_column() -> Column:
    return Column(DateTime(timezone=True), nullable=True)


class Identity(TimestampMixin, SQLModel, table=True):
    """User account."""

    __tablename__ = "identities"

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    email: str = Field(unique=True, index=True, max_length=255)
    phone_number: str = Field(unique=True, index=True, max_length=32)
    national_id: str = Field(unique=True, index=True, max_length=64)
    first_name: str | None = Field(default=None, max_length=120)
    last_name: str | None = Field(default=None, max_length=120)
    roles: list[str] = Field(default_factory=lambda: ["employee"], sa_column=Column(JSON, nullable=False))
    status: str = Field(default=IdentityStatus.ACTIVE.value, max_length=20, index=True)
    email_verified: bool = Field(default=False)
    phone_verified: bool = Field(default=False)

    # Sensitive
    password_hash: str | None = Field(default=None, max_length=255)
    email_otp: str | None = Field(default=None, max_length=6)
    email_otp_expires: datetime | None = Field(default=None, sa_column=_expiry_column())
    phone_otp: str | None = Field(default=None, max_length=6)
    phone_otp_expires: datetime | None = Field(default=None, sa_column=_expiry_column())
    reset_password_pin: str | None = Field(default=None, max_length=6)
    reset_password_expires: datetime | None = Field(default=None, sa_column=_expiry_column())

    @property
    def is_active(self) -> bool:
        return self.status == IdentityStatus.ACTIVE.value

    @property
    def is_admin(self) -> bool:
        return "admin" in (self.roles or [])


class IdentityRead(SQLModel):
    """Sanitized identity returned to callers.

    Only whitelisted profile fields; password hash and every code field
    are absent by construction.
    """

    id: str
    email: str
    phone_number: str
    national_id: str
    first_name: str | None
    last_name: str | None
    roles: list[str]
    status: str
    email_verified: bool
    phone_verified: bool
    created_at: datetime | None = None


class IdentityUpdate(SQLModel):
    """Fields an administrator may change on an account.

    Omitted fields are left alone. Names may be cleared with null; the
    other fields back NOT NULL columns and reject it.
    """

    first_name: str | None = Field(default=None, max_length=120)
    last_name: str | None = Field(default=None, max_length=120)
    phone_number: str | None = None
    roles: list[str] | None = None
    status: IdentityStatus | None = None

    @model_validator(mode="after")
    def check_update(self) -> "IdentityUpdate":
        for name in ("phone_number", "roles", "status"):
            if name in self.model_fields_set and getattr(self, name) is None:
                raise ValueError(f"{name} cannot be null")
        if self.phone_number is not None and not re.match(PHONE_PATTERN, self.phone_number):
            raise ValueError("phone_number must be 7 to 15 digits with an optional leading +")
        if self.roles is not None and not all(role.strip() for role in self.roles):
            raise ValueError("roles cannot contain empty names")
        if self.roles == []:
            raise ValueError("roles cannot be empty")
        return self
