"""Registration, login, verification, and password reset flows.

An identity moves from unregistered to pending verification on
registration and to verified once both channel codes are confirmed.
Verification does not gate login. Password reset is an independent
sub-flow available at any time after the account exists.

Expected misuse is recorded in the audit log at WARNING; unexpected
exceptions are recorded at ERROR and surface as ``InternalFailure`` with
the exception text kept out of the response.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum

from alive.config import settings
from alive.errors import (
    INVALID_CREDENTIALS,
    AccountInactive,
    CodeError,
    CodeMismatch,
    CredentialError,
    DuplicateIdentity,
    EmailCodeMismatch,
    InternalFailure,
    InvalidCredentials,
    InvalidCurrentPassword,
    InvalidOrExpired,
    NotFound,
    PhoneCodeMismatch,
)
from alive.models import CodePurpose, Identity, IdentityStatus, LogSeverity
from alive.services.audit import AuditLogService, RequestContext
from alive.services.auth import create_token
from alive.services.codes import SecretCodes
from alive.services.identity_store import IdentityStore
from alive.services.notifications import NotificationGateway
from alive.services.passwords import generate_temp_password, hash_password, verify_password

logger = logging.getLogger(__name__)

RESET_REQUESTED_MESSAGE = "If your email is registered, you will receive a password reset PIN."
RESET_CONFIRMED_MESSAGE = "Your password has been successfully reset."
VERIFIED_MESSAGE = "Verification successful"
RESENT_MESSAGE = "OTP code resent successfully"
PASSWORD_UPDATED_MESSAGE = "Password updated successfully"


class OtpChannel(str, Enum):
    """Channel a verification code is delivered on."""

    EMAIL = "email"
    PHONE = "phone"


CHANNEL_PURPOSES = {
    OtpChannel.EMAIL: CodePurpose.EMAIL_OTP,
    OtpChannel.PHONE: CodePurpose.PHONE_OTP,
}


class UnknownLogin(NotFound):
    """Login for an email with no account; indistinguishable from a bad password."""

    status_code = 401
    detail = INVALID_CREDENTIALS


@dataclass
class AuthResult:
    """Outcome of a successful register or login."""

    identity: Identity
    token: str


class CredentialService:
    """Orchestrates the credential state transitions over an identity store."""

    def __init__(
        self,
        store: IdentityStore,
        notifications: NotificationGateway,
        audit: AuditLogService,
        codes: SecretCodes | None = None,
    ):
        self.store = store
        self.notifications = notifications
        self.audit = audit
        self.codes = codes or SecretCodes(store)

    @property
    def _code_minutes(self) -> int:
        return int(self.codes.ttl.total_seconds() // 60)

    async def _warn(
        self,
        title: str,
        message: str,
        context: RequestContext | None,
        actor_id: str | None = None,
    ) -> None:
        await self.audit.create_log(title, message, LogSeverity.WARNING, actor_id, context)

    async def _unexpected(
        self,
        title: str,
        message: str,
        context: RequestContext | None,
        actor_id: str | None = None,
    ) -> InternalFailure:
        """Record an unexpected failure and build the error to raise."""
        logger.exception(f"{title}: {message}")
        await self.store.rollback()
        await self.audit.create_log(title, message, LogSeverity.ERROR, actor_id, context)
        return InternalFailure()

    async def _send_code(self, identity: Identity, channel: OtpChannel, code: str) -> bool:
        """Deliver a verification code on one channel only."""
        message = (
            f"Your {channel.value} verification code is: {code}. "
            f"This code will expire in {self._code_minutes} minutes."
        )
        if channel == OtpChannel.EMAIL:
            sent = await self.notifications.send_email_message(
                identity.email, f"{settings.app_name} email verification", message
            )
        elif identity.phone_number:
            sent = await self.notifications.send_sms(identity.phone_number, message)
        else:
            sent = False
        if not sent:
            logger.warning(f"Could not deliver {channel.value} code to identity {identity.id}")
        return sent

    async def register(
        self,
        email: str,
        phone_number: str,
        national_id: str,
        password: str,
        first_name: str | None = None,
        last_name: str | None = None,
        roles: list[str] | None = None,
        context: RequestContext | None = None,
    ) -> AuthResult:
        """Create an unverified account, send both OTPs, and return a session token.

        Raises:
            DuplicateIdentity: email, phone number, or national id already in use
            InternalFailure: on any unexpected store error
        """
        try:
            if await self.store.find_conflict(email, phone_number, national_id):
                raise DuplicateIdentity()

            identity = Identity(
                email=email,
                phone_number=phone_number,
                national_id=national_id,
                first_name=first_name,
                last_name=last_name,
                roles=roles or list(settings.default_roles),
                status=IdentityStatus.ACTIVE.value,
                email_verified=False,
                phone_verified=False,
                password_hash=await asyncio.to_thread(hash_password, password),
            )
            # Account and both codes land in one insert
            email_code, _ = self.codes.stage(identity, CodePurpose.EMAIL_OTP)
            phone_code, _ = self.codes.stage(identity, CodePurpose.PHONE_OTP)
            await self.store.add(identity)
        except DuplicateIdentity:
            await self._warn("Registration Failed", f"Duplicate registration attempt for {email}", context)
            raise
        except CredentialError:
            raise
        except Exception as e:
            raise await self._unexpected(
                "Registration Failed", f"Registration failed for email {email}: {e}", context
            ) from e

        await self._send_code(identity, OtpChannel.EMAIL, email_code)
        await self._send_code(identity, OtpChannel.PHONE, phone_code)

        return AuthResult(identity=identity, token=create_token(identity))

    async def login(
        self,
        email: str,
        password: str,
        context: RequestContext | None = None,
    ) -> AuthResult:
        """Authenticate with email and password.

        Raises:
            UnknownLogin: no account for the email
            AccountInactive: the account is not active
            InvalidCredentials: no stored hash or the password does not match
        """
        try:
            identity = await self.store.get_by_email(email, include_sensitive=True)
            if not identity:
                await self._warn("Login Failed", f"User not found with email: {email}", context)
                raise UnknownLogin()

            if not identity.is_active:
                await self._warn(
                    "Login Failed", f"Inactive account login attempt: {email}", context, identity.id
                )
                raise AccountInactive()

            if not await asyncio.to_thread(verify_password, password, identity.password_hash):
                await self._warn("Login Failed", f"Invalid password for {email}", context, identity.id)
                raise InvalidCredentials()

            return AuthResult(identity=identity, token=create_token(identity))
        except CredentialError:
            raise
        except Exception as e:
            raise await self._unexpected(
                "Login Error", f"Unexpected error during login: {e}", context
            ) from e

    async def verify_otp(
        self,
        email: str,
        email_code: str,
        phone_code: str,
        context: RequestContext | None = None,
    ) -> str:
        """Confirm both channel codes and mark the identity verified.

        Raises:
            NotFound: no account for the email
            CodeMissing: either code is absent
            CodeExpired: either code is past its expiry
            EmailCodeMismatch, PhoneCodeMismatch: a supplied code is wrong
        """
        identity = await self.store.get_by_email(email, include_sensitive=True)
        if not identity:
            raise NotFound()

        try:
            self.codes.validate_many(
                identity,
                {CodePurpose.EMAIL_OTP: email_code, CodePurpose.PHONE_OTP: phone_code},
            )
        except CodeMismatch as e:
            mismatch = (
                EmailCodeMismatch() if e.purpose == CodePurpose.EMAIL_OTP else PhoneCodeMismatch()
            )
            await self._warn(
                "OTP Verification Failed", f"{e.purpose.value} code mismatch for {email}", context, identity.id
            )
            raise mismatch from e
        except CodeError as e:
            await self._warn(
                "OTP Verification Failed", f"{e.code} ({e.purpose.value}) for {email}", context, identity.id
            )
            raise

        self.codes.consume(identity, CodePurpose.EMAIL_OTP, CodePurpose.PHONE_OTP)
        identity.email_verified = True
        identity.phone_verified = True
        try:
            await self.store.save(identity)
        except Exception as e:
            raise await self._unexpected(
                "OTP Verification Error", f"Could not save verification for {email}: {e}", context
            ) from e
        return VERIFIED_MESSAGE

    async def resend_otp(
        self,
        email: str,
        channel: OtpChannel,
        context: RequestContext | None = None,
    ) -> str:
        """Issue a fresh code for one channel, leaving the other channel's code alone."""
        identity = await self.store.get_by_email(email, include_sensitive=True)
        if not identity:
            raise NotFound()

        try:
            code, _ = await self.codes.issue(identity, CHANNEL_PURPOSES[channel])
        except Exception as e:
            raise await self._unexpected(
                "OTP Resend Error", f"Could not issue {channel.value} code for {email}: {e}", context
            ) from e

        await self._send_code(identity, channel, code)
        return RESENT_MESSAGE

    async def request_password_reset(
        self,
        email: str,
        context: RequestContext | None = None,
    ) -> str:
        """Send a reset PIN if the account exists.

        The returned message is identical either way, so callers cannot
        probe for registered emails.
        """
        try:
            identity = await self.store.get_by_email(email, include_sensitive=True)
            if not identity:
                await self._warn(
                    "Password Reset Request Failed",
                    f"Password reset attempt for non-existent email: {email}",
                    context,
                )
                return RESET_REQUESTED_MESSAGE

            code, _ = await self.codes.issue(identity, CodePurpose.PASSWORD_RESET)
        except Exception as e:
            raise await self._unexpected(
                "Password Reset Request Error",
                f"Error during password reset request for {email}: {e}",
                context,
            ) from e

        message = (
            f"Your {settings.app_name} password reset PIN is: {code}. "
            f"This PIN will expire in {self._code_minutes} minutes. "
            "Please keep this PIN secure and do not share it with anyone."
        )
        sent = await self.notifications.send_message(
            identity.email,
            f"{settings.app_name} password reset",
            message,
            phone_number=identity.phone_number,
        )
        if not sent:
            logger.warning(f"Password reset PIN delivery incomplete for identity {identity.id}")
        return RESET_REQUESTED_MESSAGE

    async def confirm_password_reset(
        self,
        email: str,
        reset_code: str,
        new_password: str,
        context: RequestContext | None = None,
    ) -> str:
        """Replace the password if the reset PIN is valid, then clear the PIN.

        Raises:
            InvalidOrExpired: unknown email, no PIN, expired PIN, or wrong PIN
        """
        try:
            identity = await self.store.get_by_email(email, include_sensitive=True)
            if not identity:
                reason = "no account"
            else:
                try:
                    self.codes.validate(identity, CodePurpose.PASSWORD_RESET, reset_code)
                    reason = None
                except CodeError as e:
                    reason = e.code

            if reason:
                await self._warn(
                    "Password Reset Confirmation Failed",
                    f"Reset confirmation for {email} rejected: {reason}",
                    context,
                    identity.id if identity else None,
                )
                raise InvalidOrExpired()

            identity.password_hash = await asyncio.to_thread(hash_password, new_password)
            self.codes.consume(identity, CodePurpose.PASSWORD_RESET)
            await self.store.save(identity)
        except CredentialError:
            raise
        except Exception as e:
            raise await self._unexpected(
                "Password Reset Confirmation Error",
                f"Error confirming password reset for {email}: {e}",
                context,
            ) from e

        return RESET_CONFIRMED_MESSAGE

    async def update_password(
        self,
        identity_id: str,
        current_password: str,
        new_password: str,
        context: RequestContext | None = None,
    ) -> str:
        """Change a password after verifying the current one.

        Raises:
            NotFound: no such identity
            InvalidCurrentPassword: the current password does not verify
        """
        identity = await self.store.get(identity_id, include_sensitive=True)
        if not identity:
            raise NotFound()

        if not await asyncio.to_thread(verify_password, current_password, identity.password_hash):
            await self._warn(
                "Password Update Failed", "Invalid current password", context, identity.id
            )
            raise InvalidCurrentPassword()

        identity.password_hash = await asyncio.to_thread(hash_password, new_password)
        await self.store.save(identity)
        return PASSWORD_UPDATED_MESSAGE

    async def create_by_admin(
        self,
        email: str,
        phone_number: str,
        national_id: str,
        first_name: str | None = None,
        last_name: str | None = None,
        roles: list[str] | None = None,
        actor_id: str | None = None,
        context: RequestContext | None = None,
    ) -> Identity:
        """Create a pre-verified account with a temporary password sent by SMS.

        SMS failure is logged and does not undo the account.
        """
        if await self.store.find_conflict(email, phone_number, national_id):
            raise DuplicateIdentity()

        temp_password = generate_temp_password()
        identity = Identity(
            email=email,
            phone_number=phone_number,
            national_id=national_id,
            first_name=first_name,
            last_name=last_name,
            roles=roles or list(settings.default_roles),
            status=IdentityStatus.ACTIVE.value,
            email_verified=True,
            phone_verified=True,
            password_hash=await asyncio.to_thread(hash_password, temp_password),
        )
        await self.store.add(identity)
        await self.audit.create_log(
            "User Created", f"Account {identity.email} created by administrator", actor_id=actor_id, context=context
        )

        message = (
            f"Welcome to {settings.app_name}! Your login credentials:\n"
            f"Email: {identity.email}\n"
            f"Password: {temp_password}\n"
            "Please change your password after first login."
        )
        if not await self.notifications.send_sms(identity.phone_number, message):
            logger.warning(f"Failed to send credentials SMS to identity {identity.id}")
        return identity

    async def get_profile(self, identity_id: str) -> Identity:
        identity = await self.store.get(identity_id)
        if not identity:
            raise NotFound()
        return identity
