"""Typed failures raised by the credential core.

Each error carries an HTTP status and a ``detail`` that is safe to return
to the caller. Anything more specific belongs in the log, not the detail.
"""

from alive.models.identity import CodePurpose

INVALID_CREDENTIALS = "Invalid credentials"
INVALID_CODE = "Invalid verification code"
INVALID_OR_EXPIRED_RESET = "Invalid or expired password reset PIN"


class CredentialError(Exception):
    """Base class for expected credential failures."""

    status_code: int = 400
    code: str = "credential_error"
    detail: str = "Request could not be completed"

    def __init__(self, detail: str | None = None) -> None:
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class DuplicateIdentity(CredentialError):
    status_code = 409
    code = "duplicate_identity"
    detail = "User with provided details already exists"


class NotFound(CredentialError):
    status_code = 404
    code = "not_found"
    detail = "User not found"


class AccountInactive(CredentialError):
    status_code = 403
    code = "account_inactive"
    detail = "Account is not active"


class InvalidCredentials(CredentialError):
    status_code = 401
    code = "invalid_credentials"
    detail = INVALID_CREDENTIALS


class CodeError(CredentialError):
    """Base for one-time code failures; ``purpose`` names the code involved."""

    code = "invalid_code"
    detail = INVALID_CODE

    def __init__(self, purpose: CodePurpose, detail: str | None = None) -> None:
        self.purpose = purpose
        super().__init__(detail)


class CodeMissing(CodeError):
    code = "code_missing"
    detail = "Verification code not found. Please request a new code."


class CodeExpired(CodeError):
    code = "code_expired"
    detail = "Verification code has expired"


class CodeMismatch(CodeError):
    code = "code_mismatch"


class EmailCodeMismatch(CodeMismatch):
    def __init__(self) -> None:
        super().__init__(CodePurpose.EMAIL_OTP)


class PhoneCodeMismatch(CodeMismatch):
    def __init__(self) -> None:
        super().__init__(CodePurpose.PHONE_OTP)


class InvalidOrExpired(CredentialError):
    code = "invalid_or_expired"
    detail = INVALID_OR_EXPIRED_RESET


class InvalidCurrentPassword(CredentialError):
    code = "invalid_current_password"
    detail = "Invalid current password"


class InternalFailure(CredentialError):
    status_code = 500
    code = "internal_failure"
    detail = "Request could not be processed. Please try again later."
