"""One-time codes for email/phone verification and password reset.

Codes are six random decimal digits stored on the identity next to an
expiry timestamp. Every purpose uses the same lifetime
(``settings.code_expiration_minutes``), which bounds the guessing window
for a 900,000-value keyspace. Rate limiting sits in front of this module
at the API layer.
"""

import hmac
import logging
import secrets
from collections.abc import Callable, Mapping
from datetime import datetime, timedelta

from alive.config import settings
from alive.errors import CodeExpired, CodeMismatch, CodeMissing
from alive.models import CODE_FIELDS, CodePurpose, Identity
from alive.models.base import as_utc, utcnow
from alive.services.identity_store import IdentityStore

logger = logging.getLogger(__name__)

CODE_MIN = 100_000
CODE_MAX = 999_999

Clock = Callable[[], datetime]


def generate_code() -> str:
    """Return a uniformly random code in [100000, 999999]."""
    return str(CODE_MIN + secrets.randbelow(CODE_MAX - CODE_MIN + 1))


class SecretCodes:
    """Issues, validates, and consumes codes stored on identities."""

    def __init__(
        self,
        store: IdentityStore,
        clock: Clock = utcnow,
        ttl: timedelta | None = None,
    ):
        self.store = store
        self.clock = clock
        self.ttl = ttl or timedelta(minutes=settings.code_expiration_minutes)

    def generate(self) -> str:
        return generate_code()

    def stored(self, identity: Identity, purpose: CodePurpose) -> tuple[str | None, datetime | None]:
        """Current (code, expiry) for a purpose."""
        code_field, expiry_field = CODE_FIELDS[purpose]
        return getattr(identity, code_field), getattr(identity, expiry_field)

    def stage(self, identity: Identity, purpose: CodePurpose) -> tuple[str, datetime]:
        """Set a fresh code for a purpose on the identity without persisting it."""
        code = self.generate()
        expires_at = self.clock() + self.ttl
        code_field, expiry_field = CODE_FIELDS[purpose]
        setattr(identity, code_field, code)
        setattr(identity, expiry_field, expires_at)
        return code, expires_at

    async def issue(self, identity: Identity, purpose: CodePurpose) -> tuple[str, datetime]:
        """Generate a fresh code for a purpose, replacing any previous one, and persist it."""
        code, expires_at = self.stage(identity, purpose)
        await self.store.save(identity)
        logger.debug(f"Issued {purpose.value} code for identity {identity.id}")
        return code, expires_at

    def _check_present(self, identity: Identity, purpose: CodePurpose) -> None:
        code, expires_at = self.stored(identity, purpose)
        if not code or expires_at is None:
            raise CodeMissing(purpose)

    def _check_unexpired(self, identity: Identity, purpose: CodePurpose) -> None:
        _, expires_at = self.stored(identity, purpose)
        if expires_at is None or self.clock() >= as_utc(expires_at):
            raise CodeExpired(purpose)

    def _check_matches(self, identity: Identity, purpose: CodePurpose, supplied: str) -> None:
        code, _ = self.stored(identity, purpose)
        if not hmac.compare_digest((code or "").encode(), (supplied or "").encode()):
            raise CodeMismatch(purpose)

    def validate(self, identity: Identity, purpose: CodePurpose, supplied: str) -> None:
        """Check a supplied code.

        Raises:
            CodeMissing: no code stored for the purpose
            CodeExpired: the stored code is past its expiry
            CodeMismatch: the supplied code is wrong
        """
        self.validate_many(identity, {purpose: supplied})

    def validate_many(self, identity: Identity, supplied: Mapping[CodePurpose, str]) -> None:
        """Validate several codes stage by stage.

        All presence checks run before any expiry check, and all expiry
        checks before any comparison, so a missing phone code is reported
        ahead of a wrong email code.
        """
        for purpose in supplied:
            self._check_present(identity, purpose)
        for purpose in supplied:
            self._check_unexpired(identity, purpose)
        for purpose, code in supplied.items():
            self._check_matches(identity, purpose, code)

    def consume(self, identity: Identity, *purposes: CodePurpose) -> None:
        """Clear codes after successful use. The caller persists the identity."""
        for purpose in purposes:
            code_field, expiry_field = CODE_FIELDS[purpose]
            setattr(identity, code_field, None)
            setattr(identity, expiry_field, None)
