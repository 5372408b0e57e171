"""One-time code tests."""

from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from alive.errors import CodeExpired, CodeMismatch, CodeMissing
from alive.models import CodePurpose, Identity
from alive.services.codes import CODE_MAX, CODE_MIN, SecretCodes, generate_code
from alive.services.identity_store import IdentityStore
from tests.conftest import FakeClock


def test_generate_code_is_six_digits():
    for _ in range(500):
        code = generate_code()
        assert len(code) == 6
        assert code.isdigit()
        assert CODE_MIN <= int(code) <= CODE_MAX


def test_generate_code_varies():
    codes = {generate_code() for _ in range(50)}
    assert len(codes) > 1


@pytest.fixture
def codes(store: IdentityStore, clock: FakeClock) -> SecretCodes:
    return SecretCodes(store, clock=clock, ttl=timedelta(minutes=10))


class TestIssue:
    """Tests for issuing codes."""

    @pytest.mark.asyncio
    async def test_issue_sets_code_and_expiry(self, codes: SecretCodes, user: Identity, clock: FakeClock):
        code, expires_at = await codes.issue(user, CodePurpose.EMAIL_OTP)

        assert user.email_otp == code
        assert expires_at == clock.now + timedelta(minutes=10)
        assert user.email_otp_expires == expires_at

    @pytest.mark.asyncio
    async def test_issue_replaces_previous_code(self, codes: SecretCodes, user: Identity, clock: FakeClock):
        first, _ = await codes.issue(user, CodePurpose.PASSWORD_RESET)
        clock.advance(minutes=1)
        second, expires_at = await codes.issue(user, CodePurpose.PASSWORD_RESET)

        assert user.reset_password_pin == second
        assert user.reset_password_expires == expires_at
        if first != second:
            with pytest.raises(CodeMismatch):
                codes.validate(user, CodePurpose.PASSWORD_RESET, first)

    @pytest.mark.asyncio
    async def test_issue_leaves_other_purposes_alone(self, codes: SecretCodes, user: Identity):
        email_code, _ = await codes.issue(user, CodePurpose.EMAIL_OTP)
        await codes.issue(user, CodePurpose.PHONE_OTP)

        assert user.email_otp == email_code
        assert user.reset_password_pin is None

    @pytest.mark.asyncio
    async def test_issue_persists(self, codes: SecretCodes, user: Identity, store: IdentityStore):
        code, _ = await codes.issue(user, CodePurpose.PHONE_OTP)

        reloaded = await store.get(user.id, include_sensitive=True)
        assert reloaded is not None
        assert reloaded.phone_otp == code

    def test_stage_does_not_touch_the_store(self, clock: FakeClock):
        store = MagicMock(spec=IdentityStore)
        codes = SecretCodes(store, clock=clock, ttl=timedelta(minutes=10))
        identity = Identity(email="new@example.com", phone_number="+254700000009", national_id="9")

        code, expires_at = codes.stage(identity, CodePurpose.EMAIL_OTP)

        assert identity.email_otp == code
        assert identity.email_otp_expires == expires_at == clock.now + timedelta(minutes=10)
        store.save.assert_not_called()


class TestValidate:
    """Tests for validating codes."""

    @pytest.mark.asyncio
    async def test_valid_code_passes(self, codes: SecretCodes, user: Identity):
        code, _ = await codes.issue(user, CodePurpose.EMAIL_OTP)
        codes.validate(user, CodePurpose.EMAIL_OTP, code)

    @pytest.mark.asyncio
    async def test_missing_code(self, codes: SecretCodes, user: Identity):
        with pytest.raises(CodeMissing) as exc_info:
            codes.validate(user, CodePurpose.EMAIL_OTP, "123456")
        assert exc_info.value.purpose == CodePurpose.EMAIL_OTP

    @pytest.mark.asyncio
    async def test_expired_code(self, codes: SecretCodes, user: Identity, clock: FakeClock):
        code, _ = await codes.issue(user, CodePurpose.EMAIL_OTP)
        clock.advance(minutes=10)

        with pytest.raises(CodeExpired):
            codes.validate(user, CodePurpose.EMAIL_OTP, code)

    @pytest.mark.asyncio
    async def test_code_valid_just_before_expiry(self, codes: SecretCodes, user: Identity, clock: FakeClock):
        code, _ = await codes.issue(user, CodePurpose.EMAIL_OTP)
        clock.advance(minutes=9, seconds=59)

        codes.validate(user, CodePurpose.EMAIL_OTP, code)

    @pytest.mark.asyncio
    async def test_expired_reported_before_mismatch(self, codes: SecretCodes, user: Identity, clock: FakeClock):
        await codes.issue(user, CodePurpose.PASSWORD_RESET)
        clock.advance(hours=1)

        with pytest.raises(CodeExpired):
            codes.validate(user, CodePurpose.PASSWORD_RESET, "000000")

    @pytest.mark.asyncio
    async def test_wrong_code(self, codes: SecretCodes, user: Identity):
        code, _ = await codes.issue(user, CodePurpose.PHONE_OTP)
        wrong = "100000" if code != "100000" else "100001"

        with pytest.raises(CodeMismatch) as exc_info:
            codes.validate(user, CodePurpose.PHONE_OTP, wrong)
        assert exc_info.value.purpose == CodePurpose.PHONE_OTP

    @pytest.mark.asyncio
    async def test_validate_accepts_naive_expiry(self, codes: SecretCodes, user: Identity):
        """Expiries read back without tzinfo are treated as UTC."""
        code, expires_at = await codes.issue(user, CodePurpose.EMAIL_OTP)
        user.email_otp_expires = expires_at.replace(tzinfo=None)

        codes.validate(user, CodePurpose.EMAIL_OTP, code)


class TestValidateMany:
    """Stage ordering when both channel codes are checked together."""

    @pytest.mark.asyncio
    async def test_missing_phone_reported_before_wrong_email(self, codes: SecretCodes, user: Identity):
        await codes.issue(user, CodePurpose.EMAIL_OTP)

        with pytest.raises(CodeMissing) as exc_info:
            codes.validate_many(
                user,
                {CodePurpose.EMAIL_OTP: "000000", CodePurpose.PHONE_OTP: "000000"},
            )
        assert exc_info.value.purpose == CodePurpose.PHONE_OTP

    @pytest.mark.asyncio
    async def test_expired_phone_reported_before_wrong_email(
        self, codes: SecretCodes, user: Identity, clock: FakeClock
    ):
        await codes.issue(user, CodePurpose.EMAIL_OTP)
        phone_code, _ = await codes.issue(user, CodePurpose.PHONE_OTP)
        user.phone_otp_expires = clock.now - timedelta(seconds=1)

        with pytest.raises(CodeExpired) as exc_info:
            codes.validate_many(
                user,
                {CodePurpose.EMAIL_OTP: "000000", CodePurpose.PHONE_OTP: phone_code},
            )
        assert exc_info.value.purpose == CodePurpose.PHONE_OTP

    @pytest.mark.asyncio
    async def test_email_mismatch_reported_first(self, codes: SecretCodes, user: Identity):
        email_code, _ = await codes.issue(user, CodePurpose.EMAIL_OTP)
        phone_code, _ = await codes.issue(user, CodePurpose.PHONE_OTP)
        wrong_email = "100000" if email_code != "100000" else "100001"
        wrong_phone = "100000" if phone_code != "100000" else "100001"

        with pytest.raises(CodeMismatch) as exc_info:
            codes.validate_many(
                user,
                {CodePurpose.EMAIL_OTP: wrong_email, CodePurpose.PHONE_OTP: wrong_phone},
            )
        assert exc_info.value.purpose == CodePurpose.EMAIL_OTP


@pytest.mark.asyncio
async def test_consume_clears_only_named_purposes(codes: SecretCodes, user: Identity):
    await codes.issue(user, CodePurpose.EMAIL_OTP)
    await codes.issue(user, CodePurpose.PHONE_OTP)
    reset_code, _ = await codes.issue(user, CodePurpose.PASSWORD_RESET)

    codes.consume(user, CodePurpose.EMAIL_OTP, CodePurpose.PHONE_OTP)

    assert user.email_otp is None
    assert user.email_otp_expires is None
    assert user.phone_otp is None
    assert user.phone_otp_expires is None
    assert user.reset_password_pin == reset_code
