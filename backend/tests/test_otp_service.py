"""
Unit tests for the OTP ledger.
"""
import pytest
from datetime import datetime, timedelta
from unittest.mock import patch

from sqlalchemy import select

from core.errors import OtpExpiredError, OtpMismatchError, OtpNotFoundError
from db.models.otp_token import OtpToken, OTP_TYPE_LOGIN, OTP_TYPE_RESET_PASSWORD
from services.otp_service import can_resend_otp, generate_otp, issue_otp, verify_otp

T0 = datetime(2026, 3, 1, 12, 0, 0)


@pytest.mark.unit
class TestOtpGeneration:
    """Code format."""

    def test_codes_are_four_digits(self):
        for _ in range(50):
            code = generate_otp()
            assert len(code) == 4
            assert code.isdigit()

    def test_codes_are_zero_padded(self):
        with patch("services.otp_service._random.randrange", return_value=7):
            assert generate_otp() == "0007"


@pytest.mark.unit
@pytest.mark.service
class TestIssueAndVerify:
    """Issuance, single-slot invariant and single use."""

    @pytest.mark.asyncio
    async def test_issue_sets_three_minute_expiry(self, db_session, stored_user):
        await issue_otp(stored_user.id, OTP_TYPE_LOGIN, db=db_session, now=T0)
        row = (await db_session.execute(select(OtpToken))).scalars().one()
        assert row.expires_at == T0 + timedelta(minutes=3)
        assert row.used is False

    @pytest.mark.asyncio
    async def test_new_code_supersedes_previous(self, db_session, stored_user):
        with patch("services.otp_service.generate_otp", side_effect=["1111", "2222"]):
            await issue_otp(stored_user.id, OTP_TYPE_LOGIN, db=db_session, now=T0)
            await issue_otp(stored_user.id, OTP_TYPE_LOGIN, db=db_session, now=T0 + timedelta(seconds=5))

        rows = (await db_session.execute(
            select(OtpToken).where(OtpToken.used.is_(False))
        )).scalars().all()
        assert [r.otp_code for r in rows] == ["2222"]

        with pytest.raises(OtpMismatchError):
            await verify_otp(stored_user.id, "1111", OTP_TYPE_LOGIN, db=db_session, now=T0 + timedelta(seconds=10))
        await verify_otp(stored_user.id, "2222", OTP_TYPE_LOGIN, db=db_session, now=T0 + timedelta(seconds=10))

    @pytest.mark.asyncio
    async def test_purposes_are_independent(self, db_session, stored_user):
        with patch("services.otp_service.generate_otp", side_effect=["1111", "2222"]):
            await issue_otp(stored_user.id, OTP_TYPE_LOGIN, db=db_session, now=T0)
            await issue_otp(stored_user.id, OTP_TYPE_RESET_PASSWORD, db=db_session, now=T0)

        await verify_otp(stored_user.id, "1111", OTP_TYPE_LOGIN, db=db_session, now=T0)
        await verify_otp(stored_user.id, "2222", OTP_TYPE_RESET_PASSWORD, db=db_session, now=T0)

    @pytest.mark.asyncio
    async def test_code_verifies_only_once(self, db_session, stored_user):
        code = await issue_otp(stored_user.id, OTP_TYPE_LOGIN, db=db_session, now=T0)
        await verify_otp(stored_user.id, code, OTP_TYPE_LOGIN, db=db_session, now=T0 + timedelta(seconds=30))

        with pytest.raises(OtpNotFoundError) as exc:
            await verify_otp(stored_user.id, code, OTP_TYPE_LOGIN, db=db_session, now=T0 + timedelta(seconds=31))
        assert exc.value.message == "No active OTP found. Please request a new one."
        assert exc.value.status_code == 400

    @pytest.mark.asyncio
    async def test_verify_without_issuance(self, db_session, stored_user):
        with pytest.raises(OtpNotFoundError):
            await verify_otp(stored_user.id, "1234", OTP_TYPE_LOGIN, db=db_session)

    @pytest.mark.asyncio
    async def test_mismatch_keeps_code_active(self, db_session, stored_user):
        with patch("services.otp_service.generate_otp", return_value="4321"):
            await issue_otp(stored_user.id, OTP_TYPE_LOGIN, db=db_session, now=T0)

        with pytest.raises(OtpMismatchError) as exc:
            await verify_otp(stored_user.id, "1234", OTP_TYPE_LOGIN, db=db_session, now=T0)
        assert exc.value.message == "Invalid OTP code."
        await verify_otp(stored_user.id, "4321", OTP_TYPE_LOGIN, db=db_session, now=T0)


@pytest.mark.unit
@pytest.mark.service
class TestExpiryBoundary:
    """Codes live for exactly 180 seconds."""

    @pytest.mark.asyncio
    async def test_accepted_at_179_seconds(self, db_session, stored_user):
        code = await issue_otp(stored_user.id, OTP_TYPE_LOGIN, db=db_session, now=T0)
        await verify_otp(stored_user.id, code, OTP_TYPE_LOGIN, db=db_session, now=T0 + timedelta(seconds=179))

    @pytest.mark.asyncio
    async def test_rejected_at_181_seconds(self, db_session, stored_user):
        code = await issue_otp(stored_user.id, OTP_TYPE_LOGIN, db=db_session, now=T0)
        with pytest.raises(OtpExpiredError) as exc:
            await verify_otp(stored_user.id, code, OTP_TYPE_LOGIN, db=db_session, now=T0 + timedelta(seconds=181))
        assert exc.value.status_code == 410
        assert exc.value.message == "OTP expired, please request a new one."

    @pytest.mark.asyncio
    async def test_expiry_checked_before_code(self, db_session, stored_user):
        with patch("services.otp_service.generate_otp", return_value="4321"):
            await issue_otp(stored_user.id, OTP_TYPE_LOGIN, db=db_session, now=T0)
        with pytest.raises(OtpExpiredError):
            await verify_otp(stored_user.id, "0000", OTP_TYPE_LOGIN, db=db_session, now=T0 + timedelta(minutes=5))


@pytest.mark.unit
@pytest.mark.service
class TestResendCooldown:
    """Resend is allowed 180 seconds after the last issuance."""

    @pytest.mark.asyncio
    async def test_allowed_without_history(self, db_session, stored_user):
        decision = await can_resend_otp(stored_user.id, OTP_TYPE_LOGIN, db=db_session, now=T0)
        assert decision.allowed is True

    @pytest.mark.asyncio
    async def test_denied_inside_cooldown(self, db_session, stored_user):
        await issue_otp(stored_user.id, OTP_TYPE_LOGIN, db=db_session, now=T0)
        decision = await can_resend_otp(stored_user.id, OTP_TYPE_LOGIN, db=db_session, now=T0 + timedelta(seconds=10))
        assert decision.allowed is False
        assert decision.remaining_seconds == 170

    @pytest.mark.asyncio
    async def test_remaining_seconds_round_up(self, db_session, stored_user):
        await issue_otp(stored_user.id, OTP_TYPE_LOGIN, db=db_session, now=T0)
        decision = await can_resend_otp(
            stored_user.id, OTP_TYPE_LOGIN, db=db_session, now=T0 + timedelta(seconds=179, milliseconds=500)
        )
        assert decision.allowed is False
        assert decision.remaining_seconds == 1

    @pytest.mark.asyncio
    async def test_allowed_at_180_seconds(self, db_session, stored_user):
        await issue_otp(stored_user.id, OTP_TYPE_LOGIN, db=db_session, now=T0)
        decision = await can_resend_otp(stored_user.id, OTP_TYPE_LOGIN, db=db_session, now=T0 + timedelta(seconds=180))
        assert decision.allowed is True

    @pytest.mark.asyncio
    async def test_used_codes_still_count(self, db_session, stored_user):
        code = await issue_otp(stored_user.id, OTP_TYPE_LOGIN, db=db_session, now=T0)
        await verify_otp(stored_user.id, code, OTP_TYPE_LOGIN, db=db_session, now=T0 + timedelta(seconds=5))
        decision = await can_resend_otp(stored_user.id, OTP_TYPE_LOGIN, db=db_session, now=T0 + timedelta(seconds=60))
        assert decision.allowed is False
        assert decision.remaining_seconds == 120
