import logging
import math
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.config import settings
from core.errors import OtpExpiredError, OtpMismatchError, OtpNotFoundError
from db.models.otp_token import OtpToken
from db.session import get_or_use_session
from utils.clock import utcnow
from utils.db import safe_commit

logger = logging.getLogger(__name__)

OTP_LENGTH = 4
OTP_EXPIRY = timedelta(minutes=settings.OTP_EXPIRY_MINUTES)
OTP_RESEND_COOLDOWN = timedelta(seconds=settings.OTP_RESEND_COOLDOWN_SECONDS)

_random = secrets.SystemRandom()


@dataclass(frozen=True)
class ResendDecision:
    allowed: bool
    remaining_seconds: int = 0


def generate_otp() -> str:
    """Zero-padded numeric code, 0000-9999."""
    return str(_random.randrange(10 ** OTP_LENGTH)).zfill(OTP_LENGTH)


async def issue_otp(user_id: str, purpose: str, db: AsyncSession = None, now: Optional[datetime] = None) -> str:
    """Supersede any unused code for (user, purpose) and store a fresh one.

    Returns the plaintext code for immediate delivery.
    """
    now = now or utcnow()
    async with get_or_use_session(db) as _db:
        await _db.execute(
            update(OtpToken)
            .where(
                OtpToken.user_id == user_id,
                OtpToken.type == purpose,
                OtpToken.used.is_(False),
            )
            .values(used=True)
        )
        code = generate_otp()
        _db.add(OtpToken(
            user_id=user_id,
            type=purpose,
            otp_code=code,
            expires_at=now + OTP_EXPIRY,
            used=False,
            created_at=now,
        ))
        await safe_commit(_db, server_error_message="Failed to store OTP.")
        logger.info(f"Issued {purpose} OTP for user {user_id}")
        return code


async def verify_otp(user_id: str, code: str, purpose: str, db: AsyncSession = None, now: Optional[datetime] = None) -> None:
    """Consume the active code for (user, purpose).

    Raises OtpNotFoundError, OtpExpiredError or OtpMismatchError; returns
    None once the code has been marked used.
    """
    now = now or utcnow()
    async with get_or_use_session(db) as _db:
        result = await _db.execute(
            select(OtpToken)
            .where(
                OtpToken.user_id == user_id,
                OtpToken.type == purpose,
                OtpToken.used.is_(False),
            )
            .order_by(OtpToken.created_at.desc(), OtpToken.id.desc())
            .limit(1)
        )
        token = result.scalars().first()
        if token is None:
            logger.info(f"No active {purpose} OTP for user {user_id}")
            raise OtpNotFoundError("No active OTP found. Please request a new one.")

        if now >= token.expires_at:
            logger.info(f"Expired {purpose} OTP presented for user {user_id}")
            raise OtpExpiredError("OTP expired, please request a new one.")

        if not secrets.compare_digest(token.otp_code.encode(), str(code).encode()):
            logger.info(f"OTP mismatch for user {user_id}")
            raise OtpMismatchError("Invalid OTP code.")

        token.used = True
        await safe_commit(_db)


async def can_resend_otp(user_id: str, purpose: str, db: AsyncSession = None, now: Optional[datetime] = None) -> ResendDecision:
    """Cooldown check against the newest issuance, used or not."""
    now = now or utcnow()
    async with get_or_use_session(db) as _db:
        result = await _db.execute(
            select(OtpToken.created_at)
            .where(OtpToken.user_id == user_id, OtpToken.type == purpose)
            .order_by(OtpToken.created_at.desc(), OtpToken.id.desc())
            .limit(1)
        )
        last_created = result.scalars().first()

    if last_created is None:
        return ResendDecision(allowed=True)

    elapsed = now - last_created
    if elapsed >= OTP_RESEND_COOLDOWN:
        return ResendDecision(allowed=True)
    remaining = math.ceil((OTP_RESEND_COOLDOWN - elapsed).total_seconds())
    return ResendDecision(allowed=False, remaining_seconds=max(remaining, 1))
