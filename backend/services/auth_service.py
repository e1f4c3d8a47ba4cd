import logging
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import (
    AuthenticationError,
    ConflictError,
    NotFoundError,
    RateLimitedError,
    ServerError,
    ServiceError,
    ValidationError,
)
from core.security import create_reset_token, get_password_hash, new_token_id, verify_password, verify_reset_token
from db.models.otp_token import OTP_TYPE_LOGIN, OTP_TYPE_RESET_PASSWORD, OTP_TYPES
from db.models.user import User as UserModel
from db.session import get_or_use_session
from schemas.user_schema import UserProfile, UserPublic, UserSummary
from services.otp_service import can_resend_otp, issue_otp, verify_otp
from services.session_service import end_all_sessions, end_session, start_session
from utils.clock import utcnow
from utils.db import safe_commit
from utils.email import send_otp_email
from utils.timing import timeit

logger = logging.getLogger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# At least one letter and one digit; any non-word symbol is also allowed
PASSWORD_RE = re.compile(r"^(?=.*[A-Za-z])(?=.*\d)[A-Za-z\d\W]{8,}$", re.ASCII)
OTP_CODE_RE = re.compile(r"^\d{4}$", re.ASCII)

PASSWORD_RULE_MESSAGE = "Password must be at least 8 characters and contain letters and numbers."
INVALID_CREDENTIALS_MESSAGE = "Invalid email or password."


class LoginState(str, Enum):
    OTP_REQUIRED = "otp_required"
    SESSION_ISSUED = "session_issued"


class OtpVerificationState(str, Enum):
    SESSION_ISSUED = "session_issued"
    RESET_AUTHORIZED = "reset_authorized"


@dataclass
class LoginResult:
    state: LoginState
    user: UserModel
    access_token: Optional[str] = None

    def to_response(self) -> dict:
        if self.state is LoginState.OTP_REQUIRED:
            return {
                "message": "OTP sent to your email.",
                "needsOtp": True,
                "userId": self.user.id,
                "isFirstLogin": True,
            }
        return {
            "message": "Login successful.",
            "accessToken": self.access_token,
            "user": UserSummary.model_validate(self.user).model_dump(),
        }


@dataclass
class OtpVerificationResult:
    state: OtpVerificationState
    user: UserModel
    access_token: Optional[str] = None
    reset_token: Optional[str] = None

    def to_response(self) -> dict:
        if self.state is OtpVerificationState.RESET_AUTHORIZED:
            return {"message": "OTP verified.", "resetToken": self.reset_token}
        return {
            "message": "Login successful.",
            "accessToken": self.access_token,
            "user": UserSummary.model_validate(self.user).model_dump(),
        }


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_RE.fullmatch(email or ""))


def is_valid_password(password: str) -> bool:
    return bool(PASSWORD_RE.fullmatch(password or ""))


def _check_otp_type(otp_type: str) -> str:
    otp_type = otp_type or OTP_TYPE_LOGIN
    if otp_type not in OTP_TYPES:
        raise ValidationError("Invalid OTP type.")
    return otp_type


async def _get_user_by_email(_db: AsyncSession, email: str) -> Optional[UserModel]:
    result = await _db.execute(select(UserModel).where(UserModel.email == normalize_email(email)))
    return result.scalars().first()


async def _get_user_by_id(_db: AsyncSession, user_id: str) -> Optional[UserModel]:
    result = await _db.execute(select(UserModel).where(UserModel.id == str(user_id)))
    return result.scalars().first()


@timeit("register_user")
async def register_user(full_name: str, email: str, password: str, confirm_password: str, db: AsyncSession = None) -> dict:
    """Create an account; the first login will require an emailed OTP."""
    if not (full_name or "").strip() or not email or not password or not confirm_password:
        raise ValidationError("All fields are required.")
    if not is_valid_email(email.strip()):
        raise ValidationError("Invalid email format.")
    if not is_valid_password(password):
        raise ValidationError(PASSWORD_RULE_MESSAGE)
    if password != confirm_password:
        raise ValidationError("Passwords do not match.")

    normalized_email = normalize_email(email)
    try:
        async with get_or_use_session(db) as _db:
            if await _get_user_by_email(_db, normalized_email) is not None:
                raise ConflictError("Email already registered.")

            now = utcnow()
            new_user = UserModel(
                full_name=full_name.strip(),
                email=normalized_email,
                password_hash=get_password_hash(password),
                is_first_login=True,
                created_at=now,
                updated_at=now,
            )
            _db.add(new_user)
            await safe_commit(_db, conflict_message="Email already registered.")
            await _db.refresh(new_user)
            logger.info(f"Registered user {new_user.id}")
            return {
                "message": "Registration successful. Please log in.",
                "user": UserPublic.model_validate(new_user).model_dump(),
            }
    except ServiceError:
        raise
    except Exception as e:
        logger.error(f"Registration failed: {e}")
        raise ServerError("Internal server error.") from e


@timeit("login_user")
async def login_user(email: str, password: str, device_info: Optional[str] = None, db: AsyncSession = None) -> LoginResult:
    """Password check, then either an OTP step-up or a fresh session."""
    if not email or not password:
        raise ValidationError("Email and password are required.")

    async with get_or_use_session(db) as _db:
        user = await _get_user_by_email(_db, email)
        # Unknown email and wrong password are indistinguishable to the caller
        if user is None or not verify_password(password, user.password_hash):
            logger.info("Login rejected: invalid credentials")
            raise AuthenticationError(INVALID_CREDENTIALS_MESSAGE)

        if user.is_first_login:
            otp = await issue_otp(user.id, OTP_TYPE_LOGIN, db=_db)
            await send_otp_email(user.email, user.full_name, otp, OTP_TYPE_LOGIN)
            logger.info(f"First login for user {user.id}; OTP step-up required")
            return LoginResult(state=LoginState.OTP_REQUIRED, user=user)

        access_token = await start_session(user, device_info, db=_db)
        logger.info(f"Login successful for user {user.id}")
        return LoginResult(state=LoginState.SESSION_ISSUED, user=user, access_token=access_token)


@timeit("verify_otp_code")
async def verify_otp_code(
    user_id: str,
    otp: str,
    otp_type: str = OTP_TYPE_LOGIN,
    device_info: Optional[str] = None,
    db: AsyncSession = None,
) -> OtpVerificationResult:
    if not user_id or not otp:
        raise ValidationError("userId and otp are required.")
    if not OTP_CODE_RE.fullmatch(otp):
        raise ValidationError("OTP must be 4 digits.")
    otp_type = _check_otp_type(otp_type)

    async with get_or_use_session(db) as _db:
        await verify_otp(str(user_id), otp, otp_type, db=_db)

        user = await _get_user_by_id(_db, user_id)
        if user is None:
            raise NotFoundError("User not found.")

        if otp_type == OTP_TYPE_RESET_PASSWORD:
            # A newer reset credential replaces any earlier one
            user.reset_token_jti = new_token_id()
            await safe_commit(_db)
            logger.info(f"Password reset authorized for user {user.id}")
            return OtpVerificationResult(
                state=OtpVerificationState.RESET_AUTHORIZED,
                user=user,
                reset_token=create_reset_token(user.id, jti=user.reset_token_jti),
            )

        if user.is_first_login:
            user.is_first_login = False
            user.updated_at = utcnow()
            await safe_commit(_db)
            logger.info(f"First login completed for user {user.id}")

        access_token = await start_session(user, device_info, db=_db)
        return OtpVerificationResult(
            state=OtpVerificationState.SESSION_ISSUED,
            user=user,
            access_token=access_token,
        )


@timeit("resend_otp")
async def resend_otp(user_id: str, otp_type: str = OTP_TYPE_LOGIN, db: AsyncSession = None) -> dict:
    if not user_id:
        raise ValidationError("userId is required.")
    otp_type = _check_otp_type(otp_type)

    async with get_or_use_session(db) as _db:
        decision = await can_resend_otp(str(user_id), otp_type, db=_db)
        if not decision.allowed:
            raise RateLimitedError(
                "Please wait before requesting a new OTP.",
                remaining_seconds=decision.remaining_seconds,
            )

        user = await _get_user_by_id(_db, user_id)
        if user is None:
            raise NotFoundError("User not found.")

        otp = await issue_otp(user.id, otp_type, db=_db)
        await send_otp_email(user.email, user.full_name, otp, otp_type)
        return {"message": "OTP resent successfully."}


@timeit("logout_user")
async def logout_user(user_id: str, db: AsyncSession = None) -> dict:
    await end_session(user_id, db=db)
    return {"message": "Logged out successfully."}


@timeit("request_password_reset")
async def request_password_reset(email: str, db: AsyncSession = None) -> dict:
    """Email a reset OTP when the address is registered.

    The body never reveals whether the address exists beyond the returned
    userId, which the reset flow needs.
    """
    if not email:
        raise ValidationError("Email is required.")

    async with get_or_use_session(db) as _db:
        user = await _get_user_by_email(_db, email)
        if user is None:
            logger.info("Password reset requested for unknown email")
            return {"message": "If this email is registered, an OTP has been sent.", "userId": None}

        otp = await issue_otp(user.id, OTP_TYPE_RESET_PASSWORD, db=_db)
        await send_otp_email(user.email, user.full_name, otp, OTP_TYPE_RESET_PASSWORD)
        return {"message": "OTP sent to your email.", "userId": user.id}


@timeit("reset_password")
async def reset_password(reset_token: str, new_password: str, confirm_password: str, db: AsyncSession = None) -> dict:
    """Change the password and log the user out everywhere."""
    if not reset_token or not new_password or not confirm_password:
        raise ValidationError("All fields are required.")
    if new_password != confirm_password:
        raise ValidationError("Passwords do not match.")
    if not is_valid_password(new_password):
        raise ValidationError(PASSWORD_RULE_MESSAGE)

    claims = verify_reset_token(reset_token)

    async with get_or_use_session(db) as _db:
        result = await _db.execute(
            update(UserModel)
            .where(UserModel.id == claims.id, UserModel.reset_token_jti == claims.jti)
            .values(password_hash=get_password_hash(new_password), reset_token_jti=None, updated_at=utcnow())
        )
        if result.rowcount == 0:
            await _db.rollback()
            raise AuthenticationError("Invalid or expired reset token.")
        await safe_commit(_db)
        await end_all_sessions(claims.id, db=_db)
    logger.info(f"Password reset for user {claims.id}")
    return {"message": "Password reset successfully. Please log in."}


@timeit("delete_account")
async def delete_account(user_id: str, db: AsyncSession = None) -> dict:
    """Delete the user; sessions, OTPs, bookmarks, likes and comments cascade."""
    async with get_or_use_session(db) as _db:
        await _db.execute(delete(UserModel).where(UserModel.id == user_id))
        await safe_commit(_db)
    logger.info(f"Account deleted for user {user_id}")
    return {
        "message": "Account deleted successfully. All your data (bookmarks, comments, likes) have been removed."
    }


async def get_profile(user_id: str, db: AsyncSession = None) -> dict:
    async with get_or_use_session(db) as _db:
        user = await _get_user_by_id(_db, user_id)
        if user is None:
            raise NotFoundError("User not found.")
        return {"user": UserProfile.model_validate(user).model_dump()}
