from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_current_user
from core.config import settings
from core.errors import RateLimitedError, ValidationError
from core.rate_limit import limiter, otp_request_limiter
from db.session import get_db_session
from schemas.user_schema import CurrentUser
from services.auth_service import (
    delete_account,
    get_profile,
    login_user,
    logout_user,
    register_user,
    request_password_reset,
    reset_password,
    resend_otp,
    verify_otp_code,
)
from utils.responses import no_store_json

router = APIRouter(prefix="/api/auth")


def _text(payload: dict, key: str, strip: bool = True) -> str:
    value = payload.get(key)
    if value is None:
        return ""
    value = str(value)
    return value.strip() if strip else value


@router.post("/register")
async def register(payload: dict, db: AsyncSession = Depends(get_db_session)):
    result = await register_user(
        _text(payload, "full_name", strip=False),
        _text(payload, "email"),
        _text(payload, "password", strip=False),
        _text(payload, "confirm_password", strip=False),
        db,
    )
    return no_store_json(result, status_code=201)


@router.post("/login")
@limiter.limit(settings.LOGIN_RATE_LIMIT, error_message="Too many login attempts. Try again later.")
async def login(request: Request, payload: dict, db: AsyncSession = Depends(get_db_session)):
    result = await login_user(
        _text(payload, "email"),
        _text(payload, "password", strip=False),
        request.headers.get("user-agent"),
        db,
    )
    return no_store_json(result.to_response())


@router.post("/verify-otp")
async def verify_otp(request: Request, payload: dict, db: AsyncSession = Depends(get_db_session)):
    result = await verify_otp_code(
        _text(payload, "userId"),
        _text(payload, "otp"),
        _text(payload, "type") or "login",
        request.headers.get("user-agent"),
        db,
    )
    return no_store_json(result.to_response())


@router.post("/resend-otp")
async def resend(payload: dict, db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await resend_otp(_text(payload, "userId"), _text(payload, "type") or "login", db))


@router.post("/logout")
async def logout(current_user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await logout_user(current_user.id, db))


@router.delete("/account")
async def remove_account(current_user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await delete_account(current_user.id, db))


@router.get("/me")
async def me(current_user: CurrentUser = Depends(get_current_user), db: AsyncSession = Depends(get_db_session)):
    return no_store_json(await get_profile(current_user.id, db))


@router.post("/forgot-password")
async def forgot_password(payload: dict, db: AsyncSession = Depends(get_db_session)):
    email = _text(payload, "email")
    if not email:
        raise ValidationError("Email is required.")
    # One OTP request per window for each email
    retry_after = otp_request_limiter.hit(email.lower())
    if retry_after is not None:
        raise RateLimitedError("Please wait before requesting a new OTP.", remaining_seconds=retry_after)
    return no_store_json(await request_password_reset(email, db))


@router.post("/reset-password")
async def reset(payload: dict, db: AsyncSession = Depends(get_db_session)):
    result = await reset_password(
        _text(payload, "resetToken"),
        _text(payload, "newPassword", strip=False),
        _text(payload, "confirmPassword", strip=False),
        db,
    )
    return no_store_json(result)
