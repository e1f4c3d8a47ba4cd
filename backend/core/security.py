from datetime import datetime, timedelta, timezone
from typing import Optional, Union
import hashlib
import logging
import uuid

from jose import jwt
from jose.exceptions import ExpiredSignatureError, JWTError
from passlib.context import CryptContext
from pydantic import BaseModel, ValidationError as PydanticValidationError

from core.config import settings
from core.errors import AuthenticationError, TokenExpiredError
from schemas.token_schema import IdentityClaims, ResetClaims, token_claims_adapter

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash"""
    try:
        return pwd_context.verify(plain_password, hashed_password)
    except ValueError:
        # Unknown or corrupt hash format
        logger.warning("Stored password hash could not be parsed")
        return False

def get_password_hash(password: str) -> str:
    """Generate password hash"""
    return pwd_context.hash(password)

def token_fingerprint(token: str) -> str:
    """One-way fingerprint of a bearer token, stored with the session row."""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()

def new_token_id() -> str:
    return uuid.uuid4().hex

def _encode(claims: BaseModel, expires_delta: timedelta) -> str:
    to_encode = claims.model_dump()
    to_encode["exp"] = datetime.now(timezone.utc) + expires_delta
    to_encode.setdefault("jti", new_token_id())
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)

def create_access_token(user_id: str, email: str, full_name: str, expires_delta: Optional[timedelta] = None) -> str:
    """Create identity JWT for a verified user"""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = IdentityClaims(id=str(user_id), email=email, full_name=full_name)
    return _encode(claims, expires_delta)

def create_reset_token(user_id: str, jti: Optional[str] = None, expires_delta: Optional[timedelta] = None) -> str:
    """Create a short-lived JWT that only authorizes a password reset"""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.RESET_TOKEN_EXPIRE_MINUTES)
    return _encode(ResetClaims(id=str(user_id), jti=jti or new_token_id()), expires_delta)

def decode_token(token: str) -> Union[IdentityClaims, ResetClaims]:
    """Verify signature and expiry and return the typed claims.

    Raises TokenExpiredError when the embedded expiry has passed and
    AuthenticationError for any other signature or structure problem.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except ExpiredSignatureError:
        raise TokenExpiredError("Access token expired.")
    except JWTError as e:
        logger.warning(f"JWT decode failed: {e}")
        raise AuthenticationError("Invalid access token.")
    try:
        return token_claims_adapter.validate_python(payload)
    except PydanticValidationError:
        logger.warning("JWT carried unexpected claims")
        raise AuthenticationError("Invalid access token.")

def verify_identity_token(token: str) -> IdentityClaims:
    claims = decode_token(token)
    if not isinstance(claims, IdentityClaims):
        raise AuthenticationError("Invalid access token.")
    return claims

def verify_reset_token(token: str) -> ResetClaims:
    try:
        claims = decode_token(token)
    except AuthenticationError:
        raise AuthenticationError("Invalid or expired reset token.")
    if not isinstance(claims, ResetClaims):
        raise AuthenticationError("Invalid reset token.")
    return claims
