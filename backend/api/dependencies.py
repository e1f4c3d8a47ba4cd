from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import AuthenticationError, SessionInvalidatedError, SessionNotFoundError
from core.security import token_fingerprint, verify_identity_token
from db.session import get_db_session
from schemas.user_schema import CurrentUser
from services.news_service import NewsClient
from services.session_service import get_session
from utils.logging_config import bind_user_id
import logging

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> CurrentUser:
    """Authenticate the bearer token against the user's single live session."""
    if credentials is None or credentials.scheme.lower() != "bearer" or not credentials.credentials:
        raise AuthenticationError("Missing or invalid authorization header.")

    token = credentials.credentials
    # Raises TokenExpiredError or AuthenticationError; reset tokens are rejected here
    claims = verify_identity_token(token)

    session = await get_session(claims.id, db=db)
    if session is None:
        raise SessionNotFoundError("Session not found. Please log in again.")

    if session.token_hash != token_fingerprint(token):
        logger.info(f"Superseded token presented for user {claims.id}")
        raise SessionInvalidatedError("Session invalidated. Another device has logged in.")

    # Handler logs read the context var; the access line reads request.state
    bind_user_id(claims.id)
    request.state.user_id = claims.id
    return CurrentUser(id=claims.id, email=claims.email, full_name=claims.full_name)


def get_news_client(request: Request) -> NewsClient:
    """The application-owned news proxy (created at startup)."""
    return request.app.state.news_client
