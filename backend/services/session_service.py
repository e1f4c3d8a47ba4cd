import logging
from typing import Optional

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from core.security import create_access_token, token_fingerprint
from db.models.user import User as UserModel
from db.models.user_session import UserSession
from db.session import get_or_use_session
from utils.clock import utcnow
from utils.db import safe_commit

logger = logging.getLogger(__name__)

DEFAULT_DEVICE_INFO = "Unknown"

_UPSERT_BUILDERS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


async def _upsert_session(_db: AsyncSession, user_id: str, token_hash: str, device_info: str) -> None:
    now = utcnow()
    builder = _UPSERT_BUILDERS.get(_db.get_bind().dialect.name)
    if builder is not None:
        stmt = builder(UserSession).values(
            user_id=user_id,
            token_hash=token_hash,
            device_info=device_info,
            created_at=now,
            updated_at=now,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[UserSession.user_id],
            set_={"token_hash": token_hash, "device_info": device_info, "updated_at": now},
        )
        await _db.execute(stmt)
        return

    result = await _db.execute(select(UserSession).where(UserSession.user_id == user_id))
    row = result.scalars().first()
    if row is None:
        _db.add(UserSession(user_id=user_id, token_hash=token_hash, device_info=device_info, created_at=now, updated_at=now))
    else:
        row.token_hash = token_hash
        row.device_info = device_info
        row.updated_at = now


async def start_session(user: UserModel, device_info: Optional[str] = None, db: AsyncSession = None) -> str:
    """Mint an identity token and make it the user's only valid session.

    The session row is keyed by user id; whichever login writes last wins and
    every token minted before it stops matching the stored fingerprint.
    """
    access_token = create_access_token(user.id, user.email, user.full_name)
    device_info = (device_info or DEFAULT_DEVICE_INFO)[:512]

    async with get_or_use_session(db) as _db:
        await _upsert_session(_db, user.id, token_fingerprint(access_token), device_info)
        await safe_commit(_db)
    logger.info(f"Session started for user {user.id}")
    return access_token


async def get_session(user_id: str, db: AsyncSession = None) -> Optional[UserSession]:
    async with get_or_use_session(db) as _db:
        result = await _db.execute(
            select(UserSession)
            .where(UserSession.user_id == user_id)
            .execution_options(populate_existing=True)
        )
        return result.scalars().first()


async def end_session(user_id: str, db: AsyncSession = None) -> None:
    """Drop the user's session; a missing row is not an error."""
    async with get_or_use_session(db) as _db:
        await _db.execute(delete(UserSession).where(UserSession.user_id == user_id))
        await safe_commit(_db)
    logger.info(f"Session ended for user {user_id}")


async def end_all_sessions(user_id: str, db: AsyncSession = None) -> None:
    # One row per user today; kept separate so callers state intent.
    await end_session(user_id, db=db)
