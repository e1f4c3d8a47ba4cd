import logging

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ValidationError
from db.models.like import Like
from db.session import get_or_use_session
from schemas.article_schema import LikeStatus, require_article_url
from utils.clock import utcnow
from utils.db import safe_commit

logger = logging.getLogger(__name__)


async def _count_likes(_db: AsyncSession, article_url: str) -> int:
    result = await _db.execute(select(func.count(Like.id)).where(Like.article_url == article_url))
    return int(result.scalar() or 0)


async def _find_like(_db: AsyncSession, user_id: str, article_url: str):
    result = await _db.execute(select(Like).where(Like.user_id == user_id, Like.article_url == article_url))
    return result.scalars().first()


async def get_like_status(user_id: str, article_url: str, db: AsyncSession = None) -> dict:
    if not article_url:
        raise ValidationError("article_url is required.")
    require_article_url(article_url)
    async with get_or_use_session(db) as _db:
        return LikeStatus(
            article_url=article_url,
            total_likes=await _count_likes(_db, article_url),
            is_liked=await _find_like(_db, user_id, article_url) is not None,
        ).model_dump()


async def toggle_like(user_id: str, article_url: str, db: AsyncSession = None) -> tuple[dict, bool]:
    """Like the article, or unlike it when already liked.

    Returns the response body and whether the article is now liked.
    """
    if not article_url:
        raise ValidationError("article_url is required.")
    require_article_url(article_url)
    async with get_or_use_session(db) as _db:
        existing = await _find_like(_db, user_id, article_url)
        if existing is not None:
            await _db.execute(delete(Like).where(Like.id == existing.id))
            await safe_commit(_db)
            message, liked = "Like removed.", False
        else:
            _db.add(Like(user_id=user_id, article_url=article_url, created_at=utcnow()))
            await safe_commit(_db, conflict_message="Article already liked.")
            message, liked = "Liked.", True
        total = await _count_likes(_db, article_url)
        return {"message": message, "is_liked": liked, "total_likes": total}, liked
