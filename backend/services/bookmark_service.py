import logging
from typing import Any, Dict

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import NotFoundError, ValidationError
from db.models.bookmark import Bookmark
from db.session import get_or_use_session
from schemas.article_schema import BookmarkOut, require_article_url
from utils.clock import utcnow
from utils.db import safe_commit

logger = logging.getLogger(__name__)


async def list_bookmarks(user_id: str, db: AsyncSession = None) -> dict:
    async with get_or_use_session(db) as _db:
        result = await _db.execute(
            select(Bookmark)
            .where(Bookmark.user_id == user_id)
            .order_by(Bookmark.created_at.desc(), Bookmark.id.desc())
        )
        rows = result.scalars().all()
        return {"bookmarks": [BookmarkOut.model_validate(b).model_dump() for b in rows]}


async def add_bookmark(user_id: str, article_url: str, article_data: Dict[str, Any], db: AsyncSession = None) -> dict:
    if not article_url or not article_data:
        raise ValidationError("article_url and article_data are required.")
    require_article_url(article_url)
    if not isinstance(article_data, dict):
        raise ValidationError("article_data must be an object.")

    async with get_or_use_session(db) as _db:
        bookmark = Bookmark(
            user_id=user_id,
            article_url=article_url,
            article_data=article_data,
            created_at=utcnow(),
        )
        _db.add(bookmark)
        # Unique (user_id, article_url) surfaces as 409
        await safe_commit(_db, conflict_message="Article already bookmarked.")
        logger.info(f"Bookmark {bookmark.id} added")
        return {"message": "Article bookmarked.", "bookmark": BookmarkOut.model_validate(bookmark).model_dump()}


async def remove_bookmark(user_id: str, bookmark_id: int, db: AsyncSession = None) -> dict:
    async with get_or_use_session(db) as _db:
        result = await _db.execute(
            delete(Bookmark)
            .where(Bookmark.id == bookmark_id, Bookmark.user_id == user_id)
        )
        if result.rowcount == 0:
            await _db.rollback()
            raise NotFoundError("Bookmark not found.")
        await safe_commit(_db)
        return {"message": "Bookmark removed."}


async def remove_bookmark_by_url(user_id: str, article_url: str, db: AsyncSession = None) -> dict:
    if not article_url:
        raise ValidationError("article_url is required.")
    require_article_url(article_url)
    async with get_or_use_session(db) as _db:
        result = await _db.execute(
            delete(Bookmark)
            .where(Bookmark.article_url == article_url, Bookmark.user_id == user_id)
        )
        if result.rowcount == 0:
            await _db.rollback()
            raise NotFoundError("Bookmark not found.")
        await safe_commit(_db)
        return {"message": "Bookmark removed."}
