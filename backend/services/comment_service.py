import logging

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import ForbiddenError, NotFoundError, ValidationError
from db.models.comment import Comment
from db.session import get_or_use_session
from schemas.article_schema import CommentOut, CommentPage, require_article_url
from utils.clock import utcnow
from utils.db import safe_commit

logger = logging.getLogger(__name__)

MAX_COMMENT_LENGTH = 1000
MAX_PAGE_SIZE = 100


def _clean_content(content) -> str:
    if not isinstance(content, str) or not content.strip():
        raise ValidationError("Comment cannot be empty.")
    if len(content) > MAX_COMMENT_LENGTH:
        raise ValidationError(f"Comment must be at most {MAX_COMMENT_LENGTH} characters.")
    return content.strip()


async def _load(_db: AsyncSession, comment_id: int) -> Comment:
    comment = await _db.get(Comment, comment_id, populate_existing=True)
    if comment is None:
        raise NotFoundError("Comment not found.")
    return comment


async def list_comments(article_url: str, page: int = 1, page_size: int = 20, db: AsyncSession = None) -> dict:
    """Public, newest-first page of comments with their authors."""
    if not article_url:
        raise ValidationError("article_url is required.")
    require_article_url(article_url)
    if page < 1 or page_size < 1:
        raise ValidationError("page and pageSize must be positive integers.")
    page_size = min(page_size, MAX_PAGE_SIZE)

    async with get_or_use_session(db) as _db:
        total = (await _db.execute(
            select(func.count(Comment.id)).where(Comment.article_url == article_url)
        )).scalar() or 0
        result = await _db.execute(
            select(Comment)
            .where(Comment.article_url == article_url)
            .order_by(Comment.created_at.desc(), Comment.id.desc())
            .offset((page - 1) * page_size)
            .limit(page_size)
        )
        comments = result.unique().scalars().all()
        return CommentPage(
            article_url=article_url,
            total=int(total),
            page=page,
            pageSize=page_size,
            comments=[CommentOut.model_validate(c) for c in comments],
        ).model_dump()


async def add_comment(user_id: str, article_url: str, content, db: AsyncSession = None) -> dict:
    if not article_url or not content:
        raise ValidationError("article_url and content are required.")
    require_article_url(article_url)
    text = _clean_content(content)
    async with get_or_use_session(db) as _db:
        now = utcnow()
        comment = Comment(user_id=user_id, article_url=article_url, content=text, created_at=now, updated_at=now)
        _db.add(comment)
        await safe_commit(_db)
        comment = await _load(_db, comment.id)
        logger.info(f"Comment {comment.id} added")
        return {"message": "Comment added.", "comment": CommentOut.model_validate(comment).model_dump()}


async def update_comment(user_id: str, comment_id: int, content, db: AsyncSession = None) -> dict:
    text = _clean_content(content)
    async with get_or_use_session(db) as _db:
        comment = await _load(_db, comment_id)
        if comment.user_id != user_id:
            raise ForbiddenError("You cannot edit someone else's comment.")
        comment.content = text
        comment.updated_at = utcnow()
        await safe_commit(_db)
        return {"message": "Comment updated.", "comment": CommentOut.model_validate(comment).model_dump()}


async def delete_comment(user_id: str, comment_id: int, db: AsyncSession = None) -> dict:
    async with get_or_use_session(db) as _db:
        comment = await _load(_db, comment_id)
        if comment.user_id != user_id:
            raise ForbiddenError("You cannot delete someone else's comment.")
        await _db.delete(comment)
        await safe_commit(_db)
        return {"message": "Comment deleted."}
