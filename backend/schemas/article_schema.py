from pydantic import BaseModel
from typing import Any, Dict, List, Optional
from datetime import datetime
from core.errors import ValidationError
from schemas.user_schema import CommentAuthor


def require_article_url(article_url, message: str = "article_url must be a non-empty string.") -> str:
    """Reject anything but a non-blank string before it reaches the store."""
    if not isinstance(article_url, str) or not article_url.strip():
        raise ValidationError(message)
    return article_url


class BookmarkOut(BaseModel):
    id: int
    article_url: str
    article_data: Dict[str, Any]
    created_at: datetime

    class Config:
        from_attributes = True

class LikeStatus(BaseModel):
    article_url: str
    total_likes: int
    is_liked: bool

class CommentOut(BaseModel):
    id: int
    article_url: str
    content: str
    created_at: datetime
    updated_at: datetime
    user: Optional[CommentAuthor] = None

    class Config:
        from_attributes = True

class CommentPage(BaseModel):
    article_url: str
    comments: List[CommentOut]
    total: int
    page: int
    pageSize: int
