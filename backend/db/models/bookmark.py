from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from sqlalchemy.types import JSON
from db.session import Base
from utils.clock import utcnow


class Bookmark(Base):
    __tablename__ = "bookmarks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    article_url = Column(String(2048), nullable=False)
    # Article snapshot as returned by the news proxy (title, image, source, ...)
    article_data = Column(JSON, nullable=False, default=dict)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="bookmarks")

    __table_args__ = (
        UniqueConstraint("user_id", "article_url", name="uq_bookmarks_user_article"),
        Index("ix_bookmarks_user_created", "user_id", "created_at"),
    )
