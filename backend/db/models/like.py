from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint, Index
from sqlalchemy.orm import relationship
from db.session import Base
from utils.clock import utcnow


class Like(Base):
    __tablename__ = "likes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    article_url = Column(String(2048), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="likes")

    __table_args__ = (
        UniqueConstraint("user_id", "article_url", name="uq_likes_user_article"),
        Index("ix_likes_article_url", "article_url"),
    )
