from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from db.session import Base
from utils.clock import utcnow


class UserSession(Base):
    """The single live session of a user (single-device enforcement)."""

    __tablename__ = "user_sessions"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        String(36),
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    # sha256 hex of the currently valid access token
    token_hash = Column(String(64), nullable=False)
    device_info = Column(String(512), nullable=False, default="Unknown")
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="session")
