import uuid

from sqlalchemy import Column, String, Boolean, DateTime
from sqlalchemy.orm import relationship
from db.session import Base
from utils.clock import utcnow


def _new_id() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_id)
    full_name = Column(String(255), nullable=False)
    # Always stored lower-cased
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    is_first_login = Column(Boolean, default=True, nullable=False)
    # jti of the one outstanding reset credential
    reset_token_jti = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    # Rows below are removed by ON DELETE CASCADE in the database.
    session = relationship("UserSession", back_populates="user", uselist=False, passive_deletes=True)
    otp_tokens = relationship("OtpToken", back_populates="user", passive_deletes=True)
    bookmarks = relationship("Bookmark", back_populates="user", passive_deletes=True)
    likes = relationship("Like", back_populates="user", passive_deletes=True)
    comments = relationship("Comment", back_populates="user", passive_deletes=True)
