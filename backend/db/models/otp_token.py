from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.orm import relationship
from db.session import Base
from utils.clock import utcnow

OTP_TYPE_LOGIN = "login"
OTP_TYPE_RESET_PASSWORD = "reset_password"
OTP_TYPES = (OTP_TYPE_LOGIN, OTP_TYPE_RESET_PASSWORD)


class OtpToken(Base):
    __tablename__ = "otp_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    type = Column(String(32), nullable=False)
    otp_code = Column(String(10), nullable=False)
    expires_at = Column(DateTime, nullable=False)
    used = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", back_populates="otp_tokens")

    __table_args__ = (
        Index("ix_otp_tokens_user_type_created", "user_id", "type", "created_at"),
    )
