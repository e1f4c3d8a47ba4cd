from db.session import Base, engine
# Register every mapped table on Base.metadata
from db.models.user import User  # noqa: F401
from db.models.user_session import UserSession  # noqa: F401
from db.models.otp_token import OtpToken  # noqa: F401
from db.models.bookmark import Bookmark  # noqa: F401
from db.models.like import Like  # noqa: F401
from db.models.comment import Comment  # noqa: F401
import logging
from sqlalchemy.ext.asyncio import AsyncEngine
from typing import Optional

logger = logging.getLogger(__name__)

async def initialize_database(target_engine: Optional[AsyncEngine] = None):
    """Create tables only. Run seed.py to populate development data."""
    target = target_engine or engine
    try:
        async with target.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Error creating database tables: {e}")
        raise
