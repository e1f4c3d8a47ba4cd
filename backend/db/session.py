from sqlalchemy.orm import declarative_base
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession, AsyncEngine
from sqlalchemy import event
from contextlib import asynccontextmanager
from core.config import settings
import logging
from typing import Optional

Base = declarative_base()
logger = logging.getLogger("yb_news")

def to_async_database_url(url: str) -> str:
    if not url:
        return url
    # Supabase / Heroku style URLs -> asyncpg
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql+psycopg2://"):
        return url.replace("postgresql+psycopg2://", "postgresql+asyncpg://", 1)
    if url.startswith("sqlite:///"):
        return url.replace("sqlite:///", "sqlite+aiosqlite:///", 1)
    return url

def enable_sqlite_foreign_keys(async_engine: AsyncEngine) -> None:
    """SQLite ignores ON DELETE CASCADE unless foreign keys are switched on per connection."""
    @event.listens_for(async_engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

def build_engine(url: str) -> AsyncEngine:
    async_url = to_async_database_url(url)
    if async_url.startswith("sqlite"):
        new_engine = create_async_engine(async_url, future=True, echo=False)
        enable_sqlite_foreign_keys(new_engine)
        return new_engine
    # pool_recycle below the server idle timeout; short pool_timeout so a
    # saturated pool surfaces as an error instead of hanging the request
    return create_async_engine(
        async_url,
        future=True,
        echo=False,
        pool_pre_ping=settings.DB_PRE_PING,
        pool_recycle=settings.DB_POOL_RECYCLE,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_timeout=settings.DB_POOL_TIMEOUT,
        connect_args={"timeout": settings.DB_CONNECT_TIMEOUT},
    )

engine = build_engine(settings.DATABASE_URL)

SessionLocal = async_sessionmaker(
    bind=engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

async def get_db_session():
    async with SessionLocal() as db:
        try:
            logger.debug("DB session dependency: opened")
            yield db
        except Exception:
            # ensure we always rollback when something goes wrong
            await db.rollback()
            raise
        finally:
            logger.debug("DB session dependency: closed")

@asynccontextmanager
async def get_or_use_session(db: Optional[AsyncSession]):
    """Yield provided AsyncSession without closing it, or create one if None."""
    if db is None:
        logger.debug("DB session: creating new session")
        async with SessionLocal() as new_db:
            try:
                yield new_db
            except Exception:
                await new_db.rollback()
                raise
    else:
        yield db

# Optional: lightweight pool logging (safe to keep)
@event.listens_for(engine.sync_engine, "checkout")
def _on_checkout(dbapi_connection, connection_record, connection_proxy):
    logger.debug("DB checkout: id=%s", id(connection_record))

@event.listens_for(engine.sync_engine, "checkin")
def _on_checkin(dbapi_connection, connection_record):
    logger.debug("DB checkin: id=%s", id(connection_record))
