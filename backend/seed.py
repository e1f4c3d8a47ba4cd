#!/usr/bin/env python3
"""
Development seeder: demo users, bookmarks, likes and comments.

Usage:
    python seed.py

Safe to run repeatedly; rows that already exist are left untouched.
"""

import asyncio
import logging
from typing import Optional
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncEngine, async_sessionmaker
from core.security import get_password_hash
from db.base import initialize_database
from db.session import engine
from db.models.user import User as UserModel
from db.models.bookmark import Bookmark
from db.models.like import Like
from db.models.comment import Comment

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("seed")

DEMO_USERS = [
    {"full_name": "John Doe", "email": "john@example.com", "password": "JohnPass123", "is_first_login": False},
    {"full_name": "Jane Smith", "email": "jane@example.com", "password": "JanePass456", "is_first_login": False},
    # Exercises the first-login OTP step-up
    {"full_name": "Test User", "email": "test@example.com", "password": "TestPass789", "is_first_login": True},
]

DEMO_BOOKMARKS = [
    {
        "article_url": "https://example-news.com/article-1",
        "article_data": {
            "title": "Breaking: New AI Model Released",
            "description": "A revolutionary new AI model has been released today",
            "urlToImage": "https://via.placeholder.com/400x300?text=AI+News",
            "source": {"name": "TechNews"},
            "publishedAt": "2026-02-19T10:00:00Z",
        },
    },
    {
        "article_url": "https://example-news.com/article-2",
        "article_data": {
            "title": "Stock Market Hits New High",
            "description": "Global stock markets reach all-time highs",
            "urlToImage": "https://via.placeholder.com/400x300?text=Market+News",
            "source": {"name": "BusinessDaily"},
            "publishedAt": "2026-02-19T09:30:00Z",
        },
    },
]

DEMO_LIKES = ["https://example-news.com/article-1", "https://example-news.com/article-3"]

DEMO_COMMENTS = [
    ("https://example-news.com/article-1", "This is an amazing development in AI technology!"),
    ("https://example-news.com/article-2", "Great news for investors. The market is growing strong."),
]


async def seed(target_engine: Optional[AsyncEngine] = None) -> dict:
    """Insert demo rows that are missing; returns counts of inserted rows."""
    target = target_engine or engine
    await initialize_database(target)
    async_session = async_sessionmaker(bind=target, expire_on_commit=False)
    counts = {"users": 0, "bookmarks": 0, "likes": 0, "comments": 0}

    async with async_session() as session:
        users = []
        for data in DEMO_USERS:
            result = await session.execute(select(UserModel).where(UserModel.email == data["email"]))
            user = result.scalars().first()
            if user is None:
                user = UserModel(
                    full_name=data["full_name"],
                    email=data["email"],
                    password_hash=get_password_hash(data["password"]),
                    is_first_login=data["is_first_login"],
                )
                session.add(user)
                counts["users"] += 1
                logger.info(f"Created user {data['email']}")
            users.append(user)
        await session.flush()

        owner = users[0]
        for data in DEMO_BOOKMARKS:
            result = await session.execute(
                select(Bookmark).where(Bookmark.user_id == owner.id, Bookmark.article_url == data["article_url"])
            )
            if result.scalars().first() is None:
                session.add(Bookmark(user_id=owner.id, **data))
                counts["bookmarks"] += 1

        for article_url in DEMO_LIKES:
            result = await session.execute(
                select(Like).where(Like.user_id == owner.id, Like.article_url == article_url)
            )
            if result.scalars().first() is None:
                session.add(Like(user_id=owner.id, article_url=article_url))
                counts["likes"] += 1

        for author, (article_url, content) in zip(users, DEMO_COMMENTS):
            result = await session.execute(
                select(Comment.id).where(
                    Comment.user_id == author.id,
                    Comment.article_url == article_url,
                    Comment.content == content,
                )
            )
            if result.scalars().first() is None:
                session.add(Comment(user_id=author.id, article_url=article_url, content=content))
                counts["comments"] += 1

        await session.commit()
    return counts


async def main():
    logger.info("Seeding development data...")
    try:
        counts = await seed()
        logger.info("=" * 50)
        logger.info("Seed Summary:")
        for table, inserted in counts.items():
            logger.info(f"{table} inserted: {inserted}")
        logger.info("=" * 50)
        logger.info("Demo password for each user is listed in DEMO_USERS")
    except Exception as e:
        logger.error(f"Seeding failed: {e}", exc_info=True)
        raise
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
