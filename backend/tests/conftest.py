"""
Pytest configuration and fixtures for the backend tests.
"""
import asyncio
import os
import tempfile

# Settings are read at import time; configure the test environment first.
os.environ.setdefault("SECRET_KEY", "test-secret-key-not-for-production")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("LOG_DIR", tempfile.mkdtemp(prefix="yb-news-logs-"))
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest
from typing import AsyncGenerator
from unittest.mock import AsyncMock, patch

from aiohttp import web
from aiohttp.test_utils import TestServer
from faker import Faker
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from main import app
from core.rate_limit import limiter, otp_request_limiter
from db.base import initialize_database
from db.session import build_engine, get_db_session
from db.models.user import User as UserModel
from services.news_service import NewsClient
from helpers import DEFAULT_PASSWORD, last_otp

# Initialize Faker for test data generation
fake = Faker()


class FakeNewsUpstream:
    """Programmable stand-in for newsapi.org served by aiohttp's TestServer."""

    def __init__(self):
        self.requests = []
        self.status_code = 200
        self.payload = {"status": "ok", "totalResults": 0, "articles": []}
        self.delay = 0.0
        self.base_url = None

    async def everything(self, request: web.Request) -> web.Response:
        self.requests.append(request.rel_url)
        if self.delay:
            await asyncio.sleep(self.delay)
        return web.json_response(self.payload, status=self.status_code)

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/v2/everything", self.everything)
        return app


@pytest.fixture
async def db_engine(tmp_path):
    """Fresh SQLite database per test, foreign keys enforced."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await initialize_database(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(bind=db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def reset_rate_limits():
    limiter.reset()
    otp_request_limiter.reset()
    yield
    limiter.reset()
    otp_request_limiter.reset()


@pytest.fixture(autouse=True)
def mail_outbox():
    """Capture OTP emails instead of talking to SMTP.

    Each call records (to_email, name, otp, otp_type).
    """
    with patch("services.auth_service.send_otp_email", new_callable=AsyncMock) as mocked:
        mocked.return_value = True
        yield mocked


@pytest.fixture
async def news_upstream() -> AsyncGenerator[FakeNewsUpstream, None]:
    upstream = FakeNewsUpstream()
    server = TestServer(upstream.make_app())
    await server.start_server()
    upstream.base_url = str(server.make_url("/v2"))
    yield upstream
    await server.close()


@pytest.fixture
async def async_client(session_factory, news_upstream) -> AsyncGenerator[AsyncClient, None]:
    """Create an async test client bound to the per-test database."""
    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db
    news_client = NewsClient(api_key="test-news-key", base_url=news_upstream.base_url)
    app.state.news_client = news_client

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    await news_client.aclose()
    app.dependency_overrides.clear()


@pytest.fixture
def sample_user_data():
    """Sample registration payload."""
    return {
        "full_name": fake.name(),
        "email": fake.unique.email(),
        "password": DEFAULT_PASSWORD,
        "confirm_password": DEFAULT_PASSWORD,
    }


@pytest.fixture
async def registered_user(async_client: AsyncClient, sample_user_data) -> dict:
    """A registered user that has not logged in yet."""
    response = await async_client.post("/api/auth/register", json=sample_user_data)
    assert response.status_code == 201
    return {**sample_user_data, "id": response.json()["user"]["id"]}


@pytest.fixture
async def active_user(async_client: AsyncClient, registered_user: dict, mail_outbox) -> dict:
    """A user who completed the first-login OTP step and holds a live session."""
    response = await async_client.post(
        "/api/auth/login",
        json={"email": registered_user["email"], "password": registered_user["password"]},
    )
    assert response.json()["needsOtp"] is True
    response = await async_client.post(
        "/api/auth/verify-otp",
        json={"userId": registered_user["id"], "otp": last_otp(mail_outbox), "type": "login"},
    )
    assert response.status_code == 200
    mail_outbox.reset_mock()
    return {**registered_user, "token": response.json()["accessToken"]}


@pytest.fixture
async def stored_user(db_session: AsyncSession) -> UserModel:
    """A user row inserted directly, for service-level tests."""
    user = UserModel(full_name=fake.name(), email=fake.unique.email().lower(), password_hash="x")
    db_session.add(user)
    await db_session.commit()
    result = await db_session.execute(select(UserModel).where(UserModel.id == user.id))
    return result.scalars().first()


@pytest.fixture
async def other_user(async_client: AsyncClient, mail_outbox) -> dict:
    """A second signed-in user, for ownership checks."""
    data = {
        "full_name": fake.name(),
        "email": fake.unique.email(),
        "password": DEFAULT_PASSWORD,
        "confirm_password": DEFAULT_PASSWORD,
    }
    response = await async_client.post("/api/auth/register", json=data)
    user_id = response.json()["user"]["id"]
    await async_client.post("/api/auth/login", json={"email": data["email"], "password": DEFAULT_PASSWORD})
    response = await async_client.post("/api/auth/verify-otp", json={"userId": user_id, "otp": last_otp(mail_outbox)})
    assert response.status_code == 200
    mail_outbox.reset_mock()
    return {**data, "id": user_id, "token": response.json()["accessToken"]}
