"""
Shared fixtures: in-memory SQLite, dependency overrides, mocked Redis.
"""

from __future__ import annotations

import os

# The engine in app.core.database is built at import time.
os.environ.setdefault("LCP_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LCP_LOG_FORMAT", "console")
os.environ.setdefault("LCP_SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")

import uuid
from typing import Optional
from unittest.mock import AsyncMock, patch

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

import app.models  # noqa: F401
from app.core.auth import create_jwt, hash_password
from app.core.database import get_session
from app.main import app as fastapi_app
from app.models.record import Record
from app.models.user import User


@pytest.fixture
async def engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(engine):
    factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with factory() as s:
        yield s


@pytest.fixture
def redis_mock():
    mock = AsyncMock()
    mock.exists = AsyncMock(return_value=0)
    mock.setex = AsyncMock()
    mock.ping = AsyncMock(return_value=True)
    return mock


@pytest.fixture(autouse=True)
def _patch_redis(redis_mock):
    with patch("app.core.auth.get_redis", AsyncMock(return_value=redis_mock)), patch(
        "app.core.redis.get_redis", AsyncMock(return_value=redis_mock)
    ):
        yield


@pytest.fixture
async def client(session):
    async def _override_session():
        yield session

    fastapi_app.dependency_overrides[get_session] = _override_session
    async with AsyncClient(transport=ASGITransport(app=fastapi_app), base_url="http://test") as ac:
        yield ac
    fastapi_app.dependency_overrides.clear()


@pytest.fixture
def make_user(session):
    async def _make(
        role: str = "contributor",
        team: Optional[str] = None,
        email: Optional[str] = None,
        password: Optional[str] = None,
        display_name: str = "Test User",
    ) -> User:
        user = User(
            id=uuid.uuid4(),
            email=email or f"{uuid.uuid4().hex[:10]}@lcp.dev",
            password_hash=hash_password(password) if password else None,
            display_name=display_name,
            role=role,
            team=team,
        )
        session.add(user)
        await session.flush()
        return user

    return _make


@pytest.fixture
def make_record(session):
    async def _make(
        author: User,
        title: str = "Untitled",
        type: str = "entry",
        status: str = "draft",
        fields: Optional[dict] = None,
    ) -> Record:
        record = Record(
            type=type,
            title=title,
            author_id=author.id,
            status=status,
            fields=fields or {},
        )
        session.add(record)
        await session.flush()
        return record

    return _make


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict[str, str]:
        token, _ = create_jwt(user.id)
        return {"Authorization": f"Bearer {token}"}

    return _headers
