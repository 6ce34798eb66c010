"""Shared test fixtures."""

from __future__ import annotations

import os
import time
from collections.abc import AsyncGenerator
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import jwt
import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from tandem.auth.password import hash_password
from tandem.auth.tokens import create_admin_token
from tandem.config import get_settings
from tandem.database import close_db, get_engine, get_session_factory, init_db
from tandem.db.base import Base
from tandem.db.models import Avatar, Subscription, User
from tandem.middleware.rate_limit import RateLimitStore

AUTH_SECRET = "test-auth-secret-0123456789abcdef"
ADMIN_SECRET = "test-admin-secret-0123456789abcdef"
ADMIN_PASSWORD = "correct horse battery staple"
CSRF_TOKEN = "a" * 64

os.environ.update(
    {
        "TANDEM_ENVIRONMENT": "test",
        "TANDEM_REDIS_URL": "",
        "TANDEM_AUTH_JWT_SECRET": AUTH_SECRET,
        "TANDEM_ADMIN_JWT_SECRET": ADMIN_SECRET,
        "TANDEM_ADMIN_USERNAME": "admin",
        "TANDEM_ADMIN_PASSWORD_HASH": hash_password(ADMIN_PASSWORD),
        "TANDEM_ANTHROPIC_API_KEY": "",
        "TANDEM_DISCORD_WEBHOOK_URL": "",
        "TANDEM_LOG_FORMAT": "console",
    }
)


def user_token(user_id: str, *, email: str | None = None, expires_in: int = 3600) -> str:
    """Mint an access token the way the auth provider does."""
    now = int(time.time())
    claims: dict[str, Any] = {"sub": user_id, "aud": "authenticated", "iat": now, "exp": now + expires_in}
    if email:
        claims["email"] = email
    return jwt.encode(claims, AUTH_SECRET, algorithm="HS256")


def user_headers(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {user_token(user_id)}"}


def admin_headers(*, csrf: str | None = CSRF_TOKEN) -> dict[str, str]:
    headers = {"Authorization": f"Bearer {create_admin_token('admin')}"}
    if csrf:
        headers["X-CSRF-Token"] = csrf
    return headers


def days_ago(n: int) -> date:
    return date.today() - timedelta(days=n)


def tandem_payload(theme: str = "Things in a kitchen") -> dict[str, Any]:
    return {
        "theme": theme,
        "puzzles": [
            {"emoji": "🔪🥩", "answer": "knife"},
            {"emoji": "🍳🔥", "answer": "pan"},
            {"emoji": "🧊❄️", "answer": "fridge"},
            {"emoji": "🥄🍲", "answer": "ladle"},
        ],
    }


def reel_groups() -> list[dict[str, Any]]:
    connections = ["Heist films", "Set in space", "Directed by women", "Musicals"]
    return [
        {
            "connection": connection,
            "movies": [
                {"imdbId": f"tt{g}{m}000{g}{m}", "title": f"Movie {g}-{m}", "year": 1990 + m}
                for m in range(4)
            ],
        }
        for g, connection in enumerate(connections)
    ]


@pytest_asyncio.fixture
async def app(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> AsyncGenerator[FastAPI, None]:
    """Application bound to a fresh SQLite database."""
    monkeypatch.setenv("TANDEM_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'tandem.db'}")
    get_settings.cache_clear()

    from tandem.main import create_app

    application = create_app()
    await init_db(get_settings().database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    application.state.rate_limits = RateLimitStore()

    yield application

    await close_db()
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest_asyncio.fixture
async def admin_client(client: AsyncClient) -> AsyncClient:
    """Client carrying an admin token and a matching CSRF cookie/header pair."""
    client.headers.update(admin_headers())
    client.cookies.set(get_settings().csrf_cookie_full_name, CSRF_TOKEN)
    return client


@pytest_asyncio.fixture
async def db_session(app: FastAPI) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for arranging data and asserting on it."""
    async with get_session_factory()() as session:
        yield session


async def make_user(
    db: AsyncSession,
    user_id: str,
    *,
    username: str | None = None,
    avatar_path: str | None = None,
    subscribed: bool = False,
) -> User:
    avatar_id = None
    if avatar_path:
        avatar_id = f"avatar-{user_id}"
        db.add(Avatar(id=avatar_id, display_name=username or user_id, image_path=avatar_path))
    user = User(id=user_id, username=username, selected_avatar_id=avatar_id, country_flag="🇺🇸")
    db.add(user)
    if subscribed:
        now = datetime.now(timezone.utc)
        db.add(
            Subscription(
                user_id=user_id,
                tier="bestfriends",
                status="active",
                current_period_start=now - timedelta(days=1),
                current_period_end=now + timedelta(days=30),
            )
        )
    await db.commit()
    return user
