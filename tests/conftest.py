"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable
from datetime import timedelta

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from codecase.auth.identity import Identity
from codecase.auth.jwt import create_access_token
from codecase.config import get_settings
from codecase.database import close_db, get_engine, get_session, init_db
from codecase.db import models  # noqa: F401
from codecase.db.base import Base
from codecase.db.models import UserProgress
from codecase.progress.service import ProgressService
from codecase.progress.store import storage_now

ADMIN_ID = "admin-user"


@pytest.fixture(autouse=True)
def settings(tmp_path, monkeypatch):
    """Point every test at its own SQLite file and a known JWT secret."""
    monkeypatch.setenv("CODECASE_DATABASE_URL", f"sqlite+aiosqlite:///{tmp_path / 'progress.db'}")
    monkeypatch.setenv("CODECASE_JWT_SECRET_KEY", "test-secret-key-with-enough-length-for-hs256")
    monkeypatch.setenv("CODECASE_ADMIN_USER_IDS", f'["{ADMIN_ID}"]')
    monkeypatch.setenv("CODECASE_LOG_FORMAT", "console")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


@pytest_asyncio.fixture
async def db_session(settings) -> AsyncGenerator[AsyncSession, None]:
    """Session on a fresh database created from the ORM metadata."""
    await init_db(settings.database_url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    sessions = get_session()
    session = await anext(sessions)
    yield session
    await sessions.aclose()
    await close_db()


@pytest.fixture
def service(db_session: AsyncSession, settings) -> ProgressService:
    return ProgressService(db_session, None, settings)


@pytest.fixture
def register_user(service: ProgressService):
    """Register a user through the service and return the result."""

    async def _register(user_id: str, referral_code: str | None = None, display_name: str | None = None):
        identity = Identity(user_id=user_id, email=f"{user_id}@example.com")
        return await service.register(identity, display_name or user_id, referral_code)

    return _register


@pytest.fixture
def rewind_claim(db_session: AsyncSession):
    """Move a user's last claim back in time, optionally forcing the streak value."""

    async def _rewind(user_id: str, hours: float, streak: int | None = None) -> None:
        now = await storage_now(db_session)
        values: dict[str, object] = {"last_claim_date": now - timedelta(hours=hours)}
        if streak is not None:
            values["login_streak"] = streak
        await db_session.execute(update(UserProgress).where(UserProgress.id == user_id).values(**values))
        await db_session.commit()

    return _rewind


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client on the app; the database is initialised by db_session."""
    from codecase.main import create_app

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_headers() -> Callable[..., dict[str, str]]:
    def _headers(user_id: str, email: str | None = None) -> dict[str, str]:
        token = create_access_token(user_id, email or f"{user_id}@example.com")
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest_asyncio.fixture
async def make_service(db_session: AsyncSession, settings) -> AsyncGenerator[Callable[..., object], None]:
    """Build services on their own sessions, for running operations side by side."""
    generators = []

    async def _make() -> ProgressService:
        sessions = get_session()
        generators.append(sessions)
        return ProgressService(await anext(sessions), None, settings)

    yield _make
    for sessions in generators:
        await sessions.aclose()
