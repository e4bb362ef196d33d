"""Async test fixtures for portal tests using SQLite."""

from __future__ import annotations

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from portal.database import enable_sqlite_foreign_keys, get_db
from portal.models.base import Base
from portal.models.user import UserProfile
from portal.security.auth import issue_token
from portal.services import auth_svc


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    enable_sqlite_foreign_keys(eng)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def db(engine):
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def user(db: AsyncSession) -> UserProfile:
    return await auth_svc.create_user(
        db, email="client@example.com", password="client-pass-123", first_name="Wanjiru"
    )


@pytest_asyncio.fixture
async def admin(db: AsyncSession) -> UserProfile:
    return await auth_svc.create_user(
        db, email="admin@example.com", password="admin-pass-123", role="admin"
    )


@pytest.fixture
def user_headers(user: UserProfile) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_token(user)}"}


@pytest.fixture
def admin_headers(admin: UserProfile) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_token(admin)}"}


@pytest_asyncio.fixture
async def client(engine):
    """HTTPX async test client against the portal app."""
    from portal.app import app

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.state.performance.reset()
    app.state.gateway_transport = None

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
    app.state.gateway_transport = None
