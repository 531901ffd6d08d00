"""Root conftest - async DB, seeded staff users and the FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db dependency overridden to use the test DB engine
    - Requests authenticate with real JWTs minted by create_access_token

Design Decisions:
    - StaticPool: the test session and request sessions share one in-memory DB
    - Environment set before any app import (settings are read at import time)
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///test.db")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
os.environ.setdefault("ALERTS_ENABLED", "false")

from decimal import Decimal

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.api.auth import get_password_hash
from app.database import get_db
from app.main import app
from app.models.base import Base
from app.models.user import User
from tests.factories import TEST_PASSWORD, auth_headers

_PASSWORD_HASH = get_password_hash(TEST_PASSWORD)


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
async def test_session_factory(test_engine):
    return async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )


@pytest.fixture
async def test_db(test_session_factory):
    async with test_session_factory() as session:
        yield session


@pytest.fixture
async def users(test_db):
    """One active user per role; two sales users with different rates."""
    seeded = {
        "super_admin": User(
            email="root@tourdesk.co.th", first_name="Root", last_name="Admin",
            password_hash=_PASSWORD_HASH, role="super_admin",
        ),
        "admin": User(
            email="admin@tourdesk.co.th", first_name="Ada", last_name="Admin",
            password_hash=_PASSWORD_HASH, role="admin",
        ),
        "sales": User(
            email="somchai@tourdesk.co.th", first_name="Somchai", last_name="Sales",
            password_hash=_PASSWORD_HASH, role="sales",
            commission_per_head=Decimal("500.00"),
        ),
        "sales2": User(
            email="malee@tourdesk.co.th", first_name="Malee", last_name="Sales",
            password_hash=_PASSWORD_HASH, role="sales",
            commission_per_head=Decimal("300.00"),
        ),
        "staff": User(
            email="ops@tourdesk.co.th", first_name="Ops", last_name="Staff",
            password_hash=_PASSWORD_HASH, role="staff",
        ),
    }
    test_db.add_all(seeded.values())
    await test_db.commit()
    return seeded


@pytest.fixture
def headers(users):
    """Bearer headers keyed by role name."""
    return {role: auth_headers(user) for role, user in users.items()}


@pytest.fixture
async def client(test_engine, test_session_factory):
    """FastAPI test client with DB dependency overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
