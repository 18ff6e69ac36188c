"""
Pytest configuration and shared fixtures.
"""
import os

# Must be set before app modules read config
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["JWT_ALGORITHM"] = "HS256"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database.base import Base
from app.core.database.engine import enable_sqlite_foreign_keys, get_db
from app.features.permissions.constants import ModuleType
from app.features.permissions.models import UserRole
from app.features.permissions.repository import InMemoryResourceGrantStore, SqlResourceGrantStore
from app.features.permissions.service import PermissionService
from app.features.portfolios.models import Portfolio
from app.features.properties.models import Property
from app.features.users.models import User
from app.main import app
from scripts.seed_roles import seed_roles
from tests.factories import (
    ADMIN_ID,
    MANAGER_ID,
    OWNER_ID,
    PORTFOLIO_A,
    PORTFOLIO_B,
    PROPERTY_A1,
    PROPERTY_B1,
)


@pytest.fixture
def grant_store():
    return InMemoryResourceGrantStore()


@pytest.fixture
def service(grant_store):
    return PermissionService(grant_store)


@pytest.fixture
async def db_session():
    """Session on a fresh in-memory database with all tables created."""
    engine = create_async_engine("sqlite+aiosqlite://", poolclass=StaticPool)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()


async def seed_test_data(session: AsyncSession) -> None:
    """
    Default roles, three users and two portfolios with one property each.

    The portfolio manager is granted portfolio A and its property; the
    external owner is granted the same property.
    """
    await seed_roles(session)

    result = await session.execute(select(UserRole))
    roles = {role.name: role.id for role in result.scalars().all()}

    session.add_all([
        User(id=ADMIN_ID, email="admin@example.com", first_name="Ada", last_name="Admin",
             user_role_id=roles["Super Admin"]),
        User(id=MANAGER_ID, email="manager@example.com", first_name="Max", last_name="Manager",
             user_role_id=roles["Portfolio Manager"]),
        User(id=OWNER_ID, email="owner@example.com", first_name="Olive", last_name="Owner",
             user_role_id=roles["External Owner"]),
        Portfolio(id=PORTFOLIO_A, name="Alpha"),
        Portfolio(id=PORTFOLIO_B, name="Beta"),
    ])
    await session.flush()
    session.add_all([
        Property(id=PROPERTY_A1, name="Alpha One", portfolio_id=PORTFOLIO_A),
        Property(id=PROPERTY_B1, name="Beta One", portfolio_id=PORTFOLIO_B),
    ])

    store = SqlResourceGrantStore(session)
    await store.replace_resource_ids(MANAGER_ID, ModuleType.PORTFOLIO, [PORTFOLIO_A])
    await store.replace_resource_ids(MANAGER_ID, ModuleType.PROPERTY, [PROPERTY_A1])
    await store.replace_resource_ids(OWNER_ID, ModuleType.PROPERTY, [PROPERTY_A1])
    await session.commit()


@pytest.fixture
def client():
    """
    Test client on a fresh, seeded in-memory database.

    Tables and seed data are created lazily on the first request so they
    live on the client's event loop.
    """
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(engine)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    ready = False

    async def override_get_db():
        nonlocal ready
        if not ready:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            async with session_factory() as session:
                await seed_test_data(session)
            ready = True

        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
