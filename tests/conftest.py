"""
Pytest configuration and fixtures.

Each test gets its own SQLite file database, a fresh audit bus whose consumer
writes through the test session factory, and fresh rate limiters.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")

from typing import AsyncGenerator, Callable, Optional

import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

import backend.app.models  # noqa: F401  registers every table on Base.metadata
from backend.app.main import app, install_rate_limiters
from backend.app.core.database import Base, get_db
from backend.app.core.security import Role
from backend.app.events.bus import EventBus
from backend.app.models.company_orm import CompanyORM
from backend.app.models.user_orm import UserORM
from backend.app.services import auth_service, organization_service, permission_service
from backend.app.workers.consumer import start_event_consumer, stop_event_consumer

DEFAULT_PASSWORD = "Str0ng!Pass"


@pytest.fixture
async def engine(tmp_path):
    test_engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'certguard-test.db'}")
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_factory(engine) -> async_sessionmaker[AsyncSession]:
    """Returns the session factory for testing."""
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with session_factory() as session:
        yield session


@pytest.fixture
async def event_bus(session_factory) -> AsyncGenerator[EventBus, None]:
    """Audit bus with its consumer running against the test database."""
    bus = EventBus(maxsize=1000)
    task = await start_event_consumer(bus, session_factory)
    yield bus
    await stop_event_consumer(bus, task)


@pytest.fixture
async def test_app(session_factory, event_bus):
    """
    The application wired to the test database. ASGITransport does not run
    the lifespan, so app.state is populated here.
    """
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.state.event_bus = event_bus
    install_rate_limiters(app)
    yield app
    app.dependency_overrides.clear()


@pytest.fixture
async def client_factory(test_app) -> AsyncGenerator[Callable[[], AsyncClient], None]:
    """One cookie jar per client, so several users can be logged in at once."""
    clients = []

    def make() -> AsyncClient:
        c = AsyncClient(
            transport=ASGITransport(app=test_app, raise_app_exceptions=False),
            base_url="http://test",
        )
        clients.append(c)
        return c

    yield make
    for c in clients:
        await c.aclose()


@pytest.fixture
async def client(client_factory) -> AsyncClient:
    return client_factory()


class Seed:
    """Direct-to-database builders for test fixtures."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._factory = session_factory

    async def organization(self, name: str = "Org", identifier: Optional[str] = None, two_factor_policy: Optional[dict] = None):
        async with self._factory() as db:
            org = await organization_service.create_organization(
                db, name=name, identifier=identifier or f"ID-{name}", plan="basic"
            )
            if two_factor_policy is not None:
                await organization_service.update_organization_settings(
                    db, org.id, {"two_factor_policy": two_factor_policy}
                )
            await db.commit()
            return org

    async def user(
        self,
        username: str,
        *,
        role: Role = Role.USER,
        organization_id: Optional[str] = None,
        password: str = DEFAULT_PASSWORD,
        status: str = "active",
        two_factor_secret: Optional[str] = None,
    ) -> UserORM:
        async with self._factory() as db:
            user = UserORM(
                username=username,
                email=f"{username}@example.com",
                name=username.title(),
                hashed_password=auth_service.hash_password(password),
                role=role.value,
                organization_id=organization_id,
                status=status,
                two_factor_enabled=two_factor_secret is not None,
                two_factor_secret=two_factor_secret,
            )
            db.add(user)
            await db.commit()
            return user

    async def company(self, name: str, organization_id: str, identifier: str = "12345678000190") -> CompanyORM:
        async with self._factory() as db:
            company = CompanyORM(name=name, identifier=identifier, organization_id=organization_id)
            db.add(company)
            await db.commit()
            return company

    async def grant(self, user_id: str, company_id: str, **flags):
        async with self._factory() as db:
            permission = await permission_service.set_permission(db, user_id, company_id, **flags)
            await db.commit()
            return permission


@pytest.fixture
def seed(session_factory) -> Seed:
    return Seed(session_factory)


async def login(client: AsyncClient, username: str, password: str = DEFAULT_PASSWORD):
    return await client.post("/api/login", json={"username": username, "password": password})


@pytest.fixture
def login_as(client_factory):
    """Returns a coroutine that logs a user in on a fresh client."""
    async def _login_as(username: str, password: str = DEFAULT_PASSWORD) -> AsyncClient:
        c = client_factory()
        resp = await login(c, username, password)
        assert resp.status_code == 200, resp.text
        return c
    return _login_as
