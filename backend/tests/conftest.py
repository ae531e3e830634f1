import os

# Settings are read at import time; keep tests off any real database
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET_KEY", "test-secret-key-with-at-least-32-bytes")

import uuid
from collections.abc import AsyncIterator

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from fleet_alerts.core.authorization import Actor
from fleet_alerts.core.security import create_access_token
from fleet_alerts.db.base import Base
from fleet_alerts.db.session import get_db
from fleet_alerts.main import create_app
from fleet_alerts.models.device import Device
from fleet_alerts.models.user import User, UserRole
from fleet_alerts.repositories.alert import SQLAlchemyAlertRepository
from fleet_alerts.repositories.device import DeviceRepository
from fleet_alerts.services.alert_service import AlertService
from fleet_alerts.services.bulk_service import BulkAcknowledgeService
from fleet_alerts.services.events import AlertEvent, AlertEventPublisher

# In-memory SQLite shared through a single connection (no PostgreSQL needed)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


class RecordingPublisher(AlertEventPublisher):
    def __init__(self) -> None:
        self.events: list[AlertEvent] = []

    async def publish(self, event: AlertEvent) -> None:
        self.events.append(event)


@pytest_asyncio.fixture
async def test_engine() -> AsyncIterator[AsyncEngine]:
    engine = create_async_engine(TEST_DATABASE_URL, poolclass=StaticPool)

    @event.listens_for(engine.sync_engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    import fleet_alerts.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest_asyncio.fixture
async def client(
    test_engine: AsyncEngine, db_session: AsyncSession, publisher: RecordingPublisher
) -> AsyncIterator[AsyncClient]:
    app = create_app(event_publisher=publisher)
    request_session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)

    # Each request gets its own session, as in production
    async def override_get_db():
        async with request_session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


async def _make_user(db: AsyncSession, email: str, role: UserRole) -> User:
    user = User(id=uuid.uuid4(), email=email, role=role, is_active=True)
    db.add(user)
    await db.commit()
    await db.refresh(user)
    return user


@pytest_asyncio.fixture
async def owner(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "owner@test.com", UserRole.USER)


@pytest_asyncio.fixture
async def other_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "other@test.com", UserRole.USER)


@pytest_asyncio.fixture
async def admin_user(db_session: AsyncSession) -> User:
    return await _make_user(db_session, "admin@test.com", UserRole.ADMIN)


async def _make_device(db: AsyncSession, user: User, name: str) -> Device:
    device = Device(id=uuid.uuid4(), user_id=user.id, name=name, type="SENSOR", location="Warehouse 4")
    db.add(device)
    await db.commit()
    await db.refresh(device)
    return device


@pytest_asyncio.fixture
async def device(db_session: AsyncSession, owner: User) -> Device:
    return await _make_device(db_session, owner, "Cold Room Probe")


@pytest_asyncio.fixture
async def other_device(db_session: AsyncSession, other_user: User) -> Device:
    return await _make_device(db_session, other_user, "Loading Dock Meter")


def actor_for(user: User) -> Actor:
    return Actor(id=user.id, role=user.role)


def headers_for(user: User) -> dict:
    token = create_access_token(subject=str(user.id), extra_claims={"role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def owner_headers(owner: User) -> dict:
    return headers_for(owner)


@pytest.fixture
def other_headers(other_user: User) -> dict:
    return headers_for(other_user)


@pytest.fixture
def admin_headers(admin_user: User) -> dict:
    return headers_for(admin_user)


@pytest.fixture
def alert_service(db_session: AsyncSession, publisher: RecordingPublisher) -> AlertService:
    return AlertService(
        SQLAlchemyAlertRepository(db_session),
        DeviceRepository(db_session),
        events=publisher,
    )


@pytest.fixture
def bulk_service(db_session: AsyncSession, publisher: RecordingPublisher) -> BulkAcknowledgeService:
    return BulkAcknowledgeService(SQLAlchemyAlertRepository(db_session), events=publisher)


@pytest.fixture
def owner_actor(owner: User) -> Actor:
    return actor_for(owner)


@pytest.fixture
def other_actor(other_user: User) -> Actor:
    return actor_for(other_user)


@pytest.fixture
def admin_actor(admin_user: User) -> Actor:
    return actor_for(admin_user)
