from __future__ import annotations

import uuid
from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.pool import StaticPool

from imprest.db import engine_options, get_session
from imprest.main import app
from imprest.models import Role, SQLModel
from imprest.services.directory import InMemoryUserDirectory, UserInfo, set_user_directory
from imprest.services.notification import (
    InMemoryNotificationDispatcher,
    LoggingNotificationDispatcher,
    set_notification_dispatcher,
)

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from sqlalchemy.ext.asyncio import AsyncEngine

DEPARTMENT = "Engineering"

REQUESTER = UserInfo(
    id=uuid.uuid4(),
    first_name="Ama",
    last_name="Mensah",
    email="ama@example.com",
    phone_number="+233200000001",
    department=DEPARTMENT,
)
HOD = UserInfo(
    id=uuid.uuid4(),
    first_name="Kofi",
    last_name="Owusu",
    email="kofi@example.com",
    department=DEPARTMENT,
    roles=[Role.EMPLOYEE.value, Role.HOD.value],
)
ACCOUNTANT = UserInfo(
    id=uuid.uuid4(),
    first_name="Efua",
    last_name="Boateng",
    email="efua@example.com",
    department="Finance",
    roles=[Role.EMPLOYEE.value, Role.ACCOUNTANT.value],
)
ADMIN = UserInfo(
    id=uuid.uuid4(),
    first_name="Yaw",
    last_name="Asante",
    email="yaw@example.com",
    roles=[Role.ADMIN.value],
)


@pytest.fixture
def requester() -> UserInfo:
    return REQUESTER


@pytest.fixture
def hod() -> UserInfo:
    return HOD


@pytest.fixture
def accountant() -> UserInfo:
    return ACCOUNTANT


@pytest.fixture
def admin() -> UserInfo:
    return ADMIN


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """A fresh in-memory SQLite database per test."""
    url = "sqlite+aiosqlite:///:memory:"
    _engine = create_async_engine(url, poolclass=StaticPool, **engine_options(url))
    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
async def db_session(engine: AsyncEngine) -> AsyncIterator[AsyncSession]:
    async with AsyncSession(engine, expire_on_commit=False) as session:
        yield session


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def directory() -> Iterator[InMemoryUserDirectory]:
    """Seed the in-memory user directory for every test."""
    svc = InMemoryUserDirectory()
    for user in (REQUESTER, HOD, ACCOUNTANT, ADMIN):
        svc.seed(user)
    set_user_directory(svc)
    yield svc
    set_user_directory(InMemoryUserDirectory())


@pytest.fixture(autouse=True)
def outbox() -> Iterator[InMemoryNotificationDispatcher]:
    """Capture outbound notifications for every test."""
    dispatcher = InMemoryNotificationDispatcher()
    set_notification_dispatcher(dispatcher)
    yield dispatcher
    set_notification_dispatcher(LoggingNotificationDispatcher())
