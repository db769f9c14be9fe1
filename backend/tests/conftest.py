from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from timebank.config import reset_settings
from timebank.db import get_session
from timebank.main import app
from timebank.models import Organization, SQLModel
from timebank.services.schedule import InMemoryScheduleService, set_schedule_service

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from sqlalchemy.ext.asyncio import AsyncEngine


@pytest.fixture
async def engine() -> AsyncIterator[AsyncEngine]:
    """Fresh in-memory database per test.

    All sessions share the single StaticPool connection, so tests must not keep
    a transaction open on one session while another session works.
    """
    _engine = create_async_engine("sqlite+aiosqlite:///:memory:", poolclass=StaticPool)

    # Let SQLAlchemy emit BEGIN itself so that SAVEPOINT works on sqlite.
    @event.listens_for(_engine.sync_engine, "connect")
    def _on_connect(dbapi_connection, connection_record):  # noqa: ANN001, ANN202
        dbapi_connection.isolation_level = None

    @event.listens_for(_engine.sync_engine, "begin")
    def _on_begin(conn):  # noqa: ANN001, ANN202
        conn.exec_driver_sql("BEGIN")

    async with _engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield _engine
    await _engine.dispose()


@pytest.fixture
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest.fixture
async def db_session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncIterator[AsyncSession]:
    async with session_factory() as session:
        yield session


@pytest.fixture(autouse=True)
def _reset_services() -> Iterator[None]:
    """Every test starts with default settings and the default weekday schedule."""
    reset_settings()
    set_schedule_service(InMemoryScheduleService())
    yield
    reset_settings()
    set_schedule_service(InMemoryScheduleService())


@pytest.fixture
async def org(db_session: AsyncSession) -> Organization:
    """An active organization in Europe/Madrid."""
    organization = Organization(name="Acme", timezone="Europe/Madrid")
    db_session.add(organization)
    await db_session.commit()
    return organization


@pytest.fixture
async def async_client(db_session: AsyncSession) -> AsyncIterator[AsyncClient]:
    """Async HTTP client with the database session dependency overridden."""

    async def _override_get_session() -> AsyncIterator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_session] = _override_get_session
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides.clear()
