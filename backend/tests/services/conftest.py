"""Service test fixtures — async DB, credential store and FastAPI test client.

Invariants:
    - Every test gets a fresh in-memory SQLite database
    - get_db dependency overridden to use test DB session
    - db_manager patched so the readiness probe sees the test engine
    - Concurrency tests get a FILE-backed database and one session per redeemer

Design Decisions:
    - SQLite in-memory: fast, no external dependency, sufficient for route tests
    - In-memory aiosqlite shares ONE connection across sessions, which would
      serialize "concurrent" redemptions in a single transaction; the race
      fixtures use a temp file so every session owns its connection
"""

import uuid

import pytest
from sqlalchemy.ext.asyncio import (
    AsyncSession, create_async_engine, async_sessionmaker,
)
from httpx import ASGITransport, AsyncClient

from kitchenpass.db.base import Base
from kitchenpass.db.session import create_engine, create_session_factory
from kitchenpass.infrastructure.database import get_db, DatabaseSessionManager
from kitchenpass.services.credential_store import SqlCredentialStore
import kitchenpass.infrastructure.database as db_module
from kitchenpass.main import app
from tests.services.seed_data import seed_kitchen


@pytest.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:", echo=False,
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
async def store_db(test_session_factory):
    """Separate session for the code under test: its rollbacks never expire seed rows."""
    async with test_session_factory() as session:
        yield session


@pytest.fixture
def store(store_db):
    return SqlCredentialStore(store_db)


@pytest.fixture
async def client(test_engine, test_session_factory):
    """FastAPI test client with DB dependency overridden."""
    async def override_get_db():
        async with test_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    original_manager = db_module.db_manager
    fake_manager = DatabaseSessionManager.__new__(DatabaseSessionManager)
    fake_manager.engine = test_engine
    fake_manager._session_factory = test_session_factory
    db_module.db_manager = fake_manager

    async with AsyncClient(
        transport=ASGITransport(app=app), base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
    db_module.db_manager = original_manager


# ─── File-backed database for concurrent redemptions ─────────────

@pytest.fixture
async def race_engine(tmp_path):
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'race.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def race_session_factory(race_engine):
    return create_session_factory(race_engine)


# ─── Seed data ───────────────────────────────────────────────────

@pytest.fixture
def owner_id():
    return uuid.uuid4()


@pytest.fixture
async def kitchen(test_db, owner_id):
    return await seed_kitchen(test_db, owner_id)
