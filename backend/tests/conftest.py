# tests/conftest.py — Shared test fixtures
import os

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Use SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///./test.db"
os.environ["DATABASE_URL"] = TEST_DB_URL
os.environ["ENVIRONMENT"] = "test"

from models import Base
from database import get_db_session
from main import app
from sync.board_sync import BoardSync
from sync.persistence import HttpPersistenceService


class RecordingSink:
    """NotificationSink that keeps every notification for assertions"""

    def __init__(self):
        self.events = []

    def notify(self, severity, title, message):
        self.events.append((severity, title, message))

    @property
    def titles(self):
        return [title for _, title, _ in self.events]

    def clear(self):
        self.events.clear()


@pytest_asyncio.fixture(scope="function")
async def db_engine():
    engine = create_async_engine(TEST_DB_URL, echo=False)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db_session(db_engine):
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(db_engine):
    """HTTP test client with overridden DB dependency"""
    session_factory = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db_session] = override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def projects_board(client):
    """Provision an empty 'projects' board (no columns yet)"""
    resp = await client.post("/api/v1/boards", json={"type": "projects", "name": "Proyectos"})
    assert resp.status_code == 200
    return resp.json()


@pytest.fixture
def persistence(client):
    return HttpPersistenceService(client)


@pytest.fixture
def sink():
    return RecordingSink()


@pytest_asyncio.fixture
async def sync(persistence, sink, projects_board):
    """BoardSync with the projects board already loaded"""
    board_sync = BoardSync(persistence, notifications=sink, user_name="Ana Pérez")
    await board_sync.load()
    sink.clear()
    return board_sync


def column_titled(board_sync: BoardSync, title: str):
    return next(c for c in board_sync.columns if c.title == title)


async def create_column(client: AsyncClient, board_id: str, title: str, position=None) -> dict:
    resp = await client.post(
        f"/api/v1/boards/{board_id}/columns",
        json={"title": title, "position": position},
    )
    assert resp.status_code == 200
    return resp.json()


async def create_task(client: AsyncClient, column_id: str, title: str, **fields) -> dict:
    resp = await client.post("/api/v1/tasks", json={"column_id": column_id, "title": title, **fields})
    assert resp.status_code == 200
    return resp.json()
