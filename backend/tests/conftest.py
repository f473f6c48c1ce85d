"""
Pytest configuration and fixtures for Trellis tests.
"""

import os

# Must be set before trellis.config is first imported
os.environ.setdefault("TRELLIS_DATABASE_URL", "sqlite+aiosqlite://")

import pytest
import pytest_asyncio
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel

from trellis.main import app
from trellis.database import get_session
from trellis.models import TaskPriority, TaskStatus
from trellis.services.snapshot import TaskRecord, build_snapshot


# In-memory SQLite shared by every connection of one engine
TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create a test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)

    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def test_session(test_engine):
    """Create a test database session."""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest_asyncio.fixture(scope="function")
async def client(test_engine):
    """Create an async test client with test database."""
    async_session_maker = async_sessionmaker(
        test_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async def override_get_session():
        async with async_session_maker() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_session] = override_get_session

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
def make_snapshot():
    """
    Build a GraphSnapshot from compact per-task field dicts.

    Usage:
        snapshot = make_snapshot(
            {"A": {"hours": 2}, "B": {"status": "completed"}},
            [("B", "A")],  # A depends on B
        )
    """
    def _make(tasks: dict, dependencies=()):
        records = []
        for task_id, fields in tasks.items():
            records.append(TaskRecord(
                id=task_id,
                display_id=fields.get("display_id", f"TASK-{task_id}"),
                name=fields.get("name", f"Task {task_id}"),
                status=TaskStatus(fields.get("status", "todo")),
                priority=TaskPriority(fields.get("priority", "medium")),
                estimated_hours=fields.get("hours"),
                parent_id=fields.get("parent"),
                category=fields.get("category"),
                assignee=fields.get("assignee"),
            ))
        return build_snapshot(records, dependencies)

    return _make
