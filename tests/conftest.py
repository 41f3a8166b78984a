"""Root conftest for API, repository and engine tests.

Provides:
- In-memory SQLite database (replaces production engine)
- Fake tool adapters recording every call
- FastAPI test client with mocked Temporal and fake adapters
"""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import Any, AsyncGenerator, Callable, Dict, Optional, Union
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

import app.database as db_module
from app.database import Base

# Import all ORM models so they register with Base.metadata
import app.models.db  # noqa: F401

from workflow.engine.dispatcher import NodeExecutor
from workflow.integrations import adapters as keys
from workflow.integrations.adapters import AdapterResult, AdapterSet


# ---------------------------------------------------------------------------
# Fake tool adapters
# ---------------------------------------------------------------------------

class FakeAdapter:
    """ToolAdapter returning a canned result and recording its params.

    ``data`` may be a callable taking the request params.
    """

    def __init__(
        self,
        data: Union[str, Callable[[Dict[str, Any]], str], None] = "",
        success: bool = True,
        error: Optional[str] = None,
        delay: float = 0.0,
    ):
        self.data = data
        self.success = success
        self.error = error
        self.delay = delay
        self.calls = []

    async def call(self, params: Dict[str, Any]) -> AdapterResult:
        self.calls.append(params)
        if self.delay:
            await asyncio.sleep(self.delay)
        if not self.success:
            return AdapterResult(success=False, error=self.error)
        data = self.data(params) if callable(self.data) else self.data
        return AdapterResult(success=True, data=data)


@pytest.fixture
def fake_adapters() -> Dict[str, FakeAdapter]:
    """One FakeAdapter per adapter key; tests tweak them in place."""
    return {
        keys.NOTION_FETCH: FakeAdapter("Meeting notes: ship v2 on Friday"),
        keys.NOTION_CREATE_PAGE: FakeAdapter("Page created"),
        keys.NOTION_APPEND: FakeAdapter("Content appended"),
        keys.SEARCH_WEB: FakeAdapter("Search results"),
        keys.GITHUB_REPOS: FakeAdapter("octo/alpha\nocto/beta"),
        keys.GITHUB_ISSUES: FakeAdapter("#1 Broken build"),
        keys.GITHUB_CREATE_ISSUE: FakeAdapter("Issue #7 created"),
        keys.EMAIL_SEND: FakeAdapter("Email sent"),
        keys.LLM_GENERATE: FakeAdapter(lambda p: f"LLM<{p['prompt']}>"),
    }


@pytest.fixture
def adapter_set(fake_adapters) -> AdapterSet:
    return AdapterSet(fake_adapters)


@pytest.fixture
def executor(adapter_set) -> NodeExecutor:
    return NodeExecutor(adapter_set)


# ---------------------------------------------------------------------------
# In-memory async SQLite engine (StaticPool shares one connection)
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def test_engine() -> AsyncGenerator[AsyncEngine, None]:
    """Fresh in-memory SQLite engine per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def test_session(test_engine: AsyncEngine) -> AsyncGenerator[AsyncSession, None]:
    """Per-test database session with automatic rollback."""
    factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )
    async with factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def session_ctx(test_engine: AsyncEngine):
    """get_session_ctx equivalent bound to the test engine."""
    factory = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False,
    )

    @asynccontextmanager
    async def ctx() -> AsyncGenerator[AsyncSession, None]:
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return ctx


# ---------------------------------------------------------------------------
# Temporal mock
# ---------------------------------------------------------------------------

@pytest.fixture
def mock_temporal_client():
    """Mock Temporal client for route tests."""
    client = AsyncMock()
    client.start_workflow = AsyncMock(return_value=MagicMock(id="test-wf-id"))
    return client


# ---------------------------------------------------------------------------
# FastAPI test client: patches DB engine, Temporal and run dependencies
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def sql_run_store(session_ctx):
    from app.event_bus import publish_run_event
    from app.run_store import SqlRunStore

    return SqlRunStore(session_factory=session_ctx, notifier=publish_run_event)


@pytest_asyncio.fixture
async def client(
    test_engine: AsyncEngine,
    mock_temporal_client,
    sql_run_store,
    executor,
    monkeypatch,
) -> AsyncGenerator[AsyncClient, None]:
    """Async HTTP client for testing FastAPI routes.

    Replaces the production DB engine/session_factory in app.database
    with the test in-memory engine, and overrides the run store and node
    executor dependencies with test instances.
    """
    import app.event_bus as event_bus_module
    from app.dependencies import get_node_executor, get_run_store
    from app.main import app

    monkeypatch.setattr(db_module, "engine", test_engine)
    monkeypatch.setattr(
        db_module,
        "async_session_factory",
        async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False),
    )
    # Fresh bus per test so queues never outlive their event loop
    monkeypatch.setattr(event_bus_module, "_bus", None)

    app.dependency_overrides[get_run_store] = lambda: sql_run_store
    app.dependency_overrides[get_node_executor] = lambda: executor
    try:
        with patch("app.temporal_adapter.get_client", AsyncMock(return_value=mock_temporal_client)):
            transport = ASGITransport(app=app)
            async with AsyncClient(transport=transport, base_url="http://test") as ac:
                yield ac
    finally:
        app.dependency_overrides.clear()
