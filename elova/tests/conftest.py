"""Async test fixtures for Elova tests using SQLite."""

from __future__ import annotations

import copy

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from elova.database import build_engine, get_db, get_session_factory
from elova.models.base import Base
from elova.models.provider import Provider
from elova.n8n.client import get_client_factory
from elova.services.crypto import encrypt_api_key


class FakeN8nClient:
    """Scripted stand-in for N8nClient.

    ``execution_pages`` maps the requested cursor (``None`` for the first page)
    to a page dict, or to an exception instance to raise for that page.
    """

    def __init__(
        self,
        workflows: list[dict] | None = None,
        execution_pages: dict | None = None,
        executions_by_id: dict[str, dict] | None = None,
    ):
        self.workflows = workflows or []
        self.execution_pages = execution_pages or {}
        self.executions_by_id = executions_by_id or {}
        self.execution_calls: list[str | None] = []
        self.closed = False

    async def list_workflows(self) -> list[dict]:
        return copy.deepcopy(self.workflows)

    async def get_workflow(self, workflow_id: str) -> dict:
        for workflow in self.workflows:
            if str(workflow.get("id")) == workflow_id:
                return copy.deepcopy(workflow)
        request = httpx.Request("GET", f"http://n8n.test/api/v1/workflows/{workflow_id}")
        raise httpx.HTTPStatusError(
            "Not Found", request=request, response=httpx.Response(404, request=request)
        )

    async def list_executions(self, *, limit=100, cursor=None, workflow_id=None, include_data=False):
        self.execution_calls.append(cursor)
        page = self.execution_pages.get(cursor, {"data": [], "nextCursor": None})
        if isinstance(page, Exception):
            raise page
        return copy.deepcopy(page)

    async def get_execution(self, execution_id: str, *, include_data: bool = True) -> dict:
        if execution_id not in self.executions_by_id:
            raise httpx.ConnectError("unreachable")
        return copy.deepcopy(self.executions_by_id[execution_id])

    async def test_connection(self):
        return True, None

    async def close(self) -> None:
        self.closed = True


def remote_workflow(
    workflow_id: str,
    *,
    name: str | None = None,
    updated_at: str = "2024-01-01T00:00:00.000Z",
    nodes: list | None = None,
    active: bool = True,
    tags: list | None = None,
) -> dict:
    nodes = nodes if nodes is not None else [{"name": "Start", "type": "n8n-nodes-base.manualTrigger"}]
    return {
        "id": workflow_id,
        "name": name or f"Flow {workflow_id}",
        "active": active,
        "nodes": nodes,
        "connections": {},
        "settings": {},
        "tags": tags or [],
        "createdAt": "2024-01-01T00:00:00.000Z",
        "updatedAt": updated_at,
    }


def remote_execution(
    execution_id: str,
    workflow_id: str = "wf-1",
    *,
    status: str = "success",
    mode: str = "trigger",
    started_at: str = "2024-01-01T10:00:00.000Z",
    stopped_at: str | None = "2024-01-01T10:00:01.500Z",
    data: dict | None = None,
) -> dict:
    payload = {
        "id": execution_id,
        "workflowId": workflow_id,
        "status": status,
        "mode": mode,
        "finished": status == "success",
        "startedAt": started_at,
        "stoppedAt": stopped_at,
        "retryOf": None,
        "retrySuccessId": None,
        "waitTill": None,
    }
    if data is not None:
        payload["data"] = data
    return payload


@pytest.fixture(scope="session")
def anyio_backend():
    return "asyncio"


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest_asyncio.fixture
async def file_engine(tmp_path):
    """File-backed engine for tests that open concurrent sessions."""
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'elova_test.db'}", echo=False)
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest_asyncio.fixture
async def provider(db: AsyncSession):
    p = Provider(
        name="Test n8n",
        base_url="http://n8n.test",
        api_key_encrypted=encrypt_api_key("test-api-key"),
        is_connected=True,
        status="healthy",
        metadata_json={},
    )
    db.add(p)
    await db.commit()
    await db.refresh(p)
    return p


@pytest.fixture
def fake_n8n():
    """A FakeN8nClient shared by every client the engine asks for."""
    return FakeN8nClient()


@pytest_asyncio.fixture
async def client(session_factory, fake_n8n):
    """HTTPX async test client against the Elova app."""
    from elova.app import app

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory
    app.dependency_overrides[get_client_factory] = lambda: (lambda base_url, api_key: fake_n8n)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
