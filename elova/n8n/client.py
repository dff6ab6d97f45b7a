"""n8n public API client - Wrapper for the /api/v1 REST endpoints."""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from ..config import settings
from ..errors import IncompleteListingError

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1"
WORKFLOWS_PAGE_LIMIT = 100
MAX_WORKFLOW_PAGES = 100


class RemoteClient(Protocol):
    """What the sync engine needs from an n8n instance."""

    async def list_workflows(self) -> list[dict]: ...

    async def get_workflow(self, workflow_id: str) -> dict: ...

    async def list_executions(
        self,
        *,
        limit: int = 100,
        cursor: str | None = None,
        workflow_id: str | None = None,
        include_data: bool = False,
    ) -> dict: ...

    async def get_execution(self, execution_id: str, *, include_data: bool = True) -> dict: ...

    async def close(self) -> None: ...


class N8nClient:
    """Authenticated client for one n8n instance.

    Usage:
        async with create_n8n_client(url, api_key) as client:
            workflows = await client.list_workflows()
    """

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self._client = httpx.AsyncClient(
            base_url=f"{self.base_url}{API_PREFIX}",
            headers={
                "X-N8N-API-KEY": api_key,
                "Accept": "application/json",
            },
            timeout=timeout if timeout is not None else settings.n8n_timeout_seconds,
            transport=transport,
        )

    async def __aenter__(self):
        return self

    async def __aexit__(self, *args):
        await self.close()

    async def close(self) -> None:
        await self._client.aclose()

    async def _get(self, path: str, params: dict | None = None) -> dict[str, Any]:
        response = await self._client.get(path, params=params)
        response.raise_for_status()
        return response.json() if response.content else {}

    async def list_workflows(self) -> list[dict]:
        """All workflows, following ``nextCursor`` until exhausted.

        Raises :class:`IncompleteListingError` when the page cap is hit or n8n
        repeats a cursor.
        """
        workflows: list[dict] = []
        cursor: str | None = None
        seen: set[str] = set()

        for _ in range(MAX_WORKFLOW_PAGES):
            params: dict[str, Any] = {"limit": WORKFLOWS_PAGE_LIMIT}
            if cursor:
                params["cursor"] = cursor
            page = await self._get("/workflows", params=params)
            batch = page.get("data") or []
            workflows.extend(item for item in batch if isinstance(item, dict))

            cursor = page.get("nextCursor")
            if not batch or not cursor:
                return workflows
            if cursor in seen:
                raise IncompleteListingError(
                    f"n8n repeated workflow cursor {cursor!r}", workflows
                )
            seen.add(cursor)

        raise IncompleteListingError(
            f"Workflow listing exceeded {MAX_WORKFLOW_PAGES} pages", workflows
        )

    async def get_workflow(self, workflow_id: str) -> dict:
        return await self._get(f"/workflows/{workflow_id}")

    async def list_executions(
        self,
        *,
        limit: int = 100,
        cursor: str | None = None,
        workflow_id: str | None = None,
        include_data: bool = False,
    ) -> dict:
        """One page of executions: ``{"data": [...], "nextCursor": str | None}``."""
        params: dict[str, Any] = {"limit": limit}
        if cursor:
            params["cursor"] = cursor
        if workflow_id:
            params["workflowId"] = workflow_id
        if include_data:
            params["includeData"] = "true"
        return await self._get("/executions", params=params)

    async def get_execution(self, execution_id: str, *, include_data: bool = True) -> dict:
        params = {"includeData": "true"} if include_data else None
        return await self._get(f"/executions/{execution_id}", params=params)

    async def test_connection(self) -> tuple[bool, str | None]:
        """Probe the API with a one-item workflow listing."""
        try:
            await self._get("/workflows", params={"limit": 1})
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code in (401, 403):
                return False, "Invalid API key"
            return False, f"HTTP {exc.response.status_code}"
        except httpx.HTTPError as exc:
            logger.warning("n8n connection test failed for %s: %s", self.base_url, exc)
            return False, str(exc) or exc.__class__.__name__
        return True, None


def create_n8n_client(base_url: str, api_key: str, timeout: float | None = None) -> N8nClient:
    return N8nClient(base_url, api_key, timeout=timeout)


def get_client_factory():
    """FastAPI dependency returning the remote client factory."""
    return create_n8n_client
