"""Test the HTTP surface: health, sync triggers, scheduler control and queries."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
import pytest_asyncio
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from conftest import remote_execution, remote_workflow
from elova import scheduler as scheduling
from elova.models.execution import Execution
from elova.models.provider import Provider
from elova.models.workflow import Workflow
from elova.scheduler import SyncScheduler


@pytest_asyncio.fixture
async def fake_schedulers(monkeypatch):
    calls = []

    def job(name):
        async def run():
            calls.append(name)
            return {"job": name}

        return run

    replacement = {
        name: SyncScheduler(name, job(name), interval_minutes=60)
        for name in ("executions", "workflows", "backups")
    }
    monkeypatch.setattr(scheduling, "schedulers", replacement)
    yield replacement, calls
    for scheduler in replacement.values():
        if scheduler.is_armed:
            await scheduler.stop()


async def _workflow(db: AsyncSession, provider: Provider, remote_id: str = "1", **kwargs) -> Workflow:
    wf = Workflow(
        provider_id=provider.id,
        provider_workflow_id=remote_id,
        name=kwargs.pop("name", f"Flow {remote_id}"),
        workflow_data=kwargs.pop("workflow_data", {"nodes": [], "connections": {}}),
        **kwargs,
    )
    db.add(wf)
    await db.commit()
    return wf


@pytest.mark.asyncio
async def test_health_endpoint(client: AsyncClient):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "healthy"


@pytest.mark.asyncio
async def test_ready_endpoint(client: AsyncClient, fake_schedulers):
    resp = await client.get("/ready")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ready"
    assert body["schedulers"] == {"executions": False, "workflows": False, "backups": False}


@pytest.mark.asyncio
async def test_trigger_sync_runs_against_provider(client: AsyncClient, provider: Provider, fake_n8n):
    fake_n8n.workflows = [remote_workflow("1"), remote_workflow("2")]

    resp = await client.post("/api/sync", json={"sync_type": "workflows"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["success"] is True
    assert body["providers"] == 1
    assert body["results"][0]["result"]["created"] == 2

    status = await client.get("/api/sync/status")
    logs = status.json()["logs"]
    assert len(logs) == 1
    assert logs[0]["sync_type"] == "workflows"
    assert logs[0]["status"] == "success"
    assert logs[0]["records_inserted"] == 2


@pytest.mark.asyncio
async def test_trigger_executions_sync(client: AsyncClient, provider: Provider, fake_n8n):
    fake_n8n.execution_pages = {
        None: {"data": [remote_execution("10"), remote_execution("11")], "nextCursor": None}
    }

    resp = await client.post("/api/sync", json={"sync_type": "executions", "batch_size": 25})
    assert resp.status_code == 200
    assert resp.json()["results"][0]["result"]["inserted"] == 2

    listed = await client.get("/api/executions")
    assert {e["provider_execution_id"] for e in listed.json()} == {"10", "11"}


@pytest.mark.asyncio
async def test_trigger_sync_rejects_unknown_type(client: AsyncClient):
    resp = await client.post("/api/sync", json={"sync_type": "everything"})
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_scheduler_status(client: AsyncClient, fake_schedulers):
    resp = await client.get("/api/sync/scheduler")
    assert resp.status_code == 200
    names = [s["name"] for s in resp.json()["schedulers"]]
    assert names == ["executions", "workflows", "backups"]


@pytest.mark.asyncio
async def test_scheduler_start_and_stop_single_job(client: AsyncClient, fake_schedulers):
    schedulers, _ = fake_schedulers

    resp = await client.post("/api/sync/scheduler/start", params={"job": "backups", "interval_minutes": 30})
    assert resp.status_code == 200
    assert resp.json()["schedulers"][0]["armed"] is True
    assert schedulers["backups"].interval_minutes == 30
    assert schedulers["executions"].is_armed is False

    resp = await client.post("/api/sync/scheduler/stop", params={"job": "backups"})
    assert resp.status_code == 200
    assert schedulers["backups"].is_armed is False
    await schedulers["backups"].wait_idle()


@pytest.mark.asyncio
async def test_scheduler_force_defaults_to_executions(client: AsyncClient, fake_schedulers):
    _, calls = fake_schedulers

    resp = await client.post("/api/sync/scheduler/force")

    assert resp.status_code == 200
    assert calls == ["executions"]
    assert resp.json()["schedulers"][0]["last_run_at"] is not None


@pytest.mark.asyncio
async def test_scheduler_unknown_job_and_action(client: AsyncClient, fake_schedulers):
    resp = await client.post("/api/sync/scheduler/start", params={"job": "nightly"})
    assert resp.status_code == 404

    resp = await client.post("/api/sync/scheduler/pause")
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_list_workflows_filters_by_lifecycle(client: AsyncClient, db: AsyncSession, provider: Provider):
    await _workflow(db, provider, "1")
    await _workflow(db, provider, "2", lifecycle_status="archived")

    resp = await client.get("/api/workflows")
    assert resp.status_code == 200
    assert len(resp.json()) == 2

    resp = await client.get("/api/workflows", params={"lifecycle_status": "archived"})
    assert [w["provider_workflow_id"] for w in resp.json()] == ["2"]


@pytest.mark.asyncio
async def test_archive_workflow(client: AsyncClient, db: AsyncSession, provider: Provider):
    wf = await _workflow(db, provider)

    resp = await client.post(f"/api/workflows/{wf.id}/archive", json={"reason": "Retired"})

    assert resp.status_code == 200
    body = resp.json()
    assert body["lifecycle_status"] == "archived"
    assert body["archived_reason"] == "Retired"
    assert body["archived_at"] is not None


@pytest.mark.asyncio
async def test_archive_workflow_default_reason(client: AsyncClient, db: AsyncSession, provider: Provider):
    wf = await _workflow(db, provider)
    resp = await client.post(f"/api/workflows/{wf.id}/archive")
    assert resp.status_code == 200
    assert resp.json()["archived_reason"] == "Manually archived by user"


@pytest.mark.asyncio
async def test_archive_missing_workflow_404(client: AsyncClient):
    resp = await client.post("/api/workflows/00000000-0000-0000-0000-000000000000/archive")
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_delete_backup_archives_deleted_workflow(client: AsyncClient, db: AsyncSession, provider: Provider):
    wf = await _workflow(db, provider, lifecycle_status="deleted_from_n8n")

    resp = await client.delete(f"/api/workflows/{wf.id}/backup")

    assert resp.status_code == 200
    body = resp.json()
    assert body["has_backup"] is False
    assert body["backup_enabled"] is False
    assert body["lifecycle_status"] == "archived"


@pytest.mark.asyncio
async def test_toggle_backup(client: AsyncClient, db: AsyncSession, provider: Provider):
    wf = await _workflow(db, provider)

    resp = await client.post(f"/api/workflows/{wf.id}/backup", json={"enabled": False})
    assert resp.status_code == 200
    assert resp.json()["backup_enabled"] is False

    resp = await client.post(f"/api/workflows/{wf.id}/backup", json={"enabled": True})
    assert resp.json()["backup_enabled"] is True


@pytest.mark.asyncio
async def test_remove_duplicates_without_duplicates(client: AsyncClient, db: AsyncSession, provider: Provider):
    await _workflow(db, provider, "1")
    resp = await client.post("/api/workflows/remove-duplicates")
    assert resp.status_code == 200
    assert resp.json() == {"duplicates_found": 0, "duplicates_removed": 0}


@pytest.mark.asyncio
async def test_execution_metrics(client: AsyncClient, db: AsyncSession, provider: Provider):
    wf = await _workflow(db, provider, "wf-9", name="Summarizer")
    now = datetime.now(timezone.utc)
    rows = [
        ("a", now - timedelta(hours=1), 200, 0.0011, "openai"),
        ("b", now - timedelta(hours=2), 100, 0.0005, "anthropic"),
        ("c", now - timedelta(hours=3), 0, 0.0, None),
        ("d", now - timedelta(days=3), 500, 0.01, "openai"),
    ]
    for remote_id, started, tokens, cost, ai_provider in rows:
        db.add(
            Execution(
                provider_id=provider.id,
                workflow_id=wf.id,
                provider_execution_id=remote_id,
                provider_workflow_id="wf-9",
                status="success",
                started_at=started,
                total_tokens=tokens,
                ai_cost=cost,
                ai_provider=ai_provider,
            )
        )
    await db.commit()

    resp = await client.get("/api/executions/metrics", params={"timeRange": "24h"})
    assert resp.status_code == 200
    body = resp.json()
    assert body["total_executions"] == 3
    assert body["executions_with_ai"] == 2
    assert body["total_tokens"] == 300
    assert body["avg_tokens_per_execution"] == 150
    assert body["total_ai_cost"] == pytest.approx(0.0016)
    assert body["by_workflow"][0]["workflow_name"] == "Summarizer"
    assert {p["provider"] for p in body["by_provider"]} == {"openai", "anthropic"}

    week = (await client.get("/api/executions/metrics", params={"timeRange": "7d"})).json()
    assert week["total_tokens"] == 800

    scoped = (
        await client.get("/api/executions/metrics", params={"timeRange": "7d", "workflowId": "other"})
    ).json()
    assert scoped["total_executions"] == 0


@pytest.mark.asyncio
async def test_list_executions_filters(client: AsyncClient, db: AsyncSession, provider: Provider):
    wf = await _workflow(db, provider)
    for remote_id, status in (("1", "success"), ("2", "error")):
        db.add(
            Execution(
                provider_id=provider.id,
                workflow_id=wf.id,
                provider_execution_id=remote_id,
                provider_workflow_id="1",
                status=status,
            )
        )
    await db.commit()

    resp = await client.get("/api/executions", params={"status": "error"})
    assert resp.status_code == 200
    assert [e["provider_execution_id"] for e in resp.json()] == ["2"]

    resp = await client.get("/api/executions", params={"limit": 0})
    assert resp.status_code == 422
