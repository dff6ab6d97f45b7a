"""Test model creation, constraints and relationships."""

from __future__ import annotations

import pytest
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from elova.models.execution import Execution
from elova.models.provider import Provider
from elova.models.sync_log import SyncLog
from elova.models.workflow import Workflow


@pytest.mark.asyncio
async def test_create_workflow_defaults(db: AsyncSession, provider: Provider):
    wf = Workflow(provider_id=provider.id, provider_workflow_id="1", name="Lead intake")
    db.add(wf)
    await db.commit()

    result = await db.execute(select(Workflow).where(Workflow.provider_workflow_id == "1"))
    fetched = result.scalar_one()
    assert fetched.lifecycle_status == "active"
    assert fetched.backup_enabled is True
    assert fetched.version == 1
    assert fetched.tags == []
    assert repr(fetched) == "<Workflow 'Lead intake' v1 active>"


@pytest.mark.asyncio
async def test_workflow_remote_id_unique_per_provider(db: AsyncSession, provider: Provider):
    db.add(Workflow(provider_id=provider.id, provider_workflow_id="1", name="A"))
    await db.commit()

    db.add(Workflow(provider_id=provider.id, provider_workflow_id="1", name="B"))
    with pytest.raises(IntegrityError):
        await db.commit()
    await db.rollback()


@pytest.mark.asyncio
async def test_same_remote_id_allowed_on_other_provider(db: AsyncSession, provider: Provider):
    other = Provider(name="Other", base_url="http://other.test", api_key_encrypted="x")
    db.add(other)
    await db.commit()

    db.add_all(
        [
            Workflow(provider_id=provider.id, provider_workflow_id="1", name="A"),
            Workflow(provider_id=other.id, provider_workflow_id="1", name="A"),
        ]
    )
    await db.commit()
    count = len((await db.execute(select(Workflow))).scalars().all())
    assert count == 2


@pytest.mark.asyncio
async def test_execution_remote_id_is_unique(db: AsyncSession, provider: Provider):
    wf = Workflow(provider_id=provider.id, provider_workflow_id="1", name="A")
    db.add(wf)
    await db.commit()

    for _ in range(2):
        db.add(
            Execution(
                provider_id=provider.id,
                workflow_id=wf.id,
                provider_execution_id="e-1",
                provider_workflow_id="1",
            )
        )
    with pytest.raises(IntegrityError):
        await db.commit()
    await db.rollback()


@pytest.mark.asyncio
async def test_execution_defaults(db: AsyncSession, provider: Provider):
    wf = Workflow(provider_id=provider.id, provider_workflow_id="1", name="A")
    db.add(wf)
    await db.commit()
    execution = Execution(
        provider_id=provider.id,
        workflow_id=wf.id,
        provider_execution_id="e-1",
        provider_workflow_id="1",
    )
    db.add(execution)
    await db.commit()

    assert execution.status == "unknown"
    assert execution.total_tokens == 0
    assert execution.ai_cost == 0.0
    assert execution.metadata_json == {}


@pytest.mark.asyncio
async def test_sync_log_terminal_states(db: AsyncSession, provider: Provider):
    log = SyncLog(provider_id=provider.id, sync_type="executions")
    db.add(log)
    await db.commit()

    assert log.status == "running"
    assert log.is_terminal is False
    log.status = "error"
    assert log.is_terminal is True
