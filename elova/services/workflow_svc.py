"""Workflow queries and administrative lifecycle operations."""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import datetime, timezone

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.execution import Execution
from ..models.workflow import Workflow
from ..sync.timestamps import as_utc

logger = logging.getLogger(__name__)

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


async def list_workflows(
    db: AsyncSession,
    provider_id: uuid.UUID | None = None,
    lifecycle_status: str | None = None,
) -> list[Workflow]:
    stmt = select(Workflow).order_by(Workflow.updated_at.desc())
    if provider_id is not None:
        stmt = stmt.where(Workflow.provider_id == provider_id)
    if lifecycle_status:
        stmt = stmt.where(Workflow.lifecycle_status == lifecycle_status)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_workflow(db: AsyncSession, workflow_id: uuid.UUID) -> Workflow | None:
    result = await db.execute(select(Workflow).where(Workflow.id == workflow_id))
    return result.scalar_one_or_none()


async def archive_workflow(
    db: AsyncSession,
    workflow_id: uuid.UUID,
    reason: str = "Manually archived by user",
) -> Workflow | None:
    workflow = await get_workflow(db, workflow_id)
    if not workflow:
        return None
    workflow.lifecycle_status = "archived"
    workflow.archived_at = datetime.now(timezone.utc)
    workflow.archived_reason = reason
    await db.commit()
    await db.refresh(workflow)
    logger.info("Archived workflow %s: %s", workflow.provider_workflow_id, reason)
    return workflow


async def delete_workflow_backup(db: AsyncSession, workflow_id: uuid.UUID) -> Workflow | None:
    """Drop the stored definition and stop backing the workflow up."""
    workflow = await get_workflow(db, workflow_id)
    if not workflow:
        return None
    workflow.workflow_data = None
    workflow.backup_enabled = False
    if workflow.lifecycle_status == "deleted_from_n8n":
        workflow.lifecycle_status = "archived"
    await db.commit()
    await db.refresh(workflow)
    return workflow


async def toggle_workflow_backup(
    db: AsyncSession, workflow_id: uuid.UUID, enabled: bool
) -> Workflow | None:
    workflow = await get_workflow(db, workflow_id)
    if not workflow:
        return None
    workflow.backup_enabled = enabled
    await db.commit()
    await db.refresh(workflow)
    return workflow


async def remove_duplicate_workflows(db: AsyncSession) -> dict[str, int]:
    """Collapse rows sharing (provider_id, provider_workflow_id) onto the most recently updated one.

    Executions of removed rows are moved to the kept row.
    """
    result = await db.execute(select(Workflow))
    groups: dict[tuple, list[Workflow]] = defaultdict(list)
    for workflow in result.scalars().all():
        groups[(workflow.provider_id, workflow.provider_workflow_id)].append(workflow)

    found = 0
    removed = 0
    for rows in groups.values():
        if len(rows) < 2:
            continue
        found += len(rows) - 1
        rows.sort(key=lambda w: as_utc(w.updated_at) or _EPOCH, reverse=True)
        keep, duplicates = rows[0], rows[1:]
        for duplicate in duplicates:
            await db.execute(
                update(Execution)
                .where(Execution.workflow_id == duplicate.id)
                .values(workflow_id=keep.id)
            )
            await db.delete(duplicate)
            removed += 1

    if removed:
        await db.commit()
        logger.info("Removed %d duplicate workflows", removed)
    return {"duplicates_found": found, "duplicates_removed": removed}
