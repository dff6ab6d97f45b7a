"""Workflow listing and lifecycle administration."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..schemas.sync import ArchiveRequest, BackupToggle
from ..services import workflow_svc

router = APIRouter(prefix="/api/workflows")


def _workflow_dict(workflow) -> dict:
    return {
        "id": str(workflow.id),
        "provider_id": str(workflow.provider_id),
        "provider_workflow_id": workflow.provider_workflow_id,
        "name": workflow.name,
        "is_active": workflow.is_active,
        "tags": workflow.tags or [],
        "node_count": workflow.node_count,
        "lifecycle_status": workflow.lifecycle_status,
        "backup_enabled": workflow.backup_enabled,
        "has_backup": workflow.workflow_data is not None,
        "version": workflow.version,
        "archived_at": workflow.archived_at.isoformat() if workflow.archived_at else None,
        "archived_reason": workflow.archived_reason,
        "last_seen_in_n8n": workflow.last_seen_in_n8n.isoformat() if workflow.last_seen_in_n8n else None,
        "updated_at": workflow.updated_at.isoformat() if workflow.updated_at else None,
    }


@router.get("")
async def list_workflows(
    provider_id: uuid.UUID | None = None,
    lifecycle_status: str | None = None,
    db: AsyncSession = Depends(get_db),
):
    workflows = await workflow_svc.list_workflows(db, provider_id, lifecycle_status)
    return [_workflow_dict(w) for w in workflows]


@router.post("/remove-duplicates")
async def remove_duplicates(db: AsyncSession = Depends(get_db)):
    return await workflow_svc.remove_duplicate_workflows(db)


@router.post("/{workflow_id}/archive")
async def archive_workflow(
    workflow_id: uuid.UUID,
    data: ArchiveRequest | None = None,
    db: AsyncSession = Depends(get_db),
):
    reason = data.reason if data else ArchiveRequest().reason
    workflow = await workflow_svc.archive_workflow(db, workflow_id, reason)
    if not workflow:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return _workflow_dict(workflow)


@router.delete("/{workflow_id}/backup")
async def delete_backup(workflow_id: uuid.UUID, db: AsyncSession = Depends(get_db)):
    workflow = await workflow_svc.delete_workflow_backup(db, workflow_id)
    if not workflow:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return _workflow_dict(workflow)


@router.post("/{workflow_id}/backup")
async def toggle_backup(
    workflow_id: uuid.UUID,
    data: BackupToggle,
    db: AsyncSession = Depends(get_db),
):
    workflow = await workflow_svc.toggle_workflow_backup(db, workflow_id, data.enabled)
    if not workflow:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return _workflow_dict(workflow)
