"""Execution listing and AI usage metrics."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ..database import get_db
from ..services import execution_svc

router = APIRouter(prefix="/api/executions")


@router.get("")
async def list_executions(
    provider_id: uuid.UUID | None = None,
    workflow_id: uuid.UUID | None = None,
    status: str | None = None,
    limit: int = Query(50, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
):
    executions = await execution_svc.list_executions(
        db,
        provider_id=provider_id,
        workflow_id=workflow_id,
        status=status,
        limit=limit,
        offset=offset,
    )
    return [
        {
            "id": str(e.id),
            "provider_execution_id": e.provider_execution_id,
            "workflow_id": str(e.workflow_id),
            "provider_workflow_id": e.provider_workflow_id,
            "status": e.status,
            "mode": e.mode,
            "started_at": e.started_at.isoformat() if e.started_at else None,
            "stopped_at": e.stopped_at.isoformat() if e.stopped_at else None,
            "duration": e.duration,
            "finished": e.finished,
            "total_tokens": e.total_tokens,
            "ai_cost": e.ai_cost,
            "ai_provider": e.ai_provider,
            "ai_model": e.ai_model,
        }
        for e in executions
    ]


@router.get("/metrics")
async def execution_metrics(
    time_range: str = Query("24h", alias="timeRange"),
    provider_id: uuid.UUID | None = Query(None, alias="providerId"),
    workflow_id: str | None = Query(None, alias="workflowId"),
    db: AsyncSession = Depends(get_db),
):
    return await execution_svc.get_ai_metrics(
        db, time_range=time_range, provider_id=provider_id, workflow_id=workflow_id
    )
