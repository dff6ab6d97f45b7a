"""Sync triggers, sync history and scheduler control."""

from __future__ import annotations

from typing import Literal

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .. import scheduler as scheduling
from ..database import get_db, get_session_factory
from ..n8n.client import get_client_factory
from ..schemas.sync import SyncRequest
from ..services.sync_log_svc import latest_sync_logs
from ..sync.sync_engine import sync_all_providers

router = APIRouter(prefix="/api/sync")


def _sync_log_dict(log) -> dict:
    return {
        "id": str(log.id),
        "provider_id": str(log.provider_id),
        "sync_type": log.sync_type,
        "status": log.status,
        "records_processed": log.records_processed,
        "records_inserted": log.records_inserted,
        "records_updated": log.records_updated,
        "error_message": log.error_message,
        "last_cursor": log.last_cursor,
        "created_at": log.created_at.isoformat() if log.created_at else None,
        "completed_at": log.completed_at.isoformat() if log.completed_at else None,
    }


def _resolve_schedulers(job: str | None) -> list[scheduling.SyncScheduler]:
    if job is None:
        return list(scheduling.schedulers.values())
    scheduler = scheduling.schedulers.get(job)
    if scheduler is None:
        raise HTTPException(status_code=404, detail=f"Unknown scheduler job: {job}")
    return [scheduler]


@router.post("")
async def trigger_sync(
    data: SyncRequest,
    session_factory: async_sessionmaker[AsyncSession] = Depends(get_session_factory),
    client_factory=Depends(get_client_factory),
):
    result = await sync_all_providers(
        data.sync_type,
        data.batch_size,
        session_factory=session_factory,
        client_factory=client_factory,
        manual=True,
    )
    return result.model_dump()


@router.get("/status")
async def sync_status(limit: int = 10, db: AsyncSession = Depends(get_db)):
    logs = await latest_sync_logs(db, limit=limit)
    return {
        "logs": [_sync_log_dict(log) for log in logs],
        "schedulers": [s.status() for s in scheduling.schedulers.values()],
    }


@router.get("/scheduler")
async def scheduler_status():
    return {"schedulers": [s.status() for s in scheduling.schedulers.values()]}


@router.post("/scheduler/{action}")
async def control_scheduler(
    action: Literal["start", "stop", "force"],
    job: str | None = None,
    interval_minutes: float | None = None,
):
    if action == "force":
        scheduler = _resolve_schedulers(job or "executions")[0]
        await scheduler.force_sync()
        return {"action": action, "schedulers": [scheduler.status()]}

    targets = _resolve_schedulers(job)
    for scheduler in targets:
        if action == "start":
            scheduler.start(interval_minutes)
        else:
            await scheduler.stop()
    return {"action": action, "schedulers": [s.status() for s in targets]}
