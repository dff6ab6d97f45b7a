"""Sync log bookkeeping: run records and the execution cursor."""

from __future__ import annotations

import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.base import utcnow
from ..models.sync_log import SyncLog


async def create_sync_log(db: AsyncSession, provider_id: uuid.UUID, sync_type: str) -> SyncLog:
    sync_log = SyncLog(
        provider_id=provider_id,
        sync_type=sync_type,
        status="running",
        metadata_json={},
    )
    db.add(sync_log)
    await db.commit()
    await db.refresh(sync_log)
    return sync_log


async def update_sync_cursor(db: AsyncSession, sync_log: SyncLog, cursor: str | None) -> None:
    """Advance the cursor of a running log; terminal logs are left untouched."""
    if sync_log.is_terminal:
        return
    sync_log.last_cursor = cursor
    await db.commit()


async def complete_sync_log(
    db: AsyncSession,
    sync_log: SyncLog,
    *,
    status: str,
    processed: int = 0,
    inserted: int = 0,
    updated: int = 0,
    error_message: str | None = None,
    metadata: dict | None = None,
) -> SyncLog:
    if sync_log.is_terminal:
        return sync_log
    sync_log.status = status
    sync_log.records_processed = processed
    sync_log.records_inserted = inserted
    sync_log.records_updated = updated
    sync_log.error_message = error_message
    if metadata is not None:
        sync_log.metadata_json = metadata
    sync_log.completed_at = utcnow()
    await db.commit()
    await db.refresh(sync_log)
    return sync_log


async def get_last_cursor(
    db: AsyncSession,
    provider_id: uuid.UUID,
    sync_types: tuple[str, ...] = ("executions", "full"),
    *,
    exclude_id: uuid.UUID | None = None,
) -> str | None:
    """Cursor stored on the most recent successful log that walked executions.

    Failed and interrupted runs never move the resume point.
    """
    stmt = select(SyncLog).where(
        SyncLog.provider_id == provider_id,
        SyncLog.sync_type.in_(sync_types),
        SyncLog.status == "success",
    )
    if exclude_id is not None:
        stmt = stmt.where(SyncLog.id != exclude_id)
    stmt = stmt.order_by(SyncLog.completed_at.desc()).limit(1)
    result = await db.execute(stmt)
    latest = result.scalar_one_or_none()
    return latest.last_cursor if latest else None


async def latest_sync_logs(
    db: AsyncSession,
    provider_id: uuid.UUID | None = None,
    limit: int = 10,
) -> list[SyncLog]:
    stmt = select(SyncLog).order_by(SyncLog.created_at.desc()).limit(limit)
    if provider_id is not None:
        stmt = stmt.where(SyncLog.provider_id == provider_id)
    result = await db.execute(stmt)
    return list(result.scalars().all())
