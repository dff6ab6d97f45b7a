"""Execution reconciliation: cursor-paged n8n executions -> local mirror."""

from __future__ import annotations

import logging
import uuid
from typing import Any

import httpx
from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..models.execution import Execution
from ..models.provider import Provider
from ..models.sync_log import SyncLog
from ..models.workflow import Workflow
from ..n8n.client import RemoteClient
from ..schemas.sync import BackfillResult, ExecutionSyncResult
from ..services.sync_log_svc import get_last_cursor, update_sync_cursor
from .ai_metrics import AIMetrics, extract_ai_metrics
from .timestamps import duration_ms, parse_timestamp
from .workflow_sync import ITEM_ERRORS

logger = logging.getLogger(__name__)

STATUS_MAP = {
    "success": "success",
    "failed": "error",
    "error": "error",
    "crashed": "error",
    "running": "running",
    "waiting": "waiting",
    "new": "waiting",
    "canceled": "canceled",
}

MODE_MAP = {
    "manual": "manual",
    "cli": "manual",
    "trigger": "trigger",
    "webhook": "webhook",
    "cron": "cron",
}


def map_status(status: Any) -> str:
    return STATUS_MAP.get(str(status).lower(), "unknown") if status else "unknown"


def map_mode(mode: Any) -> str:
    return MODE_MAP.get(str(mode).lower(), "unknown") if mode else "unknown"


def apply_ai_metrics(execution: Execution, metrics: AIMetrics) -> None:
    execution.total_tokens = metrics.total_tokens
    execution.input_tokens = metrics.input_tokens
    execution.output_tokens = metrics.output_tokens
    execution.ai_cost = metrics.ai_cost
    execution.ai_provider = metrics.ai_provider
    execution.ai_model = metrics.ai_model


async def ensure_workflows_exist(
    db: AsyncSession,
    provider_id: uuid.UUID,
    remote_workflow_ids: set[str],
) -> dict[str, uuid.UUID]:
    """Map remote workflow ids to local ids, creating placeholders for unknown ones."""
    if not remote_workflow_ids:
        return {}

    stmt = select(Workflow.provider_workflow_id, Workflow.id).where(
        Workflow.provider_id == provider_id,
        Workflow.provider_workflow_id.in_(remote_workflow_ids),
    )
    mapping = {remote_id: local_id for remote_id, local_id in (await db.execute(stmt)).all()}

    for remote_id in sorted(remote_workflow_ids - mapping.keys()):
        placeholder = Workflow(
            provider_id=provider_id,
            provider_workflow_id=remote_id,
            name=f"Workflow {remote_id}",
            is_active=True,
            tags=[],
            node_count=0,
            lifecycle_status="active",
            version=1,
        )
        db.add(placeholder)
        await db.flush()
        mapping[remote_id] = placeholder.id
        logger.info("Created placeholder for unknown workflow %s", remote_id)

    return mapping


async def upsert_execution(
    db: AsyncSession,
    provider_id: uuid.UUID,
    workflow_id: uuid.UUID,
    payload: dict,
) -> str:
    """Insert or fully overwrite one execution; returns inserted/updated."""
    remote_id = str(payload["id"])
    result = await db.execute(
        select(Execution).where(Execution.provider_execution_id == remote_id)
    )
    execution = result.scalar_one_or_none()
    action = "updated"
    if execution is None:
        execution = Execution(provider_execution_id=remote_id)
        db.add(execution)
        action = "inserted"

    started_at = parse_timestamp(payload.get("startedAt"))
    stopped_at = parse_timestamp(payload.get("stoppedAt"))

    execution.provider_id = provider_id
    execution.workflow_id = workflow_id
    execution.provider_workflow_id = str(payload.get("workflowId"))
    execution.status = map_status(payload.get("status"))
    execution.mode = map_mode(payload.get("mode"))
    execution.started_at = started_at
    execution.stopped_at = stopped_at
    execution.duration = duration_ms(started_at, stopped_at)
    execution.finished = bool(payload.get("finished"))
    execution.retry_of = str(payload["retryOf"]) if payload.get("retryOf") else None
    execution.retry_success_id = (
        str(payload["retrySuccessId"]) if payload.get("retrySuccessId") else None
    )
    execution.metadata_json = {
        "waitTill": payload.get("waitTill"),
        "originalData": {key: value for key, value in payload.items() if key != "data"},
    }

    data = payload.get("data")
    if isinstance(data, dict):
        execution.execution_data = data
        apply_ai_metrics(execution, extract_ai_metrics(data))

    return action


async def _apply_page(
    db: AsyncSession,
    provider_id: uuid.UUID,
    executions: list[dict],
    result: ExecutionSyncResult,
) -> None:
    usable = [e for e in executions if e.get("id") is not None and e.get("workflowId") is not None]
    if len(usable) < len(executions):
        logger.warning("Skipping %d executions without id or workflowId", len(executions) - len(usable))

    workflow_map = await ensure_workflows_exist(
        db, provider_id, {str(e["workflowId"]) for e in usable}
    )
    for payload in usable:
        action = await upsert_execution(
            db, provider_id, workflow_map[str(payload["workflowId"])], payload
        )
        result.processed += 1
        if action == "inserted":
            result.inserted += 1
        else:
            result.updated += 1
    await db.commit()


async def sync_executions(
    db: AsyncSession,
    provider: Provider,
    client: RemoteClient,
    batch_size: int | None = None,
    sync_log: SyncLog | None = None,
) -> ExecutionSyncResult:
    """Walk execution pages from the stored cursor, persisting progress per page."""
    result = ExecutionSyncResult()
    provider_id, provider_name = provider.id, provider.name
    batch_size = batch_size or settings.executions_batch_size

    cursor = await get_last_cursor(
        db, provider_id, exclude_id=sync_log.id if sync_log is not None else None
    )
    if cursor:
        logger.info("Resuming execution sync for %s from stored cursor", provider_name)
        if sync_log is not None:
            await update_sync_cursor(db, sync_log, cursor)

    seen_cursors: set[str] = set()
    reached_end = False

    for page_number in range(1, settings.sync_max_pages + 1):
        try:
            page = await client.list_executions(limit=batch_size, cursor=cursor, include_data=True)
            executions = [e for e in page.get("data") or [] if isinstance(e, dict)]
            if not executions:
                reached_end = True
                break
            await _apply_page(db, provider_id, executions, result)
        except (httpx.HTTPError, *ITEM_ERRORS) as exc:
            await db.rollback()
            logger.exception("Execution page %d failed for %s", page_number, provider_name)
            result.errors.append(f"Page {page_number}: {exc}")
            break

        result.pages += 1
        next_cursor = page.get("nextCursor")
        if not next_cursor:
            reached_end = True
            break
        if next_cursor == cursor or next_cursor in seen_cursors:
            logger.warning("n8n returned a repeated cursor for %s, stopping", provider_name)
            reached_end = True
            break

        seen_cursors.add(next_cursor)
        cursor = next_cursor
        if sync_log is not None:
            await update_sync_cursor(db, sync_log, cursor)
    else:
        logger.info("Execution sync for %s stopped at page limit, will resume", provider_name)

    if reached_end:
        cursor = None
        if sync_log is not None:
            await update_sync_cursor(db, sync_log, None)

    result.cursor = cursor
    logger.info(
        "Execution sync for %s: %d processed (%d new, %d updated) over %d pages",
        provider_name,
        result.processed,
        result.inserted,
        result.updated,
        result.pages,
    )
    return result


async def backfill_ai_metrics(
    db: AsyncSession,
    provider: Provider,
    client: RemoteClient,
    limit: int | None = None,
) -> BackfillResult:
    """Fetch full data for executions without token metrics and store what it yields."""
    result = BackfillResult()
    provider_id = provider.id
    stmt = (
        select(Execution.id, Execution.provider_execution_id)
        .where(
            Execution.provider_id == provider_id,
            or_(Execution.total_tokens == 0, Execution.total_tokens.is_(None)),
        )
        .order_by(Execution.started_at.desc())
    )
    if limit:
        stmt = stmt.limit(limit)
    targets = (await db.execute(stmt)).all()

    for execution_id, remote_id in targets:
        result.processed += 1
        try:
            payload = await client.get_execution(remote_id, include_data=True)
        except httpx.HTTPError as exc:
            logger.warning("Could not fetch execution %s: %s", remote_id, exc)
            result.errors.append(f"Execution {remote_id}: {exc}")
            continue

        metrics = extract_ai_metrics(payload)
        if not metrics.has_usage:
            result.skipped += 1
            continue

        try:
            execution = await db.get(Execution, execution_id)
            if execution is None:
                result.skipped += 1
                continue
            if isinstance(payload.get("data"), dict):
                execution.execution_data = payload["data"]
            apply_ai_metrics(execution, metrics)
            await db.commit()
        except ITEM_ERRORS as exc:
            await db.rollback()
            logger.exception("Failed to store AI metrics for execution %s", remote_id)
            result.errors.append(f"Execution {remote_id}: {exc}")
            continue

        result.updated += 1
        logger.debug("Execution %s: %d tokens, $%.4f", remote_id, metrics.total_tokens, metrics.ai_cost)

    logger.info("AI metrics backfill: %d of %d executions updated", result.updated, result.processed)
    return result
