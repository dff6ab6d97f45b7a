"""Workflow reconciliation: n8n -> local mirror.

Remote ``updatedAt`` is the change-detection key. Content (nodes and
connections) is compared only when the timestamp moved, and only a content
difference bumps ``version``. Workflows that vanish remotely are archived after
the whole remote list has been applied, and only when that list is complete.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

import httpx
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..errors import IncompleteListingError
from ..models.provider import Provider
from ..models.workflow import Workflow
from ..n8n.client import RemoteClient
from ..schemas.sync import BackupSyncResult, WorkflowSyncResult
from .timestamps import parse_timestamp, same_instant

logger = logging.getLogger(__name__)

ARCHIVED_REMOTELY_REASON = "Workflow no longer present in n8n"

# Item-level failures; anything else aborts the provider's run.
ITEM_ERRORS = (SQLAlchemyError, ValueError, TypeError, KeyError)


def _remote_id(payload: dict) -> str:
    value = payload.get("id")
    return str(value) if value not in (None, "") else ""


def _tag_names(raw: Any) -> list[str]:
    if not isinstance(raw, list):
        return []
    names: list[str] = []
    for tag in raw:
        if isinstance(tag, dict) and tag.get("name"):
            names.append(str(tag["name"]))
        elif isinstance(tag, str) and tag:
            names.append(tag)
    return names


def _nodes(payload: dict) -> list:
    nodes = payload.get("nodes")
    return nodes if isinstance(nodes, list) else []


def _workflow_data(payload: dict) -> dict:
    return {
        "nodes": _nodes(payload),
        "connections": payload.get("connections") or {},
        "settings": payload.get("settings") or {},
    }


def content_fingerprint(data: dict | None) -> str | None:
    """Canonical serialization of nodes and connections, or ``None`` if never stored."""
    if data is None:
        return None
    return json.dumps(
        {"nodes": data.get("nodes") or [], "connections": data.get("connections") or {}},
        sort_keys=True,
        default=str,
    )


def _reactivate(workflow: Workflow) -> bool:
    """Clear archival state; True if the workflow was not active."""
    was_archived = workflow.lifecycle_status != "active"
    workflow.lifecycle_status = "active"
    workflow.archived_at = None
    workflow.archived_reason = None
    return was_archived


def _apply_content(workflow: Workflow, data: dict) -> bool:
    """Store new workflow data, bumping version on a content change."""
    previous = content_fingerprint(workflow.workflow_data)
    changed = previous is not None and previous != content_fingerprint(data)
    if changed:
        workflow.version = (workflow.version or 1) + 1
    workflow.workflow_data = data
    workflow.node_count = len(data.get("nodes") or [])
    return changed


def _unchanged(workflow: Workflow, payload: dict, remote_updated: datetime | None) -> bool:
    """Whether the remote copy matches the local one.

    Without a remote ``updatedAt`` the name, tags and content are compared instead.
    """
    if remote_updated is not None:
        return same_instant(workflow.updated_at, remote_updated)
    if workflow.workflow_data is None:
        return False
    return (
        workflow.name == (payload.get("name") or workflow.name)
        and list(workflow.tags or []) == _tag_names(payload.get("tags"))
        and content_fingerprint(workflow.workflow_data) == content_fingerprint(_workflow_data(payload))
    )


async def _get_local_workflow(
    db: AsyncSession, provider_id, remote_id: str
) -> Workflow | None:
    stmt = select(Workflow).where(
        Workflow.provider_id == provider_id,
        Workflow.provider_workflow_id == remote_id,
    )
    result = await db.execute(stmt)
    return result.scalar_one_or_none()


async def _upsert_workflow(
    db: AsyncSession,
    provider_id: uuid.UUID,
    payload: dict,
    remote_id: str,
    now: datetime,
) -> str:
    """Apply one remote workflow; returns created/updated/skipped."""
    remote_updated = parse_timestamp(payload.get("updatedAt"))
    remote_created = parse_timestamp(payload.get("createdAt"))
    workflow = await _get_local_workflow(db, provider_id, remote_id)

    if workflow is None:
        data = _workflow_data(payload)
        db.add(
            Workflow(
                provider_id=provider_id,
                provider_workflow_id=remote_id,
                name=payload.get("name") or f"Workflow {remote_id}",
                is_active=bool(payload.get("active")),
                tags=_tag_names(payload.get("tags")),
                node_count=len(data["nodes"]),
                workflow_data=data,
                lifecycle_status="active",
                last_seen_in_n8n=now,
                backup_enabled=True,
                version=1,
                created_at=remote_created or now,
                updated_at=remote_updated or now,
                last_synced_at=now,
            )
        )
        return "created"

    workflow.last_seen_in_n8n = now
    workflow.is_active = bool(payload.get("active"))

    if _unchanged(workflow, payload, remote_updated):
        if _reactivate(workflow):
            logger.info("Workflow %s reappeared in n8n, restored to active", remote_id)
            return "updated"
        return "skipped"

    if _apply_content(workflow, _workflow_data(payload)):
        logger.info("Workflow %s content changed, now v%d", remote_id, workflow.version)
    else:
        logger.debug("Workflow %s metadata updated", remote_id)

    workflow.name = payload.get("name") or workflow.name
    workflow.tags = _tag_names(payload.get("tags"))
    workflow.updated_at = remote_updated or workflow.updated_at or now
    if remote_created:
        workflow.created_at = remote_created
    workflow.last_synced_at = now
    _reactivate(workflow)
    return "updated"


async def archive_missing_workflows(
    db: AsyncSession,
    provider_id: uuid.UUID,
    seen_ids: set[str],
    now: datetime | None = None,
) -> int:
    """Archive active local workflows whose remote id was not seen this pass."""
    now = now or datetime.now(timezone.utc)
    stmt = select(Workflow).where(
        Workflow.provider_id == provider_id,
        Workflow.lifecycle_status == "active",
    )
    result = await db.execute(stmt)

    archived = 0
    for workflow in result.scalars().all():
        if workflow.provider_workflow_id in seen_ids:
            continue
        workflow.lifecycle_status = "deleted_from_n8n" if workflow.backup_enabled else "archived"
        workflow.archived_at = now
        workflow.archived_reason = ARCHIVED_REMOTELY_REASON
        archived += 1
        logger.info(
            "Workflow %s missing from n8n, marked %s",
            workflow.provider_workflow_id,
            workflow.lifecycle_status,
        )

    if archived:
        await db.commit()
    return archived


async def sync_workflows(
    db: AsyncSession,
    provider: Provider,
    client: RemoteClient,
) -> WorkflowSyncResult:
    """Mirror the provider's full workflow list, then archive what disappeared."""
    result = WorkflowSyncResult()
    # Rollbacks expire the provider row; keep what we need in locals.
    provider_id, provider_name = provider.id, provider.name
    complete = True
    try:
        remote_workflows = await client.list_workflows()
    except IncompleteListingError as exc:
        logger.warning("Partial workflow list for %s, skipping archival: %s", provider_name, exc)
        result.errors.append(str(exc))
        remote_workflows = exc.partial
        complete = False
    now = datetime.now(timezone.utc)
    seen_ids: set[str] = set()

    for payload in remote_workflows:
        remote_id = _remote_id(payload) if isinstance(payload, dict) else ""
        if not remote_id:
            result.skipped += 1
            continue
        seen_ids.add(remote_id)

        try:
            action = await _upsert_workflow(db, provider_id, payload, remote_id, now)
            await db.commit()
        except ITEM_ERRORS as exc:
            await db.rollback()
            logger.exception("Failed to sync workflow %s", remote_id)
            result.errors.append(f"Workflow {remote_id}: {exc}")
            continue

        result.synced += 1
        if action == "created":
            result.created += 1
        elif action == "updated":
            result.updated += 1
        else:
            result.skipped += 1

    if complete:
        result.archived = await archive_missing_workflows(db, provider_id, seen_ids, now)
    logger.info(
        "Workflow sync for %s: %d synced (%d new, %d updated, %d archived, %d errors)",
        provider_name,
        result.synced,
        result.created,
        result.updated,
        result.archived,
        len(result.errors),
    )
    return result


async def sync_workflow_backups(
    db: AsyncSession,
    provider: Provider,
    client: RemoteClient,
) -> BackupSyncResult:
    """Snapshot each active workflow's full remote definition."""
    result = BackupSyncResult()
    provider_id, provider_name = provider.id, provider.name
    stmt = select(Workflow.id, Workflow.provider_workflow_id, Workflow.backup_enabled).where(
        Workflow.provider_id == provider_id,
        Workflow.lifecycle_status == "active",
    )
    targets = (await db.execute(stmt)).all()

    for workflow_id, remote_id, backup_enabled in targets:
        result.processed += 1
        if not backup_enabled:
            result.skipped += 1
            continue

        try:
            payload = await client.get_workflow(remote_id)
        except httpx.HTTPError as exc:
            logger.warning("Backup fetch failed for workflow %s: %s", remote_id, exc)
            result.errors.append(f"Workflow {remote_id}: {exc}")
            continue

        try:
            workflow = await db.get(Workflow, workflow_id)
            if workflow is None:
                result.skipped += 1
                continue
            now = datetime.now(timezone.utc)
            data = _workflow_data(payload)
            data["backup_timestamp"] = now.isoformat()
            if _apply_content(workflow, data):
                logger.info("Workflow %s backup captured content change, now v%d", remote_id, workflow.version)
            workflow.last_synced_at = now
            await db.commit()
        except ITEM_ERRORS as exc:
            await db.rollback()
            logger.exception("Failed to store backup for workflow %s", remote_id)
            result.errors.append(f"Workflow {remote_id}: {exc}")
            continue

        result.backed_up += 1

    logger.info(
        "Backup sync for %s: %d backed up, %d skipped, %d errors",
        provider_name,
        result.backed_up,
        result.skipped,
        len(result.errors),
    )
    return result
