"""Sync orchestrator - runs one reconciliation pass per provider."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Callable, Union

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import settings
from ..errors import SyncError, UnknownSyncTypeError
from ..models.provider import Provider
from ..models.sync_log import SYNC_TYPES, SyncLog
from ..n8n.client import RemoteClient, create_n8n_client
from ..schemas.sync import (
    BackupSyncResult,
    ExecutionSyncResult,
    FullSyncResult,
    MultiProviderSyncResult,
    ProviderSyncOutcome,
    WorkflowSyncResult,
)
from ..services.provider_svc import (
    ensure_default_provider,
    get_provider,
    get_provider_api_key,
    list_active_providers,
    update_provider_health,
)
from ..services.sync_log_svc import complete_sync_log, create_sync_log
from .execution_sync import sync_executions
from .workflow_sync import sync_workflow_backups, sync_workflows

logger = logging.getLogger(__name__)

ClientFactory = Callable[[str, str], RemoteClient]
SyncOutcome = Union[WorkflowSyncResult, ExecutionSyncResult, BackupSyncResult, FullSyncResult]

# Phases of a full sync, in order.
FULL_SYNC_PHASES = ("workflows", "executions", "backups")


def summarize(result: SyncOutcome) -> dict:
    """Result fields plus the processed/inserted/updated counts the sync log keeps."""
    summary = result.model_dump()
    summary.update(
        processed=result.processed,
        inserted=result.inserted,
        updated=result.updated,
    )
    return summary


async def _run_phase(
    db: AsyncSession,
    provider: Provider,
    client: RemoteClient,
    sync_type: str,
    batch_size: int,
    sync_log: SyncLog,
) -> SyncOutcome:
    if sync_type == "workflows":
        return await sync_workflows(db, provider, client)
    if sync_type == "executions":
        return await sync_executions(db, provider, client, batch_size, sync_log)
    if sync_type == "backups":
        return await sync_workflow_backups(db, provider, client)
    raise UnknownSyncTypeError(sync_type)


async def _run_full(
    db: AsyncSession,
    provider: Provider,
    client: RemoteClient,
    batch_size: int,
    sync_log: SyncLog,
) -> FullSyncResult:
    """Workflows, then executions, then backups; one failing phase does not stop the rest."""
    result = FullSyncResult()
    provider_id = provider.id
    for phase in FULL_SYNC_PHASES:
        await db.refresh(provider)
        try:
            outcome = await _run_phase(db, provider, client, phase, batch_size, sync_log)
        except (httpx.HTTPError, SQLAlchemyError) as exc:
            await db.rollback()
            logger.exception("Full sync phase %s failed for %s", phase, provider_id)
            result.errors.append(f"{phase}: {exc}")
            continue
        setattr(result, phase, outcome)

    if len(result.errors) == len(FULL_SYNC_PHASES):
        raise SyncError("; ".join(result.errors))
    return result


async def sync_provider(
    db: AsyncSession,
    provider: Provider,
    sync_type: str = "executions",
    batch_size: int | None = None,
    *,
    client_factory: ClientFactory | None = None,
    manual: bool = False,
) -> SyncOutcome:
    """Run one sync pass for one provider and record it in ``sync_logs``.

    Provider-level failures complete the log as ``error``, mark the provider
    unhealthy, and propagate.
    """
    if sync_type not in SYNC_TYPES:
        raise UnknownSyncTypeError(sync_type)

    client_factory = client_factory or create_n8n_client
    batch_size = batch_size or settings.batch_size_for(sync_type, manual=manual)
    provider_id, provider_name = provider.id, provider.name
    sync_log = await create_sync_log(db, provider_id, sync_type)
    logger.info("Starting %s sync for %s (batch size %d)", sync_type, provider_name, batch_size)

    try:
        client = client_factory(provider.base_url, get_provider_api_key(provider))
        try:
            if sync_type == "full":
                result = await _run_full(db, provider, client, batch_size, sync_log)
            else:
                result = await _run_phase(db, provider, client, sync_type, batch_size, sync_log)
        finally:
            await client.close()
    except Exception as exc:
        logger.exception("%s sync failed for %s", sync_type, provider_name)
        await db.rollback()
        await db.refresh(sync_log)
        await complete_sync_log(db, sync_log, status="error", error_message=str(exc))
        await db.refresh(provider)
        await update_provider_health(db, provider, status="error", error=str(exc))
        raise

    await db.refresh(sync_log)
    await complete_sync_log(
        db,
        sync_log,
        status="success",
        processed=result.processed,
        inserted=result.inserted,
        updated=result.updated,
        error_message="; ".join(result.errors) or None,
        metadata=summarize(result),
    )
    await db.refresh(provider)
    if provider.status != "healthy":
        await update_provider_health(db, provider, status="healthy", is_connected=True)
    logger.info(
        "%s sync for %s finished: %d processed, %d inserted, %d updated",
        sync_type,
        provider_name,
        result.processed,
        result.inserted,
        result.updated,
    )
    return result


async def sync_all_providers(
    sync_type: str = "executions",
    batch_size: int | None = None,
    *,
    session_factory: async_sessionmaker[AsyncSession] | None = None,
    client_factory: ClientFactory | None = None,
    manual: bool = False,
) -> MultiProviderSyncResult:
    """Sync every connected, healthy provider concurrently, each on its own session."""
    if sync_type not in SYNC_TYPES:
        raise UnknownSyncTypeError(sync_type)
    if session_factory is None:
        from ..database import async_session_factory

        session_factory = async_session_factory

    async with session_factory() as db:
        providers = await list_active_providers(db)
        if not providers:
            default = await ensure_default_provider(db)
            if default is not None and default.is_connected and default.status == "healthy":
                providers = [default]
        targets = [(p.id, p.name) for p in providers]

    if not targets:
        logger.info("No connected providers to sync")
        return MultiProviderSyncResult(success=True)

    async def _sync_one(provider_id: uuid.UUID) -> SyncOutcome:
        async with session_factory() as db:
            provider = await get_provider(db, provider_id)
            if provider is None:
                raise SyncError(f"Provider {provider_id} disappeared before sync")
            return await sync_provider(
                db,
                provider,
                sync_type,
                batch_size,
                client_factory=client_factory,
                manual=manual,
            )

    outcomes = await asyncio.gather(
        *(_sync_one(provider_id) for provider_id, _ in targets),
        return_exceptions=True,
    )

    summary = MultiProviderSyncResult(providers=len(targets))
    for (provider_id, provider_name), outcome in zip(targets, outcomes):
        if isinstance(outcome, BaseException):
            summary.failed += 1
            summary.results.append(
                ProviderSyncOutcome(
                    provider_id=str(provider_id),
                    provider_name=provider_name,
                    sync_type=sync_type,
                    success=False,
                    error=str(outcome) or outcome.__class__.__name__,
                )
            )
        else:
            summary.successful += 1
            summary.results.append(
                ProviderSyncOutcome(
                    provider_id=str(provider_id),
                    provider_name=provider_name,
                    sync_type=sync_type,
                    success=True,
                    result=summarize(outcome),
                )
            )

    summary.success = summary.failed == 0
    logger.info(
        "%s sync across %d providers: %d succeeded, %d failed",
        sync_type,
        summary.providers,
        summary.successful,
        summary.failed,
    )
    return summary
