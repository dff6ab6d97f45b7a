"""Execution queries and AI usage aggregates."""

from __future__ import annotations

import uuid
from datetime import datetime, timedelta, timezone

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.execution import Execution
from ..models.workflow import Workflow

TIME_RANGES = {
    "1h": timedelta(hours=1),
    "24h": timedelta(hours=24),
    "7d": timedelta(days=7),
    "30d": timedelta(days=30),
    "90d": timedelta(days=90),
}


async def list_executions(
    db: AsyncSession,
    *,
    provider_id: uuid.UUID | None = None,
    workflow_id: uuid.UUID | None = None,
    status: str | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[Execution]:
    stmt = select(Execution).order_by(Execution.started_at.desc()).limit(limit).offset(offset)
    if provider_id is not None:
        stmt = stmt.where(Execution.provider_id == provider_id)
    if workflow_id is not None:
        stmt = stmt.where(Execution.workflow_id == workflow_id)
    if status:
        stmt = stmt.where(Execution.status == status)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def get_ai_metrics(
    db: AsyncSession,
    *,
    time_range: str = "24h",
    provider_id: uuid.UUID | None = None,
    workflow_id: str | None = None,
    now: datetime | None = None,
) -> dict:
    """Token and cost totals since ``time_range`` ago, with per-workflow and per-AI-provider breakdowns.

    ``workflow_id`` is the remote n8n workflow id. Unknown ranges fall back to 24h.
    """
    now = now or datetime.now(timezone.utc)
    since = now - TIME_RANGES.get(time_range, TIME_RANGES["24h"])

    filters = [Execution.started_at >= since]
    if provider_id is not None:
        filters.append(Execution.provider_id == provider_id)
    if workflow_id:
        filters.append(Execution.provider_workflow_id == workflow_id)

    totals = (
        await db.execute(
            select(
                func.count(Execution.id),
                func.coalesce(func.sum(Execution.total_tokens), 0),
                func.coalesce(func.sum(Execution.input_tokens), 0),
                func.coalesce(func.sum(Execution.output_tokens), 0),
                func.coalesce(func.sum(Execution.ai_cost), 0.0),
                func.count(case((Execution.total_tokens > 0, 1))),
                func.avg(case((Execution.total_tokens > 0, Execution.total_tokens))),
            ).where(*filters)
        )
    ).one()

    by_workflow = (
        await db.execute(
            select(
                Execution.provider_workflow_id,
                Workflow.name,
                func.count(Execution.id),
                func.sum(Execution.total_tokens),
                func.sum(Execution.ai_cost),
            )
            .join(Workflow, Execution.workflow_id == Workflow.id, isouter=True)
            .where(*filters, Execution.total_tokens > 0)
            .group_by(Execution.provider_workflow_id, Workflow.name)
            .order_by(func.sum(Execution.total_tokens).desc())
            .limit(10)
        )
    ).all()

    by_provider = (
        await db.execute(
            select(
                Execution.ai_provider,
                func.count(Execution.id),
                func.sum(Execution.total_tokens),
                func.sum(Execution.ai_cost),
            )
            .where(*filters, Execution.ai_provider.is_not(None))
            .group_by(Execution.ai_provider)
            .order_by(func.sum(Execution.total_tokens).desc())
        )
    ).all()

    total, tokens, input_tokens, output_tokens, cost, with_ai, avg_tokens = totals
    return {
        "time_range": time_range if time_range in TIME_RANGES else "24h",
        "total_executions": total or 0,
        "executions_with_ai": with_ai or 0,
        "total_tokens": int(tokens or 0),
        "total_input_tokens": int(input_tokens or 0),
        "total_output_tokens": int(output_tokens or 0),
        "total_ai_cost": float(cost or 0.0),
        "avg_tokens_per_execution": round(avg_tokens or 0),
        "by_workflow": [
            {
                "workflow_id": remote_id,
                "workflow_name": name or "Unknown",
                "execution_count": count,
                "total_tokens": int(wf_tokens or 0),
                "total_cost": float(wf_cost or 0.0),
            }
            for remote_id, name, count, wf_tokens, wf_cost in by_workflow
        ],
        "by_provider": [
            {
                "provider": ai_provider,
                "execution_count": count,
                "total_tokens": int(p_tokens or 0),
                "total_cost": float(p_cost or 0.0),
            }
            for ai_provider, count, p_tokens, p_cost in by_provider
        ],
    }
