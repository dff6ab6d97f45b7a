"""Local mirror of remote n8n workflow runs."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, JSON, String, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UUIDMixin, TimestampMixin

EXECUTION_STATUSES = ("running", "success", "error", "canceled", "waiting", "unknown")
EXECUTION_MODES = ("manual", "trigger", "webhook", "cron", "unknown")


class Execution(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "executions"

    provider_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("providers.id", ondelete="CASCADE"), index=True
    )
    workflow_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("workflows.id", ondelete="CASCADE"), index=True
    )
    provider_execution_id: Mapped[str] = mapped_column(String(100), unique=True)
    provider_workflow_id: Mapped[str] = mapped_column(String(100), index=True)
    status: Mapped[str] = mapped_column(String(20), default="unknown", index=True)
    mode: Mapped[str] = mapped_column(String(20), default="unknown")
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    stopped_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    duration: Mapped[int | None] = mapped_column(Integer, default=None)  # milliseconds
    finished: Mapped[bool] = mapped_column(Boolean, default=False)
    retry_of: Mapped[str | None] = mapped_column(String(100), default=None)
    retry_success_id: Mapped[str | None] = mapped_column(String(100), default=None)

    total_tokens: Mapped[int] = mapped_column(Integer, default=0)
    input_tokens: Mapped[int] = mapped_column(Integer, default=0)
    output_tokens: Mapped[int] = mapped_column(Integer, default=0)
    ai_cost: Mapped[float] = mapped_column(Float, default=0.0)
    ai_provider: Mapped[str | None] = mapped_column(String(50), default=None)
    ai_model: Mapped[str | None] = mapped_column(String(100), default=None)

    execution_data: Mapped[dict | None] = mapped_column(JSON, default=None)
    metadata_json: Mapped[dict] = mapped_column("metadata", JSON, default=dict)

    workflow: Mapped["Workflow"] = relationship(back_populates="executions")  # noqa: F821

    def __repr__(self) -> str:
        return f"<Execution {self.provider_execution_id} {self.status}>"
