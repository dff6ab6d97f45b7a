"""Sync run audit trail."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, JSON, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, UUIDMixin, utcnow

SYNC_TYPES = ("executions", "workflows", "backups", "full")


class SyncLog(Base, UUIDMixin):
    """One reconciliation run for one provider and sync type."""

    __tablename__ = "sync_logs"

    provider_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("providers.id", ondelete="CASCADE"), index=True
    )
    sync_type: Mapped[str] = mapped_column(String(20))  # executions/workflows/backups/full
    status: Mapped[str] = mapped_column(String(20), default="running")  # running/success/error
    records_processed: Mapped[int] = mapped_column(Integer, default=0)
    records_inserted: Mapped[int] = mapped_column(Integer, default=0)
    records_updated: Mapped[int] = mapped_column(Integer, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, default=None)
    metadata_json: Mapped[dict] = mapped_column("metadata", JSON, default=dict)
    last_cursor: Mapped[str | None] = mapped_column(Text, default=None)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, server_default=func.now(), index=True
    )
    completed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    @property
    def is_terminal(self) -> bool:
        return self.status in ("success", "error")

    def __repr__(self) -> str:
        return f"<SyncLog {self.sync_type} {self.status}>"
