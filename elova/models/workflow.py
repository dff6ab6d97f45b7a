"""Local mirror of remote n8n workflow definitions."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, JSON, String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UUIDMixin

LIFECYCLE_STATUSES = ("active", "deprecated", "archived", "deleted_from_n8n")


class Workflow(Base, UUIDMixin):
    """A workflow as last seen on its provider.

    ``created_at``/``updated_at`` hold the remote timestamps; ``updated_at`` is
    what change detection compares against. Local write time is ``last_synced_at``.
    """

    __tablename__ = "workflows"
    __table_args__ = (
        UniqueConstraint("provider_id", "provider_workflow_id", name="uq_workflow_provider_remote"),
    )

    provider_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("providers.id", ondelete="CASCADE"), index=True
    )
    provider_workflow_id: Mapped[str] = mapped_column(String(100), index=True)
    name: Mapped[str] = mapped_column(String(300))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    node_count: Mapped[int] = mapped_column(Integer, default=0)
    workflow_data: Mapped[dict | None] = mapped_column(JSON, default=None)

    lifecycle_status: Mapped[str] = mapped_column(
        String(30), default="active", index=True
    )  # active/deprecated/archived/deleted_from_n8n
    last_seen_in_n8n: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    backup_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    archived_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), default=None)
    archived_reason: Mapped[str | None] = mapped_column(Text, default=None)
    version: Mapped[int] = mapped_column(Integer, default=1)

    created_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    last_synced_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )

    provider: Mapped["Provider"] = relationship(back_populates="workflows")  # noqa: F821
    executions: Mapped[list["Execution"]] = relationship(  # noqa: F821
        back_populates="workflow", cascade="all, delete-orphan", passive_deletes=True
    )

    def __repr__(self) -> str:
        return f"<Workflow {self.name!r} v{self.version} {self.lifecycle_status}>"
