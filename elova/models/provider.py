"""Provider model - one configured n8n instance."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, UUIDMixin, TimestampMixin


class Provider(Base, UUIDMixin, TimestampMixin):
    __tablename__ = "providers"

    user_id: Mapped[str | None] = mapped_column(String(100), default=None, index=True)
    name: Mapped[str] = mapped_column(String(200))
    base_url: Mapped[str] = mapped_column(String(500))
    api_key_encrypted: Mapped[str] = mapped_column(Text)
    is_connected: Mapped[bool] = mapped_column(Boolean, default=True)
    status: Mapped[str] = mapped_column(String(20), default="healthy")  # healthy/warning/error
    last_checked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), default=None
    )
    metadata_json: Mapped[dict] = mapped_column("metadata", JSON, default=dict)

    workflows: Mapped[list["Workflow"]] = relationship(  # noqa: F821
        back_populates="provider", cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Provider {self.name!r} {self.status}>"
