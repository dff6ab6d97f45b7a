"""Sync request and result schemas."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field

SyncType = Literal["executions", "workflows", "backups", "full"]


class WorkflowSyncResult(BaseModel):
    synced: int = 0
    created: int = 0
    updated: int = 0
    archived: int = 0
    skipped: int = 0
    errors: list[str] = []

    @property
    def processed(self) -> int:
        return self.synced

    @property
    def inserted(self) -> int:
        return self.created


class ExecutionSyncResult(BaseModel):
    processed: int = 0
    inserted: int = 0
    updated: int = 0
    pages: int = 0
    cursor: str | None = None
    errors: list[str] = []


class BackupSyncResult(BaseModel):
    processed: int = 0
    backed_up: int = 0
    skipped: int = 0
    errors: list[str] = []

    @property
    def inserted(self) -> int:
        return 0

    @property
    def updated(self) -> int:
        return self.backed_up


class BackfillResult(BaseModel):
    processed: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[str] = []


class FullSyncResult(BaseModel):
    workflows: WorkflowSyncResult | None = None
    executions: ExecutionSyncResult | None = None
    backups: BackupSyncResult | None = None
    errors: list[str] = []

    @property
    def processed(self) -> int:
        return sum(r.processed for r in (self.workflows, self.executions, self.backups) if r)

    @property
    def inserted(self) -> int:
        return sum(r.inserted for r in (self.workflows, self.executions, self.backups) if r)

    @property
    def updated(self) -> int:
        return sum(r.updated for r in (self.workflows, self.executions, self.backups) if r)


class ProviderSyncOutcome(BaseModel):
    provider_id: str
    provider_name: str
    sync_type: SyncType
    success: bool
    result: dict[str, Any] | None = None
    error: str | None = None


class MultiProviderSyncResult(BaseModel):
    success: bool = True
    providers: int = 0
    successful: int = 0
    failed: int = 0
    results: list[ProviderSyncOutcome] = []


class SyncRequest(BaseModel):
    sync_type: SyncType = "executions"
    batch_size: int | None = Field(default=None, ge=1, le=1000)


class ArchiveRequest(BaseModel):
    reason: str = "Manually archived by user"


class BackupToggle(BaseModel):
    enabled: bool


class ProviderCreate(BaseModel):
    name: str
    base_url: str
    api_key: str
    user_id: str | None = None
