"""Elova configuration via pydantic-settings."""

from __future__ import annotations

from pathlib import Path

from pydantic_settings import BaseSettings


class ElovaSettings(BaseSettings):
    environment: str = "development"
    database_url: str = "sqlite+aiosqlite:///elova.db"
    echo_sql: bool = False
    app_title: str = "Elova"
    log_level: str = "INFO"
    sqlite_busy_timeout_ms: int = 5000

    # Used to derive the AES key for provider API keys at rest.
    encryption_key: str = "elova-default-encryption-key-change-me"

    # Scheduler cadence (minutes)
    scheduler_enabled: bool = True
    sync_interval_minutes: int = 15
    execution_sync_interval_minutes: int = 15
    backup_sync_interval_minutes: int = 1440

    # Page sizes per sync type; backups are smaller because full definitions are large.
    executions_batch_size: int = 100
    manual_executions_batch_size: int = 200
    workflows_batch_size: int = 100
    backups_batch_size: int = 50
    sync_max_pages: int = 500

    n8n_timeout_seconds: float = 30.0
    connection_test_timeout_seconds: float = 10.0

    # Placeholder provider created on first sync when none is configured.
    default_provider_name: str = "Default n8n Instance"
    default_n8n_url: str = "http://localhost:5678"
    default_n8n_api_key: str = ""

    model_config = {"env_prefix": "ELOVA_", "env_file": ".env", "extra": "ignore"}

    @property
    def base_dir(self) -> Path:
        return Path(__file__).resolve().parent

    @property
    def migrations_dir(self) -> Path:
        return self.base_dir / "migrations"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() in {"prod", "production"}

    def batch_size_for(self, sync_type: str, *, manual: bool = False) -> int:
        """Default page size for a sync type."""
        if sync_type == "executions":
            return self.manual_executions_batch_size if manual else self.executions_batch_size
        if sync_type == "backups":
            return self.backups_batch_size
        if sync_type == "workflows":
            return self.workflows_batch_size
        return self.executions_batch_size


settings = ElovaSettings()
