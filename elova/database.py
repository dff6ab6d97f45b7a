"""Async database engine, session factory and startup schema upkeep."""

from __future__ import annotations

import logging

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from .config import settings

logger = logging.getLogger(__name__)

# Additive columns that older databases may lack. Applied unconditionally at
# startup; SQLite rejects duplicates, which is how we know a column is present.
COLUMN_MIGRATIONS: tuple[str, ...] = (
    "ALTER TABLE workflows ADD COLUMN lifecycle_status VARCHAR(30) DEFAULT 'active'",
    "ALTER TABLE workflows ADD COLUMN last_seen_in_n8n DATETIME",
    "ALTER TABLE workflows ADD COLUMN backup_enabled BOOLEAN DEFAULT 1",
    "ALTER TABLE workflows ADD COLUMN archived_at DATETIME",
    "ALTER TABLE workflows ADD COLUMN archived_reason TEXT",
    "ALTER TABLE workflows ADD COLUMN version INTEGER DEFAULT 1",
    "ALTER TABLE executions ADD COLUMN execution_data JSON",
    "ALTER TABLE executions ADD COLUMN total_tokens INTEGER DEFAULT 0",
    "ALTER TABLE executions ADD COLUMN input_tokens INTEGER DEFAULT 0",
    "ALTER TABLE executions ADD COLUMN output_tokens INTEGER DEFAULT 0",
    "ALTER TABLE executions ADD COLUMN ai_cost FLOAT DEFAULT 0.0",
    "ALTER TABLE executions ADD COLUMN ai_provider VARCHAR(50)",
    "ALTER TABLE executions ADD COLUMN ai_model VARCHAR(100)",
)


def _configure_sqlite(engine: AsyncEngine, url: str) -> None:
    """Install the connection pragmas for a single-writer embedded database."""
    busy_timeout = int(settings.sqlite_busy_timeout_ms)
    use_wal = ":memory:" not in url

    @event.listens_for(engine.sync_engine, "connect")
    def _set_pragmas(dbapi_connection, connection_record):  # noqa: ARG001
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.execute(f"PRAGMA busy_timeout={busy_timeout}")
        if use_wal:
            cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


def build_engine(url: str | None = None, *, echo: bool | None = None) -> AsyncEngine:
    url = url or settings.database_url
    eng = create_async_engine(url, echo=settings.echo_sql if echo is None else echo)
    if url.startswith("sqlite"):
        _configure_sqlite(eng, url)
    return eng


engine = build_engine()
async_session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


async def get_db():
    """FastAPI dependency that yields an async session."""
    async with async_session_factory() as session:
        yield session


def _is_duplicate_column(exc: Exception) -> bool:
    message = str(getattr(exc, "orig", exc)).lower()
    return "duplicate column" in message or "already exists" in message


async def apply_column_migrations(eng: AsyncEngine | None = None) -> int:
    """Run the additive column migrations; returns how many columns were added."""
    eng = eng or engine
    added = 0
    for statement in COLUMN_MIGRATIONS:
        try:
            async with eng.begin() as conn:
                await conn.execute(text(statement))
            added += 1
        except SQLAlchemyError as exc:
            if not _is_duplicate_column(exc):
                logger.error("Column migration failed (%s): %s", statement, exc)
    if added:
        logger.info("Applied %d column migrations", added)
    return added


async def init_db(eng: AsyncEngine | None = None) -> None:
    """Create missing tables, then bring older tables up to date."""
    from .models import Base

    eng = eng or engine
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await apply_column_migrations(eng)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """FastAPI dependency for code that opens its own sessions (per-provider sync)."""
    return async_session_factory
