"""Initial Elova schema: providers, workflows, executions, sync logs.

Revision ID: 001_elova_initial
Revises:
Create Date: 2026-10-18

"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "001_elova_initial"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _has_table(bind, name: str) -> bool:
    return sa.inspect(bind).has_table(name)


def _has_index(bind, table_name: str, index_name: str) -> bool:
    indexes = sa.inspect(bind).get_indexes(table_name)
    return any(idx.get("name") == index_name for idx in indexes)


def _create_index(bind, name: str, table: str, columns: list[str], unique: bool = False) -> None:
    if not _has_index(bind, table, name):
        op.create_index(name, table, columns, unique=unique)


def upgrade() -> None:
    bind = op.get_bind()

    if not _has_table(bind, "providers"):
        op.create_table(
            "providers",
            sa.Column("user_id", sa.String(length=100), nullable=True),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("base_url", sa.String(length=500), nullable=False),
            sa.Column("api_key_encrypted", sa.Text(), nullable=False),
            sa.Column("is_connected", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="healthy"),
            sa.Column("last_checked_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_index(bind, "ix_providers_user_id", "providers", ["user_id"])

    if not _has_table(bind, "workflows"):
        op.create_table(
            "workflows",
            sa.Column("provider_id", sa.Uuid(), nullable=False),
            sa.Column("provider_workflow_id", sa.String(length=100), nullable=False),
            sa.Column("name", sa.String(length=300), nullable=False),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("tags", sa.JSON(), nullable=True),
            sa.Column("node_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("workflow_data", sa.JSON(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
            sa.Column("last_synced_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.ForeignKeyConstraint(["provider_id"], ["providers.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("provider_id", "provider_workflow_id", name="uq_workflow_provider_remote"),
        )
    _create_index(bind, "ix_workflows_provider_id", "workflows", ["provider_id"])
    _create_index(bind, "ix_workflows_provider_workflow_id", "workflows", ["provider_workflow_id"])

    if not _has_table(bind, "executions"):
        op.create_table(
            "executions",
            sa.Column("provider_id", sa.Uuid(), nullable=False),
            sa.Column("workflow_id", sa.Uuid(), nullable=False),
            sa.Column("provider_execution_id", sa.String(length=100), nullable=False),
            sa.Column("provider_workflow_id", sa.String(length=100), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="unknown"),
            sa.Column("mode", sa.String(length=20), nullable=False, server_default="unknown"),
            sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("stopped_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("duration", sa.Integer(), nullable=True),
            sa.Column("finished", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("retry_of", sa.String(length=100), nullable=True),
            sa.Column("retry_success_id", sa.String(length=100), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.ForeignKeyConstraint(["provider_id"], ["providers.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["workflow_id"], ["workflows.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("provider_execution_id"),
        )
    _create_index(bind, "ix_executions_provider_id", "executions", ["provider_id"])
    _create_index(bind, "ix_executions_workflow_id", "executions", ["workflow_id"])
    _create_index(bind, "ix_executions_provider_workflow_id", "executions", ["provider_workflow_id"])
    _create_index(bind, "ix_executions_status", "executions", ["status"])

    if not _has_table(bind, "sync_logs"):
        op.create_table(
            "sync_logs",
            sa.Column("provider_id", sa.Uuid(), nullable=False),
            sa.Column("sync_type", sa.String(length=20), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="running"),
            sa.Column("records_processed", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("records_inserted", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("records_updated", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("error_message", sa.Text(), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
            sa.Column("last_cursor", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("id", sa.Uuid(), nullable=False),
            sa.ForeignKeyConstraint(["provider_id"], ["providers.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
    _create_index(bind, "ix_sync_logs_provider_id", "sync_logs", ["provider_id"])
    _create_index(bind, "ix_sync_logs_created_at", "sync_logs", ["created_at"])


def downgrade() -> None:
    op.drop_table("sync_logs")
    op.drop_table("executions")
    op.drop_table("workflows")
    op.drop_table("providers")
