"""Workflow lifecycle/backup columns and execution AI metrics.

Revision ID: 002_lifecycle_and_ai_metrics
Revises: 001_elova_initial
Create Date: 2026-10-18

"""

from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "002_lifecycle_and_ai_metrics"
down_revision: Union[str, Sequence[str], None] = "001_elova_initial"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _workflow_columns() -> list[sa.Column]:
    return [
        sa.Column("lifecycle_status", sa.String(length=30), nullable=False, server_default="active"),
        sa.Column("last_seen_in_n8n", sa.DateTime(timezone=True), nullable=True),
        sa.Column("backup_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("archived_reason", sa.Text(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
    ]


def _execution_columns() -> list[sa.Column]:
    return [
        sa.Column("total_tokens", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("input_tokens", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("output_tokens", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("ai_cost", sa.Float(), nullable=False, server_default="0"),
        sa.Column("ai_provider", sa.String(length=50), nullable=True),
        sa.Column("ai_model", sa.String(length=100), nullable=True),
        sa.Column("execution_data", sa.JSON(), nullable=True),
    ]


def _has_column(bind, table_name: str, column_name: str) -> bool:
    columns = sa.inspect(bind).get_columns(table_name)
    return any(col.get("name") == column_name for col in columns)


def _has_index(bind, table_name: str, index_name: str) -> bool:
    indexes = sa.inspect(bind).get_indexes(table_name)
    return any(idx.get("name") == index_name for idx in indexes)


def upgrade() -> None:
    bind = op.get_bind()

    for column in _workflow_columns():
        if not _has_column(bind, "workflows", column.name):
            op.add_column("workflows", column)
    for column in _execution_columns():
        if not _has_column(bind, "executions", column.name):
            op.add_column("executions", column)

    if not _has_index(bind, "workflows", "ix_workflows_lifecycle_status"):
        op.create_index("ix_workflows_lifecycle_status", "workflows", ["lifecycle_status"])


def downgrade() -> None:
    op.drop_index("ix_workflows_lifecycle_status", table_name="workflows")
    with op.batch_alter_table("executions") as batch:
        for column in reversed(_execution_columns()):
            batch.drop_column(column.name)
    with op.batch_alter_table("workflows") as batch:
        for column in reversed(_workflow_columns()):
            batch.drop_column(column.name)
