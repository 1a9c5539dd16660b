"""Durable completion-monitor records and the last failure reason of a task."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261018_0004"
down_revision = "20261018_0003"
branch_labels = None
depends_on = None


def upgrade() -> None:
    with op.batch_alter_table("tasks") as batch:
        batch.add_column(sa.Column("last_error", sa.Text(), nullable=True))

    op.create_table(
        "task_monitors",
        sa.Column("task_id", sa.String(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("started_at_seconds", sa.Float(), nullable=False),
        sa.Column("last_progress_at_seconds", sa.Float(), nullable=False),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("settings_json", sa.Text(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("task_id"),
    )
    op.create_index("ix_task_monitors_position", "task_monitors", ["position"])


def downgrade() -> None:
    op.drop_index("ix_task_monitors_position", table_name="task_monitors")
    op.drop_table("task_monitors")
    with op.batch_alter_table("tasks") as batch:
        batch.drop_column("last_error")
