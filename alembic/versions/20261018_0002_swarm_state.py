"""Persisted swarm runtime state: agents, message queue, task assignments."""

from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "20261018_0002"
down_revision = "20261018_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "swarm_agents",
        sa.Column("instance_id", sa.String(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("template_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("current_task_id", sa.String(), nullable=True),
        sa.Column("project_id", sa.String(), nullable=True),
        sa.Column("parent_agent_id", sa.String(), nullable=True),
        sa.Column("child_agent_ids_json", sa.Text(), nullable=True),
        sa.Column("tokens_used", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("estimated_cost", sa.Float(), nullable=False, server_default="0"),
        sa.Column("started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("instance_id"),
    )
    op.create_index("ix_swarm_agents_position", "swarm_agents", ["position"])
    op.create_index("ix_swarm_agents_template_id", "swarm_agents", ["template_id"])
    op.create_index("ix_swarm_agents_status", "swarm_agents", ["status"])
    op.create_index("ix_swarm_agents_project_id", "swarm_agents", ["project_id"])

    op.create_table(
        "swarm_messages",
        sa.Column("message_id", sa.String(), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("message_type", sa.String(), nullable=False),
        sa.Column("from_agent_id", sa.String(), nullable=False),
        sa.Column("to_agent_id", sa.String(), nullable=False),
        sa.Column("task_id", sa.String(), nullable=True),
        sa.Column("payload_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("message_id"),
    )
    op.create_index("ix_swarm_messages_position", "swarm_messages", ["position"])
    op.create_index("ix_swarm_messages_message_type", "swarm_messages", ["message_type"])
    op.create_index("ix_swarm_messages_to_agent_id", "swarm_messages", ["to_agent_id"])

    op.create_table(
        "swarm_task_assignments",
        sa.Column("task_id", sa.String(), nullable=False),
        sa.Column("instance_id", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("task_id"),
    )
    op.create_index(
        "ix_swarm_task_assignments_instance_id",
        "swarm_task_assignments",
        ["instance_id"],
    )


def downgrade() -> None:
    op.drop_index("ix_swarm_task_assignments_instance_id", table_name="swarm_task_assignments")
    op.drop_table("swarm_task_assignments")
    op.drop_index("ix_swarm_messages_to_agent_id", table_name="swarm_messages")
    op.drop_index("ix_swarm_messages_message_type", table_name="swarm_messages")
    op.drop_index("ix_swarm_messages_position", table_name="swarm_messages")
    op.drop_table("swarm_messages")
    op.drop_index("ix_swarm_agents_project_id", table_name="swarm_agents")
    op.drop_index("ix_swarm_agents_status", table_name="swarm_agents")
    op.drop_index("ix_swarm_agents_template_id", table_name="swarm_agents")
    op.drop_index("ix_swarm_agents_position", table_name="swarm_agents")
    op.drop_table("swarm_agents")
