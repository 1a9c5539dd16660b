"""SQLModel ORM tables for task tracking and swarm state."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, Text
from sqlmodel import Field, SQLModel


class TaskRow(SQLModel, table=True):
    __tablename__ = "tasks"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_tasks_project_status", "project_id", "status"),)

    task_id: str = Field(primary_key=True)
    title: str
    description: str = Field(default="", sa_column=Column(Text, nullable=False))
    status: str = Field(index=True)
    priority: str = Field(default="medium")
    project_id: str | None = Field(default=None, index=True)
    assigned_agent: str | None = None
    agent_run_id: str | None = Field(default=None, index=True)
    progress: int = Field(default=0)
    labels_json: str | None = Field(default=None, sa_column=Column(Text))
    last_error: str | None = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class SubtaskRow(SQLModel, table=True):
    __tablename__ = "subtasks"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_subtasks_task_position", "task_id", "position"),)

    subtask_id: str = Field(primary_key=True)
    task_id: str = Field(
        sa_column=Column(
            ForeignKey("tasks.task_id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    position: int = Field(default=0)
    title: str
    completed: bool = Field(default=False)


class AgentRunRow(SQLModel, table=True):
    __tablename__ = "agent_runs"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_agent_runs_run_started", "run_id", "started_at"),)

    id: int | None = Field(default=None, primary_key=True)
    run_id: str = Field(index=True)
    agent_id: str = Field(index=True)
    task_id: str | None = Field(default=None, index=True)
    project_id: str | None = None
    status: str = Field(index=True)
    started_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
    completed_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    result_json: str | None = Field(default=None, sa_column=Column(Text))
    error: str | None = Field(default=None, sa_column=Column(Text))


class ActivityLogRow(SQLModel, table=True):
    __tablename__ = "activity_log"  # type: ignore[bad-override]
    __table_args__ = (Index("idx_activity_log_task_time", "task_id", "created_at"),)

    entry_id: str = Field(primary_key=True)
    level: str = Field(index=True)
    message: str = Field(sa_column=Column(Text, nullable=False))
    task_id: str | None = None
    project_id: str | None = None
    agent_id: str | None = None
    run_id: str | None = None
    source: str | None = None
    metadata_json: str | None = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class SwarmAgentRow(SQLModel, table=True):
    __tablename__ = "swarm_agents"  # type: ignore[bad-override]

    instance_id: str = Field(primary_key=True)
    position: int = Field(default=0, index=True)
    template_id: str = Field(index=True)
    status: str = Field(index=True)
    current_task_id: str | None = None
    project_id: str | None = Field(default=None, index=True)
    parent_agent_id: str | None = None
    child_agent_ids_json: str | None = Field(default=None, sa_column=Column(Text))
    tokens_used: int = Field(default=0)
    estimated_cost: float = Field(default=0.0)
    started_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    completed_at: datetime | None = Field(default=None, sa_column=Column(DateTime(timezone=True)))
    error: str | None = Field(default=None, sa_column=Column(Text))


class SwarmMessageRow(SQLModel, table=True):
    __tablename__ = "swarm_messages"  # type: ignore[bad-override]

    message_id: str = Field(primary_key=True)
    position: int = Field(default=0, index=True)
    message_type: str = Field(index=True)
    from_agent_id: str
    to_agent_id: str = Field(index=True)
    task_id: str | None = None
    payload_json: str | None = Field(default=None, sa_column=Column(Text))
    created_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class SwarmTaskAssignmentRow(SQLModel, table=True):
    __tablename__ = "swarm_task_assignments"  # type: ignore[bad-override]

    task_id: str = Field(primary_key=True)
    instance_id: str = Field(index=True)


class SwarmRuntimeRow(SQLModel, table=True):
    __tablename__ = "swarm_runtime"  # type: ignore[bad-override]

    id: int = Field(default=1, primary_key=True)
    is_running: bool = Field(default=False)
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))


class TaskMonitorRow(SQLModel, table=True):
    __tablename__ = "task_monitors"  # type: ignore[bad-override]

    task_id: str = Field(primary_key=True)
    position: int = Field(default=0, index=True)
    started_at_seconds: float
    last_progress_at_seconds: float
    retry_count: int = Field(default=0)
    settings_json: str = Field(sa_column=Column(Text, nullable=False))
    updated_at: datetime = Field(sa_column=Column(DateTime(timezone=True), nullable=False))
