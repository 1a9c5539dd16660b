"""Task tracking and swarm state persistence backed by SQLModel + SQLite."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Protocol
from uuid import uuid4

from sqlmodel import Session, col, delete, select

from agent_swarm.storage.alembic_runner import current_revision, upgrade_head
from agent_swarm.storage.common import as_utc, build_sqlite_engine, dump_json, load_json, utc_now
from agent_swarm.storage.sqlmodel_models import (
    ActivityLogRow,
    AgentRunRow,
    SubtaskRow,
    SwarmAgentRow,
    SwarmMessageRow,
    SwarmRuntimeRow,
    SwarmTaskAssignmentRow,
    TaskMonitorRow,
    TaskRow,
)
from agent_swarm.swarm.models import (
    ActivityLogEntry,
    AgentInstance,
    AgentRunRecord,
    AgentRunStatus,
    AgentStatus,
    LogLevel,
    MonitoredTask,
    SubtaskRecord,
    SwarmMessage,
    SwarmMessageType,
    TaskCompletionSettings,
    TaskRecord,
    TaskStatus,
)
from agent_swarm.swarm.templates import get_template


class TaskRecordStore(Protocol):
    """Task record operations the router and completion engine depend on."""

    def get_task(self, task_id: str) -> TaskRecord | None: ...

    def update_task(
        self,
        task_id: str,
        *,
        status: TaskStatus | None = None,
        progress: int | None = None,
    ) -> bool: ...

    def assign_agent_to_task(
        self,
        task_id: str,
        run_id: str,
        agent_type: str | None = None,
    ) -> bool: ...

    def complete_agent_task(self, task_id: str, status: TaskStatus = TaskStatus.REVIEW) -> bool: ...

    def fail_agent_task(self, task_id: str, error: str | None = None) -> bool: ...

    def toggle_subtask(self, task_id: str, subtask_id: str) -> bool: ...


class AgentRunStore(Protocol):
    """Lookup of agent run records by run id."""

    def latest_run(self, run_id: str) -> AgentRunRecord | None: ...


class MonitorRecordStore(Protocol):
    """Durable completion-monitor records shared by every process on one database.

    Timestamps are values of the monitoring clock, so all processes sharing
    the records must use the same clock (wall time).
    """

    def save_monitor(self, record: MonitoredTask) -> None: ...

    def get_monitor(self, task_id: str) -> MonitoredTask | None: ...

    def list_monitors(self) -> list[MonitoredTask]: ...

    def touch_monitor(self, task_id: str, at: float) -> bool: ...

    def delete_monitor(self, task_id: str) -> None: ...

    def clear_monitors(self) -> None: ...


@dataclass(slots=True)
class TaskCreate:
    """Input payload for creating a task record."""

    title: str
    description: str = ""
    task_id: str | None = None
    status: TaskStatus = TaskStatus.TODO
    priority: str = "medium"
    project_id: str | None = None
    labels: list[str] = field(default_factory=list)
    subtasks: list[str] = field(default_factory=list)


@dataclass(slots=True)
class SwarmStateSnapshot:
    """Persisted runtime store state."""

    agents: list[AgentInstance]
    messages: list[SwarmMessage]
    task_assignments: dict[str, str]
    is_running: bool = False


class _SqliteRepository:
    def __init__(self, db_path: Path, *, sqlite_busy_timeout_ms: int = 5_000) -> None:
        self.db_path = db_path
        self.engine = build_sqlite_engine(db_path=db_path, busy_timeout_ms=sqlite_busy_timeout_ms)

    def init_schema(self) -> None:
        """Run schema migrations up to head."""

        upgrade_head(self.db_path)

    def schema_revision(self) -> str | None:
        return current_revision(self.engine)

    def close(self) -> None:
        """Close underlying DB resources."""

        self.engine.dispose()


class TaskRepository(_SqliteRepository):
    """Task records, agent runs, completion-monitor records and the activity log."""

    def create_task(self, payload: TaskCreate) -> TaskRecord:
        """Insert a new task with its subtasks."""

        now = utc_now()
        task_id = payload.task_id or f"task_{uuid4().hex[:12]}"
        with Session(self.engine) as session:
            session.add(
                TaskRow(
                    task_id=task_id,
                    title=payload.title,
                    description=payload.description,
                    status=payload.status.value,
                    priority=payload.priority,
                    project_id=payload.project_id,
                    labels_json=dump_json(payload.labels),
                    created_at=now,
                    updated_at=now,
                ),
            )
            session.flush()
            for position, title in enumerate(payload.subtasks):
                session.add(
                    SubtaskRow(
                        subtask_id=f"subtask_{uuid4().hex[:12]}",
                        task_id=task_id,
                        position=position,
                        title=title,
                    ),
                )
            session.commit()
        created = self.get_task(task_id)
        if created is None:  # pragma: no cover - inserted above
            raise RuntimeError(f"Task {task_id} vanished after insert")
        return created

    def get_task(self, task_id: str) -> TaskRecord | None:
        """Return one task record or None."""

        with Session(self.engine) as session:
            row = session.get(TaskRow, task_id)
            if row is None:
                return None
            return _to_task_record(row, self._subtasks(session, task_id))

    def list_tasks(
        self,
        *,
        status: TaskStatus | None = None,
        project_id: str | None = None,
    ) -> list[TaskRecord]:
        """List tasks ordered by creation time."""

        with Session(self.engine) as session:
            query = select(TaskRow)
            if status is not None:
                query = query.where(TaskRow.status == status.value)
            if project_id is not None:
                query = query.where(TaskRow.project_id == project_id)
            rows = session.exec(query.order_by(col(TaskRow.created_at).asc())).all()
            return [_to_task_record(row, self._subtasks(session, row.task_id)) for row in rows]

    def find_task_by_run_id(self, run_id: str) -> TaskRecord | None:
        """Return the task currently linked to an agent run."""

        with Session(self.engine) as session:
            row = session.exec(select(TaskRow).where(TaskRow.agent_run_id == run_id)).first()
            if row is None:
                return None
            return _to_task_record(row, self._subtasks(session, row.task_id))

    def update_task(
        self,
        task_id: str,
        *,
        status: TaskStatus | None = None,
        progress: int | None = None,
    ) -> bool:
        """Update status and/or progress; False when the task does not exist."""

        values: dict[str, Any] = {}
        if status is not None:
            values["status"] = status.value
        if progress is not None:
            values["progress"] = _clamp_progress(progress)
        return self._update(task_id, values)

    def update_task_progress(self, task_id: str, progress: int) -> bool:
        """Record an agent progress report (0-100)."""

        return self._update(task_id, {"progress": _clamp_progress(progress)})

    def assign_agent_to_task(
        self,
        task_id: str,
        run_id: str,
        agent_type: str | None = None,
    ) -> bool:
        """Link a task to an agent run and move it in progress."""

        values: dict[str, Any] = {
            "status": TaskStatus.IN_PROGRESS.value,
            "agent_run_id": run_id,
            "progress": 0,
            "last_error": None,
        }
        if agent_type is not None:
            values["assigned_agent"] = agent_type
        return self._update(task_id, values)

    def complete_agent_task(self, task_id: str, status: TaskStatus = TaskStatus.REVIEW) -> bool:
        """Finish a task into review (default) or done."""

        return self._update(task_id, {"status": status.value, "progress": 100})

    def fail_agent_task(self, task_id: str, error: str | None = None) -> bool:
        """Send a failed task back to the backlog, keeping the failure reason."""

        return self._update(task_id, {"status": TaskStatus.BACKLOG.value, "last_error": error})

    def toggle_subtask(self, task_id: str, subtask_id: str) -> bool:
        """Flip completion of one subtask."""

        with Session(self.engine) as session:
            row = session.get(SubtaskRow, subtask_id)
            if row is None or row.task_id != task_id:
                return False
            row.completed = not row.completed
            session.add(row)
            task = session.get(TaskRow, task_id)
            if task is not None:
                task.updated_at = utc_now()
                session.add(task)
            session.commit()
            return True

    def start_run(
        self,
        *,
        agent_id: str,
        task_id: str | None = None,
        project_id: str | None = None,
        run_id: str | None = None,
    ) -> AgentRunRecord:
        """Record a new running attempt for a run id."""

        row = AgentRunRow(
            run_id=run_id or f"run_{uuid4().hex[:12]}",
            agent_id=agent_id,
            task_id=task_id,
            project_id=project_id,
            status=AgentRunStatus.RUNNING.value,
            started_at=utc_now(),
        )
        with Session(self.engine) as session:
            session.add(row)
            session.commit()
            session.refresh(row)
            return _to_run_record(row)

    def finish_run(
        self,
        run_id: str,
        *,
        status: AgentRunStatus,
        result: Any = None,
        error: str | None = None,
    ) -> bool:
        """Finalize the latest attempt of a run id."""

        with Session(self.engine) as session:
            row = self._latest_run_row(session, run_id)
            if row is None:
                return False
            row.status = status.value
            row.completed_at = utc_now()
            row.result_json = dump_json(result) if result is not None else None
            row.error = error
            session.add(row)
            session.commit()
            return True

    def latest_run(self, run_id: str) -> AgentRunRecord | None:
        """Return the most recent attempt for a run id."""

        with Session(self.engine) as session:
            row = self._latest_run_row(session, run_id)
            return _to_run_record(row) if row is not None else None

    def save_monitor(self, record: MonitoredTask) -> None:
        """Insert or replace a monitoring record; new records go last."""

        with Session(self.engine) as session:
            row = session.get(TaskMonitorRow, record.task_id)
            if row is None:
                last = session.exec(
                    select(TaskMonitorRow.position)
                    .order_by(col(TaskMonitorRow.position).desc())
                    .limit(1),
                ).first()
                row = TaskMonitorRow(
                    task_id=record.task_id,
                    position=(last + 1) if last is not None else 0,
                    started_at_seconds=record.started_at,
                    last_progress_at_seconds=record.last_progress_at,
                    settings_json=dump_json(record.settings.to_dict()),
                    updated_at=utc_now(),
                )
            row.started_at_seconds = record.started_at
            row.last_progress_at_seconds = record.last_progress_at
            row.retry_count = record.retry_count
            row.settings_json = dump_json(record.settings.to_dict())
            row.updated_at = utc_now()
            session.add(row)
            session.commit()

    def get_monitor(self, task_id: str) -> MonitoredTask | None:
        with Session(self.engine) as session:
            row = session.get(TaskMonitorRow, task_id)
            return _to_monitored_task(row) if row is not None else None

    def list_monitors(self) -> list[MonitoredTask]:
        """Return monitoring records in registration order."""

        with Session(self.engine) as session:
            rows = session.exec(
                select(TaskMonitorRow).order_by(col(TaskMonitorRow.position).asc()),
            ).all()
            return [_to_monitored_task(row) for row in rows]

    def touch_monitor(self, task_id: str, at: float) -> bool:
        """Move the last-progress mark forward; False when the task is not monitored."""

        with Session(self.engine) as session:
            row = session.get(TaskMonitorRow, task_id)
            if row is None:
                return False
            row.last_progress_at_seconds = max(row.last_progress_at_seconds, at)
            row.updated_at = utc_now()
            session.add(row)
            session.commit()
            return True

    def delete_monitor(self, task_id: str) -> None:
        with Session(self.engine) as session:
            session.exec(delete(TaskMonitorRow).where(TaskMonitorRow.task_id == task_id))
            session.commit()

    def clear_monitors(self) -> None:
        with Session(self.engine) as session:
            session.exec(delete(TaskMonitorRow))
            session.commit()

    def add_activity(self, entry: ActivityLogEntry) -> None:
        """Persist one activity-log event."""

        with Session(self.engine) as session:
            session.add(
                ActivityLogRow(
                    entry_id=entry.entry_id,
                    level=entry.level.value,
                    message=entry.message,
                    task_id=entry.task_id,
                    project_id=entry.project_id,
                    agent_id=entry.agent_id,
                    run_id=entry.run_id,
                    source=entry.source,
                    metadata_json=dump_json(entry.metadata) if entry.metadata else None,
                    created_at=entry.timestamp,
                ),
            )
            session.commit()

    def list_activity(
        self,
        *,
        task_id: str | None = None,
        limit: int = 100,
    ) -> list[ActivityLogEntry]:
        """Return the latest activity entries, oldest first."""

        with Session(self.engine) as session:
            query = select(ActivityLogRow)
            if task_id is not None:
                query = query.where(ActivityLogRow.task_id == task_id)
            rows = session.exec(
                query.order_by(col(ActivityLogRow.created_at).desc()).limit(limit),
            ).all()
            return [_to_activity_entry(row) for row in reversed(rows)]

    def _update(self, task_id: str, values: dict[str, Any]) -> bool:
        with Session(self.engine) as session:
            row = session.get(TaskRow, task_id)
            if row is None:
                return False
            for key, value in values.items():
                setattr(row, key, value)
            row.updated_at = utc_now()
            session.add(row)
            session.commit()
            return True

    def _subtasks(self, session: Session, task_id: str) -> list[SubtaskRow]:
        return list(
            session.exec(
                select(SubtaskRow)
                .where(SubtaskRow.task_id == task_id)
                .order_by(col(SubtaskRow.position).asc()),
            ).all(),
        )

    def _latest_run_row(self, session: Session, run_id: str) -> AgentRunRow | None:
        return session.exec(
            select(AgentRunRow)
            .where(AgentRunRow.run_id == run_id)
            .order_by(col(AgentRunRow.id).desc())
            .limit(1),
        ).first()


class SwarmStateRepository(_SqliteRepository):
    """Durable copy of the runtime store: agents, recent messages, assignments."""

    def save_state(
        self,
        *,
        agents: list[AgentInstance],
        messages: list[SwarmMessage],
        task_assignments: dict[str, str],
        is_running: bool = False,
    ) -> None:
        """Replace the persisted state with the given snapshot."""

        with Session(self.engine) as session:
            session.exec(delete(SwarmAgentRow))
            session.exec(delete(SwarmMessageRow))
            session.exec(delete(SwarmTaskAssignmentRow))
            for position, agent in enumerate(agents):
                session.add(_to_agent_row(agent, position=position))
            for position, message in enumerate(messages):
                session.add(_to_message_row(message, position=position))
            for task_id, instance_id in task_assignments.items():
                session.add(SwarmTaskAssignmentRow(task_id=task_id, instance_id=instance_id))
            runtime = session.get(SwarmRuntimeRow, 1) or SwarmRuntimeRow(id=1, updated_at=utc_now())
            runtime.is_running = is_running
            runtime.updated_at = utc_now()
            session.add(runtime)
            session.commit()

    def load_state(self) -> SwarmStateSnapshot:
        """Read the persisted snapshot; agents of unknown templates are dropped."""

        with Session(self.engine) as session:
            agent_rows = session.exec(
                select(SwarmAgentRow).order_by(col(SwarmAgentRow.position).asc()),
            ).all()
            message_rows = session.exec(
                select(SwarmMessageRow).order_by(col(SwarmMessageRow.position).asc()),
            ).all()
            assignment_rows = session.exec(select(SwarmTaskAssignmentRow)).all()
            runtime = session.get(SwarmRuntimeRow, 1)
            is_running = runtime.is_running if runtime is not None else False

        agents = [agent for agent in map(_to_agent_instance, agent_rows) if agent is not None]
        known = {agent.instance_id for agent in agents}
        return SwarmStateSnapshot(
            agents=agents,
            messages=[_to_message(row) for row in message_rows],
            task_assignments={
                row.task_id: row.instance_id for row in assignment_rows if row.instance_id in known
            },
            is_running=is_running,
        )


def _clamp_progress(value: int) -> int:
    return max(0, min(100, int(value)))


def _to_task_record(row: TaskRow, subtasks: list[SubtaskRow]) -> TaskRecord:
    return TaskRecord(
        task_id=row.task_id,
        title=row.title,
        description=row.description,
        status=TaskStatus(row.status),
        priority=row.priority,
        project_id=row.project_id,
        assigned_agent=row.assigned_agent,
        agent_run_id=row.agent_run_id,
        progress=row.progress,
        created_at=as_utc(row.created_at) or utc_now(),
        updated_at=as_utc(row.updated_at) or utc_now(),
        labels=list(load_json(row.labels_json, [])),
        last_error=row.last_error,
        subtasks=[
            SubtaskRecord(subtask_id=item.subtask_id, title=item.title, completed=item.completed)
            for item in subtasks
        ],
    )


def _to_run_record(row: AgentRunRow) -> AgentRunRecord:
    return AgentRunRecord(
        run_id=row.run_id,
        agent_id=row.agent_id,
        task_id=row.task_id,
        project_id=row.project_id,
        status=AgentRunStatus(row.status),
        started_at=as_utc(row.started_at) or utc_now(),
        completed_at=as_utc(row.completed_at),
        result=load_json(row.result_json, None),
        error=row.error,
    )


def _to_activity_entry(row: ActivityLogRow) -> ActivityLogEntry:
    return ActivityLogEntry(
        entry_id=row.entry_id,
        timestamp=as_utc(row.created_at) or utc_now(),
        level=LogLevel(row.level),
        message=row.message,
        task_id=row.task_id,
        project_id=row.project_id,
        agent_id=row.agent_id,
        run_id=row.run_id,
        source=row.source,
        metadata=dict(load_json(row.metadata_json, {})),
    )


def _to_agent_row(agent: AgentInstance, *, position: int) -> SwarmAgentRow:
    return SwarmAgentRow(
        instance_id=agent.instance_id,
        position=position,
        template_id=agent.template_id,
        status=agent.status.value,
        current_task_id=agent.current_task_id,
        project_id=agent.project_id,
        parent_agent_id=agent.parent_agent_id,
        child_agent_ids_json=dump_json(agent.child_agent_ids),
        tokens_used=agent.tokens_used,
        estimated_cost=agent.estimated_cost,
        started_at=agent.started_at,
        completed_at=agent.completed_at,
        error=agent.error,
    )


def _to_agent_instance(row: SwarmAgentRow) -> AgentInstance | None:
    template = get_template(row.template_id)
    if template is None:
        return None
    return AgentInstance(
        template=template,
        instance_id=row.instance_id,
        status=AgentStatus(row.status),
        current_task_id=row.current_task_id,
        project_id=row.project_id,
        parent_agent_id=row.parent_agent_id,
        child_agent_ids=list(load_json(row.child_agent_ids_json, [])),
        tokens_used=row.tokens_used,
        estimated_cost=row.estimated_cost,
        started_at=as_utc(row.started_at),
        completed_at=as_utc(row.completed_at),
        error=row.error,
    )


def _to_message_row(message: SwarmMessage, *, position: int) -> SwarmMessageRow:
    return SwarmMessageRow(
        message_id=message.id,
        position=position,
        message_type=message.type.value,
        from_agent_id=message.from_agent_id,
        to_agent_id=message.to_agent_id,
        task_id=message.task_id,
        payload_json=dump_json(message.payload),
        created_at=message.timestamp,
    )


def _to_message(row: SwarmMessageRow) -> SwarmMessage:
    return SwarmMessage(
        id=row.message_id,
        type=SwarmMessageType(row.message_type),
        from_agent_id=row.from_agent_id,
        to_agent_id=row.to_agent_id,
        task_id=row.task_id,
        payload=dict(load_json(row.payload_json, {})),
        timestamp=as_utc(row.created_at) or utc_now(),
    )


def _to_monitored_task(row: TaskMonitorRow) -> MonitoredTask:
    return MonitoredTask(
        task_id=row.task_id,
        started_at=row.started_at_seconds,
        last_progress_at=row.last_progress_at_seconds,
        settings=TaskCompletionSettings().merged(dict(load_json(row.settings_json, {}))),
        retry_count=row.retry_count,
    )
