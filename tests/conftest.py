"""Shared test fixtures."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from agent_swarm.storage.common import utc_now
from agent_swarm.swarm.activity import ActivityLog
from agent_swarm.swarm.completion import CompletionEngine
from agent_swarm.swarm.models import (
    AgentRunRecord,
    AgentRunStatus,
    SubtaskRecord,
    TaskRecord,
    TaskStatus,
)
from agent_swarm.swarm.repository import SwarmStateRepository, TaskRepository
from agent_swarm.swarm.store import SwarmRuntimeStore


class FakeClock:
    """Monotonic clock in seconds that only moves when told to."""

    def __init__(self, start: float = 1_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeTicker:
    """Ticker double that never spawns a thread."""

    instances: list[FakeTicker] = []

    def __init__(self, interval_seconds: float, callback: Callable[[], None], *, name: str) -> None:
        self.interval_seconds = interval_seconds
        self.callback = callback
        self.name = name
        self.started = 0
        self.cancelled = 0
        self._running = False
        FakeTicker.instances.append(self)

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self) -> None:
        self.started += 1
        self._running = True

    def cancel(self) -> None:
        self.cancelled += 1
        self._running = False


class InMemoryTaskStore:
    """Task record and agent-run store kept in dictionaries."""

    def __init__(self) -> None:
        self.tasks: dict[str, TaskRecord] = {}
        self.runs: dict[str, list[AgentRunRecord]] = {}
        self.calls: list[tuple[str, str]] = []

    def add_task(
        self,
        task_id: str,
        *,
        title: str = "Task",
        description: str = "",
        status: TaskStatus = TaskStatus.TODO,
        progress: int = 0,
        agent_run_id: str | None = None,
        project_id: str | None = None,
        subtasks: list[SubtaskRecord] | None = None,
    ) -> TaskRecord:
        now = utc_now()
        task = TaskRecord(
            task_id=task_id,
            title=title,
            description=description,
            status=status,
            priority="medium",
            project_id=project_id,
            assigned_agent=None,
            agent_run_id=agent_run_id,
            progress=progress,
            created_at=now,
            updated_at=now,
            subtasks=list(subtasks or []),
        )
        self.tasks[task_id] = task
        return task

    def add_run(self, run_id: str, status: AgentRunStatus, *, result=None, error=None) -> None:
        self.runs.setdefault(run_id, []).append(
            AgentRunRecord(
                run_id=run_id,
                agent_id="delta-coder",
                task_id=None,
                project_id=None,
                status=status,
                started_at=utc_now(),
                result=result,
                error=error,
            ),
        )

    def get_task(self, task_id: str) -> TaskRecord | None:
        return self.tasks.get(task_id)

    def update_task(self, task_id: str, *, status=None, progress=None) -> bool:
        task = self.tasks.get(task_id)
        if task is None:
            return False
        self.calls.append(("update_task", task_id))
        if status is not None:
            task.status = status
        if progress is not None:
            task.progress = progress
        return True

    def assign_agent_to_task(self, task_id: str, run_id: str, agent_type=None) -> bool:
        task = self.tasks.get(task_id)
        if task is None:
            return False
        self.calls.append(("assign_agent_to_task", task_id))
        task.status = TaskStatus.IN_PROGRESS
        task.agent_run_id = run_id
        task.assigned_agent = agent_type
        task.progress = 0
        task.last_error = None
        return True

    def complete_agent_task(self, task_id: str, status: TaskStatus = TaskStatus.REVIEW) -> bool:
        task = self.tasks.get(task_id)
        if task is None:
            return False
        self.calls.append(("complete_agent_task", task_id))
        task.status = status
        task.progress = 100
        return True

    def fail_agent_task(self, task_id: str, error: str | None = None) -> bool:
        task = self.tasks.get(task_id)
        if task is None:
            return False
        self.calls.append(("fail_agent_task", task_id))
        task.status = TaskStatus.BACKLOG
        task.last_error = error
        return True

    def toggle_subtask(self, task_id: str, subtask_id: str) -> bool:
        task = self.tasks.get(task_id)
        if task is None:
            return False
        for subtask in task.subtasks:
            if subtask.subtask_id == subtask_id:
                subtask.completed = not subtask.completed
                self.calls.append(("toggle_subtask", subtask_id))
                return True
        return False

    def latest_run(self, run_id: str) -> AgentRunRecord | None:
        runs = self.runs.get(run_id)
        return runs[-1] if runs else None


def sequential_ids() -> Callable[[str], str]:
    counter = {"value": 0}

    def _next(prefix: str) -> str:
        counter["value"] += 1
        return f"{prefix}-{counter['value']}"

    return _next


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def task_store() -> InMemoryTaskStore:
    return InMemoryTaskStore()


@pytest.fixture()
def activity() -> ActivityLog:
    return ActivityLog(retention=1_000)


@pytest.fixture()
def runtime_store() -> SwarmRuntimeStore:
    return SwarmRuntimeStore(id_factory=sequential_ids())


@pytest.fixture()
def ticker_factory() -> type[FakeTicker]:
    FakeTicker.instances.clear()
    return FakeTicker


@pytest.fixture()
def make_engine(task_store, activity, clock, ticker_factory) -> Callable[..., CompletionEngine]:
    def _make(interval_seconds: float = 5.0) -> CompletionEngine:
        return CompletionEngine(
            task_store,
            task_store,
            activity=activity,
            interval_seconds=interval_seconds,
            clock=clock,
            ticker_factory=ticker_factory,
        )

    return _make


@pytest.fixture()
def engine(make_engine) -> CompletionEngine:
    return make_engine()


@pytest.fixture()
def task_repository(tmp_path: Path):
    repository = TaskRepository(tmp_path / "tasks.db")
    repository.init_schema()
    yield repository
    repository.close()


@pytest.fixture()
def state_repository(task_repository: TaskRepository):
    repository = SwarmStateRepository(task_repository.db_path)
    yield repository
    repository.close()


@pytest.fixture()
def tickers(ticker_factory) -> list[FakeTicker]:
    return FakeTicker.instances
