"""Use-case facade wiring the runtime store, router and completion engine."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Any

from agent_swarm.config import Settings
from agent_swarm.errors import TaskNotFoundError
from agent_swarm.swarm.activity import ActivityLog
from agent_swarm.swarm.completion import CompletionEngine, MonitorRunSummary
from agent_swarm.swarm.models import (
    AgentInstance,
    AgentRunStatus,
    LogLevel,
    MonitoredTask,
    SwarmExecutionResult,
    TaskRecord,
    TaskStatus,
)
from agent_swarm.swarm.repository import SwarmStateRepository, TaskCreate, TaskRepository
from agent_swarm.swarm.router import TaskRouter
from agent_swarm.swarm.store import SwarmRuntimeStore
from agent_swarm.swarm.ticker import MonitorTicker

logger = logging.getLogger(__name__)


class SwarmService:
    """Single entry point for CLI and embedding callers.

    Owns one runtime store, router and completion engine over a task
    repository; swarm state is persisted when a state repository is given.
    Monitoring records live in the task repository and are shared by every
    process on the database, so the monitoring clock defaults to wall time.
    """

    def __init__(  # noqa: PLR0913
        self,
        *,
        settings: Settings,
        task_repository: TaskRepository,
        state_repository: SwarmStateRepository | None = None,
        clock: Callable[[], float] = time.time,
        ticker_factory: Callable[..., MonitorTicker] | None = MonitorTicker,
    ) -> None:
        self.settings = settings
        self.task_repository = task_repository
        self.state_repository = state_repository
        self.activity = ActivityLog(
            retention=settings.store.activity_retention,
            repository=task_repository,
        )
        if state_repository is not None:
            self.store = SwarmRuntimeStore.load(
                state_repository,
                message_retention=settings.store.message_retention,
            )
        else:
            self.store = SwarmRuntimeStore(message_retention=settings.store.message_retention)
        self.router = TaskRouter(self.store, task_repository, activity=self.activity)
        self.engine = CompletionEngine(
            task_repository,
            task_repository,
            activity=self.activity,
            defaults=settings.completion.to_completion_settings(),
            interval_seconds=settings.monitor.interval_seconds,
            clock=clock,
            ticker_factory=ticker_factory,
            monitor_store=task_repository,
        )

    def close(self) -> None:
        self.engine.shutdown()

    # -- swarm --------------------------------------------------------------

    def initialize_project(self, project_id: str) -> list[AgentInstance]:
        return self.router.initialize_for_project(project_id)

    def stop_swarm(self) -> None:
        self.store.stop()
        self.activity.add_log(LogLevel.INFO, "Swarm stopped", source="service")

    def reset_swarm(self) -> None:
        self.engine.reset_monitoring()
        self.store.reset()
        self.activity.add_log(LogLevel.WARN, "Swarm reset", source="service")

    # -- tasks --------------------------------------------------------------

    def create_task(self, payload: TaskCreate) -> TaskRecord:
        task = self.task_repository.create_task(payload)
        self.activity.add_log(
            LogLevel.INFO,
            f"Task created: {task.title}",
            task_id=task.task_id,
            project_id=task.project_id,
            source="service",
        )
        return task

    def run_task(
        self,
        task_id: str,
        *,
        project_id: str | None = None,
        monitor: bool = True,
        overrides: dict[str, Any] | None = None,
    ) -> SwarmExecutionResult:
        """Route a task through the swarm, open its agent run and monitor it."""

        result = self.router.execute_task(task_id, project_id)
        if not result.success:
            logger.warning("Task %s was not routed: %s", task_id, result.error)
            return result

        primary = self.store.get(result.agents[0])
        if primary is not None and result.run_id is not None:
            self.task_repository.start_run(
                run_id=result.run_id,
                agent_id=primary.template_id,
                task_id=task_id,
                project_id=project_id or primary.project_id,
            )
        if monitor:
            self.engine.start_monitoring(task_id, overrides)
        return result

    def report_progress(self, task_id: str, progress: int) -> TaskRecord:
        """Record agent progress on a task and refresh its monitoring clock."""

        if not self.task_repository.update_task_progress(task_id, progress):
            raise TaskNotFoundError(task_id)
        self.engine.touch_progress(task_id)
        task = self.task_repository.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def report_run(
        self,
        task_id: str,
        *,
        status: AgentRunStatus,
        result: Any = None,
        error: str | None = None,
    ) -> bool:
        """Finalize the agent run linked to a task; False when it has none."""

        task = self.task_repository.get_task(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        if task.agent_run_id is None:
            return False
        finished = self.task_repository.finish_run(
            task.agent_run_id,
            status=status,
            result=result,
            error=error,
        )
        agent = self.store.agent_for_task(task_id)
        if finished and status is not AgentRunStatus.RUNNING and agent is not None:
            self.store.unassign_task(agent.instance_id)
        return finished

    def complete_task(self, task_id: str, *, move_to_review: bool = True) -> bool:
        agent = self.store.agent_for_task(task_id)
        completed = self.engine.mark_complete(task_id, move_to_review=move_to_review)
        if completed and agent is not None:
            self.store.unassign_task(agent.instance_id)
        return completed

    def execute_subtask(self, task_id: str, subtask_id: str) -> bool:
        return self.engine.execute_subtask(task_id, subtask_id)

    # -- monitoring ---------------------------------------------------------

    def resume_monitoring(self) -> list[MonitoredTask]:
        """Monitor every in-progress task not already monitored here.

        Durable records keep their clocks, retry counts and overrides; tasks
        without one start fresh.
        """

        resumed = []
        for task in self.task_repository.list_tasks(status=TaskStatus.IN_PROGRESS):
            if self.engine.is_monitoring(task.task_id):
                continue
            record = self.engine.restore_monitoring(task.task_id)
            resumed.append(record or self.engine.start_monitoring(task.task_id))
        return resumed

    def run_monitor(self, *, max_ticks: int | None = None) -> MonitorRunSummary:
        return self.engine.run_loop(max_ticks=max_ticks)
