"""Completion-decision engine: supervises in-flight tasks and decides their fate."""

from __future__ import annotations

import logging
import signal
import threading
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from typing import Any

from agent_swarm.swarm.activity import ActivitySink
from agent_swarm.swarm.models import (
    TERMINAL_DECISIONS,
    AgentRunStatus,
    LogLevel,
    MonitoredTask,
    TaskCompletionSettings,
    TaskDecision,
    TaskDecisionResult,
    TaskRecord,
    TaskStatus,
)
from agent_swarm.swarm.repository import AgentRunStore, MonitorRecordStore, TaskRecordStore
from agent_swarm.swarm.ticker import MonitorTicker

logger = logging.getLogger(__name__)

TickerFactory = Callable[..., MonitorTicker]


@dataclass(slots=True)
class MonitorRunSummary:
    """Aggregated outcome of a foreground monitor loop."""

    ticks: int = 0
    decisions: dict[str, int] = field(default_factory=dict)
    stop_signal: str | None = None


class CompletionEngine:
    """Decides when monitored tasks are complete, failed, retried or timed out.

    One shared ticker evaluates every monitored task per interval. The ticker
    starts with the first monitored task and is cancelled once none remain.
    Without a ticker factory tasks are only evaluated by `tick` or `run_loop`.

    With a monitor store, monitoring records are written through to it and
    re-read before every evaluation, so progress reported by another process
    on the same database counts for this one.
    """

    def __init__(  # noqa: PLR0913
        self,
        task_store: TaskRecordStore,
        run_store: AgentRunStore,
        *,
        activity: ActivitySink,
        defaults: TaskCompletionSettings | None = None,
        interval_seconds: float = 5.0,
        clock: Callable[[], float] = time.monotonic,
        ticker_factory: TickerFactory | None = MonitorTicker,
        monitor_store: MonitorRecordStore | None = None,
    ) -> None:
        if interval_seconds <= 0:
            raise ValueError("interval_seconds must be > 0")
        self.task_store = task_store
        self.run_store = run_store
        self.monitor_store = monitor_store
        self.activity = activity
        self.defaults = defaults or TaskCompletionSettings()
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._ticker_factory = ticker_factory
        self._ticker: MonitorTicker | None = None
        self._monitored: dict[str, MonitoredTask] = {}
        self._lock = threading.RLock()
        self._foreground = False
        self._stop_requested = False
        self._stop_signal_name: str | None = None

    # -- decisions ----------------------------------------------------------

    def decide(
        self,
        task_id: str,
        settings: TaskCompletionSettings | None = None,
    ) -> TaskDecisionResult:
        """Evaluate one task against its record, latest run and monitoring state."""

        task = self.task_store.get_task(task_id)
        if task is None:
            return TaskDecisionResult(decision=TaskDecision.FAIL, reason="Task not found")

        snapshot = self._current(task_id)
        if settings is None:
            settings = snapshot.settings if snapshot is not None else self.defaults
        now = self._clock()

        if task.status is not TaskStatus.IN_PROGRESS:
            return TaskDecisionResult(decision=TaskDecision.PENDING, reason="Task not in progress")

        if task.progress >= 100:
            return TaskDecisionResult(
                decision=TaskDecision.COMPLETE,
                reason="Task reached 100% progress",
                next_status=_completion_status(settings),
            )

        if task.agent_run_id:
            run = self.run_store.latest_run(task.agent_run_id)
            if run is not None and run.status is AgentRunStatus.COMPLETED:
                return TaskDecisionResult(
                    decision=TaskDecision.COMPLETE,
                    reason="Agent run completed",
                    next_status=_completion_status(settings),
                    metadata={"run_id": run.run_id, "result": run.result},
                )
            if run is not None and run.status is AgentRunStatus.FAILED:
                retry_count = snapshot.retry_count if snapshot is not None else 0
                if retry_count < settings.max_retries:
                    return TaskDecisionResult(
                        decision=TaskDecision.RETRY,
                        reason=f"Agent run failed, retry {retry_count + 1}/{settings.max_retries}",
                        metadata={"error": run.error},
                    )
                return TaskDecisionResult(
                    decision=TaskDecision.FAIL,
                    reason=f"Agent run failed after {settings.max_retries} retries",
                    next_status=TaskStatus.BACKLOG,
                    metadata={"error": run.error},
                )

        if snapshot is not None and settings.auto_complete:
            elapsed = now - snapshot.started_at
            since_progress = now - snapshot.last_progress_at
            timeout = settings.auto_complete_timeout_seconds
            if since_progress > timeout * 2:
                return TaskDecisionResult(
                    decision=TaskDecision.TIMEOUT,
                    reason=f"No progress for {round(since_progress)}s",
                    next_status=TaskStatus.BACKLOG,
                    metadata={"elapsed_seconds": elapsed, "since_progress_seconds": since_progress},
                )
            if elapsed > timeout and task.progress > 0:
                return TaskDecisionResult(
                    decision=TaskDecision.COMPLETE,
                    reason=(
                        f"Auto-completing after {round(elapsed)}s "
                        f"with {task.progress}% progress"
                    ),
                    next_status=_completion_status(settings),
                )

        return TaskDecisionResult(decision=TaskDecision.PENDING, reason="Task still in progress")

    def apply_decision(self, task_id: str, decision: TaskDecisionResult) -> None:
        """Carry out a decision on the task record and the monitoring state."""

        task = self.task_store.get_task(task_id)
        if task is None:
            if decision.decision in TERMINAL_DECISIONS:
                self.stop_monitoring(task_id)
            return

        match decision.decision:
            case TaskDecision.COMPLETE:
                self.task_store.complete_agent_task(
                    task_id,
                    status=decision.next_status or TaskStatus.REVIEW,
                )
                self._log_task(
                    LogLevel.INFO,
                    f"Task completed: {decision.reason}",
                    task,
                    metadata=decision.metadata,
                )
                self.stop_monitoring(task_id)
            case TaskDecision.FAIL:
                self.task_store.fail_agent_task(task_id, error=decision.metadata.get("error"))
                self._log_task(
                    LogLevel.ERROR,
                    f"Task failed: {decision.reason}",
                    task,
                    metadata=decision.metadata,
                )
                self.stop_monitoring(task_id)
            case TaskDecision.TIMEOUT:
                self.task_store.fail_agent_task(task_id, error=decision.reason)
                self._log_task(
                    LogLevel.WARN,
                    f"Task timed out: {decision.reason}",
                    task,
                    metadata=decision.metadata,
                )
                self.stop_monitoring(task_id)
            case TaskDecision.RETRY:
                record = self._current(task_id)
                if record is not None:
                    now = self._clock()
                    record.retry_count += 1
                    record.started_at = now
                    record.last_progress_at = now
                    self._write_record(record)
                # TODO: re-dispatch the task to its agent once a remote gateway client exists.
                self._log_task(
                    LogLevel.WARN,
                    f"Retrying task: {decision.reason}",
                    task,
                    metadata=decision.metadata,
                )
            case TaskDecision.ESCALATE:
                self._log_task(
                    LogLevel.WARN,
                    f"Task escalated: {decision.reason}",
                    task,
                    metadata=decision.metadata,
                )
            case TaskDecision.PENDING:
                pass

    # -- monitoring ---------------------------------------------------------

    def start_monitoring(
        self,
        task_id: str,
        overrides: dict[str, Any] | None = None,
    ) -> MonitoredTask:
        """Register a task for periodic evaluation; restarts its clock if present."""

        settings = self.defaults.merged(overrides)
        now = self._clock()
        monitored = MonitoredTask(
            task_id=task_id,
            started_at=now,
            last_progress_at=now,
            settings=settings,
        )
        with self._lock:
            self._monitored[task_id] = monitored
            self._ensure_ticker()
        if self.monitor_store is not None:
            self.monitor_store.save_monitor(replace(monitored))

        task = self.task_store.get_task(task_id)
        self._log_task(
            LogLevel.INFO,
            "Task monitoring started",
            task,
            task_id=task_id,
            metadata={"settings": settings.to_dict()},
        )
        return monitored

    def stop_monitoring(self, task_id: str) -> None:
        self._forget(task_id)
        if self.monitor_store is not None:
            self.monitor_store.delete_monitor(task_id)

    def restore_monitoring(self, task_id: str) -> MonitoredTask | None:
        """Adopt a task's durable monitoring record; None when there is none."""

        if self.monitor_store is None:
            return None
        record = self.monitor_store.get_monitor(task_id)
        if record is None:
            return None
        with self._lock:
            self._monitored[task_id] = replace(record)
            self._ensure_ticker()
        logger.info("Restored monitoring of task %s (retries=%d)", task_id, record.retry_count)
        return record

    def touch_progress(self, task_id: str) -> bool:
        """Record a progress event; False when the task is not monitored anywhere."""

        now = self._clock()
        with self._lock:
            monitored = self._monitored.get(task_id)
            if monitored is not None:
                monitored.last_progress_at = now
        touched = False
        if self.monitor_store is not None:
            touched = self.monitor_store.touch_monitor(task_id, now)
        return monitored is not None or touched

    def mark_complete(
        self,
        task_id: str,
        *,
        move_to_review: bool = True,
        reason: str | None = None,
    ) -> bool:
        """Complete a task immediately, bypassing the decision rules."""

        task = self.task_store.get_task(task_id)
        if task is None:
            return False
        if move_to_review:
            self.task_store.complete_agent_task(task_id, status=TaskStatus.REVIEW)
        else:
            self.task_store.update_task(task_id, status=TaskStatus.DONE, progress=100)
        self._log_task(LogLevel.INFO, reason or "Task marked complete", task)
        self.stop_monitoring(task_id)
        return True

    def monitored_tasks(self) -> dict[str, MonitoredTask]:
        """Snapshot of monitoring records keyed by task id."""

        with self._lock:
            return {task_id: replace(item) for task_id, item in self._monitored.items()}

    def is_monitoring(self, task_id: str) -> bool:
        with self._lock:
            return task_id in self._monitored

    @property
    def ticker_running(self) -> bool:
        with self._lock:
            return self._ticker is not None and self._ticker.is_running

    def tick(self) -> list[tuple[str, TaskDecisionResult]]:
        """Evaluate every monitored task once, in registration order.

        Returns the non-pending decisions that were applied.
        """

        with self._lock:
            task_ids = list(self._monitored)

        applied: list[tuple[str, TaskDecisionResult]] = []
        for task_id in task_ids:
            if not self.is_monitoring(task_id):
                continue
            try:
                if self._current(task_id) is None:
                    # Monitoring was stopped by another process.
                    self._forget(task_id)
                    continue
                decision = self.decide(task_id)
                if decision.decision is TaskDecision.PENDING:
                    continue
                self.apply_decision(task_id, decision)
            except Exception:
                logger.exception("Failed to evaluate monitored task %s", task_id)
                continue
            logger.info(
                "Task %s decision=%s reason=%s",
                task_id,
                decision.decision.value,
                decision.reason,
            )
            applied.append((task_id, decision))
        return applied

    def execute_subtask(self, task_id: str, subtask_id: str) -> bool:
        """Run one subtask; completion is simulated by ticking it off."""

        task = self.task_store.get_task(task_id)
        if task is None:
            return False
        subtask = next((item for item in task.subtasks if item.subtask_id == subtask_id), None)
        if subtask is None:
            return False

        self._log_task(
            LogLevel.INFO,
            f"Executing subtask: {subtask.title}",
            task,
            metadata={"subtask_id": subtask_id, "subtask_title": subtask.title},
        )
        if not subtask.completed:
            self.task_store.toggle_subtask(task_id, subtask_id)
        self._log_task(
            LogLevel.INFO,
            f"Subtask completed: {subtask.title}",
            task,
            metadata={"subtask_id": subtask_id},
        )
        return True

    def shutdown(self) -> None:
        """Forget every monitored task and stop the ticker; durable records stay."""

        with self._lock:
            self._monitored.clear()
            self._cancel_ticker()

    def reset_monitoring(self) -> None:
        """Shut down and drop the durable monitoring records as well."""

        self.shutdown()
        if self.monitor_store is not None:
            self.monitor_store.clear_monitors()

    # -- foreground loop ----------------------------------------------------

    def run_loop(self, *, max_ticks: int | None = None) -> MonitorRunSummary:
        """Tick in the calling thread until no task is monitored or a stop signal.

        The background ticker is suspended while the loop runs.
        """

        summary = MonitorRunSummary()
        self._stop_requested = False
        self._stop_signal_name = None
        with self._lock:
            self._foreground = True
            self._cancel_ticker()
        try:
            with self._signal_handlers():
                while not self._stop_requested:
                    if max_ticks is not None and summary.ticks >= max_ticks:
                        break
                    if not self.monitored_tasks():
                        break
                    self._sleep_with_stop(self.interval_seconds)
                    if self._stop_requested:
                        break
                    for _, decision in self.tick():
                        key = decision.decision.value
                        summary.decisions[key] = summary.decisions.get(key, 0) + 1
                    summary.ticks += 1
        finally:
            with self._lock:
                self._foreground = False
                self._ensure_ticker()
        summary.stop_signal = self._stop_signal_name
        return summary

    def request_stop(self, *, signal_name: str = "manual") -> None:
        self._stop_requested = True
        self._stop_signal_name = signal_name
        logger.info("Monitor loop stop requested (%s)", signal_name)

    # -- internals ----------------------------------------------------------

    def _current(self, task_id: str) -> MonitoredTask | None:
        """Copy of the monitoring record, refreshed from the monitor store."""

        if self.monitor_store is None:
            with self._lock:
                monitored = self._monitored.get(task_id)
                return replace(monitored) if monitored is not None else None
        persisted = self.monitor_store.get_monitor(task_id)
        if persisted is not None:
            with self._lock:
                if task_id in self._monitored:
                    self._monitored[task_id] = replace(persisted)
        return persisted

    def _write_record(self, record: MonitoredTask) -> None:
        with self._lock:
            if record.task_id in self._monitored:
                self._monitored[record.task_id] = replace(record)
        if self.monitor_store is not None:
            self.monitor_store.save_monitor(record)

    def _forget(self, task_id: str) -> None:
        with self._lock:
            self._monitored.pop(task_id, None)
            if not self._monitored:
                self._cancel_ticker()

    def _ensure_ticker(self) -> None:
        if self._ticker_factory is None or self._foreground or not self._monitored:
            return
        if self._ticker is not None and self._ticker.is_running:
            return
        self._ticker = self._ticker_factory(
            self.interval_seconds,
            self.tick,
            name="swarm-completion-monitor",
        )
        self._ticker.start()

    def _cancel_ticker(self) -> None:
        if self._ticker is None:
            return
        self._ticker.cancel()
        self._ticker = None

    def _log_task(
        self,
        level: LogLevel,
        message: str,
        task: TaskRecord | None,
        *,
        task_id: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        details: dict[str, Any] = {}
        if task is not None:
            details["task_title"] = task.title
            details["task_status"] = task.status.value
        details.update(metadata or {})
        self.activity.add_log(
            level,
            message,
            task_id=task.task_id if task is not None else task_id,
            project_id=task.project_id if task is not None else None,
            agent_id=task.assigned_agent if task is not None else None,
            run_id=task.agent_run_id if task is not None else None,
            source="completion",
            metadata=details,
        )

    def _sleep_with_stop(self, seconds: float) -> None:
        deadline = time.monotonic() + seconds
        while not self._stop_requested and time.monotonic() < deadline:
            time.sleep(min(0.1, max(0.0, deadline - time.monotonic())))

    @contextmanager
    def _signal_handlers(self) -> Iterator[None]:
        if not hasattr(signal, "SIGINT"):
            yield
            return

        original_sigint = signal.getsignal(signal.SIGINT)
        original_sigterm = signal.getsignal(signal.SIGTERM)

        def _handler(signum: int, _: object | None) -> None:
            try:
                name = signal.Signals(signum).name
            except ValueError:
                name = str(signum)
            self.request_stop(signal_name=name)

        installed = True
        try:
            signal.signal(signal.SIGINT, _handler)
            signal.signal(signal.SIGTERM, _handler)
        except ValueError:
            # Signal handlers can only be installed in main thread.
            installed = False
        try:
            yield
        finally:
            if installed:
                signal.signal(signal.SIGINT, original_sigint)
                signal.signal(signal.SIGTERM, original_sigterm)


def _completion_status(settings: TaskCompletionSettings) -> TaskStatus:
    return TaskStatus.REVIEW if settings.requires_review else TaskStatus.DONE
