"""Controllers for swarm CLI commands."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path

from agent_swarm.config import Settings
from agent_swarm.errors import TaskNotFoundError
from agent_swarm.swarm.analyzer import analyze_task
from agent_swarm.swarm.backend import check_command, create_executor
from agent_swarm.swarm.backend.risk import (
    OperationTarget,
    OperationType,
    TargetType,
    assess_risk,
    cooldown_seconds,
    format_cooldown_remaining,
    max_retries_for,
    operation_warning,
    requires_confirmation,
    risk_description,
)
from agent_swarm.swarm.models import (
    AgentInstance,
    AgentRunStatus,
    AgentStatus,
    AgentTemplate,
    ExecuteOptions,
    ModelTier,
    SwarmRole,
    TaskStatus,
)
from agent_swarm.swarm.repository import SwarmStateRepository, TaskCreate, TaskRepository
from agent_swarm.swarm.router import estimate_task_cost
from agent_swarm.swarm.services import SwarmService
from agent_swarm.swarm.templates import get_template, list_by_role, list_by_tier, list_templates


@dataclass(slots=True)
class SwarmInitCommand:
    """CLI input for spawning the default team of a project."""

    db_path: Path | None
    project_id: str


@dataclass(slots=True)
class SwarmStateCommand:
    """CLI input for status/stop/reset operations."""

    db_path: Path | None


@dataclass(slots=True)
class SwarmAgentsCommand:
    db_path: Path | None
    status: str | None = None
    project_id: str | None = None


@dataclass(slots=True)
class SwarmMessagesCommand:
    db_path: Path | None
    agent_id: str | None = None
    limit: int = 20


@dataclass(slots=True)
class TemplatesCommand:
    tier: str | None = None
    role: str | None = None


@dataclass(slots=True)
class TaskCreateCommand:
    """CLI input for task creation."""

    db_path: Path | None
    title: str
    description: str
    project_id: str | None = None
    priority: str = "medium"
    labels: tuple[str, ...] = ()
    subtasks: tuple[str, ...] = ()


@dataclass(slots=True)
class TaskListCommand:
    db_path: Path | None
    status: str | None = None
    project_id: str | None = None


@dataclass(slots=True)
class TaskAnalyzeCommand:
    title: str
    description: str


@dataclass(slots=True)
class TaskRunCommand:
    """CLI input for routing a task through the swarm."""

    db_path: Path | None
    task_id: str
    project_id: str | None = None
    no_monitor: bool = False
    overrides: dict[str, object] = field(default_factory=dict)


@dataclass(slots=True)
class TaskProgressCommand:
    db_path: Path | None
    task_id: str
    progress: int


@dataclass(slots=True)
class TaskReportCommand:
    """CLI input for finishing the agent run of a task."""

    db_path: Path | None
    task_id: str
    status: str
    error: str | None = None


@dataclass(slots=True)
class TaskCompleteCommand:
    db_path: Path | None
    task_id: str
    done: bool = False


@dataclass(slots=True)
class TaskSubtaskCommand:
    db_path: Path | None
    task_id: str
    subtask_id: str


@dataclass(slots=True)
class TaskActivityCommand:
    db_path: Path | None
    task_id: str | None = None
    limit: int = 50


@dataclass(slots=True)
class MonitorRunCommand:
    """CLI input for the foreground completion monitor."""

    db_path: Path | None
    max_ticks: int | None = None


@dataclass(slots=True)
class ExecCommand:
    """CLI input for command safety checks and backend execution."""

    command: str
    template_id: str
    cwd: str | None = None


@dataclass(slots=True)
class RiskCommand:
    """CLI input for classifying an infrastructure operation."""

    operation: str
    target_id: str
    target_name: str | None = None
    target_type: str = TargetType.SERVICE.value


class SwarmCliController:
    """Coordinates swarm, task, monitor and exec CLI operations."""

    # -- swarm --------------------------------------------------------------

    def init_project(self, command: SwarmInitCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            agents = service.initialize_project(command.project_id)
        lines = [f"Swarm initialized for project {command.project_id}: {len(agents)} agents"]
        lines.extend(_agent_line(agent) for agent in agents)
        return lines

    def status(self, command: SwarmStateCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            health = service.router.health()
            stats = service.store.stats()
            tokens = service.store.total_tokens_used()
            assignments = service.store.task_assignments()

        by_tier = " ".join(f"{tier}={count}" for tier, count in stats.by_tier.items())
        cost_by_tier = " ".join(
            f"{tier}=${cost:.4f}" for tier, cost in health.cost_by_tier.items()
        )
        return [
            f"Swarm status: {health.status.value}",
            (
                f"Agents: total={health.total} running={health.running} "
                f"idle={health.idle} error={health.error}"
            ),
            f"Agents by tier: {by_tier}",
            f"Tokens used: {tokens}",
            f"Estimated cost: ${health.total_cost:.4f} ({cost_by_tier})",
            f"Task assignments: {len(assignments)}",
        ]

    def agents(self, command: SwarmAgentsCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        status_filter = _parse_agent_status(command.status)
        with _service(settings) as service:
            if status_filter is not None:
                agents = service.store.by_status(status_filter)
            elif command.project_id is not None:
                agents = service.store.by_project(command.project_id)
            else:
                agents = service.store.agents()
        lines = [f"Agents: {len(agents)}"]
        lines.extend(_agent_line(agent) for agent in agents)
        return lines

    def messages(self, command: SwarmMessagesCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            messages = (
                service.store.messages_for(command.agent_id)
                if command.agent_id is not None
                else service.store.messages()
            )
        messages = messages[-command.limit :] if command.limit > 0 else []
        lines = [f"Messages: {len(messages)}"]
        for message in messages:
            lines.append(
                f"  {message.timestamp.isoformat()} {message.type.value} "
                f"{message.from_agent_id} -> {message.to_agent_id} "
                f"task={message.task_id or '-'}",
            )
        return lines

    def stop(self, command: SwarmStateCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            service.stop_swarm()
            paused = len(service.store.by_status(AgentStatus.PAUSED))
        return [f"Swarm stopped: paused_agents={paused}"]

    def reset(self, command: SwarmStateCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            service.reset_swarm()
        return ["Swarm reset: all agents, messages and assignments removed"]

    def templates(self, command: TemplatesCommand) -> list[str]:
        if command.tier is not None:
            templates = list_by_tier(ModelTier(command.tier.strip().upper()))
        elif command.role is not None:
            templates = list_by_role(SwarmRole(command.role.strip().lower()))
        else:
            templates = list_templates()
        lines = [f"Templates: {len(templates)}"]
        for template in templates:
            lines.append(
                f"  {template.id} tier={template.tier.value} role={template.role.value} "
                f"skills={','.join(template.skills)}",
            )
        return lines

    # -- tasks --------------------------------------------------------------

    def create_task(self, command: TaskCreateCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            task = service.create_task(
                TaskCreate(
                    title=command.title,
                    description=command.description,
                    project_id=command.project_id,
                    priority=command.priority,
                    labels=list(command.labels),
                    subtasks=list(command.subtasks),
                ),
            )
        lines = [f"Task created: task_id={task.task_id} status={task.status.value}"]
        lines.extend(f"  subtask {item.subtask_id}: {item.title}" for item in task.subtasks)
        return lines

    def list_tasks(self, command: TaskListCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        status_filter = _parse_task_status(command.status)
        with _repository(settings) as repository:
            tasks = repository.list_tasks(status=status_filter, project_id=command.project_id)
        lines = [f"Tasks: {len(tasks)}"]
        for task in tasks:
            lines.append(
                f"  {task.task_id} status={task.status.value} progress={task.progress}% "
                f"agent={task.assigned_agent or '-'} title={task.title}",
            )
        return lines

    def analyze(self, command: TaskAnalyzeCommand) -> list[str]:
        analysis = analyze_task(command.title, command.description)
        return [
            f"Complexity: {analysis.complexity.value}",
            f"Agents: {', '.join(analysis.required_agents)}",
            f"Estimated tokens: {analysis.estimated_tokens}",
            f"Parallelizable: {'yes' if analysis.can_parallelize else 'no'}",
            f"Estimated cost: ${estimate_task_cost(analysis):.4f}",
        ]

    def run_task(self, command: TaskRunCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            result = service.run_task(
                command.task_id,
                project_id=command.project_id,
                monitor=not command.no_monitor,
                overrides=dict(command.overrides) or None,
            )
            agents = [service.store.get(instance_id) for instance_id in result.agents]
        if not result.success:
            return [f"Task not routed: {result.error}"]
        lines = [f"Task routed: {command.task_id} agents={len(result.agents)}"]
        lines.extend(_agent_line(agent) for agent in agents if agent is not None)
        return lines

    def report_progress(self, command: TaskProgressCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            try:
                task = service.report_progress(command.task_id, command.progress)
            except TaskNotFoundError as error:
                return [str(error)]
        return [f"Task progress: {task.task_id} {task.progress}%"]

    def report_run(self, command: TaskReportCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        status = AgentRunStatus(command.status.strip().lower())
        with _service(settings) as service:
            try:
                finished = service.report_run(command.task_id, status=status, error=command.error)
            except TaskNotFoundError as error:
                return [str(error)]
        if not finished:
            return [f"Task has no agent run: {command.task_id}"]
        return [f"Agent run finished: task={command.task_id} status={status.value}"]

    def complete_task(self, command: TaskCompleteCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            completed = service.complete_task(command.task_id, move_to_review=not command.done)
        if not completed:
            return [f"Task not found: {command.task_id}"]
        target = TaskStatus.DONE if command.done else TaskStatus.REVIEW
        return [f"Task completed: {command.task_id} -> {target.value}"]

    def execute_subtask(self, command: TaskSubtaskCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            executed = service.execute_subtask(command.task_id, command.subtask_id)
        if not executed:
            return [f"Subtask not found: {command.task_id}/{command.subtask_id}"]
        return [f"Subtask completed: {command.subtask_id}"]

    def activity(self, command: TaskActivityCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _repository(settings) as repository:
            entries = repository.list_activity(task_id=command.task_id, limit=command.limit)
        lines = [f"Activity entries: {len(entries)}"]
        for entry in entries:
            lines.append(
                f"  {entry.timestamp.isoformat()} {entry.level.value.upper()} "
                f"[{entry.source or '-'}] {entry.message}",
            )
        return lines

    # -- monitor ------------------------------------------------------------

    def run_monitor(self, command: MonitorRunCommand) -> list[str]:
        settings = Settings.from_env(db_path=command.db_path)
        with _service(settings) as service:
            resumed = service.resume_monitoring()
            summary = service.run_monitor(max_ticks=command.max_ticks)
            remaining = len(service.engine.monitored_tasks())
        decisions = " ".join(f"{key}={value}" for key, value in sorted(summary.decisions.items()))
        lines = [
            "Monitor summary: "
            f"monitored={len(resumed)} ticks={summary.ticks} remaining={remaining}",
            f"Decisions: {decisions or '-'}",
        ]
        if summary.stop_signal is not None:
            lines.append(f"Stopped by signal: {summary.stop_signal}")
        return lines

    # -- exec ---------------------------------------------------------------

    def check_command(self, command: ExecCommand) -> list[str]:
        template = _require_template(command.template_id)
        verdict = check_command(command.command, template.permissions)
        if verdict.allowed:
            return [f"Allowed for {command.template_id}: {command.command}"]
        return [
            f"Blocked for {command.template_id}: {verdict.reason}",
            f"Rule: {verdict.matched_rule or '-'}",
        ]

    def run_command(self, command: ExecCommand) -> list[str]:
        settings = Settings.from_env()
        settings.validate()
        template = _require_template(command.template_id)
        executor = create_executor(
            settings.executor.kind,
            template.permissions,
            image=settings.executor.container_image,
            workspace_mount=settings.executor.workspace_mount,
        )
        try:
            result = executor.execute(command.command, ExecuteOptions(cwd=command.cwd))
        finally:
            executor.cleanup()
        if not result.success:
            return [f"Command rejected by {executor.name} backend: {result.error}"]
        return [
            f"Command accepted by {executor.name} backend (exit_code={result.exit_code})",
            result.stdout or "",
        ]

    def assess_operation(self, command: RiskCommand) -> list[str]:
        operation = OperationType(command.operation)
        target = OperationTarget(
            id=command.target_id,
            name=command.target_name or command.target_id,
            type=TargetType(command.target_type),
        )
        level = assess_risk(operation, target)
        confirmation = "required" if requires_confirmation(level) else "not required"
        cooldown = cooldown_seconds(operation)
        return [
            f"Risk: {level.value} (confirmation {confirmation})",
            risk_description(level),
            operation_warning(operation, target, level),
            f"Cooldown: {format_cooldown_remaining(cooldown) if cooldown else 'none'} "
            f"max_retries={max_retries_for(operation)}",
        ]


def _require_template(template_id: str) -> AgentTemplate:
    template = get_template(template_id)
    if template is None:
        raise ValueError(f"Unknown template: {template_id}")
    return template


def _agent_line(agent: AgentInstance) -> str:
    return (
        f"  {agent.instance_id} {agent.codename} ({agent.tier.value} {agent.role.value}) "
        f"status={agent.status.value} task={agent.current_task_id or '-'} "
        f"parent={agent.parent_agent_id or '-'}"
    )


def _parse_agent_status(value: str | None) -> AgentStatus | None:
    if value is None:
        return None
    return AgentStatus(value.strip().lower())


def _parse_task_status(value: str | None) -> TaskStatus | None:
    if value is None:
        return None
    return TaskStatus(value.strip().lower().replace("-", "_"))


@contextmanager
def _repository(settings: Settings) -> Iterator[TaskRepository]:
    repository = TaskRepository(
        settings.db_path,
        sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
    )
    repository.init_schema()
    try:
        yield repository
    finally:
        repository.close()


@contextmanager
def _service(settings: Settings) -> Iterator[SwarmService]:
    settings.validate()
    with _repository(settings) as repository:
        state_repository = SwarmStateRepository(
            settings.db_path,
            sqlite_busy_timeout_ms=settings.sqlite_busy_timeout_ms,
        )
        service = SwarmService(
            settings=settings,
            task_repository=repository,
            state_repository=state_repository,
            # Short-lived process: evaluation happens only in `monitor run`.
            ticker_factory=None,
        )
        try:
            yield service
        finally:
            service.close()
            state_repository.close()
