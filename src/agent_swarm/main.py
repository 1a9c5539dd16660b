"""CLI entrypoint for agent-swarm."""

import logging
from pathlib import Path

import rich_click as click

from agent_swarm import __version__
from agent_swarm.swarm.controllers import (
    ExecCommand,
    MonitorRunCommand,
    RiskCommand,
    SwarmAgentsCommand,
    SwarmCliController,
    SwarmInitCommand,
    SwarmMessagesCommand,
    SwarmStateCommand,
    TaskActivityCommand,
    TaskAnalyzeCommand,
    TaskCompleteCommand,
    TaskCreateCommand,
    TaskListCommand,
    TaskProgressCommand,
    TaskReportCommand,
    TaskRunCommand,
    TaskSubtaskCommand,
    TemplatesCommand,
)

click.rich_click.USE_MARKDOWN = True
SWARM_CONTROLLER = SwarmCliController()

_DB_PATH_HELP = "SQLite DB path."
_TASK_STATUSES = ["backlog", "todo", "in_progress", "review", "done"]
_OPERATIONS = ["query", "restart", "stop", "reboot", "delete"]


class _SwarmGroup(click.RichGroup):
    """Root group that reports configuration errors as CLI errors."""

    def invoke(self, ctx: click.Context) -> object:
        try:
            return super().invoke(ctx)
        except ValueError as error:
            raise click.ClickException(str(error)) from error


@click.group(cls=_SwarmGroup)
@click.version_option(version=__version__, prog_name="agent-swarm")
@click.option("--verbose", "-v", is_flag=True, default=False, help="Log engine events to stderr.")
def agent_swarm(verbose: bool) -> None:
    """Tiered agent swarm CLI."""

    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


@agent_swarm.group()
def swarm() -> None:
    """Swarm lifecycle and inspection commands."""


@swarm.command("init")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help=_DB_PATH_HELP)
@click.option("--project-id", required=True, help="Project the default team works on.")
def swarm_init(db_path: Path | None, project_id: str) -> None:
    """Spawn the coordinator, specialists and workers for a project and start the swarm."""

    _emit_lines(
        SWARM_CONTROLLER.init_project(SwarmInitCommand(db_path=db_path, project_id=project_id)),
    )


@swarm.command("status")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help=_DB_PATH_HELP)
def swarm_status(db_path: Path | None) -> None:
    """Show swarm health, agent counts and estimated cost."""

    _emit_lines(SWARM_CONTROLLER.status(SwarmStateCommand(db_path=db_path)))


@swarm.command("agents")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help=_DB_PATH_HELP)
@click.option(
    "--status",
    type=click.Choice(["idle", "running", "paused", "completed", "error"]),
    default=None,
    help="Only agents in this status.",
)
@click.option("--project-id", default=None, help="Only agents of this project.")
def swarm_agents(db_path: Path | None, status: str | None, project_id: str | None) -> None:
    """List live agent instances."""

    _emit_lines(
        SWARM_CONTROLLER.agents(
            SwarmAgentsCommand(db_path=db_path, status=status, project_id=project_id),
        ),
    )


@swarm.command("messages")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help=_DB_PATH_HELP)
@click.option("--agent", "agent_id", default=None, help="Messages addressed to this instance.")
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=500),
    default=20,
    show_default=True,
    help="Most recent messages to show.",
)
def swarm_messages(db_path: Path | None, agent_id: str | None, limit: int) -> None:
    """Show inter-agent messages."""

    _emit_lines(
        SWARM_CONTROLLER.messages(
            SwarmMessagesCommand(db_path=db_path, agent_id=agent_id, limit=limit),
        ),
    )


@swarm.command("templates")
@click.option("--tier", type=click.Choice(["T1", "T2", "T3"]), default=None, help="Tier filter.")
@click.option(
    "--role",
    type=click.Choice(["coordinator", "specialist", "worker"]),
    default=None,
    help="Role filter.",
)
def swarm_templates(tier: str | None, role: str | None) -> None:
    """List agent templates."""

    _emit_lines(SWARM_CONTROLLER.templates(TemplatesCommand(tier=tier, role=role)))


@swarm.command("stop")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help=_DB_PATH_HELP)
def swarm_stop(db_path: Path | None) -> None:
    """Stop the swarm; running agents are paused."""

    _emit_lines(SWARM_CONTROLLER.stop(SwarmStateCommand(db_path=db_path)))


@swarm.command("reset")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help=_DB_PATH_HELP)
@click.confirmation_option(prompt="Remove every agent, message and assignment?")
def swarm_reset(db_path: Path | None) -> None:
    """Remove every agent, message and task assignment."""

    _emit_lines(SWARM_CONTROLLER.reset(SwarmStateCommand(db_path=db_path)))


@agent_swarm.group()
def task() -> None:
    """Task tracking and routing commands."""


@task.command("create")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help=_DB_PATH_HELP)
@click.option("--title", required=True, help="Task title.")
@click.option("--description", default="", help="Task description.")
@click.option("--project-id", default=None, help="Owning project.")
@click.option(
    "--priority",
    type=click.Choice(["low", "medium", "high", "urgent"]),
    default="medium",
    show_default=True,
)
@click.option("--label", "labels", multiple=True, help="Label. Can be repeated.")
@click.option("--subtask", "subtasks", multiple=True, help="Subtask title. Can be repeated.")
def task_create(  # noqa: PLR0913
    db_path: Path | None,
    title: str,
    description: str,
    project_id: str | None,
    priority: str,
    labels: tuple[str, ...],
    subtasks: tuple[str, ...],
) -> None:
    """Create a task in the todo column."""

    _emit_lines(
        SWARM_CONTROLLER.create_task(
            TaskCreateCommand(
                db_path=db_path,
                title=title,
                description=description,
                project_id=project_id,
                priority=priority,
                labels=labels,
                subtasks=subtasks,
            ),
        ),
    )


@task.command("list")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help=_DB_PATH_HELP)
@click.option("--status", type=click.Choice(_TASK_STATUSES), default=None, help="Status filter.")
@click.option("--project-id", default=None, help="Project filter.")
def task_list(db_path: Path | None, status: str | None, project_id: str | None) -> None:
    """List tasks."""

    _emit_lines(
        SWARM_CONTROLLER.list_tasks(
            TaskListCommand(db_path=db_path, status=status, project_id=project_id),
        ),
    )


@task.command("analyze")
@click.option("--title", required=True, help="Task title.")
@click.option("--description", default="", help="Task description.")
def task_analyze(title: str, description: str) -> None:
    """Classify a task without touching the swarm."""

    _emit_lines(
        SWARM_CONTROLLER.analyze(TaskAnalyzeCommand(title=title, description=description)),
    )


@task.command("run")
@click.argument("task_id")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help=_DB_PATH_HELP)
@click.option("--project-id", default=None, help="Prefer agents of this project.")
@click.option("--no-monitor", is_flag=True, default=False, help="Do not start monitoring.")
@click.option(
    "--timeout-seconds",
    type=click.FloatRange(min=0, min_open=True),
    default=None,
    help="Auto-complete timeout override for this task.",
)
@click.option(
    "--max-retries",
    type=click.IntRange(min=0),
    default=None,
    help="Retry budget override for this task.",
)
def task_run(  # noqa: PLR0913
    task_id: str,
    db_path: Path | None,
    project_id: str | None,
    no_monitor: bool,
    timeout_seconds: float | None,
    max_retries: int | None,
) -> None:
    """Route a task through the swarm and start monitoring it."""

    overrides: dict[str, object] = {}
    if timeout_seconds is not None:
        overrides["auto_complete_timeout_seconds"] = timeout_seconds
    if max_retries is not None:
        overrides["max_retries"] = max_retries
    _emit_lines(
        SWARM_CONTROLLER.run_task(
            TaskRunCommand(
                db_path=db_path,
                task_id=task_id,
                project_id=project_id,
                no_monitor=no_monitor,
                overrides=overrides,
            ),
        ),
    )


@task.command("progress")
@click.argument("task_id")
@click.argument("value", type=click.IntRange(min=0, max=100))
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help=_DB_PATH_HELP)
def task_progress(task_id: str, value: int, db_path: Path | None) -> None:
    """Record agent progress (0-100) on a task."""

    _emit_lines(
        SWARM_CONTROLLER.report_progress(
            TaskProgressCommand(db_path=db_path, task_id=task_id, progress=value),
        ),
    )


@task.command("report")
@click.argument("task_id")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help=_DB_PATH_HELP)
@click.option(
    "--status",
    type=click.Choice(["completed", "failed", "cancelled"]),
    required=True,
    help="Final status of the task's agent run.",
)
@click.option("--error", default=None, help="Failure message.")
def task_report(task_id: str, db_path: Path | None, status: str, error: str | None) -> None:
    """Finish the agent run linked to a task."""

    _emit_lines(
        SWARM_CONTROLLER.report_run(
            TaskReportCommand(db_path=db_path, task_id=task_id, status=status, error=error),
        ),
    )


@task.command("complete")
@click.argument("task_id")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help=_DB_PATH_HELP)
@click.option("--done", is_flag=True, default=False, help="Skip review and mark done.")
def task_complete(task_id: str, db_path: Path | None, done: bool) -> None:
    """Complete a task manually."""

    _emit_lines(
        SWARM_CONTROLLER.complete_task(
            TaskCompleteCommand(db_path=db_path, task_id=task_id, done=done),
        ),
    )


@task.command("subtask")
@click.argument("task_id")
@click.argument("subtask_id")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help=_DB_PATH_HELP)
def task_subtask(task_id: str, subtask_id: str, db_path: Path | None) -> None:
    """Execute one subtask of a task."""

    _emit_lines(
        SWARM_CONTROLLER.execute_subtask(
            TaskSubtaskCommand(db_path=db_path, task_id=task_id, subtask_id=subtask_id),
        ),
    )


@task.command("activity")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help=_DB_PATH_HELP)
@click.option("--task-id", default=None, help="Only entries of this task.")
@click.option(
    "--limit",
    type=click.IntRange(min=1, max=1000),
    default=50,
    show_default=True,
)
def task_activity(db_path: Path | None, task_id: str | None, limit: int) -> None:
    """Show the persisted activity log."""

    _emit_lines(
        SWARM_CONTROLLER.activity(
            TaskActivityCommand(db_path=db_path, task_id=task_id, limit=limit),
        ),
    )


@agent_swarm.group()
def monitor() -> None:
    """Completion monitor commands."""


@monitor.command("run")
@click.option("--db-path", type=click.Path(path_type=Path), default=None, help=_DB_PATH_HELP)
@click.option(
    "--max-ticks",
    type=click.IntRange(min=1),
    default=None,
    help="Stop after this many evaluation rounds.",
)
def monitor_run(db_path: Path | None, max_ticks: int | None) -> None:
    """Evaluate in-progress tasks until none remain or a stop signal arrives."""

    _emit_lines(
        SWARM_CONTROLLER.run_monitor(MonitorRunCommand(db_path=db_path, max_ticks=max_ticks)),
    )


@agent_swarm.group("exec")
def exec_group() -> None:
    """Command safety and execution backend commands."""


@exec_group.command("check")
@click.argument("command")
@click.option("--template-id", required=True, help="Template whose permissions apply.")
def exec_check(command: str, template_id: str) -> None:
    """Dry-run the safety filter for a command."""

    _emit_lines(
        SWARM_CONTROLLER.check_command(
            ExecCommand(command=command, template_id=template_id),
        ),
    )


@exec_group.command("run")
@click.argument("command")
@click.option("--template-id", required=True, help="Template whose permissions apply.")
@click.option("--cwd", default=None, help="Working directory passed to the backend.")
def exec_run(command: str, template_id: str, cwd: str | None) -> None:
    """Submit a command to the configured execution backend."""

    _emit_lines(
        SWARM_CONTROLLER.run_command(
            ExecCommand(command=command, template_id=template_id, cwd=cwd),
        ),
    )


@exec_group.command("risk")
@click.argument("operation", type=click.Choice(_OPERATIONS))
@click.argument("target_id")
@click.option("--name", "target_name", default=None, help="Target name. Defaults to the id.")
@click.option(
    "--target-type",
    type=click.Choice(["vm", "container", "service"]),
    default="service",
    show_default=True,
)
def exec_risk(operation: str, target_id: str, target_name: str | None, target_type: str) -> None:
    """Classify the risk of an infrastructure operation on a target."""

    _emit_lines(
        SWARM_CONTROLLER.assess_operation(
            RiskCommand(
                operation=operation,
                target_id=target_id,
                target_name=target_name,
                target_type=target_type,
            ),
        ),
    )


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    agent_swarm()
