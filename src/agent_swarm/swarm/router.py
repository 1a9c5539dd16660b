"""Maps analyzed tasks onto live agent instances and coordinates them."""

from __future__ import annotations

import logging
from collections.abc import Callable
from uuid import uuid4

from agent_swarm.swarm.activity import ActivitySink
from agent_swarm.swarm.analyzer import analyze_task
from agent_swarm.swarm.models import (
    AgentInstance,
    AgentStatus,
    AgentTemplate,
    LogLevel,
    ModelTier,
    RouteAssignment,
    SwarmExecutionResult,
    SwarmHealth,
    SwarmHealthStatus,
    SwarmMessageType,
    TaskAnalysis,
)
from agent_swarm.swarm.pricing import estimate_cost_usd
from agent_swarm.swarm.repository import TaskRecordStore
from agent_swarm.swarm.store import SwarmRuntimeStore
from agent_swarm.swarm.templates import COORDINATOR_TEMPLATE_ID, get_template, template_for_skill

logger = logging.getLogger(__name__)

PROJECT_SPECIALISTS = ("alpha-planner", "beta-researcher", "delta-coder", "zeta-reviewer")
PROJECT_WORKERS = ("eta-tester", "theta-formatter", "iota-docwriter")


def estimate_task_cost(analysis: TaskAnalysis) -> float:
    """Mock USD cost of running the analysis' agents on its token estimate."""

    total = 0.0
    for template_id in analysis.required_agents:
        template = get_template(template_id)
        if template is None:
            continue
        total += estimate_cost_usd(tier=template.tier, total_tokens=analysis.estimated_tokens)
    return total


class TaskRouter:
    """Routes tasks through the swarm and reports its health."""

    def __init__(
        self,
        store: SwarmRuntimeStore,
        task_store: TaskRecordStore,
        *,
        activity: ActivitySink | None = None,
        run_id_factory: Callable[[], str] | None = None,
    ) -> None:
        self.store = store
        self.task_store = task_store
        self.activity = activity
        self._run_id_factory = run_id_factory or _new_run_id

    def route(
        self,
        task_id: str,
        analysis: TaskAnalysis,
        project_id: str | None = None,
    ) -> list[RouteAssignment]:
        """Pick one instance per required template, reusing idle ones first."""

        assignments: list[RouteAssignment] = []
        selected: set[str] = set()
        for template_id in analysis.required_agents:
            if get_template(template_id) is None:
                logger.warning("Task %s requires unknown template %s", task_id, template_id)
                continue
            agent = self._find_unselected_idle(template_id, project_id, selected)
            if agent is None:
                agent = self.store.spawn(template_id, project_id)
            if agent is None:
                continue
            selected.add(agent.instance_id)
            assignments.append(
                RouteAssignment(agent_instance_id=agent.instance_id, template_id=template_id),
            )
        logger.info(
            "Routed task %s to %s",
            task_id,
            ", ".join(item.agent_instance_id for item in assignments) or "nobody",
        )
        return assignments

    def estimate_cost(self, analysis: TaskAnalysis) -> float:
        return estimate_task_cost(analysis)

    def agent_for_skill(self, skill: str) -> AgentTemplate | None:
        return template_for_skill(skill)

    def initialize_for_project(self, project_id: str) -> list[AgentInstance]:
        """Spawn the default team for a project and start the swarm."""

        spawned: list[AgentInstance] = []
        coordinator = self.store.spawn(COORDINATOR_TEMPLATE_ID, project_id)
        if coordinator is not None:
            spawned.append(coordinator)
        parent_id = coordinator.instance_id if coordinator is not None else None
        for template_id in PROJECT_SPECIALISTS:
            agent = self.store.spawn(template_id, project_id, parent_id)
            if agent is not None:
                spawned.append(agent)
        for template_id in PROJECT_WORKERS:
            agent = self.store.spawn(template_id, project_id)
            if agent is not None:
                spawned.append(agent)
        self.store.start()
        self._log(
            LogLevel.INFO,
            f"Swarm initialized with {len(spawned)} agents",
            project_id=project_id,
        )
        return spawned

    def execute_task(self, task_id: str, project_id: str | None = None) -> SwarmExecutionResult:
        """Analyze, route and assign a task; secondary agents get support messages."""

        task = self.task_store.get_task(task_id)
        if task is None:
            return SwarmExecutionResult(success=False, error="Task not found")

        analysis = analyze_task(task.title, task.description)
        logger.info(
            "Task %s analysis: complexity=%s agents=%s tokens=%d",
            task_id,
            analysis.complexity.value,
            ",".join(analysis.required_agents),
            analysis.estimated_tokens,
        )
        assignments = self.route(task_id, analysis, project_id)
        if not assignments:
            self._log(LogLevel.ERROR, "No agents available", task_id=task_id, project_id=project_id)
            return SwarmExecutionResult(success=False, error="No agents available")

        primary = assignments[0]
        # One run id per execution; instances are reused across tasks.
        run_id = self._run_id_factory()
        self.store.assign_task(primary.agent_instance_id, task_id)
        if not self.task_store.assign_agent_to_task(
            task_id,
            run_id=run_id,
            agent_type=primary.template_id,
        ):
            logger.warning("Task %s vanished before agent assignment was recorded", task_id)

        if len(assignments) > 1:
            coordinator = next(
                (item for item in assignments if item.template_id == COORDINATOR_TEMPLATE_ID),
                None,
            )
            sender = (coordinator or primary).agent_instance_id
            for assignment in assignments[1:]:
                self.store.send_message(
                    SwarmMessageType.TASK_ASSIGN,
                    sender,
                    assignment.agent_instance_id,
                    {
                        "task_id": task_id,
                        "task_title": task.title,
                        "task_description": task.description,
                        "role": "support",
                    },
                    task_id=task_id,
                )

        agent_ids = [item.agent_instance_id for item in assignments]
        self._log(
            LogLevel.INFO,
            f"Task routed to {len(agent_ids)} agent(s) ({analysis.complexity.value})",
            task_id=task_id,
            project_id=project_id,
            agent_id=primary.agent_instance_id,
            metadata={
                "agents": agent_ids,
                "run_id": run_id,
                "estimated_tokens": analysis.estimated_tokens,
                "estimated_cost": self.estimate_cost(analysis),
            },
        )
        return SwarmExecutionResult(success=True, agents=agent_ids, run_id=run_id)

    def health(self) -> SwarmHealth:
        agents = self.store.agents()
        error_count = sum(1 for agent in agents if agent.status is AgentStatus.ERROR)
        cost_by_tier = {tier.value: 0.0 for tier in ModelTier}
        for agent in agents:
            cost_by_tier[agent.tier.value] += agent.estimated_cost

        if not self.store.is_running:
            status = SwarmHealthStatus.OFFLINE
        elif error_count > 0 or not agents:
            status = SwarmHealthStatus.DEGRADED
        else:
            status = SwarmHealthStatus.HEALTHY

        return SwarmHealth(
            status=status,
            total=len(agents),
            running=sum(1 for agent in agents if agent.status is AgentStatus.RUNNING),
            idle=sum(1 for agent in agents if agent.status is AgentStatus.IDLE),
            error=error_count,
            total_cost=self.store.total_estimated_cost(),
            cost_by_tier=cost_by_tier,
        )

    def _find_unselected_idle(
        self,
        template_id: str,
        project_id: str | None,
        selected: set[str],
    ) -> AgentInstance | None:
        for agent in self.store.idle():
            if agent.template_id != template_id or agent.instance_id in selected:
                continue
            if project_id is not None and agent.project_id != project_id:
                continue
            return agent
        return None

    def _log(
        self,
        level: LogLevel,
        message: str,
        *,
        task_id: str | None = None,
        project_id: str | None = None,
        agent_id: str | None = None,
        metadata: dict[str, object] | None = None,
    ) -> None:
        if self.activity is None:
            logger.info("%s (task=%s project=%s)", message, task_id, project_id)
            return
        self.activity.add_log(
            level,
            message,
            task_id=task_id,
            project_id=project_id,
            agent_id=agent_id,
            source="router",
            metadata=metadata,
        )


def _new_run_id() -> str:
    return f"run_{uuid4().hex[:12]}"
