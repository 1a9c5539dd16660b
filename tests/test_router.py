from __future__ import annotations

import allure
import pytest

from agent_swarm.swarm.analyzer import analyze_task
from agent_swarm.swarm.models import (
    AgentStatus,
    SwarmHealthStatus,
    SwarmMessageType,
    TaskAnalysis,
    TaskComplexity,
    TaskStatus,
)
from agent_swarm.swarm.router import TaskRouter, estimate_task_cost

pytestmark = [
    allure.epic("Agent Swarm"),
    allure.feature("Task Router"),
]


@pytest.fixture()
def router(runtime_store, task_store, activity) -> TaskRouter:
    return TaskRouter(runtime_store, task_store, activity=activity)


def _analysis(*agents: str) -> TaskAnalysis:
    return TaskAnalysis(
        complexity=TaskComplexity.MODERATE,
        required_agents=agents,
        estimated_tokens=5_000,
        can_parallelize=len(agents) > 1,
    )


def test_route_reuses_idle_agents_before_spawning(router, runtime_store) -> None:
    existing = runtime_store.spawn("delta-coder", "p1")

    assignments = router.route("t1", _analysis("delta-coder", "eta-tester"), "p1")

    assert [item.template_id for item in assignments] == ["delta-coder", "eta-tester"]
    assert assignments[0].agent_instance_id == existing.instance_id
    assert len(runtime_store.agents()) == 2


def test_route_picks_distinct_instances_for_repeated_templates(router, runtime_store) -> None:
    runtime_store.spawn("delta-coder")

    assignments = router.route("t1", _analysis("delta-coder", "delta-coder"))

    assert len({item.agent_instance_id for item in assignments}) == 2
    assert len(runtime_store.agents()) == 2


def test_route_skips_unknown_templates(router) -> None:
    assignments = router.route("t1", _analysis("omega-unknown", "eta-tester"))

    assert [item.template_id for item in assignments] == ["eta-tester"]


def test_route_ignores_idle_agents_of_other_projects(router, runtime_store) -> None:
    other = runtime_store.spawn("delta-coder", "p2")

    assignments = router.route("t1", _analysis("delta-coder"), "p1")

    assert assignments[0].agent_instance_id != other.instance_id


def test_estimate_cost_sums_each_agent_tier(router, monkeypatch) -> None:
    monkeypatch.delenv("AGENT_SWARM_TIER_PRICING", raising=False)
    analysis = _analysis("delta-coder", "eta-tester")
    t2_cost = 3.0 * 0.003 + 2.0 * 0.015
    t3_cost = 3.0 * 0.00025 + 2.0 * 0.00125

    assert router.estimate_cost(analysis) == pytest.approx(t2_cost + t3_cost)
    assert estimate_task_cost(_analysis("omega-unknown")) == 0.0


def test_agent_for_skill_resolves_catalog_template(router) -> None:
    template = router.agent_for_skill("linting")

    assert template is not None
    assert template.id == "theta-formatter"


def test_initialize_for_project_spawns_default_team(router, runtime_store, activity) -> None:
    spawned = router.initialize_for_project("p1")

    assert [agent.template_id for agent in spawned] == [
        "prime-orchestrator",
        "alpha-planner",
        "beta-researcher",
        "delta-coder",
        "zeta-reviewer",
        "eta-tester",
        "theta-formatter",
        "iota-docwriter",
    ]
    coordinator = spawned[0]
    assert coordinator.child_agent_ids == [agent.instance_id for agent in spawned[1:5]]
    assert all(agent.parent_agent_id is None for agent in spawned[5:])
    assert runtime_store.is_running is True
    assert activity.entries()[-1].message == "Swarm initialized with 8 agents"


def test_execute_task_assigns_primary_and_messages_support(
    router, runtime_store, task_store, activity
) -> None:
    task_store.add_task(
        "t1",
        title="Research options, implement the cache and add unit test coverage",
    )

    result = router.execute_task("t1", "p1")

    assert result.success is True
    assert len(result.agents) == 4
    primary = runtime_store.get(result.agents[0])
    assert primary.template_id == "prime-orchestrator"
    assert primary.status is AgentStatus.RUNNING
    assert runtime_store.task_assignments() == {"t1": primary.instance_id}

    task = task_store.get_task("t1")
    assert task.status is TaskStatus.IN_PROGRESS
    assert task.agent_run_id == result.run_id
    assert result.run_id.startswith("run_")
    assert task.assigned_agent == "prime-orchestrator"

    messages = runtime_store.messages()
    assert [message.to_agent_id for message in messages] == result.agents[1:]
    assert all(message.from_agent_id == primary.instance_id for message in messages)
    assert all(message.type is SwarmMessageType.TASK_ASSIGN for message in messages)
    assert messages[0].payload["role"] == "support"

    entry = activity.entries(task_id="t1")[-1]
    assert entry.source == "router"
    assert entry.metadata["agents"] == result.agents
    assert entry.metadata["estimated_tokens"] == 15_000


def test_execute_task_without_coordinator_sends_from_primary(
    router, runtime_store, task_store
) -> None:
    task_store.add_task("t1", title="Implement parser", description="and document it")

    result = router.execute_task("t1")

    assert analyze_task("Implement parser", "and document it").required_agents == (
        "delta-coder",
        "iota-docwriter",
    )
    (message,) = runtime_store.messages()
    assert message.from_agent_id == result.agents[0]
    assert message.to_agent_id == result.agents[1]


def test_execute_task_reports_missing_task(router) -> None:
    result = router.execute_task("missing")

    assert result.success is False
    assert result.error == "Task not found"


def test_reused_agent_gets_a_fresh_run_id_per_task(router, runtime_store, task_store) -> None:
    task_store.add_task("t1", title="Fix login bug")
    task_store.add_task("t2", title="Fix logout bug")

    first = router.execute_task("t1")
    runtime_store.unassign_task(first.agents[0])
    second = router.execute_task("t2")

    assert second.agents == first.agents
    assert first.run_id != second.run_id
    assert task_store.get_task("t1").agent_run_id == first.run_id
    assert task_store.get_task("t2").agent_run_id == second.run_id


def test_health_reflects_running_flag_and_errors(router, runtime_store) -> None:
    assert router.health().status is SwarmHealthStatus.OFFLINE

    router.initialize_for_project("p1")
    health = router.health()
    assert health.status is SwarmHealthStatus.HEALTHY
    assert health.total == 8
    assert health.idle == 8
    assert set(health.cost_by_tier) == {"T1", "T2", "T3"}

    agent = runtime_store.agents()[1]
    runtime_store.update_status(agent.instance_id, AgentStatus.ERROR, error="crash")
    runtime_store.update_progress(agent.instance_id, 100, 0.5)
    health = router.health()
    assert health.status is SwarmHealthStatus.DEGRADED
    assert health.error == 1
    assert health.cost_by_tier["T2"] == pytest.approx(0.5)
    assert health.total_cost == pytest.approx(0.5)
