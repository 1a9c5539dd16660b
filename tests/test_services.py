from __future__ import annotations

from pathlib import Path

import allure
import pytest

from agent_swarm.config import MonitorSettings, Settings
from agent_swarm.errors import TaskNotFoundError
from agent_swarm.swarm.models import AgentRunStatus, AgentStatus, TaskDecision, TaskStatus
from agent_swarm.swarm.repository import TaskCreate
from agent_swarm.swarm.services import SwarmService

pytestmark = [
    allure.epic("Agent Swarm"),
    allure.feature("Swarm Service"),
]


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(
        db_path=tmp_path / "tasks.db",
        monitor=MonitorSettings(interval_seconds=0.01),
    )


@pytest.fixture()
def make_service(settings, task_repository, state_repository, clock, ticker_factory):
    services: list[SwarmService] = []

    def _make(*, persist_state: bool = True) -> SwarmService:
        service = SwarmService(
            settings=settings,
            task_repository=task_repository,
            state_repository=state_repository if persist_state else None,
            clock=clock,
            ticker_factory=ticker_factory,
        )
        services.append(service)
        return service

    yield _make
    for service in services:
        service.close()


def test_run_task_routes_opens_run_and_monitors(make_service, task_repository, tickers) -> None:
    service = make_service()
    task = service.create_task(TaskCreate(title="Fix login bug", project_id="p1"))

    result = service.run_task(task.task_id, project_id="p1")

    assert result.success is True
    (agent_id,) = result.agents
    agent = service.store.get(agent_id)
    assert agent.template_id == "delta-coder"
    run = task_repository.latest_run(result.run_id)
    assert run.status is AgentRunStatus.RUNNING
    assert run.agent_id == "delta-coder"
    assert run.task_id == task.task_id
    assert task_repository.get_task(task.task_id).status is TaskStatus.IN_PROGRESS
    assert task_repository.get_task(task.task_id).agent_run_id == result.run_id
    assert service.engine.is_monitoring(task.task_id) is True
    assert task_repository.get_monitor(task.task_id) is not None
    assert tickers[0].is_running is True


def test_run_task_without_monitoring(make_service) -> None:
    service = make_service()
    task = service.create_task(TaskCreate(title="Write docs"))

    result = service.run_task(task.task_id, monitor=False)

    assert result.success is True
    assert service.engine.monitored_tasks() == {}


def test_run_task_reports_missing_task(make_service) -> None:
    result = make_service().run_task("missing")

    assert result.success is False
    assert result.error == "Task not found"


def test_completed_run_is_picked_up_on_next_tick(make_service, task_repository) -> None:
    service = make_service()
    task = service.create_task(TaskCreate(title="Fix login bug"))
    result = service.run_task(task.task_id)

    assert service.report_run(task.task_id, status=AgentRunStatus.COMPLETED, result="ok") is True
    ((task_id, decision),) = service.engine.tick()

    assert task_id == task.task_id
    assert decision.reason == "Agent run completed"
    assert task_repository.get_task(task.task_id).status is TaskStatus.REVIEW
    assert service.store.get(result.agents[0]).status is AgentStatus.IDLE
    assert service.store.task_assignments() == {}


def test_report_progress_clamps_and_touches_monitor(make_service, clock) -> None:
    service = make_service()
    task = service.create_task(TaskCreate(title="Fix login bug"))
    service.run_task(task.task_id)
    clock.advance(40)

    updated = service.report_progress(task.task_id, 150)

    assert updated.progress == 100
    assert service.engine.monitored_tasks()[task.task_id].last_progress_at == clock.now
    with pytest.raises(TaskNotFoundError, match="Task not found: missing"):
        service.report_progress("missing", 10)


def test_report_run_requires_linked_run(make_service) -> None:
    service = make_service()
    task = service.create_task(TaskCreate(title="Idle task"))

    assert service.report_run(task.task_id, status=AgentRunStatus.FAILED) is False
    with pytest.raises(TaskNotFoundError):
        service.report_run("missing", status=AgentRunStatus.FAILED)


def test_complete_task_releases_agent(make_service, task_repository) -> None:
    service = make_service()
    task = service.create_task(TaskCreate(title="Fix login bug"))
    result = service.run_task(task.task_id)

    assert service.complete_task(task.task_id, move_to_review=False) is True

    assert task_repository.get_task(task.task_id).status is TaskStatus.DONE
    assert service.store.get(result.agents[0]).status is AgentStatus.IDLE
    assert service.engine.is_monitoring(task.task_id) is False
    assert service.complete_task("missing") is False


def test_execute_subtask_marks_it_done(make_service, task_repository) -> None:
    service = make_service()
    task = service.create_task(TaskCreate(title="Release", subtasks=["Tag", "Publish"]))
    subtask_id = task.subtasks[1].subtask_id

    assert service.execute_subtask(task.task_id, subtask_id) is True

    subtasks = task_repository.get_task(task.task_id).subtasks
    assert [item.completed for item in subtasks] == [False, True]


def test_swarm_state_survives_service_restart(make_service) -> None:
    first = make_service()
    first.initialize_project("p1")
    task = first.create_task(TaskCreate(title="Fix login bug", project_id="p1"))
    first.run_task(task.task_id, project_id="p1", monitor=False)

    second = make_service()

    assert len(second.store.agents()) == 8
    assert second.store.is_running is True
    assert task.task_id in second.store.task_assignments()
    assert second.router.health().status.value == "healthy"


def test_resume_monitoring_picks_up_in_progress_tasks(make_service) -> None:
    first = make_service()
    task = first.create_task(TaskCreate(title="Fix login bug"))
    first.run_task(task.task_id, monitor=False)
    first.create_task(TaskCreate(title="Not started"))

    second = make_service()
    resumed = second.resume_monitoring()

    assert [item.task_id for item in resumed] == [task.task_id]
    assert second.resume_monitoring() == []


def test_run_monitor_drives_tasks_to_completion(make_service, task_repository) -> None:
    service = make_service()
    task = service.create_task(TaskCreate(title="Fix login bug"))
    service.run_task(task.task_id)
    service.report_progress(task.task_id, 100)

    summary = service.run_monitor(max_ticks=5)

    assert summary.ticks == 1
    assert summary.decisions == {"complete": 1}
    assert task_repository.get_task(task.task_id).status is TaskStatus.REVIEW


def test_stop_and_reset_swarm(make_service, state_repository) -> None:
    service = make_service()
    service.initialize_project("p1")
    task = service.create_task(TaskCreate(title="Fix login bug", project_id="p1"))
    service.run_task(task.task_id, project_id="p1")

    service.stop_swarm()
    assert service.store.is_running is False
    assert [agent.status for agent in service.store.running()] == []
    assert service.store.by_status(AgentStatus.PAUSED)

    service.reset_swarm()
    assert service.store.agents() == []
    assert service.engine.monitored_tasks() == {}
    assert service.task_repository.list_monitors() == []
    assert state_repository.load_state().agents == []


def test_service_without_state_repository_keeps_state_in_memory(make_service) -> None:
    make_service(persist_state=False).initialize_project("p1")

    assert make_service(persist_state=False).store.agents() == []


def test_reused_agent_keeps_each_task_on_its_own_run(make_service, task_repository) -> None:
    service = make_service()
    first = service.create_task(TaskCreate(title="Fix login bug"))
    second = service.create_task(TaskCreate(title="Fix logout bug"))

    first_result = service.run_task(first.task_id)
    assert service.report_run(first.task_id, status=AgentRunStatus.COMPLETED) is True
    second_result = service.run_task(second.task_id)

    assert second_result.agents == first_result.agents
    assert second_result.run_id != first_result.run_id
    assert service.engine.decide(first.task_id).decision is TaskDecision.COMPLETE

    assert service.report_run(second.task_id, status=AgentRunStatus.FAILED) is True

    assert task_repository.latest_run(first_result.run_id).status is AgentRunStatus.COMPLETED
    assert service.engine.decide(first.task_id).reason == "Agent run completed"
    assert service.engine.decide(second.task_id).decision is TaskDecision.RETRY


def test_progress_reported_by_another_process_holds_off_timeout(make_service, clock) -> None:
    reporter = make_service()
    task = reporter.create_task(TaskCreate(title="Fix login bug"))
    reporter.run_task(task.task_id)
    supervisor = make_service()
    (resumed,) = supervisor.resume_monitoring()
    assert resumed.task_id == task.task_id

    for progress in (10, 20, 30, 40):
        clock.advance(20)
        reporter.report_progress(task.task_id, progress)

    decision = supervisor.engine.decide(task.task_id)

    assert decision.decision is TaskDecision.COMPLETE
    assert decision.reason == "Auto-completing after 80s with 40% progress"
    assert supervisor.engine.monitored_tasks()[task.task_id].last_progress_at == clock.now


def test_resumed_monitoring_keeps_overrides_and_retry_count(
    make_service, task_repository
) -> None:
    first = make_service()
    task = first.create_task(TaskCreate(title="Fix login bug"))
    first.run_task(task.task_id, overrides={"max_retries": 1})
    first.report_run(task.task_id, status=AgentRunStatus.FAILED, error="boom")
    ((_, retry),) = first.engine.tick()
    assert retry.reason == "Agent run failed, retry 1/1"

    second = make_service()
    (resumed,) = second.resume_monitoring()
    assert resumed.retry_count == 1
    assert resumed.settings.max_retries == 1

    ((_, failed),) = second.engine.tick()

    assert failed.decision is TaskDecision.FAIL
    stored = task_repository.get_task(task.task_id)
    assert stored.status is TaskStatus.BACKLOG
    assert stored.last_error == "boom"
    assert task_repository.get_monitor(task.task_id) is None
    assert first.engine.tick() == []
    assert first.engine.is_monitoring(task.task_id) is False
