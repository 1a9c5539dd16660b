from __future__ import annotations

from pathlib import Path

import allure
import pytest

from agent_swarm.config import (
    CompletionDefaults,
    ExecutorSettings,
    MonitorSettings,
    Settings,
)
from agent_swarm.swarm.models import ExecutorKind, TaskCompletionSettings

pytestmark = [
    allure.epic("Agent Swarm"),
    allure.feature("Configuration"),
]


def test_from_env_reads_swarm_variables(monkeypatch) -> None:
    monkeypatch.setenv("AGENT_SWARM_DB_PATH", "/tmp/swarm.db")
    monkeypatch.setenv("AGENT_SWARM_MONITOR_INTERVAL_SECONDS", "2.5")
    monkeypatch.setenv("AGENT_SWARM_AUTO_COMPLETE", "off")
    monkeypatch.setenv("AGENT_SWARM_AUTO_COMPLETE_TIMEOUT_SECONDS", "45")
    monkeypatch.setenv("AGENT_SWARM_MAX_RETRIES", "4")
    monkeypatch.setenv("AGENT_SWARM_EXECUTOR", "Container")
    monkeypatch.setenv("AGENT_SWARM_WORKSPACE_MOUNT", "/srv/ws")

    settings = Settings.from_env()

    assert settings.db_path == Path("/tmp/swarm.db")
    assert settings.monitor.interval_seconds == 2.5
    assert settings.completion.auto_complete is False
    assert settings.completion.auto_complete_timeout_seconds == 45.0
    assert settings.completion.max_retries == 4
    assert settings.executor.kind is ExecutorKind.CONTAINER
    assert settings.executor.workspace_mount == "/srv/ws"
    settings.validate()


def test_from_env_prefers_explicit_db_path(monkeypatch) -> None:
    monkeypatch.setenv("AGENT_SWARM_DB_PATH", "/tmp/ignored.db")

    assert Settings.from_env(Path("explicit.db")).db_path == Path("explicit.db")


def test_from_env_rejects_bad_boolean(monkeypatch) -> None:
    monkeypatch.setenv("AGENT_SWARM_REQUIRES_REVIEW", "maybe")

    with pytest.raises(ValueError, match="Invalid boolean value for AGENT_SWARM_REQUIRES_REVIEW"):
        Settings.from_env()


def test_from_env_rejects_unknown_executor(monkeypatch) -> None:
    monkeypatch.setenv("AGENT_SWARM_EXECUTOR", "k8s")

    with pytest.raises(ValueError, match="Invalid AGENT_SWARM_EXECUTOR value"):
        Settings.from_env()


def test_completion_defaults_build_engine_settings() -> None:
    defaults = CompletionDefaults(requires_review=False, max_retries=0)

    assert defaults.to_completion_settings() == TaskCompletionSettings(
        requires_review=False,
        max_retries=0,
    )


@pytest.mark.parametrize(
    ("settings", "message"),
    [
        (Settings(monitor=MonitorSettings(interval_seconds=0)), "INTERVAL"),
        (
            Settings(completion=CompletionDefaults(auto_complete_timeout_seconds=0)),
            "AUTO_COMPLETE_TIMEOUT",
        ),
        (Settings(completion=CompletionDefaults(max_retries=-1)), "MAX_RETRIES"),
        (
            Settings(executor=ExecutorSettings(kind=ExecutorKind.CONTAINER)),
            "AGENT_SWARM_WORKSPACE_MOUNT",
        ),
    ],
)
def test_validate_rejects_out_of_range_values(settings: Settings, message: str) -> None:
    with pytest.raises(ValueError, match=message):
        settings.validate()
