"""Runtime configuration for the agent swarm engine."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from agent_swarm.swarm.models import ExecutorKind, TaskCompletionSettings


@dataclass(slots=True)
class MonitorSettings:
    """Completion monitor ticker settings."""

    interval_seconds: float = 5.0


@dataclass(slots=True)
class CompletionDefaults:
    """Default completion settings seeded into every monitored task."""

    auto_complete: bool = True
    auto_complete_timeout_seconds: float = 30.0
    requires_review: bool = True
    requires_verification: bool = False
    max_retries: int = 2
    execute_subtasks: bool = False

    def to_completion_settings(self) -> TaskCompletionSettings:
        """Build the immutable settings value used by the completion engine."""

        return TaskCompletionSettings(
            auto_complete=self.auto_complete,
            auto_complete_timeout_seconds=self.auto_complete_timeout_seconds,
            requires_review=self.requires_review,
            requires_verification=self.requires_verification,
            max_retries=self.max_retries,
            execute_subtasks=self.execute_subtasks,
        )


@dataclass(slots=True)
class StoreSettings:
    """Retention limits for the runtime store and activity log."""

    message_retention: int = 100
    activity_retention: int = 10_000


@dataclass(slots=True)
class ExecutorSettings:
    """Execution backend selection."""

    kind: ExecutorKind = ExecutorKind.LOCAL
    container_image: str = "python:3.12-slim"
    workspace_mount: str | None = None


@dataclass(slots=True)
class Settings:
    """Application settings grouped by domain concerns."""

    db_path: Path = Path(".agent_swarm.db")
    sqlite_busy_timeout_ms: int = 5_000
    monitor: MonitorSettings = field(default_factory=MonitorSettings)
    completion: CompletionDefaults = field(default_factory=CompletionDefaults)
    store: StoreSettings = field(default_factory=StoreSettings)
    executor: ExecutorSettings = field(default_factory=ExecutorSettings)

    @classmethod
    def from_env(cls, db_path: Path | None = None) -> Settings:
        """Load settings from environment with sane defaults for local development."""

        return cls(
            db_path=db_path or Path(os.getenv("AGENT_SWARM_DB_PATH", ".agent_swarm.db")),
            sqlite_busy_timeout_ms=int(os.getenv("AGENT_SWARM_SQLITE_BUSY_TIMEOUT_MS", "5000")),
            monitor=MonitorSettings(
                interval_seconds=float(os.getenv("AGENT_SWARM_MONITOR_INTERVAL_SECONDS", "5.0")),
            ),
            completion=CompletionDefaults(
                auto_complete=_env_bool("AGENT_SWARM_AUTO_COMPLETE", default=True),
                auto_complete_timeout_seconds=float(
                    os.getenv("AGENT_SWARM_AUTO_COMPLETE_TIMEOUT_SECONDS", "30.0"),
                ),
                requires_review=_env_bool("AGENT_SWARM_REQUIRES_REVIEW", default=True),
                requires_verification=_env_bool(
                    "AGENT_SWARM_REQUIRES_VERIFICATION",
                    default=False,
                ),
                max_retries=int(os.getenv("AGENT_SWARM_MAX_RETRIES", "2")),
                execute_subtasks=_env_bool("AGENT_SWARM_EXECUTE_SUBTASKS", default=False),
            ),
            store=StoreSettings(
                message_retention=int(os.getenv("AGENT_SWARM_MESSAGE_RETENTION", "100")),
                activity_retention=int(os.getenv("AGENT_SWARM_ACTIVITY_RETENTION", "10000")),
            ),
            executor=ExecutorSettings(
                kind=_env_executor_kind("AGENT_SWARM_EXECUTOR"),
                container_image=os.getenv("AGENT_SWARM_CONTAINER_IMAGE", "python:3.12-slim"),
                workspace_mount=os.getenv("AGENT_SWARM_WORKSPACE_MOUNT") or None,
            ),
        )

    def validate(self) -> None:
        """Raise configuration error on out-of-range values."""

        if self.monitor.interval_seconds <= 0:
            raise ValueError("AGENT_SWARM_MONITOR_INTERVAL_SECONDS must be > 0.")
        if self.completion.auto_complete_timeout_seconds <= 0:
            raise ValueError("AGENT_SWARM_AUTO_COMPLETE_TIMEOUT_SECONDS must be > 0.")
        if self.completion.max_retries < 0:
            raise ValueError("AGENT_SWARM_MAX_RETRIES must be >= 0.")
        if self.store.message_retention <= 0:
            raise ValueError("AGENT_SWARM_MESSAGE_RETENTION must be a positive integer.")
        if self.store.activity_retention <= 0:
            raise ValueError("AGENT_SWARM_ACTIVITY_RETENTION must be a positive integer.")
        if self.executor.kind is ExecutorKind.CONTAINER and not self.executor.workspace_mount:
            raise ValueError(
                "AGENT_SWARM_WORKSPACE_MOUNT is required when AGENT_SWARM_EXECUTOR=container.",
            )


def _env_executor_kind(name: str) -> ExecutorKind:
    raw = os.getenv(name, ExecutorKind.LOCAL.value).strip().lower()
    try:
        return ExecutorKind(raw)
    except ValueError as error:
        raise ValueError(
            f"Invalid {name} value: {raw!r}. Use one of {[kind.value for kind in ExecutorKind]}.",
        ) from error


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "on"}:
        return True
    if normalized in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"Invalid boolean value for {name}: {value!r}")
