"""Execution backend implementations."""

from __future__ import annotations

from agent_swarm.swarm.backend.base import ExecutionBackend
from agent_swarm.swarm.backend.container import ContainerExecutor
from agent_swarm.swarm.backend.local import LocalExecutor
from agent_swarm.swarm.backend.risk import (
    CooldownLimiter,
    OperationTarget,
    OperationType,
    RiskLevel,
    TargetType,
    assess_risk,
)
from agent_swarm.swarm.backend.safety import CommandCheck, check_command
from agent_swarm.swarm.models import AgentPermissions, ExecutorKind


def create_executor(
    kind: ExecutorKind | str,
    permissions: AgentPermissions,
    *,
    image: str | None = None,
    workspace_mount: str | None = None,
) -> ExecutionBackend:
    """Build the execution backend selected by kind."""

    resolved = ExecutorKind(kind)
    if resolved is ExecutorKind.CONTAINER:
        if not workspace_mount:
            raise ValueError("Container executor requires workspace_mount")
        return ContainerExecutor(workspace_mount=workspace_mount, image=image)
    return LocalExecutor(permissions)


__all__ = [
    "CommandCheck",
    "ContainerExecutor",
    "CooldownLimiter",
    "ExecutionBackend",
    "LocalExecutor",
    "OperationTarget",
    "OperationType",
    "RiskLevel",
    "TargetType",
    "assess_risk",
    "check_command",
    "create_executor",
]
