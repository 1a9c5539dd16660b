"""Isolated container executor placeholder."""

from __future__ import annotations

from agent_swarm.swarm.models import ExecuteOptions, ExecutionResult

DEFAULT_CONTAINER_IMAGE = "python:3.12-slim"
_NOT_IMPLEMENTED = "Container executor not yet implemented"


class ContainerExecutor:
    """Backend targeting an isolated container; every operation is unimplemented."""

    name = "container"

    def __init__(self, *, workspace_mount: str, image: str | None = None) -> None:
        self.workspace_mount = workspace_mount
        self.image = image or DEFAULT_CONTAINER_IMAGE
        self.container_id: str | None = None

    def execute(self, command: str, options: ExecuteOptions | None = None) -> ExecutionResult:
        # TODO: run `docker run --rm -v {workspace_mount}:/workspace -w /workspace {image}`.
        raise NotImplementedError(_NOT_IMPLEMENTED)

    def write_file(self, path: str, content: str) -> None:
        raise NotImplementedError(_NOT_IMPLEMENTED)

    def read_file(self, path: str) -> str:
        raise NotImplementedError(_NOT_IMPLEMENTED)

    def cleanup(self) -> None:
        return None
