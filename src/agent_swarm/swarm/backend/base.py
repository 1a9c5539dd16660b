"""Backend interface for permission-scoped command and file operations."""

from __future__ import annotations

from typing import Protocol

from agent_swarm.swarm.models import ExecuteOptions, ExecutionResult


class ExecutionBackend(Protocol):
    """Protocol implemented by execution backends."""

    name: str

    def execute(self, command: str, options: ExecuteOptions | None = None) -> ExecutionResult:
        """Run a shell command and return its outcome; never raises on policy violations."""

    def write_file(self, path: str, content: str) -> None:
        """Write a file; raises PermissionDeniedError when not permitted."""

    def read_file(self, path: str) -> str:
        """Read a file; raises PermissionDeniedError when not permitted."""

    def cleanup(self) -> None:
        """Release backend resources."""
