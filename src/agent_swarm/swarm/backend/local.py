"""Permission-scoped local executor that validates and hands off to the gateway."""

from __future__ import annotations

import logging
import time

from agent_swarm.errors import PermissionDeniedError
from agent_swarm.swarm.backend.safety import check_command, is_path_allowed
from agent_swarm.swarm.models import AgentPermissions, ExecuteOptions, ExecutionResult

logger = logging.getLogger(__name__)

SIMULATED_STDOUT = "[Simulated] Command queued for execution via remote gateway"


class LocalExecutor:
    """Validates commands and file access against an agent permission profile.

    Nothing is executed locally: accepted operations are logged and reported
    as queued for the remote gateway.
    """

    name = "local"

    def __init__(self, permissions: AgentPermissions) -> None:
        self.permissions = permissions

    def execute(self, command: str, options: ExecuteOptions | None = None) -> ExecutionResult:
        started = time.monotonic()
        verdict = check_command(command, self.permissions)
        if not verdict.allowed:
            logger.warning("Rejected command %r: %s", command, verdict.reason)
            return ExecutionResult(
                success=False,
                error=verdict.reason,
                duration_seconds=time.monotonic() - started,
            )

        cwd = options.cwd if options is not None else None
        logger.info("Would execute %r (cwd=%s)", command, cwd or ".")
        return ExecutionResult(
            success=True,
            stdout=SIMULATED_STDOUT,
            exit_code=0,
            duration_seconds=time.monotonic() - started,
        )

    def write_file(self, path: str, content: str) -> None:
        if not self.permissions.can_write_files:
            raise PermissionDeniedError("Write access not permitted for this agent")
        if not is_path_allowed(path, self.permissions.allowed_paths):
            raise PermissionDeniedError(f"Path not in allowed list: {path}")
        logger.info("Would write %d chars to %s", len(content), path)

    def read_file(self, path: str) -> str:
        if not self.permissions.can_read_files:
            raise PermissionDeniedError("Read access not permitted for this agent")
        if not is_path_allowed(path, self.permissions.allowed_paths):
            raise PermissionDeniedError(f"Path not in allowed list: {path}")
        logger.info("Would read %s", path)
        return ""

    def cleanup(self) -> None:
        return None
