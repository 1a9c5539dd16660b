"""Exception types raised by the swarm engine."""

from __future__ import annotations


class SwarmError(Exception):
    """Base class for swarm engine errors."""


class PermissionDeniedError(SwarmError):
    """Agent permission profile forbids the requested operation."""


class TaskNotFoundError(SwarmError):
    """Task record does not exist in the task store."""

    def __init__(self, task_id: str) -> None:
        super().__init__(f"Task not found: {task_id}")
        self.task_id = task_id
