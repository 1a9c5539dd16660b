"""Deterministic command safety filter applied before any backend execution."""

from __future__ import annotations

import re
from dataclasses import dataclass

from agent_swarm.swarm.models import AgentPermissions

# Rule name -> pattern. Checked in order; first match wins.
_DANGEROUS_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("recursive_delete_root_or_home", re.compile(r"rm\s+-rf\s+[/~]")),
    ("block_device_write", re.compile(r">\s*/dev/sd")),
    ("filesystem_format", re.compile(r"mkfs")),
    ("direct_disk_write", re.compile(r"dd\s+if=")),
    ("fork_bomb", re.compile(r":\(\)\s*\{\s*:\s*\|\s*:\s*&\s*\}\s*;\s*:")),
    ("recursive_insecure_chmod", re.compile(r"chmod\s+-R\s+777")),
    ("pipe_curl_to_shell", re.compile(r"curl.*\|\s*sh")),
    ("pipe_wget_to_shell", re.compile(r"wget.*\|\s*sh")),
)


@dataclass(slots=True)
class CommandCheck:
    """Safety filter verdict for one command."""

    allowed: bool
    reason: str | None = None
    matched_rule: str | None = None
    matched_pattern: str | None = None


def check_command(command: str, permissions: AgentPermissions) -> CommandCheck:
    """Classify a command against the permission profile and universal deny rules."""

    if not permissions.can_access_shell:
        return CommandCheck(
            allowed=False,
            reason="Shell access not permitted for this agent",
            matched_rule="shell_access_denied",
        )

    blocked = _first_blocked(command, permissions.blocked_commands)
    if blocked is not None:
        return CommandCheck(
            allowed=False,
            reason=f"Command contains blocked pattern: {blocked!r}",
            matched_rule="blocked_command",
            matched_pattern=blocked,
        )

    for rule, pattern in _DANGEROUS_PATTERNS:
        if pattern.search(command):
            return CommandCheck(
                allowed=False,
                reason=f"Command blocked: matches dangerous pattern ({rule})",
                matched_rule=rule,
                matched_pattern=pattern.pattern,
            )

    return CommandCheck(allowed=True)


def is_path_allowed(path: str, allowed_paths: tuple[str, ...]) -> bool:
    """True when no allow-list is configured or the path is prefixed by an entry."""

    if not allowed_paths:
        return True
    return any(path.startswith(prefix) for prefix in allowed_paths)


def _first_blocked(command: str, blocked_commands: tuple[str, ...]) -> str | None:
    for blocked in blocked_commands:
        if blocked in command:
            return blocked
    return None
