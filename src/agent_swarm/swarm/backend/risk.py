"""Risk classification of infrastructure operations and per-target cooldowns.

The classification is a static table: a base level per operation type,
raised one step for virtual machines and one more step for targets whose
name or id looks like production infrastructure. It never blocks anything by
itself; callers decide what to do with the level, the confirmation flag and
the cooldown.
"""

from __future__ import annotations

import logging
import math
import re
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from enum import Enum

logger = logging.getLogger(__name__)


class OperationType(str, Enum):
    QUERY = "query"
    RESTART = "restart"
    STOP = "stop"
    REBOOT = "reboot"
    DELETE = "delete"


class RiskLevel(str, Enum):
    SAFE = "safe"
    MODERATE = "moderate"
    DANGEROUS = "dangerous"
    CRITICAL = "critical"


class TargetType(str, Enum):
    VM = "vm"
    CONTAINER = "container"
    SERVICE = "service"


_RISK_ORDER: tuple[RiskLevel, ...] = (
    RiskLevel.SAFE,
    RiskLevel.MODERATE,
    RiskLevel.DANGEROUS,
    RiskLevel.CRITICAL,
)

_CRITICAL_TARGET_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"^prod",
        r"production",
        r"master",
        r"primary",
        r"main",
        r"database",
        r"db-",
        r"gateway",
        r"load-?balancer",
        r"lb-",
    )
)

_RISK_DESCRIPTIONS: dict[RiskLevel, str] = {
    RiskLevel.SAFE: "This operation is safe and can be executed without confirmation.",
    RiskLevel.MODERATE: (
        "This operation may have side effects. Consider the impact before proceeding."
    ),
    RiskLevel.DANGEROUS: (
        "This operation is potentially destructive. Human confirmation is required."
    ),
    RiskLevel.CRITICAL: (
        "This operation is highly destructive and irreversible. Exercise extreme caution."
    ),
}

# Operation -> consequence suffix per risk level, appended after "<Verb> <target>."
_WARNING_DETAILS: dict[OperationType, tuple[str, dict[RiskLevel, str]]] = {
    OperationType.QUERY: (
        "Querying",
        {
            RiskLevel.MODERATE: "This may take some time.",
            RiskLevel.DANGEROUS: "This operation is resource-intensive.",
            RiskLevel.CRITICAL: "This may impact system performance.",
        },
    ),
    OperationType.RESTART: (
        "Restarting",
        {
            RiskLevel.MODERATE: "Service will be briefly unavailable.",
            RiskLevel.DANGEROUS: "Connected clients will be disconnected.",
            RiskLevel.CRITICAL: "This will cause service disruption.",
        },
    ),
    OperationType.STOP: (
        "Stopping",
        {
            RiskLevel.MODERATE: "Service will become unavailable.",
            RiskLevel.DANGEROUS: "Dependent services may be affected.",
            RiskLevel.CRITICAL: "This will cause immediate service outage.",
        },
    ),
    OperationType.REBOOT: (
        "Rebooting",
        {
            RiskLevel.MODERATE: "System will be temporarily offline.",
            RiskLevel.DANGEROUS: "All services will be interrupted.",
            RiskLevel.CRITICAL: "This will cause extended downtime.",
        },
    ),
    OperationType.DELETE: (
        "Deleting",
        {
            RiskLevel.MODERATE: "This action cannot be undone.",
            RiskLevel.DANGEROUS: "All data will be permanently lost.",
            RiskLevel.CRITICAL: "This is irreversible and will cause data loss.",
        },
    ),
}


@dataclass(frozen=True, slots=True)
class OperationTarget:
    """Infrastructure object an operation acts on."""

    id: str
    name: str
    type: TargetType = TargetType.SERVICE


@dataclass(frozen=True, slots=True)
class RiskPolicy:
    """Base risk, confirmation, cooldown and retry tables per operation type."""

    risk_matrix: dict[OperationType, RiskLevel] = field(
        default_factory=lambda: {
            OperationType.QUERY: RiskLevel.SAFE,
            OperationType.RESTART: RiskLevel.MODERATE,
            OperationType.STOP: RiskLevel.DANGEROUS,
            OperationType.REBOOT: RiskLevel.DANGEROUS,
            OperationType.DELETE: RiskLevel.CRITICAL,
        },
    )
    confirmation_levels: frozenset[RiskLevel] = frozenset(
        {RiskLevel.DANGEROUS, RiskLevel.CRITICAL},
    )
    cooldown_seconds: dict[OperationType, float] = field(
        default_factory=lambda: {
            OperationType.QUERY: 0.0,
            OperationType.RESTART: 30.0,
            OperationType.STOP: 60.0,
            OperationType.REBOOT: 120.0,
            OperationType.DELETE: 300.0,
        },
    )
    max_retries: dict[OperationType, int] = field(
        default_factory=lambda: {
            OperationType.QUERY: 3,
            OperationType.RESTART: 2,
            OperationType.STOP: 1,
            OperationType.REBOOT: 1,
            OperationType.DELETE: 0,
        },
    )


DEFAULT_RISK_POLICY = RiskPolicy()


def assess_risk(
    operation: OperationType | str,
    target: OperationTarget,
    policy: RiskPolicy = DEFAULT_RISK_POLICY,
) -> RiskLevel:
    """Classify an operation on a target.

    Virtual machines turn moderate operations into dangerous ones and
    dangerous into critical. A target whose name or id matches a production
    pattern (``prod*``, ``database``, ``gateway``, ``lb-``, ...) is raised one
    more level, capped at critical.
    """

    level = policy.risk_matrix[OperationType(operation)]
    if target.type is TargetType.VM and level in {RiskLevel.MODERATE, RiskLevel.DANGEROUS}:
        level = _step_up(level)
    if _is_critical_target(target):
        level = _step_up(level)
    return level


def requires_confirmation(level: RiskLevel, policy: RiskPolicy = DEFAULT_RISK_POLICY) -> bool:
    return level in policy.confirmation_levels


def cooldown_seconds(
    operation: OperationType | str,
    policy: RiskPolicy = DEFAULT_RISK_POLICY,
) -> float:
    return policy.cooldown_seconds.get(OperationType(operation), 0.0)


def max_retries_for(
    operation: OperationType | str,
    policy: RiskPolicy = DEFAULT_RISK_POLICY,
) -> int:
    return policy.max_retries[OperationType(operation)]


def compare_risk_levels(first: RiskLevel, second: RiskLevel) -> int:
    """Negative, zero or positive as ``first`` is below, equal to or above ``second``."""

    return _RISK_ORDER.index(first) - _RISK_ORDER.index(second)


def max_risk_level(first: RiskLevel, second: RiskLevel) -> RiskLevel:
    return first if compare_risk_levels(first, second) >= 0 else second


def is_risk_at_or_above(level: RiskLevel, threshold: RiskLevel) -> bool:
    return compare_risk_levels(level, threshold) >= 0


def risk_description(level: RiskLevel) -> str:
    return _RISK_DESCRIPTIONS[level]


def operation_warning(
    operation: OperationType | str,
    target: OperationTarget,
    level: RiskLevel,
) -> str:
    """Human-readable warning naming the target and what the operation will cause."""

    verb, details = _WARNING_DETAILS[OperationType(operation)]
    message = f'{verb} {target.type.value} "{target.name}".'
    detail = details.get(level)
    return f"{message} {detail}" if detail else message


def format_cooldown_remaining(seconds: float) -> str:
    """Render a remaining cooldown as ``Ready``, ``45s`` or ``1m 30s``."""

    if seconds <= 0:
        return "Ready"
    whole = math.ceil(seconds)
    minutes, rest = divmod(whole, 60)
    if minutes:
        return f"{minutes}m {rest}s"
    return f"{rest}s"


@dataclass(slots=True)
class _Execution:
    last_executed_at: float
    count: int


@dataclass(slots=True)
class CooldownStats:
    total_executions: int
    active_cooldowns: int
    executions_by_type: dict[str, int]


class CooldownLimiter:
    """In-memory cooldown bookkeeping keyed by ``"<operation>:<target id>"``."""

    def __init__(
        self,
        policy: RiskPolicy = DEFAULT_RISK_POLICY,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.policy = policy
        self._clock = clock
        self._lock = threading.Lock()
        self._executions: dict[str, _Execution] = {}

    @staticmethod
    def key(operation: OperationType | str, target_id: str) -> str:
        return f"{OperationType(operation).value}:{target_id}"

    def can_execute(self, operation: OperationType | str, target_id: str) -> bool:
        return self.cooldown_remaining(operation, target_id) == 0

    def record_execution(self, operation: OperationType | str, target_id: str) -> None:
        key = self.key(operation, target_id)
        with self._lock:
            previous = self._executions.get(key)
            self._executions[key] = _Execution(
                last_executed_at=self._clock(),
                count=(previous.count if previous is not None else 0) + 1,
            )
        logger.debug("Recorded execution of %s", key)

    def cooldown_remaining(self, operation: OperationType | str, target_id: str) -> float:
        """Seconds until the operation may run again on the target; 0 when ready."""

        with self._lock:
            return self._remaining(self.key(operation, target_id))

    def execution_count(self, operation: OperationType | str, target_id: str) -> int:
        with self._lock:
            record = self._executions.get(self.key(operation, target_id))
            return record.count if record is not None else 0

    def last_executed_at(self, operation: OperationType | str, target_id: str) -> float | None:
        with self._lock:
            record = self._executions.get(self.key(operation, target_id))
            return record.last_executed_at if record is not None else None

    def reset(self, operation: OperationType | str, target_id: str) -> None:
        with self._lock:
            self._executions.pop(self.key(operation, target_id), None)

    def clear(self) -> None:
        with self._lock:
            self._executions.clear()

    def clear_target(self, target_id: str) -> None:
        suffix = f":{target_id}"
        with self._lock:
            for key in [key for key in self._executions if key.endswith(suffix)]:
                del self._executions[key]

    def clear_operation_type(self, operation: OperationType | str) -> None:
        prefix = f"{OperationType(operation).value}:"
        with self._lock:
            for key in [key for key in self._executions if key.startswith(prefix)]:
                del self._executions[key]

    def active_cooldowns(self) -> dict[str, float]:
        with self._lock:
            remaining = {key: self._remaining(key) for key in self._executions}
        return {key: value for key, value in remaining.items() if value > 0}

    def stats(self) -> CooldownStats:
        by_type: dict[str, int] = {}
        total = 0
        active = 0
        with self._lock:
            for key, record in self._executions.items():
                total += record.count
                if self._remaining(key) > 0:
                    active += 1
                operation = key.split(":", 1)[0]
                by_type[operation] = by_type.get(operation, 0) + record.count
        return CooldownStats(
            total_executions=total,
            active_cooldowns=active,
            executions_by_type=by_type,
        )

    def _remaining(self, key: str) -> float:
        record = self._executions.get(key)
        if record is None:
            return 0.0
        operation = key.split(":", 1)[0]
        window = self.policy.cooldown_seconds.get(OperationType(operation), 0.0)
        return max(0.0, window - (self._clock() - record.last_executed_at))


def _step_up(level: RiskLevel) -> RiskLevel:
    index = _RISK_ORDER.index(level)
    return _RISK_ORDER[min(index + 1, len(_RISK_ORDER) - 1)]


def _is_critical_target(target: OperationTarget) -> bool:
    return any(
        pattern.search(target.name) or pattern.search(target.id)
        for pattern in _CRITICAL_TARGET_PATTERNS
    )
