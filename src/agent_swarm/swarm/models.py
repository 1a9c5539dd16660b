"""Domain models for the agent swarm runtime and completion engine."""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from datetime import datetime
from enum import Enum
from typing import Any

BROADCAST = "broadcast"


class ModelTier(str, Enum):
    """Cost/capability tier of an agent archetype."""

    T1 = "T1"
    T2 = "T2"
    T3 = "T3"


class AgentArchetype(str, Enum):
    """Kind of work an agent template is built for."""

    ORCHESTRATOR = "orchestrator"
    PLANNER = "planner"
    RESEARCHER = "researcher"
    ARCHITECT = "architect"
    CODER = "coder"
    REVIEWER = "reviewer"
    TESTER = "tester"
    FORMATTER = "formatter"
    DOCWRITER = "docwriter"


class SwarmRole(str, Enum):
    """Position of an agent in the swarm hierarchy."""

    COORDINATOR = "coordinator"
    SPECIALIST = "specialist"
    WORKER = "worker"


class AgentStatus(str, Enum):
    """Lifecycle states of a live agent instance."""

    IDLE = "idle"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETED = "completed"
    ERROR = "error"


class SwarmMessageType(str, Enum):
    """Inter-agent message kinds."""

    TASK_ASSIGN = "task_assign"
    TASK_COMPLETE = "task_complete"
    TASK_FAILED = "task_failed"
    PROGRESS_UPDATE = "progress_update"
    CONTEXT_SHARE = "context_share"
    ESCALATE = "escalate"
    HANDOFF = "handoff"
    QUERY = "query"
    RESPONSE = "response"


class TaskComplexity(str, Enum):
    """Analyzer complexity classes."""

    SIMPLE = "simple"
    MODERATE = "moderate"
    COMPLEX = "complex"


class TaskDecision(str, Enum):
    """Outcomes of one completion-engine evaluation."""

    COMPLETE = "complete"
    FAIL = "fail"
    RETRY = "retry"
    ESCALATE = "escalate"
    TIMEOUT = "timeout"
    PENDING = "pending"


TERMINAL_DECISIONS = frozenset({TaskDecision.COMPLETE, TaskDecision.FAIL, TaskDecision.TIMEOUT})


class TaskStatus(str, Enum):
    """Board column of an external task record."""

    BACKLOG = "backlog"
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    REVIEW = "review"
    DONE = "done"


class AgentRunStatus(str, Enum):
    """Status of an external agent run record."""

    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


class LogLevel(str, Enum):
    """Activity log severities."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


class ExecutorKind(str, Enum):
    """Available execution backend strategies."""

    LOCAL = "local"
    CONTAINER = "container"


class SwarmHealthStatus(str, Enum):
    """Coarse swarm health summary."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    OFFLINE = "offline"


@dataclass(frozen=True, slots=True)
class TierInfo:
    """Model and per-1K-token pricing attached to a tier."""

    name: str
    model: str
    input_per_1k: float
    output_per_1k: float
    description: str


MODEL_TIERS: dict[ModelTier, TierInfo] = {
    ModelTier.T1: TierInfo(
        name="Strategic",
        model="claude-opus-4-20250514",
        input_per_1k=0.015,
        output_per_1k=0.075,
        description="Complex reasoning, orchestration, strategic decisions",
    ),
    ModelTier.T2: TierInfo(
        name="Specialist",
        model="claude-sonnet-4-20250514",
        input_per_1k=0.003,
        output_per_1k=0.015,
        description="Code generation, review, research, implementation",
    ),
    ModelTier.T3: TierInfo(
        name="Worker",
        model="claude-3-5-haiku-20241022",
        input_per_1k=0.00025,
        output_per_1k=0.00125,
        description="Grunt work, formatting, tests, documentation",
    ),
}


@dataclass(frozen=True, slots=True)
class AgentPermissions:
    """Capability flags and scoping lists for one agent template."""

    can_execute_code: bool = False
    can_write_files: bool = False
    can_read_files: bool = False
    can_access_network: bool = False
    can_spawn_agents: bool = False
    can_access_shell: bool = False
    allowed_paths: tuple[str, ...] = ()
    blocked_commands: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class AgentTemplate:
    """Immutable agent archetype definition."""

    id: str
    name: str
    codename: str
    archetype: AgentArchetype
    tier: ModelTier
    role: SwarmRole
    description: str
    system_prompt: str
    skills: tuple[str, ...]
    permissions: AgentPermissions
    max_tokens: int
    temperature: float


@dataclass(slots=True)
class AgentInstance:
    """Live agent spawned from a template."""

    template: AgentTemplate
    instance_id: str
    status: AgentStatus = AgentStatus.IDLE
    current_task_id: str | None = None
    project_id: str | None = None
    parent_agent_id: str | None = None
    child_agent_ids: list[str] = field(default_factory=list)
    tokens_used: int = 0
    estimated_cost: float = 0.0
    started_at: datetime | None = None
    completed_at: datetime | None = None
    error: str | None = None

    @property
    def template_id(self) -> str:
        return self.template.id

    @property
    def name(self) -> str:
        return self.template.name

    @property
    def codename(self) -> str:
        return self.template.codename

    @property
    def archetype(self) -> AgentArchetype:
        return self.template.archetype

    @property
    def tier(self) -> ModelTier:
        return self.template.tier

    @property
    def role(self) -> SwarmRole:
        return self.template.role

    @property
    def skills(self) -> tuple[str, ...]:
        return self.template.skills

    @property
    def permissions(self) -> AgentPermissions:
        return self.template.permissions


@dataclass(frozen=True, slots=True)
class SwarmMessage:
    """Immutable inter-agent message."""

    id: str
    type: SwarmMessageType
    from_agent_id: str
    to_agent_id: str
    payload: dict[str, Any]
    timestamp: datetime
    task_id: str | None = None


@dataclass(frozen=True, slots=True)
class TaskCompletionSettings:
    """Per-task completion policy."""

    auto_complete: bool = True
    auto_complete_timeout_seconds: float = 30.0
    requires_review: bool = True
    requires_verification: bool = False
    max_retries: int = 2
    execute_subtasks: bool = False

    def merged(self, overrides: dict[str, Any] | None) -> TaskCompletionSettings:
        """Return a copy with the given fields replaced."""

        if not overrides:
            return self
        known = {item.name for item in fields(self)}
        unknown = sorted(set(overrides) - known)
        if unknown:
            raise ValueError(f"Unknown completion settings: {unknown}")
        return replace(self, **overrides)

    def to_dict(self) -> dict[str, object]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass(slots=True)
class MonitoredTask:
    """Completion-engine supervision record for one task."""

    task_id: str
    started_at: float
    last_progress_at: float
    settings: TaskCompletionSettings
    retry_count: int = 0


@dataclass(frozen=True, slots=True)
class TaskDecisionResult:
    """Decision produced by one evaluation."""

    decision: TaskDecision
    reason: str
    next_status: TaskStatus | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class TaskAnalysis:
    """Analyzer classification of a task description."""

    complexity: TaskComplexity
    required_agents: tuple[str, ...]
    estimated_tokens: int
    can_parallelize: bool


@dataclass(frozen=True, slots=True)
class RouteAssignment:
    """One agent selected for a routed task."""

    agent_instance_id: str
    template_id: str


@dataclass(slots=True)
class ExecuteOptions:
    """Optional command execution parameters."""

    cwd: str | None = None
    timeout_seconds: float | None = None
    env: dict[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class ExecutionResult:
    """Outcome of an execution backend command."""

    success: bool
    stdout: str | None = None
    stderr: str | None = None
    exit_code: int | None = None
    error: str | None = None
    duration_seconds: float | None = None


@dataclass(slots=True)
class AgentStats:
    """Store-level agent counters."""

    total: int
    running: int
    idle: int
    by_tier: dict[str, int]


@dataclass(slots=True)
class SwarmHealth:
    """Health summary consumed by the presentation layer."""

    status: SwarmHealthStatus
    total: int
    running: int
    idle: int
    error: int
    total_cost: float
    cost_by_tier: dict[str, float]


@dataclass(slots=True)
class SwarmExecutionResult:
    """Result of routing a task through the swarm."""

    success: bool
    agents: list[str] = field(default_factory=list)
    run_id: str | None = None
    error: str | None = None


@dataclass(slots=True)
class SubtaskRecord:
    """Checklist item attached to a task record."""

    subtask_id: str
    title: str
    completed: bool = False


@dataclass(slots=True)
class TaskRecord:
    """External task record as seen by the engine."""

    task_id: str
    title: str
    description: str
    status: TaskStatus
    priority: str
    project_id: str | None
    assigned_agent: str | None
    agent_run_id: str | None
    progress: int
    created_at: datetime
    updated_at: datetime
    labels: list[str] = field(default_factory=list)
    subtasks: list[SubtaskRecord] = field(default_factory=list)
    last_error: str | None = None


@dataclass(slots=True)
class AgentRunRecord:
    """External agent run record."""

    run_id: str
    agent_id: str
    task_id: str | None
    project_id: str | None
    status: AgentRunStatus
    started_at: datetime
    completed_at: datetime | None = None
    result: Any = None
    error: str | None = None


@dataclass(slots=True)
class ActivityLogEntry:
    """One activity-log event."""

    entry_id: str
    timestamp: datetime
    level: LogLevel
    message: str
    task_id: str | None = None
    project_id: str | None = None
    agent_id: str | None = None
    run_id: str | None = None
    source: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)
