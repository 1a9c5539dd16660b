"""Keyword-based task classification into complexity and required agents."""

from __future__ import annotations

from agent_swarm.swarm.models import TaskAnalysis, TaskComplexity
from agent_swarm.swarm.templates import COORDINATOR_TEMPLATE_ID, DEFAULT_CODER_TEMPLATE_ID

_KEYWORD_FAMILIES: tuple[tuple[str, tuple[str, ...], str], ...] = (
    (
        "research",
        ("research", "find", "look up", "search", "investigate", "analyze"),
        "beta-researcher",
    ),
    ("planning", ("plan", "break down", "estimate", "prioritize", "schedule"), "alpha-planner"),
    (
        "architecture",
        ("design", "architect", "structure", "pattern", "adr", "decision"),
        "gamma-architect",
    ),
    (
        "coding",
        ("implement", "code", "build", "create", "fix", "bug", "feature", "refactor"),
        DEFAULT_CODER_TEMPLATE_ID,
    ),
    ("testing", ("test", "coverage", "jest", "spec", "unit test", "integration"), "eta-tester"),
    ("review", ("review", "check", "audit", "security", "quality"), "zeta-reviewer"),
    ("formatting", ("format", "lint", "prettier", "eslint", "style"), "theta-formatter"),
    ("documentation", ("document", "readme", "jsdoc", "comment", "docs"), "iota-docwriter"),
)
_MODERATE_FAMILIES = frozenset({"architecture", "coding"})
_COMPLEX_MARKERS = ("complex", "full")
_COMPLEX_AGENT_THRESHOLD = 3

_ESTIMATED_TOKENS = {
    TaskComplexity.SIMPLE: 2_000,
    TaskComplexity.MODERATE: 5_000,
    TaskComplexity.COMPLEX: 15_000,
}


def analyze_task(title: str, description: str = "") -> TaskAnalysis:
    """Classify a task by substring keyword matching.

    Matching is case-insensitive over ``title + " " + description``. Each
    keyword family that matches contributes its template id, in family order.
    Architecture or coding work is at least moderate; three or more agents or
    an explicit "complex"/"full" marker make the task complex and put the
    coordinator in front. With no match at all a single coder is used.
    """

    text = f"{title} {description}".lower()
    required: list[str] = []
    complexity = TaskComplexity.SIMPLE

    for family, keywords, template_id in _KEYWORD_FAMILIES:
        if not any(keyword in text for keyword in keywords):
            continue
        required.append(template_id)
        if family in _MODERATE_FAMILIES:
            complexity = TaskComplexity.MODERATE

    if len(required) >= _COMPLEX_AGENT_THRESHOLD or any(
        marker in text for marker in _COMPLEX_MARKERS
    ):
        complexity = TaskComplexity.COMPLEX
        required.insert(0, COORDINATOR_TEMPLATE_ID)

    if not required:
        required.append(DEFAULT_CODER_TEMPLATE_ID)

    return TaskAnalysis(
        complexity=complexity,
        required_agents=tuple(required),
        estimated_tokens=_ESTIMATED_TOKENS[complexity],
        can_parallelize=len(required) > 1 and complexity is not TaskComplexity.SIMPLE,
    )
