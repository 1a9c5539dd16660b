from __future__ import annotations

import allure

from agent_swarm.swarm.models import ModelTier, SwarmRole
from agent_swarm.swarm.templates import (
    COORDINATOR_TEMPLATE_ID,
    get_template,
    list_by_role,
    list_by_tier,
    list_templates,
    template_for_skill,
)

pytestmark = [
    allure.epic("Agent Swarm"),
    allure.feature("Template Registry"),
]


def test_catalog_has_ten_templates_with_unique_ids() -> None:
    templates = list_templates()

    assert len(templates) == 10
    assert len({template.id for template in templates}) == 10
    assert templates[0].id == COORDINATOR_TEMPLATE_ID


def test_tiers_and_roles_partition_the_catalog() -> None:
    assert [template.id for template in list_by_tier(ModelTier.T1)] == ["prime-orchestrator"]
    assert len(list_by_tier(ModelTier.T2)) == 6
    assert [template.id for template in list_by_tier(ModelTier.T3)] == [
        "eta-tester",
        "theta-formatter",
        "iota-docwriter",
    ]
    assert len(list_by_role(SwarmRole.COORDINATOR)) == 1
    assert len(list_by_role(SwarmRole.SPECIALIST)) == 6
    assert len(list_by_role(SwarmRole.WORKER)) == 3


def test_get_template_returns_none_for_unknown_id() -> None:
    assert get_template("omega-unknown") is None
    template = get_template("delta-coder")
    assert template is not None
    assert template.codename == "Delta"


def test_coordinator_can_spawn_but_not_execute() -> None:
    prime = get_template(COORDINATOR_TEMPLATE_ID)

    assert prime is not None
    assert prime.permissions.can_spawn_agents is True
    assert prime.permissions.can_execute_code is False
    assert prime.permissions.can_access_shell is False


def test_template_for_skill_returns_first_match_in_catalog_order() -> None:
    coder = template_for_skill("python")
    docs = template_for_skill("documentation")

    assert coder is not None and coder.id == "delta-coder"
    assert docs is not None and docs.id == "beta-researcher"
    assert template_for_skill("juggling") is None
