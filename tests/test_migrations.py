from pathlib import Path

import allure
from sqlalchemy import text

from agent_swarm.storage.alembic_runner import head_revision
from agent_swarm.swarm.repository import TaskRepository

pytestmark = [
    allure.epic("Agent Swarm"),
    allure.feature("Persistence"),
]


def test_alembic_schema_is_initialized_to_head(tmp_path: Path) -> None:
    repository = TaskRepository(tmp_path / "migrations.db")
    assert repository.schema_revision() is None

    repository.init_schema()

    with repository.engine.connect() as connection:
        tables = (
            connection.execute(
                text(
                    """
                    SELECT name
                    FROM sqlite_master
                    WHERE type = 'table' AND name != 'alembic_version'
                    ORDER BY name
                    """,
                ),
            )
            .scalars()
            .all()
        )
    revision = repository.schema_revision()
    repository.close()

    assert head_revision() == "20261018_0004"
    assert revision == head_revision()
    assert tables == [
        "activity_log",
        "agent_runs",
        "subtasks",
        "swarm_agents",
        "swarm_messages",
        "swarm_runtime",
        "swarm_task_assignments",
        "task_monitors",
        "tasks",
    ]


def test_init_schema_is_idempotent(tmp_path: Path) -> None:
    repository = TaskRepository(tmp_path / "twice.db")
    repository.init_schema()
    repository.init_schema()

    assert repository.schema_revision() == "20261018_0004"
    repository.close()
