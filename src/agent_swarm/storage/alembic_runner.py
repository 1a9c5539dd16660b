"""Programmatic Alembic migrations for the swarm database."""

from __future__ import annotations

import logging
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy.engine import Engine

from agent_swarm.storage.common import sqlite_url

logger = logging.getLogger(__name__)

_PROJECT_ROOT = Path(__file__).resolve().parents[3]


def alembic_config(db_path: Path) -> Config:
    """Alembic config bound to the bundled migration scripts and one database file."""

    config = Config(str(_PROJECT_ROOT / "alembic.ini"))
    config.set_main_option("script_location", str(_PROJECT_ROOT / "alembic"))
    config.set_main_option("sqlalchemy.url", sqlite_url(db_path))
    return config


def upgrade_head(db_path: Path) -> None:
    """Apply every pending migration to the database."""

    command.upgrade(alembic_config(db_path), "head")
    logger.debug("Schema of %s upgraded to head", db_path)


def head_revision() -> str | None:
    """Newest revision among the bundled migration scripts."""

    script = ScriptDirectory.from_config(alembic_config(Path(":memory:")))
    return script.get_current_head()


def current_revision(engine: Engine) -> str | None:
    """Revision stamped in the database, or None before the first migration."""

    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()
