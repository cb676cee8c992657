"""Schema upgrades run by the application at startup."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from projectcamp.core.config import settings

logger = logging.getLogger(__name__)

PROJECT_ROOT = Path(__file__).resolve().parents[2]


def _alembic_config() -> Config:
    """Point Alembic at the repository scripts and the configured database."""

    cfg = Config(str(PROJECT_ROOT / "alembic.ini"))
    cfg.set_main_option("script_location", str(PROJECT_ROOT / "alembic"))
    cfg.set_main_option("sqlalchemy.url", settings.database_url)
    return cfg


def _database_revision(engine: Engine) -> Optional[str]:
    with engine.connect() as connection:
        return MigrationContext.configure(connection).get_current_revision()


def is_up_to_date(cfg: Config, engine: Engine) -> bool:
    """Report whether the database already sits on a head revision.

    An unreadable revision counts as out of date so the upgrade still runs.
    """

    try:
        heads = set(ScriptDirectory.from_config(cfg).get_heads())
        current = _database_revision(engine)
    except SQLAlchemyError as exc:
        logger.warning("Could not read the schema revision (%s); upgrading anyway", type(exc).__name__)
        return False

    logger.info("Schema revision %s, available heads %s", current, ", ".join(sorted(heads)))
    return current is not None and current in heads


def run_migrations() -> None:
    """Upgrade the schema to head unless it is already there."""
    from projectcamp.db.session import engine

    # Pooled connections would hold locks the upgrade needs.
    engine.dispose()

    cfg = _alembic_config()
    if is_up_to_date(cfg, engine):
        logger.info("Schema already at head; nothing to upgrade")
        return

    logger.info("Upgrading schema to head")
    try:
        command.upgrade(cfg, "heads")
    except Exception:
        logger.exception("Schema upgrade failed")
        raise
    logger.info("Schema upgrade finished")


__all__ = ["is_up_to_date", "run_migrations"]
