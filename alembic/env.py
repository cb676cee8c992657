"""Alembic environment for the Project Camp schema."""

from __future__ import annotations

import sys
from logging.config import fileConfig
from pathlib import Path
from typing import Any

from alembic import context
from sqlalchemy import create_engine, pool

# Running ``alembic`` from the repository root must still find ``projectcamp``.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.append(str(PROJECT_ROOT))

import projectcamp.models  # noqa: E402,F401
from projectcamp.core.config import settings  # noqa: E402
from projectcamp.db.base import Base  # noqa: E402

POSTGRES_TIMEOUTS = "-c statement_timeout=30000 -c lock_timeout=10000"

config = context.config
if config.config_file_name is not None and Path(config.config_file_name).exists():
    fileConfig(config.config_file_name, disable_existing_loggers=False)

database_url = settings.database_url
config.set_main_option("sqlalchemy.url", database_url)


def _context_options() -> dict[str, Any]:
    return {
        "target_metadata": Base.metadata,
        "compare_type": True,
        # SQLite cannot ALTER most constraints in place.
        "render_as_batch": database_url.startswith("sqlite"),
    }


def run_migrations_offline() -> None:
    """Emit the migration SQL without connecting."""

    context.configure(
        url=database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_context_options(),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    """Apply migrations over a dedicated, unpooled connection."""

    connect_args: dict[str, Any] = {}
    if database_url.startswith("postgresql"):
        connect_args["options"] = POSTGRES_TIMEOUTS

    connectable = create_engine(database_url, poolclass=pool.NullPool, connect_args=connect_args)
    with connectable.connect() as connection:
        context.configure(connection=connection, **_context_options())
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
