from __future__ import annotations

import os
from logging.config import fileConfig
from pathlib import Path
from typing import Any, Literal

from alembic import context
from alembic.autogenerate.api import AutogenContext
from alembic.operations.ops import MigrationScript
from dotenv import load_dotenv
from sqlalchemy import engine_from_config, make_url, pool
from sqlalchemy.dialects import postgresql

import fantasy_ingest.db.models  # noqa: F401
from fantasy_ingest.db.base import Base

config = context.config

if config.config_file_name is not None:
    fileConfig(config.config_file_name)


def get_database_url() -> str:
    """`alembic -x database_url=...` wins, then DATABASE_URL (env or .env), then alembic.ini."""
    override = context.get_x_argument(as_dictionary=True).get("database_url")
    if override:
        return override

    env_path = Path(__file__).resolve().parents[1] / ".env"
    if env_path.exists():
        load_dotenv(env_path, override=False)

    return os.environ.get("DATABASE_URL") or config.get_main_option(
        "sqlalchemy.url", "sqlite+pysqlite:///./fantasy_ingest.db"
    )


def render_item(
    type_: str,
    obj: Any,
    autogen_context: AutogenContext,
) -> str | Literal[False]:
    # Snapshot payloads are JSON everywhere but JSONB on Postgres.
    if type_ == "type" and isinstance(obj, postgresql.JSONB):
        autogen_context.imports.add("from sqlalchemy.dialects import postgresql")
        return "postgresql.JSONB()"
    return False


def process_revision_directives(context, revision, directives) -> None:
    script = directives[0]
    if isinstance(script, MigrationScript) and script.upgrade_ops.is_empty():
        # Don't write empty autogenerated revisions.
        directives[:] = []


def configure_kwargs(url: str) -> dict[str, Any]:
    return {
        "target_metadata": Base.metadata,
        "compare_type": True,
        # SQLite cannot ALTER most columns in place.
        "render_as_batch": make_url(url).get_backend_name() == "sqlite",
        "render_item": render_item,
        "process_revision_directives": process_revision_directives,
    }


def run_migrations_offline() -> None:
    url = get_database_url()
    context.configure(
        url=url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **configure_kwargs(url),
    )

    with context.begin_transaction():
        context.run_migrations()


def run_migrations_online() -> None:
    url = get_database_url()
    configuration = config.get_section(config.config_ini_section) or {}
    configuration["sqlalchemy.url"] = url

    connectable = engine_from_config(configuration, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, **configure_kwargs(url))

        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
