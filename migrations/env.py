"""Alembic migration environment for the habit tracker."""

from __future__ import annotations

from alembic import context
from sqlalchemy import engine_from_config, pool
from sqlmodel import SQLModel

from habit_tracker import models as _models  # noqa: F401

config = context.config
target_metadata = SQLModel.metadata


def _database_url() -> str:
    database_url = config.get_main_option("sqlalchemy.url")
    if not database_url:
        raise ValueError("sqlalchemy.url must be configured for Alembic migrations.")
    return database_url


def _configure_options(database_url: str) -> dict:
    # 日本語: SQLite は ALTER 制限があるためバッチモード / English: SQLite needs batch mode for ALTER operations
    return {
        "target_metadata": target_metadata,
        "compare_type": True,
        "render_as_batch": database_url.startswith("sqlite"),
    }


def run_offline() -> None:
    database_url = _database_url()
    context.configure(
        url=database_url,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        **_configure_options(database_url),
    )
    with context.begin_transaction():
        context.run_migrations()


def run_online() -> None:
    database_url = _database_url()
    section = config.get_section(config.config_ini_section, {})
    section["sqlalchemy.url"] = database_url
    connectable = engine_from_config(section, prefix="sqlalchemy.", poolclass=pool.NullPool)

    with connectable.connect() as connection:
        context.configure(connection=connection, **_configure_options(database_url))
        with context.begin_transaction():
            context.run_migrations()


if context.is_offline_mode():
    run_offline()
else:
    run_online()
