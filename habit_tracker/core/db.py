"""Database engine and migration helpers."""

from __future__ import annotations

import os
import threading

from sqlalchemy.engine import Engine
from sqlmodel import create_engine

from habit_tracker.core.config import BASE_DIR, DATABASE_URL


def _normalize_database_url(database_url: str) -> str:
    # 日本語: 旧 postgres:// を SQLAlchemy 推奨形式へ正規化 / English: Normalize legacy postgres:// URL to SQLAlchemy-friendly form
    normalized_url = (database_url or "").strip()
    if normalized_url.startswith("postgres://"):
        normalized_url = normalized_url.replace("postgres://", "postgresql+psycopg2://", 1)
    if not normalized_url.startswith(("postgresql", "sqlite")):
        raise ValueError("DATABASE_URL must be PostgreSQL (postgresql+psycopg2://...) or SQLite.")
    return normalized_url


def _alembic_config(database_url: str):
    try:
        from alembic.config import Config
    except ModuleNotFoundError as exc:  # pragma: no cover - dependency error path
        raise RuntimeError("Alembic is required. Install dependencies and retry.") from exc

    config = Config(str(BASE_DIR / "alembic.ini"))
    config.set_main_option("script_location", str(BASE_DIR / "migrations"))
    config.set_main_option("sqlalchemy.url", database_url)
    return config


def upgrade_to_head(database_url: str, revision: str = "head") -> None:
    """Apply Alembic migrations up to ``revision``."""
    from alembic import command

    command.upgrade(_alembic_config(database_url), revision)


# 日本語: エンジンは初回利用時に生成しマイグレーションも一度だけ / English: Engine is built lazily and migrated once per process
_engine: Engine | None = None
_engine_url: str | None = None
_engine_lock = threading.Lock()


def get_engine() -> Engine:
    """Return the process-wide engine, creating and migrating it on first use."""
    global _engine, _engine_url

    database_url = _normalize_database_url(os.getenv("DATABASE_URL", DATABASE_URL))
    if _engine is not None and _engine_url == database_url:
        return _engine

    with _engine_lock:
        if _engine is not None and _engine_url == database_url:
            return _engine
        # 日本語: URL が差し替えられた場合はエンジンを作り直す / English: Rebuild when DATABASE_URL changed at runtime
        upgrade_to_head(database_url)
        _engine = create_engine(database_url)
        _engine_url = database_url
    return _engine
