"""Database checks run once before the app accepts traffic.

SQLite (dev, tests) gets its tables from ``create_all``; every other database
is owned by Alembic and must sit at the migration head.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.script import ScriptDirectory
from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from formfit.core.config import DATABASE_URL, ENV_NORMALIZED, IS_PROD

logger = logging.getLogger(__name__)
MIGRATIONS_PREFIX = "[MIGRATIONS]"

REQUIRED_TABLES = ("orders", "messages", "conversation_state", "processed_messages")


def _alembic_config(path: Path) -> Config:
    if not path.exists():
        logger.critical("%s alembic config not found path=%s", MIGRATIONS_PREFIX, path)
        raise RuntimeError("alembic config not found")
    return Config(str(path))


def _auto_apply_enabled() -> bool:
    raw = os.getenv("AUTO_APPLY_MIGRATIONS", "").strip().lower()
    if not raw:
        return IS_PROD
    return raw in {"1", "true", "yes", "on"}


def _current_revisions(engine: Engine) -> set[str]:
    with engine.connect() as connection:
        if not inspect(connection).has_table("alembic_version"):
            return set()
        rows = connection.exec_driver_sql("SELECT version_num FROM alembic_version").fetchall()
    return {row[0] for row in rows if row[0]}


def validate_database_environment() -> None:
    if IS_PROD and DATABASE_URL.startswith("sqlite"):
        logger.critical("%s SQLite is forbidden in production", MIGRATIONS_PREFIX)
        raise RuntimeError("SQLite is forbidden in production environment")


def apply_migrations(*, alembic_config_path: Path) -> None:
    if not _auto_apply_enabled():
        logger.info("%s auto migration skipped env=%s", MIGRATIONS_PREFIX, ENV_NORMALIZED)
        return
    logger.info("%s upgrading to head", MIGRATIONS_PREFIX)
    command.upgrade(_alembic_config(alembic_config_path), "head")


def ensure_migrations_applied(*, engine: Engine, alembic_config_path: Path) -> None:
    if ENV_NORMALIZED == "test":
        return

    expected = set(ScriptDirectory.from_config(_alembic_config(alembic_config_path)).get_heads())
    current = _current_revisions(engine)
    if not current:
        logger.critical("%s database has no alembic_version", MIGRATIONS_PREFIX)
        raise RuntimeError("Database has no migration state")
    if current != expected:
        logger.critical(
            "%s pending migration current=%s expected=%s",
            MIGRATIONS_PREFIX,
            sorted(current),
            sorted(expected),
        )
        raise RuntimeError("Pending migrations detected")
    logger.info("%s at head %s", MIGRATIONS_PREFIX, ",".join(sorted(current)))


def ensure_tables_exist(engine: Engine) -> None:
    inspector = inspect(engine)
    missing = [table for table in REQUIRED_TABLES if not inspector.has_table(table)]
    if missing:
        logger.error("%s missing tables: %s", MIGRATIONS_PREFIX, ", ".join(missing))
        raise RuntimeError("tables missing / migrations not applied")
