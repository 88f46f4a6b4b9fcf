"""Database initialization and schema migrations."""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

from alembic import command
from alembic.config import Config
from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import inspect
from sqlalchemy.engine import Engine

from .config import settings
from .database import create_db_engine

logger = logging.getLogger("uvicorn.error")


def _alembic_config(database_url: str) -> Config:
    package_dir = Path(__file__).resolve().parent
    script_location = package_dir / "alembic"
    ini_path = script_location.parent / "alembic.ini"

    config = Config(str(ini_path)) if ini_path.exists() else Config()
    config.set_main_option("script_location", str(script_location))
    config.set_main_option("sqlalchemy.url", database_url.replace("%", "%%"))
    return config


def _sqlite_path(engine: Engine) -> Path | None:
    url = engine.url
    if url.get_backend_name() != "sqlite" or not url.database:
        return None
    if url.database == ":memory:":
        return None
    return Path(url.database)


def _pending_migrations(connection, config: Config) -> bool:
    current = set(MigrationContext.configure(connection).get_current_heads())
    heads = set(ScriptDirectory.from_config(config).get_heads())
    return current != heads


def upgrade_database(
    *, engine: Engine | None = None, make_backup: bool = True
) -> list[str]:
    """Upgrade the database schema in-place.

    Returns a list of applied actions, empty when the schema is already at
    head. SQLite files are copied to ``.bak`` first unless ``make_backup`` is
    false.
    """
    engine = engine or create_db_engine(settings.database_url)
    actions: list[str] = []

    inspector = inspect(engine)
    has_alembic = inspector.has_table("alembic_version")
    has_events = inspector.has_table("events")
    config = _alembic_config(engine.url.render_as_string(hide_password=False))

    if has_alembic:
        with engine.connect() as connection:
            if not _pending_migrations(connection, config):
                return actions

    db_path = _sqlite_path(engine)
    if make_backup and db_path is not None and db_path.exists():
        backup_path = db_path.with_suffix(db_path.suffix + ".bak")
        shutil.copy(db_path, backup_path)
        actions.append(f"Backup created at {backup_path}")

    with engine.begin() as connection:
        config.attributes["connection"] = connection
        if not has_alembic and not has_events:
            command.upgrade(config, "head")
            actions.append("Ran Alembic upgrade to head (fresh database)")
        elif not has_alembic:
            # Existing schema without Alembic tracking: baseline it.
            command.stamp(config, "head")
            actions.append("Stamped existing database to Alembic head")
        else:
            command.upgrade(config, "head")
            actions.append("Applied Alembic migrations to head")

    for action in actions:
        logger.info("Database upgrade: %s", action)
    return actions


def init_db(engine: Engine | None = None) -> None:
    upgrade_database(engine=engine, make_backup=False)
