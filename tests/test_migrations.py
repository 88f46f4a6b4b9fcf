from __future__ import annotations

from sqlalchemy import create_engine, inspect, text
from sqlalchemy.engine import Engine

from eventhub import storage
from eventhub.models import Base


def _get_version(engine: Engine) -> str | None:
    with engine.connect() as conn:
        return conn.execute(text("select version_num from alembic_version")).scalar()


def test_upgrade_database_creates_fresh_schema(tmp_path):
    db_path = tmp_path / "fresh.sqlite"
    engine = create_engine(f"sqlite:///{db_path}", future=True)

    actions = storage.upgrade_database(engine=engine, make_backup=False)

    assert "Ran Alembic upgrade to head (fresh database)" in actions
    assert _get_version(engine) == "0001_initial"
    inspector = inspect(engine)
    assert inspector.has_table("venues")
    assert inspector.has_table("event_types")
    assert inspector.has_table("events")
    index_names = {index["name"] for index in inspector.get_indexes("events")}
    assert "events_start_id_idx" in index_names
    engine.dispose()


def test_upgrade_database_stamps_existing_db(tmp_path):
    db_path = tmp_path / "existing.sqlite"
    engine = create_engine(f"sqlite:///{db_path}", future=True)
    Base.metadata.create_all(bind=engine)  # existing schema without Alembic tracking

    actions = storage.upgrade_database(engine=engine, make_backup=False)

    assert "Stamped existing database to Alembic head" in actions
    assert _get_version(engine) == "0001_initial"
    engine.dispose()


def test_upgrade_database_backs_up_before_changes(tmp_path):
    db_path = tmp_path / "untracked.sqlite"
    engine = create_engine(f"sqlite:///{db_path}", future=True)
    Base.metadata.create_all(bind=engine)

    actions = storage.upgrade_database(engine=engine)

    backup = tmp_path / "untracked.sqlite.bak"
    assert backup.exists()
    assert actions[0] == f"Backup created at {backup}"
    assert "Stamped existing database to Alembic head" in actions
    engine.dispose()


def test_upgrade_database_at_head_does_nothing(tmp_path):
    db_path = tmp_path / "tracked.sqlite"
    engine = create_engine(f"sqlite:///{db_path}", future=True)
    storage.init_db(engine)

    actions = storage.upgrade_database(engine=engine)

    assert actions == []
    assert not (tmp_path / "tracked.sqlite.bak").exists()
    assert _get_version(engine) == "0001_initial"
    engine.dispose()
