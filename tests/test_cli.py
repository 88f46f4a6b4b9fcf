from __future__ import annotations

import json

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session
from typer.testing import CliRunner

from eventhub.cli import app
from eventhub.models import Event, Venue
from eventhub.seed import seed_fake_data

runner = CliRunner()

EVENT_ID = "aaaaaaa1-0000-4000-8000-000000000003"


def test_slug_command_prints_canonical_slug():
    result = runner.invoke(app, ["slug", "City Tap Jazz Brunch", EVENT_ID])
    assert result.exit_code == 0
    assert result.stdout.strip() == f"city-tap-jazz-brunch--{EVENT_ID}"


def test_slug_command_honours_seo_slug():
    result = runner.invoke(
        app, ["slug", "City Tap Jazz Brunch", EVENT_ID, "--seo-slug", "Jazz Special"]
    )
    assert result.stdout.strip() == f"jazz-special--{EVENT_ID}"


def test_slug_command_rejects_bad_ids():
    result = runner.invoke(app, ["slug", "City Tap", "123"])
    assert result.exit_code == 1


def test_config_show_prints_json():
    result = runner.invoke(app, ["config", "--show"])
    assert result.exit_code == 0
    payload = json.loads(result.stdout)
    assert payload["max_page_limit"] >= 1
    assert "database_url" in payload


def test_seed_fake_data_creates_public_and_hidden_events(tmp_path):
    database_url = f"sqlite:///{tmp_path / 'seed.sqlite'}"

    stats = seed_fake_data(
        venue_count=2, events_per_venue=4, draft_percentage=50, database_url=database_url
    )

    assert stats["venues"] == 2
    assert stats["events"] == 8
    assert 0 <= stats["public_events"] <= 8
    engine = create_engine(database_url, future=True)
    with Session(engine) as session:
        assert session.scalar(select(func.count()).select_from(Venue)) == 2
        assert session.scalar(select(func.count()).select_from(Event)) == 8
        public = session.scalar(
            select(func.count())
            .select_from(Event)
            .where(Event.status.in_(("approved", "completed")))
        )
    assert public == stats["public_events"]
    engine.dispose()


@pytest.mark.parametrize(
    "kwargs",
    [{"venue_count": -1}, {"events_per_venue": 0}, {"draft_percentage": 101}],
)
def test_seed_fake_data_validates_arguments(tmp_path, kwargs):
    with pytest.raises(ValueError):
        seed_fake_data(database_url=f"sqlite:///{tmp_path / 'unused.sqlite'}", **kwargs)


def test_upgrade_db_reports_when_already_current(monkeypatch):
    monkeypatch.setattr("eventhub.cli.upgrade_database", lambda make_backup: [])
    result = runner.invoke(app, ["upgrade-db"])
    assert result.exit_code == 0
    assert result.stdout.strip() == "Database already up to date."


def test_upgrade_db_lists_actions(monkeypatch):
    monkeypatch.setattr(
        "eventhub.cli.upgrade_database",
        lambda make_backup: ["Applied Alembic migrations to head"],
    )
    result = runner.invoke(app, ["upgrade-db", "--no-backup"])
    assert "- Applied Alembic migrations to head" in result.stdout
