"""Typer CLI for EventHub."""

from __future__ import annotations

import json

from sqlalchemy.exc import OperationalError
import typer
import uvicorn

from .config import settings, settings_as_dict
from .publishing import build_event_slug, is_uuid
from .seed import seed_fake_data
from .storage import init_db, upgrade_database

app = typer.Typer(help="EventHub command-line interface")


def _is_read_only(exc: OperationalError) -> bool:
    message = str(getattr(exc, "orig", exc)).lower()
    return "readonly" in message or "read-only" in message


@app.callback(invoke_without_command=True)
def main(ctx: typer.Context) -> None:
    """Show help when no subcommand is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


@app.command("upgrade-db")
def upgrade_db(
    no_backup: bool = typer.Option(
        False,
        "--no-backup",
        help="Skip creating a .bak copy of the database before upgrading",
    ),
) -> None:
    """Upgrade the database schema if needed."""
    try:
        actions = upgrade_database(make_backup=not no_backup)
    except OperationalError as exc:
        if _is_read_only(exc):
            typer.secho(
                "Unable to upgrade because the database is read-only. "
                f"Ensure write access to {settings.database_url}.",
                err=True,
                fg=typer.colors.RED,
            )
            raise typer.Exit(code=1)
        raise

    if not actions:
        typer.echo("Database already up to date.")
        return

    typer.echo("Database upgrade complete:")
    for action in actions:
        typer.echo(f"- {action}")


@app.command("runserver")
def runserver(
    host: str = typer.Option(settings.app_host, "--host", help="Host to bind"),
    port: int = typer.Option(settings.app_port, "--port", help="Port to bind"),
):
    """Start the website API."""
    init_db()
    if not settings.website_api_key:
        typer.secho(
            "EVENTHUB_WEBSITE_API_KEY is not set; every API request will return 503.",
            err=True,
            fg=typer.colors.YELLOW,
        )
    config = uvicorn.Config(
        "eventhub.api:app",
        host=host,
        port=port,
        reload=False,
        proxy_headers=True,
        forwarded_allow_ips="*",
    )
    server = uvicorn.Server(config)
    typer.echo(f"Starting EventHub on {host}:{port}")
    server.run()


@app.command("seed-data")
def seed_data(
    venues: int = typer.Option(
        settings.seed_venues, "--venues", min=0, help="Number of venues to create"
    ),
    events_per_venue: int = typer.Option(
        settings.seed_events_per_venue,
        "--events-per-venue",
        min=1,
        help="Events to create at each venue",
    ),
    draft_percent: int = typer.Option(
        settings.seed_draft_percent,
        "--draft-percent",
        min=0,
        max=100,
        help="Percentage of events left in a non-public status (0-100)",
    ),
):
    """Populate the database with fake venues and events for testing."""
    stats = seed_fake_data(
        venue_count=venues,
        events_per_venue=events_per_venue,
        draft_percentage=draft_percent,
    )
    typer.echo(
        f"Seed complete: {stats['venues']} venues, {stats['events']} events "
        f"({stats['public_events']} public) created."
    )


@app.command("config")
def configure(
    show: bool = typer.Option(
        False, "--show", help="Show the current effective configuration"
    ),
) -> None:
    """Inspect the effective configuration."""
    if not show:
        typer.echo("Use --show to print the effective configuration.")
        return
    typer.echo(json.dumps(settings_as_dict(settings), indent=2))


@app.command("slug")
def slug(
    title: str = typer.Argument(..., help="Event title"),
    event_id: str = typer.Argument(..., help="Event id (UUID)"),
    seo_slug: str | None = typer.Option(
        None, "--seo-slug", help="Explicit SEO slug that overrides the title"
    ),
) -> None:
    """Print the canonical public slug for an event."""
    if not is_uuid(event_id):
        typer.secho("Event id must be a UUID.", err=True, fg=typer.colors.RED)
        raise typer.Exit(code=1)
    typer.echo(build_event_slug(event_id, title, seo_slug))


if __name__ == "__main__":
    app()
