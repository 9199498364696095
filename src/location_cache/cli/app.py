"""Typer CLI root application."""

import typer

from location_cache.core.config import get_settings
from location_cache.core.logging import setup_logging

app = typer.Typer(name="location-cache", help="Canonical geocoding cache CLI")


@app.callback()
def _main_callback() -> None:
    """Initialize logging for all CLI commands."""
    settings = get_settings()
    setup_logging(settings.log_level, log_dir=settings.log_dir)


def _register_subcommands() -> None:
    """Register all CLI subcommand groups."""
    from location_cache.cli.audit_cmd import audit_app
    from location_cache.cli.db_cmd import db_app
    from location_cache.cli.geocode_cmd import geocode_app

    app.add_typer(db_app, name="db", help="Database migration commands")
    app.add_typer(geocode_app, name="geocode", help="Forward and reverse lookups through the cache")
    app.add_typer(audit_app, name="audit", help="Drift and integrity audits")


_register_subcommands()
