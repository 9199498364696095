"""Database migration CLI commands using Alembic programmatically."""

from pathlib import Path

import typer
from loguru import logger

db_app = typer.Typer()

_DEFAULT_INI = "alembic.ini"


def _alembic_config(ini_path: str):  # type: ignore[no-untyped-def]
    from alembic.config import Config

    path = Path(ini_path)
    if not path.is_file():
        logger.error(f"Alembic config not found: {path}")
        raise typer.Exit(code=2)
    return Config(str(path))


@db_app.command()
def upgrade(
    revision: str = typer.Argument("head", help="Target revision"),
    config: str = typer.Option(_DEFAULT_INI, "--config", help="Path to alembic.ini"),
) -> None:
    """Create or migrate the geocode_locations and location_aliases tables."""
    from alembic import command

    logger.info(f"Upgrading cache schema to {revision}")
    command.upgrade(_alembic_config(config), revision)
    logger.info("Cache schema upgrade complete")


@db_app.command()
def downgrade(
    revision: str = typer.Argument("-1", help="Target revision"),
    config: str = typer.Option(_DEFAULT_INI, "--config", help="Path to alembic.ini"),
) -> None:
    """Roll the cache schema back to the target revision."""
    from alembic import command

    logger.info(f"Downgrading cache schema to {revision}")
    command.downgrade(_alembic_config(config), revision)
    logger.info("Cache schema downgrade complete")
