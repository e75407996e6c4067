"""Command line entry point."""

import logging
from pathlib import Path

import click
import uvicorn
from pydantic import ValidationError

from sachi import __version__
from sachi.config import Settings
from sachi.main import create_app

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)


def build_settings(**overrides) -> Settings:
    """Settings from the environment with non-empty CLI flags layered on top."""
    return Settings(**{key: value for key, value in overrides.items() if value is not None})


@click.group(invoke_without_command=True)
@click.pass_context
def cli(ctx: click.Context):
    """Sachi - AI-Powered Analytics Platform.

    Runs the web server when no command is given.
    """
    if ctx.invoked_subcommand is None:
        ctx.invoke(web)


@cli.command()
@click.option("--port", type=int, default=None, help="Port to listen on [default: 8000]")
@click.option("--host", default=None, help="Bind host ip [default: 0.0.0.0]")
@click.option(
    "--level",
    type=click.Choice(["debug", "info", "warning", "error"], case_sensitive=False),
    default=None,
    help="Log level [default: info]",
)
@click.option(
    "--datadir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Path to data dir [default: ~/.sachi]",
)
@click.option("--db", default=None, help="Database file, relative to the data dir [default: sachi.db]")
def web(port: int | None, host: str | None, level: str | None, datadir: Path | None, db: str | None):
    """Start the web server."""
    try:
        settings = build_settings(port=port, host=host, log_level=level, data_dir=datadir, db_file=db)
        settings.ensure_data_dir()
    except (ValidationError, OSError) as e:
        raise click.ClickException(f"Error initializing config: {e}") from e

    configure_logging(settings.log_level)

    app = create_app(settings)
    logger.info(f"Sachi web server starting at http://{settings.host}:{settings.port}")
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
        lifespan="on",
    )


@cli.command()
def version():
    """Show version information."""
    click.echo(f"Sachi version {__version__}")


def main() -> None:
    cli()
