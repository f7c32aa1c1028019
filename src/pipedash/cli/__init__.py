"""pipedash command-line interface.

Provides the `pipedash` command with subcommands for analyzing pipeline task
files and deducing artifact schemas.
"""

import logging
import os
from pathlib import Path

import click

from ..config import ConfigError, find_project_root
from .context import ProjectContext

# Import command groups - these are lightweight, just click decorators
from .analyze_cmd import analyze
from .schemas_cmd import schemas

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


@click.group()
@click.option(
    "--project",
    "-p",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    default=".",
    help="Project directory (default: current directory)",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx, project: Path, verbose: bool):
    """pipedash - pipeline task analysis CLI.

    Analyzes pipeline task files and deduces JSON schemas for the artifacts
    they write.
    """
    _configure_logging(verbose)

    # Without a pipedash.yaml the project directory is used with defaults
    project_root = find_project_root(project) or project

    try:
        ctx.obj = ProjectContext(project_root)
    except ConfigError as e:
        raise click.ClickException(str(e))

    # Always load .env if present
    ctx.obj.load_env()


def _configure_logging(verbose: bool):
    level = logging.DEBUG
    if not verbose:
        name = os.environ.get("PIPEDASH_LOG_LEVEL", "WARNING").upper()
        level = getattr(logging, name, None)
        if not isinstance(level, int):
            level = logging.WARNING
    logging.basicConfig(level=level, format=LOG_FORMAT)


# Register command groups
cli.add_command(analyze)
cli.add_command(schemas)


def main():
    """Entry point for the pipedash CLI."""
    cli()


if __name__ == "__main__":
    main()
