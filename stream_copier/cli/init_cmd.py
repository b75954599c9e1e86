"""CLI command handler for writing a default config file."""

from __future__ import annotations

import sys
from pathlib import Path

import click

from stream_copier.cli.common import cli
from stream_copier.core.config import create_default_config
from stream_copier.utils.logging import setup_logger


@cli.command("init-config")
@click.option(
    "--path",
    default="config.yaml",
    show_default=True,
    help="Where to write the config file",
)
def init_config(path: str) -> None:
    """Write a default config file (never overwrites).

    Args:
        path: Destination of the new config file.
    """
    setup_logger()
    if not create_default_config(Path(path)):
        sys.exit(1)
    click.echo(f"Wrote {path}")
