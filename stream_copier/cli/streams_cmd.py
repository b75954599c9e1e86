"""CLI command handler for listing streams."""

from __future__ import annotations

import sys

import click

from stream_copier.cli.common import (
    build_config,
    cli,
    common_options,
    handle_exception,
)
from stream_copier.core.config import is_visible_stream
from stream_copier.services.streams_api import StreamsAPI
from stream_copier.utils.logging import setup_logger


@cli.command("streams")
@common_options
@click.option(
    "--all",
    "show_all",
    is_flag=True,
    default=False,
    help="Include streams hidden by hidden_stream_prefixes (e.g. KV_ buckets)",
)
def streams(
    config: str,
    api_url: str | None,
    token: str | None,
    verbose: bool,
    debug_api: bool,
    json_logs: bool,
    show_all: bool,
) -> None:
    """List streams that can be used as copy source or target.

    Args:
        config: Path to config YAML.
        api_url: GraphQL endpoint override.
        token: API token override.
        verbose: Enable verbose console logging.
        debug_api: Log GraphQL request/response bodies.
        json_logs: Emit JSON log lines.
        show_all: Include hidden streams.
    """
    setup_logger(verbose, debug_api, json_logs=json_logs)

    api = None
    try:
        cfg = build_config(config, api_url, token)
        api = StreamsAPI.from_config(cfg)
        found = api.list_streams()
    except Exception as e:
        handle_exception(e)
        sys.exit(1)
    finally:
        if api is not None:
            api.close()

    visible = [s for s in found if show_all or is_visible_stream(s.name, cfg)]
    if not visible:
        click.echo("No streams found.")
        return

    width = max(len(s.name) for s in visible)
    for info in visible:
        subjects = ", ".join(info.subjects) or "-"
        click.echo(f"{info.name:<{width}}  {info.messages:>10,} msgs  {subjects}")
