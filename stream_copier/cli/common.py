"""Shared CLI infrastructure: option decorators, error handlers, and the CLI group."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable

import click

import stream_copier
from stream_copier.constants import (
    ENV_API_TOKEN,
    ENV_API_URL,
    HTTP_FORBIDDEN,
    HTTP_RATE_LIMIT,
    HTTP_SERVER_ERROR_MIN,
    HTTP_UNAUTHORIZED,
)
from stream_copier.core.config import CopierConfig, load_config
from stream_copier.exceptions import (
    APIError,
    ConfigError,
    FetchFailedError,
    InvalidConfigError,
    StreamCopierError,
    TransferInProgressError,
)
from stream_copier.utils.logging import log_with_context


# ---------------------------------------------------------------------------
# Shared option decorator
# ---------------------------------------------------------------------------


def common_options(f: Callable[..., None]) -> Callable[..., None]:
    """Decorator that adds options shared across subcommands that reach the API.

    Args:
        f: The Click command function to decorate.

    Returns:
        The decorated function with common options attached.
    """
    f = click.option(
        "--config",
        default="config.yaml",
        show_default=True,
        help="Path to config YAML",
    )(f)
    f = click.option(
        "--api_url",
        envvar=ENV_API_URL,
        default=None,
        help=f"GraphQL endpoint (overrides config; env {ENV_API_URL})",
    )(f)
    f = click.option(
        "--token",
        envvar=ENV_API_TOKEN,
        default=None,
        help=f"API bearer token (overrides config; env {ENV_API_TOKEN})",
    )(f)
    f = click.option(
        "--verbose",
        "-v",
        is_flag=True,
        default=False,
        help="Enable verbose console logging (shows DEBUG level messages)",
    )(f)
    f = click.option(
        "--debug_api",
        is_flag=True,
        default=False,
        help="Log GraphQL request/response bodies (tokens are redacted)",
    )(f)
    f = click.option(
        "--json_logs",
        is_flag=True,
        default=False,
        help="Emit log records as JSON lines",
    )(f)
    return f


def build_config(config: str, api_url: str | None, token: str | None) -> CopierConfig:
    """Load the YAML config and apply CLI/environment overrides.

    Args:
        config: Path to the config YAML.
        api_url: Endpoint override, or None.
        token: Token override, or None.

    Returns:
        The effective configuration.
    """
    return load_config(Path(config)).with_overrides(api_url=api_url, api_token=token)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group(
    invoke_without_command=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)
@click.version_option(version=stream_copier.__version__, prog_name="stream-copier")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Copy messages from one stream to another by subject filter.

    Args:
        ctx: The Click context (injected by ``@click.pass_context``).
    """
    if ctx.invoked_subcommand is None:
        click.echo(ctx.get_help())


# ---------------------------------------------------------------------------
# Error handlers
# ---------------------------------------------------------------------------


def handle_api_error(e: APIError) -> None:
    """Handle API errors with status-specific hints.

    Args:
        e: The API error to handle.
    """
    status = e.status_code
    if status in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
        log_with_context(logging.ERROR, f"API rejected the request ({status}): {e}")
        log_with_context(
            logging.INFO,
            f"Check the token passed with --token or {ENV_API_TOKEN}.",
        )
    elif status == HTTP_RATE_LIMIT:
        log_with_context(logging.ERROR, f"Rate limit exceeded: {e}")
        log_with_context(
            logging.INFO, "Wait a moment and start a fresh run with a smaller limit."
        )
    elif status is not None and status >= HTTP_SERVER_ERROR_MIN:
        log_with_context(logging.ERROR, f"Server error from API: {e}")
        log_with_context(
            logging.INFO, "This is likely a temporary issue. Please try again later."
        )
    else:
        log_with_context(logging.ERROR, f"API error: {e}")


def handle_exception(e: BaseException) -> None:
    """Handle different types of exceptions.

    Args:
        e: The exception to handle.
    """
    if isinstance(e, InvalidConfigError):
        log_with_context(logging.ERROR, f"Invalid copy request: {e}")
    elif isinstance(e, ConfigError):
        log_with_context(logging.ERROR, f"Configuration error: {e}")
        log_with_context(
            logging.INFO, "Run 'stream-copier init-config' to create a fresh config."
        )
    elif isinstance(e, FetchFailedError):
        log_with_context(logging.ERROR, f"Could not read source stream: {e}")
        log_with_context(
            logging.INFO, "Nothing was copied. You can retry with a fresh run."
        )
    elif isinstance(e, APIError):
        handle_api_error(e)
    elif isinstance(e, TransferInProgressError):
        log_with_context(logging.ERROR, str(e))
    elif isinstance(e, StreamCopierError):
        log_with_context(logging.ERROR, str(e))
    elif isinstance(e, KeyboardInterrupt):
        log_with_context(logging.WARNING, "Copy interrupted by user.")
        log_with_context(
            logging.INFO,
            "Messages already published stay on the target stream.",
        )
    else:
        log_with_context(logging.ERROR, f"Copy failed: {e}", exc_info=True)
