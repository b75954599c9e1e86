#!/usr/bin/env python3
"""
Main execution module for the stream copy tool.

Assembles the click group from the subcommand modules and provides the
console-script entry point.
"""

from __future__ import annotations

# Importing the subcommand modules registers them on the group
from stream_copier.cli import copy_cmd, init_cmd, streams_cmd  # noqa: F401
from stream_copier.cli.common import cli, handle_exception

__all__ = ["cli", "handle_exception", "main"]


def main() -> None:
    """Main entry point for the stream copy tool."""
    cli()


if __name__ == "__main__":
    main()
