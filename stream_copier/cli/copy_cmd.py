"""CLI command handler for the copy workflow."""

from __future__ import annotations

import logging
import sys

import click
from tqdm import tqdm

from stream_copier.cli.common import (
    build_config,
    cli,
    common_options,
    handle_exception,
)
from stream_copier.cli.report import (
    create_output_directory,
    generate_report,
    print_transfer_summary,
)
from stream_copier.constants import EXIT_CANCELLED, EXIT_FAILURE, EXIT_OK
from stream_copier.core.copier import StreamCopier
from stream_copier.core.transfer import TransferRun
from stream_copier.services.dry_run import DryRunStreamsAPI
from stream_copier.services.streams_api import StreamsAPI
from stream_copier.types import RunStatus, TransferSnapshot
from stream_copier.utils.logging import log_with_context, setup_logger

# Seconds between checks for Ctrl-C while waiting on the worker thread
WAIT_POLL_INTERVAL = 0.2


class ProgressBar:
    """tqdm bar driven by run snapshots, created once the batch size is known."""

    def __init__(self, desc: str, disable: bool = False) -> None:
        self.desc = desc
        self.disable = disable
        self._bar: tqdm | None = None

    def __call__(self, snapshot: TransferSnapshot) -> None:
        if self._bar is None:
            if not snapshot.total:
                return
            self._bar = tqdm(
                total=snapshot.total, desc=self.desc, unit="msg", disable=self.disable
            )
        self._bar.n = snapshot.processed
        if snapshot.errors:
            self._bar.set_postfix(errors=snapshot.errors, refresh=False)
        self._bar.refresh()

    def close(self) -> None:
        if self._bar is not None:
            self._bar.close()


def exit_code_for(status: RunStatus) -> int:
    """Map a terminal run status to the process exit code."""
    if status == RunStatus.COMPLETED:
        return EXIT_OK
    if status == RunStatus.CANCELLED:
        return EXIT_CANCELLED
    return EXIT_FAILURE


def wait_for_run(copier: StreamCopier, run: TransferRun) -> None:
    """Wait for a background run, turning the first Ctrl-C into a cancel.

    Returns once the run is terminal or its worker thread is gone. A second
    Ctrl-C propagates KeyboardInterrupt to the caller.
    """
    interrupted = False
    while True:
        try:
            if copier.wait(run, timeout=WAIT_POLL_INTERVAL):
                return
            if not copier.is_running(run):
                # Worker exited without a terminal status
                return
        except KeyboardInterrupt:
            if interrupted:
                raise
            interrupted = True
            copier.cancel(run)
            log_with_context(
                logging.WARNING,
                "Cancelling after the current message; press Ctrl-C again to exit immediately.",
                run_id=run.run_id,
            )


# ---------------------------------------------------------------------------
# copy subcommand
# ---------------------------------------------------------------------------


@cli.command("copy")
@common_options
@click.option("--source", required=True, help="Stream to read messages from")
@click.option("--target", required=True, help="Stream the messages should land on")
@click.option(
    "--subject_filter",
    default="",
    help="Subject pattern, e.g. orders.> or payments.* (empty copies all)",
)
@click.option(
    "--max_messages",
    default=None,
    help="Copy at most this many recent messages (default from config, 100)",
)
@click.option(
    "--dry_run",
    is_flag=True,
    default=False,
    help="Fetch for real but only log the publishes",
)
@click.option(
    "--output_dir",
    default=None,
    help="Directory for the run log and report (default: stream_copier_output/)",
)
@click.option(
    "--no_report",
    is_flag=True,
    default=False,
    help="Do not write transfer_report.yaml",
)
@click.option(
    "--no_progress",
    is_flag=True,
    default=False,
    help="Hide the progress bar",
)
def copy(
    config: str,
    api_url: str | None,
    token: str | None,
    verbose: bool,
    debug_api: bool,
    json_logs: bool,
    source: str,
    target: str,
    subject_filter: str,
    max_messages: str | None,
    dry_run: bool,
    output_dir: str | None,
    no_report: bool,
    no_progress: bool,
) -> None:
    """Copy recent messages from SOURCE to TARGET, one at a time, in order.

    Args:
        config: Path to config YAML.
        api_url: GraphQL endpoint override.
        token: API token override.
        verbose: Enable verbose console logging.
        debug_api: Log GraphQL request/response bodies.
        json_logs: Emit JSON log lines.
        source: Source stream name.
        target: Target stream name.
        subject_filter: Optional subject pattern.
        max_messages: Message limit, parsed permissively.
        dry_run: Simulate publishes.
        output_dir: Base directory for run artifacts.
        no_report: Skip the YAML report.
        no_progress: Hide the progress bar.
    """
    run_dir = create_output_directory(output_dir)
    setup_logger(verbose, debug_api, run_dir, json_logs)
    log_with_context(logging.INFO, f"Output directory: {run_dir}")

    progress = ProgressBar(f"{source} -> {target}", disable=no_progress)
    api = None
    try:
        cfg = build_config(config, api_url, token)
        api = StreamsAPI.from_config(cfg)
        if dry_run:
            api = DryRunStreamsAPI(api, target)
        copier = StreamCopier(api, cfg, dry_run=dry_run)

        run = copier.start_transfer(
            source,
            target,
            subject_filter,
            max_messages,
            background=True,
            on_progress=progress,
        )
        wait_for_run(copier, run)
    except KeyboardInterrupt as e:
        handle_exception(e)
        sys.exit(EXIT_CANCELLED)
    except Exception as e:
        handle_exception(e)
        sys.exit(EXIT_FAILURE)
    finally:
        progress.close()
        if api is not None:
            api.close()

    snapshot = copier.observe(run)
    report_file = None
    if not no_report:
        report_file = generate_report(run, run_dir, dry_run=dry_run)
    print_transfer_summary(snapshot, run.request, dry_run, report_file)

    sys.exit(exit_code_for(snapshot.status))
