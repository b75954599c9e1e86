"""
Terminal outcome logging for copy runs.

Kept apart from ``transfer.py`` so the run itself stays focused on control
flow. Records are structured: key statistics are passed as kwargs so they
appear as extra fields in JSON log output while staying readable on the
console.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from stream_copier.types import RunStatus
from stream_copier.utils.logging import log_with_context

if TYPE_CHECKING:
    from stream_copier.core.transfer import TransferRun


def collect_statistics(run: TransferRun) -> dict[str, Any]:
    """Gather run statistics into a flat dict.

    Args:
        run: The run whose state holds the counters.

    Returns:
        Dict with keys: status, total, copied, errors, cancelled,
        misrouted, duration_seconds.
    """
    snapshot = run.snapshot(tail=0)
    target = run.request.target_queue
    with run.state.lock:
        misrouted = sum(1 for ack in run.state.acks if ack.target_queue != target)
    return {
        "status": snapshot.status.value,
        "total": snapshot.total,
        "copied": snapshot.copied,
        "errors": snapshot.errors,
        "cancelled": snapshot.cancelled,
        "misrouted": misrouted,
        "duration_seconds": run.state.duration,
    }


def log_transfer_outcome(run: TransferRun, dry_run: bool = False) -> None:
    """Log the final status of a run with a summary of its counters.

    Args:
        run: A run that has reached a terminal state.
        dry_run: Whether publishes were simulated.
    """
    stats = collect_statistics(run)
    status = run.status
    prefix = "[DRY RUN] " if dry_run else ""
    route = f"{run.request.source_queue} -> {run.request.target_queue}"

    # --- Outcome header ---------------------------------------------------
    if status == RunStatus.FAILED:
        log_with_context(
            logging.ERROR,
            f"{prefix}COPY FAILED ({route}): {run.state.error}",
            run_id=run.run_id,
            outcome="failed",
        )
        return

    if status == RunStatus.CANCELLED:
        log_with_context(
            logging.WARNING,
            f"{prefix}COPY CANCELLED ({route})",
            run_id=run.run_id,
            outcome="cancelled",
        )
    elif stats["errors"]:
        log_with_context(
            logging.WARNING,
            f"{prefix}COPY COMPLETED WITH ERRORS ({route})",
            run_id=run.run_id,
            outcome="completed_with_errors",
        )
    else:
        log_with_context(
            logging.INFO,
            f"{prefix}COPY COMPLETED SUCCESSFULLY ({route})",
            run_id=run.run_id,
            outcome="completed",
        )

    # --- Statistics --------------------------------------------------------
    for key in ("total", "copied", "errors"):
        log_with_context(
            logging.INFO,
            f"Messages {key}: {stats[key]}",
            run_id=run.run_id,
            stat=key,
            count=stats[key],
        )

    if stats["misrouted"]:
        log_with_context(
            logging.WARNING,
            f"{stats['misrouted']} message(s) were stored on a stream other than "
            f"{run.request.target_queue}; check the target stream's subjects",
            run_id=run.run_id,
            stat="misrouted",
            count=stats["misrouted"],
        )

    if stats["duration_seconds"] is not None:
        log_with_context(
            logging.INFO,
            f"Duration: {stats['duration_seconds']:.1f} seconds",
            run_id=run.run_id,
            duration_seconds=stats["duration_seconds"],
        )
