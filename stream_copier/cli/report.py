"""
Report generation for stream copy runs
"""

import datetime
import os
from typing import Any, Dict, List, Optional

import yaml

from stream_copier.core.run_logging import collect_statistics
from stream_copier.types import RunStatus
from stream_copier.utils.logging import logger

DEFAULT_OUTPUT_ROOT = "stream_copier_output"

_STATUS_LABELS = {
    RunStatus.COMPLETED: "COMPLETE",
    RunStatus.CANCELLED: "CANCELLED",
    RunStatus.FAILED: "FAILED",
}


def print_transfer_summary(snapshot, request, dry_run=False, report_file=None):
    """Print a summary of a finished run to the console."""
    label = _STATUS_LABELS.get(snapshot.status, snapshot.status.value.upper())
    if snapshot.status == RunStatus.COMPLETED and snapshot.errors:
        label = "COMPLETE WITH WARNINGS"

    print("\n" + "=" * 80)
    print(f"{'DRY RUN ' if dry_run else ''}COPY SUMMARY: {label}")
    print("=" * 80)
    print(f"Source: {request.source_queue}")
    print(f"Target: {request.target_queue}")
    if request.subject_filter:
        print(f"Subject filter: {request.subject_filter}")
    print(f"Progress: {snapshot.copied}/{snapshot.total} ({snapshot.percent}%)")
    if snapshot.errors:
        print(f"Errors: {snapshot.errors}")
    if snapshot.error:
        print(f"Failure: {snapshot.error}")

    if report_file:
        print(f"\nDetailed report saved to {report_file}")
    if dry_run:
        print("\nNothing was published. Run again without --dry_run to copy.")
    print("=" * 80)


def create_output_directory(base_dir: Optional[str] = None) -> str:
    """Create a timestamped output directory for this run."""
    timestamp = datetime.datetime.now().strftime("%Y%m%d_%H%M%S")
    run_output_dir = os.path.join(base_dir or DEFAULT_OUTPUT_ROOT, f"run_{timestamp}")
    os.makedirs(run_output_dir, exist_ok=True)
    return run_output_dir


def _recommendations(run, stats: Dict[str, Any]) -> List[Dict[str, str]]:
    recommendations = []
    if run.status == RunStatus.FAILED and stats["total"]:
        recommendations.append(
            {
                "type": "internal_error",
                "message": f"The run stopped after {stats['copied']} of {stats['total']} message(s) because of an unexpected error: {run.state.error}. Messages already copied were not rolled back.",
                "severity": "error",
            }
        )
    elif run.status == RunStatus.FAILED:
        recommendations.append(
            {
                "type": "fetch_failed",
                "message": "The source stream could not be read; nothing was copied. Start a fresh run once the API is reachable.",
                "severity": "error",
            }
        )
    if stats["errors"]:
        sequences = ", ".join(
            str(failed["sequence"]) for failed in run.state.failed_publishes
        )
        recommendations.append(
            {
                "type": "failed_messages",
                "message": f"{stats['errors']} message(s) failed to publish (sequences: {sequences}). Publishes are attempted once; copy them again with a narrower subject filter if needed.",
                "severity": "warning",
            }
        )
    if run.status == RunStatus.CANCELLED:
        remaining = stats["total"] - stats["copied"] - stats["errors"]
        recommendations.append(
            {
                "type": "cancelled",
                "message": f"The run was cancelled with {remaining} message(s) not attempted. Already copied messages were not rolled back.",
                "severity": "info",
            }
        )
    if stats["misrouted"]:
        recommendations.append(
            {
                "type": "misrouted",
                "message": f"{stats['misrouted']} message(s) were stored on a stream other than {run.request.target_queue}. Messages are routed by subject; make sure the target stream captures the copied subjects.",
                "severity": "warning",
            }
        )
    return recommendations


def generate_report(
    run, output_dir: str, dry_run: bool = False, output_file: str = "transfer_report.yaml"
) -> str:
    """Write a YAML report for a finished run and return its path."""
    report_path = os.path.join(output_dir, output_file)
    stats = collect_statistics(run)
    request = run.request
    state = run.state

    with state.lock:
        failed = [dict(failed) for failed in state.failed_publishes]
        misrouted = [
            {
                "stream": ack.target_queue,
                "sequence": ack.assigned_sequence,
            }
            for ack in state.acks
            if ack.target_queue != request.target_queue
        ]
        log_entries = [entry.to_dict() for entry in state.log.entries()]
        started_at = state.started_at.isoformat() if state.started_at else None
        finished_at = state.finished_at.isoformat() if state.finished_at else None

    if failed:
        logger.warning(f"Run {run.run_id} finished with {len(failed)} failed message(s)")

    report = {
        "transfer_summary": {
            "run_id": run.run_id,
            "generated_at": datetime.datetime.now().isoformat(),
            "dry_run": dry_run,
            "source": request.source_queue,
            "target": request.target_queue,
            "subject_filter": request.subject_filter,
            "max_messages": request.max_messages,
            "started_at": started_at,
            "finished_at": finished_at,
            "error": state.error,
            **stats,
        },
        "failed_messages": failed,
        "misrouted_publishes": misrouted,
        "log": log_entries,
        "recommendations": _recommendations(run, stats),
    }

    os.makedirs(output_dir, exist_ok=True)
    with open(report_path, "w") as f:
        yaml.safe_dump(report, f, default_flow_style=False, sort_keys=False)

    logger.info(f"Transfer report generated: {report_path}")
    return report_path
