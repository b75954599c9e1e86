"""
Run state container for a stream copy.

Mutable tracking state for one run, owned by the run's task and separated
from the immutable TransferRequest. Observers never touch these objects;
they read a TransferSnapshot produced under the state lock.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from stream_copier.exceptions import TransferStateError
from stream_copier.types import (
    FailedPublish,
    LogEntry,
    LogKind,
    PublishAck,
    RunStatus,
    TransferSnapshot,
)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Progress counters
# ---------------------------------------------------------------------------


@dataclass
class TransferProgress:
    """Counters for one run.

    ``copied`` and ``errors`` only ever grow, their sum never exceeds
    ``total``, and ``cancelled`` is never cleared once set.
    """

    total: int = 0
    copied: int = 0
    errors: int = 0
    cancelled: bool = False

    def __post_init__(self) -> None:
        if min(self.total, self.copied, self.errors) < 0:
            raise TransferStateError("progress counters must be non-negative")
        if self.copied + self.errors > self.total:
            raise TransferStateError(
                f"copied + errors ({self.copied + self.errors}) exceeds total ({self.total})"
            )

    @property
    def processed(self) -> int:
        return self.copied + self.errors

    def begin(self, total: int) -> None:
        """Fix the batch size once the fetch has completed."""
        if total < 0:
            raise TransferStateError(f"total must be non-negative, got {total}")
        if self.processed:
            raise TransferStateError("cannot reset total after messages were processed")
        self.total = total

    def record_copied(self) -> None:
        self._check_room()
        self.copied += 1

    def record_error(self) -> None:
        self._check_room()
        self.errors += 1

    def mark_cancelled(self) -> None:
        self.cancelled = True

    def _check_room(self) -> None:
        if self.processed >= self.total:
            raise TransferStateError(
                f"all {self.total} messages already accounted for"
            )


# ---------------------------------------------------------------------------
# Append-only log
# ---------------------------------------------------------------------------


class TransferLog:
    """Append-only audit trail of a run.

    Entry ids are assigned at append time, start at 0 and strictly increase.
    """

    def __init__(self, clock: Callable[[], datetime] = _utc_now) -> None:
        self._entries: list[LogEntry] = []
        self._next_id = 0
        self._clock = clock

    def append(self, kind: LogKind, message: str) -> LogEntry:
        entry = LogEntry(
            sequence_id=self._next_id,
            kind=LogKind(kind),
            message=message,
            timestamp=self._clock(),
        )
        self._next_id += 1
        self._entries.append(entry)
        return entry

    def entries(self) -> list[LogEntry]:
        """Return a copy of every entry, oldest first."""
        return list(self._entries)

    def tail(self, count: int | None = None) -> tuple[LogEntry, ...]:
        """Return the last ``count`` entries (all of them when ``count`` is None)."""
        if count is None:
            return tuple(self._entries)
        if count <= 0:
            return ()
        return tuple(self._entries[-count:])


# ---------------------------------------------------------------------------
# Composed run state
# ---------------------------------------------------------------------------

# Legal status transitions; anything else is a programming error
_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.IDLE: frozenset({RunStatus.FETCHING}),
    RunStatus.FETCHING: frozenset({RunStatus.TRANSFERRING, RunStatus.FAILED}),
    RunStatus.TRANSFERRING: frozenset(
        {RunStatus.COMPLETED, RunStatus.CANCELLED, RunStatus.FAILED}
    ),
    RunStatus.COMPLETED: frozenset(),
    RunStatus.CANCELLED: frozenset(),
    RunStatus.FAILED: frozenset(),
}


@dataclass
class TransferState:
    """All mutable state of one run.

    - ``status``: position in the run state machine
    - ``progress``: counters
    - ``log``: append-only run log
    - ``failed_publishes`` / ``acks``: per-message outcomes for the report
    """

    status: RunStatus = RunStatus.IDLE
    progress: TransferProgress = field(default_factory=TransferProgress)
    log: TransferLog = field(default_factory=TransferLog)
    failed_publishes: list[FailedPublish] = field(default_factory=list)
    acks: list[PublishAck] = field(default_factory=list)
    error: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None
    lock: threading.Lock = field(default_factory=threading.Lock, repr=False)

    def transition(self, new_status: RunStatus) -> None:
        """Move to ``new_status``, rejecting transitions the state machine forbids."""
        if new_status not in _TRANSITIONS[self.status]:
            raise TransferStateError(
                f"illegal transition {self.status.value} -> {new_status.value}"
            )
        self.status = new_status
        if new_status == RunStatus.FETCHING:
            self.started_at = _utc_now()
        if new_status.is_terminal:
            self.finished_at = _utc_now()

    @property
    def duration(self) -> float | None:
        """Seconds between start and finish, None until the run is terminal."""
        if self.started_at is None or self.finished_at is None:
            return None
        return (self.finished_at - self.started_at).total_seconds()

    def snapshot(self, run_id: str, tail: int | None = None) -> TransferSnapshot:
        """Consistent read-only copy of counters, status and log tail."""
        with self.lock:
            return TransferSnapshot(
                run_id=run_id,
                status=self.status,
                total=self.progress.total,
                copied=self.progress.copied,
                errors=self.progress.errors,
                cancelled=self.progress.cancelled,
                log_tail=self.log.tail(tail),
                error=self.error,
            )
