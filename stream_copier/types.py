"""Shared type definitions for the stream copy tool.

Provides the enums, dataclasses and TypedDicts that flow through the copy
pipeline: API record shapes, the immutable request and message types, and
the read-only snapshot handed to observers.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, TypedDict

# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class ErrorKind(str, Enum):
    """Category attached to every StreamCopierError."""

    UNKNOWN = "UNKNOWN"
    CONFIG = "CONFIG"
    INVALID_CONFIG = "INVALID_CONFIG"
    API_ERROR = "API_ERROR"
    FETCH_FAILED = "FETCH_FAILED"
    PUBLISH_FAILED = "PUBLISH_FAILED"
    STATE = "STATE"
    IN_PROGRESS = "IN_PROGRESS"


class LogKind(str, Enum):
    """Severity of a run log entry."""

    INFO = "info"
    SUCCESS = "success"
    ERROR = "error"


class RunStatus(str, Enum):
    """Lifecycle state of a transfer run."""

    IDLE = "idle"
    FETCHING = "fetching"
    TRANSFERRING = "transferring"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.CANCELLED, RunStatus.FAILED)


# ---------------------------------------------------------------------------
# API record shapes (GraphQL responses)
# ---------------------------------------------------------------------------


class StreamRecord(TypedDict, total=False):
    """A stream entry from the ``streams`` query."""

    name: str
    subjects: list[str]
    messages: int


class MessageRecord(TypedDict, total=False):
    """A message entry from the ``streamMessages`` query."""

    sequence: int
    subject: str
    data: str
    published: str


# ---------------------------------------------------------------------------
# Internal tracking types
# ---------------------------------------------------------------------------


class FailedPublish(TypedDict):
    """A message that could not be republished."""

    sequence: int
    subject: str
    error: str


# ---------------------------------------------------------------------------
# Domain objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StreamInfo:
    """Summary of a stream as listed by the API."""

    name: str
    subjects: tuple[str, ...] = ()
    messages: int = 0

    @classmethod
    def from_api(cls, record: StreamRecord) -> StreamInfo:
        return cls(
            name=record["name"],
            subjects=tuple(record.get("subjects") or ()),
            messages=int(record.get("messages") or 0),
        )


@dataclass(frozen=True)
class TransferRequest:
    """Immutable configuration for one copy run.

    Build instances through :func:`stream_copier.core.validation.validate_request`
    so the source/target/limit rules are enforced before any I/O.
    """

    source_queue: str
    target_queue: str
    subject_filter: str | None = None
    max_messages: int = 100

    def describe(self) -> str:
        """Human-readable description used in log lines."""
        text = f'up to {self.max_messages} messages from "{self.source_queue}"'
        if self.subject_filter:
            text += f' with filter "{self.subject_filter}"'
        return text


@dataclass(frozen=True)
class Message:
    """A message fetched from the source stream.

    ``payload`` is republished verbatim and never interpreted.
    """

    sequence: int
    subject: str
    payload: str
    published_at: str | None = None

    @classmethod
    def from_api(cls, record: MessageRecord) -> Message:
        """Build a Message from a ``streamMessages`` record.

        Raises:
            KeyError: If ``sequence`` or ``subject`` is missing.
            ValueError: If ``sequence`` is not an integer.
        """
        return cls(
            sequence=int(record["sequence"]),
            subject=record["subject"],
            payload=record.get("data") or "",
            published_at=record.get("published"),
        )


@dataclass(frozen=True)
class PublishAck:
    """Acknowledgement returned by the ``publish`` mutation."""

    target_queue: str
    assigned_sequence: int


@dataclass(frozen=True)
class LogEntry:
    """One line of the append-only run log."""

    sequence_id: int
    kind: LogKind
    message: str
    timestamp: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.sequence_id,
            "kind": self.kind.value,
            "message": self.message,
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass(frozen=True)
class TransferSnapshot:
    """Read-only view of a run, safe to hand to other threads."""

    run_id: str
    status: RunStatus
    total: int
    copied: int
    errors: int
    cancelled: bool
    log_tail: tuple[LogEntry, ...] = ()
    error: str | None = None

    @property
    def percent(self) -> int:
        """Share of the batch copied successfully, rounded to a whole percent."""
        if self.total <= 0:
            return 0
        return round(self.copied / self.total * 100)

    @property
    def processed(self) -> int:
        return self.copied + self.errors

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal
