"""No-op publishing for dry-run mode.

Mirrors the interface of :class:`StreamsAPI`, delegating reads to a real
instance so the fetch is exercised for real, but logs publishes instead of
sending them. Acknowledgements carry synthetic, increasing sequence numbers
on the requested target stream.

The copy command injects this in place of the real API when ``--dry_run``
is given, so the transfer loop itself has no dry-run branches.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from stream_copier.types import Message, PublishAck, StreamInfo
from stream_copier.utils.logging import log_with_context

if TYPE_CHECKING:
    from stream_copier.services.streams_api import StreamsAPI


class DryRunStreamsAPI:
    """Read-through, publish-nothing stand-in for StreamsAPI."""

    def __init__(self, delegate: StreamsAPI, target_queue: str) -> None:
        self._delegate = delegate
        self._target_queue = target_queue
        self._counter = 0
        self.published: list[tuple[str, str]] = []

    def list_streams(self) -> list[StreamInfo]:
        return self._delegate.list_streams()

    def fetch_messages(
        self, queue: str, limit: int, subject_filter: str | None = None
    ) -> list[Message]:
        return self._delegate.fetch_messages(queue, limit, subject_filter)

    def publish(self, subject: str, payload: str) -> PublishAck:
        self._counter += 1
        self.published.append((subject, payload))
        log_with_context(
            logging.DEBUG,
            f"[DRY RUN] Would publish {len(payload)} chars on {subject}",
            subject=subject,
        )
        return PublishAck(
            target_queue=self._target_queue,
            assigned_sequence=self._counter,
        )

    def close(self) -> None:
        self._delegate.close()
