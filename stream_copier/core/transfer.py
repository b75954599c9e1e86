"""The stream-to-stream copy run.

A :class:`TransferRun` fetches a bounded batch of messages from the source
stream and republishes them one at a time, in fetch order. Per-message
publish failures are counted and logged and the loop moves on; only a
failed fetch (or an unexpected internal error) fails the run. Cancellation
is cooperative: the flag is checked before each publish, never during one.
"""

from __future__ import annotations

import logging
import threading
import uuid
from typing import TYPE_CHECKING, Callable

from stream_copier.constants import PROGRESS_LOG_INTERVAL
from stream_copier.core.state import TransferState
from stream_copier.exceptions import (
    FetchFailedError,
    StreamCopierError,
    TransferStateError,
)
from stream_copier.types import (
    FailedPublish,
    LogKind,
    Message,
    PublishAck,
    RunStatus,
    TransferRequest,
    TransferSnapshot,
)
from stream_copier.utils.logging import log_failed_publish, log_with_context

if TYPE_CHECKING:
    from stream_copier.services.streams_api import MessageAPI

ProgressCallback = Callable[[TransferSnapshot], None]


def _plural(count: int, word: str) -> str:
    return f"{count} {word}{'' if count == 1 else 's'}"


def format_summary(status: RunStatus, copied: int, errors: int, total: int) -> str:
    """Terminal summary line, e.g. ``Done! Copied 2, 1 error (total 3).``"""
    text = f"Copied {copied}"
    if errors:
        text += f", {_plural(errors, 'error')}"
    text += f" (total {total})."
    if status == RunStatus.CANCELLED:
        return f"Cancelled. {text}"
    return f"Done! {text}"


class TransferRun:
    """One execution of the fetch + transfer pipeline for a TransferRequest.

    The run's task is the only writer of its state apart from the cancelled
    flag. Other threads may call :meth:`cancel` and :meth:`snapshot` at any
    time.
    """

    def __init__(
        self,
        request: TransferRequest,
        api: MessageAPI,
        progress_log_interval: int = PROGRESS_LOG_INTERVAL,
        on_progress: ProgressCallback | None = None,
        run_id: str | None = None,
    ) -> None:
        if progress_log_interval <= 0:
            raise ValueError(
                f"progress_log_interval must be positive, got {progress_log_interval}"
            )
        self.request = request
        self.api = api
        self.progress_log_interval = progress_log_interval
        self.on_progress = on_progress
        self.run_id = run_id or uuid.uuid4().hex[:12]
        self.state = TransferState()
        self._cancel_event = threading.Event()

    # ------------------------------------------------------------------
    # Observer-facing API
    # ------------------------------------------------------------------

    @property
    def status(self) -> RunStatus:
        return self.state.status

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> bool:
        """Ask the run to stop before its next publish.

        Idempotent. Returns False (and does nothing) once the run is terminal.
        """
        with self.state.lock:
            if self.state.status.is_terminal:
                return False
            already = self._cancel_event.is_set()
            self._cancel_event.set()
            self.state.progress.mark_cancelled()
        if not already:
            log_with_context(
                logging.INFO,
                "Cancellation requested; stopping before the next message",
                run_id=self.run_id,
            )
        return True

    def snapshot(self, tail: int | None = None) -> TransferSnapshot:
        return self.state.snapshot(self.run_id, tail)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(self) -> TransferSnapshot:
        """Run fetch then transfer to a terminal state and return the final snapshot.

        Any exception other than a per-message publish error or a fetch
        failure moves the run to FAILED with the error recorded, then
        propagates.

        Raises:
            TransferStateError: If the run has already been executed.
        """
        with self.state.lock:
            if self.state.status != RunStatus.IDLE:
                raise TransferStateError(
                    f"run {self.run_id} already executed (status {self.state.status.value})"
                )
            self.state.transition(RunStatus.FETCHING)

        try:
            return self._run()
        except Exception as e:
            self._record_crash(e)
            raise

    def _run(self) -> TransferSnapshot:
        log_with_context(
            logging.INFO,
            f"Fetching {self.request.describe()}...",
            run_id=self.run_id,
            source=self.request.source_queue,
        )

        messages = self._fetch()
        if messages is None:
            return self._finish()

        with self.state.lock:
            self.state.transition(RunStatus.TRANSFERRING)
            if not messages:
                self._append(LogKind.INFO, "No messages found matching the filter.")
                self.state.transition(RunStatus.COMPLETED)
        if not messages:
            return self._finish()

        with self.state.lock:
            self.state.progress.begin(len(messages))
            self._append(
                LogKind.SUCCESS, f"Found {_plural(len(messages), 'message')}"
            )
        self._notify()

        aborted = self._transfer(messages)

        with self.state.lock:
            progress = self.state.progress
            final_status = RunStatus.CANCELLED if aborted else RunStatus.COMPLETED
            self._append(
                LogKind.SUCCESS if final_status == RunStatus.COMPLETED else LogKind.INFO,
                format_summary(
                    final_status, progress.copied, progress.errors, progress.total
                ),
            )
            self.state.transition(final_status)
        return self._finish()

    def _fetch(self) -> list[Message] | None:
        """Fetch the batch; on failure record it and return None."""
        request = self.request
        try:
            return self.api.fetch_messages(
                request.source_queue, request.max_messages, request.subject_filter
            )
        except StreamCopierError as e:
            cause = e if isinstance(e, FetchFailedError) else FetchFailedError(str(e))
            with self.state.lock:
                self.state.error = str(cause)
                self._append(LogKind.ERROR, f"Failed to fetch messages: {cause}")
                self.state.transition(RunStatus.FAILED)
            log_with_context(
                logging.ERROR,
                f"Fetch from {request.source_queue} failed: {cause}",
                run_id=self.run_id,
            )
            return None

    def _record_crash(self, error: Exception) -> None:
        cause = str(error) or type(error).__name__
        with self.state.lock:
            self.state.error = cause
            self._append(LogKind.ERROR, f"Copy stopped by an internal error: {cause}")
            if not self.state.status.is_terminal:
                self.state.transition(RunStatus.FAILED)
        log_with_context(
            logging.ERROR,
            f"Run stopped by an unexpected error: {cause}",
            run_id=self.run_id,
            exc_info=True,
        )
        self._finish()

    def _transfer(self, messages: list[Message]) -> bool:
        """Publish each message in order, one at a time.

        Returns True if a cancellation stopped the loop early.
        """
        total = len(messages)
        target = self.request.target_queue

        for index, message in enumerate(messages):
            if self._cancel_event.is_set():
                with self.state.lock:
                    self.state.progress.mark_cancelled()
                    self._append(LogKind.INFO, "Copy aborted by user.")
                return True

            try:
                ack = self.api.publish(message.subject, message.payload)
            except StreamCopierError as e:
                self._record_failure(message, e)
            else:
                self._record_success(message, ack, is_last=index == total - 1)
                if ack.target_queue != target:
                    log_with_context(
                        logging.WARNING,
                        f"Message seq #{message.sequence} ({message.subject}) landed on "
                        f"{ack.target_queue}, not {target}",
                        run_id=self.run_id,
                        sequence=message.sequence,
                    )

            self._notify()
        return False

    def _record_success(self, message: Message, ack: PublishAck, is_last: bool) -> None:
        with self.state.lock:
            progress = self.state.progress
            progress.record_copied()
            self.state.acks.append(ack)
            if progress.copied % self.progress_log_interval == 0 or is_last:
                self._append(
                    LogKind.INFO,
                    f"Copied {progress.copied}/{progress.total} messages...",
                )
        log_with_context(
            logging.DEBUG,
            f"Published seq #{message.sequence} as {ack.target_queue} #{ack.assigned_sequence}",
            run_id=self.run_id,
            sequence=message.sequence,
        )

    def _record_failure(self, message: Message, error: Exception) -> None:
        cause = str(error) or type(error).__name__
        with self.state.lock:
            self.state.progress.record_error()
            self.state.failed_publishes.append(
                FailedPublish(
                    sequence=message.sequence,
                    subject=message.subject,
                    error=cause,
                )
            )
            self._append(
                LogKind.ERROR,
                f"Failed to copy seq #{message.sequence} ({message.subject}): {cause}",
            )
        log_failed_publish(
            self.run_id, message.sequence, message.subject, cause, message.payload
        )

    def _append(self, kind: LogKind, message: str) -> None:
        # Caller holds the state lock
        entry = self.state.log.append(kind, message)
        log_with_context(
            logging.DEBUG,
            f"[{entry.kind.value}] {entry.message}",
            run_id=self.run_id,
            log_id=entry.sequence_id,
        )

    def _emit(self, snapshot: TransferSnapshot) -> None:
        if self.on_progress is None:
            return
        try:
            self.on_progress(snapshot)
        except Exception as e:
            # A broken observer must not stop the copy
            log_with_context(
                logging.WARNING,
                f"Progress callback failed: {e}",
                run_id=self.run_id,
                exc_info=True,
            )

    def _notify(self) -> None:
        if self.on_progress is not None:
            self._emit(self.snapshot(tail=1))

    def _finish(self) -> TransferSnapshot:
        snapshot = self.snapshot()
        self._emit(snapshot)
        return snapshot
