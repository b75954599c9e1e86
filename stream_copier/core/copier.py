"""Session facade over copy runs.

:class:`StreamCopier` is what a UI or CLI driver talks to: it validates a
request, starts a :class:`TransferRun` inline or on a worker thread, and
exposes cancel/observe on the run handle. One copier allows at most one
active run at a time.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Any

from stream_copier.core.config import CopierConfig
from stream_copier.core.run_logging import log_transfer_outcome
from stream_copier.core.transfer import ProgressCallback, TransferRun
from stream_copier.core.validation import validate_request
from stream_copier.exceptions import TransferInProgressError
from stream_copier.types import TransferSnapshot
from stream_copier.utils.logging import log_with_context

if TYPE_CHECKING:
    from stream_copier.services.streams_api import MessageAPI


class StreamCopier:
    """Starts, cancels and observes copy runs for one operator session."""

    def __init__(
        self,
        api: MessageAPI,
        config: CopierConfig | None = None,
        dry_run: bool = False,
    ) -> None:
        self.api = api
        self.config = config or CopierConfig()
        self.dry_run = dry_run
        self._lock = threading.Lock()
        self._active: TransferRun | None = None
        self._threads: dict[str, threading.Thread] = {}

    @property
    def active_run(self) -> TransferRun | None:
        """The current non-terminal run, if any."""
        with self._lock:
            if self._active is not None and not self._active.status.is_terminal:
                return self._active
            return None

    def start_transfer(
        self,
        source: str,
        target: str,
        subject_filter: str | None = None,
        max_messages: Any = None,
        background: bool = False,
        on_progress: ProgressCallback | None = None,
    ) -> TransferRun:
        """Validate a request and start a run.

        Args:
            source: Source stream name.
            target: Target stream name.
            subject_filter: Optional subject pattern.
            max_messages: Raw limit; unparseable values fall back to the
                configured default.
            background: Run on a daemon worker thread and return immediately.
            on_progress: Called with a snapshot after every message.

        Returns:
            The run handle. Terminal already when ``background`` is False.

        Raises:
            InvalidConfigError: If the request is invalid. No run is created
                and no fetch happens.
            TransferInProgressError: If another run is still active.
        """
        request = validate_request(
            source,
            target,
            subject_filter,
            max_messages,
            default_max_messages=self.config.default_max_messages,
        )

        with self._lock:
            if self._active is not None and not self._active.status.is_terminal:
                raise TransferInProgressError(
                    f"Run {self._active.run_id} is still {self._active.status.value}"
                )
            run = TransferRun(
                request,
                self.api,
                progress_log_interval=self.config.progress_log_interval,
                on_progress=on_progress,
            )
            self._active = run

        log_with_context(
            logging.INFO,
            f"Starting copy run {run.run_id}: "
            f"{request.source_queue} -> {request.target_queue}",
            run_id=run.run_id,
        )

        if background:
            thread = threading.Thread(
                target=self._execute,
                args=(run, True),
                name=f"transfer-{run.run_id}",
                daemon=True,
            )
            self._threads[run.run_id] = thread
            thread.start()
        else:
            self._execute(run, background=False)
        return run

    def _execute(self, run: TransferRun, background: bool) -> None:
        try:
            run.execute()
        except Exception:
            # Already recorded on the run and logged; nobody is left to catch it
            if not background:
                raise
        finally:
            log_transfer_outcome(run, dry_run=self.dry_run)

    def cancel(self, run: TransferRun) -> bool:
        """Request cooperative cancellation. No-op (False) once the run is terminal."""
        return run.cancel()

    def observe(self, run: TransferRun, tail: int | None = None) -> TransferSnapshot:
        """Snapshot of the run's counters, status and the last ``tail`` log entries."""
        return run.snapshot(self.config.log_tail_size if tail is None else tail)

    def wait(self, run: TransferRun, timeout: float | None = None) -> bool:
        """Block until a background run finishes. Returns True if it is terminal."""
        thread = self._threads.get(run.run_id)
        if thread is not None:
            thread.join(timeout)
            if not thread.is_alive():
                self._threads.pop(run.run_id, None)
        return run.status.is_terminal

    def is_running(self, run: TransferRun) -> bool:
        """True while the run's worker thread is still alive."""
        thread = self._threads.get(run.run_id)
        return thread is not None and thread.is_alive()
