"""Unit test configuration and shared fixtures."""

from __future__ import annotations

import logging
from typing import Any, Callable
from unittest.mock import MagicMock

import pytest

import stream_copier.utils.logging as log_module
from stream_copier.exceptions import FetchFailedError, PublishFailedError
from stream_copier.types import Message, PublishAck

# ---------------------------------------------------------------------------
# Scripted API double
# ---------------------------------------------------------------------------


class FakeStreamsAPI:
    """In-memory stand-in for StreamsAPI.

    - ``messages``: what ``fetch_messages`` returns (last ``limit`` of them)
    - ``fetch_error``: raised by ``fetch_messages`` instead
    - ``fail_sequences``: payloads of these sequences fail to publish
    - ``ack_stream``: stream named in acks (defaults to ``target``)
    - ``on_publish``: ``hook(attempt_index, subject, payload)`` called before
      each publish resolves, for cancelling mid-run
    """

    def __init__(
        self,
        messages: list[Message] | None = None,
        fetch_error: Exception | None = None,
        fail_sequences: tuple[int, ...] = (),
        target: str = "B",
        ack_stream: str | None = None,
        on_publish: Callable[[int, str, str], None] | None = None,
    ) -> None:
        self.messages = list(messages or [])
        self.fetch_error = fetch_error
        self.fail_payloads = {
            m.payload for m in self.messages if m.sequence in fail_sequences
        }
        self.target = target
        self.ack_stream = ack_stream
        self.on_publish = on_publish
        self.fetch_calls: list[tuple[str, int, str | None]] = []
        self.attempts: list[tuple[str, str]] = []
        self.published: list[tuple[str, str]] = []
        self.closed = False

    def fetch_messages(
        self, queue: str, limit: int, subject_filter: str | None = None
    ) -> list[Message]:
        self.fetch_calls.append((queue, limit, subject_filter))
        if self.fetch_error is not None:
            raise self.fetch_error
        return self.messages[-limit:]

    def publish(self, subject: str, payload: str) -> PublishAck:
        index = len(self.attempts)
        self.attempts.append((subject, payload))
        if self.on_publish is not None:
            self.on_publish(index, subject, payload)
        if payload in self.fail_payloads:
            raise PublishFailedError(f"publish rejected for {subject}")
        self.published.append((subject, payload))
        return PublishAck(
            target_queue=self.ack_stream or self.target,
            assigned_sequence=len(self.published),
        )

    def close(self) -> None:
        self.closed = True

    @property
    def attempted_payloads(self) -> list[str]:
        return [payload for _, payload in self.attempts]


def make_messages(
    sequences: list[int] | range,
    subject: str = "orders.created",
) -> list[Message]:
    """Build messages with payload ``payload-<seq>`` for each sequence."""
    return [
        Message(
            sequence=seq,
            subject=subject,
            payload=f"payload-{seq}",
            published_at=f"2024-05-01T10:00:{seq % 60:02d}Z",
        )
        for seq in sequences
    ]


@pytest.fixture()
def fake_api():
    """Factory fixture returning a configured FakeStreamsAPI.

    Usage in tests::

        def test_something(fake_api):
            api = fake_api(make_messages([10, 11, 12]), fail_sequences=(11,))
    """

    def _factory(messages: list[Message] | None = None, **kwargs: Any) -> FakeStreamsAPI:
        return FakeStreamsAPI(messages, **kwargs)

    return _factory


@pytest.fixture()
def failing_fetch_api():
    """A FakeStreamsAPI whose fetch always fails."""
    return FakeStreamsAPI(fetch_error=FetchFailedError("connection refused"))


# ---------------------------------------------------------------------------
# HTTP doubles
# ---------------------------------------------------------------------------


def make_response(status_code: int = 200, body: Any = None) -> MagicMock:
    """Build a MagicMock resembling a requests.Response."""
    response = MagicMock()
    response.status_code = status_code
    if isinstance(body, Exception):
        response.json.side_effect = body
    else:
        response.json.return_value = body
    return response


@pytest.fixture()
def mock_session():
    """A MagicMock requests.Session with a real headers dict."""
    session = MagicMock()
    session.headers = {}
    return session


# ---------------------------------------------------------------------------
# Logger hygiene
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _clean_copier_logger():
    """Drop handlers added by setup_logger so tests do not leak into each other."""
    logger = logging.getLogger("stream_copier")
    saved_handlers = logger.handlers[:]
    saved_level = logger.level
    yield
    for handler in logger.handlers[:]:
        if handler not in saved_handlers:
            logger.removeHandler(handler)
            handler.close()
    for handler in saved_handlers:
        if handler not in logger.handlers:
            logger.addHandler(handler)
    logger.setLevel(saved_level)
    urllib3_logger = logging.getLogger("urllib3")
    for handler in urllib3_logger.handlers[:]:
        urllib3_logger.removeHandler(handler)
    log_module._DEBUG_API_ENABLED = False
