"""Stream operations consumed by the copy pipeline.

Wraps :class:`GraphQLClient` with the three documents the copy tool needs
(``streams``, ``streamMessages`` and ``publish``) and maps low-level
:class:`APIError` failures onto the fetch/publish error taxonomy.
"""

from __future__ import annotations

import functools
import logging
from typing import TYPE_CHECKING, Any, Protocol

from stream_copier.exceptions import APIError, FetchFailedError, PublishFailedError
from stream_copier.services.graphql import GraphQLClient
from stream_copier.types import Message, PublishAck, StreamInfo
from stream_copier.utils.api import call_with_retries
from stream_copier.utils.logging import log_with_context

if TYPE_CHECKING:
    from stream_copier.core.config import CopierConfig


STREAMS_QUERY = """
  query {
    streams {
      name
      subjects
      messages
    }
  }
"""

MESSAGES_QUERY = """
  query($stream: String!, $last: Int!, $subject: String, $startSeq: Int) {
    streamMessages(stream: $stream, last: $last, subject: $subject, startSeq: $startSeq) {
      sequence
      subject
      data
      published
    }
  }
"""

PUBLISH_MUTATION = """
  mutation($subject: String!, $data: String!) {
    publish(subject: $subject, data: $data) {
      stream
      sequence
    }
  }
"""


class MessageAPI(Protocol):
    """The operations a TransferRun needs from the platform."""

    def fetch_messages(
        self, queue: str, limit: int, subject_filter: str | None = None
    ) -> list[Message]: ...

    def publish(self, subject: str, payload: str) -> PublishAck: ...


class StreamsAPI:
    """Stream reads and publishes over the GraphQL API."""

    def __init__(
        self,
        client: GraphQLClient,
        fetch_retries: int = 3,
        retry_delay: float = 1,
        publish_timeout: float | None = None,
    ) -> None:
        self.client = client
        self.fetch_retries = fetch_retries
        self.retry_delay = retry_delay
        self.publish_timeout = publish_timeout

    @classmethod
    def from_config(cls, config: CopierConfig) -> StreamsAPI:
        client = GraphQLClient(
            config.api_url,
            token=config.api_token,
            timeout=config.request_timeout,
        )
        return cls(
            client,
            fetch_retries=config.fetch_retries,
            retry_delay=config.retry_delay,
            publish_timeout=config.publish_timeout,
        )

    def _read(self, query: str, variables: dict[str, Any], operation: str) -> dict:
        return call_with_retries(
            functools.partial(
                self.client.execute, query, variables, operation=operation
            ),
            operation=operation,
            max_retries=self.fetch_retries,
            retry_delay=self.retry_delay,
        )

    def list_streams(self) -> list[StreamInfo]:
        """Return every stream known to the platform.

        Raises:
            APIError: If the query fails after retries.
        """
        data = self._read(STREAMS_QUERY, {}, "streams")
        return [StreamInfo.from_api(record) for record in data.get("streams") or []]

    def fetch_messages(
        self, queue: str, limit: int, subject_filter: str | None = None
    ) -> list[Message]:
        """Fetch up to ``limit`` most recent messages from ``queue``.

        The API's order is preserved. An empty list means nothing matched.

        Raises:
            FetchFailedError: If the query fails or returns malformed records.
        """
        variables: dict[str, Any] = {"stream": queue, "last": limit}
        if subject_filter and subject_filter.strip():
            variables["subject"] = subject_filter.strip()

        try:
            data = self._read(MESSAGES_QUERY, variables, "streamMessages")
            records = data.get("streamMessages") or []
            messages = [Message.from_api(record) for record in records]
        except APIError as e:
            raise FetchFailedError(str(e)) from e
        except (KeyError, TypeError, ValueError) as e:
            raise FetchFailedError(f"Malformed message record from API: {e}") from e

        log_with_context(
            logging.DEBUG,
            f"Fetched {len(messages)} message(s) from {queue}",
            stream=queue,
            count=len(messages),
        )
        return messages

    def publish(self, subject: str, payload: str) -> PublishAck:
        """Publish one message. Attempted exactly once.

        Raises:
            PublishFailedError: If the mutation fails, times out or returns
                a malformed acknowledgement.
        """
        try:
            data = self.client.execute(
                PUBLISH_MUTATION,
                {"subject": subject, "data": payload},
                operation="publish",
                timeout=self.publish_timeout,
            )
            record = data["publish"]
            return PublishAck(
                target_queue=record["stream"],
                assigned_sequence=int(record["sequence"]),
            )
        except APIError as e:
            raise PublishFailedError(str(e)) from e
        except (KeyError, TypeError, ValueError) as e:
            raise PublishFailedError(f"Malformed publish response: {e}") from e

    def close(self) -> None:
        """Release the underlying HTTP session."""
        self.client.close()
