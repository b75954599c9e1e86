"""Custom exception hierarchy for the stream copy tool."""

from __future__ import annotations

from stream_copier.types import ErrorKind


class StreamCopierError(Exception):
    """Base exception for all stream-copy errors."""

    kind: ErrorKind = ErrorKind.UNKNOWN


class ConfigError(StreamCopierError):
    """Raised when the configuration file is invalid."""

    kind = ErrorKind.CONFIG


class InvalidConfigError(StreamCopierError):
    """Raised when a transfer request cannot produce a meaningful copy."""

    kind = ErrorKind.INVALID_CONFIG


class APIError(StreamCopierError):
    """Raised when a GraphQL call fails at the transport or protocol level."""

    kind = ErrorKind.API_ERROR

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.retryable = retryable


class FetchFailedError(StreamCopierError):
    """Raised when messages cannot be read from the source stream."""

    kind = ErrorKind.FETCH_FAILED


class PublishFailedError(StreamCopierError):
    """Raised when a single message cannot be published to the target."""

    kind = ErrorKind.PUBLISH_FAILED


class TransferStateError(StreamCopierError):
    """Raised on an illegal run state transition or counter update."""

    kind = ErrorKind.STATE


class TransferInProgressError(StreamCopierError):
    """Raised when a run is requested while another one is still active."""

    kind = ErrorKind.IN_PROGRESS
