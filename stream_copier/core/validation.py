"""Validation of copy requests before any network I/O happens."""

from __future__ import annotations

import logging
import re
from typing import Any

from stream_copier.constants import DEFAULT_MAX_MESSAGES
from stream_copier.exceptions import InvalidConfigError
from stream_copier.types import TransferRequest
from stream_copier.utils.logging import log_with_context

# Leading optional-sign integer, the way a form's numeric field is read
_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def parse_max_messages(value: Any, default: int = DEFAULT_MAX_MESSAGES) -> int:
    """Permissively parse a message limit.

    Integers pass through and floats are truncated. Strings contribute their
    leading integer (``"25abc"`` gives 25). Anything unparseable falls back
    to ``default``. Non-positive results are returned unchanged so the
    caller can reject them.

    Args:
        value: Raw limit (int, float, str or None).
        default: Limit used when ``value`` cannot be parsed.

    Returns:
        The parsed limit.
    """
    if isinstance(value, bool) or value is None:
        return default
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value != value or value in (float("inf"), float("-inf")):
            return default
        return int(value)
    if isinstance(value, str):
        match = _LEADING_INT.match(value)
        if match:
            return int(match.group(1))
    return default


def validate_request(
    source: str | None,
    target: str | None,
    subject_filter: str | None = None,
    max_messages: Any = DEFAULT_MAX_MESSAGES,
    default_max_messages: int = DEFAULT_MAX_MESSAGES,
) -> TransferRequest:
    """Build a TransferRequest, rejecting configurations that cannot copy anything.

    Args:
        source: Source stream name.
        target: Target stream name.
        subject_filter: Optional subject pattern; blank means unfiltered.
        max_messages: Raw message limit, parsed with :func:`parse_max_messages`.
        default_max_messages: Fallback when ``max_messages`` is unparseable.

    Returns:
        A validated, immutable TransferRequest.

    Raises:
        InvalidConfigError: If a stream is missing, both streams are the
            same, or the limit is not positive.
    """
    source_queue = (source or "").strip()
    target_queue = (target or "").strip()

    if not source_queue or not target_queue:
        raise InvalidConfigError("Select both source and target streams")

    if source_queue == target_queue:
        raise InvalidConfigError("Source and target streams must be different")

    limit = parse_max_messages(max_messages, default_max_messages)
    if limit <= 0:
        raise InvalidConfigError(f"max_messages must be positive, got {limit}")

    pattern = (subject_filter or "").strip() or None

    log_with_context(
        logging.DEBUG,
        f"Validated copy request {source_queue} -> {target_queue} "
        f"(limit={limit}, filter={pattern!r})",
    )
    return TransferRequest(
        source_queue=source_queue,
        target_queue=target_queue,
        subject_filter=pattern,
        max_messages=limit,
    )
