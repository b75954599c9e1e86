"""
Logging module for the stream copy tool
"""

import json
import logging
import os
from typing import Any, Dict, Optional

LOGGER_NAME = "stream_copier"

# Module-level flag to track if API debug logging is enabled
_DEBUG_API_ENABLED = False

_STANDARD_RECORD_ATTRS = frozenset(
    (
        "args",
        "asctime",
        "created",
        "exc_info",
        "exc_text",
        "filename",
        "funcName",
        "id",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "msg",
        "name",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "stack_info",
        "taskName",
        "thread",
        "threadName",
    )
)

_SENSITIVE_KEYS = ("token", "auth", "password", "secret", "key")


class JsonFormatter(logging.Formatter):
    def format(self, record):
        data = {
            "time": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "message": record.getMessage(),
            "module": record.module,
        }
        # Include any additional attributes from the record
        for key, value in record.__dict__.items():
            if key not in _STANDARD_RECORD_ATTRS:
                data[key] = value
        return json.dumps(data, default=str)


class EnhancedFormatter(logging.Formatter):
    """
    Custom formatter that supports both verbose mode (with additional context information)
    and API debug mode (with request/response data)
    """

    def __init__(
        self,
        fmt=None,
        datefmt=None,
        style="%",
        verbose=False,
        include_api_details=False,
    ):
        if verbose:
            fmt = "%(asctime)s - %(name)s - %(levelname)s - [%(module)s:%(lineno)d] - %(message)s"
        elif not fmt:
            fmt = "%(asctime)s - %(levelname)s - %(message)s"

        super().__init__(fmt, datefmt, style)
        self.include_api_details = include_api_details

    def format(self, record):
        result = super().format(record)

        if self.include_api_details:
            if getattr(record, "api_data", None):
                result += f"\nAPI Data: {record.api_data}"

            if getattr(record, "response", None):
                result += f"\nResponse: {record.response}"

        return result


def setup_main_log_file(
    output_dir: str, debug_api: bool = False, json_logs: bool = False
) -> logging.FileHandler:
    """
    Set up a file handler that captures every record of the run at DEBUG level.

    Args:
        output_dir: The output directory path
        debug_api: If True, include API request/response bodies
        json_logs: If True, write one JSON object per line

    Returns:
        The file handler for the run log file
    """
    os.makedirs(output_dir, exist_ok=True)
    log_file = os.path.join(output_dir, "transfer.log")

    file_handler = logging.FileHandler(log_file, mode="w")
    file_handler.setLevel(logging.DEBUG)  # Always use DEBUG level for file handlers

    if json_logs:
        file_handler.setFormatter(JsonFormatter())
    else:
        file_handler.setFormatter(
            EnhancedFormatter(
                "%(asctime)s - %(levelname)s - %(message)s",
                include_api_details=debug_api,
            )
        )

    logger = logging.getLogger(LOGGER_NAME)
    logger.addHandler(file_handler)

    logger.info(f"Log file created at: {log_file}")
    return file_handler


def setup_logger(
    verbose: bool = False,
    debug_api: bool = False,
    output_dir: Optional[str] = None,
    json_logs: bool = False,
) -> logging.Logger:
    """
    Set up and return the logger with appropriate formatting.

    Args:
        verbose: If True, set console handler to DEBUG level; otherwise INFO level
        debug_api: If True, enable detailed API request/response logging
        output_dir: Optional output directory for the run log file
        json_logs: If True, emit JSON lines instead of plain text

    Returns:
        Configured logger instance
    """
    global _DEBUG_API_ENABLED
    _DEBUG_API_ENABLED = debug_api

    logger = logging.getLogger(LOGGER_NAME)

    # Clear any existing handlers to prevent duplicate messages
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    logger.setLevel(logging.DEBUG)  # Always set logger to DEBUG to capture all logs

    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    if json_logs:
        console_handler.setFormatter(JsonFormatter())
    else:
        console_handler.setFormatter(
            EnhancedFormatter(verbose=verbose, include_api_details=debug_api)
        )
    logger.addHandler(console_handler)

    if output_dir:
        setup_main_log_file(output_dir, debug_api, json_logs)

    if debug_api:
        # urllib3 logs every connection and status line at DEBUG
        urllib3_logger = logging.getLogger("urllib3")
        urllib3_logger.setLevel(logging.DEBUG)
        for handler in logger.handlers:
            urllib3_logger.addHandler(handler)
        logger.info("API debug logging enabled")

    return logger


def log_with_context(level: int, message: str, **kwargs: Any) -> None:
    """
    Log a message with additional context information.

    Args:
        level: The logging level (e.g., logging.INFO)
        message: The log message
        **kwargs: Additional context to include in the log record
    """
    # exc_info is a logging keyword, not an extra
    exc_info = kwargs.pop("exc_info", None)

    extras = {k: v for k, v in kwargs.items() if v is not None}

    logger = logging.getLogger(LOGGER_NAME)
    logger.log(level, message, extra=extras, exc_info=exc_info)


def redact(data: Dict[str, Any]) -> Dict[str, Any]:
    """Return a shallow copy of ``data`` with credential-like values masked."""
    redacted = {}
    for key, value in data.items():
        if any(sensitive in key.lower() for sensitive in _SENSITIVE_KEYS):
            redacted[key] = "[REDACTED]"
        else:
            redacted[key] = value
    return redacted


def log_api_request(
    operation: str, url: str, variables: Optional[Dict] = None, **kwargs: Any
) -> None:
    """
    Log a GraphQL request when API debug mode is on.

    Args:
        operation: Short operation name (e.g. "publish")
        url: The API endpoint URL
        variables: Optional GraphQL variables
        **kwargs: Additional context to include in the log record
    """
    if not is_debug_api_enabled():
        return

    log_context = kwargs.copy()
    if variables and isinstance(variables, dict):
        log_context["api_data"] = json.dumps(redact(variables), indent=2, default=str)

    log_with_context(logging.DEBUG, f"API Request: {operation} {url}", **log_context)


def log_api_response(
    status_code: int, url: str, response_data: Any = None, **kwargs: Any
) -> None:
    """
    Log a GraphQL response when API debug mode is on.

    Args:
        status_code: HTTP status code
        url: The API endpoint URL
        response_data: Optional decoded response body
        **kwargs: Additional context to include in the log record
    """
    if not is_debug_api_enabled():
        return

    log_context = kwargs.copy()

    if response_data:
        if isinstance(response_data, (dict, list)):
            response_str = json.dumps(response_data, indent=2, default=str)
            if len(response_str) > 2000:
                response_str = response_str[:2000] + "... [truncated]"
        else:
            response_str = str(response_data)
            if len(response_str) > 1000:
                response_str = response_str[:1000] + "... [truncated]"
        log_context["response"] = response_str

    log_with_context(
        logging.DEBUG, f"API Response: {status_code} from {url}", **log_context
    )


def log_failed_publish(
    run_id: str, sequence: int, subject: str, error: str, payload: Any = None
) -> None:
    """
    Log details of a message that could not be republished.

    Args:
        run_id: Identifier of the run the message belongs to
        sequence: Source sequence number of the message
        subject: Subject the message was published under
        error: Failure cause
        payload: The message payload, logged at DEBUG only
    """
    log_with_context(
        logging.ERROR,
        f"Failed to publish message: seq={sequence}, subject={subject}, error={error}",
        run_id=run_id,
        sequence=sequence,
        subject=subject,
    )

    if payload is not None:
        text = payload if isinstance(payload, str) else repr(payload)
        if len(text) > 1000:
            text = text[:1000] + "... [truncated]"
        log_with_context(
            logging.DEBUG,
            f"Failed message payload: {text}",
            run_id=run_id,
            sequence=sequence,
        )


def is_debug_api_enabled() -> bool:
    """Check if API debug logging is enabled."""
    return _DEBUG_API_ENABLED


def get_logger():
    """Get the stream_copier logger, creating it with defaults if needed."""
    copier_logger = logging.getLogger(LOGGER_NAME)
    if not copier_logger.handlers:
        copier_logger.setLevel(logging.INFO)
        handler = logging.StreamHandler()
        handler.setLevel(logging.INFO)
        handler.setFormatter(EnhancedFormatter())
        copier_logger.addHandler(handler)
    return copier_logger


# Module logger - will be properly initialized when setup_logger is called
logger = get_logger()
