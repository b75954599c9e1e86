"""
Configuration module for the stream copy tool.

This module provides functions for loading configuration settings from YAML
files, creating a default configuration file, and deciding which streams are
offered as copy sources and targets.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml

from stream_copier.constants import (
    DEFAULT_API_URL,
    DEFAULT_FETCH_RETRIES,
    DEFAULT_LOG_TAIL_SIZE,
    DEFAULT_MAX_MESSAGES,
    DEFAULT_PUBLISH_TIMEOUT,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RETRY_DELAY,
    KV_STREAM_PREFIX,
    PROGRESS_LOG_INTERVAL,
)
from stream_copier.exceptions import ConfigError
from stream_copier.utils.logging import log_with_context

# Settings that must be strictly positive
_POSITIVE_FIELDS = (
    "request_timeout",
    "publish_timeout",
    "default_max_messages",
    "progress_log_interval",
    "log_tail_size",
)


@dataclass
class CopierConfig:
    """Typed configuration for the stream copy tool.

    All fields have defaults, so an empty or missing config file is valid.
    """

    # API endpoint
    api_url: str = DEFAULT_API_URL
    api_token: str = ""

    # Timeouts (seconds)
    request_timeout: float = DEFAULT_REQUEST_TIMEOUT
    publish_timeout: float = DEFAULT_PUBLISH_TIMEOUT

    # Retry (reads only; publishes are attempted once)
    fetch_retries: int = DEFAULT_FETCH_RETRIES
    retry_delay: float = DEFAULT_RETRY_DELAY

    # Run behaviour
    default_max_messages: int = DEFAULT_MAX_MESSAGES
    progress_log_interval: int = PROGRESS_LOG_INTERVAL
    log_tail_size: int = DEFAULT_LOG_TAIL_SIZE

    # Stream listing
    hidden_stream_prefixes: list[str] = field(
        default_factory=lambda: [KV_STREAM_PREFIX]
    )

    def __post_init__(self) -> None:
        for name in _POSITIVE_FIELDS:
            value = getattr(self, name)
            if not isinstance(value, (int, float)) or value <= 0:
                raise ConfigError(f"{name} must be a positive number, got {value!r}")
        if self.fetch_retries < 0:
            raise ConfigError(
                f"fetch_retries must be non-negative, got {self.fetch_retries!r}"
            )
        if self.retry_delay < 0:
            raise ConfigError(
                f"retry_delay must be non-negative, got {self.retry_delay!r}"
            )

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CopierConfig:
        """Create a CopierConfig from a raw config dictionary.

        Unknown keys are ignored with a warning.
        """
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            log_with_context(
                logging.WARNING,
                f"Ignoring unknown config keys: {', '.join(unknown)}",
            )

        defaults = cls()
        return cls(
            api_url=data.get("api_url") or defaults.api_url,
            api_token=data.get("api_token") or "",
            request_timeout=data.get("request_timeout", defaults.request_timeout),
            publish_timeout=data.get("publish_timeout", defaults.publish_timeout),
            fetch_retries=data.get("fetch_retries", defaults.fetch_retries),
            retry_delay=data.get("retry_delay", defaults.retry_delay),
            default_max_messages=data.get(
                "default_max_messages", defaults.default_max_messages
            ),
            progress_log_interval=data.get(
                "progress_log_interval", defaults.progress_log_interval
            ),
            log_tail_size=data.get("log_tail_size", defaults.log_tail_size),
            hidden_stream_prefixes=list(
                data.get("hidden_stream_prefixes", defaults.hidden_stream_prefixes)
                or []
            ),
        )

    def with_overrides(self, **overrides: Any) -> CopierConfig:
        """Return a copy with the non-empty overrides applied (CLI flags, env)."""
        applied = {k: v for k, v in overrides.items() if v not in (None, "")}
        return replace(self, **applied)


def load_config(config_path: Path) -> CopierConfig:
    """
    Load configuration from YAML file and apply default values.

    A missing or unreadable file is logged as a warning and defaults are used.
    A file that parses but holds invalid values raises ConfigError.

    Args:
        config_path: Path to the config YAML file

    Returns:
        CopierConfig with all necessary defaults applied
    """
    raw: dict[str, Any] = {}

    if config_path.exists():
        try:
            with open(config_path) as f:
                loaded_config = yaml.safe_load(f)
            # Handle None result from empty file
            if loaded_config is not None:
                if not isinstance(loaded_config, dict):
                    raise ConfigError(
                        f"Config file {config_path} must contain a mapping, "
                        f"got {type(loaded_config).__name__}"
                    )
                raw = loaded_config
            log_with_context(logging.INFO, f"Loaded configuration from {config_path}")
        except (yaml.YAMLError, OSError) as e:
            log_with_context(
                logging.WARNING, f"Failed to load config file {config_path}: {e}"
            )
    else:
        log_with_context(
            logging.DEBUG,
            f"Config file {config_path} not found, using default settings",
        )

    return CopierConfig.from_dict(raw)


def create_default_config(output_path: Path) -> bool:
    """
    Create a default configuration file with recommended settings.

    The function will not overwrite an existing configuration file.

    Args:
        output_path: Path where the default config should be saved

    Returns:
        True if the config file was created successfully, False otherwise
    """
    if output_path.exists():
        log_with_context(
            logging.WARNING,
            f"Config file {output_path} already exists, not overwriting",
        )
        return False

    default_config = {
        "api_url": DEFAULT_API_URL,
        # Leave blank and use STREAM_COPIER_TOKEN to keep secrets out of the file
        "api_token": "",
        "request_timeout": DEFAULT_REQUEST_TIMEOUT,
        "publish_timeout": DEFAULT_PUBLISH_TIMEOUT,
        "fetch_retries": DEFAULT_FETCH_RETRIES,
        "retry_delay": DEFAULT_RETRY_DELAY,
        "default_max_messages": DEFAULT_MAX_MESSAGES,
        "progress_log_interval": PROGRESS_LOG_INTERVAL,
        "log_tail_size": DEFAULT_LOG_TAIL_SIZE,
        "hidden_stream_prefixes": [KV_STREAM_PREFIX],
    }

    try:
        with open(output_path, "w") as f:
            f.write("# stream-copier configuration\n")
            yaml.safe_dump(default_config, f, default_flow_style=False)
        log_with_context(logging.INFO, f"Created default config file at {output_path}")
        return True
    except OSError as e:
        log_with_context(logging.ERROR, f"Failed to create default config file: {e}")
        return False


def is_visible_stream(stream_name: str, config: CopierConfig) -> bool:
    """
    Decide whether a stream is offered as a copy source or target.

    Streams whose name starts with one of ``hidden_stream_prefixes`` (by default
    the ``KV_`` streams backing key-value buckets) are hidden.

    Args:
        stream_name: The stream name
        config: The CopierConfig instance

    Returns:
        True if the stream should be listed, False otherwise
    """
    for prefix in config.hidden_stream_prefixes:
        if prefix and stream_name.startswith(prefix):
            log_with_context(
                logging.DEBUG,
                f"STREAM CHECK: '{stream_name}' matches hidden prefix '{prefix}'",
            )
            return False
    return True
