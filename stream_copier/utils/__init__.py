"""Shared utilities for API retries and logging."""

__all__ = [
    "api",
    "logging",
]
