"""Core copy logic including configuration, validation and run control."""

__all__ = [
    "config",
    "copier",
    "run_logging",
    "state",
    "transfer",
    "validation",
]
