"""Service integrations for the stream GraphQL API."""

__all__ = [
    "dry_run",
    "graphql",
    "streams_api",
]
