"""Command-line interface for the stream copy tool."""
