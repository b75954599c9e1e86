#!/usr/bin/env python3
"""
Stream-to-stream message copy tool
"""

__version__ = "0.1.0"

# Import CLI utilities
from stream_copier.cli.report import generate_report
from stream_copier.core.config import CopierConfig, load_config

# Import the main classes for easier access
from stream_copier.core.copier import StreamCopier
from stream_copier.core.transfer import TransferRun, format_summary
from stream_copier.core.validation import parse_max_messages, validate_request

# Import key service classes
from stream_copier.services.dry_run import DryRunStreamsAPI
from stream_copier.services.graphql import GraphQLClient
from stream_copier.services.streams_api import StreamsAPI
