"""Shared constants for the stream copy tool."""

# Request defaults
DEFAULT_MAX_MESSAGES = 100
DEFAULT_API_URL = "http://localhost:8080/query"
DEFAULT_REQUEST_TIMEOUT = 30
DEFAULT_PUBLISH_TIMEOUT = 10

# Run log policy
PROGRESS_LOG_INTERVAL = 10
DEFAULT_LOG_TAIL_SIZE = 50

# Streams backing key-value buckets are not copy targets
KV_STREAM_PREFIX = "KV_"

# Retry policy for idempotent reads
DEFAULT_FETCH_RETRIES = 3
DEFAULT_RETRY_DELAY = 1
MAX_RETRY_DELAY = 60
RETRY_BACKOFF_FACTOR = 2.0

# HTTP status codes
HTTP_UNAUTHORIZED = 401
HTTP_FORBIDDEN = 403
HTTP_RATE_LIMIT = 429
HTTP_SERVER_ERROR_MIN = 500

# CLI exit codes
EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_CANCELLED = 130

# Environment variables read by the CLI
ENV_API_URL = "STREAM_COPIER_API_URL"
ENV_API_TOKEN = "STREAM_COPIER_TOKEN"
