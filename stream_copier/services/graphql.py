"""HTTP client for the message-log platform's GraphQL API."""

from __future__ import annotations

import logging
from typing import Any

import requests

from stream_copier.constants import (
    DEFAULT_REQUEST_TIMEOUT,
    HTTP_FORBIDDEN,
    HTTP_RATE_LIMIT,
    HTTP_SERVER_ERROR_MIN,
    HTTP_UNAUTHORIZED,
)
from stream_copier.exceptions import APIError
from stream_copier.utils.logging import (
    log_api_request,
    log_api_response,
    log_with_context,
)


def _is_retryable_status(status_code: int) -> bool:
    return status_code == HTTP_RATE_LIMIT or status_code >= HTTP_SERVER_ERROR_MIN


class GraphQLClient:
    """Minimal GraphQL-over-HTTP client.

    Sends ``{"query", "variables"}`` as a JSON POST, adds a bearer token when
    one is configured, and turns every failure mode (transport, HTTP status,
    GraphQL ``errors``, missing ``data``) into :class:`APIError`.
    """

    def __init__(
        self,
        api_url: str,
        token: str | None = None,
        timeout: float = DEFAULT_REQUEST_TIMEOUT,
        session: requests.Session | None = None,
    ) -> None:
        self.api_url = api_url
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.update({"Content-Type": "application/json"})
        if token:
            self._session.headers["Authorization"] = f"Bearer {token}"

    def execute(
        self,
        query: str,
        variables: dict[str, Any] | None = None,
        operation: str = "query",
        timeout: float | None = None,
    ) -> dict[str, Any]:
        """Run one GraphQL document and return its ``data`` object.

        Args:
            query: The GraphQL document.
            variables: Optional variables.
            operation: Short name used in log lines.
            timeout: Per-call deadline in seconds; defaults to the client timeout.

        Returns:
            The decoded ``data`` mapping.

        Raises:
            APIError: On any transport, HTTP or GraphQL failure.
        """
        log_api_request(operation, self.api_url, variables)

        try:
            response = self._session.post(
                self.api_url,
                json={"query": query, "variables": variables or {}},
                timeout=timeout if timeout is not None else self.timeout,
            )
        except requests.exceptions.Timeout as e:
            raise APIError(f"{operation} timed out: {e}", retryable=True) from e
        except requests.exceptions.ConnectionError as e:
            raise APIError(
                f"Could not connect to {self.api_url}: {e}", retryable=True
            ) from e
        except requests.exceptions.RequestException as e:
            raise APIError(f"{operation} request failed: {e}") from e

        status_code = response.status_code

        try:
            body = response.json()
        except ValueError:
            body = None

        log_api_response(status_code, self.api_url, body)

        if status_code in (HTTP_UNAUTHORIZED, HTTP_FORBIDDEN):
            log_with_context(
                logging.WARNING,
                f"{operation} rejected with HTTP {status_code}; check the API token",
                status_code=status_code,
            )

        if not isinstance(body, dict):
            if status_code >= 400:
                raise APIError(
                    f"HTTP {status_code} from {self.api_url}",
                    status_code=status_code,
                    retryable=_is_retryable_status(status_code),
                )
            raise APIError(
                f"Invalid JSON response from {self.api_url}",
                status_code=status_code,
            )

        errors = body.get("errors")
        if errors:
            first = errors[0]
            message = first.get("message") if isinstance(first, dict) else str(first)
            raise APIError(
                message or "Unknown GraphQL error",
                status_code=status_code,
                retryable=_is_retryable_status(status_code),
            )

        if status_code >= 400:
            raise APIError(
                f"HTTP {status_code} from {self.api_url}",
                status_code=status_code,
                retryable=_is_retryable_status(status_code),
            )

        data = body.get("data")
        if data is None:
            raise APIError("No data returned from API", status_code=status_code)

        return data

    def close(self) -> None:
        self._session.close()
