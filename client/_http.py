"""Internal HTTP handling utilities for the messaging client.

This module provides the low-level HTTP communication layer used by all
sub-clients. It handles:
- Making HTTP requests with the session's bearer credential attached
- Response parsing and error handling
- Optional retry logic with exponential backoff for loads
- Connection management

This is an internal module and should not be imported directly by users.
"""

import logging
import time
from typing import Any, Literal

import httpx

from client.exceptions import (
    APIError,
    AuthenticationError,
    ConflictError,
    ConnectionError,
    NotFoundError,
    ServerError,
    TimeoutError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# HTTP methods supported by the client
HttpMethod = Literal["GET", "POST", "PUT", "PATCH", "DELETE"]

# Status codes that trigger automatic retry (when retry is enabled)
RETRYABLE_STATUS_CODES = {502, 503, 504}

# Default backoff settings for retry logic
DEFAULT_RETRY_BACKOFF_BASE = 0.5  # seconds
DEFAULT_RETRY_BACKOFF_MAX = 30.0  # seconds


def _parse_error_response(response: httpx.Response) -> tuple[str, str | None, dict | None]:
    """Parse an error response to extract message, type, and details.

    Attempts to parse the response body as JSON and extract structured
    error information. Falls back to the raw response text if parsing fails.

    Args:
        response: The HTTP response to parse.

    Returns:
        A tuple of (message, error_type, details).
    """
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        if text:
            return text, None, None
        return f"HTTP {response.status_code} error", None, None

    if isinstance(body, dict):
        detail = body.get("detail")
        if isinstance(detail, str):
            return detail, body.get("type"), body.get("details")
        elif isinstance(detail, list):
            # Validation errors come as a list
            messages = [
                f"{err.get('loc', ['unknown'])[-1]}: {err.get('msg', 'invalid')}"
                for err in detail
            ]
            return "; ".join(messages), "validation_error", {"errors": detail}
        elif isinstance(detail, dict):
            return detail.get("message", str(detail)), detail.get("type"), detail

        if "message" in body:
            return body["message"], body.get("type"), body.get("details")

        # The messaging backend reports failures as {"error": "..."}
        if "error" in body:
            return body["error"], body.get("type"), body.get("details")

    return str(body), None, None


_STATUS_ERRORS = {
    401: AuthenticationError,
    404: NotFoundError,
    409: ConflictError,
    422: ValidationError,
}


def _raise_for_status(response: httpx.Response) -> None:
    """Raise the client error matching an unsuccessful response.

    401, 404, 409 and 422 map to their own APIError subclasses, any 5xx to
    ServerError, and every other failure to a plain APIError.
    """
    if response.is_success:
        return

    message, error_type, details = _parse_error_response(response)
    status_code = response.status_code
    try:
        body = response.json()
    except ValueError:
        body = response.text

    error_class = _STATUS_ERRORS.get(status_code)
    if error_class is None and status_code >= 500:
        error_class = ServerError
    if error_class is not None:
        raise error_class(
            message=message,
            details=details,
            response_body=body,
            status_code=status_code,
        )
    raise APIError(
        message=message,
        status_code=status_code,
        error_type=error_type,
        details=details,
        response_body=body,
    )


def _calculate_backoff(attempt: int, base: float = DEFAULT_RETRY_BACKOFF_BASE) -> float:
    """Calculate exponential backoff delay for retry attempts.

    Uses exponential backoff: base * 2^attempt, capped at
    DEFAULT_RETRY_BACKOFF_MAX seconds.

    Args:
        attempt: The retry attempt number (0-indexed).
        base: Base delay in seconds.

    Returns:
        The delay in seconds before the next retry.
    """
    delay = base * (2 ** attempt)
    return min(delay, DEFAULT_RETRY_BACKOFF_MAX)


def _auth_headers(access_token: str | None) -> dict[str, str]:
    """Build the default headers sent with every request."""
    headers = {"Content-Type": "application/json"}
    if access_token:
        headers["Authorization"] = f"Bearer {access_token}"
    return headers


class HTTPClient:
    """Synchronous HTTP client for making API requests.

    Wraps httpx.Client with error handling, retry logic, and the bearer
    credential. The credential is opaque here: it is attached, never
    inspected or refreshed.

    Attributes:
        base_url: The base URL for all API requests.
        timeout: Request timeout in seconds.
        retry_enabled: Whether GET requests are retried on transient failures.
        max_retries: Maximum number of retry attempts.
    """

    def __init__(
        self,
        base_url: str,
        access_token: str | None = None,
        timeout: float = 30.0,
        retry_enabled: bool = False,
        max_retries: int = 3,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            base_url: The base URL for all API requests.
            access_token: Opaque bearer credential attached to every request.
            timeout: Request timeout in seconds.
            retry_enabled: Whether GET requests are retried on transient failures.
            max_retries: Maximum number of retry attempts.
            transport: Custom transport (e.g., MockTransport for testing).
        """
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.retry_enabled = retry_enabled
        self.max_retries = max_retries

        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout,
            headers=_auth_headers(access_token),
            transport=transport,
        )

    def close(self) -> None:
        """Close the HTTP client and release resources."""
        self._client.close()

    def __enter__(self) -> "HTTPClient":
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _attempts(self, method: str) -> int:
        """How many times a request may be sent.

        Only loads are retried; a mutation is sent exactly once and its
        failure is reported to the caller.
        """
        if self.retry_enabled and method == "GET":
            return self.max_retries + 1
        return 1

    def request(
        self,
        method: HttpMethod,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> Any:
        """Send a request and return the decoded JSON body.

        Args:
            method: The HTTP method.
            path: Path relative to base_url.
            params: Query parameters; None values are dropped.
            json: JSON body.

        Returns:
            The decoded body, or None when the response is empty.

        Raises:
            ConnectionError: If the backend cannot be reached.
            TimeoutError: If the request times out.
            APIError: If the backend answers with an error status.
        """
        url = f"{self.base_url}{path}"
        if params:
            params = {k: v for k, v in params.items() if v is not None}

        attempts = self._attempts(method)
        for attempt in range(attempts):
            last = attempt == attempts - 1
            try:
                response = self._client.request(method, path, params=params, json=json)
            except httpx.ConnectError as e:
                if last:
                    raise ConnectionError(
                        message=f"Failed to connect to {url}", url=url, cause=e
                    ) from e
                logger.debug(f"{method} {path} could not connect, retrying")
            except httpx.TimeoutException as e:
                if last:
                    raise TimeoutError(
                        message=f"Request to {url} timed out", timeout=self.timeout, url=url
                    ) from e
                logger.debug(f"{method} {path} timed out, retrying")
            else:
                if last or response.status_code not in RETRYABLE_STATUS_CODES:
                    _raise_for_status(response)
                    return response.json() if response.content else None
                logger.debug(f"{method} {path} returned {response.status_code}, retrying")
            time.sleep(_calculate_backoff(attempt))

        raise RuntimeError("Request loop exited without a response")

    def get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Make a GET request."""
        return self.request("GET", path, params=params)

    def post(
        self,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Make a POST request."""
        return self.request("POST", path, params=params, json=json)

    def put(
        self,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        """Make a PUT request."""
        return self.request("PUT", path, params=params, json=json)

    def delete(self, path: str, params: dict[str, Any] | None = None) -> Any:
        """Make a DELETE request."""
        return self.request("DELETE", path, params=params)
