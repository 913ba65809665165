"""Errors raised by the messaging client.

Everything derives from MessagingClientError, so callers that only need
to know "the backend call failed" catch that one class. The optimistic
action layer tells TimeoutError apart (reported as timed out) from every
other subclass (reported as rejected).

    MessagingClientError
    ├── ConnectionError
    ├── TimeoutError
    └── APIError
        ├── AuthenticationError (401)
        ├── ValidationError (422)
        ├── NotFoundError (404)
        ├── ConflictError (409)
        └── ServerError (5xx)

ConnectionError and TimeoutError shadow the builtins of the same name
inside this package only; they do not subclass them.
"""

from typing import Any


class MessagingClientError(Exception):
    """Base class for every client failure."""

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)

    def __str__(self) -> str:
        return self.message


class ConnectionError(MessagingClientError):
    """The backend could not be reached.

    Attributes:
        url: Address of the failed request, if known.
        cause: The transport exception underneath.
    """

    def __init__(
        self,
        message: str,
        url: str | None = None,
        cause: Exception | None = None,
    ) -> None:
        self.url = url
        self.cause = cause
        super().__init__(message)

    def __str__(self) -> str:
        if self.url:
            return f"{self.message} (url: {self.url})"
        return self.message


class TimeoutError(MessagingClientError):
    """No answer arrived within the configured timeout.

    The outcome of the request on the server is unknown. Optimistic
    changes are still rolled back; the next refresh shows the truth.
    """

    def __init__(
        self,
        message: str,
        timeout: float | None = None,
        url: str | None = None,
    ) -> None:
        self.timeout = timeout
        self.url = url
        super().__init__(message)

    def __str__(self) -> str:
        parts = []
        if self.timeout is not None:
            parts.append(f"timeout: {self.timeout}s")
        if self.url:
            parts.append(f"url: {self.url}")
        if parts:
            return f"{self.message} ({', '.join(parts)})"
        return self.message


class APIError(MessagingClientError):
    """The backend answered with an error status.

    Attributes:
        status_code: HTTP status of the response.
        error_type: Short machine-readable kind, when the body carried one.
        details: Structured details from the body, if any.
        response_body: The decoded body (or raw text) for logging.
    """

    def __init__(
        self,
        message: str,
        status_code: int,
        error_type: str | None = None,
        details: dict[str, Any] | None = None,
        response_body: Any = None,
    ) -> None:
        self.status_code = status_code
        self.error_type = error_type
        self.details = details
        self.response_body = response_body
        super().__init__(message)

    def __str__(self) -> str:
        prefix = f"[HTTP {self.status_code}]"
        if self.error_type:
            prefix = f"{prefix} [{self.error_type}]"
        return f"{prefix} {self.message}"


class _StatusError(APIError):
    """An APIError whose status and kind are fixed by the subclass."""

    default_status: int = 400
    kind: str = ""

    def __init__(
        self,
        message: str,
        details: dict[str, Any] | None = None,
        response_body: Any = None,
        status_code: int | None = None,
    ) -> None:
        super().__init__(
            message=message,
            status_code=status_code or self.default_status,
            error_type=self.kind,
            details=details,
            response_body=response_body,
        )


class AuthenticationError(_StatusError):
    """The bearer credential was rejected. Refreshing it is the session owner's job."""

    default_status = 401
    kind = "unauthorized"


class ValidationError(_StatusError):
    """The backend refused the request body or parameters."""

    default_status = 422
    kind = "validation_error"


class NotFoundError(_StatusError):
    """A conversation, message or user id no longer resolves."""

    default_status = 404
    kind = "not_found"


class ConflictError(_StatusError):
    """The request contradicts current server state, e.g. answering a request twice."""

    default_status = 409
    kind = "conflict"


class ServerError(_StatusError):
    """A 5xx answer. GET requests may have been retried before this is raised."""

    default_status = 500
    kind = "server_error"
