"""Unit tests for the messaging client HTTP utilities.

This module tests the HTTP handling layer defined in client/_http.py.
The tests verify:

1. Helper Functions:
   - _parse_error_response: Extracting error info from various response formats
   - _raise_for_status: Mapping HTTP status codes to exception types
   - _calculate_backoff: Exponential backoff calculation for retries
   - _auth_headers: Bearer credential header

2. HTTPClient:
   - Initialization with various configurations
   - Request methods (GET, POST, PUT, DELETE)
   - Error handling and exception mapping
   - Retry logic with exponential backoff

Note: These tests use httpx's mock transport to avoid real network calls.
"""

import httpx
import pytest

from client._http import (
    DEFAULT_RETRY_BACKOFF_BASE,
    DEFAULT_RETRY_BACKOFF_MAX,
    HTTPClient,
    _auth_headers,
    _calculate_backoff,
    _parse_error_response,
    _raise_for_status,
)
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


def make_client(handler, **kwargs) -> HTTPClient:
    """Build an HTTPClient whose requests are answered by ``handler``."""
    return HTTPClient(
        base_url="http://localhost:8000",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


@pytest.fixture
def no_sleep(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Record retry delays instead of sleeping."""
    delays: list[float] = []
    monkeypatch.setattr("client._http.time.sleep", delays.append)
    return delays


# =============================================================================
# Helper Function Tests: _parse_error_response
# =============================================================================


class TestParseErrorResponse:
    """Tests for the _parse_error_response helper function."""

    def test_parse_detail_string(self) -> None:
        """Parse the standard {"detail": "message"} format."""
        response = httpx.Response(status_code=400, json={"detail": "Invalid request"})
        message, error_type, details = _parse_error_response(response)

        assert message == "Invalid request"
        assert error_type is None
        assert details is None

    def test_parse_validation_error_list(self) -> None:
        """Validation errors arrive as a list in the detail field."""
        response = httpx.Response(
            status_code=422,
            json={
                "detail": [
                    {"loc": ["body", "content"], "msg": "field required", "type": "missing"},
                ]
            },
        )
        message, error_type, details = _parse_error_response(response)

        assert "content: field required" in message
        assert error_type == "validation_error"
        assert "errors" in details

    def test_parse_error_field(self) -> None:
        """The messaging backend reports failures as {"error": "..."}."""
        response = httpx.Response(status_code=403, json={"error": "Not a participant"})
        message, error_type, details = _parse_error_response(response)

        assert message == "Not a participant"

    def test_parse_message_field(self) -> None:
        """Parse error with 'message' field instead of 'detail'."""
        response = httpx.Response(
            status_code=500,
            json={"message": "Internal error occurred", "details": {"trace_id": "abc123"}},
        )
        message, error_type, details = _parse_error_response(response)

        assert message == "Internal error occurred"
        assert details == {"trace_id": "abc123"}

    def test_parse_plain_text_response(self) -> None:
        """Parse error with plain text body (not JSON)."""
        response = httpx.Response(status_code=502, text="Bad Gateway")
        message, error_type, details = _parse_error_response(response)

        assert message == "Bad Gateway"
        assert error_type is None

    def test_parse_empty_response(self) -> None:
        """Parse error with empty response body."""
        response = httpx.Response(status_code=404, text="")
        message, error_type, details = _parse_error_response(response)

        assert "404" in message


# =============================================================================
# Helper Function Tests: _raise_for_status
# =============================================================================


class TestRaiseForStatus:
    """Tests for the _raise_for_status helper function."""

    def test_success_does_not_raise(self) -> None:
        """Successful responses (2xx) do not raise exceptions."""
        for status_code in [200, 201, 204]:
            _raise_for_status(httpx.Response(status_code=status_code))

    def test_401_raises_authentication_error(self) -> None:
        """HTTP 401 raises AuthenticationError."""
        response = httpx.Response(status_code=401, json={"detail": "Token expired"})

        with pytest.raises(AuthenticationError) as exc_info:
            _raise_for_status(response)

        assert exc_info.value.status_code == 401
        assert exc_info.value.error_type == "unauthorized"

    def test_422_raises_validation_error(self) -> None:
        """HTTP 422 raises ValidationError."""
        response = httpx.Response(status_code=422, json={"detail": "Validation failed"})

        with pytest.raises(ValidationError) as exc_info:
            _raise_for_status(response)

        assert exc_info.value.status_code == 422

    def test_404_raises_not_found_error(self) -> None:
        """HTTP 404 raises NotFoundError."""
        response = httpx.Response(status_code=404, json={"detail": "Conversation not found"})

        with pytest.raises(NotFoundError) as exc_info:
            _raise_for_status(response)

        assert "not found" in exc_info.value.message.lower()

    def test_409_raises_conflict_error(self) -> None:
        """HTTP 409 raises ConflictError."""
        response = httpx.Response(status_code=409, json={"detail": "Request already declined"})

        with pytest.raises(ConflictError):
            _raise_for_status(response)

    def test_5xx_raises_server_error(self) -> None:
        """HTTP 5xx raises ServerError with the original status code."""
        for status_code in [500, 502, 503]:
            response = httpx.Response(status_code=status_code, json={"detail": "Down"})

            with pytest.raises(ServerError) as exc_info:
                _raise_for_status(response)

            assert exc_info.value.status_code == status_code

    def test_other_4xx_raises_api_error(self) -> None:
        """Other 4xx codes raise generic APIError."""
        for status_code in [400, 403, 405, 429]:
            response = httpx.Response(status_code=status_code, json={"detail": "Nope"})

            with pytest.raises(APIError) as exc_info:
                _raise_for_status(response)

            assert type(exc_info.value) is APIError
            assert exc_info.value.status_code == status_code

    def test_response_body_is_preserved(self) -> None:
        """The raw response body is preserved in the exception."""
        body = {"detail": "Error", "extra": "data"}

        with pytest.raises(APIError) as exc_info:
            _raise_for_status(httpx.Response(status_code=400, json=body))

        assert exc_info.value.response_body == body


# =============================================================================
# Helper Function Tests: _calculate_backoff / _auth_headers
# =============================================================================


class TestCalculateBackoff:
    """Tests for the _calculate_backoff helper function."""

    def test_first_attempt_uses_base(self) -> None:
        assert _calculate_backoff(0) == DEFAULT_RETRY_BACKOFF_BASE

    def test_exponential_growth(self) -> None:
        assert _calculate_backoff(1) == _calculate_backoff(0) * 2
        assert _calculate_backoff(3) == 4.0

    def test_capped_at_max(self) -> None:
        assert _calculate_backoff(10) == DEFAULT_RETRY_BACKOFF_MAX


class TestAuthHeaders:
    """Tests for the _auth_headers helper function."""

    def test_bearer_token_attached(self) -> None:
        headers = _auth_headers("secret")
        assert headers["Authorization"] == "Bearer secret"

    def test_no_token_no_authorization(self) -> None:
        assert "Authorization" not in _auth_headers(None)
        assert "Authorization" not in _auth_headers("")


# =============================================================================
# HTTPClient Tests
# =============================================================================


class TestHTTPClientInit:
    """Tests for HTTPClient initialization."""

    def test_default_initialization(self) -> None:
        """HTTPClient initializes with default values."""
        client = HTTPClient(base_url="http://localhost:8000")

        assert client.base_url == "http://localhost:8000"
        assert client.timeout == 30.0
        assert client.retry_enabled is False
        assert client.max_retries == 3

        client.close()

    def test_base_url_trailing_slash_stripped(self) -> None:
        client = HTTPClient(base_url="http://localhost:8000/")
        assert client.base_url == "http://localhost:8000"
        client.close()

    def test_context_manager(self) -> None:
        with HTTPClient(base_url="http://localhost:8000") as client:
            assert isinstance(client, HTTPClient)


class TestHTTPClientRequests:
    """Tests for HTTPClient request methods."""

    def test_every_request_carries_bearer_token(self) -> None:
        """The access token is sent on every request."""
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers.get("Authorization"))
            return httpx.Response(200, json={})

        client = make_client(handler, access_token="tok-123")
        client.get("/conversations")
        client.post("/messages/m1/reactions", json={"emoji": "👍"})

        assert seen == ["Bearer tok-123", "Bearer tok-123"]
        client.close()

    def test_get_filters_none_params(self) -> None:
        """GET request filters out None values from params."""

        def handler(request: httpx.Request) -> httpx.Response:
            url_str = str(request.url)
            assert "q=sarah" in url_str
            assert "none_val" not in url_str
            return httpx.Response(200, json={"users": []})

        client = make_client(handler)
        assert client.get("/users/search", params={"q": "sarah", "none_val": None}) == {"users": []}
        client.close()

    def test_post_request_with_json_body(self) -> None:
        """POST request sends JSON body."""
        received_body = None

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal received_body
            assert request.method == "POST"
            received_body = request.content
            return httpx.Response(201, json={"message": {"id": "msg-1"}})

        client = make_client(handler)
        result = client.post("/conversations/c1/messages", json={"content": "hi"})

        assert result == {"message": {"id": "msg-1"}}
        assert b"content" in received_body
        client.close()

    def test_put_and_delete(self) -> None:
        methods = []

        def handler(request: httpx.Request) -> httpx.Response:
            methods.append(request.method)
            return httpx.Response(200, json={"success": True})

        client = make_client(handler)
        client.put("/messages/m1", json={"content": "edited"})
        client.delete("/messages/m1")

        assert methods == ["PUT", "DELETE"]
        client.close()

    def test_empty_response_returns_none(self) -> None:
        client = make_client(lambda request: httpx.Response(204, content=b""))
        assert client.delete("/messages/m1") is None
        client.close()


class TestHTTPClientErrorHandling:
    """Tests for HTTPClient error handling."""

    def test_401_raises_authentication_error(self) -> None:
        client = make_client(lambda request: httpx.Response(401, json={"detail": "Expired"}))

        with pytest.raises(AuthenticationError):
            client.get("/conversations")
        client.close()

    def test_connection_error_raised(self) -> None:
        """Connection failure raises ConnectionError."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("Connection refused")

        client = make_client(handler)

        with pytest.raises(ConnectionError) as exc_info:
            client.get("/conversations")

        assert "localhost:8000" in exc_info.value.url
        client.close()

    def test_timeout_error_raised(self) -> None:
        """Timeout raises TimeoutError carrying the configured timeout."""

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.TimeoutException("Request timed out")

        client = make_client(handler, timeout=5.0)

        with pytest.raises(TimeoutError) as exc_info:
            client.get("/conversations")

        assert exc_info.value.timeout == 5.0
        client.close()


class TestHTTPClientRetry:
    """Tests for HTTPClient retry logic."""

    def test_no_retry_by_default(self, no_sleep) -> None:
        """Retry is disabled by default - errors are raised immediately."""
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            return httpx.Response(503, json={"detail": "Unavailable"})

        client = make_client(handler)

        with pytest.raises(ServerError):
            client.get("/conversations")

        assert attempts == 1
        assert no_sleep == []
        client.close()

    def test_retry_on_503_when_enabled(self, no_sleep) -> None:
        """503 responses are retried with growing backoff."""
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                return httpx.Response(503, json={"detail": "Unavailable"})
            return httpx.Response(200, json={"conversations": []})

        client = make_client(handler, retry_enabled=True, max_retries=3)

        assert client.get("/conversations") == {"conversations": []}
        assert attempts == 3
        assert no_sleep == [0.5, 1.0]
        client.close()

    def test_retries_exhausted_raises(self, no_sleep) -> None:
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            return httpx.Response(504, json={"detail": "Gateway timeout"})

        client = make_client(handler, retry_enabled=True, max_retries=2)

        with pytest.raises(ServerError) as exc_info:
            client.get("/conversations")

        assert exc_info.value.status_code == 504
        assert attempts == 3
        client.close()

    def test_no_retry_on_500(self, no_sleep) -> None:
        """500 errors are not retried (only 502, 503, 504 are transient)."""
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            return httpx.Response(500, json={"detail": "Internal error"})

        client = make_client(handler, retry_enabled=True, max_retries=3)

        with pytest.raises(ServerError):
            client.get("/conversations")

        assert attempts == 1
        client.close()

    def test_connection_errors_retried(self, no_sleep) -> None:
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            if attempts == 1:
                raise httpx.ConnectError("Connection refused")
            return httpx.Response(200, json={"ok": True})

        client = make_client(handler, retry_enabled=True, max_retries=1)

        assert client.get("/conversations") == {"ok": True}
        assert attempts == 2
        client.close()

    @pytest.mark.parametrize(
        "call",
        [
            lambda client: client.post("/conversations/c1/messages", json={"content": "Hi"}),
            lambda client: client.put("/messages/m1", json={"content": "Hi"}),
            lambda client: client.delete("/messages/m1"),
        ],
    )
    def test_mutations_are_never_retried(self, no_sleep, call) -> None:
        """With retries enabled, a mutation is still sent exactly once."""
        methods = []

        def handler(request: httpx.Request) -> httpx.Response:
            methods.append(request.method)
            return httpx.Response(503, json={"detail": "Unavailable"})

        client = make_client(handler, retry_enabled=True, max_retries=3)

        with pytest.raises(ServerError):
            call(client)

        assert len(methods) == 1
        assert no_sleep == []
        client.close()

    def test_mutation_timeout_is_not_retried(self, no_sleep) -> None:
        attempts = 0

        def handler(request: httpx.Request) -> httpx.Response:
            nonlocal attempts
            attempts += 1
            raise httpx.ReadTimeout("slow")

        client = make_client(handler, retry_enabled=True, max_retries=3)

        with pytest.raises(TimeoutError):
            client.post("/conversations/c1/read")

        assert attempts == 1
        client.close()
