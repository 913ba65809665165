"""Base class for all sub-clients.

This module provides the base class that the contacts, conversations and
messages sub-clients inherit from. It provides common functionality for
making HTTP requests and for parsing response envelopes into typed records.

This is an internal module and should not be imported directly by users.
"""

import logging
from typing import TYPE_CHECKING, Any, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

if TYPE_CHECKING:
    from client._http import HTTPClient

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


def extract(data: Any, *paths: str) -> Any:
    """Pull a payload out of a response envelope.

    Each path is a dotted key path tried in order, e.g. ``"messages"`` or
    ``"conversation.messages"``. A bare list or record is returned as is.

    Args:
        data: The decoded JSON response.
        *paths: Candidate key paths, most specific first.

    Returns:
        The first value found, or None.
    """
    if not isinstance(data, dict):
        return data
    for path in paths:
        value: Any = data
        for key in path.split("."):
            if not isinstance(value, dict) or key not in value:
                value = None
                break
            value = value[key]
        if value is not None:
            return value
    return None


def parse_records(items: Any, model: type[RecordT], label: str) -> list[RecordT]:
    """Validate a list of inbound records, skipping malformed ones.

    Args:
        items: The raw list from the response (None is treated as empty).
        model: The record type to validate into.
        label: Name used in log messages.

    Returns:
        The records that validated, in response order.
    """
    if items is None:
        return []
    if not isinstance(items, list):
        logger.warning(f"Expected a list of {label}, got {type(items).__name__}")
        return []

    records = []
    for item in items:
        try:
            records.append(model.model_validate(item))
        except PydanticValidationError as e:
            logger.warning(f"Skipping malformed {label} record: {e.error_count()} error(s)")
    return records


class BaseClient:
    """Base class for synchronous sub-clients.

    Attributes:
        _http: The shared HTTP client for making requests.
    """

    def __init__(self, http_client: "HTTPClient") -> None:
        """Initialize the sub-client.

        Args:
            http_client: The shared HTTP client instance.
        """
        self._http = http_client

    def _get(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return self._http.get(path, params=params)

    def _post(
        self,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        return self._http.post(path, json=json, params=params)

    def _put(
        self,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
    ) -> Any:
        return self._http.put(path, json=json, params=params)

    def _delete(self, path: str, params: dict[str, Any] | None = None) -> Any:
        return self._http.delete(path, params=params)
