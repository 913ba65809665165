"""Messaging API Client Library.

This module provides a type-safe Python client for the messaging REST API:
the user directory, conversations, and messages.

Example:
    Synchronous usage::

        from client import MessagingClient

        with MessagingClient(base_url="http://localhost:8000", session=session) as client:
            conversations = client.conversations.list_conversations()
            client.messages.send(conversations[0].id, content="Hello")

Exports:
    MessagingClient: Synchronous client for the messaging REST API.
    ClientSettings: Environment-aware connection settings.

    Exceptions:
        MessagingClientError: Base exception for all client errors.
        ConnectionError: Failed to connect to the server.
        TimeoutError: Request timed out.
        APIError: Server returned an error response.
        AuthenticationError: Credential rejected (HTTP 401).
        ValidationError: Request validation failed (HTTP 422).
        NotFoundError: Resource not found (HTTP 404).
        ConflictError: State conflict (HTTP 409).
        ServerError: Server-side error (HTTP 5xx).
"""

from client._contacts import ContactsClient
from client._conversations import ConversationsClient
from client._messages import MessagesClient
from client.config import ClientSettings
from client.exceptions import (
    APIError,
    AuthenticationError,
    ConflictError,
    ConnectionError,
    MessagingClientError,
    NotFoundError,
    ServerError,
    TimeoutError,
    ValidationError,
)
from client.models import (
    Contact,
    Conversation,
    ConversationCreated,
    FollowResponse,
    Message,
    User,
)
from client.client import MessagingClient

__all__ = [
    # Main client
    "MessagingClient",
    "ClientSettings",
    # Sub-clients
    "ContactsClient",
    "ConversationsClient",
    "MessagesClient",
    # Exceptions
    "MessagingClientError",
    "ConnectionError",
    "TimeoutError",
    "APIError",
    "AuthenticationError",
    "ValidationError",
    "NotFoundError",
    "ConflictError",
    "ServerError",
    # Response models
    "Contact",
    "Conversation",
    "ConversationCreated",
    "FollowResponse",
    "Message",
    "User",
]
