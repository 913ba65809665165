"""Main messaging client class.

This module provides MessagingClient, the synchronous entry point for the
messaging REST API. It exposes namespaced access to the API through
sub-client properties (client.contacts, client.conversations,
client.messages).

Example:
    Basic usage::

        from client import MessagingClient
        from models.session import Session

        with MessagingClient(base_url="http://localhost:8000", session=session) as client:
            conversations = client.conversations.list_conversations()
            history = client.messages.history(conversations[0].id)
"""

import logging
from typing import Any

from client._contacts import ContactsClient
from client._conversations import ConversationsClient
from client._http import HTTPClient
from client._messages import MessagesClient
from client.config import ClientSettings
from models.session import Session

logger = logging.getLogger(__name__)


class MessagingClient:
    """Synchronous client for the messaging REST API.

    Provides a unified interface to all messaging endpoints through
    namespaced sub-clients. Supports the context manager protocol for
    automatic resource cleanup.

    Attributes:
        base_url: The base URL of the messaging backend.
        session: The authenticated session requests are made for.

    Example:
        Manual lifecycle management::

            client = MessagingClient(session=session)
            try:
                client.contacts.search("sarah")
            finally:
                client.close()
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        session: Session | None = None,
        timeout: float = 30.0,
        retry_enabled: bool = False,
        max_retries: int = 3,
        transport: Any = None,
    ) -> None:
        """Initialize the messaging client.

        Args:
            base_url: The base URL of the backend (default: http://localhost:8000).
            session: Authenticated session; its access token is sent as a
                bearer token on every request.
            timeout: Request timeout in seconds (default: 30.0).
            retry_enabled: Whether loads (GET requests) are retried on
                connection errors, timeouts and HTTP 502/503/504 with
                exponential backoff. Mutations are never retried
                (default: False).
            max_retries: Maximum number of retry attempts when retry is enabled
                (default: 3).
            transport: Custom HTTP transport (e.g., MockTransport for testing).
        """
        self._base_url = base_url
        self._session = session

        access_token = None
        if session is not None:
            if session.is_authenticated:
                access_token = session.access_token
            else:
                logger.warning(f"Session for {session.user_id} has no access token")

        self._http = HTTPClient(
            base_url=base_url,
            access_token=access_token,
            timeout=timeout,
            retry_enabled=retry_enabled,
            max_retries=max_retries,
            transport=transport,
        )

        self._contacts: ContactsClient | None = None
        self._conversations: ConversationsClient | None = None
        self._messages: MessagesClient | None = None

    @classmethod
    def from_settings(
        cls,
        settings: ClientSettings,
        session: Session | None = None,
        transport: Any = None,
    ) -> "MessagingClient":
        """Build a client from ClientSettings.

        Args:
            settings: Connection settings (usually environment-derived).
            session: Authenticated session.
            transport: Custom HTTP transport.

        Returns:
            A new MessagingClient.
        """
        return cls(
            base_url=settings.base_url,
            session=session,
            timeout=settings.timeout,
            retry_enabled=settings.retry_enabled,
            max_retries=settings.max_retries,
            transport=transport,
        )

    @property
    def base_url(self) -> str:
        return self._base_url

    @property
    def session(self) -> Session | None:
        return self._session

    def __enter__(self) -> "MessagingClient":
        """Enter context manager.

        Returns:
            The client instance.
        """
        return self

    def __exit__(self, *args: Any) -> None:
        """Exit context manager and close the client."""
        self.close()

    def close(self) -> None:
        """Close the client and release resources."""
        self._http.close()

    # Sub-client properties (lazy initialization)

    @property
    def contacts(self) -> ContactsClient:
        """Access user directory endpoints (/users/*).

        Returns:
            ContactsClient instance for contacts, following, search and follow.
        """
        if self._contacts is None:
            self._contacts = ContactsClient(self._http)
        return self._contacts

    @property
    def conversations(self) -> ConversationsClient:
        """Access conversation endpoints.

        Provides methods for:
        - Listing conversations
        - Creating direct and group conversations
        - Marking conversations read
        - Accepting/declining message requests
        - Pinning/muting

        Returns:
            ConversationsClient instance.
        """
        if self._conversations is None:
            self._conversations = ConversationsClient(self._http)
        return self._conversations

    @property
    def messages(self) -> MessagesClient:
        """Access message endpoints (history, send, edit, delete, react).

        Returns:
            MessagesClient instance.
        """
        if self._messages is None:
            self._messages = MessagesClient(self._http)
        return self._messages
