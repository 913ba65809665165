"""Contacts sub-client for the messaging API.

This module provides ContactsClient for the user-directory endpoints
(/users/*): existing contacts, followed users, search, and follow/unfollow.

This is an internal module. Import from `client` instead.
"""

from client._base import BaseClient, extract, parse_records
from client.models import FollowResponse
from models.user import Contact


class ContactsClient(BaseClient):
    """Synchronous client for the user directory endpoints (/users/*).

    Every list method returns validated Contact records; malformed entries
    are skipped rather than failing the whole list.

    Example:
        with MessagingClient(session=session) as client:
            following = client.contacts.list_following()
            matches = client.contacts.search("sarah")
            client.contacts.follow(matches[0].id)
    """

    _BASE_PATH = "/users"

    def list_contacts(self) -> list[Contact]:
        """Get users the current user already shares conversations with.

        Returns:
            Contacts in server order.

        Raises:
            APIError: If the request fails.
        """
        data = self._get(f"{self._BASE_PATH}/contacts")
        return parse_records(extract(data, "contacts", "users"), Contact, "contact")

    def list_following(self) -> list[Contact]:
        """Get users the current user follows.

        Returns:
            Followed users in server order.

        Raises:
            APIError: If the request fails.
        """
        data = self._get(f"{self._BASE_PATH}/following")
        return parse_records(extract(data, "following", "users"), Contact, "followed user")

    def search(self, query: str) -> list[Contact]:
        """Search users by free text, including follow information.

        Args:
            query: Free-text query (sent as-is).

        Returns:
            Matching users, annotated with relationship flags.

        Raises:
            APIError: If the request fails.
        """
        data = self._get(
            f"{self._BASE_PATH}/search",
            params={"q": query, "include_follow_info": "true"},
        )
        return parse_records(extract(data, "users", "results"), Contact, "search result")

    def follow(self, user_id: str) -> FollowResponse:
        """Follow a user.

        Args:
            user_id: The user to follow.

        Returns:
            The relationship after the change.

        Raises:
            APIError: If the request fails.
        """
        data = self._post(f"{self._BASE_PATH}/{user_id}/follow")
        return _follow_response(data, user_id, True)

    def unfollow(self, user_id: str) -> FollowResponse:
        """Unfollow a user.

        Args:
            user_id: The user to unfollow.

        Returns:
            The relationship after the change.

        Raises:
            APIError: If the request fails.
        """
        data = self._post(f"{self._BASE_PATH}/{user_id}/unfollow")
        return _follow_response(data, user_id, False)


def _follow_response(data: object, user_id: str, expected: bool) -> FollowResponse:
    """Build a FollowResponse, trusting the request when the body is empty."""
    is_following = extract(data, "is_following", "isFollowing") if isinstance(data, dict) else None
    return FollowResponse(
        user_id=user_id,
        is_following=expected if is_following is None else bool(is_following),
    )
