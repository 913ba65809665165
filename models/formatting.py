"""Formatting and text helpers shared by the messaging views.

Every function that depends on the current time takes an explicit ``now``
so results are reproducible; it defaults to the current UTC time.
"""

import html
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Iterable, Optional, Protocol

URL_PATTERN = re.compile(r"(https?://[^\s]+)")
LINK_PLACEHOLDER = "[LINK]"
DEFAULT_TRUNCATE_LENGTH = 50


class Timestamped(Protocol):
    timestamp: datetime


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes; leave aware ones untouched."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _short_date(timestamp: datetime, now: datetime) -> str:
    if timestamp.year == now.year:
        return f"{timestamp:%b} {timestamp.day}"
    return f"{timestamp:%b} {timestamp.day}, {timestamp.year}"


def format_relative_time(timestamp: datetime, now: Optional[datetime] = None) -> str:
    """Format a timestamp relative to ``now``.

    Used for timestamp dividers and "last active" labels.

    Args:
        timestamp: The moment to describe.
        now: Reference time (defaults to the current UTC time).

    Returns:
        "Just now", "12m ago", "3h ago", "2d ago", or a short date once the
        timestamp is a week or more in the past.
    """
    now = ensure_utc(now or utc_now())
    timestamp = ensure_utc(timestamp)

    minutes = int((now - timestamp).total_seconds() // 60)
    if minutes < 1:
        return "Just now"
    if minutes < 60:
        return f"{minutes}m ago"

    hours = minutes // 60
    if hours < 24:
        return f"{hours}h ago"

    days = hours // 24
    if days < 7:
        return f"{days}d ago"

    return _short_date(timestamp, now)


def format_message_time(timestamp: datetime) -> str:
    """Format the clock time shown inside a message bubble (e.g. "03:04 PM")."""
    return timestamp.strftime("%I:%M %p")


def format_message_date(timestamp: datetime, now: Optional[datetime] = None) -> str:
    """Format the day heading for a message.

    Returns:
        "Today", "Yesterday", "Mar 5" within the current year, or
        "Mar 5, 2024" otherwise.
    """
    now = ensure_utc(now or utc_now())
    day = ensure_utc(timestamp).astimezone(now.tzinfo).date()

    if day == now.date():
        return "Today"
    if day == (now - timedelta(days=1)).date():
        return "Yesterday"
    return _short_date(ensure_utc(timestamp).astimezone(now.tzinfo), now)


def group_messages_by_date(
    messages: Iterable[Timestamped],
    now: Optional[datetime] = None,
) -> dict[str, list[Any]]:
    """Bucket messages under their day heading, preserving order."""
    now = now or utc_now()
    grouped: dict[str, list[Any]] = {}
    for message in messages:
        grouped.setdefault(format_message_date(message.timestamp, now), []).append(message)
    return grouped


def get_initials(name: Optional[str]) -> str:
    """Return up to two initials for an avatar placeholder.

    Single-word names yield one letter; longer names use the first and last
    words. Blank names yield "?".
    """
    if not name or not name.strip():
        return "?"

    words = name.split()
    if len(words) == 1:
        return words[0][0].upper()
    return (words[0][0] + words[-1][0]).upper()


def truncate_message(message: str, max_length: int = DEFAULT_TRUNCATE_LENGTH) -> str:
    """Cut a message to ``max_length`` characters, appending "..." if cut."""
    if len(message) <= max_length:
        return message
    return message[:max_length] + "..."


def sanitize_message(message: str) -> str:
    """Escape HTML-significant characters, including "/"."""
    return html.escape(message, quote=True).replace("/", "&#x2F;")


def parse_message_for_links(message: str) -> tuple[str, list[str]]:
    """Extract URLs from a message.

    Returns:
        The text with each URL replaced by "[LINK]", and the URLs in order.
    """
    links = URL_PATTERN.findall(message)
    return URL_PATTERN.sub(LINK_PLACEHOLDER, message), links
