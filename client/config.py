"""Connection settings for the messaging client."""

import os
from typing import Any

from pydantic import BaseModel, Field

ENV_PREFIX = "MESSAGING_"


class ClientSettings(BaseModel):
    """Settings used to build a MessagingClient.

    Any field not passed explicitly is read from the environment
    (``MESSAGING_BASE_URL``, ``MESSAGING_TIMEOUT``,
    ``MESSAGING_RETRY_ENABLED``, ``MESSAGING_MAX_RETRIES``) before falling
    back to the defaults below.

    Args:
        base_url: Base URL of the messaging backend.
        timeout: Request timeout in seconds.
        retry_enabled: Whether loads are retried on transient failures.
        max_retries: Maximum number of retry attempts.
    """

    base_url: str = Field(default="http://localhost:8000", description="Backend base URL")
    timeout: float = Field(default=30.0, gt=0, description="Request timeout in seconds")
    retry_enabled: bool = Field(default=False, description="Retry loads on transient failures")
    max_retries: int = Field(default=3, ge=0, description="Maximum retry attempts")

    def __init__(self, **data: Any):
        """Initialize settings, filling unset fields from the environment.

        Args:
            **data: Explicit settings; these take precedence over the environment.
        """
        for name in ("base_url", "timeout", "retry_enabled", "max_retries"):
            if data.get(name) is None:
                value = os.environ.get(f"{ENV_PREFIX}{name.upper()}")
                if value:
                    data[name] = value
                else:
                    data.pop(name, None)
        super().__init__(**data)
