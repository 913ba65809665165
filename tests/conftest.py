"""Pytest configuration and shared fixtures."""

import pytest

# Load environment variables from .env file at test startup
# so MESSAGING_* settings are available before fixtures are created
from dotenv import load_dotenv
load_dotenv()

pytest_plugins = [
    "tests.fixtures.records",
    "tests.fixtures.backend",
]


@pytest.fixture(autouse=True)
def isolate_messaging_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep MESSAGING_* variables from a developer's .env out of unit tests."""
    for name in (
        "MESSAGING_BASE_URL",
        "MESSAGING_TIMEOUT",
        "MESSAGING_RETRY_ENABLED",
        "MESSAGING_MAX_RETRIES",
    ):
        monkeypatch.delenv(name, raising=False)
