import os
import sys
from pathlib import Path
from typing import List

import httpx
import pytest

# Add src to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from outbound_http.config.settings import get_settings  # noqa: E402


def pytest_configure(config):
    # Register the asyncio marker so pytest doesn't warn when it's used.
    config.addinivalue_line(
        "markers", "asyncio: mark test to run in an asyncio event loop"
    )
    config.addinivalue_line("markers", "unit: mark test as a unit test")
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )


@pytest.fixture(autouse=True)
def mock_env_vars(monkeypatch):
    """Pin settings to their defaults for every test.

    Clears any ``OUTBOUND_HTTP_*`` variables from the developer's shell
    and resets the cached settings before and after each test.
    """
    for key in list(os.environ):
        if key.startswith("OUTBOUND_HTTP_"):
            monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("OUTBOUND_HTTP_LOG_LEVEL", "DEBUG")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class ScriptedServer:
    """Mock transport handler replaying canned responses in order.

    Every request it receives is recorded, with its body already read,
    so tests can assert on what went over the wire.
    """

    def __init__(self, *responses, repeat=None):
        self.responses = list(responses)
        self.repeat = repeat
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request):
        self.requests.append(request)
        if self.responses:
            item = self.responses.pop(0)
        elif self.repeat is not None:
            item = self.repeat
        else:
            raise AssertionError(f"unexpected request to {request.url}")
        if isinstance(item, Exception):
            raise item
        if callable(item):
            return item(request)
        return item

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self))


@pytest.fixture
def scripted_server():
    """Factory for :class:`ScriptedServer` instances."""
    return ScriptedServer


# Rely on pytest-asyncio for async test handling; no custom hook needed.
