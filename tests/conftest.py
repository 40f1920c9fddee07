import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient

from caldav_bridge.main import create_app
from caldav_bridge.services.radicale_store import StoreUnavailableError
from caldav_bridge.storage.webhook_registry import InMemoryWebhookRegistry
from caldav_bridge.utils.config import Settings
from caldav_bridge.utils.identifiers import SequenceGenerator

API_KEY = "test-api-key"


class FakeStore:
    """In-memory stand-in for the Radicale server"""

    def __init__(self):
        self.resources = {}
        self.content_types = {}
        self.reject_writes = False
        self.unavailable = False

    async def write(self, path, content_type, body):
        self._check_available()
        if self.reject_writes:
            return False
        self.resources[path] = body
        self.content_types[path] = content_type
        return True

    async def read(self, path):
        self._check_available()
        return self.resources.get(path)

    async def delete(self, path):
        self._check_available()
        return self.resources.pop(path, None) is not None

    async def close(self):
        pass

    def _check_available(self):
        if self.unavailable:
            raise StoreUnavailableError("Calendar server unavailable: connection refused")


class FakeResponse:
    """Async context manager mimicking an aiohttp response"""

    def __init__(self, status, body=""):
        self.status = status
        self._body = body

    async def text(self):
        return self._body

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False


class FakeSession:
    """
    Minimal aiohttp.ClientSession replacement.

    responses is a list consumed in call order; an exception in the list is
    raised instead of returning a response.
    """

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.calls = []
        self.closed = False

    def request(self, method, url, **kwargs):
        self.calls.append((method, url, kwargs))
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response

    def post(self, url, **kwargs):
        return self.request("POST", url, **kwargs)

    async def close(self):
        self.closed = True


@pytest.fixture
def settings():
    """Settings isolated from the environment's .env file"""
    return Settings(_env_file=None, API_KEY=API_KEY, RADICALE_URL="http://radicale.test:5232")


@pytest.fixture
def store():
    return FakeStore()


@pytest.fixture
def notifier():
    """Webhook notifier double recording notifications"""
    mock = MagicMock()
    mock.notify = AsyncMock(return_value=1)
    mock.close = AsyncMock()
    return mock


@pytest.fixture
def registry():
    return InMemoryWebhookRegistry()


@pytest.fixture
def app(settings, store, notifier, registry):
    return create_app(
        settings,
        store=store,
        webhook_registry=registry,
        notifier=notifier,
        id_generator=SequenceGenerator("id")
    )


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth():
    return {"X-API-Key": API_KEY}
