import logging
from typing import Any, Callable, List, Optional

import httpx
import pytest
import pytest_asyncio

from rabbit_stats import AsyncRabbitStats, RabbitStats


_ENV_VARS = [
    "RABBITMQ_MGMT_URL",
    "RABBITMQ_USER",
    "RABBITMQ_PASS",
    "RABBITMQ_MGMT_TIMEOUT",
    "RABBITMQ_SSL_VERIFY",
    "RABBITMQ_SSL_CA_PATH",
    "RABBITMQ_MGMT_RAISE_FOR_STATUS",
    "LOG_LEVEL",
    "METRICS_PORT",
    "RABBITMQ_SETUP_VHOST",
    "RABBITMQ_SETUP_USER",
    "RABBITMQ_SETUP_PASS",
    "RABBITMQ_PERMISSIONS_CONFIGURE",
    "RABBITMQ_PERMISSIONS_WRITE",
    "RABBITMQ_PERMISSIONS_READ",
]


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch):
    # Keep a developer's broker settings out of the tests
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def _restore_root_logging():
    # The CLI reconfigures the root logger; undo it between tests
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers = handlers
    root.setLevel(level)


class Recorder:
    """MockTransport handler that records requests and returns a canned reply."""

    def __init__(self, status_code: int = 200, payload: Any = None) -> None:
        self.status_code = status_code
        self.payload = {"ok": True} if payload is None else payload
        self.requests: List[httpx.Request] = []
        self.raise_exc: Optional[Callable[[httpx.Request], Exception]] = None

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_exc is not None:
            raise self.raise_exc(request)
        if self.status_code == 204:
            return httpx.Response(204)
        return httpx.Response(self.status_code, json=self.payload)

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]


def raw_path(request: httpx.Request) -> str:
    """Path exactly as sent on the wire, without the query string."""
    return request.url.raw_path.decode().split("?", 1)[0]


@pytest.fixture
def recorder() -> Recorder:
    return Recorder()


@pytest.fixture
def rabbit(recorder):
    client = RabbitStats(transport=httpx.MockTransport(recorder))
    yield client
    client.close()


@pytest_asyncio.fixture
async def async_rabbit(recorder):
    client = AsyncRabbitStats(transport=httpx.MockTransport(recorder))
    yield client
    await client.aclose()
