import pytest
import pytest_asyncio
from aiohttp.test_utils import TestClient, TestServer

from webstack.web import Server


class FakeClock:
    """Manually advanced monotonic clock."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def server():
    return Server()


@pytest_asyncio.fixture
async def start():
    """Start a Server's application on a test port and return a client for it."""
    clients = []

    async def _start(srv: Server) -> TestClient:
        client = TestClient(TestServer(srv.app))
        await client.start_server()
        clients.append(client)
        return client

    yield _start

    for client in clients:
        await client.close()
