"""Fixtures for market data tests.

Provides an in-memory stand-in for a ``websockets`` client connection and a
connector that hands them out, so the connection manager can be driven
without network access.
"""

import asyncio
import json

import pytest
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK


class FakeWebSocket:
    """Minimal client connection: ``recv``, ``send`` and ``close``."""

    def __init__(self) -> None:
        self.sent: list[str] = []
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.closed = False
        self.close_code: int | None = None

    async def recv(self):
        item = await self.incoming.get()
        if isinstance(item, BaseException):
            raise item
        return item

    async def send(self, message: str) -> None:
        if self.closed:
            raise ConnectionClosedOK(None, None)
        self.sent.append(message)

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed = True
        self.close_code = code
        self.incoming.put_nowait(ConnectionClosedOK(None, None))

    # --- Test helpers ---

    def push(self, message) -> None:
        """Queue an inbound message; non-strings are JSON-encoded."""
        if not isinstance(message, (str, bytes)):
            message = json.dumps(message)
        self.incoming.put_nowait(message)

    def drop(self) -> None:
        """Simulate the peer going away without a clean close."""
        self.closed = True
        self.incoming.put_nowait(ConnectionClosedError(None, None))

    @property
    def frames(self) -> list:
        return [json.loads(m) for m in self.sent]


class FakeConnector:
    """Callable used as ConnectionManager(connector=...)."""

    def __init__(self) -> None:
        self.sockets: list[FakeWebSocket] = []
        self.urls: list[str] = []
        self.failures = 0  # Number of upcoming dials that should fail

    async def __call__(self, url: str) -> FakeWebSocket:
        self.urls.append(url)
        if self.failures:
            self.failures -= 1
            raise OSError("connection refused")
        ws = FakeWebSocket()
        self.sockets.append(ws)
        return ws

    @property
    def latest(self) -> FakeWebSocket:
        return self.sockets[-1]


@pytest.fixture
def connector() -> FakeConnector:
    return FakeConnector()


@pytest.fixture
def wait_until():
    """Return a coroutine that polls ``predicate`` until true or times out."""

    async def _wait_until(predicate, timeout: float = 1.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(0.005)

    return _wait_until
