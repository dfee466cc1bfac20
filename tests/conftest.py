"""
Pytest configuration and fixtures for chat tests.
"""

import asyncio
import json

import pytest
from starlette.websockets import WebSocketState

from chat_gateway.connection_manager import ConnectionManager
from chat_shared.protocol import MSG_PING, MSG_PONG


class FakeWebSocket:
    """
    Server-side WebSocket stand-in.

    Records every text frame sent to it. ``fail_send`` makes sends raise,
    ``send_delay`` makes them slow.
    """

    def __init__(self, fail_send: bool = False, send_delay: float = 0.0):
        self.client_state = WebSocketState.CONNECTED
        self.application_state = WebSocketState.CONNECTED
        self.client = None
        self.accepted = False
        self.fail_send = fail_send
        self.send_delay = send_delay
        self.sent: list[str] = []
        self.close_code: int | None = None

    async def accept(self):
        self.accepted = True

    async def send_text(self, text: str):
        if self.send_delay:
            await asyncio.sleep(self.send_delay)
        if self.fail_send:
            raise RuntimeError("transport closed")
        self.sent.append(text)

    async def close(self, code: int = 1000, reason: str | None = None):
        self.close_code = code
        self.application_state = WebSocketState.DISCONNECTED

    @property
    def messages(self) -> list[dict]:
        """Structured messages received, keep-alive frames excluded."""
        return [json.loads(t) for t in self.sent if t not in (MSG_PING, MSG_PONG)]

    def presence_updates(self) -> list[list[str]]:
        return [m["users"] for m in self.messages if m.get("type") == "presence"]

    def notices(self) -> list[str]:
        return [m["message"] for m in self.messages if m.get("system")]

    def clear(self):
        self.sent.clear()


class FakeServerConnection:
    """
    Client-side connection stand-in with the websockets interface the
    controller uses: ``send``, ``close`` and async iteration.
    """

    def __init__(self, hang_on_close: bool = False):
        self.sent: list[str] = []
        self.closed = False
        self.hang_on_close = hang_on_close
        self._incoming: asyncio.Queue = asyncio.Queue()

    async def send(self, data: str):
        if self.closed:
            raise OSError("connection closed")
        self.sent.append(data)

    async def close(self):
        if self.hang_on_close:
            await asyncio.Event().wait()
        self.closed = True
        self._incoming.put_nowait(None)

    def feed(self, frame: str):
        """Deliver a frame from the server."""
        self._incoming.put_nowait(frame)

    def drop(self):
        """Simulate an unexpected transport failure."""
        self._incoming.put_nowait(OSError("connection reset by peer"))

    @property
    def messages(self) -> list[dict]:
        return [json.loads(t) for t in self.sent if t not in (MSG_PING, MSG_PONG)]

    def __aiter__(self):
        return self

    async def __anext__(self):
        item = await self._incoming.get()
        if item is None:
            raise StopAsyncIteration
        if isinstance(item, BaseException):
            raise item
        return item


class FakeConnector:
    """Replacement for ``websockets.connect`` handing out fake connections."""

    def __init__(self, failures: int = 0, hang_on_close: bool = False):
        self.failures = failures
        self.hang_on_close = hang_on_close
        self.calls = 0
        self.connections: list[FakeServerConnection] = []

    async def __call__(self, url: str, **kwargs):
        self.calls += 1
        if self.failures:
            self.failures -= 1
            raise OSError("Connection refused")
        conn = FakeServerConnection(hang_on_close=self.hang_on_close)
        self.connections.append(conn)
        return conn


async def wait_until(predicate, timeout: float = 1.0, interval: float = 0.005):
    """Poll ``predicate`` until it is true or fail after ``timeout``."""
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() > deadline:
            raise AssertionError("condition not met in time")
        await asyncio.sleep(interval)


@pytest.fixture
def manager():
    """Connection manager with a short send timeout for fast failure tests."""
    return ConnectionManager(heartbeat_interval=30.0, send_timeout=0.05)


@pytest.fixture
def connect(manager):
    """Admit a FakeWebSocket into the manager; returns (websocket, session)."""

    async def _connect(**kwargs):
        ws = FakeWebSocket(**kwargs)
        session = await manager.connect(ws)
        return ws, session

    return _connect
