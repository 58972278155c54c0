# tests/conftest.py
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import asyncio
import json
import uuid

import pytest
import pytest_asyncio
from websockets.exceptions import ConnectionClosedError, ConnectionClosedOK
from websockets.frames import Close

from apca.config import ApiInfo, ClientSettings
from infra.http_client import HttpClient

API_BASE = "https://paper-api.alpaca.markets"
DATA_BASE = "https://data.alpaca.markets"
KEY_ID = "PKTESTKEY00000001"
SECRET = "s3cr3t-value-never-logged"


@pytest.fixture
def api_info():
    return ApiInfo.from_parts(API_BASE, KEY_ID, SECRET)


@pytest_asyncio.fixture
async def http_client(api_info):
    """HttpClient as an async context manager so the session is always closed."""
    async with HttpClient(api_info, timeout_s=5) as client:
        yield client


@pytest.fixture
def fast_settings():
    return ClientSettings(
        ws_open_timeout_s=1.0,
        auth_timeout_s=0.5,
        subscribe_timeout_s=0.5,
        backoff_initial_s=0.01,
        backoff_max_s=0.05,
        backoff_jitter=0.0,
    )


def make_order(**over):
    doc = {
        "id": str(uuid.UUID(int=1)),
        "client_order_id": "cid-1",
        "status": "new",
        "symbol": "AAPL",
        "side": "buy",
        "type": "limit",
        "time_in_force": "day",
        "qty": "10",
        "filled_qty": "0",
        "limit_price": "189.10",
        "created_at": "2024-03-01T14:30:00.123456789Z",
    }
    doc.update(over)
    return doc


def make_trade_update(event="new", seq=0, **order_over):
    return json.dumps({
        "stream": "trade_updates",
        "data": {
            "event": event,
            "execution_id": f"exec-{seq}",
            "price": "189.10",
            "qty": "1",
            "position_qty": str(seq),
            "timestamp": "2024-03-01T14:30:01.000000001Z",
            "order": make_order(**order_over),
        },
    })


@pytest.fixture
def order_payload():
    return make_order


@pytest.fixture
def trade_update():
    return make_trade_update


# ---- in-memory websocket -------------------------------------------------------
class FakeSocket:
    """Client side of one fake connection: frames the client sent, frames it will receive."""

    def __init__(self, server, index):
        self.server = server
        self.index = index
        self.sent = []
        self.listen_requests = []
        self.closed = False
        self._inbox = asyncio.Queue()

    # what the session calls
    async def send(self, frame):
        if self.closed:
            raise ConnectionClosedOK(Close(1000, ""), Close(1000, ""), True)
        self.sent.append(frame)
        self.server.handle(self, frame)

    async def recv(self):
        item = await self._inbox.get()
        if isinstance(item, Exception):
            self.closed = True
            # Keep raising on later calls.
            self._inbox.put_nowait(item)
            raise item
        return item

    async def close(self):
        if not self.closed:
            self.closed = True
            self._inbox.put_nowait(ConnectionClosedOK(Close(1000, ""), Close(1000, ""), False))

    # what the test calls
    def push(self, frame):
        self._inbox.put_nowait(frame)

    def server_close(self):
        self._inbox.put_nowait(ConnectionClosedOK(Close(1000, "bye"), Close(1000, "bye"), True))

    def drop(self):
        self._inbox.put_nowait(ConnectionClosedError(None, None))


class FakeTradingServer:
    """
    Speaks the trading stream protocol.

    - ``authorize``: True/False, or None to never answer the auth message
    - ``ack``: optional ``(index, streams) -> streams`` to shape listen replies,
      returning None suppresses the reply
    - ``after_listen``: optional ``(socket) -> None`` run after each listen reply
    """

    def __init__(self, authorize=True, ack=None, after_listen=None):
        self.authorize = authorize
        self.ack = ack
        self.after_listen = after_listen
        self.sockets = []
        self.connect_calls = []
        self.fail_connects = 0

    async def connect(self, url, **kwargs):
        self.connect_calls.append((url, kwargs))
        if self.fail_connects:
            self.fail_connects -= 1
            raise OSError("connection refused")
        ws = FakeSocket(self, len(self.sockets))
        self.sockets.append(ws)
        return ws

    def handle(self, ws, frame):
        if frame == "pong":
            return
        msg = json.loads(frame)
        if msg.get("action") == "auth":
            if self.authorize is None:
                return
            status = "authorized" if self.authorize else "unauthorized"
            ws.push(json.dumps({"stream": "authorization",
                                "data": {"status": status, "action": "authenticate"}}))
        elif msg.get("action") == "listen":
            streams = msg["data"]["streams"]
            ws.listen_requests.append(streams)
            if self.ack is not None:
                streams = self.ack(ws.index, streams)
                if streams is None:
                    return
            ws.push(json.dumps({"stream": "listening", "data": {"streams": streams}}))
            if self.after_listen is not None:
                self.after_listen(ws)


@pytest.fixture
def fake_server():
    return FakeTradingServer()


async def wait_until(pred, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not pred():
        if loop.time() > deadline:
            raise AssertionError("condition not reached in time")
        await asyncio.sleep(0.005)


@pytest.fixture
def until():
    return wait_until
