# tests/test_client.py
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import asyncio
import uuid

import pytest
from aioresponses import aioresponses

from apca.api.clock import GetClock
from apca.client import Client
from apca.config import ApiInfo
from apca.enums import Feed
from apca.stream.channel import Channel

BASE = "https://paper-api.alpaca.markets"


@pytest.mark.asyncio
async def test_dispatch_through_client(api_info):
    async with Client(api_info) as client:
        with aioresponses() as m:
            m.get(f"{BASE}/v2/clock", payload={
                "timestamp": "2024-03-01T09:30:00.000000001-05:00",
                "is_open": True,
                "next_open": "2024-03-04T09:30:00-05:00",
                "next_close": "2024-03-01T16:00:00-05:00",
            })
            clock = await client.dispatch(GetClock)
    assert clock.is_open is True
    assert client.http.session.closed


@pytest.mark.asyncio
async def test_subscriptions_route_by_feed(api_info):
    client = Client(api_info)
    assert client.subscribe(Channel.trade_updates()) is True
    assert client.subscribe(Channel.quotes("AAPL")) is True
    assert client.subscribe(Channel.quotes("AAPL")) is False

    trading = client.stream(Feed.TRADING)
    data = client.stream(Feed.MARKET_DATA)
    assert client.stream("trading") is trading
    assert trading.desired_set() == {Channel.trade_updates()}
    assert data.desired_set() == {Channel.quotes("AAPL")}
    assert trading.url == api_info.api_stream_url
    assert data.url == api_info.data_stream_url

    assert client.unsubscribe(Channel.quotes("AAPL")) is True
    assert data.desired_set() == frozenset()
    await client.close()


@pytest.mark.asyncio
async def test_independent_clients(fake_server, fast_settings, trade_update, until):
    """Two clients with different credentials share nothing."""
    a = Client(ApiInfo.from_parts(BASE, "PKCLIENTA00001", "secret-a"), fast_settings,
               connect=fake_server.connect)
    b = Client(ApiInfo.from_parts(BASE, "PKCLIENTB00001", "secret-b"), fast_settings)

    a.subscribe(Channel.trade_updates())
    assert b.stream().desired_set() == frozenset()

    fake_server.after_listen = lambda ws: ws.push(trade_update("new", 1, id=str(uuid.UUID(int=99))))
    agen = a.events()
    ev = await asyncio.wait_for(agen.__anext__(), 2)
    await agen.aclose()
    assert ev.order.id == uuid.UUID(int=99)

    await a.close()
    await b.close()
    assert len(fake_server.sockets) == 1
    assert '"key":"PKCLIENTA00001"' in fake_server.sockets[0].sent[0]
