# tests/test_dialect.py
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import json
from decimal import Decimal

from apca.enums import Feed
from apca.models import Bar, Quote, Trade
from apca.stream.dialect import (
    AuthResult,
    Control,
    Data,
    Heartbeat,
    Malformed,
    MarketDataDialect,
    ServerError,
    SubscriptionAck,
    TradingDialect,
    dialect_for,
)
from apca.stream.events import TradeUpdate


def test_dialect_for():
    assert isinstance(dialect_for(Feed.TRADING), TradingDialect)
    assert isinstance(dialect_for("market_data"), MarketDataDialect)


def test_auth_frame():
    doc = json.loads(TradingDialect().auth_frame("KEY", "SECRET"))
    assert doc == {"action": "auth", "key": "KEY", "secret": "SECRET"}


def test_text_heartbeats():
    d = TradingDialect()
    assert d.parse("ping") == [Heartbeat("pong")]
    assert d.parse(" PONG ") == [Heartbeat()]


# ---- trading --------------------------------------------------------------------
def test_trading_authorization():
    d = TradingDialect()
    ok = '{"stream":"authorization","data":{"status":"authorized","action":"authenticate"}}'
    bad = '{"stream":"authorization","data":{"status":"unauthorized","action":"authenticate"}}'
    assert d.parse(ok) == [AuthResult(True)]
    [res] = d.parse(bad.encode())
    assert isinstance(res, AuthResult) and not res.ok


def test_trading_listening_ack():
    d = TradingDialect()
    [ack] = d.parse('{"stream":"listening","data":{"streams":["trade_updates"]}}')
    assert ack == SubscriptionAck(frozenset({("trade_updates", None)}))
    [err] = d.parse('{"stream":"listening","data":{"error":"invalid stream"}}')
    assert isinstance(err, ServerError)


def test_trading_listen_frame_carries_full_list():
    d = TradingDialect()
    wanted = frozenset({("trade_updates", None), ("account_updates", None)})
    [frame] = d.subscribe_frames(frozenset(), wanted)
    assert json.loads(frame) == {"action": "listen",
                                 "data": {"streams": ["account_updates", "trade_updates"]}}
    assert d.subscribe_frames(wanted, wanted) == []
    [frame] = d.subscribe_frames(wanted, frozenset())
    assert json.loads(frame)["data"]["streams"] == []


def test_trading_trade_update(trade_update):
    [item] = TradingDialect().parse(trade_update("fill", seq=3).encode())
    assert isinstance(item, Data)
    ev = item.event
    assert isinstance(ev, TradeUpdate)
    assert ev.event == "fill" and ev.is_fill
    assert ev.price == Decimal("189.10")
    assert ev.position_qty == Decimal("3")
    assert ev.order.symbol == "AAPL"
    assert ev.timestamp.microsecond == 0


def test_trading_malformed():
    d = TradingDialect()
    [m1] = d.parse("{broken")
    [m2] = d.parse('{"stream":"trade_updates","data":{"event":"fill"}}')
    [m3] = d.parse(b"\xff\xfe")
    [m4] = d.parse("[1, 2]")
    for m in (m1, m2, m3, m4):
        assert isinstance(m, Malformed)
    assert m1.raw == "{broken"


def test_trading_wrongly_typed_bodies_are_malformed():
    d = TradingDialect()
    for raw in (
        '{"stream":"listening","data":["trade_updates"]}',
        '{"stream":"authorization","data":"nope"}',
        '{"stream":"listening","data":{"streams":"trade_updates"}}',
        '{"stream":"listening","data":{"streams":[["trade_updates"]]}}',
        '{"stream":["trade_updates"],"data":{}}',
    ):
        [m] = d.parse(raw)
        assert isinstance(m, Malformed), raw
        assert m.raw == raw


def test_trading_unknown_stream_is_control():
    assert TradingDialect().parse('{"stream":"something_new","data":{}}') == [Control("something_new")]


# ---- market data ----------------------------------------------------------------
def test_market_data_control_and_auth():
    d = MarketDataDialect()
    items = d.parse('[{"T":"success","msg":"connected"},{"T":"success","msg":"authenticated"}]')
    assert items == [Control("connected"), AuthResult(True)]

    [rej] = d.parse('[{"T":"error","code":402,"msg":"auth failed"}]')
    assert isinstance(rej, AuthResult) and not rej.ok
    [err] = d.parse('[{"T":"error","code":406,"msg":"connection limit exceeded"}]')
    assert err == ServerError(406, "connection limit exceeded")


def test_market_data_subscription_ack():
    d = MarketDataDialect()
    [ack] = d.parse('[{"T":"subscription","trades":["AAPL"],"quotes":["AAPL","MSFT"],"bars":[]}]')
    assert ack.topics == {("trades", "AAPL"), ("quotes", "AAPL"), ("quotes", "MSFT")}


def test_market_data_wrongly_typed_bodies_are_malformed():
    d = MarketDataDialect()
    items = d.parse(json.dumps([
        {"T": "subscription", "quotes": 5},
        {"T": "subscription", "trades": "AAPL"},
        {"T": "subscription", "bars": [{"S": "SPY"}]},
        {"T": ["q"]},
        {"T": "error", "code": [402], "msg": "odd"},
    ]))
    assert all(isinstance(m, Malformed) for m in items[:4])
    assert items[4] == ServerError(None, "odd")


def test_market_data_delta_frames():
    d = MarketDataDialect()
    current = frozenset({("quotes", "AAPL"), ("trades", "AAPL")})
    wanted = frozenset({("quotes", "AAPL"), ("quotes", "MSFT"), ("bars", "*")})
    sub, unsub = d.subscribe_frames(current, wanted)
    assert json.loads(sub) == {"action": "subscribe", "quotes": ["MSFT"], "bars": ["*"]}
    assert json.loads(unsub) == {"action": "unsubscribe", "trades": ["AAPL"]}
    assert d.subscribe_frames(wanted, wanted) == []


def test_market_data_ticks():
    d = MarketDataDialect()
    raw = json.dumps([
        {"T": "q", "S": "AAPL", "bx": "V", "bp": 189.1, "bs": 1, "ax": "V", "ap": 189.12, "as": 4,
         "c": ["R"], "z": "C", "t": "2024-03-01T14:30:00.123456789Z"},
        {"T": "t", "S": "AAPL", "i": 52983525029461, "x": "V", "p": 189.11, "s": 100,
         "c": ["@"], "z": "C", "t": "2024-03-01T14:30:00.5Z"},
        {"T": "b", "S": "SPY", "o": 510.1, "h": 511, "l": 509.9, "c": 510.5, "v": 12345,
         "n": 88, "vw": 510.33, "t": "2024-03-01T14:30:00Z"},
        {"T": "q", "S": "BAD"},
    ])
    q, t, b, bad = d.parse(raw)
    assert isinstance(q.event, Quote) and q.event.bid_price == Decimal("189.1")
    assert q.event.timestamp.microsecond == 123456
    assert isinstance(t.event, Trade) and t.event.price == Decimal("189.11")
    assert isinstance(b.event, Bar) and b.event.vwap == Decimal("510.33")
    assert isinstance(bad, Malformed)


def test_market_data_unknown_tag_is_control():
    assert MarketDataDialect().parse('[{"T":"s","S":"AAPL"}]') == [Control("s")]
