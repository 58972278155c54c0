# apca/stream/dialect.py
"""
Wire dialects for the two streaming endpoints.

A dialect knows how to phrase the auth and subscribe messages for one server
and how to classify inbound frames. It holds no connection state: the session
machine decides what a classified frame means in its current state.
"""
import json
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Type, Union

from pydantic import BaseModel, ValidationError

from apca.config import ApiInfo
from apca.enums import Feed
from apca.errors import DecodeError
from apca.models import Bar, Quote, Trade
from apca.stream.channel import ChannelKind, Topic, sorted_topics
from apca.stream.events import AccountUpdate, TradeUpdate

Raw = Union[str, bytes]


# ---- classified inbound frames --------------------------------------------------
@dataclass(frozen=True)
class AuthResult:
    ok: bool
    message: str = ""


@dataclass(frozen=True)
class SubscriptionAck:
    """The full set of topics the server now considers subscribed."""
    topics: FrozenSet[Topic]


@dataclass(frozen=True)
class Heartbeat:
    reply: Optional[str] = None


@dataclass(frozen=True)
class Control:
    kind: str


@dataclass(frozen=True)
class ServerError:
    code: Optional[int]
    message: str


@dataclass(frozen=True)
class Data:
    event: Any


@dataclass(frozen=True)
class Malformed:
    error: DecodeError
    raw: Raw


Inbound = Union[AuthResult, SubscriptionAck, Heartbeat, Control, ServerError, Data, Malformed]


def _dumps(obj: Any) -> str:
    return json.dumps(obj, separators=(",", ":"))


def _text(raw: Raw) -> str:
    if isinstance(raw, (bytes, bytearray)):
        return bytes(raw).decode("utf-8")
    return raw


def _malformed(raw: Raw, what: str) -> Malformed:
    return Malformed(DecodeError(what, raw=raw), raw)


def _str_list(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(v, str) for v in value)


def _validate(model: Type[BaseModel], payload: Any, raw: Raw) -> Inbound:
    try:
        return Data(model.model_validate(payload))
    except ValidationError as e:
        return Malformed(DecodeError(f"invalid {model.__name__}: {e.error_count()} error(s)", raw=raw), raw)


class Dialect:
    """Base class; subclasses fill in the server-specific parts."""
    feed: Feed
    name: str = "stream"

    def stream_url(self, api_info: ApiInfo) -> str:
        raise NotImplementedError

    def auth_frame(self, key_id: str, secret: str) -> str:
        return _dumps({"action": "auth", "key": key_id, "secret": secret})

    def subscribe_frames(self, current: FrozenSet[Topic], wanted: FrozenSet[Topic]) -> List[str]:
        """
        Frames that move the server from ``current`` to ``wanted``.

        Each returned frame is answered by exactly one :class:`SubscriptionAck`.
        An empty list means nothing needs to be sent.
        """
        raise NotImplementedError

    def parse(self, raw: Raw) -> List[Inbound]:
        try:
            text = _text(raw)
        except UnicodeDecodeError as e:
            return [Malformed(DecodeError(f"frame is not UTF-8: {e}", raw=raw), raw)]

        stripped = text.strip()
        if stripped.lower() == "ping":
            return [Heartbeat("pong")]
        if stripped.lower() == "pong":
            return [Heartbeat()]

        try:
            doc = json.loads(stripped, parse_float=Decimal)
        except ValueError as e:
            return [Malformed(DecodeError(f"frame is not JSON: {e}", raw=raw), raw)]
        return self._classify(doc, raw)

    def _classify(self, doc: Any, raw: Raw) -> List[Inbound]:
        raise NotImplementedError


class TradingDialect(Dialect):
    """
    Order and account notifications.

    Every message is a single object ``{"stream": ..., "data": {...}}``; the
    ``listen`` request always carries the full stream list.
    """
    feed = Feed.TRADING
    name = "trading"

    _MODELS: Dict[str, Type[BaseModel]] = {
        ChannelKind.TRADE_UPDATES.value: TradeUpdate,
        ChannelKind.ACCOUNT_UPDATES.value: AccountUpdate,
    }

    def stream_url(self, api_info: ApiInfo) -> str:
        return api_info.api_stream_url

    def subscribe_frames(self, current: FrozenSet[Topic], wanted: FrozenSet[Topic]) -> List[str]:
        if current == wanted:
            return []
        streams = [kind for kind, _ in sorted_topics(wanted)]
        return [_dumps({"action": "listen", "data": {"streams": streams}})]

    def _classify(self, doc: Any, raw: Raw) -> List[Inbound]:
        if not isinstance(doc, dict) or not isinstance(doc.get("stream"), str):
            return [_malformed(raw, "expected an object with a 'stream' field")]
        stream = doc["stream"]
        data = doc.get("data") or {}
        if not isinstance(data, dict):
            return [_malformed(raw, f"'{stream}' data is not an object")]

        if stream == "authorization":
            status = str(data.get("status", "")).lower()
            if status == "authorized":
                return [AuthResult(True)]
            return [AuthResult(False, f"authorization status {status or 'missing'}")]

        if stream == "listening":
            if data.get("error"):
                return [ServerError(None, str(data["error"]))]
            streams = data.get("streams") or []
            if not _str_list(streams):
                return [_malformed(raw, "'listening' streams is not a list of names")]
            return [SubscriptionAck(frozenset((s, None) for s in streams))]

        if data.get("error"):
            return [ServerError(data.get("code"), str(data["error"]))]

        model = self._MODELS.get(stream)
        if model is None:
            return [Control(str(stream))]
        return [_validate(model, data, raw)]


class MarketDataDialect(Dialect):
    """
    Quote, trade and bar ticks.

    Messages are JSON arrays of objects tagged by ``"T"``. Subscribe and
    unsubscribe requests are deltas; every ``subscription`` reply lists the
    full current set.
    """
    feed = Feed.MARKET_DATA
    name = "market_data"

    AUTH_REJECT_CODES = frozenset({401, 402})

    _MODELS: Dict[str, Type[BaseModel]] = {
        "q": Quote,
        "t": Trade,
        "b": Bar,
    }
    _KINDS = (ChannelKind.TRADES.value, ChannelKind.QUOTES.value, ChannelKind.BARS.value)

    def stream_url(self, api_info: ApiInfo) -> str:
        return api_info.data_stream_url

    def _frame(self, action: str, topics: Iterable[Topic]) -> Optional[str]:
        by_kind: Dict[str, List[str]] = {}
        for kind, symbol in sorted_topics(topics):
            by_kind.setdefault(kind, []).append(symbol)
        if not by_kind:
            return None
        msg: Dict[str, Any] = {"action": action}
        for kind in self._KINDS:
            if kind in by_kind:
                msg[kind] = by_kind[kind]
        return _dumps(msg)

    def subscribe_frames(self, current: FrozenSet[Topic], wanted: FrozenSet[Topic]) -> List[str]:
        frames = [
            self._frame("subscribe", wanted - current),
            self._frame("unsubscribe", current - wanted),
        ]
        return [f for f in frames if f]

    def _classify(self, doc: Any, raw: Raw) -> List[Inbound]:
        items = doc if isinstance(doc, list) else [doc]
        out: List[Inbound] = []
        for item in items:
            out.append(self._classify_one(item, raw))
        return out

    def _classify_one(self, item: Any, raw: Raw) -> Inbound:
        if not isinstance(item, dict) or not isinstance(item.get("T"), str):
            return _malformed(raw, "expected an object with a 'T' field")
        tag = item["T"]

        if tag == "success":
            msg = str(item.get("msg", ""))
            if msg == "authenticated":
                return AuthResult(True)
            return Control(msg or "success")

        if tag == "error":
            code = item.get("code")
            if not isinstance(code, int):
                code = None
            msg = str(item.get("msg", ""))
            if code in self.AUTH_REJECT_CODES:
                return AuthResult(False, f"{msg} ({code})")
            return ServerError(code, msg)

        if tag == "subscription":
            topics = set()
            for kind in self._KINDS:
                symbols = item.get(kind) or []
                if not _str_list(symbols):
                    return _malformed(raw, f"subscription '{kind}' is not a list of symbols")
                topics.update((kind, symbol) for symbol in symbols)
            return SubscriptionAck(frozenset(topics))

        model = self._MODELS.get(tag)
        if model is None:
            return Control(str(tag))
        return _validate(model, item, raw)


def dialect_for(feed: Feed) -> Dialect:
    feed = Feed(feed)
    if feed is Feed.TRADING:
        return TradingDialect()
    return MarketDataDialect()
