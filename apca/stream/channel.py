# apca/stream/channel.py
from dataclasses import dataclass
from enum import Enum
from typing import FrozenSet, Iterable, Optional, Tuple

from apca.enums import Feed

# (channel kind, symbol); symbol is None for account-wide streams.
Topic = Tuple[str, Optional[str]]


class ChannelKind(str, Enum):
    TRADE_UPDATES = "trade_updates"
    ACCOUNT_UPDATES = "account_updates"
    TRADES = "trades"
    QUOTES = "quotes"
    BARS = "bars"


_FEED_OF = {
    ChannelKind.TRADE_UPDATES: Feed.TRADING,
    ChannelKind.ACCOUNT_UPDATES: Feed.TRADING,
    ChannelKind.TRADES: Feed.MARKET_DATA,
    ChannelKind.QUOTES: Feed.MARKET_DATA,
    ChannelKind.BARS: Feed.MARKET_DATA,
}

ALL_SYMBOLS = "*"


def _norm_symbols(symbols: Iterable[str]) -> FrozenSet[str]:
    return frozenset(s.strip().upper() for s in symbols if s and s.strip())


@dataclass(frozen=True)
class Channel:
    """
    One streamable category plus its parameters.

    Two channels are equal when kind and symbol set are equal, so
    ``Channel.quotes("AAPL")`` and ``Channel.quotes("AAPL", "MSFT")`` are
    distinct registry entries even though they overlap on the wire.
    """
    kind: ChannelKind
    symbols: FrozenSet[str] = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "kind", ChannelKind(self.kind))
        object.__setattr__(self, "symbols", _norm_symbols(self.symbols))
        if self.feed is Feed.TRADING and self.symbols:
            raise ValueError(f"{self.kind.value} does not take symbols")
        if self.feed is Feed.MARKET_DATA and not self.symbols:
            raise ValueError(f"{self.kind.value} needs at least one symbol ({ALL_SYMBOLS!r} for all)")

    @property
    def feed(self) -> Feed:
        return _FEED_OF[self.kind]

    def topics(self) -> FrozenSet[Topic]:
        if not self.symbols:
            return frozenset({(self.kind.value, None)})
        return frozenset((self.kind.value, s) for s in self.symbols)

    def __str__(self) -> str:
        if not self.symbols:
            return self.kind.value
        return f"{self.kind.value}:{','.join(sorted(self.symbols))}"

    # ---- constructors ---------------------------------------------------------
    @classmethod
    def trade_updates(cls) -> "Channel":
        return cls(ChannelKind.TRADE_UPDATES)

    @classmethod
    def account_updates(cls) -> "Channel":
        return cls(ChannelKind.ACCOUNT_UPDATES)

    @classmethod
    def trades(cls, *symbols: str) -> "Channel":
        return cls(ChannelKind.TRADES, frozenset(symbols))

    @classmethod
    def quotes(cls, *symbols: str) -> "Channel":
        return cls(ChannelKind.QUOTES, frozenset(symbols))

    @classmethod
    def bars(cls, *symbols: str) -> "Channel":
        return cls(ChannelKind.BARS, frozenset(symbols))


def topics_of(channels: Iterable[Channel]) -> FrozenSet[Topic]:
    out: set = set()
    for ch in channels:
        out |= ch.topics()
    return frozenset(out)


def sorted_topics(topics: Iterable[Topic]) -> list:
    return sorted(topics, key=lambda t: (t[0], t[1] or ""))
