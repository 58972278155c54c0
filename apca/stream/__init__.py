"""Streaming: channels, desired-set registry, wire dialects, session machine, supervisor."""
from apca.stream.channel import Channel, ChannelKind
from apca.stream.events import AccountUpdate, ErrorEvent, Reconnected, TradeUpdate

__all__ = ["Channel", "ChannelKind", "TradeUpdate", "AccountUpdate", "ErrorEvent", "Reconnected"]
