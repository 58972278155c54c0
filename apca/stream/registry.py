# apca/stream/registry.py
import threading
from typing import Callable, FrozenSet, List, Optional, Tuple

from apca.enums import Feed
from apca.stream.channel import Channel
from utils.logger import logger

Listener = Callable[[FrozenSet[Channel]], None]


class SubscriptionRegistry:
    """
    The caller's desired channel set, independent of any connection.

    Set semantics: subscribing twice is the same as once, and unsubscribing a
    channel that is not desired does nothing. Mutations and snapshots share one
    lock, so a snapshot taken for replay never observes half a mutation and no
    concurrent mutation is lost: anything after the snapshot triggers the
    listeners, which wake the live session to reconcile again.
    """

    def __init__(self, feed: Optional[Feed] = None) -> None:
        self._feed = feed
        self._lock = threading.Lock()
        self._desired: FrozenSet[Channel] = frozenset()
        self._version = 0
        self._listeners: List[Listener] = []

    @property
    def feed(self) -> Optional[Feed]:
        return self._feed

    def add_listener(self, cb: Listener) -> None:
        with self._lock:
            self._listeners.append(cb)

    def remove_listener(self, cb: Listener) -> None:
        with self._lock:
            if cb in self._listeners:
                self._listeners.remove(cb)

    def _check(self, channel: Channel) -> None:
        if not isinstance(channel, Channel):
            raise TypeError(f"expected Channel, got {type(channel).__name__}")
        if self._feed is not None and channel.feed is not self._feed:
            raise ValueError(f"channel {channel} belongs to the {channel.feed.value} feed, "
                             f"not {self._feed.value}")

    def _mutate(self, channel: Channel, add: bool) -> bool:
        self._check(channel)
        with self._lock:
            present = channel in self._desired
            if present == add:
                return False
            self._desired = self._desired | {channel} if add else self._desired - {channel}
            self._version += 1
            snapshot = self._desired
            listeners = list(self._listeners)
        logger.debug(f"registry {'+' if add else '-'}{channel} -> {len(snapshot)} channel(s)")
        for cb in listeners:
            cb(snapshot)
        return True

    def subscribe(self, channel: Channel) -> bool:
        """Add ``channel``; returns whether the desired set changed."""
        return self._mutate(channel, add=True)

    def unsubscribe(self, channel: Channel) -> bool:
        """Remove ``channel``; returns whether the desired set changed."""
        return self._mutate(channel, add=False)

    def desired_set(self) -> FrozenSet[Channel]:
        with self._lock:
            return self._desired

    def snapshot(self) -> Tuple[int, FrozenSet[Channel]]:
        """The desired set together with a counter bumped by every effective mutation."""
        with self._lock:
            return self._version, self._desired

    def __contains__(self, channel: Channel) -> bool:
        return channel in self.desired_set()

    def __len__(self) -> int:
        return len(self.desired_set())
