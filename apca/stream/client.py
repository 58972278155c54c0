# apca/stream/client.py
import asyncio
import random
from typing import AsyncIterator, FrozenSet, Optional

from apca.config import ApiInfo, ClientSettings
from apca.enums import Feed
from apca.stream.backoff import ExponentialBackoff
from apca.stream.channel import Channel, topics_of
from apca.stream.dialect import Dialect, dialect_for
from apca.stream.events import Event
from apca.stream.machine import SessionMachine
from apca.stream.registry import SubscriptionRegistry
from apca.stream.supervisor import Supervisor
from infra.ws_client import Connect, StreamSession
from utils.logger import logger, mask


class StreamClient:
    """
    Streaming handle for one feed.

    ``subscribe``/``unsubscribe`` only edit the desired set and may be called
    at any time, from any thread, before or during iteration. ``events()``
    returns the single event sequence of this handle.
    """

    def __init__(self,
                 api_info: ApiInfo,
                 feed: Feed = Feed.TRADING,
                 *,
                 settings: Optional[ClientSettings] = None,
                 connect: Optional[Connect] = None,
                 rng: Optional[random.Random] = None):
        self.api_info = api_info
        self.feed = Feed(feed)
        self.settings = settings or ClientSettings()
        self.dialect: Dialect = dialect_for(self.feed)
        self.url = self.dialect.stream_url(api_info)
        self.registry = SubscriptionRegistry(self.feed)
        self._connect = connect
        self._supervisor = Supervisor(self._new_session,
                                      ExponentialBackoff.from_settings(self.settings, rng=rng),
                                      name=f"stream[{self.feed.value}]")
        self._consumed = False
        logger.debug(f"StreamClient init feed={self.feed.value} url={self.url} key={mask(api_info.key_id)}")

    # ---- desired set --------------------------------------------------------------
    def subscribe(self, channel: Channel) -> bool:
        return self.registry.subscribe(channel)

    def unsubscribe(self, channel: Channel) -> bool:
        return self.registry.unsubscribe(channel)

    def desired_set(self) -> FrozenSet[Channel]:
        return self.registry.desired_set()

    # ---- sessions -----------------------------------------------------------------
    def _new_session(self, resumed: Optional[int]) -> StreamSession:
        s = self.settings
        machine = SessionMachine(
            self.dialect,
            self.api_info.key_id,
            self.api_info.secret,
            lambda: topics_of(self.registry.desired_set()),
            ack_policy=s.ack_policy,
            max_resubscribes=s.max_resubscribes,
            resumed=resumed,
        )
        return StreamSession(
            self.url,
            machine,
            connect=self._connect,
            open_timeout_s=s.ws_open_timeout_s,
            auth_timeout_s=s.auth_timeout_s,
            subscribe_timeout_s=s.subscribe_timeout_s,
            ping_interval_s=s.ping_interval_s,
            ping_timeout_s=s.ping_timeout_s,
            name=self.feed.value,
        )

    def events(self) -> AsyncIterator[Event]:
        """
        The event sequence: infinite until :meth:`close`, auth rejection (raised
        as ``AuthError``) or the consumer stops iterating. Can only be called
        once per handle.
        """
        if self._consumed:
            raise RuntimeError("events() was already called on this stream handle")
        self._consumed = True
        return self._run()

    async def _run(self) -> AsyncIterator[Event]:
        loop = asyncio.get_running_loop()
        changed = asyncio.Event()

        def _wake(_desired) -> None:
            loop.call_soon_threadsafe(changed.set)

        self.registry.add_listener(_wake)
        events = self._supervisor.run(changed)
        try:
            async for ev in events:
                yield ev
        finally:
            self.registry.remove_listener(_wake)
            await events.aclose()

    async def close(self) -> None:
        await self._supervisor.stop()

    @property
    def closed(self) -> bool:
        return self._supervisor.stopped
