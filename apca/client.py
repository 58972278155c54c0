# apca/client.py
from typing import Any, AsyncIterator, Dict, Mapping, Optional

import aiohttp

from apca.config import ApiInfo, ClientSettings
from apca.endpoint import Endpoint
from apca.enums import Feed
from apca.stream.channel import Channel
from apca.stream.client import StreamClient
from apca.stream.events import Event
from infra.http_client import HttpClient
from infra.ws_client import Connect
from utils.logger import logger


class Client:
    """
    Entry point: HTTP dispatch plus one lazily created stream per feed.

    Several clients with different credentials can live side by side; nothing
    here is process-global.
    """

    def __init__(self,
                 api_info: ApiInfo,
                 settings: Optional[ClientSettings] = None,
                 *,
                 session: Optional[aiohttp.ClientSession] = None,
                 connect: Optional[Connect] = None):
        self.api_info = api_info
        self.settings = settings or ClientSettings()
        self.http = HttpClient(api_info, timeout_s=self.settings.http_timeout_s, session=session)
        self._connect = connect
        self._streams: Dict[Feed, StreamClient] = {}

    @classmethod
    def from_env(cls, settings: Optional[ClientSettings] = None, **kwargs) -> "Client":
        return cls(ApiInfo.from_env(), settings, **kwargs)

    @classmethod
    def from_cfg(cls, cfg: Mapping[str, Any], **kwargs) -> "Client":
        return cls(ApiInfo.from_cfg(cfg), ClientSettings.from_cfg(cfg), **kwargs)

    # ---- http ---------------------------------------------------------------------
    async def dispatch(self, endpoint: Endpoint, request: Any = None, *,
                       timeout_s: Optional[float] = None) -> Any:
        return await self.http.dispatch(endpoint, request, timeout_s=timeout_s)

    # ---- streaming ----------------------------------------------------------------
    def stream(self, feed: Feed = Feed.TRADING) -> StreamClient:
        feed = Feed(feed)
        sc = self._streams.get(feed)
        if sc is None:
            sc = StreamClient(self.api_info, feed, settings=self.settings, connect=self._connect)
            self._streams[feed] = sc
        return sc

    def subscribe(self, channel: Channel) -> bool:
        return self.stream(channel.feed).subscribe(channel)

    def unsubscribe(self, channel: Channel) -> bool:
        return self.stream(channel.feed).unsubscribe(channel)

    def events(self, feed: Feed = Feed.TRADING) -> AsyncIterator[Event]:
        return self.stream(feed).events()

    # ---- lifecycle ----------------------------------------------------------------
    async def close(self) -> None:
        for feed, sc in list(self._streams.items()):
            logger.debug(f"Client close: stopping {feed.value} stream")
            await sc.close()
        await self.http.close()

    async def __aenter__(self) -> "Client":
        await self.http.__aenter__()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
