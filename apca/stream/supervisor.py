# apca/stream/supervisor.py
import asyncio
from typing import AsyncIterator, Callable, Optional

from apca.errors import AuthError
from apca.stream.backoff import ExponentialBackoff
from apca.stream.events import Event
from apca.stream.machine import CloseReason
from infra.ws_client import StreamSession
from utils.logger import logger

# resumed -> fresh session; resumed is None for the very first session
SessionFactory = Callable[[Optional[int]], StreamSession]


class Supervisor:
    """
    Stitches successive sessions into one event sequence.

    Every session is brand new and subscribes from the registry's current
    snapshot. Auth rejection is raised once and ends the sequence; any other
    close not asked for by the caller is followed by a backoff delay and a
    new session.
    """

    def __init__(self, factory: SessionFactory, backoff: ExponentialBackoff, *, name: str = "stream"):
        self._factory = factory
        self.backoff = backoff
        self.name = name
        self._stopped = False
        self._stop_event = asyncio.Event()
        self._session: Optional[StreamSession] = None
        self.sessions = 0

    @property
    def stopped(self) -> bool:
        return self._stopped

    async def stop(self) -> None:
        """Close the active session and interrupt any backoff wait."""
        self._stopped = True
        self._stop_event.set()
        session = self._session
        if session is not None:
            await session.close()

    async def _wait(self, delay: float) -> bool:
        """Sleep ``delay`` seconds; True if stop() was called meanwhile."""
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
            return True
        except asyncio.TimeoutError:
            return False

    async def run(self, changed: asyncio.Event) -> AsyncIterator[Event]:
        ever_live = False
        attempts = 0        # sessions started since the last one that went live

        while not self._stopped:
            changed.clear()
            attempts += 1
            session = self._factory(attempts if ever_live else None)
            self._session = session
            self.sessions += 1
            events = session.events(changed)
            try:
                async for ev in events:
                    yield ev
            finally:
                self._session = None
                await events.aclose()

            if session.went_live:
                ever_live = True
                attempts = 0
                self.backoff.reset()

            reason = session.close_reason
            if reason is CloseReason.AUTH:
                logger.error(f"{self.name}: authentication rejected, not reconnecting")
                raise session.error or AuthError("stream authentication rejected")
            if reason is CloseReason.CLIENT_REQUESTED or self._stopped:
                logger.info(f"{self.name}: stopped")
                return

            delay = self.backoff.next_delay()
            logger.warning(f"{self.name}: session ended ({reason.value if reason else 'unknown'}: "
                           f"{session.error}), reconnecting in {delay:.2f}s")
            if await self._wait(delay):
                logger.info(f"{self.name}: stopped during backoff")
                return
