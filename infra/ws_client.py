# infra/ws_client.py
import asyncio
import contextlib
from typing import Any, AsyncIterator, Awaitable, Callable, Optional

import websockets
from websockets.exceptions import ConnectionClosedOK, WebSocketException

from apca.errors import ApiError, TransportError
from apca.stream.events import Event
from apca.stream.machine import CloseReason, SessionMachine, SessionState, Step
from utils.logger import logger

# (url, **kwargs) -> awaitable that yields an open connection with send/recv/close
Connect = Callable[..., Awaitable[Any]]


class StreamSession:
    """
    Drives one :class:`SessionMachine` over one socket.

    A session is used exactly once: :meth:`events` opens the socket, runs the
    handshake and yields decoded events until the socket closes. Afterwards
    ``close_reason`` and ``error`` say why it ended.
    """

    def __init__(self,
                 url: str,
                 machine: SessionMachine,
                 *,
                 connect: Optional[Connect] = None,
                 open_timeout_s: float = 10.0,
                 auth_timeout_s: float = 5.0,
                 subscribe_timeout_s: float = 5.0,
                 ping_interval_s: Optional[float] = 20.0,
                 ping_timeout_s: Optional[float] = 20.0,
                 name: str = ""):
        self.url = url
        self.machine = machine
        self._connect = connect or websockets.connect
        self.open_timeout_s = open_timeout_s
        self.auth_timeout_s = auth_timeout_s
        self.subscribe_timeout_s = subscribe_timeout_s
        self.ping_interval_s = ping_interval_s
        self.ping_timeout_s = ping_timeout_s
        self.name = name or machine.dialect.name

        self._ws: Optional[Any] = None
        self._closing = False
        self._started = False

        self._deadline: Optional[float] = None
        self._deadline_round = -1

    # ---- outcome ------------------------------------------------------------------
    @property
    def state(self) -> SessionState:
        return self.machine.state

    @property
    def close_reason(self) -> Optional[CloseReason]:
        return self.machine.close_reason

    @property
    def error(self) -> Optional[ApiError]:
        return self.machine.error

    @property
    def went_live(self) -> bool:
        return self.machine.has_been_live

    # ---- lifecycle ----------------------------------------------------------------
    async def close(self) -> None:
        """Close the socket; a pending :meth:`events` ends with CLIENT_REQUESTED."""
        self._closing = True
        ws = self._ws
        if ws is not None:
            with contextlib.suppress(WebSocketException, OSError):
                await ws.close()
            logger.info(f"WS {self.name} close: requested by client")

    async def _open(self) -> bool:
        logger.info(f"WS {self.name} connect: connecting to {self.url}")
        try:
            self._ws = await asyncio.wait_for(
                self._connect(self.url,
                              open_timeout=self.open_timeout_s,
                              ping_interval=self.ping_interval_s,
                              ping_timeout=self.ping_timeout_s),
                timeout=self.open_timeout_s,
            )
        except asyncio.TimeoutError:
            self.machine.closed(CloseReason.TRANSPORT,
                                TransportError(f"connect timeout after {self.open_timeout_s}s", url=self.url))
            return False
        except (OSError, WebSocketException) as e:
            self.machine.closed(CloseReason.TRANSPORT,
                                TransportError(f"connect failed: {type(e).__name__}: {e}", url=self.url))
            return False
        logger.info(f"WS {self.name} connect: connected")
        return True

    def _on_socket_closed(self, e: Exception) -> None:
        if self._closing:
            self.machine.closed(CloseReason.CLIENT_REQUESTED)
        elif isinstance(e, ConnectionClosedOK):
            self.machine.closed(CloseReason.SERVER_CLOSE, TransportError(f"server closed the stream: {e}"))
        else:
            self.machine.closed(CloseReason.TRANSPORT, TransportError(f"socket error: {type(e).__name__}: {e}"))

    async def _apply(self, step: Step) -> bool:
        """Send the frames of ``step``; False once the socket is gone."""
        for frame in step.send:
            try:
                await self._ws.send(frame)
            except (WebSocketException, OSError) as e:
                self._on_socket_closed(e)
                return False
        return True

    def _ack_timeout(self, now: float) -> Optional[float]:
        m = self.machine
        if not m.awaiting_ack:
            self._deadline = None
            return None
        if self._deadline is None or self._deadline_round != m.ack_round:
            limit = self.auth_timeout_s if m.state is SessionState.AUTHENTICATING else self.subscribe_timeout_s
            self._deadline = now + limit
            self._deadline_round = m.ack_round
        return max(0.0, self._deadline - now)

    async def events(self, changed: asyncio.Event) -> AsyncIterator[Event]:
        """
        Run the session, yielding events in arrival order.

        ``changed`` is set whenever the desired channel set moves; the session
        then reconciles its subscriptions without reconnecting.
        """
        if self._started:
            raise RuntimeError("a stream session can only be run once")
        self._started = True

        if self._closing:
            self.machine.closed(CloseReason.CLIENT_REQUESTED)
            return
        if not await self._open():
            return

        loop = asyncio.get_running_loop()
        recv_task: Optional[asyncio.Future] = None
        changed_task: Optional[asyncio.Future] = None
        try:
            if self._closing:
                self.machine.closed(CloseReason.CLIENT_REQUESTED)
                return
            if not await self._apply(self.machine.connected()):
                return

            while not self.machine.is_closed:
                if recv_task is None:
                    recv_task = asyncio.ensure_future(self._ws.recv())
                if changed_task is None:
                    changed_task = asyncio.ensure_future(changed.wait())

                timeout = self._ack_timeout(loop.time())
                done, _ = await asyncio.wait({recv_task, changed_task}, timeout=timeout,
                                             return_when=asyncio.FIRST_COMPLETED)
                steps = []
                if not done:
                    steps.append(self.machine.timed_out())

                if changed_task in done:
                    changed_task = None
                    changed.clear()
                    steps.append(self.machine.desired_changed())

                if recv_task in done:
                    task, recv_task = recv_task, None
                    try:
                        raw = task.result()
                    except (WebSocketException, OSError) as e:
                        self._on_socket_closed(e)
                    else:
                        steps.append(self.machine.receive(raw))

                for step in steps:
                    if step.went_live:
                        logger.info(f"WS {self.name} live")
                    sent = await self._apply(step)
                    for ev in step.events:
                        yield ev
                    if not sent:
                        break
        finally:
            for task in (recv_task, changed_task):
                if task is not None and not task.done():
                    task.cancel()
                    with contextlib.suppress(asyncio.CancelledError, WebSocketException, OSError):
                        await task
            if not self.machine.is_closed:
                # Consumer stopped iterating or the task was cancelled.
                self.machine.closed(CloseReason.CLIENT_REQUESTED)
            self._closing = True
            ws, self._ws = self._ws, None
            if ws is not None:
                with contextlib.suppress(WebSocketException, OSError):
                    await ws.close()
            logger.info(f"WS {self.name} close: {self.close_reason.value if self.close_reason else 'closed'}")
