# apca/stream/machine.py
"""
Connection-scoped state machine for one streaming session.

The machine never touches a socket. Each transition method takes one input
(the socket opened, a frame arrived, the desired set changed, an ack deadline
passed, the socket closed) and returns a :class:`Step` describing what the
driver has to do: frames to send and events to hand to the consumer.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, FrozenSet, List, Optional

from apca.enums import AckPolicy
from apca.errors import ApiError, AuthError, ProtocolError, TransportError
from apca.stream.channel import Topic, sorted_topics
from apca.stream.dialect import (
    AuthResult,
    Control,
    Data,
    Dialect,
    Heartbeat,
    Inbound,
    Malformed,
    Raw,
    ServerError,
    SubscriptionAck,
)
from apca.stream.events import ErrorEvent, Event, Reconnected
from utils.logger import logger, mask


class SessionState(str, Enum):
    CONNECTING = "connecting"
    AUTHENTICATING = "authenticating"
    SUBSCRIBING = "subscribing"
    LIVE = "live"
    CLOSED = "closed"


class CloseReason(str, Enum):
    TRANSPORT = "transport"
    AUTH = "auth"
    SERVER_CLOSE = "server_close"
    CLIENT_REQUESTED = "client_requested"
    PROTOCOL = "protocol"


@dataclass
class Step:
    send: List[str] = field(default_factory=list)
    events: List[Event] = field(default_factory=list)
    went_live: bool = False


def _fmt(topics) -> str:
    return ",".join(k if s is None else f"{k}:{s}" for k, s in sorted_topics(topics)) or "-"


class SessionMachine:
    def __init__(self,
                 dialect: Dialect,
                 key_id: str,
                 secret: str,
                 desired: Callable[[], FrozenSet[Topic]],
                 *,
                 ack_policy: AckPolicy = AckPolicy.RESUBSCRIBE,
                 max_resubscribes: int = 3,
                 resumed: Optional[int] = None,
                 ):
        """
        ``desired`` returns the topics the registry currently wants; it is read
        each time a subscribe round starts. ``resumed`` is the number of
        connection attempts since the last live session, or None for the first
        session. A resumed session announces itself with ``Reconnected``.
        """
        self.dialect = dialect
        self._key_id = key_id
        self._secret = secret
        self._desired = desired
        self.ack_policy = AckPolicy(ack_policy)
        self.max_resubscribes = int(max_resubscribes)
        self.resumed = resumed

        self.state = SessionState.CONNECTING
        self.close_reason: Optional[CloseReason] = None
        self.error: Optional[ApiError] = None

        self.requested: FrozenSet[Topic] = frozenset()
        self.acked: FrozenSet[Topic] = frozenset()
        self.pending_acks = 0
        self.ack_round = 0          # bumped whenever a new ack is awaited
        self.has_been_live = False

        self._dirty = False
        self._resubscribes = 0
        self._announced = False
        self._tag = f"[{dialect.name} key={mask(key_id)}]"

    # ---- queries ------------------------------------------------------------------
    @property
    def awaiting_ack(self) -> bool:
        if self.state is SessionState.AUTHENTICATING:
            return True
        return self.state is SessionState.SUBSCRIBING and self.pending_acks > 0

    @property
    def is_closed(self) -> bool:
        return self.state is SessionState.CLOSED

    # ---- transitions --------------------------------------------------------------
    def connected(self) -> Step:
        if self.state is not SessionState.CONNECTING:
            raise RuntimeError(f"connected() in state {self.state.value}")
        self.state = SessionState.AUTHENTICATING
        self.ack_round += 1
        logger.debug(f"{self._tag} socket open, authenticating")
        return Step(send=[self.dialect.auth_frame(self._key_id, self._secret)])

    def receive(self, raw: Raw) -> Step:
        step = Step()
        if self.is_closed:
            return step
        for item in self.dialect.parse(raw):
            self._handle(item, step)
            if self.is_closed:
                break
        return step

    def desired_changed(self) -> Step:
        step = Step()
        if self.state is SessionState.LIVE:
            self.state = SessionState.SUBSCRIBING
            self._resubscribes = 0
            self._sync(step)
        elif self.state is SessionState.SUBSCRIBING:
            # Picked up once the acks in flight have arrived.
            self._dirty = True
        return step

    def timed_out(self) -> Step:
        step = Step()
        if self.state is SessionState.AUTHENTICATING:
            self._close(CloseReason.TRANSPORT, TransportError("no authentication reply from server"))
        elif self.awaiting_ack:
            self._close(CloseReason.PROTOCOL,
                        ProtocolError(f"no subscription reply, requested {_fmt(self.requested)}"))
        return step

    def closed(self, reason: CloseReason, error: Optional[ApiError] = None) -> Step:
        if not self.is_closed:
            self._close(reason, error)
        return Step()

    # ---- internals ----------------------------------------------------------------
    def _close(self, reason: CloseReason, error: Optional[ApiError] = None) -> None:
        prev = self.state
        self.state = SessionState.CLOSED
        self.close_reason = reason
        self.error = error
        self.pending_acks = 0
        msg = f"{self._tag} closed in {prev.value}: {reason.value}"
        if error is not None:
            msg += f" ({error})"
        if reason in (CloseReason.CLIENT_REQUESTED,):
            logger.info(msg)
        else:
            logger.warning(msg)

    def _announce(self, step: Step) -> None:
        if self.resumed is not None and not self._announced:
            self._announced = True
            step.events.append(Reconnected(self.resumed))

    def _go_live(self, step: Step) -> None:
        self.state = SessionState.LIVE
        self._resubscribes = 0
        if not self.has_been_live:
            self.has_been_live = True
            step.went_live = True
            self._announce(step)
            logger.info(f"{self._tag} live, topics={_fmt(self.acked)}")
        else:
            logger.debug(f"{self._tag} live again, topics={_fmt(self.acked)}")

    def _sync(self, step: Step) -> None:
        """Start a subscribe round from what the server has confirmed to what is wanted."""
        wanted = frozenset(self._desired())
        frames = self.dialect.subscribe_frames(self.acked, wanted)
        self.requested = wanted
        self._dirty = False
        if not frames:
            if self.pending_acks == 0:
                self._go_live(step)
            return
        self.pending_acks += len(frames)
        self.ack_round += 1
        step.send.extend(frames)
        logger.debug(f"{self._tag} subscribe round {self.ack_round}: requested {_fmt(wanted)}")

    def _reconcile(self, step: Step) -> None:
        if self._dirty:
            self._sync(step)
            return

        missing = self.requested - self.acked
        extra = self.acked - self.requested
        if not missing and not extra:
            self._go_live(step)
            return

        logger.warning(f"{self._tag} subscription mismatch: missing={_fmt(missing)} "
                       f"unexpected={_fmt(extra)} policy={self.ack_policy.value}")
        if self.ack_policy is AckPolicy.FAIL:
            self._close(CloseReason.PROTOCOL,
                        ProtocolError(f"server acknowledged {_fmt(self.acked)}, "
                                      f"requested {_fmt(self.requested)}"))
        elif self.ack_policy is AckPolicy.RESUBSCRIBE and self._resubscribes < self.max_resubscribes:
            self._resubscribes += 1
            self._sync(step)
        else:
            if self.ack_policy is AckPolicy.RESUBSCRIBE:
                logger.warning(f"{self._tag} giving up after {self._resubscribes} resubscribe(s), "
                               f"accepting {_fmt(self.acked)}")
            self._go_live(step)

    def _handle(self, item: Inbound, step: Step) -> None:
        state = self.state

        if isinstance(item, Heartbeat):
            if item.reply:
                step.send.append(item.reply)
            return

        if isinstance(item, Control):
            logger.debug(f"{self._tag} control message {item.kind!r} in {state.value}")
            return

        if isinstance(item, Malformed):
            logger.warning(f"{self._tag} undecodable frame in {state.value}: {item.error}")
            if state in (SessionState.SUBSCRIBING, SessionState.LIVE):
                self._announce(step)
            step.events.append(ErrorEvent(item.error, item.raw))
            return

        if isinstance(item, AuthResult):
            if not item.ok:
                self._close(CloseReason.AUTH, AuthError(item.message or "stream authentication rejected"))
            elif state is SessionState.AUTHENTICATING:
                logger.debug(f"{self._tag} authenticated")
                self.state = SessionState.SUBSCRIBING
                self._sync(step)
            return

        if isinstance(item, SubscriptionAck):
            if state is SessionState.AUTHENTICATING:
                self._close(CloseReason.PROTOCOL, ProtocolError("subscription reply before authentication"))
                return
            self.acked = item.topics
            if self.pending_acks > 0:
                self.pending_acks -= 1
                if self.pending_acks == 0 and state is SessionState.SUBSCRIBING:
                    self._reconcile(step)
            return

        if isinstance(item, ServerError):
            err = ProtocolError(item.message or "server error", code=item.code)
            if state is SessionState.AUTHENTICATING:
                self._close(CloseReason.PROTOCOL, err)
                return
            logger.warning(f"{self._tag} server error in {state.value}: {err}")
            if state is SessionState.SUBSCRIBING and self.pending_acks > 0:
                # Settle with whatever the server has confirmed so far.
                self.pending_acks = 0
                if self._dirty:
                    self._sync(step)
                else:
                    self._go_live(step)
            if state in (SessionState.SUBSCRIBING, SessionState.LIVE):
                self._announce(step)
            step.events.append(ErrorEvent(err))
            return

        if isinstance(item, Data):
            if state in (SessionState.SUBSCRIBING, SessionState.LIVE):
                self._announce(step)
                step.events.append(item.event)
            else:
                logger.warning(f"{self._tag} dropping {type(item.event).__name__} received in {state.value}")
            return
