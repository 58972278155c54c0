# apca/stream/events.py
"""
Everything ``events()`` can yield.

Market data ticks reuse the REST models (``Quote``, ``Trade``, ``Bar``); order
and account notifications have their own models here. ``ErrorEvent`` and
``Reconnected`` are produced by the client itself, never by the server.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional, Union

from apca.errors import ApiError
from apca.models import Bar, Order, Quote, Timestamp, Trade, WireModel


class TradeUpdate(WireModel):
    """One ``trade_updates`` message: an order lifecycle change."""
    event: str
    order: Order
    execution_id: Optional[str] = None
    price: Optional[Decimal] = None
    qty: Optional[Decimal] = None
    position_qty: Optional[Decimal] = None
    timestamp: Optional[Timestamp] = None

    @property
    def is_fill(self) -> bool:
        return self.event in ("fill", "partial_fill")


class AccountUpdate(WireModel):
    id: str
    status: Optional[str] = None
    currency: Optional[str] = None
    cash: Optional[Decimal] = None
    cash_withdrawable: Optional[Decimal] = None
    created_at: Optional[Timestamp] = None
    updated_at: Optional[Timestamp] = None
    deleted_at: Optional[Timestamp] = None


@dataclass(frozen=True)
class ErrorEvent:
    """A non-fatal problem: a frame that did not decode, or a server error message."""
    error: ApiError
    raw: Optional[Union[str, bytes]] = None


@dataclass(frozen=True)
class Reconnected:
    """Gap marker: a replacement session went live. Nothing is replayed across it."""
    attempts: int = 1


Event = Union[TradeUpdate, AccountUpdate, Quote, Trade, Bar, ErrorEvent, Reconnected]

__all__ = [
    "TradeUpdate",
    "AccountUpdate",
    "Quote",
    "Trade",
    "Bar",
    "ErrorEvent",
    "Reconnected",
    "Event",
]
