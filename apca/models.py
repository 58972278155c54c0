# apca/models.py
"""
Wire shapes for the trading and market data APIs.

Every price, quantity and cash amount is a ``Decimal``. Response bodies are
parsed with ``parse_float=Decimal`` before validation, so JSON numbers never
pass through binary floating point either.
"""
import re
from datetime import datetime
from decimal import Decimal
from typing import Annotated, Dict, List, Optional, Tuple
from uuid import UUID

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, model_validator

from apca.enums import (
    OrderClass,
    OrderListStatus,
    OrderStatus,
    OrderType,
    PositionSide,
    Side,
    TimeInForce,
)

# Market data timestamps carry nanoseconds; datetime stops at microseconds.
_SUBMICRO = re.compile(r"(\.\d{6})\d+")


def _trim_fraction(v):
    if isinstance(v, str):
        return _SUBMICRO.sub(r"\1", v)
    return v


Timestamp = Annotated[datetime, BeforeValidator(_trim_fraction)]


class WireModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")


# ---- account -----------------------------------------------------------------
class Account(WireModel):
    id: UUID
    account_number: str
    status: str
    currency: str = "USD"
    cash: Decimal
    buying_power: Decimal
    equity: Decimal
    last_equity: Optional[Decimal] = None
    portfolio_value: Optional[Decimal] = None
    long_market_value: Optional[Decimal] = None
    short_market_value: Optional[Decimal] = None
    initial_margin: Optional[Decimal] = None
    maintenance_margin: Optional[Decimal] = None
    multiplier: Optional[Decimal] = None
    daytrade_count: int = 0
    pattern_day_trader: bool = False
    trading_blocked: bool = False
    transfers_blocked: bool = False
    account_blocked: bool = False
    shorting_enabled: bool = False
    created_at: Optional[Timestamp] = None


# ---- orders ------------------------------------------------------------------
class TakeProfit(WireModel):
    limit_price: Decimal


class StopLoss(WireModel):
    stop_price: Decimal
    limit_price: Optional[Decimal] = None


class Order(WireModel):
    id: UUID
    client_order_id: str
    status: OrderStatus
    symbol: str
    side: Side
    type_: OrderType = Field(alias="type")
    time_in_force: TimeInForce
    asset_id: Optional[UUID] = None
    asset_class: Optional[str] = None
    order_class: Optional[OrderClass] = None
    qty: Optional[Decimal] = None
    notional: Optional[Decimal] = None
    filled_qty: Decimal = Decimal(0)
    filled_avg_price: Optional[Decimal] = None
    limit_price: Optional[Decimal] = None
    stop_price: Optional[Decimal] = None
    trail_price: Optional[Decimal] = None
    trail_percent: Optional[Decimal] = None
    extended_hours: bool = False
    created_at: Optional[Timestamp] = None
    updated_at: Optional[Timestamp] = None
    submitted_at: Optional[Timestamp] = None
    filled_at: Optional[Timestamp] = None
    canceled_at: Optional[Timestamp] = None
    legs: Optional[List["Order"]] = None


Order.model_rebuild()


class ListOrdersRequest(WireModel):
    symbols: Tuple[str, ...] = ()
    status: OrderListStatus = OrderListStatus.OPEN
    # Defaults to 50 server side, capped at 500.
    limit: Optional[int] = None
    # Nested orders only show up as legs of their parent; harmless to include.
    nested: bool = True


class CreateOrderRequest(WireModel):
    symbol: str
    side: Side
    type_: OrderType = Field(OrderType.MARKET, alias="type")
    time_in_force: TimeInForce = TimeInForce.DAY
    qty: Optional[Decimal] = None
    notional: Optional[Decimal] = None
    limit_price: Optional[Decimal] = None
    stop_price: Optional[Decimal] = None
    trail_price: Optional[Decimal] = None
    trail_percent: Optional[Decimal] = None
    extended_hours: bool = False
    client_order_id: Optional[str] = None
    order_class: Optional[OrderClass] = None
    take_profit: Optional[TakeProfit] = None
    stop_loss: Optional[StopLoss] = None

    @model_validator(mode="after")
    def _one_amount(self):
        if (self.qty is None) == (self.notional is None):
            raise ValueError("exactly one of qty or notional must be set")
        if self.type_ in (OrderType.LIMIT, OrderType.STOP_LIMIT) and self.limit_price is None:
            raise ValueError(f"{self.type_.value} order requires limit_price")
        if self.type_ in (OrderType.STOP, OrderType.STOP_LIMIT) and self.stop_price is None:
            raise ValueError(f"{self.type_.value} order requires stop_price")
        return self


class ChangeOrderRequest(WireModel):
    qty: Optional[Decimal] = None
    time_in_force: Optional[TimeInForce] = None
    limit_price: Optional[Decimal] = None
    stop_price: Optional[Decimal] = None
    trail: Optional[Decimal] = None
    client_order_id: Optional[str] = None


# ---- positions / assets / clock ----------------------------------------------
class Position(WireModel):
    asset_id: UUID
    symbol: str
    exchange: str
    asset_class: str
    side: PositionSide
    qty: Decimal
    avg_entry_price: Decimal
    qty_available: Optional[Decimal] = None
    market_value: Optional[Decimal] = None
    cost_basis: Optional[Decimal] = None
    unrealized_pl: Optional[Decimal] = None
    unrealized_plpc: Optional[Decimal] = None
    current_price: Optional[Decimal] = None
    lastday_price: Optional[Decimal] = None
    change_today: Optional[Decimal] = None


class Asset(WireModel):
    id: UUID
    asset_class: str = Field(alias="class")
    exchange: str
    symbol: str
    name: Optional[str] = None
    status: str
    tradable: bool
    marginable: bool = False
    shortable: bool = False
    easy_to_borrow: bool = False
    fractionable: bool = False


class Clock(WireModel):
    timestamp: Timestamp
    is_open: bool
    next_open: Timestamp
    next_close: Timestamp


# ---- market data -------------------------------------------------------------
class Quote(WireModel):
    # Absent in REST responses, where the symbol is the mapping key instead.
    symbol: Optional[str] = Field(None, alias="S")
    bid_exchange: Optional[str] = Field(None, alias="bx")
    bid_price: Decimal = Field(alias="bp")
    bid_size: Decimal = Field(alias="bs")
    ask_exchange: Optional[str] = Field(None, alias="ax")
    ask_price: Decimal = Field(alias="ap")
    ask_size: Decimal = Field(alias="as")
    conditions: Tuple[str, ...] = Field((), alias="c")
    tape: Optional[str] = Field(None, alias="z")
    timestamp: Timestamp = Field(alias="t")


class Trade(WireModel):
    symbol: str = Field(alias="S")
    trade_id: int = Field(alias="i")
    exchange: Optional[str] = Field(None, alias="x")
    price: Decimal = Field(alias="p")
    size: Decimal = Field(alias="s")
    conditions: Tuple[str, ...] = Field((), alias="c")
    tape: Optional[str] = Field(None, alias="z")
    timestamp: Timestamp = Field(alias="t")


class Bar(WireModel):
    symbol: str = Field(alias="S")
    open: Decimal = Field(alias="o")
    high: Decimal = Field(alias="h")
    low: Decimal = Field(alias="l")
    close: Decimal = Field(alias="c")
    volume: Decimal = Field(alias="v")
    trade_count: Optional[int] = Field(None, alias="n")
    vwap: Optional[Decimal] = Field(None, alias="vw")
    timestamp: Timestamp = Field(alias="t")


class LatestQuotesRequest(WireModel):
    symbols: Tuple[str, ...]
    feed: Optional[str] = None


class LatestQuotes(WireModel):
    quotes: Dict[str, Quote] = Field(default_factory=dict)
