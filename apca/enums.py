# apca/enums.py
from enum import Enum


class Mode(str, Enum):
    PAPER = "paper"
    LIVE = "live"


class Side(str, Enum):
    BUY = "buy"
    SELL = "sell"


class PositionSide(str, Enum):
    LONG = "long"
    SHORT = "short"


class OrderType(str, Enum):
    MARKET = "market"
    LIMIT = "limit"
    STOP = "stop"
    STOP_LIMIT = "stop_limit"
    TRAILING_STOP = "trailing_stop"


class OrderClass(str, Enum):
    SIMPLE = "simple"
    BRACKET = "bracket"
    ONE_CANCELS_OTHER = "oco"
    ONE_TRIGGERS_OTHER = "oto"


class TimeInForce(str, Enum):
    DAY = "day"
    GTC = "gtc"
    OPG = "opg"
    CLS = "cls"
    IOC = "ioc"
    FOK = "fok"


class OrderStatus(str, Enum):
    NEW = "new"
    PARTIALLY_FILLED = "partially_filled"
    FILLED = "filled"
    DONE_FOR_DAY = "done_for_day"
    CANCELED = "canceled"
    EXPIRED = "expired"
    REPLACED = "replaced"
    PENDING_CANCEL = "pending_cancel"
    PENDING_REPLACE = "pending_replace"
    PENDING_NEW = "pending_new"
    ACCEPTED = "accepted"
    ACCEPTED_FOR_BIDDING = "accepted_for_bidding"
    STOPPED = "stopped"
    REJECTED = "rejected"
    SUSPENDED = "suspended"
    CALCULATED = "calculated"
    HELD = "held"


class OrderListStatus(str, Enum):
    """Filter used when listing orders."""
    OPEN = "open"
    CLOSED = "closed"
    ALL = "all"


class DataFeed(str, Enum):
    IEX = "iex"
    SIP = "sip"


class Feed(str, Enum):
    """Which streaming endpoint a channel lives on."""
    TRADING = "trading"
    MARKET_DATA = "market_data"


class AckPolicy(str, Enum):
    """What a session does when the server acknowledges fewer topics than requested."""
    RESUBSCRIBE = "resubscribe"
    ACCEPT = "accept"
    FAIL = "fail"
