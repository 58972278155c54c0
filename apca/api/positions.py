# apca/api/positions.py
from typing import List

from apca.endpoint import Endpoint
from apca.models import Order, Position

ListPositions = Endpoint(
    name="ListPositions",
    method="GET",
    path="/v2/positions",
    output=List[Position],
)

# Request for the two below: the symbol as a string.
GetPosition = Endpoint(
    name="GetPosition",
    method="GET",
    path="/v2/positions/{symbol}",
    output=Position,
    errors={404: "NotFound"},
)

# Liquidates the position with a market order and returns that order.
ClosePosition = Endpoint(
    name="ClosePosition",
    method="DELETE",
    path="/v2/positions/{symbol}",
    output=Order,
    errors={404: "NotFound"},
)
