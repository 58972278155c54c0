# apca/api/orders.py
from typing import List

from apca.endpoint import Endpoint, body_of
from apca.models import ChangeOrderRequest, CreateOrderRequest, ListOrdersRequest, Order


def _list_query(req: ListOrdersRequest):
    # Field order is the wire order.
    return [
        ("symbols", req.symbols),
        ("status", req.status),
        ("limit", req.limit),
        ("nested", req.nested),
    ]


ListOrders = Endpoint(
    name="ListOrders",
    method="GET",
    path="/v2/orders",
    output=List[Order],
    query=_list_query,
)

CreateOrder = Endpoint(
    name="CreateOrder",
    method="POST",
    path="/v2/orders",
    output=Order,
    body=body_of,
    errors={
        # Some property of the order (e.g. buying power) prevents submission.
        403: "NotPermitted",
        # Invalid or inconsistent input data.
        422: "InvalidInput",
    },
)

# Request for the id-addressed operations: the order id (UUID or str).
GetOrder = Endpoint(
    name="GetOrder",
    method="GET",
    path="/v2/orders/{id}",
    output=Order,
    errors={404: "NotFound"},
)

# Request: the client order id as a string.
GetOrderByClientId = Endpoint(
    name="GetOrderByClientId",
    method="GET",
    path="/v2/orders:by_client_order_id",
    output=Order,
    query=lambda client_order_id: [("client_order_id", client_order_id)],
    errors={404: "NotFound"},
)

# Request: an ``(order_id, ChangeOrderRequest)`` pair.
ChangeOrder = Endpoint(
    name="ChangeOrder",
    method="PATCH",
    path="/v2/orders/{id}",
    output=Order,
    path_params=lambda req: {"id": req[0]},
    body=lambda req: body_of(req[1]),
    errors={
        403: "NotPermitted",
        404: "NotFound",
        422: "InvalidInput",
    },
)

DeleteOrder = Endpoint(
    name="DeleteOrder",
    method="DELETE",
    path="/v2/orders/{id}",
    ok={204},
    errors={
        404: "NotFound",
        # The order is in a state where it can no longer be canceled.
        422: "NotCancelable",
    },
)

__all__ = [
    "ListOrders",
    "CreateOrder",
    "GetOrder",
    "GetOrderByClientId",
    "ChangeOrder",
    "DeleteOrder",
    "ListOrdersRequest",
    "CreateOrderRequest",
    "ChangeOrderRequest",
]
