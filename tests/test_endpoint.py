# tests/test_endpoint.py
import sys
from pathlib import Path
sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

import json
import uuid
from decimal import Decimal

import pytest
from pydantic import ValidationError

from apca.api.account import GetAccount
from apca.api.assets import GetAsset
from apca.api.market_data import LatestQuotes
from apca.api.orders import (
    ChangeOrder,
    CreateOrder,
    DeleteOrder,
    GetOrder,
    GetOrderByClientId,
    ListOrders,
)
from apca.api.positions import ClosePosition, GetPosition
from apca.endpoint import Base, BodyEncoding, Endpoint, encode_query
from apca.enums import OrderListStatus, OrderStatus, OrderType, Side
from apca.errors import ApiError, AuthError, DecodeError, EncodeError, HttpError
from apca.models import (
    ChangeOrderRequest,
    CreateOrderRequest,
    LatestQuotesRequest,
    ListOrdersRequest,
)


def test_encode_query_keeps_order_and_drops_none():
    q = encode_query([("b", 2), ("a", None), ("c", True), ("d", ["X", "Y"]), ("e", [])])
    assert q == "?b=2&c=true&d=X,Y"
    assert encode_query([("a", None)]) == ""
    assert encode_query(None) == ""


def test_list_orders_query_order_is_declared_order():
    req = ListOrdersRequest(symbols=("AAPL", "MSFT"), status=OrderListStatus.ALL, limit=10, nested=False)
    wire = ListOrders.build(req)
    assert wire.method == "GET"
    assert wire.path == "/v2/orders"
    assert wire.query == "?symbols=AAPL,MSFT&status=all&limit=10&nested=false"
    assert wire.body is None

    # Same request, same bytes.
    assert ListOrders.build(req) == wire


def test_list_orders_defaults():
    wire = ListOrders.build(ListOrdersRequest())
    assert wire.target == "/v2/orders?status=open&nested=true"


def test_path_params_are_quoted():
    assert GetOrder.build("a b/c").path == "/v2/orders/a%20b%2Fc"
    oid = uuid.UUID(int=7)
    assert GetOrder.build(oid).path == f"/v2/orders/{oid}"
    assert GetPosition.build("BRK.B").path == "/v2/positions/BRK.B"
    assert ClosePosition.build("AAPL").method == "DELETE"


def test_get_order_by_client_id_query():
    wire = GetOrderByClientId.build("my-id-1")
    assert wire.target == "/v2/orders:by_client_order_id?client_order_id=my-id-1"


def test_create_order_body_round_trips_as_json():
    req = CreateOrderRequest(symbol="AAPL", side=Side.BUY, type=OrderType.LIMIT,
                             qty=Decimal("1.5"), limit_price=Decimal("189.10"))
    wire = CreateOrder.build(req)
    assert wire.method == "POST"
    assert wire.headers["Content-Type"] == "application/json"
    doc = json.loads(wire.body)
    assert doc["symbol"] == "AAPL"
    assert doc["side"] == "buy"
    assert doc["type"] == "limit"
    assert doc["time_in_force"] == "day"
    assert Decimal(doc["qty"]) == Decimal("1.5")
    assert Decimal(doc["limit_price"]) == Decimal("189.10")
    assert "notional" not in doc
    assert "stop_price" not in doc


def test_create_order_requires_exactly_one_amount():
    with pytest.raises(ValidationError):
        CreateOrderRequest(symbol="AAPL", side=Side.BUY)
    with pytest.raises(ValidationError):
        CreateOrderRequest(symbol="AAPL", side=Side.BUY, qty=Decimal(1), notional=Decimal(100))
    with pytest.raises(ValidationError):
        CreateOrderRequest(symbol="AAPL", side=Side.BUY, type=OrderType.LIMIT, qty=Decimal(1))


def test_change_order_uses_pair_request():
    oid = uuid.UUID(int=3)
    wire = ChangeOrder.build((oid, ChangeOrderRequest(limit_price=Decimal("10.25"))))
    assert wire.method == "PATCH"
    assert wire.path == f"/v2/orders/{oid}"
    assert json.loads(wire.body) == {"limit_price": "10.25"}


def test_form_encoding():
    ep = Endpoint(name="Form", method="post", path="/v2/form", body=lambda r: [("a", 1), ("b", True)],
                  encoding=BodyEncoding.FORM)
    wire = ep.build(None)
    assert wire.method == "POST"
    assert wire.body == b"a=1&b=true"
    assert wire.headers["Content-Type"] == "application/x-www-form-urlencoded"


def test_build_failure_is_encode_error():
    ep = Endpoint(name="Two", method="GET", path="/x/{a}/{b}")
    with pytest.raises(EncodeError):
        ep.build({"a": 1})


def test_market_data_endpoint_targets_data_base():
    wire = LatestQuotes.build(LatestQuotesRequest(symbols=("AAPL", "MSFT"), feed="iex"))
    assert LatestQuotes.base is Base.DATA
    assert wire.target == "/v2/stocks/quotes/latest?symbols=AAPL,MSFT&feed=iex"


# ---- decode ---------------------------------------------------------------------
def test_decode_list_orders_keeps_decimal_precision(order_payload):
    body = json.dumps([order_payload(limit_price=0.1, qty="3")]).encode()
    orders = ListOrders.decode(200, body)
    assert len(orders) == 1
    o = orders[0]
    assert o.status is OrderStatus.NEW
    assert o.limit_price == Decimal("0.1")
    assert o.qty == Decimal("3")
    assert o.created_at.microsecond == 123456


def test_decode_structured_error():
    body = b'{"code":40410000,"message":"order not found"}'
    with pytest.raises(HttpError) as ei:
        GetOrder.decode(404, body)
    e = ei.value
    assert e.status == 404
    assert e.variant == "NotFound"
    assert e.code == 40410000
    assert e.message == "order not found"
    assert e.body == body.decode()


def test_decode_raw_error_and_common_variants():
    with pytest.raises(HttpError) as ei:
        GetAccount.decode(429, b"slow down")
    assert ei.value.variant == "RateLimitExceeded"
    assert ei.value.code is None
    assert ei.value.body == "slow down"

    with pytest.raises(HttpError) as ei:
        GetAccount.decode(503, b"<html>busy</html>")
    assert ei.value.variant is None


def test_decode_401_is_auth_error():
    with pytest.raises(AuthError) as ei:
        GetAccount.decode(401, b'{"code":40110000,"message":"request is not authorized"}')
    assert ei.value.status == 401
    assert "not authorized" in ei.value.body


def test_decode_bad_success_body_is_decode_error():
    with pytest.raises(DecodeError) as ei:
        GetAccount.decode(200, b"{not json")
    assert ei.value.raw == b"{not json"
    with pytest.raises(DecodeError):
        GetAccount.decode(200, b'{"id": "nope"}')


def test_delete_order_success_set():
    assert DeleteOrder.decode(204, b"") is None
    # 200 is not a success status for this endpoint
    with pytest.raises(HttpError):
        DeleteOrder.decode(200, b"")


def test_status_outside_success_set_never_returns():
    for status in range(100, 600):
        if status in GetAccount.ok:
            continue
        with pytest.raises(ApiError):
            GetAccount.decode(status, b'{"code":1,"message":"x"}')


def test_decode_latest_quotes():
    body = json.dumps({
        "quotes": {
            "AAPL": {"bp": 189.1, "bs": 2, "ap": 189.12, "as": 3, "bx": "V", "ax": "V",
                     "c": ["R"], "z": "C", "t": "2024-03-01T14:30:00.123456789Z"},
        }
    }).encode()
    resp = LatestQuotes.decode(200, body)
    q = resp.quotes["AAPL"]
    assert q.bid_price == Decimal("189.1")
    assert q.ask_price == Decimal("189.12")
    assert q.conditions == ("R",)


def test_get_asset_alias_fields():
    wire = GetAsset.build("AAPL")
    assert wire.target == "/v2/assets/AAPL"
    body = json.dumps({"id": str(uuid.UUID(int=11)), "class": "us_equity", "exchange": "NASDAQ",
                       "symbol": "AAPL", "status": "active", "tradable": True,
                       "fractionable": True}).encode()
    asset = GetAsset.decode(200, body)
    assert asset.asset_class == "us_equity"
    assert asset.fractionable is True
    with pytest.raises(HttpError) as ei:
        GetAsset.decode(404, b'{"code":40410000,"message":"asset not found"}')
    assert ei.value.variant == "NotFound"
