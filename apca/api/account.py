# apca/api/account.py
from apca.endpoint import Endpoint
from apca.models import Account

GetAccount = Endpoint(
    name="GetAccount",
    method="GET",
    path="/v2/account",
    output=Account,
)
