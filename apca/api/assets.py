# apca/api/assets.py
from apca.endpoint import Endpoint
from apca.models import Asset

# Request: the symbol (or asset id) as a string.
GetAsset = Endpoint(
    name="GetAsset",
    method="GET",
    path="/v2/assets/{symbol}",
    output=Asset,
    errors={404: "NotFound"},
)
