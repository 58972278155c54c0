# apca/api/clock.py
from apca.endpoint import Endpoint
from apca.models import Clock

GetClock = Endpoint(
    name="GetClock",
    method="GET",
    path="/v2/clock",
    output=Clock,
)
