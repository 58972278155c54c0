# infra/__init__.py
"""Transport adapters: pooled HTTP dispatch and the WebSocket session driver."""
from __future__ import annotations

from typing import Any, Optional, Protocol

from apca.endpoint import Endpoint


class HttpPort(Protocol):
    """What the rest of the code needs from a dispatcher."""
    async def dispatch(self, endpoint: Endpoint, request: Any = None, *,
                       timeout_s: Optional[float] = None) -> Any: ...

    async def close(self) -> None: ...


async def http_healthcheck(http: HttpPort) -> bool:
    """Cheap authenticated round trip; ``False`` on any API failure."""
    from apca.api.clock import GetClock
    from apca.errors import ApiError

    try:
        await http.dispatch(GetClock)
        return True
    except ApiError:
        return False
