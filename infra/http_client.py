# infra/http_client.py
from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Optional, Tuple

import aiohttp

from apca.config import ApiInfo
from apca.endpoint import Base, Endpoint, WireRequest
from apca.errors import TransportError
from utils.logger import logger, mask

HEADER_KEY_ID = "APCA-API-KEY-ID"
HEADER_SECRET = "APCA-API-SECRET-KEY"


class HttpClient:
    """
    Executes endpoint descriptors over one pooled keep-alive session.

    Each :meth:`dispatch` is exactly one HTTP attempt. Nothing is retried here:
    resubmitting an order after an ambiguous failure could place it twice, so
    the decision belongs to the caller.
    """

    def __init__(self,
                 api_info: ApiInfo,
                 *,
                 timeout_s: float = 10.0,
                 session: Optional[aiohttp.ClientSession] = None,
                 ) -> None:
        self.api_info = api_info
        self.session = session
        self._owned_session = session is None
        self.timeout_s = float(timeout_s)

        self._bases = {
            Base.API: api_info.api_base_url.rstrip("/"),
            Base.DATA: api_info.data_base_url.rstrip("/"),
        }

        logger.debug(
            f"HttpClient init api={self._bases[Base.API]} data={self._bases[Base.DATA]} "
            f"key={mask(api_info.key_id)}"
        )

    # ---- async context manager ----------------------------------------------------
    async def __aenter__(self) -> "HttpClient":
        self._ensure_session()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    def _ensure_session(self) -> aiohttp.ClientSession:
        if self.session is None or (self._owned_session and self.session.closed):
            timeout = aiohttp.ClientTimeout(total=self.timeout_s)
            self.session = aiohttp.ClientSession(timeout=timeout, raise_for_status=False, trust_env=True)
            self._owned_session = True
        return self.session

    async def close(self) -> None:
        if self._owned_session and self.session is not None and not self.session.closed:
            await self.session.close()

    # ---- auth ---------------------------------------------------------------------
    def _build_auth_headers(self) -> Dict[str, str]:
        return {
            HEADER_KEY_ID: self.api_info.key_id,
            HEADER_SECRET: self.api_info.secret,
        }

    def url_for(self, endpoint: Endpoint, wire: WireRequest) -> str:
        return self._bases[endpoint.base] + wire.target

    # ---- dispatch -----------------------------------------------------------------
    async def send(self, method: str, url: str, *, headers: Dict[str, str],
                   body: Optional[bytes] = None, timeout_s: Optional[float] = None) -> Tuple[int, bytes]:
        """One raw request. Transport-level failures become TransportError."""
        session = self._ensure_session()
        kwargs: Dict[str, Any] = {}
        if timeout_s:
            kwargs["timeout"] = aiohttp.ClientTimeout(total=timeout_s)
        try:
            async with session.request(method, url, data=body, headers=headers, **kwargs) as resp:
                return resp.status, await resp.read()
        except asyncio.TimeoutError as e:
            raise TransportError(f"timeout after {timeout_s or self.timeout_s}s", method=method, url=url) from e
        except aiohttp.ClientError as e:
            raise TransportError(f"network error: {e}", method=method, url=url) from e

    async def dispatch(self, endpoint: Endpoint, request: Any = None, *,
                       timeout_s: Optional[float] = None) -> Any:
        """
        Issue ``request`` against ``endpoint`` and return the typed result.

        Raises:
        - EncodeError: the request could not be serialized
        - TransportError: connection refused, timeout, TLS failure
        - AuthError: the credentials were rejected (401)
        - HttpError: any other status outside the endpoint's success set
        - DecodeError: success status but the body did not parse
        """
        wire = endpoint.build(request)
        url = self.url_for(endpoint, wire)
        headers = dict(wire.headers)
        headers.update(self._build_auth_headers())

        t0 = time.perf_counter()
        try:
            status, body = await self.send(wire.method, url, headers=headers, body=wire.body,
                                           timeout_s=timeout_s)
        except TransportError as e:
            logger.warning(f"{endpoint.name} {wire.method} {wire.path} transport failure: {e}")
            raise
        elapsed_ms = (time.perf_counter() - t0) * 1000
        logger.debug(f"{endpoint.name} {wire.method} {wire.target} -> {status} ({elapsed_ms:.1f} ms)")

        return endpoint.decode(status, body)
