# apca/config.py
import os
from dataclasses import dataclass, field
from typing import Any, Mapping, Optional
from urllib.parse import urlsplit, urlunsplit

from apca.enums import AckPolicy, DataFeed, Mode
from utils.logger import mask

API_BASE_URL = "https://api.alpaca.markets"
PAPER_API_BASE_URL = "https://paper-api.alpaca.markets"
DATA_BASE_URL = "https://data.alpaca.markets"
DATA_STREAM_BASE_URL = "wss://stream.data.alpaca.markets"

ENV_API_URL = "APCA_API_BASE_URL"
ENV_STREAM_URL = "APCA_API_STREAM_URL"
ENV_DATA_URL = "APCA_API_DATA_URL"
ENV_DATA_STREAM_URL = "APCA_API_DATA_STREAM_URL"
ENV_KEY_ID = "APCA_API_KEY_ID"
ENV_SECRET = "APCA_API_SECRET_KEY"


def _stream_url_from_base(base_url: str) -> str:
    """https://paper-api.alpaca.markets -> wss://paper-api.alpaca.markets/stream"""
    parts = urlsplit(base_url.rstrip("/"))
    scheme = {"https": "wss", "http": "ws"}.get(parts.scheme)
    if scheme is None:
        raise ValueError(f"unsupported scheme in API base URL: {base_url!r}")
    return urlunsplit((scheme, parts.netloc, parts.path + "/stream", "", ""))


def _data_stream_url(feed: DataFeed | str) -> str:
    return f"{DATA_STREAM_BASE_URL}/v2/{DataFeed(feed).value}"


@dataclass(frozen=True)
class ApiInfo:
    """Endpoints and credentials for one account. Read-only once built."""
    api_base_url: str
    api_stream_url: str
    data_base_url: str
    data_stream_url: str
    key_id: str
    secret: str = field(repr=False)

    def __repr__(self) -> str:
        return (f"ApiInfo(api_base_url={self.api_base_url!r}, api_stream_url={self.api_stream_url!r}, "
                f"data_base_url={self.data_base_url!r}, data_stream_url={self.data_stream_url!r}, "
                f"key_id={mask(self.key_id)!r})")

    @classmethod
    def from_parts(cls,
                   api_base_url: str,
                   key_id: str,
                   secret: str,
                   *,
                   api_stream_url: Optional[str] = None,
                   data_base_url: str = DATA_BASE_URL,
                   data_stream_url: Optional[str] = None,
                   data_feed: DataFeed | str = DataFeed.IEX,
                   ) -> "ApiInfo":
        if not key_id or not secret:
            raise ValueError("key_id and secret must not be empty")
        api_base_url = api_base_url.rstrip("/")
        return cls(
            api_base_url=api_base_url,
            api_stream_url=api_stream_url or _stream_url_from_base(api_base_url),
            data_base_url=data_base_url.rstrip("/"),
            data_stream_url=data_stream_url or _data_stream_url(data_feed),
            key_id=key_id,
            secret=secret,
        )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ApiInfo":
        """
        Build from the environment:
        - APCA_API_BASE_URL (defaults to the paper trading URL)
        - APCA_API_STREAM_URL, APCA_API_DATA_URL, APCA_API_DATA_STREAM_URL (optional)
        - APCA_API_KEY_ID and APCA_API_SECRET_KEY (required)
        """
        env = os.environ if environ is None else environ
        key_id = env.get(ENV_KEY_ID)
        if not key_id:
            raise ValueError(f"{ENV_KEY_ID} environment variable not found")
        secret = env.get(ENV_SECRET)
        if not secret:
            raise ValueError(f"{ENV_SECRET} environment variable not found")

        return cls.from_parts(
            env.get(ENV_API_URL) or PAPER_API_BASE_URL,
            key_id,
            secret,
            api_stream_url=env.get(ENV_STREAM_URL) or None,
            data_base_url=env.get(ENV_DATA_URL) or DATA_BASE_URL,
            data_stream_url=env.get(ENV_DATA_STREAM_URL) or None,
        )

    @classmethod
    def from_cfg(cls, cfg: Mapping[str, Any]) -> "ApiInfo":
        try:
            acct = cfg["alpaca"]
            mode = Mode(str(acct.get("mode", "paper")).lower())
            api_base = acct["api_base"][mode.value]
            key_id = acct["key_id"]
            secret = acct["secret"]
        except KeyError as e:
            raise ValueError(f"Invalid cfg missing key: {e}") from e

        return cls.from_parts(
            api_base,
            key_id,
            secret,
            api_stream_url=acct.get("api_stream") or None,
            data_base_url=acct.get("data_base") or DATA_BASE_URL,
            data_stream_url=acct.get("data_stream") or None,
            data_feed=acct.get("data_feed") or DataFeed.IEX,
        )


@dataclass
class ClientSettings:
    """Runtime knobs for dispatch and streaming."""
    http_timeout_s: float = 10.0

    ws_open_timeout_s: float = 10.0
    auth_timeout_s: float = 5.0
    subscribe_timeout_s: float = 5.0
    ping_interval_s: Optional[float] = 20.0
    ping_timeout_s: Optional[float] = 20.0

    backoff_initial_s: float = 1.0
    backoff_max_s: float = 30.0
    backoff_factor: float = 2.0
    backoff_jitter: float = 0.25        # +/- fraction applied to each delay

    ack_policy: AckPolicy = AckPolicy.RESUBSCRIBE
    max_resubscribes: int = 3

    @classmethod
    def from_cfg(cls, cfg: Mapping[str, Any]) -> "ClientSettings":
        timeouts = cfg.get("timeouts", {}) or {}
        stream = cfg.get("stream", {}) or {}
        reconnect = stream.get("reconnect", {}) or {}
        d = cls()
        return cls(
            http_timeout_s=float(timeouts.get("http_ms", d.http_timeout_s * 1000)) / 1000,
            ws_open_timeout_s=float(timeouts.get("ws_open_ms", d.ws_open_timeout_s * 1000)) / 1000,
            auth_timeout_s=float(timeouts.get("auth_ms", d.auth_timeout_s * 1000)) / 1000,
            subscribe_timeout_s=float(timeouts.get("subscribe_ms", d.subscribe_timeout_s * 1000)) / 1000,
            ping_interval_s=stream.get("ping_interval_s", d.ping_interval_s),
            ping_timeout_s=stream.get("ping_timeout_s", d.ping_timeout_s),
            backoff_initial_s=float(reconnect.get("initial_s", d.backoff_initial_s)),
            backoff_max_s=float(reconnect.get("cap_s", d.backoff_max_s)),
            backoff_factor=float(reconnect.get("factor", d.backoff_factor)),
            backoff_jitter=float(reconnect.get("jitter", d.backoff_jitter)),
            ack_policy=AckPolicy(str(stream.get("ack_policy", d.ack_policy.value)).lower()),
            max_resubscribes=int(stream.get("max_resubscribes", d.max_resubscribes)),
        )
