# apca/errors.py
from typing import Optional


class ApiError(Exception):
    """Base error for everything the client surfaces."""

    def __init__(self, msg: str = "", **ctx):
        super().__init__(msg)
        self.msg = msg
        self.ctx = ctx

    def __str__(self):
        base = self.msg or self.__class__.__name__
        if self.ctx:
            details = ", ".join(f"{k}={v}" for k, v in self.ctx.items())
            return f"{base} [{details}]"
        return base


class TransportError(ApiError):
    """Connection refused, timeout, TLS failure or a dropped socket."""


class ConversionError(ApiError):
    """A payload could not be converted to or from its wire form."""


class EncodeError(ConversionError):
    """A request could not be serialized (query string or body)."""


class DecodeError(ConversionError):
    """A response or event body did not match the expected shape."""

    def __init__(self, msg: str = "", *, raw: Optional[bytes | str] = None, **ctx):
        super().__init__(msg, **ctx)
        self.raw = raw


def _format_code(code: Optional[int]) -> str:
    return f" ({code})" if code is not None else ""


class HttpError(ApiError):
    """
    A status outside the endpoint's success set.

    ``code`` and ``message`` are filled in when the server returned its
    structured error document; ``body`` always holds the raw response text.
    ``variant`` names the endpoint-specific meaning of the status, e.g.
    ``NotFound`` or ``RateLimitExceeded``.
    """

    def __init__(
        self,
        status: int,
        body: str = "",
        *,
        code: Optional[int] = None,
        message: Optional[str] = None,
        variant: Optional[str] = None,
        endpoint: Optional[str] = None,
    ):
        self.status = status
        self.body = body
        self.code = code
        self.message = message
        self.variant = variant
        self.endpoint = endpoint
        super().__init__(self._build_message())

    def _build_message(self) -> str:
        prefix = f"HTTP {self.status}"
        if self.variant:
            prefix += f" {self.variant}"
        if self.message:
            return f"{prefix}: {self.message}{_format_code(self.code)}"
        if self.body:
            return f"{prefix}: {self.body[:256]}"
        return prefix


class AuthError(ApiError):
    """Credentials were rejected. Never retried."""

    def __init__(self, msg: str = "authentication failed", *, status: Optional[int] = None,
                 body: Optional[str] = None, **ctx):
        super().__init__(msg, **ctx)
        self.status = status
        self.body = body


class ProtocolError(ApiError):
    """The server sent something the current session state does not allow."""

    def __init__(self, msg: str = "", *, code: Optional[int] = None, **ctx):
        super().__init__(msg + _format_code(code), **ctx)
        self.code = code
