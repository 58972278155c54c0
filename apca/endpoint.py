# apca/endpoint.py
"""
Declarative endpoint descriptors.

An :class:`Endpoint` is an immutable value describing one API operation: how
a request value becomes an HTTP request (method, path, query, body) and how
the HTTP response becomes a typed result or an :class:`~apca.errors.ApiError`.
Both directions are pure functions, so descriptors can be exercised without a
network. Endpoint tables live in :mod:`apca.api`.
"""
from __future__ import annotations

import json
import string
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from types import MappingProxyType
from typing import Any, Callable, Dict, Generic, Iterable, Mapping, Optional, Sequence, Tuple, TypeVar
from urllib.parse import quote, urlencode

from pydantic import BaseModel, TypeAdapter, ValidationError

from apca.errors import AuthError, DecodeError, EncodeError, HttpError

Req = TypeVar("Req")
Resp = TypeVar("Resp")

JSON_SEPARATORS = (",", ":")

# Every request can fail authentication or hit the rate limit.
COMMON_ERRORS: Mapping[int, str] = {
    401: "AuthenticationFailed",
    429: "RateLimitExceeded",
}


class Base(str, Enum):
    API = "api"
    DATA = "data"


class BodyEncoding(str, Enum):
    JSON = "json"
    FORM = "form"


_CONTENT_TYPES = {
    BodyEncoding.JSON: "application/json",
    BodyEncoding.FORM: "application/x-www-form-urlencoded",
}


@dataclass(frozen=True)
class WireRequest:
    method: str
    path: str
    query: str = ""
    body: Optional[bytes] = None
    headers: Mapping[str, str] = field(default_factory=dict)

    @property
    def target(self) -> str:
        return self.path + self.query


def _json_dumps_compact(obj: Any) -> str:
    return json.dumps(obj, separators=JSON_SEPARATORS, ensure_ascii=False, default=_json_default)


def _json_default(o: Any) -> Any:
    if isinstance(o, Decimal):
        return str(o)
    if isinstance(o, Enum):
        return o.value
    if isinstance(o, BaseModel):
        return o.model_dump(mode="json", by_alias=True, exclude_none=True)
    raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")


def _query_value(v: Any) -> str:
    if isinstance(v, bool):
        return "true" if v else "false"
    if isinstance(v, Enum):
        return str(v.value)
    if isinstance(v, (list, tuple, set, frozenset)):
        return ",".join(_query_value(x) for x in v)
    return str(v)


def encode_query(params: Optional[Iterable[Tuple[str, Any]] | Mapping[str, Any]]) -> str:
    """
    Encode query parameters in the order given.

    ``None`` values and empty sequences are dropped, booleans are rendered
    lowercase, sequences are comma separated.
    """
    if not params:
        return ""
    items = params.items() if isinstance(params, Mapping) else params
    pairs = []
    for k, v in items:
        if v is None:
            continue
        if isinstance(v, (list, tuple, set, frozenset)) and not v:
            continue
        pairs.append((k, _query_value(v)))
    if not pairs:
        return ""
    return "?" + urlencode(pairs, safe=":/,")


def body_of(req: Any) -> Any:
    """Default body rule: a pydantic request serializes itself, dicts pass through."""
    if isinstance(req, BaseModel):
        return req.model_dump(mode="json", by_alias=True, exclude_none=True)
    return req


def _template_fields(template: str) -> Tuple[str, ...]:
    return tuple(name for _, name, _, _ in string.Formatter().parse(template) if name)


def _parse_api_error(body: bytes) -> Tuple[Optional[int], Optional[str]]:
    try:
        doc = json.loads(body)
    except (ValueError, UnicodeDecodeError):
        return None, None
    if not isinstance(doc, dict) or "message" not in doc:
        return None, None
    code = doc.get("code")
    try:
        code = int(code) if code is not None else None
    except (TypeError, ValueError):
        code = None
    return code, str(doc["message"])


@dataclass(frozen=True)
class Endpoint(Generic[Req, Resp]):
    """
    One API operation.

    - ``path``: template such as ``/v2/orders/{id}``; values come from
      ``path_params(request)``, or from same-named attributes/keys of the
      request, or the request itself when the template has a single field.
    - ``query``: request -> ordered ``(name, value)`` pairs (or a dict).
    - ``body``: request -> JSON-able document, sent as ``encoding``.
    - ``output``: type the success body is validated into. ``None`` means
      the operation returns no content.
    - ``ok``: success statuses; ``errors``: status -> variant name, merged
      with :data:`COMMON_ERRORS`.
    """
    name: str
    method: str
    path: str
    output: Any = None
    ok: frozenset = frozenset({200})
    errors: Mapping[int, str] = field(default_factory=dict)
    path_params: Optional[Callable[[Any], Mapping[str, Any]]] = None
    query: Optional[Callable[[Any], Optional[Sequence[Tuple[str, Any]] | Mapping[str, Any]]]] = None
    body: Optional[Callable[[Any], Any]] = None
    encoding: BodyEncoding = BodyEncoding.JSON
    base: Base = Base.API
    _adapter: Optional[TypeAdapter] = field(default=None, init=False, repr=False, compare=False)

    def __post_init__(self):
        object.__setattr__(self, "method", self.method.upper())
        object.__setattr__(self, "ok", frozenset(self.ok))
        object.__setattr__(self, "errors", MappingProxyType({**COMMON_ERRORS, **dict(self.errors)}))
        if self.output is not None:
            object.__setattr__(self, "_adapter", TypeAdapter(self.output))

    # ---- request side -------------------------------------------------------
    def _path_values(self, request: Any) -> Dict[str, Any]:
        names = _template_fields(self.path)
        if not names:
            return {}
        if self.path_params is not None:
            return dict(self.path_params(request))
        if isinstance(request, Mapping):
            return {n: request[n] for n in names}
        if len(names) == 1 and not hasattr(request, names[0]):
            return {names[0]: request}
        return {n: getattr(request, n) for n in names}

    def build(self, request: Any = None) -> WireRequest:
        """Turn ``request`` into the wire request. Raises :class:`EncodeError`."""
        try:
            values = self._path_values(request)
            path = self.path.format(**{k: quote(_query_value(v), safe="") for k, v in values.items()})
            query = encode_query(self.query(request)) if self.query else ""
            body = None
            headers = {"Accept": "application/json"}
            if self.body is not None:
                doc = self.body(request)
                if self.encoding is BodyEncoding.FORM:
                    body = encode_query(doc)[1:].encode("utf-8")
                else:
                    body = _json_dumps_compact(doc).encode("utf-8")
                headers["Content-Type"] = _CONTENT_TYPES[self.encoding]
        except (KeyError, AttributeError, TypeError, ValueError) as e:
            raise EncodeError(f"failed to encode request: {e}", endpoint=self.name) from e
        return WireRequest(self.method, path, query, body, headers)

    # ---- response side ------------------------------------------------------
    def decode(self, status: int, body: bytes) -> Resp:
        """Turn a raw response into the typed result, or raise an ApiError."""
        if status not in self.ok:
            text = body.decode("utf-8", errors="replace")
            code, message = _parse_api_error(body)
            variant = self.errors.get(status)
            if status == 401:
                raise AuthError(message or "authentication failed", status=status, body=text,
                                endpoint=self.name)
            raise HttpError(status, text, code=code, message=message, variant=variant, endpoint=self.name)

        if self._adapter is None:
            return None
        try:
            doc = json.loads(body, parse_float=Decimal)
            return self._adapter.validate_python(doc)
        except (ValueError, UnicodeDecodeError, ValidationError) as e:
            raise DecodeError(f"failed to decode {self.name} response: {e}", raw=body,
                              status=status) from e
