from __future__ import annotations

import json
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import asdict, fields, is_dataclass
from typing import Any
from urllib.parse import quote, urljoin

from starlette.datastructures import URL, Headers, MutableHeaders, QueryParams
from starlette.requests import ClientDisconnect, Request
from starlette.responses import Response
from starlette.types import Receive, Scope, Send

from .config import settings
from .errors import DecodeError, EncodeError
from .logging import request_extra

log = logging.getLogger(__name__)

JSON_CONTENT_TYPE = "application/json"

_HTML_ESCAPES = (("<", "\\u003c"), (">", "\\u003e"), ("&", "\\u0026"))
_LINE_SEPARATORS = (("\u2028", "\\u2028"), ("\u2029", "\\u2029"))
_WHITESPACE = re.compile(r"[ \t\n\r]*")
_URL_SAFE = ":/?#[]@!$&'()*+,;=%"


class ResponseWriter:
    """Buffers one response: headers, a single status line and the body."""

    def __init__(self) -> None:
        self.headers = MutableHeaders()
        self.status_code: int | None = None
        self._chunks: list[bytes] = []

    def write_header(self, status_code: int) -> None:
        if not 100 <= status_code <= 999:
            raise ValueError(f"invalid status code {status_code}")
        if self.status_code is not None:
            log.warning(
                "superfluous_write_header",
                extra={"code": status_code},
            )
            return
        self.status_code = status_code

    def write(self, data: bytes) -> int:
        if self.status_code is None:
            self.write_header(200)
        self._chunks.append(data)
        return len(data)

    @property
    def body(self) -> bytes:
        return b"".join(self._chunks)

    def to_response(self) -> Response:
        response = Response(self.body, status_code=self.status_code or 200)
        response.raw_headers.extend(self.headers.raw)
        return response


def _encode_default(value: Any) -> Any:
    if is_dataclass(value) and not isinstance(value, type):
        return asdict(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def dumps(value: Any, *, escape_html: bool = True) -> str:
    """Serialise *value* compactly; raises EncodeError on failure."""
    try:
        text = json.dumps(
            value, ensure_ascii=False, separators=(",", ":"), default=_encode_default
        )
    except (TypeError, ValueError, RecursionError) as e:
        raise EncodeError(str(e)) from e

    # These characters can only occur inside string literals, so plain replacement is safe.
    replacements = _HTML_ESCAPES + _LINE_SEPARATORS if escape_html else _LINE_SEPARATORS
    for char, escaped in replacements:
        text = text.replace(char, escaped)
    return text


class Encoder:
    """Writes newline-terminated JSON values to a ResponseWriter."""

    def __init__(self, writer: ResponseWriter, *, escape_html: bool | None = None) -> None:
        self._writer = writer
        self._escape_html = settings.json_escape_html if escape_html is None else escape_html

    def encode(self, value: Any) -> None:
        # Serialise fully before writing so a failure never leaves a partial body.
        text = dumps(value, escape_html=self._escape_html) + "\n"
        try:
            data = text.encode("utf-8")
        except UnicodeEncodeError as e:
            raise EncodeError(str(e)) from e
        self._writer.write(data)


def _json_type(value: Any) -> str:
    if isinstance(value, bool):
        return "boolean"
    return type(value).__name__


def _build(into: type, value: Any) -> Any:
    if not is_dataclass(into):
        # JSON true/false are not numbers; JSON integers are valid floats.
        if into is float and isinstance(value, int) and not isinstance(value, bool):
            return float(value)
        if not isinstance(value, into) or (isinstance(value, bool) and into in (int, float)):
            raise DecodeError(
                f"cannot decode JSON {_json_type(value)} into {into.__name__}"
            )
        return value

    if not isinstance(value, dict):
        raise DecodeError(f"cannot decode JSON {type(value).__name__} into {into.__name__}")

    names = {f.name for f in fields(into) if f.init}
    lowered = {name.lower(): name for name in names}
    kwargs: dict[str, Any] = {}
    for key, item in value.items():
        name = key if key in names else lowered.get(key.lower())
        if name is not None and name not in kwargs:
            kwargs[name] = item
    try:
        return into(**kwargs)
    except TypeError as e:
        raise DecodeError(f"cannot decode into {into.__name__}: {e}") from e


class Decoder:
    """Lazily reads the request body and yields the JSON values it contains.

    Each `decode` call returns the next whitespace-separated value; once the
    body is exhausted `decode` raises DecodeError. Pass a dataclass type as
    *into* to map a JSON object onto its fields (keys match exactly first,
    then case-insensitively; unknown keys are ignored).
    """

    _json = json.JSONDecoder()

    def __init__(self, request: Request) -> None:
        self._request = request
        self._text: str | None = None
        self._pos = 0

    async def decode(self, into: type | None = None) -> Any:
        if self._text is None:
            raw = await self._request.body()
            try:
                self._text = raw.decode("utf-8")
            except UnicodeDecodeError as e:
                raise DecodeError(f"request body is not UTF-8: {e}") from e

        pos = _WHITESPACE.match(self._text, self._pos).end()
        if pos == len(self._text):
            raise DecodeError("EOF")
        try:
            value, self._pos = self._json.raw_decode(self._text, pos)
        except json.JSONDecodeError as e:
            self._pos = len(self._text)
            raise DecodeError(str(e)) from e

        if into is None:
            return value
        return _build(into, value)


class RequestContext:
    """Request-scoped access to the incoming request and the pending response."""

    def __init__(self, request: Request, writer: ResponseWriter) -> None:
        self.request = request
        self.response = writer

    @property
    def method(self) -> str:
        return self.request.method

    @property
    def url(self) -> URL:
        return self.request.url

    @property
    def headers(self) -> Headers:
        return self.request.headers

    @property
    def cookies(self) -> dict[str, str]:
        return self.request.cookies

    @property
    def query_params(self) -> QueryParams:
        return self.request.query_params

    @property
    def path_params(self) -> dict[str, Any]:
        return self.request.path_params

    @property
    def response_headers(self) -> MutableHeaders:
        return self.response.headers

    def write_header(self, status_code: int) -> None:
        self.response.write_header(status_code)

    def redirect(self, url: str, status_code: int) -> None:
        """Point Location at *url* (relative targets resolve against the request path)."""
        # Header values must be latin-1, so non-ASCII targets are percent-encoded.
        location = quote(urljoin(self.request.url.path, url), safe=_URL_SAFE)
        self.response.headers["location"] = location
        self.response.write_header(status_code)


RawHandler = Callable[[Encoder, Decoder, RequestContext], Awaitable[None]]


async def drain_body(request: Request) -> None:
    """Read and discard whatever is left of the request body."""
    try:
        async for _ in request.stream():
            pass
    except (ClientDisconnect, RuntimeError) as e:
        # Client went away or the raw stream was already consumed; nothing left to read.
        log.debug(
            "drain_skipped",
            extra=request_extra(request.method, request.url.path, code=type(e).__name__),
        )


class JSONEndpoint:
    """ASGI app running a raw JSON handler for one request.

    Sets the JSON content type before the handler runs and drains the request
    body afterwards on every exit path, so the connection can be reused.
    """

    def __init__(self, handler: RawHandler) -> None:
        self.handler = handler

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        request = Request(scope, receive)
        writer = ResponseWriter()
        writer.headers["content-type"] = JSON_CONTENT_TYPE
        try:
            await self.handler(Encoder(writer), Decoder(request), RequestContext(request, writer))
        finally:
            await drain_body(request)
        await writer.to_response()(scope, receive, send)
