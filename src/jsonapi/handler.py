from __future__ import annotations

import functools
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from .errors import APIError, EncodeError, Failure, Structured, Unstructured, clean_text
from .http import Decoder, Encoder, RequestContext
from .logging import request_extra

log = logging.getLogger(__name__)

ENCODE_FALLBACK_MESSAGE = (
    "Cannot encode response into JSON format, please contact the administrator."
)

BusinessHandler = Callable[[Decoder, RequestContext], Awaitable[Any]]


def _is_async_callable(obj: Any) -> bool:
    while isinstance(obj, functools.partial):
        obj = obj.func
    return inspect.iscoroutinefunction(obj) or (
        callable(obj) and inspect.iscoroutinefunction(obj.__call__)
    )


def _log_extra(ctx: RequestContext, **extra: Any) -> dict[str, Any]:
    return request_extra(ctx.method, ctx.url.path, **extra)


class APIHandler:
    """Adapts a business handler to a raw JSON handler.

    The business handler is an async callable taking the request Decoder and
    RequestContext. Whatever it returns is encoded as the JSON response body:

        async def hello(dec: Decoder, ctx: RequestContext) -> dict:
            try:
                args = await dec.decode(HelloArgs)
            except DecodeError:
                raise E400.set_data("You must send parameters in JSON format.")
            return {"Message": f"Hello, {args.Title} {args.Name}"}

    Raise an APIError to pick the status code (3xx errors with a url redirect).
    Any other exception becomes a 500 carrying the exception's text.
    """

    def __init__(self, func: BusinessHandler) -> None:
        if not _is_async_callable(func):
            raise TypeError(f"business handler {func!r} must be an async callable")
        self.func = func

    async def __call__(self, enc: Encoder, dec: Decoder, ctx: RequestContext) -> None:
        failure: Failure
        try:
            result = await self.func(dec, ctx)
        except APIError as e:
            failure = Structured(e)
            level = logging.INFO if e.is_redirect else logging.WARNING
            log.log(level, "handled_error", extra=_log_extra(ctx, code=e.code))
        except Exception as e:
            failure = Unstructured(clean_text(str(e)))
            log.exception("unhandled_error", extra=_log_extra(ctx, code=failure.status_code))
        else:
            self._write_result(enc, ctx, result)
            return

        self._write_failure(enc, ctx, failure)

    @staticmethod
    def _write_result(enc: Encoder, ctx: RequestContext, result: Any) -> None:
        try:
            enc.encode(result)
        except EncodeError:
            log.exception("encode_failed", extra=_log_extra(ctx, code=500))
            ctx.write_header(500)
            enc.encode(ENCODE_FALLBACK_MESSAGE)

    @staticmethod
    def _write_failure(enc: Encoder, ctx: RequestContext, failure: Failure) -> None:
        if failure.redirect_url is not None:
            # The error text is still written after the redirect headers.
            ctx.redirect(failure.redirect_url, failure.status_code)
        else:
            ctx.write_header(failure.status_code)
        enc.encode(clean_text(str(failure)))
