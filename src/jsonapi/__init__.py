"""
jsonapi

Build JSON web APIs on Starlette from plain async functions.

A business handler reads the request through a Decoder, returns a result to
be encoded as JSON, or raises an APIError to choose the status code:

    async def find_user(dec, ctx):
        user = users.get(ctx.query_params.get("id"))
        if user is None:
            raise E404.set_data("User not found")
        return user

    register([API("/api/user", find_user)], router)

Why `jsonapi-handler`?
  - The short name is taken on the package index.
  - So: distribution name = "jsonapi-handler", import package = "jsonapi".
"""

from __future__ import annotations

from .errors import (
    E301,
    E302,
    E307,
    E400,
    E401,
    E403,
    E404,
    E418,
    E504,
    APIError,
    DecodeError,
    EncodeError,
)
from .handler import APIHandler
from .http import Decoder, Encoder, JSONEndpoint, RequestContext
from .logging import configure_logging
from .registry import API, default_router, handle_func, register

__all__ = [
    "__version__",
    "API",
    "APIError",
    "APIHandler",
    "DecodeError",
    "Decoder",
    "E301",
    "E302",
    "E307",
    "E400",
    "E401",
    "E403",
    "E404",
    "E418",
    "E504",
    "EncodeError",
    "Encoder",
    "configure_logging",
    "JSONEndpoint",
    "RequestContext",
    "default_router",
    "handle_func",
    "register",
]

__version__ = "0.1.0"
