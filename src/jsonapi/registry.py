from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from starlette.routing import Router

from .handler import APIHandler, BusinessHandler
from .http import JSONEndpoint, RawHandler

log = logging.getLogger(__name__)

# Optional process-wide router used when callers don't pass their own.
# Fill it once at startup; it is never torn down.
default_router = Router()


@dataclass(frozen=True, slots=True)
class API:
    """Binds a URL pattern to a business handler."""

    pattern: str
    handler: BusinessHandler


def _bind(router: Router | None, pattern: str, handler: RawHandler) -> None:
    target = default_router if router is None else router
    # An ASGI app endpoint (rather than a function) makes the route accept every method.
    target.add_route(pattern, JSONEndpoint(handler))
    log.info("registered", extra={"pattern": pattern})


def register(apis: Iterable[API], router: Router | None = None) -> None:
    """Register business handlers on *router* (default_router when omitted)."""
    for api in apis:
        _bind(router, api.pattern, APIHandler(api.handler))


def handle_func(pattern: str, handler: RawHandler, router: Router | None = None) -> None:
    """Register a raw handler that writes through the Encoder itself."""
    _bind(router, pattern, handler)
