"""In-memory test helpers for jsonapi handlers.

    resp = HandlerTest.api(hello).post_json("/api/hello", "", {"Name": "John", "Title": "Mr."})
    assert resp.status_code == 200
    assert resp.json() == {"Message": "Hello, Mr. John"}

A raw JSON handler `async (enc, dec, ctx)` can be passed to `HandlerTest`
directly, the way `handle_func` serves one. Requests go through Starlette's
TestClient, so nothing touches a socket.
"""

from __future__ import annotations

import json
from collections.abc import Mapping
from typing import Any
from urllib.parse import urlencode

import httpx
from starlette.testclient import TestClient

from .handler import APIHandler, BusinessHandler
from .http import JSONEndpoint, RawHandler


class RequestBuildError(Exception):
    """The test request could not be built, so nothing was dispatched."""


class HandlerTest:
    """Sends requests to a single raw JSON handler and returns the recorded response.

    Only request construction can fail here (RequestBuildError). Whatever the
    handler does, its outcome is reported through the returned response.
    """

    def __init__(self, handler: RawHandler, *, base_url: str = "http://testserver") -> None:
        self.app = JSONEndpoint(handler)
        self.base_url = base_url

    @classmethod
    def api(cls, handler: BusinessHandler, *, base_url: str = "http://testserver") -> HandlerTest:
        """Test a business handler through the APIHandler dispatcher."""
        return cls(APIHandler(handler), base_url=base_url)

    def get(self, uri: str, cookie: str = "") -> httpx.Response:
        return self._send("GET", uri, cookie)

    def post(self, uri: str, cookie: str = "", body: str | bytes = "") -> httpx.Response:
        return self._send("POST", uri, cookie, body)

    def post_json(self, uri: str, cookie: str = "", value: Any = None) -> httpx.Response:
        try:
            body = json.dumps(value)
        except (TypeError, ValueError) as e:
            raise RequestBuildError(f"cannot encode request body: {e}") from e
        return self.post(uri, cookie, body)

    def post_form(
        self, uri: str, cookie: str = "", form: Mapping[str, Any] | None = None
    ) -> httpx.Response:
        return self.post(uri, cookie, urlencode(form or {}, doseq=True))

    def _send(
        self, method: str, uri: str, cookie: str, body: str | bytes | None = None
    ) -> httpx.Response:
        headers = {"cookie": cookie} if cookie else {}
        # A fresh client per request keeps cookies from leaking between calls.
        client = TestClient(
            self.app,
            base_url=self.base_url,
            raise_server_exceptions=False,
            follow_redirects=False,
        )
        try:
            try:
                url = httpx.URL(uri)
                if url.scheme not in ("", "http", "https"):
                    raise RequestBuildError(f"unsupported URL scheme {url.scheme!r}")
                request = client.build_request(method, uri, headers=headers, content=body)
            except httpx.InvalidURL as e:
                raise RequestBuildError(f"invalid request URI {uri!r}: {e}") from e
            return client.send(request, follow_redirects=False)
        finally:
            client.close()
