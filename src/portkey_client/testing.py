"""Testing utilities shipped with portkey-client.

Provides ``FakeGateway``, an in-memory stand-in for the Portkey API that
plugs into ``PortkeyClient`` through ``httpx.MockTransport``. Consumers can
use it in their own test suites without any network access.

Usage::

    from portkey_client import PortkeyClient, PortkeyConfig
    from portkey_client.testing import FakeGateway
    from pydantic import BaseModel

    class ModelList(BaseModel):
        data: list[dict]

    fake = FakeGateway()
    fake.set_response("GET", "/models", {"data": []})

    client = PortkeyClient(fake.config(api_key="pk-test"))
    resp = await client.get("/models", ModelList)
    assert resp.content.data == []
    assert fake.call_count == 1
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Any

import httpx

from portkey_client.config import PortkeyConfig

FAKE_BASE_URL = "https://gateway.test/v1"


@dataclass
class FakeCall:
    """Record of a single request the ``FakeGateway`` received."""

    method: str
    path: str
    headers: dict[str, str]
    params: dict[str, str]
    body: bytes

    def json(self) -> Any:
        """Decode the request body as JSON."""
        return json.loads(self.body)


@dataclass
class _CannedResponse:
    status_code: int
    body: Any
    headers: dict[str, str] = field(default_factory=dict)


class FakeGateway:
    """Fake Portkey gateway for testing.

    Two modes:

    1. **Pre-configured**: call ``set_response(method, path, body)`` before
       issuing requests.
    2. **Dynamic**: pass a ``handler`` callable taking the ``httpx.Request``
       and returning an ``httpx.Response``.

    Resolution order per request:

    1. Pre-configured response for (method, path), paths relative to the
       base URL
    2. ``handler`` callable (if provided)
    3. A 404 JSON error response
    """

    def __init__(
        self,
        handler: Callable[[httpx.Request], httpx.Response] | None = None,
        base_url: str = FAKE_BASE_URL,
    ) -> None:
        self._responses: dict[tuple[str, str], _CannedResponse] = {}
        self._handler = handler
        self._base_path = httpx.URL(base_url).path.rstrip("/")
        self.base_url = base_url
        self.calls: list[FakeCall] = []

    def set_response(
        self,
        method: str,
        path: str,
        body: Any,
        status_code: int = 200,
        headers: dict[str, str] | None = None,
    ) -> None:
        """Pre-configure the response for ``method`` + ``path``."""
        self._responses[(method.upper(), path)] = _CannedResponse(
            status_code=status_code,
            body=body,
            headers=dict(headers or {}),
        )

    def _handle(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if path == self._base_path:
            path = "/"
        elif path.startswith(self._base_path + "/"):
            path = path[len(self._base_path):]

        self.calls.append(
            FakeCall(
                method=request.method,
                path=path,
                headers=dict(request.headers),
                params=dict(request.url.params),
                body=request.content,
            )
        )

        canned = self._responses.get((request.method, path))
        if canned is not None:
            if isinstance(canned.body, (bytes, str)):
                return httpx.Response(
                    canned.status_code, content=canned.body, headers=canned.headers
                )
            return httpx.Response(
                canned.status_code, json=canned.body, headers=canned.headers
            )

        if self._handler is not None:
            return self._handler(request)

        return httpx.Response(
            404,
            json={"error": {"message": f"No fake response for {request.method} {path}"}},
        )

    def transport(self) -> httpx.MockTransport:
        """Return an ``httpx.MockTransport`` routed to this fake."""
        return httpx.MockTransport(self._handle)

    def http_client(self) -> httpx.AsyncClient:
        """Return an ``httpx.AsyncClient`` wired to this fake."""
        return httpx.AsyncClient(transport=self.transport())

    def config(self, api_key: str = "pk-test", **overrides: Any) -> PortkeyConfig:
        """Return a ``PortkeyConfig`` pointed at this fake."""
        overrides.setdefault("base_url", self.base_url)
        overrides.setdefault("http_client", self.http_client())
        return PortkeyConfig(api_key=api_key, **overrides)  # type: ignore[arg-type]

    @property
    def call_count(self) -> int:
        """Number of requests received."""
        return len(self.calls)

    @property
    def last_call(self) -> FakeCall:
        """Most recent request. Raises IndexError if none were made."""
        return self.calls[-1]
