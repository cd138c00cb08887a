"""PortkeyClient: the shareable handle consumers use to talk to the gateway."""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any, TypeVar

import httpx
from pydantic import TypeAdapter, ValidationError
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from portkey_client.config import PortkeyBuilder, PortkeyConfig
from portkey_client.exceptions import (
    APIStatusError,
    RequestError,
    ResponseValidationError,
    TransportInitError,
)
from portkey_client.observability.logging import request_log_context
from portkey_client.observability.tracing import traced_request
from portkey_client.types import GatewayResponse

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Backoff between retried attempts (only used when max_retries > 0)
_RETRY_WAIT = wait_exponential(multiplier=0.5, min=0.5, max=8)


@dataclass(frozen=True)
class _ClientState:
    """Everything a handle needs; shared by all clones, never mutated."""

    config: PortkeyConfig
    http_client: httpx.AsyncClient
    headers: Mapping[str, str]
    owns_http_client: bool


class PortkeyClient:
    """Handle for issuing requests against the Portkey gateway.

    A handle is immutable after construction and cheap to clone: clones
    share the same config and HTTP transport, so they can be handed to
    any number of concurrent tasks without locking.

    Usage:
        # Reads PORTKEY_* env vars
        client = PortkeyClient.from_env()

        # Or with the builder
        client = (
            PortkeyClient.builder()
            .with_api_key("pk-...")
            .with_auth_method(VirtualKey("vk-..."))
            .build_client()
        )

        # Or with an injected transport (for testing, proxies, custom TLS)
        client = PortkeyClient(
            PortkeyConfig(api_key="pk-...", http_client=my_async_client)
        )

        async with client:
            resp = await client.post(
                "/chat/completions", ChatCompletion, json=payload
            )
            print(resp.content, resp.trace_id)
    """

    __slots__ = ("_state",)

    def __init__(self, config: PortkeyConfig) -> None:
        """Create a handle from a finalized config.

        Raises:
            TransportInitError: If the default HTTP transport cannot be built.
        """
        if config.http_client is not None:
            http_client = config.http_client
            owns_http_client = False
        else:
            http_client = _build_http_client(config)
            owns_http_client = True

        self._state = _ClientState(
            config=config,
            http_client=http_client,
            headers=MappingProxyType(config.headers()),
            owns_http_client=owns_http_client,
        )

        logger.info(
            "Portkey client created",
            extra={
                "base_url": config.base_url,
                "timeout_seconds": config.timeout_seconds,
                "api_key": config.masked_api_key(),
                "custom_http_client": not owns_http_client,
            },
        )

    @staticmethod
    def builder() -> PortkeyBuilder:
        """Return a config builder; finish with ``build_client()``."""
        return PortkeyBuilder()

    @classmethod
    def from_env(cls) -> PortkeyClient:
        """Create a client from ``PORTKEY_*`` environment variables."""
        return cls(PortkeyConfig.from_env())

    # ── Sharing ─────────────────────────────────────────────────

    def clone(self) -> PortkeyClient:
        """Return another handle onto the same config and transport."""
        handle = object.__new__(PortkeyClient)
        handle._state = self._state
        return handle

    def __copy__(self) -> PortkeyClient:
        return self.clone()

    def __deepcopy__(self, memo: dict[int, Any]) -> PortkeyClient:
        # Handles share their transport; a deep copy is still a clone.
        return self.clone()

    @property
    def config(self) -> PortkeyConfig:
        return self._state.config

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._state.http_client

    @property
    def headers(self) -> Mapping[str, str]:
        """Gateway headers applied to every request."""
        return self._state.headers

    # ── Requests ────────────────────────────────────────────────

    def build_url(self, path: str, params: Mapping[str, Any] | None = None) -> str:
        """Join ``path`` onto the base URL's path and append query params."""
        base = httpx.URL(self._state.config.base_url)
        if not path.startswith("/"):
            path = "/" + path
        url = base.copy_with(path=base.path.rstrip("/") + path)
        if params:
            url = url.copy_merge_params(
                {key: value for key, value in params.items() if value is not None}
            )
        return str(url)

    async def request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
        data: Mapping[str, Any] | None = None,
        files: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> httpx.Response:
        """Send a request to the gateway and return the raw response.

        Gateway headers are applied first; ``headers`` override them per
        call. The configured timeout is passed to the transport with every
        request.

        Raises:
            RequestError: If the transport fails (connect, timeout, ...).
            APIStatusError: If the gateway answers with a 4xx/5xx status.
        """
        response, _ = await self._request(
            method,
            path,
            json=json,
            params=params,
            data=data,
            files=files,
            headers=headers,
        )
        return response

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: Mapping[str, Any] | None = None,
        data: Mapping[str, Any] | None = None,
        files: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> tuple[httpx.Response, float]:
        """Send with retries; return the response and its latency in ms."""
        state = self._state
        method = method.upper()
        url = self.build_url(path, params)
        merged_headers = httpx.Headers(dict(state.headers))
        merged_headers.update(headers or {})

        @retry(
            stop=stop_after_attempt(state.config.max_retries + 1),
            wait=_RETRY_WAIT,
            retry=retry_if_exception(_is_retryable),
            reraise=True,
        )
        async def _do_send() -> tuple[httpx.Response, float]:
            return await self._send_once(
                method,
                url,
                headers=merged_headers,
                json=json,
                data=data,
                files=files,
            )

        return await _do_send()

    async def _send_once(
        self,
        method: str,
        url: str,
        *,
        headers: httpx.Headers,
        json: Any,
        data: Mapping[str, Any] | None,
        files: Any,
    ) -> tuple[httpx.Response, float]:
        state = self._state
        request = state.http_client.build_request(
            method,
            url,
            json=json,
            data=data,
            files=files,
            headers=headers,
            timeout=state.config.timeout_seconds,
        )

        with request_log_context(state.config, method, url):
            async with traced_request(method, url) as span_data:
                start = time.monotonic()
                try:
                    response = await state.http_client.send(request)
                except httpx.HTTPError as exc:
                    raise RequestError(method, url, exc) from exc

                latency_ms = (time.monotonic() - start) * 1000
                span_data["response"] = response
                span_data["latency_ms"] = latency_ms

                if response.is_error:
                    raise _status_error(response)

            logger.info(
                "Gateway request completed",
                extra={
                    "status_code": response.status_code,
                    "latency_ms": round(latency_ms, 1),
                    "trace_id": response.headers.get("x-portkey-trace-id"),
                },
            )
        return response, latency_ms

    async def request_model(
        self,
        method: str,
        path: str,
        response_model: type[T],
        **kwargs: Any,
    ) -> GatewayResponse[T]:
        """Send a request and validate the JSON body into ``response_model``.

        Accepts the same keyword arguments as ``request()``.

        Raises:
            RequestError: If the transport fails.
            APIStatusError: If the gateway answers with an error status.
            ResponseValidationError: If the body is not valid JSON for the model.
        """
        response, latency_ms = await self._request(method, path, **kwargs)
        content = _parse_body(response, response_model)
        return GatewayResponse(
            content=content,
            status_code=response.status_code,
            latency_ms=latency_ms,
            headers={key.lower(): value for key, value in response.headers.items()},
        )

    async def get(
        self,
        path: str,
        response_model: type[T],
        *,
        params: Mapping[str, Any] | None = None,
        headers: Mapping[str, str] | None = None,
    ) -> GatewayResponse[T]:
        return await self.request_model(
            "GET", path, response_model, params=params, headers=headers
        )

    async def post(
        self,
        path: str,
        response_model: type[T],
        *,
        json: Any = None,
        data: Mapping[str, Any] | None = None,
        files: Any = None,
        headers: Mapping[str, str] | None = None,
    ) -> GatewayResponse[T]:
        return await self.request_model(
            "POST",
            path,
            response_model,
            json=json,
            data=data,
            files=files,
            headers=headers,
        )

    async def delete(
        self,
        path: str,
        response_model: type[T],
        *,
        headers: Mapping[str, str] | None = None,
    ) -> GatewayResponse[T]:
        return await self.request_model("DELETE", path, response_model, headers=headers)

    # ── Lifecycle ───────────────────────────────────────────────

    async def aclose(self) -> None:
        """Close the transport if this client built it.

        Closing affects every clone. A caller-supplied transport is left
        open for its owner to close.
        """
        if self._state.owns_http_client:
            await self._state.http_client.aclose()

    async def __aenter__(self) -> PortkeyClient:
        """Async context manager entry."""
        return self

    async def __aexit__(self, *exc: object) -> None:
        """Async context manager exit; closes an owned transport."""
        await self.aclose()

    def __repr__(self) -> str:
        config = self._state.config
        return (
            f"PortkeyClient(base_url={config.base_url!r}, "
            f"timeout_seconds={config.timeout_seconds!r}, "
            f"api_key={config.masked_api_key()!r})"
        )


def _build_http_client(config: PortkeyConfig) -> httpx.AsyncClient:
    """Construct the default transport from the config."""
    try:
        return httpx.AsyncClient(
            base_url=config.base_url,
            timeout=httpx.Timeout(config.timeout_seconds),
            proxy=config.proxy,
        )
    except Exception as exc:
        raise TransportInitError(str(exc)) from exc


def _is_retryable(exc: BaseException) -> bool:
    if isinstance(exc, RequestError):
        return True
    return isinstance(exc, APIStatusError) and exc.retryable


def _status_error(response: httpx.Response) -> APIStatusError:
    """Map an error response to ``APIStatusError``, pulling out the message."""
    body: Any
    try:
        body = response.json()
    except ValueError:
        body = response.text

    message: Any = None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict):
            message = error.get("message")
        elif isinstance(error, str):
            message = error
        message = message or body.get("message")
    elif isinstance(body, str) and body:
        message = body

    return APIStatusError(
        status_code=response.status_code,
        message=str(message or response.reason_phrase or "unknown error"),
        body=body,
        request_id=response.headers.get("x-portkey-request-id"),
    )


@functools.lru_cache(maxsize=128)
def _adapter(response_model: Any) -> TypeAdapter[Any]:
    return TypeAdapter(response_model)


def _parse_body(response: httpx.Response, response_model: type[T]) -> T:
    name = getattr(response_model, "__name__", repr(response_model))
    try:
        return _adapter(response_model).validate_json(response.content)  # type: ignore[no-any-return]
    except ValidationError as exc:
        raise ResponseValidationError(name, str(exc)) from exc
