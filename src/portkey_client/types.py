"""Core data types for portkey-client."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Generic, TypeVar

T = TypeVar("T")


@dataclass
class GatewayResponse(Generic[T]):
    """Typed response wrapper for a single gateway call.

    Generic over T, the validated Pydantic model type returned in `content`.
    """

    content: T
    status_code: int
    latency_ms: float = 0.0
    headers: dict[str, str] = field(default_factory=dict)

    @property
    def trace_id(self) -> str | None:
        """Trace id the gateway assigned (or echoed) for this request."""
        return self.headers.get("x-portkey-trace-id")

    @property
    def cache_status(self) -> str | None:
        """Gateway cache outcome, e.g. ``HIT`` or ``MISS``."""
        return self.headers.get("x-portkey-cache-status")

    @property
    def request_id(self) -> str | None:
        """Gateway request id, if returned."""
        return self.headers.get("x-portkey-request-id")
