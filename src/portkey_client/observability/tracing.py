"""OpenTelemetry tracing for gateway requests."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import httpx
from opentelemetry import trace
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import ConsoleSpanExporter, SimpleSpanProcessor

logger = logging.getLogger(__name__)

# ── Optional OTLP exporter (``otlp`` extra) ─────────────────────
try:
    from opentelemetry.exporter.otlp.proto.grpc.trace_exporter import (
        OTLPSpanExporter,
    )

    HAS_OTLP = True
except ImportError:
    HAS_OTLP = False


# Module-level tracer; None while tracing is disabled
_tracer: Any = None


def configure_tracing(
    exporter: str = "none",
    endpoint: str = "http://localhost:4317",
    service_name: str = "portkey-client",
) -> None:
    """Configure OpenTelemetry tracing.

    Args:
        exporter: One of "none", "console", "otlp".
        endpoint: OTLP collector endpoint (only used when exporter="otlp").
        service_name: Service name for spans.
    """
    global _tracer

    if exporter == "none":
        _tracer = None
        return

    resource = Resource.create({"service.name": service_name})
    provider = TracerProvider(resource=resource)

    if exporter == "console":
        provider.add_span_processor(SimpleSpanProcessor(ConsoleSpanExporter()))
    elif exporter == "otlp":
        if not HAS_OTLP:
            logger.warning(
                "OTLP exporter requested but opentelemetry-exporter-otlp not installed"
            )
            _tracer = None
            return
        provider.add_span_processor(
            SimpleSpanProcessor(OTLPSpanExporter(endpoint=endpoint, insecure=True))
        )
    else:
        logger.warning("Unknown trace exporter %r, tracing disabled", exporter)
        _tracer = None
        return

    _tracer = provider.get_tracer("portkey_client")
    logger.info("OTEL tracing configured: exporter=%s, service=%s", exporter, service_name)


def get_tracer() -> Any:
    """Return the configured tracer, or None if tracing is disabled."""
    return _tracer


def disable_tracing() -> None:
    """Disable tracing (useful for tests)."""
    global _tracer
    _tracer = None


@asynccontextmanager
async def traced_request(
    method: str,
    url: str,
    operation: str = "portkey.request",
) -> AsyncGenerator[dict[str, Any], None]:
    """Context manager that creates an OTEL span for one gateway request.

    Usage:
        async with traced_request("POST", url) as span_data:
            response = await http_client.send(request)
            span_data["response"] = response
            span_data["latency_ms"] = elapsed

    The span records http.method and http.url, then http.status_code and
    portkey.latency_ms when a response is attached. Exceptions mark the
    span as errored and propagate.
    """
    span_data: dict[str, Any] = {}

    if _tracer is None:
        yield span_data
        return

    with _tracer.start_as_current_span(operation) as span:
        span.set_attribute("http.method", method)
        span.set_attribute("http.url", url)

        try:
            yield span_data
        except Exception as exc:
            span.set_status(trace.StatusCode.ERROR, str(exc))
            span.record_exception(exc)
            raise
        else:
            response = span_data.get("response")
            if response is not None and isinstance(response, httpx.Response):
                span.set_attribute("http.status_code", response.status_code)
                trace_id = response.headers.get("x-portkey-trace-id")
                if trace_id:
                    span.set_attribute("portkey.trace_id", trace_id)
            latency_ms = span_data.get("latency_ms")
            if latency_ms is not None:
                span.set_attribute("portkey.latency_ms", latency_ms)
