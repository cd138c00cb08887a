"""Observability sub-package: tracing and logging."""

from __future__ import annotations

from portkey_client.config import ObservabilitySettings
from portkey_client.observability.logging import (
    configure_logging,
    get_logger,
    redact_secrets,
    request_log_context,
)
from portkey_client.observability.tracing import (
    configure_tracing,
    disable_tracing,
    get_tracer,
    traced_request,
)


def configure_observability(settings: ObservabilitySettings | None = None) -> None:
    """Set up logging and (optionally) tracing from ``PORTKEY_*`` settings."""
    settings = settings or ObservabilitySettings()
    configure_logging(level=settings.log_level, fmt=settings.log_format)
    if settings.trace_enabled:
        configure_tracing(
            exporter=settings.trace_exporter,
            endpoint=settings.trace_endpoint,
            service_name=settings.trace_service_name,
        )


__all__ = [
    "configure_logging",
    "configure_observability",
    "configure_tracing",
    "disable_tracing",
    "get_logger",
    "get_tracer",
    "redact_secrets",
    "request_log_context",
    "traced_request",
]
