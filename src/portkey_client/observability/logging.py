"""Structured logging for portkey-client.

Gateway requests run inside ``request_log_context``, which binds the base
URL, the masked API key and the request line to every record emitted
during the call (including stdlib records from ``portkey_client.*``).
Credentials that reach a record unmasked are redacted before rendering.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, MutableMapping
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog
from structlog.contextvars import bound_contextvars, merge_contextvars

if TYPE_CHECKING:
    from portkey_client.config import PortkeyConfig

_CONFIGURED = False

# Event keys whose values are credentials
_SECRET_KEYS = frozenset(
    {"api_key", "authorization", "x-portkey-api-key", "x-portkey-virtual-key"}
)
_MASK = "****"


def mask_secret(value: str) -> str:
    """First 4 chars then ``****``; short values are fully masked."""
    if value.endswith(_MASK):
        return value
    if len(value) > 4:
        return f"{value[:4]}{_MASK}"
    return _MASK


def redact_secrets(
    _logger: Any, _method: str, event_dict: MutableMapping[str, Any]
) -> MutableMapping[str, Any]:
    """structlog processor: mask credential values, including in header dicts."""
    for key, value in list(event_dict.items()):
        if key == "headers" and isinstance(value, dict):
            event_dict[key] = {name: _redact(name, v) for name, v in value.items()}
        else:
            event_dict[key] = _redact(key, value)
    return event_dict


def _redact(key: str, value: Any) -> Any:
    if key.lower() in _SECRET_KEYS and isinstance(value, str):
        return mask_secret(value)
    return value


def configure_logging(
    level: str = "INFO",
    fmt: str = "json",
) -> None:
    """Configure structlog-backed logging for the process.

    Only the first call has an effect; later calls are no-ops. Below DEBUG,
    httpx's own per-request lines are silenced since the client logs each
    gateway call itself.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR).
        fmt: Output format, "json" or "console".
    """
    global _CONFIGURED
    if _CONFIGURED:
        return
    _CONFIGURED = True

    numeric_level = getattr(logging, level.upper(), logging.INFO)
    _configure_structlog(numeric_level, fmt)

    if numeric_level > logging.DEBUG:
        logging.getLogger("httpx").setLevel(logging.WARNING)


def _configure_structlog(level: int, fmt: str) -> None:
    shared_processors: list[Any] = [
        merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.ExtraAdder(),
        redact_secrets,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
    ]

    if fmt == "json":
        renderer: Any = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=renderer,
            foreign_pre_chain=shared_processors,
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level)


@contextmanager
def request_log_context(config: PortkeyConfig, method: str, url: str) -> Iterator[None]:
    """Bind gateway and request fields to every log record inside the block."""
    with bound_contextvars(
        portkey_base_url=config.base_url,
        api_key=config.masked_api_key(),
        http_method=method,
        http_url=url,
    ):
        yield


def get_logger(name: str) -> Any:
    """Return a structlog BoundLogger for ``name``."""
    return structlog.get_logger(name)
