"""portkey-client: typed async client for the Portkey AI gateway.

Usage:
    from portkey_client import PortkeyClient, VirtualKey

    client = (
        PortkeyClient.builder()
        .with_api_key("pk-...")          # or PORTKEY_API_KEY
        .with_auth_method(VirtualKey("vk-..."))
        .build_client()
    )
    resp = await client.post("/chat/completions", MyModel, json=payload)
"""

from __future__ import annotations

from portkey_client.auth import AuthMethod, ConfigAuth, ProviderAuth, VirtualKey
from portkey_client.client import PortkeyClient
from portkey_client.config import (
    DEFAULT_BASE_URL,
    DEFAULT_TIMEOUT_SECONDS,
    ObservabilitySettings,
    PortkeyBuilder,
    PortkeyConfig,
)
from portkey_client.exceptions import (
    APIStatusError,
    ConfigurationError,
    InvalidBaseUrlError,
    InvalidTimeoutError,
    MissingCredentialError,
    PortkeyError,
    RequestError,
    ResponseValidationError,
    TransportInitError,
)
from portkey_client.observability import configure_observability
from portkey_client.types import GatewayResponse

__all__ = [
    # Core
    "PortkeyClient",
    "PortkeyConfig",
    "PortkeyBuilder",
    "DEFAULT_BASE_URL",
    "DEFAULT_TIMEOUT_SECONDS",
    # Auth
    "AuthMethod",
    "VirtualKey",
    "ProviderAuth",
    "ConfigAuth",
    # Types
    "GatewayResponse",
    # Observability
    "ObservabilitySettings",
    "configure_observability",
    # Exceptions
    "PortkeyError",
    "ConfigurationError",
    "MissingCredentialError",
    "InvalidBaseUrlError",
    "InvalidTimeoutError",
    "TransportInitError",
    "RequestError",
    "APIStatusError",
    "ResponseValidationError",
]
