"""Client configuration: builder, environment resolution and validation.

Settings resolve field by field as explicit builder value > ``PORTKEY_*``
environment variable > default. ``PortkeyBuilder.build()`` validates the
merged values (credential, then base URL, then timeout) and returns a frozen
``PortkeyConfig`` or raises the first ``ConfigurationError`` it finds.
"""

from __future__ import annotations

import json
import logging
import math
from collections.abc import Mapping
from datetime import timedelta
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    ValidationError,
    field_validator,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from portkey_client.auth import AuthMethod, ConfigAuth, ProviderAuth, VirtualKey
from portkey_client.exceptions import (
    ConfigurationError,
    InvalidBaseUrlError,
    InvalidTimeoutError,
    MissingCredentialError,
)

if TYPE_CHECKING:
    from portkey_client.client import PortkeyClient

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.portkey.ai/v1"
DEFAULT_TIMEOUT_SECONDS = 30.0
MIN_TIMEOUT_SECONDS = 1.0
MAX_TIMEOUT_SECONDS = 300.0

API_KEY_ENV = "PORTKEY_API_KEY"


class EnvSettings(BaseSettings):
    """Raw ``PORTKEY_*`` environment values.

    Everything is read as an optional string; parsing and validation happen
    in ``PortkeyBuilder.build()`` so that errors come out in a fixed order.
    Empty variables count as unset.
    """

    model_config = SettingsConfigDict(
        env_prefix="PORTKEY_",
        env_ignore_empty=True,
        extra="ignore",
    )

    # ── Credentials & routing ───────────────────────────────────
    api_key: str | None = None
    virtual_key: str | None = None
    provider: str | None = None
    authorization: str | None = None
    custom_host: str | None = None
    config_id: str | None = Field(default=None, validation_alias="PORTKEY_CONFIG")

    # ── Transport ───────────────────────────────────────────────
    base_url: str | None = None
    timeout_secs: str | None = None
    proxy: str | None = None
    max_retries: str | None = None

    # ── Pass-through request hints ──────────────────────────────
    trace_id: str | None = None
    cache_namespace: str | None = None
    cache_force_refresh: str | None = None


class ObservabilitySettings(BaseSettings):
    """Logging and tracing settings, read from ``PORTKEY_*`` env vars."""

    model_config = SettingsConfigDict(env_prefix="PORTKEY_", extra="ignore")

    log_level: str = Field(default="INFO")
    log_format: str = Field(
        default="json",
        description="Log format: 'json' or 'console'.",
    )

    trace_enabled: bool = Field(default=False)
    trace_exporter: str = Field(
        default="none",
        description="Trace exporter: 'none', 'console', 'otlp'.",
    )
    trace_endpoint: str = Field(default="http://localhost:4317")
    trace_service_name: str = Field(default="portkey-client")


# ── Validation ──────────────────────────────────────────────────


def _check_api_key(api_key: SecretStr | None) -> None:
    if api_key is None or not api_key.get_secret_value().strip():
        raise MissingCredentialError(API_KEY_ENV)


def _check_base_url(url: str) -> None:
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError) as exc:
        raise InvalidBaseUrlError(str(url), str(exc)) from exc
    if parsed.scheme not in ("http", "https"):
        raise InvalidBaseUrlError(url, "scheme must be http or https")
    if not parsed.host:
        raise InvalidBaseUrlError(url, "missing host")


def _coerce_timeout(value: float | int | str | timedelta) -> float:
    """Return ``value`` as seconds, or raise ``InvalidTimeoutError``."""
    if isinstance(value, timedelta):
        seconds = value.total_seconds()
    elif isinstance(value, bool):
        raise InvalidTimeoutError(value, MIN_TIMEOUT_SECONDS, MAX_TIMEOUT_SECONDS)
    else:
        try:
            seconds = float(value)
        except (TypeError, ValueError) as exc:
            raise InvalidTimeoutError(
                value, MIN_TIMEOUT_SECONDS, MAX_TIMEOUT_SECONDS
            ) from exc

    if math.isnan(seconds) or not MIN_TIMEOUT_SECONDS <= seconds <= MAX_TIMEOUT_SECONDS:
        raise InvalidTimeoutError(value, MIN_TIMEOUT_SECONDS, MAX_TIMEOUT_SECONDS)
    return seconds


def _parse_bool(value: str) -> bool | None:
    lowered = value.strip().lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    return None


# ── Config ──────────────────────────────────────────────────────


class PortkeyConfig(BaseModel):
    """Immutable, validated settings for a ``PortkeyClient``.

    Build one with ``PortkeyConfig.builder()`` (or ``from_env()``). Direct
    construction runs the same checks, so an invalid config never exists.
    Fields validate in declaration order: credential, base URL, timeout.
    """

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    api_key: SecretStr
    auth_method: AuthMethod | None = None
    base_url: str = DEFAULT_BASE_URL
    timeout_seconds: float = DEFAULT_TIMEOUT_SECONDS
    http_client: httpx.AsyncClient | None = Field(default=None, repr=False)
    proxy: str | None = Field(default=None, repr=False)
    max_retries: int = Field(default=0, ge=0)
    trace_id: str | None = None
    metadata: Mapping[str, Any] | None = None
    cache_namespace: str | None = None
    cache_force_refresh: bool | None = None

    @field_validator("api_key")
    @classmethod
    def _validate_api_key(cls, value: SecretStr) -> SecretStr:
        _check_api_key(value)
        return value

    @field_validator("base_url")
    @classmethod
    def _validate_base_url(cls, value: str) -> str:
        _check_base_url(value)
        return value

    @field_validator("timeout_seconds", mode="before")
    @classmethod
    def _validate_timeout(cls, value: Any) -> float:
        return _coerce_timeout(value)

    @field_validator("metadata")
    @classmethod
    def _freeze_metadata(cls, value: Mapping[str, Any] | None) -> Mapping[str, Any] | None:
        if value is None:
            return None
        return MappingProxyType(dict(value))

    def __hash__(self) -> int:
        # metadata values and the transport are left out
        return hash(
            (
                self.api_key,
                self.auth_method,
                self.base_url,
                self.timeout_seconds,
                self.proxy,
                self.max_retries,
                self.trace_id,
                self.cache_namespace,
                self.cache_force_refresh,
            )
        )

    @staticmethod
    def builder() -> PortkeyBuilder:
        """Return a fresh builder."""
        return PortkeyBuilder()

    @classmethod
    def from_env(cls) -> PortkeyConfig:
        """Resolve a config purely from ``PORTKEY_*`` environment variables."""
        return PortkeyBuilder().build()

    def build_client(self) -> PortkeyClient:
        """Create a ``PortkeyClient`` from this config."""
        from portkey_client.client import PortkeyClient

        return PortkeyClient(self)

    @property
    def timeout(self) -> timedelta:
        """Request timeout as a ``timedelta``."""
        return timedelta(seconds=self.timeout_seconds)

    def masked_api_key(self) -> str:
        """API key safe for display: first 4 chars then ``****``."""
        key = self.api_key.get_secret_value()
        if len(key) > 4:
            return f"{key[:4]}****"
        return "****"

    def headers(self) -> dict[str, str]:
        """Gateway headers sent with every request made under this config."""
        headers = {"x-portkey-api-key": self.api_key.get_secret_value()}

        if self.auth_method is not None:
            headers.update(self.auth_method.headers())

        if self.trace_id:
            headers["x-portkey-trace-id"] = self.trace_id

        if self.metadata is not None:
            try:
                headers["x-portkey-metadata"] = json.dumps(dict(self.metadata))
            except (TypeError, ValueError) as exc:
                logger.warning("Metadata is not JSON-serializable, skipping header: %s", exc)

        if self.cache_namespace:
            headers["x-portkey-cache-namespace"] = self.cache_namespace

        if self.cache_force_refresh is not None:
            headers["x-portkey-cache-force-refresh"] = str(self.cache_force_refresh).lower()

        return headers


# ── Builder ─────────────────────────────────────────────────────


class PortkeyBuilder:
    """Mutable draft of a ``PortkeyConfig`` with chainable setters.

    Usage:
        config = (
            PortkeyConfig.builder()
            .with_api_key("pk-...")
            .with_auth_method(VirtualKey("vk-..."))
            .with_timeout(60)
            .build()
        )

    Anything left unset is taken from the environment at ``build()`` time,
    then from defaults.
    """

    def __init__(self) -> None:
        self._api_key: SecretStr | None = None
        self._auth_method: AuthMethod | None = None
        self._base_url: str | None = None
        self._timeout: float | int | timedelta | None = None
        self._http_client: httpx.AsyncClient | None = None
        self._proxy: str | None = None
        self._max_retries: int | None = None
        self._trace_id: str | None = None
        self._metadata: dict[str, Any] | None = None
        self._cache_namespace: str | None = None
        self._cache_force_refresh: bool | None = None

    def with_api_key(self, api_key: str | SecretStr) -> PortkeyBuilder:
        self._api_key = api_key if isinstance(api_key, SecretStr) else SecretStr(api_key)
        return self

    def with_auth_method(self, auth_method: AuthMethod) -> PortkeyBuilder:
        self._auth_method = auth_method
        return self

    def with_base_url(self, base_url: str) -> PortkeyBuilder:
        self._base_url = base_url
        return self

    def with_timeout(self, timeout: float | int | timedelta) -> PortkeyBuilder:
        """Set the request timeout, in seconds or as a ``timedelta``."""
        self._timeout = timeout
        return self

    def with_http_client(self, http_client: httpx.AsyncClient) -> PortkeyBuilder:
        """Use a pre-built transport instead of constructing one.

        The client is adopted as-is: its timeout, proxy and TLS settings are
        left alone, and ``PortkeyClient.aclose()`` will not close it.
        """
        self._http_client = http_client
        return self

    def with_proxy(self, proxy: str) -> PortkeyBuilder:
        self._proxy = proxy
        return self

    def with_max_retries(self, max_retries: int) -> PortkeyBuilder:
        self._max_retries = max_retries
        return self

    def with_trace_id(self, trace_id: str) -> PortkeyBuilder:
        self._trace_id = trace_id
        return self

    def with_metadata(self, metadata: Mapping[str, Any]) -> PortkeyBuilder:
        self._metadata = dict(metadata)
        return self

    def with_cache_namespace(self, cache_namespace: str) -> PortkeyBuilder:
        self._cache_namespace = cache_namespace
        return self

    def with_cache_force_refresh(self, cache_force_refresh: bool) -> PortkeyBuilder:
        self._cache_force_refresh = cache_force_refresh
        return self

    def build(self) -> PortkeyConfig:
        """Resolve, validate and freeze the configuration.

        The environment is read fresh on every call.

        Raises:
            MissingCredentialError: No API key, or PORTKEY_PROVIDER without
                PORTKEY_AUTHORIZATION.
            InvalidBaseUrlError: Base URL is not an absolute http(s) URL.
            InvalidTimeoutError: Timeout unparsable or outside [1, 300] s.
            ConfigurationError: max_retries unparsable or negative.
        """
        env = EnvSettings()

        # 1. Credentials
        api_key = self._api_key
        if api_key is None and env.api_key is not None:
            api_key = SecretStr(env.api_key)
        _check_api_key(api_key)
        auth_method = self._auth_method or _auth_method_from_env(env)

        # 2. Base URL
        base_url = _first(self._base_url, env.base_url, DEFAULT_BASE_URL)
        _check_base_url(base_url)

        # 3. Timeout
        timeout_seconds = _coerce_timeout(
            _first(self._timeout, env.timeout_secs, DEFAULT_TIMEOUT_SECONDS)
        )

        cache_force_refresh = self._cache_force_refresh
        if cache_force_refresh is None and env.cache_force_refresh is not None:
            cache_force_refresh = _parse_bool(env.cache_force_refresh)

        try:
            config = PortkeyConfig(
                api_key=api_key,  # type: ignore[arg-type]
                auth_method=auth_method,
                base_url=base_url,
                timeout_seconds=timeout_seconds,
                http_client=self._http_client,
                proxy=_first(self._proxy, env.proxy),
                max_retries=_first(self._max_retries, env.max_retries, 0),
                trace_id=_first(self._trace_id, env.trace_id),
                metadata=self._metadata,
                cache_namespace=_first(self._cache_namespace, env.cache_namespace),
                cache_force_refresh=cache_force_refresh,
            )
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid configuration: {exc}") from exc

        logger.debug(
            "Resolved Portkey configuration",
            extra={
                "base_url": config.base_url,
                "timeout_seconds": config.timeout_seconds,
                "api_key": config.masked_api_key(),
                "auth_method": type(auth_method).__name__ if auth_method else None,
                "custom_http_client": config.http_client is not None,
            },
        )
        return config

    def build_client(self) -> PortkeyClient:
        """Build the config and a ``PortkeyClient`` from it in one step."""
        return self.build().build_client()


def _first(*values: Any) -> Any:
    """Return the first value that is not ``None``."""
    for value in values:
        if value is not None:
            return value
    return None


def _auth_method_from_env(env: EnvSettings) -> AuthMethod | None:
    """Pick the routing method from env: virtual key > provider > config."""
    if env.virtual_key:
        return VirtualKey(env.virtual_key)
    if env.provider:
        if not env.authorization:
            raise MissingCredentialError(
                "PORTKEY_AUTHORIZATION",
                "PORTKEY_AUTHORIZATION is required when PORTKEY_PROVIDER is set.",
            )
        return ProviderAuth(
            provider=env.provider,
            authorization=env.authorization,
            custom_host=env.custom_host,
        )
    if env.config_id:
        return ConfigAuth(env.config_id)
    return None
