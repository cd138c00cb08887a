"""Tests for PortkeyConfig and PortkeyBuilder."""

from __future__ import annotations

from datetime import timedelta

import httpx
import pytest
from pydantic import ValidationError

from portkey_client.auth import ConfigAuth, ProviderAuth, VirtualKey
from portkey_client.config import (
    DEFAULT_BASE_URL,
    DEFAULT_TIMEOUT_SECONDS,
    ObservabilitySettings,
    PortkeyBuilder,
    PortkeyConfig,
)
from portkey_client.exceptions import (
    ConfigurationError,
    InvalidBaseUrlError,
    InvalidTimeoutError,
    MissingCredentialError,
)


@pytest.mark.unit
class TestBuilderDefaults:
    def test_api_key_only_uses_defaults(self) -> None:
        """Explicit key, nothing else → production URL and 30s timeout."""
        config = PortkeyConfig.builder().with_api_key("sk-test").build()
        assert config.api_key.get_secret_value() == "sk-test"
        assert config.base_url == DEFAULT_BASE_URL == "https://api.portkey.ai/v1"
        assert config.timeout_seconds == DEFAULT_TIMEOUT_SECONDS == 30.0
        assert config.auth_method is None
        assert config.http_client is None
        assert config.max_retries == 0

    def test_explicit_values_are_kept_exactly(self) -> None:
        config = (
            PortkeyBuilder()
            .with_api_key("pk-live")
            .with_base_url("https://gateway.internal:8787/v1/")
            .with_timeout(120)
            .build()
        )
        assert config.api_key.get_secret_value() == "pk-live"
        assert config.base_url == "https://gateway.internal:8787/v1/"
        assert config.timeout_seconds == 120.0

    def test_timeout_accepts_timedelta(self) -> None:
        config = (
            PortkeyBuilder().with_api_key("k").with_timeout(timedelta(minutes=2)).build()
        )
        assert config.timeout_seconds == 120.0
        assert config.timeout == timedelta(seconds=120)

    def test_setters_chain(self) -> None:
        builder = PortkeyBuilder()
        assert builder.with_api_key("k") is builder
        assert builder.with_trace_id("t") is builder

    def test_builder_reusable(self) -> None:
        """A builder can build several independent configs."""
        builder = PortkeyBuilder().with_api_key("k")
        first = builder.build()
        second = builder.with_timeout(60).build()
        assert first.timeout_seconds == 30.0
        assert second.timeout_seconds == 60.0


@pytest.mark.unit
class TestValidation:
    def test_missing_api_key(self) -> None:
        with pytest.raises(MissingCredentialError, match="PORTKEY_API_KEY") as info:
            PortkeyBuilder().build()
        assert info.value.env_var == "PORTKEY_API_KEY"

    @pytest.mark.parametrize("key", ["", "   "])
    def test_blank_api_key(self, key: str) -> None:
        with pytest.raises(MissingCredentialError):
            PortkeyBuilder().with_api_key(key).build()

    @pytest.mark.parametrize("timeout", [0, 0.5, 300.5, 301, 400, -1, float("nan")])
    def test_timeout_out_of_range(self, timeout: float) -> None:
        with pytest.raises(InvalidTimeoutError):
            PortkeyBuilder().with_api_key("k").with_timeout(timeout).build()

    @pytest.mark.parametrize("timeout", [1, 1.0, 29.5, 300])
    def test_timeout_bounds_inclusive(self, timeout: float) -> None:
        config = PortkeyBuilder().with_api_key("k").with_timeout(timeout).build()
        assert config.timeout_seconds == float(timeout)

    @pytest.mark.parametrize(
        "url",
        [
            "",
            "not a url",
            "api.portkey.ai/v1",
            "ftp://api.portkey.ai/v1",
            "http://",
            "/v1",
        ],
    )
    def test_invalid_base_url(self, url: str) -> None:
        with pytest.raises(InvalidBaseUrlError) as info:
            PortkeyBuilder().with_api_key("k").with_base_url(url).build()
        assert info.value.url == url

    def test_error_order_credential_first(self) -> None:
        """Credential is checked before base URL and timeout."""
        with pytest.raises(MissingCredentialError):
            PortkeyBuilder().with_base_url("bogus").with_timeout(0).build()

    def test_error_order_base_url_before_timeout(self) -> None:
        with pytest.raises(InvalidBaseUrlError):
            PortkeyBuilder().with_api_key("k").with_base_url("bogus").with_timeout(0).build()

    def test_negative_max_retries(self) -> None:
        with pytest.raises(ConfigurationError, match="max_retries"):
            PortkeyBuilder().with_api_key("k").with_max_retries(-1).build()

    def test_direct_construction_validates(self) -> None:
        with pytest.raises(InvalidTimeoutError):
            PortkeyConfig(api_key="k", timeout_seconds=500)  # type: ignore[arg-type]

    def test_direct_construction_error_order(self) -> None:
        """Direct construction checks credential, then base URL, then timeout."""
        with pytest.raises(MissingCredentialError):
            PortkeyConfig(
                api_key="", base_url="bogus", timeout_seconds=0  # type: ignore[arg-type]
            )
        with pytest.raises(InvalidBaseUrlError):
            PortkeyConfig(
                api_key="k", base_url="bogus", timeout_seconds=0  # type: ignore[arg-type]
            )

    def test_direct_construction_coerces_timedelta(self) -> None:
        config = PortkeyConfig(
            api_key="k", timeout_seconds=timedelta(seconds=45)  # type: ignore[arg-type]
        )
        assert config.timeout_seconds == 45.0

    def test_errors_are_configuration_errors(self) -> None:
        assert issubclass(MissingCredentialError, ConfigurationError)
        assert issubclass(InvalidBaseUrlError, ConfigurationError)
        assert issubclass(InvalidTimeoutError, ConfigurationError)


@pytest.mark.unit
class TestEnvResolution:
    def test_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORTKEY_API_KEY", "pk-env")
        monkeypatch.setenv("PORTKEY_BASE_URL", "http://localhost:8787/v1")
        monkeypatch.setenv("PORTKEY_TIMEOUT_SECS", "45")
        config = PortkeyConfig.from_env()
        assert config.api_key.get_secret_value() == "pk-env"
        assert config.base_url == "http://localhost:8787/v1"
        assert config.timeout_seconds == 45.0

    def test_env_timeout_too_large(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORTKEY_API_KEY", "pk-env")
        monkeypatch.setenv("PORTKEY_TIMEOUT_SECS", "400")
        with pytest.raises(InvalidTimeoutError) as info:
            PortkeyConfig.from_env()
        assert info.value.value == "400"

    def test_env_timeout_not_a_number(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORTKEY_API_KEY", "pk-env")
        monkeypatch.setenv("PORTKEY_TIMEOUT_SECS", "thirty")
        with pytest.raises(InvalidTimeoutError):
            PortkeyConfig.from_env()

    def test_empty_env_var_counts_as_unset(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORTKEY_API_KEY", "pk-env")
        monkeypatch.setenv("PORTKEY_BASE_URL", "")
        assert PortkeyConfig.from_env().base_url == DEFAULT_BASE_URL

    def test_empty_env_api_key_is_missing(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORTKEY_API_KEY", "")
        with pytest.raises(MissingCredentialError):
            PortkeyConfig.from_env()

    def test_env_read_on_every_build(self, monkeypatch: pytest.MonkeyPatch) -> None:
        builder = PortkeyBuilder()
        monkeypatch.setenv("PORTKEY_API_KEY", "first")
        assert builder.build().api_key.get_secret_value() == "first"
        monkeypatch.setenv("PORTKEY_API_KEY", "second")
        assert builder.build().api_key.get_secret_value() == "second"

    def test_pass_through_hints(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORTKEY_API_KEY", "pk-env")
        monkeypatch.setenv("PORTKEY_TRACE_ID", "trace-1")
        monkeypatch.setenv("PORTKEY_CACHE_NAMESPACE", "ns")
        monkeypatch.setenv("PORTKEY_CACHE_FORCE_REFRESH", "TRUE")
        config = PortkeyConfig.from_env()
        assert config.trace_id == "trace-1"
        assert config.cache_namespace == "ns"
        assert config.cache_force_refresh is True

    def test_unparsable_force_refresh_ignored(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORTKEY_API_KEY", "pk-env")
        monkeypatch.setenv("PORTKEY_CACHE_FORCE_REFRESH", "yes-please")
        assert PortkeyConfig.from_env().cache_force_refresh is None

    def test_max_retries_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORTKEY_API_KEY", "pk-env")
        monkeypatch.setenv("PORTKEY_MAX_RETRIES", "2")
        assert PortkeyConfig.from_env().max_retries == 2

    def test_max_retries_env_not_an_int(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORTKEY_API_KEY", "pk-env")
        monkeypatch.setenv("PORTKEY_MAX_RETRIES", "many")
        with pytest.raises(ConfigurationError):
            PortkeyConfig.from_env()


@pytest.mark.unit
class TestPrecedence:
    """Explicit > env > default, checked one field at a time."""

    def test_api_key(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORTKEY_API_KEY", "from-env")
        assert PortkeyBuilder().build().api_key.get_secret_value() == "from-env"
        explicit = PortkeyBuilder().with_api_key("explicit").build()
        assert explicit.api_key.get_secret_value() == "explicit"

    def test_base_url(self, monkeypatch: pytest.MonkeyPatch) -> None:
        builder = PortkeyBuilder().with_api_key("k")
        assert builder.build().base_url == DEFAULT_BASE_URL
        monkeypatch.setenv("PORTKEY_BASE_URL", "https://env.example/v1")
        assert builder.build().base_url == "https://env.example/v1"
        builder.with_base_url("https://explicit.example/v1")
        assert builder.build().base_url == "https://explicit.example/v1"

    def test_timeout(self, monkeypatch: pytest.MonkeyPatch) -> None:
        builder = PortkeyBuilder().with_api_key("k")
        assert builder.build().timeout_seconds == 30.0
        monkeypatch.setenv("PORTKEY_TIMEOUT_SECS", "90")
        assert builder.build().timeout_seconds == 90.0
        builder.with_timeout(10)
        assert builder.build().timeout_seconds == 10.0

    def test_explicit_timeout_masks_invalid_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORTKEY_TIMEOUT_SECS", "400")
        config = PortkeyBuilder().with_api_key("k").with_timeout(60).build()
        assert config.timeout_seconds == 60.0

    def test_fields_resolve_independently(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Explicit key, env base URL, default timeout in one build."""
        monkeypatch.setenv("PORTKEY_API_KEY", "env-key")
        monkeypatch.setenv("PORTKEY_BASE_URL", "https://env.example/v1")
        config = PortkeyBuilder().with_api_key("explicit").build()
        assert config.api_key.get_secret_value() == "explicit"
        assert config.base_url == "https://env.example/v1"
        assert config.timeout_seconds == 30.0

    def test_trace_id(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORTKEY_TRACE_ID", "env-trace")
        builder = PortkeyBuilder().with_api_key("k")
        assert builder.build().trace_id == "env-trace"
        assert builder.with_trace_id("explicit-trace").build().trace_id == "explicit-trace"


@pytest.mark.unit
class TestAuthMethodResolution:
    def test_virtual_key_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORTKEY_API_KEY", "k")
        monkeypatch.setenv("PORTKEY_VIRTUAL_KEY", "vk-123")
        assert PortkeyConfig.from_env().auth_method == VirtualKey("vk-123")

    def test_provider_auth_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORTKEY_API_KEY", "k")
        monkeypatch.setenv("PORTKEY_PROVIDER", "openai")
        monkeypatch.setenv("PORTKEY_AUTHORIZATION", "Bearer sk-123")
        monkeypatch.setenv("PORTKEY_CUSTOM_HOST", "https://openai.internal")
        assert PortkeyConfig.from_env().auth_method == ProviderAuth(
            provider="openai",
            authorization="Bearer sk-123",
            custom_host="https://openai.internal",
        )

    def test_provider_without_authorization(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORTKEY_API_KEY", "k")
        monkeypatch.setenv("PORTKEY_PROVIDER", "openai")
        with pytest.raises(MissingCredentialError) as info:
            PortkeyConfig.from_env()
        assert info.value.env_var == "PORTKEY_AUTHORIZATION"

    def test_config_id_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORTKEY_API_KEY", "k")
        monkeypatch.setenv("PORTKEY_CONFIG", "pc-config-123")
        assert PortkeyConfig.from_env().auth_method == ConfigAuth("pc-config-123")

    def test_env_priority_virtual_key_wins(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORTKEY_API_KEY", "k")
        monkeypatch.setenv("PORTKEY_VIRTUAL_KEY", "vk-1")
        monkeypatch.setenv("PORTKEY_CONFIG", "pc-1")
        assert isinstance(PortkeyConfig.from_env().auth_method, VirtualKey)

    def test_explicit_auth_overrides_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORTKEY_VIRTUAL_KEY", "vk-env")
        # Explicit method means the env provider pair is never consulted
        monkeypatch.setenv("PORTKEY_PROVIDER", "openai")
        config = (
            PortkeyBuilder().with_api_key("k").with_auth_method(ConfigAuth("pc-1")).build()
        )
        assert config.auth_method == ConfigAuth("pc-1")


@pytest.mark.unit
class TestPortkeyConfig:
    def test_frozen(self) -> None:
        config = PortkeyBuilder().with_api_key("k").build()
        with pytest.raises(ValidationError):
            config.timeout_seconds = 60  # type: ignore[misc]

    def test_metadata_read_only(self) -> None:
        metadata = {"user_id": "12345"}
        config = PortkeyBuilder().with_api_key("k").with_metadata(metadata).build()
        metadata["user_id"] = "changed"
        assert config.metadata == {"user_id": "12345"}
        with pytest.raises(TypeError):
            config.metadata["user_id"] = "x"  # type: ignore[index]

    def test_masked_api_key(self) -> None:
        config = PortkeyBuilder().with_api_key("test_key_12345").build()
        assert config.masked_api_key() == "test****"

    @pytest.mark.parametrize("key", ["abc", "abcd"])
    def test_masked_api_key_short(self, key: str) -> None:
        assert PortkeyBuilder().with_api_key(key).build().masked_api_key() == "****"

    def test_repr_hides_secret(self) -> None:
        config = PortkeyBuilder().with_api_key("pk-super-secret").build()
        assert "pk-super-secret" not in repr(config)

    def test_http_client_kept_as_is(self) -> None:
        http_client = httpx.AsyncClient()
        config = PortkeyBuilder().with_api_key("k").with_http_client(http_client).build()
        assert config.http_client is http_client

    def test_rebuild_with_changes_revalidates(self) -> None:
        config = PortkeyBuilder().with_api_key("k").build()
        with pytest.raises(InvalidTimeoutError):
            PortkeyConfig(**{**dict(config), "timeout_seconds": 0})

    def test_hashable_with_metadata(self) -> None:
        config = PortkeyBuilder().with_api_key("k").with_metadata({"a": 1}).build()
        same = PortkeyBuilder().with_api_key("k").with_metadata({"a": 1}).build()
        assert config == same
        assert hash(config) == hash(same)
        assert len({config, same}) == 1

    def test_direct_construction_negative_max_retries(self) -> None:
        with pytest.raises(ValidationError, match="max_retries"):
            PortkeyConfig(api_key="k", max_retries=-1)  # type: ignore[arg-type]


@pytest.mark.unit
class TestHeaders:
    def test_api_key_only(self) -> None:
        config = PortkeyBuilder().with_api_key("pk-1").build()
        assert config.headers() == {"x-portkey-api-key": "pk-1"}

    def test_virtual_key(self) -> None:
        config = (
            PortkeyBuilder().with_api_key("pk-1").with_auth_method(VirtualKey("vk-1")).build()
        )
        assert config.headers()["x-portkey-virtual-key"] == "vk-1"

    def test_provider_auth(self) -> None:
        config = (
            PortkeyBuilder()
            .with_api_key("pk-1")
            .with_auth_method(ProviderAuth("anthropic", "Bearer sk-ant", "https://h"))
            .build()
        )
        headers = config.headers()
        assert headers["x-portkey-provider"] == "anthropic"
        assert headers["Authorization"] == "Bearer sk-ant"
        assert headers["x-portkey-custom-host"] == "https://h"

    def test_config_auth(self) -> None:
        config = (
            PortkeyBuilder().with_api_key("pk-1").with_auth_method(ConfigAuth("pc-1")).build()
        )
        assert config.headers()["x-portkey-config"] == "pc-1"

    def test_optional_hints(self) -> None:
        config = (
            PortkeyBuilder()
            .with_api_key("pk-1")
            .with_trace_id("trace-123")
            .with_metadata({"user_id": "12345"})
            .with_cache_namespace("my-cache")
            .with_cache_force_refresh(False)
            .build()
        )
        headers = config.headers()
        assert headers["x-portkey-trace-id"] == "trace-123"
        assert headers["x-portkey-metadata"] == '{"user_id": "12345"}'
        assert headers["x-portkey-cache-namespace"] == "my-cache"
        assert headers["x-portkey-cache-force-refresh"] == "false"

    def test_unserializable_metadata_skipped(self) -> None:
        config = PortkeyBuilder().with_api_key("pk-1").with_metadata({"obj": object()}).build()
        assert "x-portkey-metadata" not in config.headers()


@pytest.mark.unit
class TestObservabilitySettings:
    def test_defaults(self) -> None:
        settings = ObservabilitySettings()
        assert settings.log_level == "INFO"
        assert settings.trace_enabled is False
        assert settings.trace_service_name == "portkey-client"

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("PORTKEY_LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("PORTKEY_TRACE_ENABLED", "true")
        monkeypatch.setenv("PORTKEY_TRACE_EXPORTER", "console")
        settings = ObservabilitySettings()
        assert settings.log_level == "DEBUG"
        assert settings.trace_enabled is True
        assert settings.trace_exporter == "console"
