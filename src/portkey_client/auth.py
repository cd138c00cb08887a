"""Authentication methods the gateway uses to route requests to providers."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class VirtualKey:
    """Route through a virtual key managed in the Portkey dashboard.

    The provider's own credential stays in the gateway; the caller only
    ever sees the virtual key id.
    """

    virtual_key: str

    def headers(self) -> dict[str, str]:
        return {"x-portkey-virtual-key": self.virtual_key}

    def __repr__(self) -> str:
        return "VirtualKey(virtual_key='****')"


@dataclass(frozen=True)
class ProviderAuth:
    """Authenticate directly against a provider through the gateway.

    ``authorization`` is the full header value, e.g. ``"Bearer sk-..."``.
    ``custom_host`` points the gateway at a self-hosted or enterprise
    endpoint for that provider.
    """

    provider: str
    authorization: str
    custom_host: str | None = None

    def headers(self) -> dict[str, str]:
        headers = {
            "x-portkey-provider": self.provider,
            "Authorization": self.authorization,
        }
        if self.custom_host:
            headers["x-portkey-custom-host"] = self.custom_host
        return headers

    def __repr__(self) -> str:
        return (
            f"ProviderAuth(provider={self.provider!r}, authorization='****', "
            f"custom_host={self.custom_host!r})"
        )


@dataclass(frozen=True)
class ConfigAuth:
    """Route using a saved gateway config (fallbacks, load balancing, ...)."""

    config_id: str

    def headers(self) -> dict[str, str]:
        return {"x-portkey-config": self.config_id}


AuthMethod = VirtualKey | ProviderAuth | ConfigAuth
