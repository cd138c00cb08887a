"""Shared test fixtures for portkey-client."""

from __future__ import annotations

import os
from collections.abc import Iterator

import pytest

from portkey_client.client import PortkeyClient
from portkey_client.observability.tracing import disable_tracing
from portkey_client.testing import FakeGateway


@pytest.fixture(autouse=True)
def clean_env(
    request: pytest.FixtureRequest, monkeypatch: pytest.MonkeyPatch
) -> Iterator[None]:
    """Strip PORTKEY_* vars so the host environment never leaks into unit tests."""
    if request.node.get_closest_marker("integration") is not None:
        yield
        return
    for name in list(os.environ):
        if name.startswith("PORTKEY_"):
            monkeypatch.delenv(name, raising=False)
    disable_tracing()
    yield
    disable_tracing()


@pytest.fixture
def fake_gateway() -> FakeGateway:
    """Return a fresh FakeGateway."""
    return FakeGateway()


@pytest.fixture
def client(fake_gateway: FakeGateway) -> PortkeyClient:
    """Return a PortkeyClient wired to ``fake_gateway``."""
    return PortkeyClient(fake_gateway.config(api_key="pk-test-key"))
