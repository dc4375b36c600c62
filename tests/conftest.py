"""Shared test fixtures for qboconnect.

Provides isolated config environments, a controllable clock, in-memory
stores, a mock identity provider built on :class:`httpx.MockTransport`,
and output-state management. These fixtures are discovered by pytest and
available to all test modules without explicit imports.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Callable
from urllib.parse import parse_qs

import httpx
import pytest

from qboconnect.models import ConnectConfig
from qboconnect.output import reset_output
from qboconnect.store import MemoryStore


AUTHORIZATION_ENDPOINT = "https://appcenter.intuit.com/connect/oauth2"
TOKEN_ENDPOINT = "https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer"

DISCOVERY_DOCUMENT = {
    "issuer": "https://oauth.platform.intuit.com/op/v1",
    "authorization_endpoint": AUTHORIZATION_ENDPOINT,
    "token_endpoint": TOKEN_ENDPOINT,
    "userinfo_endpoint": "https://sandbox-accounts.platform.intuit.com/v1/openid_connect/userinfo",
    "revocation_endpoint": "https://developer.API.intuit.com/v2/oauth2/tokens/revoke",
    "jwks_uri": "https://oauth.platform.intuit.com/op/v1/jwks",
}

TOKEN_RESPONSE = {
    "access_token": "access-1",
    "refresh_token": "refresh-1",
    "token_type": "bearer",
    "expires_in": 3600,
    "x_refresh_token_expires_in": 8726400,
}


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Reset the global OutputManager after every test.

    The OutputManager keeps references to sys.stdout/sys.stderr. CliRunner
    swaps those streams during a test, so the cached references go stale
    once the test ends.
    """
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Clock and stores
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced replacement for :func:`time.time`."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()


@pytest.fixture
def connect_config() -> ConnectConfig:
    """A complete sandbox configuration with auto-redirect disabled."""
    return ConnectConfig(
        client_id="client-id",
        client_secret="client-secret",
        callback_uri="https://example.com/qbo/callback",
        sandbox=True,
        autoredirect=False,
    )


# ---------------------------------------------------------------------------
# Mock identity provider / accounting API
# ---------------------------------------------------------------------------


class FakeIntuit:
    """Routes requests to the discovery, token and API endpoints.

    Each route can be overridden per test by replacing the attribute with a
    callable taking an :class:`httpx.Request`. Every request is recorded in
    :attr:`requests`.
    """

    authorization_endpoint = AUTHORIZATION_ENDPOINT
    token_endpoint = TOKEN_ENDPOINT
    discovery_document = DISCOVERY_DOCUMENT
    token_response = TOKEN_RESPONSE

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []
        self.discovery: Callable[[httpx.Request], httpx.Response] = (
            lambda request: httpx.Response(200, json=DISCOVERY_DOCUMENT)
        )
        self.token: Callable[[httpx.Request], httpx.Response] = (
            lambda request: httpx.Response(200, json=TOKEN_RESPONSE)
        )
        self.api: Callable[[httpx.Request], httpx.Response] = (
            lambda request: httpx.Response(
                200, json={"CompanyInfo": {"CompanyName": "Sandbox Co"}}
            )
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if ".well-known" in url:
            return self.discovery(request)
        if url.startswith(TOKEN_ENDPOINT):
            return self.token(request)
        return self.api(request)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self.handler))

    def requests_to(self, fragment: str) -> list[httpx.Request]:
        return [r for r in self.requests if fragment in str(r.url)]

    @staticmethod
    def form(request: httpx.Request) -> dict[str, str]:
        """Decode a form-encoded request body into single values."""
        parsed = parse_qs(request.content.decode("utf-8"))
        return {key: values[0] for key, values in parsed.items()}

    @staticmethod
    def json_body(request: httpx.Request) -> Any:
        return json.loads(request.content.decode("utf-8"))


@pytest.fixture
def intuit() -> FakeIntuit:
    return FakeIntuit()


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Points XDG_CONFIG_HOME, XDG_CACHE_HOME and XDG_DATA_HOME at
    subdirectories of tmp_path, forces the XDG layout, clears all
    QBO_CONNECT_* environment variables and changes into tmp_path.
    """
    monkeypatch.setattr("qboconnect.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in [
        "QBO_CONNECT_CLIENT_ID",
        "QBO_CONNECT_CLIENT_SECRET",
        "QBO_CONNECT_CALLBACK_URI",
        "QBO_CONNECT_SANDBOX",
    ]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


# ---------------------------------------------------------------------------
# CLI fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner():
    from typer.testing import CliRunner

    return CliRunner()
