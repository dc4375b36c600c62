"""End-to-end CLI tests through Typer's CliRunner against a mocked Intuit."""

from __future__ import annotations

import json
from pathlib import Path
from urllib.parse import parse_qs, urlencode, urlsplit

import pytest

from qboconnect.app import app
from qboconnect.auth import ErrorStore
from qboconnect.config import load_settings, save_settings
from qboconnect.exceptions import ApiCallError, AuthError
from qboconnect.models import ConnectError, Settings
from qboconnect.store import JsonFileStore

CALLBACK = "https://example.com/qbo/callback"


@pytest.fixture
def configured(isolated_config: Path, monkeypatch: pytest.MonkeyPatch, intuit) -> Path:
    """Settings with client credentials and the HTTP client routed to the fake provider."""
    save_settings(Settings(client_id="client-id", callback_uri=CALLBACK))
    monkeypatch.setenv("QBO_CONNECT_CLIENT_SECRET", "client-secret")
    monkeypatch.setattr(
        "qboconnect.commands.session.make_http_client", lambda settings: intuit.client()
    )
    return isolated_config


def _login_state(cli_runner) -> str:
    result = cli_runner.invoke(app, ["auth", "login"])
    assert result.exit_code == 0, result.output
    url = next(line for line in result.output.splitlines() if line.startswith("https://"))
    return parse_qs(urlsplit(url).query)["state"][0]


def _connect(cli_runner) -> None:
    state = _login_state(cli_runner)
    query = urlencode({"state": state, "code": "auth-code", "realmId": "4620816365"})
    callback = f"{CALLBACK}?{query}"
    result = cli_runner.invoke(app, ["auth", "callback", callback])
    assert result.exit_code == 0, result.output


class TestGlobal:
    def test_version(self, cli_runner) -> None:
        result = cli_runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "qbo-connect 0.1.0" in result.output


class TestConfigCommands:
    def test_show(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["--json", "config", "show"])
        assert result.exit_code == 0
        assert '"store_backend": "file"' in result.output

    def test_set(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["config", "set", "sandbox", "false"])
        assert result.exit_code == 0
        assert "Set sandbox = False" in result.output
        assert load_settings().sandbox is False

    def test_set_unknown_key(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["config", "set", "nope", "1"])
        assert result.exit_code == 2
        assert "Unknown config key" in result.output

    def test_set_invalid_value(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["config", "set", "timeout", "soon"])
        assert result.exit_code == 2

    def test_reset_forced(self, cli_runner, isolated_config: Path) -> None:
        save_settings(Settings(client_id="abc"))
        result = cli_runner.invoke(app, ["--force", "config", "reset"])
        assert result.exit_code == 0
        assert load_settings().client_id == ""


class TestErrorsCommands:
    def test_show_empty(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["errors", "show"])
        assert result.exit_code == 0
        assert "No stored error." in result.output

    def test_show_and_clear(self, cli_runner, isolated_config: Path) -> None:
        store = JsonFileStore()
        ErrorStore(store).record(
            ConnectError(code="qbo_connect_x", message="Something broke"),
            {"client_secret": "hidden"},
        )

        shown = cli_runner.invoke(app, ["errors", "show"])
        assert shown.exit_code == 0
        assert "Something broke" in shown.output
        assert "hidden" not in shown.output

        with_args = cli_runner.invoke(app, ["--json", "errors", "show", "--show-request-args"])
        assert "hidden" in with_args.output

        cleared = cli_runner.invoke(app, ["errors", "clear"])
        assert "Stored error cleared." in cleared.output
        assert ErrorStore(JsonFileStore()).get() is None


class TestAuthCommands:
    def test_status_without_credentials(self, cli_runner, isolated_config: Path) -> None:
        result = cli_runner.invoke(app, ["--plain", "auth", "status"])
        assert result.exit_code == 0
        assert "connected\tno" in result.output
        assert "environment\tsandbox" in result.output

    def test_login_without_client_id(self, cli_runner, isolated_config: Path, monkeypatch, intuit) -> None:
        monkeypatch.setattr(
            "qboconnect.commands.session.make_http_client", lambda settings: intuit.client()
        )
        result = cli_runner.invoke(app, ["auth", "login"])
        assert isinstance(result.exception, AuthError)
        assert intuit.requests == []

    def test_login_prints_authorization_url(self, cli_runner, configured: Path, intuit) -> None:
        result = cli_runner.invoke(app, ["auth", "login"])
        assert result.exit_code == 0, result.output
        url = next(line for line in result.output.splitlines() if line.startswith("https://"))
        query = parse_qs(urlsplit(url).query)
        assert url.startswith(intuit.authorization_endpoint)
        assert query["client_id"] == ["client-id"]
        assert query["redirect_uri"] == [CALLBACK]
        assert query["response_type"] == ["code"]

    def test_callback_connects(self, cli_runner, configured: Path, intuit) -> None:
        _connect(cli_runner)

        token_request = intuit.requests_to(intuit.token_endpoint)[-1]
        form = intuit.form(token_request)
        assert form["grant_type"] == "authorization_code"
        assert form["code"] == "auth-code"

        status = cli_runner.invoke(app, ["--plain", "auth", "status"])
        assert "connected\tyes" in status.output
        assert "realm_id\t4620816365" in status.output

    def test_callback_with_bad_state(self, cli_runner, configured: Path, intuit) -> None:
        callback = f"{CALLBACK}?state=step%3Dauthorize%26nonce%3Dforged&code=c&realmId=1"
        result = cli_runner.invoke(app, ["auth", "callback", callback])
        assert result.exit_code == 3
        assert "Not a valid authorization callback" in result.output
        assert intuit.requests_to(intuit.token_endpoint) == []

    def test_refresh(self, cli_runner, configured: Path, intuit) -> None:
        _connect(cli_runner)
        result = cli_runner.invoke(app, ["auth", "refresh"])
        assert result.exit_code == 0, result.output
        form = intuit.form(intuit.requests_to(intuit.token_endpoint)[-1])
        assert form["grant_type"] == "refresh_token"

    def test_reset(self, cli_runner, configured: Path) -> None:
        _connect(cli_runner)
        result = cli_runner.invoke(app, ["auth", "reset", "--yes"])
        assert result.exit_code == 0
        assert "Connection reset." in result.output

        again = cli_runner.invoke(app, ["auth", "reset", "--yes"])
        assert "No stored connection." in again.output


class TestApiCommands:
    def test_company_info_requires_connection(self, cli_runner, configured: Path) -> None:
        result = cli_runner.invoke(app, ["api", "company-info"])
        assert isinstance(result.exception, AuthError)

    def test_company_info(self, cli_runner, configured: Path, intuit) -> None:
        _connect(cli_runner)
        result = cli_runner.invoke(app, ["--json", "api", "company-info"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"CompanyName": "Sandbox Co"}

        api_request = intuit.requests_to("/v3/company/")[-1]
        assert api_request.headers["authorization"] == "Bearer access-1"

    def test_company_info_failure(self, cli_runner, configured: Path, intuit) -> None:
        import httpx

        _connect(cli_runner)
        intuit.api = lambda request: httpx.Response(500, json={})
        result = cli_runner.invoke(app, ["api", "company-info"])
        assert isinstance(result.exception, ApiCallError)
        assert "Could not find the QuickBooks company." in str(result.exception)

    def test_call_rejects_bad_json(self, cli_runner, configured: Path) -> None:
        result = cli_runner.invoke(app, ["api", "call", "create_customer", "--data", "{"])
        assert result.exception is not None
        assert "not valid JSON" in str(result.exception)

    def test_call_create_customer(self, cli_runner, configured: Path, intuit) -> None:
        import httpx

        _connect(cli_runner)
        intuit.api = lambda request: httpx.Response(200, json={"Customer": {"Id": "58"}})
        result = cli_runner.invoke(
            app,
            ["--json", "api", "call", "create_customer", "--data", '{"DisplayName": "Acme"}'],
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.output) == {"Id": "58"}
        request = intuit.requests_to("/customer")[-1]
        assert request.method == "POST"
        assert intuit.json_body(request) == {"DisplayName": "Acme"}
