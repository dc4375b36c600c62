"""Tests for OpenID discovery with the week-long cache."""

from __future__ import annotations

import httpx
import pytest

from qboconnect.auth.discovery import (
    DEFAULT_AUTH_URLS,
    DISCOVERY_URL,
    SANDBOX_DISCOVERY_URL,
    Discovery,
    discovery_cache_key,
)
from qboconnect.cache import WEEK_IN_SECONDS

SANDBOX_KEY = discovery_cache_key(True)
PRODUCTION_KEY = discovery_cache_key(False)

FETCHED = {
    "issuer": "https://issuer.example",
    "authorization_endpoint": "https://auth.example/authorize",
    "token_endpoint": "https://auth.example/token",
}


@pytest.fixture()
def calls() -> list[httpx.Request]:
    return []


def _discovery(store, clock, calls, response=None, sandbox=True) -> Discovery:
    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        if response is None:
            return httpx.Response(200, json=FETCHED)
        if isinstance(response, Exception):
            raise response
        return response

    client = httpx.Client(transport=httpx.MockTransport(handler))
    return Discovery(store, sandbox=sandbox, http_client=client, clock=clock)


class TestEndpointTable:
    def test_defaults_before_fetch(self, store, clock, calls) -> None:
        discovery = _discovery(store, clock, calls)
        assert discovery.auth_urls == DEFAULT_AUTH_URLS
        assert discovery.token_endpoint == DEFAULT_AUTH_URLS["token_endpoint"]
        assert calls == []

    def test_auth_urls_is_a_copy(self, store, clock, calls) -> None:
        discovery = _discovery(store, clock, calls)
        discovery.auth_urls["token_endpoint"] = "mutated"
        assert discovery.token_endpoint == DEFAULT_AUTH_URLS["token_endpoint"]

    def test_discovery_url_follows_environment(self, store, clock, calls) -> None:
        discovery = _discovery(store, clock, calls)
        assert discovery.discovery_url == SANDBOX_DISCOVERY_URL
        assert discovery.set_sandbox(False).discovery_url == DISCOVERY_URL


class TestRefreshIfNeeded:
    def test_fetches_and_caches_when_empty(self, store, clock, calls) -> None:
        discovery = _discovery(store, clock, calls).refresh_if_needed()
        assert len(calls) == 1
        assert str(calls[0].url) == SANDBOX_DISCOVERY_URL
        assert calls[0].headers["accept"] == "application/json"
        assert discovery.authorization_endpoint == FETCHED["authorization_endpoint"]
        assert store.get(SANDBOX_KEY) == FETCHED
        assert store.get(SANDBOX_KEY + "_exp") == clock.now + WEEK_IN_SECONDS

    def test_fresh_cache_makes_no_request(self, store, clock, calls) -> None:
        _discovery(store, clock, calls).refresh_if_needed()
        clock.advance(WEEK_IN_SECONDS - 1)
        discovery = _discovery(store, clock, calls).refresh_if_needed()
        assert len(calls) == 1
        assert discovery.token_endpoint == FETCHED["token_endpoint"]

    def test_expired_cache_refetches_once(self, store, clock, calls) -> None:
        _discovery(store, clock, calls).refresh_if_needed()
        clock.advance(WEEK_IN_SECONDS + 1)
        _discovery(store, clock, calls).refresh_if_needed()
        assert len(calls) == 2

    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500, text="oops"),
            httpx.Response(200, text="not json"),
            httpx.Response(200, json={"issuer": "missing endpoints"}),
            httpx.ConnectError("down"),
        ],
    )
    def test_failure_keeps_defaults(self, store, clock, calls, response) -> None:
        discovery = _discovery(store, clock, calls, response=response).refresh_if_needed()
        assert discovery.auth_urls == DEFAULT_AUTH_URLS
        assert SANDBOX_KEY not in store

    def test_failure_uses_stale_cache(self, store, clock, calls) -> None:
        _discovery(store, clock, calls).refresh_if_needed()
        clock.advance(WEEK_IN_SECONDS + 1)
        discovery = _discovery(
            store, clock, calls, response=httpx.Response(503)
        ).refresh_if_needed()
        assert discovery.token_endpoint == FETCHED["token_endpoint"]
        assert len(calls) == 2

    def test_delete_cached(self, store, clock, calls) -> None:
        discovery = _discovery(store, clock, calls).refresh_if_needed()
        assert discovery.delete_cached() is True
        assert SANDBOX_KEY not in store
        assert discovery.delete_cached() is False


class TestEnvironments:
    PRODUCTION_DOC = {
        "issuer": "https://issuer.example",
        "authorization_endpoint": "https://auth.example/prod/authorize",
        "token_endpoint": "https://auth.example/prod/token",
    }

    def test_cache_is_kept_per_environment(self, store, clock, calls) -> None:
        _discovery(store, clock, calls).refresh_if_needed()
        production = _discovery(
            store, clock, calls, response=httpx.Response(200, json=self.PRODUCTION_DOC),
            sandbox=False,
        ).refresh_if_needed()

        assert len(calls) == 2
        assert str(calls[1].url) == DISCOVERY_URL
        assert production.token_endpoint == self.PRODUCTION_DOC["token_endpoint"]
        assert store.get(SANDBOX_KEY) == FETCHED
        assert store.get(PRODUCTION_KEY) == self.PRODUCTION_DOC

    def test_sandbox_cache_not_used_for_production(self, store, clock, calls) -> None:
        _discovery(store, clock, calls).refresh_if_needed()
        discovery = _discovery(store, clock, calls, response=httpx.Response(503))
        discovery.refresh_if_needed()
        assert discovery.token_endpoint == FETCHED["token_endpoint"]

        discovery.set_sandbox(False).refresh_if_needed()

        assert discovery.auth_urls == DEFAULT_AUTH_URLS
        assert PRODUCTION_KEY not in store

    def test_delete_cached_drops_both_environments(self, store, clock, calls) -> None:
        _discovery(store, clock, calls).refresh_if_needed()
        _discovery(store, clock, calls, sandbox=False).refresh_if_needed()

        assert _discovery(store, clock, calls).delete_cached() is True
        assert SANDBOX_KEY not in store
        assert PRODUCTION_KEY not in store


def test_close_only_closes_own_client(store, clock) -> None:
    injected = httpx.Client()
    Discovery(store, http_client=injected, clock=clock).close()
    assert not injected.is_closed
    injected.close()
