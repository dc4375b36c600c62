"""OpenID Connect discovery for the Intuit identity provider.

:class:`Discovery` resolves the provider's ``authorization_endpoint`` and
``token_endpoint`` from the sandbox or production well-known document,
caching it for one week through :class:`~qboconnect.cache.ExpiringCache`.
Each environment has its own cache entry (see :func:`discovery_cache_key`).

Discovery fails open: any problem fetching or parsing the document is logged
and the previous endpoint table (the last cached document, or the hardcoded
defaults) stays in effect. A stale endpoint table is preferable to blocking
the authorization flow.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import httpx

from qboconnect.cache import WEEK_IN_SECONDS, ExpiringCache
from qboconnect.models import DiscoveryDocument
from qboconnect.store import KeyValueStore

logger = logging.getLogger(__name__)

SANDBOX_DISCOVERY_URL = "https://developer.api.intuit.com/.well-known/openid_sandbox_configuration"
DISCOVERY_URL = "https://developer.api.intuit.com/.well-known/openid_configuration"

DISCOVERY_CACHE_KEY = "qbo_connect_discovery"

DEFAULT_AUTH_URLS: dict[str, str] = {
    "issuer": "https://oauth.platform.intuit.com/op/v1",
    "authorization_endpoint": "https://appcenter.intuit.com/connect/oauth2",
    "token_endpoint": "https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer",
    "userinfo_endpoint": "https://sandbox-accounts.platform.intuit.com/v1/openid_connect/userinfo",
    "revocation_endpoint": "https://developer.api.intuit.com/v2/oauth2/tokens/revoke",
    "jwks_uri": "https://oauth.platform.intuit.com/op/v1/jwks",
}


def discovery_cache_key(sandbox: bool) -> str:
    """Store key of the cached document for one environment."""
    return f"{DISCOVERY_CACHE_KEY}_{'sandbox' if sandbox else 'production'}"


class Discovery:
    """Resolve and cache the provider's OAuth endpoint table.

    The in-memory table starts as :data:`DEFAULT_AUTH_URLS` so the flow is
    usable before the first network fetch, and goes back to it whenever the
    environment changes.

    Args:
        store: Backing store for the per-environment cache entries.
        sandbox: Select the sandbox well-known URL instead of production.
        http_client: Client used for the ``GET``; a default
            :class:`httpx.Client` is created lazily when omitted.
        ttl: Cache lifetime in seconds.
        clock: Current UNIX time, for cache expiry.
    """

    def __init__(
        self,
        store: KeyValueStore,
        sandbox: bool = True,
        http_client: Optional[httpx.Client] = None,
        ttl: float = WEEK_IN_SECONDS,
        clock: Optional[Callable[[], float]] = None,
    ) -> None:
        self._store = store
        self._sandbox = bool(sandbox)
        self._http_client = http_client
        self._owns_client = False
        self._ttl = ttl
        self._clock = clock
        self._auth_urls: dict[str, Any] = dict(DEFAULT_AUTH_URLS)

    @property
    def sandbox(self) -> bool:
        return self._sandbox

    def set_sandbox(self, sandbox: bool) -> Discovery:
        """Switch between the sandbox and production well-known URLs."""
        sandbox = bool(sandbox)
        if sandbox != self._sandbox:
            self._auth_urls = dict(DEFAULT_AUTH_URLS)
        self._sandbox = sandbox
        return self

    @property
    def cache_key(self) -> str:
        return discovery_cache_key(self._sandbox)

    @property
    def discovery_url(self) -> str:
        return SANDBOX_DISCOVERY_URL if self._sandbox else DISCOVERY_URL

    @property
    def auth_urls(self) -> dict[str, Any]:
        """A copy of the current endpoint table."""
        return dict(self._auth_urls)

    @property
    def authorization_endpoint(self) -> str:
        return self._auth_urls["authorization_endpoint"]

    @property
    def token_endpoint(self) -> str:
        return self._auth_urls["token_endpoint"]

    def refresh_if_needed(self) -> Discovery:
        """Fetch the discovery document when the cached copy is absent or expired.

        Performs at most one ``GET``. Never raises: on failure the previous
        table is kept, preferring a stale cached document over the
        hardcoded defaults.
        """
        cache = self._cache_for(self._sandbox)
        cached, is_expired = cache.get()

        if cached and not is_expired:
            self._adopt(cached)
            return self

        document = self._fetch()
        if document is not None:
            cache.set(document)
            self._auth_urls = document
            logger.info("Discovered OAuth endpoints from %s", self.discovery_url)
        elif cached:
            logger.warning("Using stale cached discovery document")
            self._adopt(cached)

        return self

    def delete_cached(self) -> bool:
        """Drop the cached documents of both environments.

        The in-memory table is left unchanged.

        Returns:
            ``True`` if any cached document was removed.
        """
        deleted = [self._cache_for(sandbox).delete() for sandbox in (True, False)]
        return any(deleted)

    def _cache_for(self, sandbox: bool) -> ExpiringCache:
        kwargs: dict[str, Any] = {"ttl": self._ttl}
        if self._clock is not None:
            kwargs["clock"] = self._clock
        return ExpiringCache(self._store, discovery_cache_key(sandbox), **kwargs)

    def _adopt(self, document: Any) -> None:
        if isinstance(document, dict):
            self._auth_urls = dict(document)

    def _fetch(self) -> Optional[dict[str, Any]]:
        url = self.discovery_url
        logger.debug("Fetching discovery document from %s", url)
        try:
            response = self._client().get(url, headers={"Accept": "application/json"})
        except httpx.HTTPError as exc:
            logger.warning("Discovery request to %s failed: %s", url, exc)
            return None

        if response.status_code != 200:
            logger.warning(
                "Discovery request to %s returned HTTP %d", url, response.status_code
            )
            return None

        try:
            data = response.json()
            DiscoveryDocument.model_validate(data)
        except ValueError as exc:
            logger.warning("Discovery document from %s is invalid: %s", url, exc)
            return None

        return data

    def close(self) -> None:
        """Close the HTTP client if this instance created it."""
        if self._owns_client and self._http_client is not None:
            self._http_client.close()
            self._http_client = None

    def _client(self) -> httpx.Client:
        if self._http_client is None:
            self._http_client = httpx.Client(timeout=30.0)
            self._owns_client = True
        return self._http_client
