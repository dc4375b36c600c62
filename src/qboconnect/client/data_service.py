"""Minimal synchronous client for the QuickBooks Online v3 REST API.

:class:`DataService` mirrors the behaviour of the vendor SDK the OAuth layer
was built around: calls return the decoded entity (or ``None``) and any HTTP
failure is *recorded* on :attr:`DataService.last_error` instead of raised.
That recorded status code is what
:func:`~qboconnect.client.refresh.call_with_auto_refresh` inspects to detect
an expired access token (HTTP 401).

Network-level failures (timeouts, DNS, refused connections) are not HTTP
errors and propagate as :class:`httpx.HTTPError`.

See Also:
    :mod:`qboconnect.client.facade` -- create/update/delete registry.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from qboconnect.models import ApiError, Credentials, EntityKind

logger = logging.getLogger(__name__)

SANDBOX_API_URL = "https://sandbox-quickbooks.api.intuit.com/"
PRODUCTION_API_URL = "https://quickbooks.api.intuit.com/"


def api_base_url(sandbox: bool) -> str:
    return SANDBOX_API_URL if sandbox else PRODUCTION_API_URL


class DataService:
    """Blocking QBO API client bound to one realm and access token.

    Args:
        access_token: OAuth bearer token.
        realm_id: Company (realm) identifier returned on the callback.
        base_url: API root, see :func:`api_base_url`.
        minor_version: Optional ``minorversion`` query parameter.
        http_client: Client to send requests with; a default
            :class:`httpx.Client` is created lazily when omitted.
        timeout: Timeout for the default client, in seconds.

    Example::

        service = DataService(token, realm_id, api_base_url(sandbox=True))
        company = service.get_company_info()
        if service.last_error is not None:
            print(service.last_error.status_code)
    """

    def __init__(
        self,
        access_token: str,
        realm_id: str,
        base_url: str = SANDBOX_API_URL,
        minor_version: Optional[int] = None,
        http_client: Optional[httpx.Client] = None,
        timeout: float = 30.0,
    ) -> None:
        self._access_token = access_token
        self._realm_id = realm_id
        self._base_url = base_url.rstrip("/") + "/"
        self._minor_version = minor_version
        self._http_client = http_client
        self._timeout = timeout
        self.last_error: Optional[ApiError] = None

    @property
    def realm_id(self) -> str:
        return self._realm_id

    @property
    def access_token(self) -> str:
        return self._access_token

    def update_credentials(self, credentials: Credentials) -> None:
        """Use a freshly refreshed access token for subsequent calls."""
        self._access_token = credentials.access_token

    # ------------------------------------------------------------------ #
    # Entity operations
    # ------------------------------------------------------------------ #

    def get_company_info(self) -> Optional[dict[str, Any]]:
        """Return the ``CompanyInfo`` entity of the connected realm."""
        return self.request("GET", f"companyinfo/{self._realm_id}", entity="CompanyInfo")

    def find_by_id(self, kind: EntityKind, entity_id: str) -> Optional[dict[str, Any]]:
        return self.request("GET", f"{kind.resource}/{entity_id}", entity=kind.value)

    def query(self, statement: str) -> Optional[dict[str, Any]]:
        """Run a QBO SQL-like query, returning the ``QueryResponse`` object."""
        return self.request("GET", "query", params={"query": statement}, entity="QueryResponse")

    def add(self, kind: EntityKind, body: dict[str, Any]) -> Optional[dict[str, Any]]:
        return self.request("POST", kind.resource, json_body=body, entity=kind.value)

    def update(self, kind: EntityKind, body: dict[str, Any]) -> Optional[dict[str, Any]]:
        """Sparse-update an entity. *body* must carry ``Id`` and ``SyncToken``."""
        payload = {"sparse": True, **body}
        return self.request("POST", kind.resource, json_body=payload, entity=kind.value)

    def delete(self, kind: EntityKind, body: dict[str, Any]) -> Optional[dict[str, Any]]:
        """Delete an entity. *body* must carry ``Id`` and ``SyncToken``."""
        return self.request(
            "POST",
            kind.resource,
            params={"operation": "delete"},
            json_body=body,
            entity=kind.value,
        )

    # ------------------------------------------------------------------ #
    # Transport
    # ------------------------------------------------------------------ #

    def request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        json_body: Optional[Any] = None,
        entity: Optional[str] = None,
    ) -> Optional[dict[str, Any]]:
        """Send a request below ``v3/company/<realm>/``.

        Resets :attr:`last_error` before sending. A non-2xx response is
        recorded as an :class:`~qboconnect.models.ApiError` and ``None`` is
        returned.

        Args:
            method: HTTP method.
            path: Resource path relative to the company URL.
            params: Extra query parameters.
            json_body: JSON request body.
            entity: Key to unwrap from the response object (QBO wraps each
                entity as ``{"Customer": {...}, "time": ...}``).

        Raises:
            httpx.HTTPError: On network-level failures.
        """
        self.last_error = None

        merged_params: dict[str, Any] = dict(params or {})
        if self._minor_version is not None:
            merged_params["minorversion"] = self._minor_version

        url = f"{self._base_url}v3/company/{self._realm_id}/{path}"
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Accept": "application/json",
        }

        logger.debug("%s %s", method.upper(), url)
        response = self._client().request(
            method.upper(),
            url,
            params=merged_params or None,
            json=json_body,
            headers=headers,
        )

        if not response.is_success:
            self.last_error = ApiError(
                status_code=response.status_code,
                message=_fault_message(response),
                response_body=response.text,
            )
            logger.debug("QBO API returned HTTP %d for %s", response.status_code, url)
            return None

        data = response.json()
        if entity and isinstance(data, dict) and entity in data:
            return data[entity]
        return data

    def close(self) -> None:
        if self._http_client is not None:
            self._http_client.close()
            self._http_client = None

    def _client(self) -> httpx.Client:
        if self._http_client is None:
            self._http_client = httpx.Client(timeout=self._timeout)
        return self._http_client


def _fault_message(response: httpx.Response) -> str:
    """Extract the first QBO ``Fault.Error`` message, falling back to the reason phrase."""
    try:
        errors = response.json()["Fault"]["Error"]
        first = errors[0]
        detail = first.get("Detail")
        return f"{first['Message']}: {detail}" if detail else first["Message"]
    except (ValueError, KeyError, IndexError, TypeError):
        return response.reason_phrase or f"HTTP {response.status_code}"
