"""OAuth 2.0 authorization-code flow against the Intuit identity provider.

:class:`Connect` drives one request cycle of the flow:

1. :meth:`~Connect.initiate` loads the stored credentials and realm id,
   resolves the provider endpoints through
   :class:`~qboconnect.auth.discovery.Discovery`, processes an inbound
   authorization callback, and redirects to the consent page when the
   application is not yet connected.
2. :meth:`~Connect.is_authorization_callback` validates the signed
   ``state`` nonce and exchanges the authorization code for tokens.
3. :meth:`~Connect.refresh_token` exchanges the refresh token when an API
   call reports HTTP 401 (see :meth:`~Connect.call_api`).

Every failure, including an unreadable store, is returned as a
:class:`~qboconnect.models.ConnectError` value and also persisted in the
:class:`~qboconnect.auth.error_store.ErrorStore` for later display when the
store allows it. Redirects are terminal and raise
:class:`~qboconnect.exceptions.RedirectRequired` for the web layer to turn
into an HTTP 302.

Discovery fails open (stale endpoints are used); token requests fail closed.

Example::

    with Connect(JsonFileStore()) as connect:
        try:
            result = connect.initiate(config, request_params=request.query_params)
        except RedirectRequired as redirect:
            return RedirectResponse(redirect.location)
        if isinstance(result, ConnectError):
            ...
"""

from __future__ import annotations

import base64
import enum
import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Optional, TypeVar
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel

from qboconnect.auth.discovery import Discovery
from qboconnect.auth.error_store import ErrorStore
from qboconnect.auth.nonce import NonceSigner, build_state, verify_state
from qboconnect.client.data_service import DataService, api_base_url
from qboconnect.client.facade import FacadeRegistry, create_default_registry, resolve_method_name
from qboconnect.client.refresh import call_with_auto_refresh
from qboconnect.exceptions import RedirectRequired, StoreError, TokenRequestError
from qboconnect.models import ConnectConfig, ConnectError, Credentials, StoredError
from qboconnect.store import KeyValueStore, OptionStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

STORE_KEY = "qbo_connect"

# Error codes
MISSING_CLIENT_DATA = "qbo_connect_api_missing_client_data"
MISSING_TOKEN_DATA = "qbo_connect_api_missing_token_data"
AUTHORIZATION_FAILED = "qbo_connect_api_oauth_request_authorization_failed"
REQUEST_ACCESS_FAILED = "qbo_connect_api_oauth_request_access_failed"
REFRESH_TOKEN_FAILED = "qbo_connect_api_oauth_refresh_token_failed"
API_REQUEST_FAILED = "qbo_connect_api_request_failed"
COMPANY_FAILED = "qbo_connect_api_company_fail"
STORE_FAILED = "qbo_connect_store_failed"

DEFAULT_TIMEOUT = 30.0

CALLBACK_PARAMS = ("state", "code", "realmId")

AUTHORIZATION_ERRORS = {
    "access_denied": "The user did not authorize the request.",
    "invalid_scope": "An invalid scope string was sent in the request.",
}


class ConnectState(str, enum.Enum):
    """Position of the current request in the authorization flow."""

    UNAUTHENTICATED = "unauthenticated"
    AWAITING_CALLBACK = "awaiting_callback"
    AUTHENTICATED = "authenticated"
    REFRESHING = "refreshing"


class ConnectStatus(BaseModel):
    """Read-only snapshot of a connection for display."""

    connected: bool
    state: ConnectState
    realm_id: str
    sandbox: bool
    auth_urls: dict[str, Any]
    has_stored_error: bool


@dataclass(frozen=True)
class _TokenErrors:
    """Error code and message templates for one kind of token request."""

    code: str
    non_200_format: str
    json_read_format: str


_REQUEST_ACCESS_ERRORS = _TokenErrors(
    REQUEST_ACCESS_FAILED,
    "There was a problem completing authorization. "
    "Request response error code: {status}, response body: {body}",
    "There was a problem completing authorization: {error}",
)

_REFRESH_TOKEN_ERRORS = _TokenErrors(
    REFRESH_TOKEN_FAILED,
    "There was a problem refreshing the authentication token. "
    "Request response error code: {status}, response body: {body}",
    "There was a problem refreshing the authentication token: {error}",
)


def parse_json_body(body: str) -> dict[str, Any]:
    """Decode a token endpoint body that must be a JSON object.

    Raises:
        TokenRequestError: If *body* is empty, not JSON, or not an object.
    """
    if not body:
        raise TokenRequestError("empty response body")
    try:
        data = json.loads(body)
    except json.JSONDecodeError as exc:
        raise TokenRequestError(f"json_decode error: {exc.msg}") from exc
    if not isinstance(data, dict):
        raise TokenRequestError("json_decode error: expected a JSON object")
    return data


class Connect:
    """OAuth 2.0 connection to QuickBooks Online for one request cycle.

    Args:
        store: Persisted key-value store shared by the credential slot, the
            error slot and the discovery cache.
        http_client: Client used for discovery and token requests. When
            omitted, one :class:`httpx.Client` is created and owned by this
            instance; :meth:`close` (or leaving a ``with`` block) closes it.
        api_http_client: Client handed to :class:`DataService` instances.
            Defaults to *http_client*.
        discovery: Override the :class:`Discovery` (defaults to one caching
            in *store* for a week).
        error_store: Override the :class:`ErrorStore`.
        registry: Facade registry used by :meth:`call_facade`.
        clock: Current UNIX time; drives nonce ticks and cache expiry.
    """

    def __init__(
        self,
        store: KeyValueStore,
        *,
        http_client: Optional[httpx.Client] = None,
        api_http_client: Optional[httpx.Client] = None,
        discovery: Optional[Discovery] = None,
        error_store: Optional[ErrorStore] = None,
        registry: Optional[FacadeRegistry] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._options = OptionStore(store, STORE_KEY)
        self._error_store = error_store or ErrorStore(store)
        self._owns_client = http_client is None
        self._http_client = http_client or httpx.Client(timeout=DEFAULT_TIMEOUT)
        self._api_http_client = api_http_client or self._http_client
        self._discovery = discovery or Discovery(
            store, http_client=self._http_client, clock=clock
        )
        self._registry = registry
        self._clock = clock

        self._config = ConnectConfig()
        self._request_params: dict[str, str] = {}
        self._request_url = ""
        self._credentials: Optional[Credentials] = None
        self._realm_id = ""
        self._is_authorizing: Optional[bool] = None
        self._callback_error: Optional[ConnectError] = None
        self._refresh_error: Optional[ConnectError] = None
        self._initiated = False
        self._state = ConnectState.UNAUTHENTICATED

    def __enter__(self) -> Connect:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()

    def close(self) -> None:
        """Close the HTTP client if this instance created it.

        Injected clients belong to the caller and are left open.
        """
        if self._owns_client:
            self._http_client.close()

    # ------------------------------------------------------------------ #
    # Read-only accessors
    # ------------------------------------------------------------------ #

    @property
    def config(self) -> ConnectConfig:
        return self._config

    @property
    def state(self) -> ConnectState:
        return self._state

    @property
    def initiated(self) -> bool:
        return self._initiated

    @property
    def auth_urls(self) -> dict[str, Any]:
        """The provider endpoint table currently in effect."""
        return self._discovery.auth_urls

    @property
    def token_credentials(self) -> Optional[Credentials]:
        """The persisted credentials, or ``None`` when not connected."""
        data = self._options.get("token_credentials")
        if not data:
            return None
        try:
            return Credentials.model_validate(data)
        except ValueError:
            return None

    @property
    def realm_id(self) -> str:
        return self._realm_id

    @property
    def callback_uri(self) -> str:
        return self._config.callback_uri or self._request_url

    @property
    def api_base(self) -> str:
        return api_base_url(self._config.sandbox)

    def connected(self) -> bool:
        """Whether credentials are stored.

        Only the presence of credentials is checked -- not the realm id and
        not whether the access token is still accepted.
        """
        return bool(self._options.get("token_credentials"))

    def status(self) -> ConnectStatus:
        return ConnectStatus(
            connected=self.connected(),
            state=self._state,
            realm_id=self._realm_id,
            sandbox=self._config.sandbox,
            auth_urls=self.auth_urls,
            has_stored_error=self._error_store.get() is not None,
        )

    def args(self) -> dict[str, Any]:
        """Debug context recorded with every stored error. Contains secrets."""
        credentials = self._credentials
        return {
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
            "api_url": self.api_base,
            "auth_urls": self.auth_urls,
            "callback_uri": self.callback_uri,
            "access_token": credentials.access_token if credentials else "",
            "refresh_token": credentials.refresh_token if credentials else "",
            "realm_id": self._realm_id,
        }

    def api_url(self, path: str = "") -> str:
        """Join *path* onto the sandbox or production API root."""
        base = self.api_base
        if path.startswith(base):
            path = path[len(base):]
        path = path.lstrip("/")
        return base + path if path else base

    # ------------------------------------------------------------------ #
    # Flow
    # ------------------------------------------------------------------ #

    def initiate(
        self,
        config: ConnectConfig,
        request_params: Optional[Mapping[str, str]] = None,
        request_url: str = "",
    ) -> bool | ConnectError:
        """Start the request cycle.

        Args:
            config: OAuth client configuration.
            request_params: Query parameters of the inbound request; used to
                detect the authorization callback.
            request_url: URL of the inbound request without its query
                string. Used as the redirect URI when ``config.callback_uri``
                is empty.

        Returns:
            ``True`` when initiation completed, or a
            :class:`~qboconnect.models.ConnectError`.

        Raises:
            RedirectRequired: To send the user to the consent page, or back to
                the callback URI after a successful code exchange.
        """
        try:
            return self._initiate(config, request_params, request_url)
        except StoreError as exc:
            return self._store_failure(exc)

    def _initiate(
        self,
        config: ConnectConfig,
        request_params: Optional[Mapping[str, str]],
        request_url: str,
    ) -> bool | ConnectError:
        self.configure(config, request_params, request_url)

        missing = self._check_client_data()
        if missing is not None:
            return missing

        self._discovery.refresh_if_needed()

        self.is_authorization_callback()
        if self._callback_error is not None:
            return self._callback_error

        result = self.maybe_redirect_to_authorization()
        if isinstance(result, ConnectError):
            return result

        self._initiated = True
        logger.debug("Connection initiated (state=%s)", self._state.value)
        return True

    def configure(
        self,
        config: ConnectConfig,
        request_params: Optional[Mapping[str, str]] = None,
        request_url: str = "",
    ) -> Connect:
        """Adopt *config* and the inbound request without any network I/O.

        :meth:`initiate` calls this first; it is also enough on its own for
        read-only inspection and :meth:`reset_connection`.
        """
        self._config = config
        self._request_params = {k: str(v) for k, v in (request_params or {}).items()}
        self._request_url = request_url
        self._is_authorizing = None
        self._callback_error = None
        self._initiated = False
        self._discovery.set_sandbox(config.sandbox)
        self.load_properties()
        return self

    def load_properties(self) -> None:
        """Refresh the cached credentials and realm id from the store."""
        self._credentials = self.token_credentials
        self._realm_id = self._options.get("realmId", "") or ""
        if self._credentials is not None:
            self._state = ConnectState.AUTHENTICATED
        elif self._state != ConnectState.AWAITING_CALLBACK:
            self._state = ConnectState.UNAUTHENTICATED

    def maybe_redirect_to_authorization(self) -> bool | ConnectError:
        """Redirect to the consent page unless connected, mid-callback, or disabled.

        A redirect happens when auto-redirect (or reauthorization) is
        requested, the current request is not the authorization callback,
        and either no credentials are stored or reauthorization was forced.
        """
        config = self._config
        if (
            (config.autoredirect or config.reauthorize)
            and not self.is_authorization_callback()
            and (not self.connected() or config.reauthorize)
        ):
            return self.redirect_to_login()
        return True

    def authorization_url(self, request_url: str = "") -> str | ConnectError:
        """Build the provider's consent URL with a freshly signed ``state``."""
        if request_url:
            self._request_url = request_url

        missing = self._check_client_data()
        if missing is not None:
            return missing

        params = {
            "client_id": self._config.client_id,
            "scope": self._config.scope,
            "redirect_uri": self.callback_uri,
            "response_type": "code",
            "state": build_state(self._signer()),
        }
        self._state = ConnectState.AWAITING_CALLBACK
        return f"{self._discovery.authorization_endpoint}?{urlencode(params)}"

    def redirect_to_login(self) -> ConnectError:
        """Redirect to the consent page.

        Returns:
            A :class:`~qboconnect.models.ConnectError` if the URL cannot be
            built; otherwise never returns.

        Raises:
            RedirectRequired: Always, when the URL was built.
        """
        url = self.authorization_url()
        if isinstance(url, ConnectError):
            return url
        logger.info("Redirecting to the authorization page")
        raise RedirectRequired(url)

    def is_authorization_callback(self) -> bool:
        """Detect and process the provider's authorization callback.

        The request qualifies when it carries ``state``, ``code`` and
        ``realmId`` and the ``state`` nonce verifies. A forged or expired
        nonce makes this return ``False`` rather than fail. On a valid
        callback the realm id is stored; without an ``error`` parameter the
        code is exchanged immediately, otherwise the provider's error is
        recorded and ``False`` is returned. The answer is memoized for the
        request cycle.

        Raises:
            RedirectRequired: After a successful code exchange.
        """
        if self._is_authorizing is not None:
            return self._is_authorizing

        self._is_authorizing = False
        params = self._request_params

        if not all(params.get(name) for name in CALLBACK_PARAMS):
            return False

        if not self._signing_secret() or not verify_state(self._signer(), params["state"]):
            logger.warning("Ignoring authorization callback with an invalid state nonce")
            return False

        self._realm_id = params["realmId"].strip()
        self._options.update("realmId", self._realm_id)

        provider_error = params.get("error")
        if not provider_error:
            self._is_authorizing = True
            self._callback_error = self.exchange_code(params["code"])
            return True

        reason = AUTHORIZATION_ERRORS.get(provider_error, "unknown")
        self._callback_error = self._record(
            ConnectError(
                code=AUTHORIZATION_FAILED,
                message=(
                    "There was a problem completing the authorization request: "
                    f'"{reason}"'
                ),
            )
        )
        return False

    def exchange_code(self, code: str) -> ConnectError:
        """Exchange an authorization code for tokens.

        Returns:
            A :class:`~qboconnect.models.ConnectError` on failure.

        Raises:
            RedirectRequired: Back to the callback URI once the credentials
                are stored.
        """
        result = self._token_request(
            {
                "grant_type": "authorization_code",
                "code": code,
                "redirect_uri": self.callback_uri,
            },
            _REQUEST_ACCESS_ERRORS,
        )
        if isinstance(result, ConnectError):
            return result

        logger.info("Authorization code exchanged, connection established")
        raise RedirectRequired(self.callback_uri)

    def refresh_token(self) -> Credentials | ConnectError:
        """Exchange the stored refresh token for new credentials.

        No request is made when no refresh token is stored.
        """
        try:
            return self._refresh_token()
        except StoreError as exc:
            return self._store_failure(exc)

    def _refresh_token(self) -> Credentials | ConnectError:
        credentials = self.token_credentials
        if credentials is None or not credentials.refresh_token:
            return self._record(
                ConnectError(
                    code=MISSING_TOKEN_DATA,
                    message=(
                        "Missing authorization token credentials required "
                        "for refreshing tokens."
                    ),
                )
            )

        previous = self._state
        self._state = ConnectState.REFRESHING
        result = self._token_request(
            {"grant_type": "refresh_token", "refresh_token": credentials.refresh_token},
            _REFRESH_TOKEN_ERRORS,
        )
        if isinstance(result, ConnectError):
            self._state = previous
        else:
            logger.info("Access token refreshed")
        return result

    def reset_connection(self) -> bool:
        """Delete the stored credentials, discovery cache and stored error.

        Returns:
            ``True`` if stored credentials/realm data existed.
        """
        deleted = self._options.delete()
        self._discovery.delete_cached()
        self._error_store.clear()
        self._credentials = None
        self._realm_id = ""
        self._state = ConnectState.UNAUTHENTICATED
        logger.info("Connection reset")
        return deleted

    # ------------------------------------------------------------------ #
    # Accounting API
    # ------------------------------------------------------------------ #

    def get_data_service(self) -> DataService:
        """A :class:`DataService` bound to the stored token and realm."""
        credentials = self._credentials or self.token_credentials
        return DataService(
            access_token=credentials.access_token if credentials else "",
            realm_id=self._realm_id or self._options.get("realmId", "") or "",
            base_url=self.api_base,
            minor_version=self._config.minor_version,
            http_client=self._api_http_client,
        )

    def call_api(
        self,
        operation: Callable[..., T],
        *args: Any,
        service: Optional[DataService] = None,
    ) -> T | ConnectError:
        """Run ``operation(service, *args)`` with refresh-and-retry on HTTP 401.

        Never raises. A non-401 API error leaves the operation's result
        untouched and is available on ``service.last_error``.
        """
        service = service or self.get_data_service()
        return call_with_auto_refresh(
            service, operation, service, *args, refresh=self._refresh_for_service
        )

    def request_api(
        self,
        operation: Callable[..., Any],
        *args: Any,
        failure_message: str = "The QuickBooks API request failed.",
        failure_code: str = API_REQUEST_FAILED,
    ) -> Any:
        """Like :meth:`call_api`, but turn any remaining API error into a recorded :class:`ConnectError`.

        When a 401 could not be recovered because the token refresh failed,
        the refresh error is returned as recorded, so the stored error keeps
        the token endpoint's reason.
        """
        try:
            return self._request_api(
                operation, *args, failure_message=failure_message, failure_code=failure_code
            )
        except StoreError as exc:
            return self._store_failure(exc)

    def _request_api(
        self,
        operation: Callable[..., Any],
        *args: Any,
        failure_message: str,
        failure_code: str,
    ) -> Any:
        service = self.get_data_service()
        self._refresh_error = None
        result = self.call_api(operation, *args, service=service)
        if isinstance(result, ConnectError):
            return self._record(result)
        if service.last_error is not None and self._refresh_error is not None:
            return self._refresh_error
        if service.last_error is not None:
            error = service.last_error
            return self._record(
                ConnectError(
                    code=failure_code,
                    message=f"{failure_message} ({error.status_code}: {error.message})",
                    data=error.model_dump(),
                )
            )
        return result

    def get_company_info(self) -> Any:
        """Fetch the connected ``CompanyInfo``; useful to test the connection."""
        return self.request_api(
            DataService.get_company_info,
            failure_message="Could not find the QuickBooks company.",
            failure_code=COMPANY_FAILED,
        )

    def call_facade(self, method_name: str, payload: dict[str, Any]) -> Any:
        """Run a ``create_<entity>``/``update_<entity>``/``delete_<entity>`` call.

        Raises:
            InvalidUsageError: If *method_name* is not a known facade method.
        """
        operation, kind = resolve_method_name(method_name)
        if self._registry is None:
            self._registry = create_default_registry()
        handler = self._registry.get_handler(operation, kind)
        return self.request_api(handler, payload)

    # ------------------------------------------------------------------ #
    # Stored error
    # ------------------------------------------------------------------ #

    @property
    def stored_error(self) -> Optional[StoredError]:
        return self._error_store.get()

    @property
    def stored_error_message(self) -> str:
        return self._error_store.message

    @property
    def stored_error_request_args(self) -> str:
        """Sensitive: contains the client secret and tokens."""
        return self._error_store.request_args

    def update_stored_error(self, error: ConnectError | str | None = None) -> Optional[ConnectError]:
        """Record *error* (or clear the slot when ``None``)."""
        return self._error_store.record(error, self.args())

    def delete_stored_error(self) -> bool:
        return self._error_store.clear()

    # ------------------------------------------------------------------ #
    # Internals
    # ------------------------------------------------------------------ #

    def _refresh_for_service(self) -> Credentials | ConnectError:
        result = self.refresh_token()
        if isinstance(result, ConnectError):
            self._refresh_error = result
        return result

    def _record(self, error: ConnectError) -> ConnectError:
        recorded = self._error_store.record(error, self.args())
        return recorded if recorded is not None else error

    def _store_failure(self, exc: StoreError) -> ConnectError:
        error = ConnectError(
            code=STORE_FAILED,
            message=f"Could not access the connection store: {exc}",
            data=type(exc).__name__,
        )
        logger.error(error.message)
        try:
            return self._record(error)
        except StoreError:
            return error

    def _check_client_data(self) -> Optional[ConnectError]:
        if not self._config.client_id:
            message = "Missing client id."
        elif not self._config.client_secret:
            message = "Missing client secret."
        else:
            return None
        return self._record(ConnectError(code=MISSING_CLIENT_DATA, message=message))

    def _signing_secret(self) -> str:
        return self._config.nonce_secret or self._config.client_secret

    def _signer(self) -> NonceSigner:
        return NonceSigner(self._signing_secret(), clock=self._clock)

    def _token_request_headers(self) -> dict[str, str]:
        pair = f"{self._config.client_id}:{self._config.client_secret}".encode("utf-8")
        return {
            "Authorization": "Basic " + base64.b64encode(pair).decode("ascii"),
            "Accept": "application/json",
            "Content-Type": "application/x-www-form-urlencoded",
        }

    def _token_request(
        self, data: dict[str, str], errors: _TokenErrors
    ) -> Credentials | ConnectError:
        url = self._discovery.token_endpoint
        logger.debug("POST %s (grant_type=%s)", url, data["grant_type"])
        try:
            response = self._client().post(url, data=data, headers=self._token_request_headers())
        except httpx.HTTPError as exc:
            return self._record(
                ConnectError(code=errors.code, message=errors.json_read_format.format(error=exc))
            )

        if response.status_code != 200:
            return self._record(
                ConnectError(
                    code=errors.code,
                    message=errors.non_200_format.format(
                        status=response.status_code, body=response.text
                    ),
                )
            )

        try:
            credentials = Credentials.model_validate(parse_json_body(response.text))
        except (TokenRequestError, ValueError) as exc:
            return self._record(
                ConnectError(code=errors.code, message=errors.json_read_format.format(error=exc))
            )

        self._options.update("token_credentials", credentials.model_dump())
        self._credentials = credentials
        self._state = ConnectState.AUTHENTICATED
        self._error_store.clear()
        return credentials

    def _client(self) -> httpx.Client:
        return self._http_client
