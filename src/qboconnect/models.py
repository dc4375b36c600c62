"""Canonical Pydantic models shared across all qboconnect modules.

This is the single source of truth for data shapes in the project. The models
fall into three groups:

**Configuration models** -- :class:`ConnectConfig` (the per-request OAuth
configuration) and :class:`Settings` (its persisted form, plus storage and
HTTP options), serialised as JSON in the user's config directory.

**Persisted state** -- :class:`Credentials`, :class:`DiscoveryDocument` and
:class:`StoredError`, written to the key-value store by the auth layer.

**Result values** -- :class:`ConnectError` (returned, never raised, by the
OAuth flow) and :class:`ApiError` (the last HTTP failure recorded by
:class:`~qboconnect.client.data_service.DataService`).
"""

from __future__ import annotations

import enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_SCOPE = "com.intuit.quickbooks.accounting"


# --- Configuration ---


class ConnectConfig(BaseModel):
    """OAuth client configuration for one request cycle.

    Immutable once built; a new request builds a new instance.

    Example::

        ConnectConfig(
            client_id="ABc123",
            client_secret="s3cret",
            callback_uri="https://example.com/qbo/callback",
            sandbox=True,
        )
    """

    model_config = ConfigDict(frozen=True)

    client_id: str = Field(default="", description="OAuth client id issued by Intuit")
    client_secret: str = Field(default="", description="OAuth client secret issued by Intuit")
    callback_uri: str = Field(
        default="", description="Redirect URI registered with the Intuit app"
    )
    sandbox: bool = Field(default=True, description="Use the sandbox API and discovery URLs")
    autoredirect: bool = Field(
        default=True,
        description="Redirect to the authorization page when not yet connected",
    )
    reauthorize: bool = Field(
        default=False,
        description="Force a new authorization even when credentials are stored",
    )
    scope: str = Field(default=DEFAULT_SCOPE, description="Space separated OAuth scopes")
    nonce_secret: Optional[str] = Field(
        default=None,
        description="Key used to sign the state nonce (defaults to client_secret)",
    )
    minor_version: Optional[int] = Field(
        default=None, description="QBO API minorversion query parameter"
    )


class StoreBackend(str, enum.Enum):
    """Key-value store implementations selectable from :class:`Settings`."""

    MEMORY = "memory"
    FILE = "file"
    DISKCACHE = "diskcache"


class Settings(BaseModel):
    """Persisted configuration at ``~/.config/qbo-connect/config.json``.

    Loaded and saved by :func:`~qboconnect.config.load_settings` and
    :func:`~qboconnect.config.save_settings`. Secrets may be given as
    credential sources (``env:VAR``, ``file:/path``) and are resolved by
    :meth:`to_connect_config`.
    """

    client_id: str = ""
    client_secret_source: str = Field(
        default="env:QBO_CONNECT_CLIENT_SECRET",
        description="Credential source for the client secret: env:VAR, file:/path, or a literal",
    )
    callback_uri: str = ""
    sandbox: bool = True
    autoredirect: bool = True
    scope: str = DEFAULT_SCOPE
    minor_version: Optional[int] = None
    store_backend: StoreBackend = StoreBackend.FILE
    timeout: float = Field(default=30.0, description="HTTP timeout in seconds")

    def to_connect_config(self, **overrides: Any) -> ConnectConfig:
        """Build a :class:`ConnectConfig`, resolving the client secret source."""
        from qboconnect.config import resolve_credential

        data: dict[str, Any] = {
            "client_id": self.client_id,
            "client_secret": resolve_credential(self.client_secret_source),
            "callback_uri": self.callback_uri,
            "sandbox": self.sandbox,
            "autoredirect": self.autoredirect,
            "scope": self.scope,
            "minor_version": self.minor_version,
        }
        data.update(overrides)
        return ConnectConfig(**data)


# --- Persisted state ---


class Credentials(BaseModel):
    """OAuth token pair returned by the Intuit token endpoint.

    Unknown provider fields (``expires_in``, ``x_refresh_token_expires_in``,
    ``token_type``, ...) are kept in ``model_extra`` so the stored blob is
    exactly what the provider returned.
    """

    model_config = ConfigDict(extra="allow")

    access_token: str
    refresh_token: str


class DiscoveryDocument(BaseModel):
    """OpenID provider metadata published at the Intuit well-known URL."""

    model_config = ConfigDict(extra="allow")

    issuer: str = ""
    authorization_endpoint: str
    token_endpoint: str
    userinfo_endpoint: str = ""
    revocation_endpoint: str = ""
    jwks_uri: str = ""


class StoredError(BaseModel):
    """The last recorded failure, kept for display to an administrator.

    ``request_args`` contains client secrets and tokens and must only be
    shown behind an explicit opt-in.
    """

    message: str
    request_args: str = ""


# --- Accounting entities ---


class EntityKind(str, enum.Enum):
    """QuickBooks Online entities reachable through the API facade.

    The value is the entity name as it appears in QBO JSON payloads; the
    REST resource path is its lowercase form.
    """

    ACCOUNT = "Account"
    BILL = "Bill"
    CLASS = "Class"
    CREDIT_MEMO = "CreditMemo"
    CUSTOMER = "Customer"
    DEPARTMENT = "Department"
    EMPLOYEE = "Employee"
    ESTIMATE = "Estimate"
    INVOICE = "Invoice"
    ITEM = "Item"
    JOURNAL_ENTRY = "JournalEntry"
    PAYMENT = "Payment"
    PURCHASE_ORDER = "PurchaseOrder"
    SALES_RECEIPT = "SalesReceipt"
    VENDOR = "Vendor"

    @property
    def resource(self) -> str:
        """REST path segment, e.g. ``"salesreceipt"``."""
        return self.value.lower()


# --- Result values ---


class ConnectError(BaseModel):
    """Error value returned by the OAuth flow instead of raising.

    Attributes:
        code: Stable machine-readable identifier, e.g.
            ``"qbo_connect_api_oauth_request_access_failed"``.
        message: Human-readable description.
        data: Optional debugging context (request arguments, API error, ...).
    """

    code: str
    message: str
    data: Any = None

    def __str__(self) -> str:
        return self.message


class ApiError(BaseModel):
    """An HTTP failure reported by the accounting API."""

    status_code: int
    message: str = ""
    response_body: str = ""
