"""qboconnect -- OAuth 2.0 connection to QuickBooks Online.

Implements the Intuit authorization-code flow with refresh: OpenID
discovery with a week-long cache, a signed time-ticked ``state`` nonce,
code exchange, a transparent refresh-and-retry on HTTP 401, and a small
create/update/delete facade over the accounting API. Failures are returned
as values and the last one is kept in a persisted error slot.

Typical workflow::

    qbo-connect config set client_id ABc123
    qbo-connect config set callback_uri https://example.com/callback
    qbo-connect auth login --open
    qbo-connect auth callback "<redirected URL>"
    qbo-connect api company-info

Modules:
    app: Typer application and CLI entry point.
    auth: The OAuth flow, discovery, nonce signing and error store.
    client: Accounting API client, auto refresh and facade.
    store: Key-value store backends.
    cache: Expiring single-entry cache.
    models: Pydantic models shared across the package.
    config: XDG-aware settings resolution.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting with Rich.
"""

__version__ = "0.1.0"
