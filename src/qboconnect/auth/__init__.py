"""OAuth 2.0 connection to QuickBooks Online.

This package implements the authorization-code flow with refresh against
the Intuit identity provider.

The main entry points are:

- :class:`Connect` -- drives one request cycle of the flow (initiate,
  callback processing, code exchange, token refresh, reset).
- :class:`Discovery` -- OpenID discovery with a one-week cache and a
  built-in fallback endpoint table.
- :class:`NonceSigner` -- time-ticked signed nonces carried in ``state``.
- :class:`ErrorStore` -- the last failure, persisted for display.

Typical usage::

    from qboconnect.auth import Connect
    from qboconnect.store import JsonFileStore

    connect = Connect(JsonFileStore())
    result = connect.initiate(config, request_params=params)
"""

from qboconnect.auth.connect import Connect, ConnectState, ConnectStatus, parse_json_body
from qboconnect.auth.discovery import Discovery
from qboconnect.auth.error_store import ErrorStore
from qboconnect.auth.nonce import NonceSigner, build_state, verify_state

__all__ = [
    "Connect",
    "ConnectState",
    "ConnectStatus",
    "Discovery",
    "ErrorStore",
    "NonceSigner",
    "build_state",
    "parse_json_body",
    "verify_state",
]
