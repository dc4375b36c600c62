"""Shared setup for commands that talk to the identity provider or the API.

Every command builds its :class:`~qboconnect.auth.Connect` through
:func:`open_connection` so that configuration precedence, the store
backend, and the HTTP client are resolved in one place.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Iterator, Optional

import httpx
import typer

from qboconnect.auth import Connect
from qboconnect.config import resolve_config
from qboconnect.exceptions import AuthError
from qboconnect.models import ConnectConfig, ConnectError, Settings
from qboconnect.store import create_store


def make_http_client(settings: Settings) -> httpx.Client:
    """Create the HTTP client shared by discovery, token and API requests."""
    return httpx.Client(timeout=settings.timeout)


def _overrides(ctx: Optional[typer.Context]) -> dict[str, Any]:
    obj = (ctx.obj if ctx is not None else None) or {}
    return {"sandbox": obj.get("sandbox")}


@contextmanager
def open_connection(
    ctx: Optional[typer.Context] = None,
    request_params: Optional[dict[str, str]] = None,
    request_url: str = "",
    initiate: bool = True,
) -> Iterator[tuple[Connect, ConnectConfig]]:
    """Resolve settings and initiate a :class:`Connect` without auto-redirect.

    With ``initiate=False`` the connection is only configured: no client
    credentials are required and no request is made.

    Yields:
        The initiated connection and the configuration it was built from.

    Raises:
        AuthError: If initiation returned a :class:`ConnectError`.
        RedirectRequired: After a successful callback code exchange.
    """
    settings = resolve_config(**_overrides(ctx))
    config = settings.to_connect_config(autoredirect=False)
    store = create_store(settings.store_backend)
    client = make_http_client(settings)
    try:
        connect = Connect(store, http_client=client, api_http_client=client)
        if initiate:
            result = connect.initiate(
                config, request_params=request_params, request_url=request_url
            )
            if isinstance(result, ConnectError):
                raise AuthError(result.message)
        else:
            connect.configure(config, request_params=request_params, request_url=request_url)
        yield connect, config
    finally:
        client.close()
        store.close()


def open_store(ctx: Optional[typer.Context] = None) -> Any:
    """Open the configured store without initiating a connection."""
    settings = resolve_config(**_overrides(ctx))
    return create_store(settings.store_backend)
