"""Auth commands -- connect to a QuickBooks company and manage tokens.

Provides the ``qbo-connect auth`` sub-command group. A browserless
authorization round trip looks like::

    qbo-connect auth login --open          # consent page in the browser
    qbo-connect auth callback "<url the browser was redirected to>"
    qbo-connect auth status
"""

from __future__ import annotations

import webbrowser
from urllib.parse import parse_qsl, urlsplit, urlunsplit

import typer

from qboconnect.exceptions import AuthError, RedirectRequired
from qboconnect.models import ConnectError
from qboconnect.output import error, info, print_data, print_table, success, suggest

auth_app = typer.Typer(no_args_is_help=True)


@auth_app.command("login")
def auth_login(
    ctx: typer.Context,
    open_browser: bool = typer.Option(
        False, "--open", help="Open the authorization page in the default browser."
    ),
) -> None:
    """Print the Intuit authorization URL.

    The URL carries a signed ``state`` nonce valid for up to a day. After
    consenting, paste the URL the browser lands on into
    ``qbo-connect auth callback``.

    Example::

        qbo-connect auth login
        qbo-connect --production auth login --open
    """
    from qboconnect.commands.session import open_connection

    with open_connection(ctx) as (connect, config):
        if not config.callback_uri:
            error("No callback URI configured.")
            suggest("Set one: qbo-connect config set callback_uri https://example.com/callback")
            raise typer.Exit(code=2)

        url = connect.authorization_url()
        if isinstance(url, ConnectError):
            raise AuthError(url.message)

    print_data(url)
    if open_browser:
        webbrowser.open(url)
        info("Opened the authorization page in your browser.")
    suggest('After authorizing, run: qbo-connect auth callback "<redirected URL>"')


@auth_app.command("callback")
def auth_callback(
    ctx: typer.Context,
    url: str = typer.Argument(help="The full URL Intuit redirected the browser to."),
) -> None:
    """Complete authorization from a callback URL.

    Verifies the ``state`` nonce, stores the realm id and exchanges the
    authorization code for tokens.

    Raises:
        typer.Exit: With code 3 if the callback is invalid or the exchange
            fails.
    """
    from qboconnect.commands.session import open_connection

    parts = urlsplit(url)
    params = dict(parse_qsl(parts.query))
    request_url = urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))

    try:
        with open_connection(ctx, request_params=params, request_url=request_url) as (connect, _):
            is_callback = connect.is_authorization_callback()
    except RedirectRequired:
        success("Connected to QuickBooks.")
        suggest("Check it: qbo-connect api company-info")
        return

    if is_callback:
        error("Authorization did not complete.")
    else:
        error("Not a valid authorization callback (missing parameters or expired state).")
    raise typer.Exit(code=3)


@auth_app.command("status")
def auth_status(ctx: typer.Context) -> None:
    """Show the connection state and the OAuth endpoints in use."""
    from qboconnect.commands.session import open_connection

    with open_connection(ctx, initiate=False) as (connect, _):
        status = connect.status()

    rows = [
        ["connected", "yes" if status.connected else "no"],
        ["state", status.state.value],
        ["realm_id", status.realm_id or "-"],
        ["environment", "sandbox" if status.sandbox else "production"],
        ["authorization_endpoint", str(status.auth_urls.get("authorization_endpoint", ""))],
        ["token_endpoint", str(status.auth_urls.get("token_endpoint", ""))],
        ["stored_error", "yes" if status.has_stored_error else "no"],
    ]
    print_table(["Field", "Value"], rows, title="QuickBooks connection")
    if not status.connected:
        suggest("Connect: qbo-connect auth login")


@auth_app.command("refresh")
def auth_refresh(ctx: typer.Context) -> None:
    """Exchange the stored refresh token for a new token pair."""
    from qboconnect.commands.session import open_connection

    with open_connection(ctx) as (connect, _):
        result = connect.refresh_token()

    if isinstance(result, ConnectError):
        raise AuthError(result.message)
    success("Access token refreshed.")


@auth_app.command("reset")
def auth_reset(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation."),
) -> None:
    """Forget the stored connection, discovery cache and stored error."""
    from qboconnect.commands.session import open_connection

    if not yes:
        typer.confirm("Disconnect from QuickBooks?", abort=True)

    with open_connection(ctx, initiate=False) as (connect, _):
        deleted = connect.reset_connection()

    if deleted:
        success("Connection reset.")
    else:
        info("No stored connection.")
