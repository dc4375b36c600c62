"""API commands -- call the QuickBooks Online accounting API.

Calls go through :meth:`~qboconnect.auth.Connect.request_api`, so an
expired access token is refreshed and the call retried once.
"""

from __future__ import annotations

import json
from typing import Any

import typer

from qboconnect.auth import Connect
from qboconnect.exceptions import ApiCallError, AuthError, InvalidUsageError
from qboconnect.models import ConnectError
from qboconnect.output import print_result

api_app = typer.Typer(no_args_is_help=True)


def _require_connection(connect: Connect) -> None:
    if not connect.connected():
        raise AuthError("Not connected. Run: qbo-connect auth login")


def _emit(result: Any) -> None:
    if isinstance(result, ConnectError):
        raise ApiCallError(result.message)
    print_result(result)


@api_app.command("company-info")
def api_company_info(ctx: typer.Context) -> None:
    """Fetch the connected company's CompanyInfo."""
    from qboconnect.commands.session import open_connection

    with open_connection(ctx) as (connect, _):
        _require_connection(connect)
        result = connect.get_company_info()
    _emit(result)


@api_app.command("call")
def api_call(
    ctx: typer.Context,
    method_name: str = typer.Argument(
        help="create_<entity>, update_<entity> or delete_<entity>, e.g. create_customer."
    ),
    data: str = typer.Option(..., "--data", "-d", help="Entity payload as a JSON object."),
) -> None:
    """Create, update or delete an accounting entity.

    Example::

        qbo-connect api call create_customer --data '{"DisplayName": "Acme"}'
        qbo-connect api call delete_invoice --data '{"Id": "42", "SyncToken": "0"}'
    """
    from qboconnect.commands.session import open_connection

    try:
        payload = json.loads(data)
    except json.JSONDecodeError as exc:
        raise InvalidUsageError(f"--data is not valid JSON: {exc.msg}") from exc
    if not isinstance(payload, dict):
        raise InvalidUsageError("--data must be a JSON object")

    with open_connection(ctx) as (connect, _):
        _require_connection(connect)
        result = connect.call_facade(method_name, payload)
    _emit(result)
