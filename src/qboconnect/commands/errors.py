"""Errors commands -- inspect or clear the last recorded failure."""

from __future__ import annotations

import typer

from qboconnect.output import info, print_data, print_result, success, warning

errors_app = typer.Typer(no_args_is_help=True)


@errors_app.command("show")
def errors_show(
    ctx: typer.Context,
    show_request_args: bool = typer.Option(
        False,
        "--show-request-args",
        help="Also print the request context. Contains the client secret and tokens.",
    ),
) -> None:
    """Show the last stored OAuth or API error."""
    from qboconnect.auth import ErrorStore
    from qboconnect.commands.session import open_store

    store = open_store(ctx)
    try:
        stored = ErrorStore(store).get()
    finally:
        store.close()

    if stored is None:
        info("No stored error.")
        return

    if show_request_args:
        warning("Request arguments include secrets; do not share this output.")
        print_result(stored.model_dump())
    else:
        print_data(stored.message)


@errors_app.command("clear")
def errors_clear(ctx: typer.Context) -> None:
    """Delete the stored error."""
    from qboconnect.auth import ErrorStore
    from qboconnect.commands.session import open_store

    store = open_store(ctx)
    try:
        cleared = ErrorStore(store).clear()
    finally:
        store.close()

    success("Stored error cleared." if cleared else "No stored error.")
