"""Typer application and CLI entry point for qbo-connect.

This module wires the top-level Typer application, registers the built-in
sub-command groups (``auth``, ``errors``, ``api``, ``config``) and
configures logging and output from the global flags.

The :func:`main` function is the console-script entry point declared in
``pyproject.toml``. :class:`~qboconnect.exceptions.QboConnectError`
instances exit cleanly with their ``exit_code``; any other exception is
written to a crash log under the data directory.
"""

from __future__ import annotations

import logging
import signal
import sys
import traceback
from datetime import datetime
from typing import Any, Optional

import typer
from rich.console import Console
from rich.logging import RichHandler

from qboconnect import __version__
from qboconnect.exit_codes import EXIT_GENERIC_FAILURE


app = typer.Typer(
    name="qbo-connect",
    help="Connect to QuickBooks Online over OAuth 2.0 and call its accounting API.",
    no_args_is_help=True,
    add_completion=True,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"qbo-connect {__version__}")
        raise typer.Exit()


def configure_logging(verbose: bool = False, no_color: bool = False) -> None:
    """Send ``qboconnect`` log records to stderr through Rich.

    ``--verbose`` shows DEBUG records (HTTP requests, state changes);
    otherwise only warnings and errors are shown.
    """
    logger = logging.getLogger("qboconnect")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
    handler = RichHandler(
        console=Console(stderr=True, no_color=no_color),
        show_path=False,
        show_time=verbose,
        markup=False,
    )
    handler.setFormatter(logging.Formatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.propagate = False


@app.callback()
def main_callback(
    ctx: typer.Context,
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show version and exit.",
    ),
    sandbox: Optional[bool] = typer.Option(
        None,
        "--sandbox/--production",
        help="Override the configured environment.",
    ),
    json_output: bool = typer.Option(False, "--json", help="JSON output format."),
    plain_output: bool = typer.Option(False, "--plain", help="Plain text output."),
    no_color: bool = typer.Option(False, "--no-color", help="Disable color output."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress non-essential output."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
    force: bool = typer.Option(False, "--force", "-f", help="Skip confirmations."),
) -> None:
    """Root callback executed before every sub-command.

    Installs the global :class:`~qboconnect.output.OutputManager`,
    configures logging, and stores shared options in ``ctx.obj``.
    """
    from qboconnect.output import OutputFormat, OutputManager, set_output

    fmt = OutputFormat.AUTO
    if json_output:
        fmt = OutputFormat.JSON
    elif plain_output:
        fmt = OutputFormat.PLAIN

    set_output(OutputManager(format=fmt, no_color=no_color, quiet=quiet, verbose=verbose))
    configure_logging(verbose=verbose, no_color=no_color)

    ctx.ensure_object(dict)
    ctx.obj["sandbox"] = sandbox
    ctx.obj["force"] = force
    ctx.obj["verbose"] = verbose


def _register_commands() -> None:
    from qboconnect.commands.api import api_app
    from qboconnect.commands.auth import auth_app
    from qboconnect.commands.config import config_app
    from qboconnect.commands.errors import errors_app

    app.add_typer(auth_app, name="auth", help="Authorize and manage the QuickBooks connection.")
    app.add_typer(errors_app, name="errors", help="Show or clear the last recorded error.")
    app.add_typer(api_app, name="api", help="Call the QuickBooks accounting API.")
    app.add_typer(config_app, name="config", help="Configuration management.")


_register_commands()


def _setup_signal_handlers() -> None:
    """Install a SIGINT handler so Ctrl-C exits cleanly."""

    def _handler(signum: int, frame: Any) -> None:  # noqa: ANN401
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)

    signal.signal(signal.SIGINT, _handler)


def _write_crash_log(exc: Exception) -> str:
    """Write the current traceback under ``<data_dir>/logs`` and return its path."""
    from qboconnect.config import get_data_dir

    logs_dir = get_data_dir() / "logs"
    logs_dir.mkdir(parents=True, exist_ok=True)
    timestamp = datetime.now().strftime("%Y%m%d-%H%M%S")
    log_path = logs_dir / f"crash-{timestamp}.log"
    log_path.write_text(f"{type(exc).__name__}: {exc}\n\n{traceback.format_exc()}")
    return str(log_path)


def main() -> None:
    """CLI entry point invoked by the ``qbo-connect`` console script.

    Raises:
        SystemExit: Always raised (either by Typer or explicitly).
    """
    _setup_signal_handlers()
    try:
        app()
    except SystemExit:
        raise
    except KeyboardInterrupt:
        sys.stderr.write("\nCancelled.\n")
        sys.exit(130)
    except Exception as exc:
        from qboconnect.exceptions import QboConnectError
        from qboconnect.output import error

        if isinstance(exc, QboConnectError):
            error(str(exc))
            sys.exit(exc.exit_code)

        log_path = _write_crash_log(exc)
        error(f"Unexpected error. Debug log: {log_path}")
        sys.exit(EXIT_GENERIC_FAILURE)
