"""Config commands -- view and modify persisted settings.

Provides the ``qbo-connect config`` sub-command group for the
:class:`~qboconnect.models.Settings` file in the config directory. The
client secret is never stored here directly; ``client_secret_source``
points at an ``env:`` variable or a ``file:`` instead.
"""

from __future__ import annotations

import typer

from qboconnect.output import error, info, print_result, success


config_app = typer.Typer(no_args_is_help=True)


@config_app.command("show")
def config_show() -> None:
    """Show the settings file and where it lives.

    Example::

        qbo-connect config show --json
    """
    from qboconnect.config import get_config_dir, load_settings

    settings = load_settings()
    info(f"Config directory: {get_config_dir()}")
    print_result(settings.model_dump(mode="json"))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(help="Settings field, e.g. 'client_id' or 'sandbox'."),
    value: str = typer.Argument(help="Value to set."),
) -> None:
    """Set one settings field.

    The value is coerced to the field's type and the result validated
    before it is saved.

    Raises:
        typer.Exit: With code 2 for an unknown field or an invalid value.

    Example::

        qbo-connect config set client_id ABc123
        qbo-connect config set client_secret_source file:~/.qbo/secret
        qbo-connect config set sandbox false
    """
    from qboconnect.config import load_settings, save_settings
    from qboconnect.models import Settings

    data = load_settings().model_dump(mode="json")
    if key not in data:
        known = ", ".join(sorted(data))
        error(f"Unknown config key: {key} (known: {known})")
        raise typer.Exit(code=2)

    current = data[key]
    if isinstance(current, bool):
        coerced: object = value.lower() in ("true", "1", "yes", "on")
    elif value.lower() in ("", "none", "null") and current is None:
        coerced = None
    else:
        coerced = value

    data[key] = coerced
    try:
        settings = Settings.model_validate(data)
    except ValueError as exc:
        error(f"Validation error: {exc}")
        raise typer.Exit(code=2) from None

    save_settings(settings)
    success(f"Set {key} = {getattr(settings, key)}")


@config_app.command("reset")
def config_reset(
    ctx: typer.Context,
) -> None:
    """Reset settings to defaults. Asks for confirmation unless ``--force``."""
    from qboconnect.config import save_settings
    from qboconnect.models import Settings

    force = ctx.obj.get("force", False) if ctx.obj else False
    if not force:
        confirmed = typer.confirm("Reset all settings to defaults?")
        if not confirmed:
            info("Cancelled.")
            raise typer.Exit()

    save_settings(Settings())
    success("Settings reset to defaults.")
