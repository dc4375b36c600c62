"""Built-in CLI sub-commands for qbo-connect.

* :mod:`~qboconnect.commands.auth` -- authorize, refresh, inspect and reset
  the QuickBooks connection.
* :mod:`~qboconnect.commands.errors` -- show or clear the stored error.
* :mod:`~qboconnect.commands.api` -- accounting API calls.
* :mod:`~qboconnect.commands.config` -- view and modify settings.

:mod:`~qboconnect.commands.session` holds the shared connection setup.
"""
