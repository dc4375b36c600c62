"""Numeric process exit codes for the ``qbo-connect`` command line.

Each constant maps to a specific error category and is referenced by the
corresponding :class:`~qboconnect.exceptions.QboConnectError` subclass.
Shell wrappers can inspect the exit code to tell a rejected credential from
a network failure without parsing stderr.

Example::

    $ qbo-connect api company-info
    $ echo $?
    3   # EXIT_AUTH_FAILURE -- not connected, or the token exchange failed
"""

EXIT_SUCCESS = 0
"""The command completed successfully."""

EXIT_GENERIC_FAILURE = 1
"""An unclassified error occurred."""

EXIT_INVALID_USAGE = 2
"""The command was invoked with invalid arguments or missing required parameters."""

EXIT_AUTH_FAILURE = 3
"""Authorization, token exchange, or token refresh failed."""

EXIT_API_FAILURE = 4
"""The accounting API rejected a call (non-401 HTTP error)."""

EXIT_STORE_ERROR = 5
"""The persisted key-value store could not be read or written."""

EXIT_REDIRECT = 6
"""The flow requires the user agent to be redirected (printed instead)."""
