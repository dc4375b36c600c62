"""Exception hierarchy for qboconnect.

All exceptions inherit from :class:`QboConnectError`, which carries an
``exit_code`` attribute mapped to a constant from :mod:`qboconnect.exit_codes`.

The OAuth flow itself never lets these escape to its caller: failures are
turned into :class:`~qboconnect.models.ConnectError` values at the flow
boundary (see :mod:`qboconnect.auth.connect`). The exceptions are used
internally, by the storage layer, and by the CLI entry point in
:func:`qboconnect.app.main`, which exits with the error's code.

Subclass hierarchy::

    QboConnectError (exit 1)
    +-- InvalidUsageError   (exit 2)
    +-- AuthError           (exit 3)
    |   +-- TokenRequestError
    +-- ApiCallError        (exit 4)
    +-- StoreError          (exit 5)
    +-- RedirectRequired    (exit 6)
    +-- ConfigError         (exit 1)
"""

from qboconnect.exit_codes import (
    EXIT_API_FAILURE,
    EXIT_AUTH_FAILURE,
    EXIT_GENERIC_FAILURE,
    EXIT_INVALID_USAGE,
    EXIT_REDIRECT,
    EXIT_STORE_ERROR,
)


class QboConnectError(Exception):
    """Base exception for all qboconnect errors.

    Args:
        message: Human-readable error description printed to stderr.
        exit_code: Optional override for the class-level exit code.
    """

    exit_code: int = EXIT_GENERIC_FAILURE

    def __init__(self, message: str, exit_code: int | None = None):
        super().__init__(message)
        if exit_code is not None:
            self.exit_code = exit_code


class InvalidUsageError(QboConnectError):
    """Raised for invalid CLI arguments or unknown facade method names."""

    exit_code = EXIT_INVALID_USAGE


class AuthError(QboConnectError):
    """Raised when authorization fails or no credentials are available."""

    exit_code = EXIT_AUTH_FAILURE


class TokenRequestError(AuthError):
    """Raised when a token endpoint response cannot be decoded."""


class ApiCallError(QboConnectError):
    """Raised by the CLI when an accounting API call returns an error."""

    exit_code = EXIT_API_FAILURE


class StoreError(QboConnectError):
    """Raised when the persisted key-value store cannot be read or written."""

    exit_code = EXIT_STORE_ERROR


class ConfigError(QboConnectError):
    """Raised for configuration problems (invalid JSON, bad credential sources, empty keys)."""

    exit_code = EXIT_GENERIC_FAILURE


class RedirectRequired(QboConnectError):
    """Signals that the user agent must be sent to another URL.

    Redirecting is a terminal action of the flow: nothing after the redirect
    point runs in the current request. The web layer catches this exception
    and answers with an HTTP 302 to :attr:`location`.

    Args:
        location: Absolute URL the user agent must be redirected to.
    """

    exit_code = EXIT_REDIRECT

    def __init__(self, location: str):
        super().__init__(f"Redirect to {location}")
        self.location = location
