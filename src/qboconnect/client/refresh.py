"""Transparent access-token refresh around accounting API calls.

QBO access tokens live for an hour. Rather than tracking expiry locally, the
wrapper lets a call fail, looks at the HTTP status the
:class:`~qboconnect.client.data_service.DataService` recorded, and on a
401 exchanges the refresh token and retries the call exactly once.

The refresh itself is injected as a callable so the wrapper stays
independent of where credentials are stored.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, TypeVar, Union

from qboconnect.client.data_service import DataService
from qboconnect.models import ConnectError, Credentials

logger = logging.getLogger(__name__)

API_CALL_FAILED = "qbo_connect_api_call_failed"
UNAUTHORIZED = 401

T = TypeVar("T")

RefreshCallable = Callable[[], Union[Credentials, ConnectError]]


def call_with_auto_refresh(
    service: DataService,
    operation: Callable[..., T],
    *args: Any,
    refresh: RefreshCallable,
    **kwargs: Any,
) -> T | ConnectError:
    """Invoke *operation*, refreshing credentials and retrying once on HTTP 401.

    1. Call ``operation(*args, **kwargs)``.
    2. If ``service.last_error`` has status 401, call *refresh*.
    3. Only if *refresh* returned :class:`~qboconnect.models.Credentials`,
       install them on *service* and call *operation* once more with the same
       arguments. Its result is returned whatever it is.

    Any other outcome returns the first call's result as-is, with the API
    error still available on ``service.last_error``.

    Never raises: an exception anywhere in the sequence becomes a
    :class:`~qboconnect.models.ConnectError` carrying the original message.

    Args:
        service: The client whose ``last_error`` is inspected.
        operation: Bound method or function performing the API call.
        refresh: Performs the refresh-token exchange.
    """
    try:
        result = operation(*args, **kwargs)

        error = service.last_error
        if error is None or error.status_code != UNAUTHORIZED:
            return result

        logger.info("Access token rejected (HTTP 401), refreshing")
        refreshed = refresh()
        if not isinstance(refreshed, Credentials):
            logger.warning("Token refresh failed, returning the original result")
            return result

        service.update_credentials(refreshed)
        return operation(*args, **kwargs)
    except Exception as exc:  # noqa: BLE001 - converted into an error value
        logger.warning("API call %s failed: %s", getattr(operation, "__name__", operation), exc)
        return ConnectError(code=API_CALL_FAILED, message=str(exc), data=type(exc).__name__)
