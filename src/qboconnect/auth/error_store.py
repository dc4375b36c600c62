"""Persistence of the last OAuth or API failure.

The error slot is separate from the credential slot so that clearing one
never disturbs the other. The stored ``request_args`` is a pretty-printed
dump of the connection's debug context, secrets included; it is a debugging
aid and must only be displayed behind an explicit opt-in.
"""

from __future__ import annotations

import logging
import pprint
from typing import Any, Optional

from qboconnect.models import ConnectError, StoredError
from qboconnect.store import KeyValueStore, OptionStore

logger = logging.getLogger(__name__)

ERROR_STORE_KEY = "qbo_connect_error"
GENERIC_ERROR_CODE = "qbo_connect_api_error"


class ErrorStore:
    """Single-slot store for the most recent :class:`~qboconnect.models.StoredError`.

    Args:
        store: Backing key-value store.
        key: Slot name, independent of the credential slot.
    """

    def __init__(self, store: KeyValueStore, key: str = ERROR_STORE_KEY) -> None:
        self._slot = OptionStore(store, key)

    def record(
        self,
        error: ConnectError | str | None,
        request_args: Optional[dict[str, Any]] = None,
    ) -> Optional[ConnectError]:
        """Overwrite the slot with *error*, or clear it when *error* is ``None``.

        Args:
            error: The failure to keep. A bare string is wrapped in a
                :class:`~qboconnect.models.ConnectError` with a generic code.
            request_args: Debug context dumped into ``request_args``.

        Returns:
            The recorded error as a :class:`~qboconnect.models.ConnectError`,
            or ``None`` when the slot was cleared.
        """
        if error is None or error == "":
            self.clear()
            return None

        if not isinstance(error, ConnectError):
            error = ConnectError(code=GENERIC_ERROR_CODE, message=str(error), data=request_args)

        stored = StoredError(
            message=error.message,
            request_args=pprint.pformat(request_args or {}, sort_dicts=True),
        )
        self._slot.set(stored.model_dump())
        logger.warning("Recorded error %s: %s", error.code, error.message)
        return error

    def clear(self) -> bool:
        """Remove the stored error. Returns ``True`` if one existed."""
        return self._slot.delete()

    def get(self) -> Optional[StoredError]:
        blob = self._slot.get()
        if not blob:
            return None
        try:
            return StoredError.model_validate(blob)
        except ValueError:
            return StoredError(message=str(blob.get("message", "")))

    @property
    def message(self) -> str:
        stored = self.get()
        return stored.message if stored else ""

    @property
    def request_args(self) -> str:
        stored = self.get()
        return stored.request_args if stored else ""
