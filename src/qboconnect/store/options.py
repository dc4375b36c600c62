"""Named option slot stored as a single value in a :class:`KeyValueStore`.

The connection keeps two independent slots -- the main credential/config
blob and the error blob -- so clearing one never disturbs the other. Each
slot is a JSON object whose sub-keys ("options") can be read and updated
individually; every update rewrites the whole slot.
"""

from __future__ import annotations

from typing import Any, Optional

from qboconnect.exceptions import ConfigError
from qboconnect.store.base import KeyValueStore


class OptionStore:
    """A dict-valued slot in a key-value store.

    Args:
        store: The backing key-value store.
        key: Name of the slot. Must be non-empty.

    Example::

        options = OptionStore(MemoryStore(), "qbo_connect")
        options.update("realmId", "4620816365")
        assert options.get("realmId") == "4620816365"
        assert options.get() == {"realmId": "4620816365"}
    """

    def __init__(self, store: KeyValueStore, key: str) -> None:
        if not key:
            raise ConfigError("OptionStore key is required")
        self._store = store
        self._key = key

    @property
    def key(self) -> str:
        return self._key

    @property
    def backend(self) -> KeyValueStore:
        return self._store

    def get(self, option: Optional[str] = None, default: Any = None) -> Any:
        """Return the whole slot, or one option from it.

        Args:
            option: Sub-key to read. ``None`` returns the whole slot (an empty
                dict when nothing is stored).
            default: Returned when *option* is absent.
        """
        blob = self._load()
        if option is None:
            return blob
        return blob.get(option, default)

    def update(self, option: str, value: Any) -> Any:
        """Set one option and persist the slot. Returns *value*."""
        blob = self._load()
        blob[option] = value
        self._store.set(self._key, blob)
        return value

    def set(self, value: dict[str, Any]) -> None:
        """Replace the whole slot."""
        self._store.set(self._key, dict(value))

    def delete(self, option: Optional[str] = None) -> bool:
        """Delete one option, or the whole slot when *option* is ``None``.

        Returns:
            ``True`` if something was removed.
        """
        if option is None:
            return self._store.delete(self._key)
        blob = self._load()
        if option not in blob:
            return False
        del blob[option]
        self._store.set(self._key, blob)
        return True

    def _load(self) -> dict[str, Any]:
        blob = self._store.get(self._key)
        return dict(blob) if isinstance(blob, dict) else {}
