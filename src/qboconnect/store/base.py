"""Key-value store interface and the in-memory implementation.

The OAuth layer never talks to a database directly; it persists everything
through a :class:`KeyValueStore` -- a flat mapping of string keys to
JSON-serialisable values with no expiry semantics of its own. Expiry is
layered on top by :class:`~qboconnect.cache.ExpiringCache`.

See Also:
    :class:`~qboconnect.store.file_store.JsonFileStore` -- atomic JSON file.
    :class:`~qboconnect.store.disk_store.DiskCacheStore` -- diskcache directory.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from typing import Any


class KeyValueStore(ABC):
    """Abstract persisted key-value store.

    Values must be JSON-serialisable (dicts, lists, strings, numbers,
    booleans, ``None``). Implementations return copies so that callers can
    never mutate stored state in place.
    """

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the value stored under *key*, or *default* if absent."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store *value* under *key*, replacing any previous value."""
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove *key*.

        Returns:
            ``True`` if a value was removed, ``False`` if the key was absent.
        """
        ...

    def __contains__(self, key: str) -> bool:
        sentinel = object()
        return self.get(key, sentinel) is not sentinel

    def close(self) -> None:
        """Release any underlying resources. The default is a no-op."""


class MemoryStore(KeyValueStore):
    """Process-local store backed by a dict.

    Useful for tests and for short-lived scripts that do not need the
    connection to survive a restart.
    """

    def __init__(self, initial: dict[str, Any] | None = None) -> None:
        self._data: dict[str, Any] = copy.deepcopy(initial) if initial else {}

    def get(self, key: str, default: Any = None) -> Any:
        if key not in self._data:
            return default
        return copy.deepcopy(self._data[key])

    def set(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> bool:
        return self._data.pop(key, _MISSING) is not _MISSING

    def keys(self) -> list[str]:
        return sorted(self._data)


_MISSING = object()
