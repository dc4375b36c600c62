"""Key-value store backed by a :mod:`diskcache` directory.

An alternative to :class:`~qboconnect.store.file_store.JsonFileStore` for
deployments where several worker processes share one connection: diskcache
uses SQLite underneath, so individual writes are transactional even though
the OAuth layer still performs no locking around token refresh.

Entries are stored without a diskcache ``expire`` -- the store has no expiry
semantics of its own; :class:`~qboconnect.cache.ExpiringCache` keeps its own
expiry timestamp next to the value.
"""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Optional

import diskcache

from qboconnect.config import get_cache_dir
from qboconnect.store.base import KeyValueStore


class DiskCacheStore(KeyValueStore):
    """Persist keys in a :class:`diskcache.Cache` directory.

    Args:
        directory: Cache directory. Defaults to ``<cache_dir>/store``.
    """

    def __init__(self, directory: Optional[str | Path] = None) -> None:
        self._directory = Path(directory) if directory is not None else get_cache_dir() / "store"
        self._cache = diskcache.Cache(str(self._directory))

    @property
    def directory(self) -> Path:
        return self._directory

    def get(self, key: str, default: Any = None) -> Any:
        value = self._cache.get(key, default=_MISSING)
        if value is _MISSING:
            return default
        return copy.deepcopy(value)

    def set(self, key: str, value: Any) -> None:
        self._cache.set(key, value)

    def delete(self, key: str) -> bool:
        return bool(self._cache.delete(key))

    def close(self) -> None:
        """Close the underlying :class:`diskcache.Cache` and release resources."""
        self._cache.close()


_MISSING = object()
