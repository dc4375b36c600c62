"""Persisted key-value storage for qboconnect.

The OAuth layer treats storage as an external collaborator exposing a
simple get/set/delete interface (:class:`KeyValueStore`). This package
provides the interface, three backends, the :class:`OptionStore` slot
wrapper, and :func:`create_store` which picks a backend from
:class:`~qboconnect.models.Settings`.
"""

from __future__ import annotations

from qboconnect.models import StoreBackend
from qboconnect.store.base import KeyValueStore, MemoryStore
from qboconnect.store.disk_store import DiskCacheStore
from qboconnect.store.file_store import JsonFileStore
from qboconnect.store.options import OptionStore


def create_store(backend: StoreBackend | str) -> KeyValueStore:
    """Instantiate the key-value store selected by *backend*.

    Args:
        backend: A :class:`~qboconnect.models.StoreBackend` member or its value.

    Returns:
        A store using the default location for that backend.
    """
    backend = StoreBackend(backend)
    if backend == StoreBackend.MEMORY:
        return MemoryStore()
    if backend == StoreBackend.DISKCACHE:
        return DiskCacheStore()
    return JsonFileStore()


__all__ = [
    "DiskCacheStore",
    "JsonFileStore",
    "KeyValueStore",
    "MemoryStore",
    "OptionStore",
    "create_store",
]
