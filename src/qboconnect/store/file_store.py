"""Key-value store persisted as a single JSON file.

The whole mapping lives in one file (by default
``~/.local/share/qbo-connect/store.json``). Every write rewrites the file
atomically through :func:`qboconnect.config._atomic_write` with ``0o600``
permissions, because the store holds OAuth tokens and the client secret
dump kept by the error store.
"""

from __future__ import annotations

import copy
import json
import logging
from pathlib import Path
from typing import Any, Optional

from qboconnect.config import _atomic_write, get_data_dir
from qboconnect.exceptions import StoreError
from qboconnect.store.base import KeyValueStore

logger = logging.getLogger(__name__)

_STORE_FILENAME = "store.json"


class JsonFileStore(KeyValueStore):
    """Read/write a JSON object file as a key-value store.

    The file is re-read on every access so that two processes sharing the
    file observe each other's writes (last writer wins; there is no locking).

    Args:
        path: File location. Defaults to ``<data_dir>/store.json``.

    Example::

        store = JsonFileStore(tmp_path / "store.json")
        store.set("qbo_connect", {"realmId": "123"})
        assert store.get("qbo_connect") == {"realmId": "123"}
    """

    def __init__(self, path: Optional[str | Path] = None) -> None:
        self._path = Path(path) if path is not None else get_data_dir() / _STORE_FILENAME

    @property
    def path(self) -> Path:
        """The filesystem path of the backing file."""
        return self._path

    def get(self, key: str, default: Any = None) -> Any:
        data = self._read()
        if key not in data:
            return default
        return copy.deepcopy(data[key])

    def set(self, key: str, value: Any) -> None:
        data = self._read()
        data[key] = value
        self._write(data)

    def delete(self, key: str) -> bool:
        data = self._read()
        if key not in data:
            return False
        del data[key]
        self._write(data)
        return True

    def _read(self) -> dict[str, Any]:
        if not self._path.is_file():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError) as exc:
            raise StoreError(f"Cannot read store at {self._path}: {exc}") from exc
        if not isinstance(data, dict):
            raise StoreError(f"Store at {self._path} does not contain a JSON object")
        return data

    def _write(self, data: dict[str, Any]) -> None:
        try:
            text = json.dumps(data, indent=2, sort_keys=True) + "\n"
            _atomic_write(self._path, text, mode=0o600)
        except (TypeError, ValueError, OSError) as exc:
            raise StoreError(f"Cannot write store at {self._path}: {exc}") from exc
        logger.debug("Wrote %d key(s) to %s", len(data), self._path)
