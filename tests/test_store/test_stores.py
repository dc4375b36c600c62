"""Tests for the key-value store backends."""

from __future__ import annotations

import json
import os
import stat
from pathlib import Path

import pytest

from qboconnect.exceptions import StoreError
from qboconnect.models import StoreBackend
from qboconnect.store import (
    DiskCacheStore,
    JsonFileStore,
    KeyValueStore,
    MemoryStore,
    create_store,
)


@pytest.fixture(params=["memory", "file", "diskcache"])
def any_store(request, tmp_path: Path) -> KeyValueStore:
    if request.param == "memory":
        s: KeyValueStore = MemoryStore()
    elif request.param == "file":
        s = JsonFileStore(tmp_path / "store.json")
    else:
        s = DiskCacheStore(tmp_path / "dc")
    yield s
    s.close()


class TestContract:
    def test_get_missing_returns_default(self, any_store: KeyValueStore) -> None:
        assert any_store.get("nope") is None
        sentinel = object()
        assert any_store.get("nope", sentinel) is sentinel

    def test_set_get(self, any_store: KeyValueStore) -> None:
        any_store.set("qbo_connect", {"realmId": "123", "token_credentials": {"a": 1}})
        assert any_store.get("qbo_connect") == {"realmId": "123", "token_credentials": {"a": 1}}

    def test_contains(self, any_store: KeyValueStore) -> None:
        any_store.set("k", 0)
        assert "k" in any_store
        assert "other" not in any_store

    def test_delete(self, any_store: KeyValueStore) -> None:
        any_store.set("k", "v")
        assert any_store.delete("k") is True
        assert any_store.delete("k") is False
        assert any_store.get("k") is None

    def test_returned_values_are_copies(self, any_store: KeyValueStore) -> None:
        any_store.set("k", {"nested": [1]})
        value = any_store.get("k")
        value["nested"].append(2)
        assert any_store.get("k") == {"nested": [1]}


class TestMemoryStore:
    def test_initial_data_copied(self) -> None:
        initial = {"a": {"b": 1}}
        s = MemoryStore(initial)
        initial["a"]["b"] = 2
        assert s.get("a") == {"b": 1}
        assert s.keys() == ["a"]


class TestJsonFileStore:
    def test_file_permissions(self, tmp_path: Path) -> None:
        s = JsonFileStore(tmp_path / "store.json")
        s.set("k", "v")
        mode = stat.S_IMODE(os.stat(s.path).st_mode)
        assert mode == 0o600

    def test_persisted_between_instances(self, tmp_path: Path) -> None:
        JsonFileStore(tmp_path / "store.json").set("k", [1, 2])
        assert JsonFileStore(tmp_path / "store.json").get("k") == [1, 2]

    def test_invalid_json_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "store.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StoreError):
            JsonFileStore(path).get("k")

    def test_non_object_raises(self, tmp_path: Path) -> None:
        path = tmp_path / "store.json"
        path.write_text(json.dumps([1, 2]), encoding="utf-8")
        with pytest.raises(StoreError):
            JsonFileStore(path).get("k")

    def test_unserialisable_value_raises(self, tmp_path: Path) -> None:
        with pytest.raises(StoreError):
            JsonFileStore(tmp_path / "store.json").set("k", object())

    def test_default_location(self, isolated_config: Path) -> None:
        s = JsonFileStore()
        assert s.path == isolated_config / "data" / "qbo-connect" / "store.json"


class TestCreateStore:
    def test_memory(self) -> None:
        assert isinstance(create_store(StoreBackend.MEMORY), MemoryStore)

    def test_file_by_value(self, isolated_config: Path) -> None:
        assert isinstance(create_store("file"), JsonFileStore)

    def test_diskcache(self, isolated_config: Path) -> None:
        s = create_store(StoreBackend.DISKCACHE)
        try:
            assert isinstance(s, DiskCacheStore)
            assert s.directory == isolated_config / "cache" / "qbo-connect" / "store"
        finally:
            s.close()

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError):
            create_store("redis")
