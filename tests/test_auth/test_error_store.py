"""Tests for the persisted error slot."""

from __future__ import annotations

from qboconnect.auth.error_store import ERROR_STORE_KEY, GENERIC_ERROR_CODE, ErrorStore
from qboconnect.models import ConnectError


def test_record_connect_error(store) -> None:
    errors = ErrorStore(store)
    error = ConnectError(code="x", message="Something failed")
    assert errors.record(error, {"client_secret": "s", "realm_id": "1"}) is error

    stored = errors.get()
    assert stored is not None
    assert stored.message == "Something failed"
    assert "'client_secret': 's'" in stored.request_args
    assert errors.message == "Something failed"
    assert store.get(ERROR_STORE_KEY)["message"] == "Something failed"


def test_request_args_sorted(store) -> None:
    errors = ErrorStore(store)
    errors.record("boom", {"b": 1, "a": 2})
    assert errors.request_args.index("'a'") < errors.request_args.index("'b'")


def test_record_string_wraps_generic_code(store) -> None:
    result = ErrorStore(store).record("plain message")
    assert result is not None
    assert result.code == GENERIC_ERROR_CODE
    assert result.message == "plain message"


def test_record_overwrites(store) -> None:
    errors = ErrorStore(store)
    errors.record("first")
    errors.record("second")
    assert errors.message == "second"


def test_record_none_clears(store) -> None:
    errors = ErrorStore(store)
    errors.record("first")
    assert errors.record(None) is None
    assert errors.get() is None
    assert errors.message == ""
    assert errors.request_args == ""


def test_clear(store) -> None:
    errors = ErrorStore(store)
    assert errors.clear() is False
    errors.record("x")
    assert errors.clear() is True


def test_does_not_touch_main_slot(store) -> None:
    store.set("qbo_connect", {"realmId": "1"})
    errors = ErrorStore(store)
    errors.record("x")
    errors.clear()
    assert store.get("qbo_connect") == {"realmId": "1"}
