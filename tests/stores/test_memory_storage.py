"""Tests for the in-memory storage backend."""

from __future__ import annotations

import pytest

from moduledoc.errors import ConsistencyError
from moduledoc.models import Kind, Value
from moduledoc.stores import MemoryStorage, open_storage

PKG = "example.com/app"


def _struct(doc: str) -> Value:
    return Value(kind=Kind.STRUCT, type_name=f"{PKG}.Server", struct_fields=[], doc=doc)


def test_get_type_returns_none_when_missing() -> None:
    assert MemoryStorage().get_type(PKG, "Server") is None


def test_exact_version_wins_over_unversioned_entry() -> None:
    storage = MemoryStorage()
    storage.put_type(PKG, "Server", "", _struct("bare"))
    storage.put_type(PKG, "Server", "v1.0.0", _struct("versioned"))

    assert storage.get_type(PKG, "Server", "v1.0.0").doc == "versioned"
    assert storage.get_type(PKG, "Server", "").doc == "bare"


def test_versioned_lookup_falls_back_to_unversioned_entry() -> None:
    storage = MemoryStorage()
    storage.put_type(PKG, "Server", "", _struct("bare"))

    assert storage.get_type(PKG, "Server", "v9.9.9").doc == "bare"


def test_unversioned_lookup_finds_most_recent_versioned_entry() -> None:
    storage = MemoryStorage()
    storage.put_type(PKG, "Server", "v1.0.0", _struct("one"))
    storage.put_type(PKG, "Server", "v2.0.0", _struct("two"))

    assert storage.get_type(PKG, "Server").doc == "two"

    storage.put_type(PKG, "Server", "v1.0.0", _struct("one again"))
    assert storage.get_type(PKG, "Server").doc == "one again"


def test_unknown_version_is_not_found_without_unversioned_entry() -> None:
    storage = MemoryStorage()
    storage.put_type(PKG, "Server", "v1.0.0", _struct("one"))

    assert storage.get_type(PKG, "Server", "v2.0.0") is None


def test_returned_values_are_copies() -> None:
    storage = MemoryStorage()
    storage.put_type(PKG, "Server", "v1.0.0", _struct("original"))

    loaded = storage.get_type(PKG, "Server", "v1.0.0")
    loaded.doc = "mutated"
    loaded.module_namespace = "http"

    again = storage.get_type(PKG, "Server", "v1.0.0")
    assert again.doc == "original"
    assert again.module_namespace is None


def test_extension_registration_round_trip() -> None:
    storage = MemoryStorage()
    storage.put_type(PKG, "Server", "v1.0.0", _struct("server"))

    storage.set_extension_name(PKG, "Server", "http.server", "v1.0.0")
    storage.set_extension_name(PKG, "Server", "http.server", "v1.0.0")

    values = storage.get_by_extension_id("http.server")
    assert [value.doc for value in values] == ["server"]
    assert storage.extension_ids() == ["http.server"]


def test_extension_ids_may_map_to_several_types() -> None:
    storage = MemoryStorage()
    storage.put_type(PKG, "Server", "v1.0.0", _struct("one"))
    storage.put_type("example.com/other", "Server", "v0.1.0", _struct("two"))

    storage.set_extension_name(PKG, "Server", "http.server", "v1.0.0")
    storage.set_extension_name("example.com/other", "Server", "http.server", "v0.1.0")

    assert sorted(value.doc for value in storage.get_by_extension_id("http.server")) == ["one", "two"]


def test_unknown_extension_id_returns_empty_list() -> None:
    assert MemoryStorage().get_by_extension_id("nope") == []


def test_registering_unstored_type_is_inconsistent() -> None:
    with pytest.raises(ConsistencyError):
        MemoryStorage().set_extension_name(PKG, "Server", "http.server", "v1.0.0")


def test_open_storage_defaults_to_memory() -> None:
    storage = open_storage()

    assert isinstance(storage, MemoryStorage)
    assert len(storage) == 0
