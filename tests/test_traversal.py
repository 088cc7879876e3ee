"""Tests for config path traversal."""

from __future__ import annotations

import pytest

from moduledoc.driver import Driver
from moduledoc.errors import AmbiguousRegistrationError, NotFoundError, UnsupportedShapeError
from moduledoc.models import Kind, Value
from moduledoc.stores import MemoryStorage
from moduledoc.traversal import TypeTraverser
from tests._fixtures.caddy_world import CORE, FILESERVER, HTTP, VERSION

HANDLERS = "apps/http/servers/routes/handle"


@pytest.fixture
def traverser(loaded_driver: Driver) -> TypeTraverser:
    return TypeTraverser(loaded_driver.storage)


@pytest.fixture
def start(loaded_driver: Driver) -> Value:
    config = loaded_driver.storage.get_type(CORE, "Config", VERSION)
    assert config is not None
    return config


def test_empty_path_returns_start(traverser: TypeTraverser, start: Value) -> None:
    exact, nearest = traverser.traverse("/", start)

    assert exact == start
    assert nearest == start
    assert exact is not start


def test_struct_fields_are_followed(traverser: TypeTraverser, start: Value) -> None:
    exact, nearest = traverser.traverse("admin/listen", start)

    assert exact.kind is Kind.STRING
    assert nearest.type_name == f"{CORE}.AdminConfig"


def test_final_segment_gets_field_and_type_docs(traverser: TypeTraverser, start: Value) -> None:
    exact, nearest = traverser.traverse("admin", start)

    assert exact.type_name == f"{CORE}.AdminConfig"
    assert exact.doc == (
        "Admin configures the admin endpoint.\n\nAdminConfig configures Caddy's API endpoint."
    )
    assert nearest is exact


def test_module_map_resolves_module_by_segment(traverser: TypeTraverser, start: Value) -> None:
    exact, nearest = traverser.traverse("apps/http", start)

    assert exact.type_name == f"{HTTP}.App"
    assert exact.kind is Kind.STRUCT
    assert nearest.type_name == f"{HTTP}.App"


def test_module_map_value_keeps_empty_namespace(traverser: TypeTraverser, start: Value) -> None:
    exact, nearest = traverser.traverse("apps", start)

    assert exact.kind is Kind.MODULE_MAP
    assert exact.module_namespace == ""
    assert exact.doc.startswith("AppsRaw are the apps that Caddy will load and run.")
    assert nearest.type_name == f"{CORE}.ModuleMap"


def test_containers_do_not_consume_segments(traverser: TypeTraverser, start: Value) -> None:
    exact, nearest = traverser.traverse("logging/logs/level", start)

    assert exact.kind is Kind.STRING
    assert nearest.type_name == f"{CORE}.CustomLog"


def test_namespaced_module_lookup(traverser: TypeTraverser, start: Value) -> None:
    exact, nearest = traverser.traverse(f"{HANDLERS}/file_server/root", start)

    assert exact.kind is Kind.STRING
    assert exact.doc == "The path to the root of the site."
    assert nearest.type_name == f"{FILESERVER}.FileServer"


def test_inline_key_is_set_only_on_final_module(traverser: TypeTraverser, start: Value) -> None:
    exact, _ = traverser.traverse(f"{HANDLERS}/static_response", start)
    passing, _ = traverser.traverse(f"{HANDLERS}/subroute/routes", start)

    assert exact.type_name == f"{HTTP}.StaticResponse"
    assert exact.module_inline_key == "handler"
    assert passing.type_name == f"{HTTP}.RouteList"


def test_recursive_module_paths(traverser: TypeTraverser, start: Value) -> None:
    exact, nearest = traverser.traverse(f"{HANDLERS}/subroute/routes/handle/file_server/browse", start)

    assert exact.type_name == f"{FILESERVER}.Browse"
    assert nearest is exact


def test_missing_field_reports_consumed_prefix(traverser: TypeTraverser, start: Value) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        traverser.traverse("admin/nope", start)

    assert excinfo.value.context == "/admin"


def test_unknown_module_is_not_found(traverser: TypeTraverser, start: Value) -> None:
    with pytest.raises(NotFoundError) as excinfo:
        traverser.traverse("apps/tls", start)

    assert excinfo.value.context == "/apps"


def test_traversal_into_scalar_is_unsupported(traverser: TypeTraverser, start: Value) -> None:
    with pytest.raises(UnsupportedShapeError):
        traverser.traverse("admin/listen/more", start)


def test_traversal_requires_named_start(traverser: TypeTraverser) -> None:
    with pytest.raises(UnsupportedShapeError):
        traverser.traverse("anything", Value(kind=Kind.STRING))


def test_ambiguous_module_id_lists_candidates(loaded_driver: Driver, traverser: TypeTraverser, start: Value) -> None:
    storage = loaded_driver.storage
    assert isinstance(storage, MemoryStorage)
    storage.put_type(
        "example.com/other",
        "FileServer",
        "v1.0.0",
        Value(kind=Kind.STRUCT, type_name="example.com/other.FileServer", struct_fields=[]),
    )
    storage.set_extension_name("example.com/other", "FileServer", "http.handlers.file_server", "v1.0.0")

    with pytest.raises(AmbiguousRegistrationError) as excinfo:
        traverser.traverse(f"{HANDLERS}/file_server", start)

    assert excinfo.value.candidates == ["example.com/other.FileServer", f"{FILESERVER}.FileServer"]


def test_same_type_at_several_versions_is_not_ambiguous(
    loaded_driver: Driver, traverser: TypeTraverser, start: Value
) -> None:
    storage = loaded_driver.storage
    newer = storage.get_type(FILESERVER, "FileServer", VERSION)
    storage.put_type(FILESERVER, "FileServer", "v2.8.0", newer)
    storage.set_extension_name(FILESERVER, "FileServer", "http.handlers.file_server", "v2.8.0")

    exact, _ = traverser.traverse(f"{HANDLERS}/file_server", start)

    assert exact.type_name == f"{FILESERVER}.FileServer"


def test_traversal_does_not_modify_start(traverser: TypeTraverser, start: Value) -> None:
    before = start.copy()

    traverser.traverse(f"{HANDLERS}/file_server/root", start)

    assert start == before
