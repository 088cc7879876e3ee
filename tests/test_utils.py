"""Tests for identity and path helpers."""

from __future__ import annotations

from moduledoc.utils import (
    config_path_parts,
    identity_key,
    join_docs,
    parse_identity,
    path_prefixes,
    split_last_dot,
    version_sort_key,
)


def test_split_last_dot_handles_module_paths() -> None:
    assert split_last_dot("github.com/caddyserver/caddy/v2.Config") == (
        "github.com/caddyserver/caddy/v2",
        "Config",
    )
    assert split_last_dot("http.handlers.file_server") == ("http.handlers", "file_server")
    assert split_last_dot("http") == ("", "http")


def test_config_path_parts_trims_slashes() -> None:
    assert config_path_parts("/apps/http/servers/") == ["apps", "http", "servers"]
    assert config_path_parts("") == []
    assert config_path_parts("/") == []


def test_identity_round_trip() -> None:
    key = identity_key("example.com/pkg", "Type", "v1.2.3")

    assert key == "example.com/pkg.Type@v1.2.3"
    assert parse_identity(key) == ("example.com/pkg", "Type", "v1.2.3")
    assert parse_identity("example.com/pkg.Type") == ("example.com/pkg", "Type", "")


def test_path_prefixes_longest_first() -> None:
    assert path_prefixes("a/b/c") == ["a/b/c", "a/b", "a"]


def test_version_sort_key_orders_semver() -> None:
    versions = ["v1.10.0", "v1.2.0", "v2.0.0-beta.1", "v2.0.0", "v1.2.0-rc.1"]

    ordered = sorted(versions, key=version_sort_key)

    assert ordered == ["v1.2.0-rc.1", "v1.2.0", "v1.10.0", "v2.0.0-beta.1", "v2.0.0"]


def test_join_docs_skips_blank_blocks() -> None:
    assert join_docs("Field doc. ", "", "  ", "Type doc.") == "Field doc.\n\nType doc."
    assert join_docs("", "") == ""
