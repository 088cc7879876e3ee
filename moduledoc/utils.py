"""Shared helpers for identities and config paths."""

from __future__ import annotations

import re
from typing import List, Tuple

_VERSION_PATTERN = re.compile(r"^v?(\d+)(?:\.(\d+))?(?:\.(\d+))?(.*)$")


def split_last_dot(value: str) -> Tuple[str, str]:
    """Split ``value`` at its last dot.

    ``"github.com/caddyserver/caddy/v2.Config"`` becomes
    ``("github.com/caddyserver/caddy/v2", "Config")`` and ``"http"`` becomes
    ``("", "http")``.
    """
    before, dot, after = value.rpartition(".")
    if not dot:
        return "", value
    return before, after


def config_path_parts(config_path: str) -> List[str]:
    """Split a slash-delimited config path into its non-empty segments."""
    return [part for part in config_path.strip("/").split("/") if part]


def qualified_name(package: str, name: str) -> str:
    if package and name:
        return f"{package}.{name}"
    return name


def identity_key(package: str, name: str, version: str = "") -> str:
    """Return the ``fqtn[@version]`` key used for placeholders and caches."""
    key = qualified_name(package, name)
    if version:
        key += "@" + version
    return key


def parse_identity(identity: str) -> Tuple[str, str, str]:
    """Invert :func:`identity_key` into ``(package, name, version)``."""
    fqtn, _, version = identity.partition("@")
    package, name = split_last_dot(fqtn)
    return package, name, version


def path_prefixes(package_path: str) -> List[str]:
    """Return ``a/b/c``, ``a/b``, ``a``: longest prefix first."""
    parts = package_path.split("/")
    return ["/".join(parts[:index]) for index in range(len(parts), 0, -1)]


def version_sort_key(version: str) -> Tuple[int, int, int, int, str]:
    """Order semantic versions; releases sort after their pre-releases."""
    match = _VERSION_PATTERN.match(version)
    if not match:
        return (-1, -1, -1, 0, version)
    major, minor, patch, suffix = match.groups()
    return (
        int(major),
        int(minor or 0),
        int(patch or 0),
        0 if suffix else 1,
        suffix,
    )


def join_docs(*docs: str) -> str:
    """Join non-empty documentation blocks with a blank line between them."""
    return "\n\n".join(doc.strip() for doc in docs if doc and doc.strip())


__all__ = [
    "config_path_parts",
    "identity_key",
    "join_docs",
    "parse_identity",
    "path_prefixes",
    "qualified_name",
    "split_last_dot",
    "version_sort_key",
]
