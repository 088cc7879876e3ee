"""Tests for shared provider behaviour."""

from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import List

from moduledoc.introspection import IntrospectionProvider, ModuleRef, Unit


class _CountingProvider(IntrospectionProvider):
    def __init__(self) -> None:
        super().__init__()
        self.loads: List[str] = []
        self._count_lock = threading.Lock()

    def _load(self, pattern: str, version: str) -> List[Unit]:
        with self._count_lock:
            self.loads.append(pattern)
        time.sleep(0.05)
        return [Unit(path=pattern, name="pkg", version=version or "v1.0.0", module=pattern)]

    def locate_module(self, package: str) -> ModuleRef:
        return ModuleRef(package, "v1.0.0")

    def can_resolve(self, package: str) -> bool:
        return True


def test_concurrent_resolves_share_one_load() -> None:
    provider = _CountingProvider()

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(lambda _: provider.resolve("example.com/pkg"), range(8)))

    assert provider.loads == ["example.com/pkg"]
    assert all(result[0].path == "example.com/pkg" for result in results)


def test_resolve_caches_per_version() -> None:
    provider = _CountingProvider()

    provider.resolve("example.com/pkg")
    provider.resolve("example.com/pkg")
    provider.resolve("example.com/pkg", "v2.0.0")

    assert provider.loads == ["example.com/pkg", "example.com/pkg"]
    assert provider.requirements == {"example.com/pkg": "v2.0.0"}


def test_resolve_returns_independent_lists() -> None:
    provider = _CountingProvider()

    first = provider.resolve("example.com/pkg")
    first.clear()

    assert len(provider.resolve("example.com/pkg")) == 1


def test_pick_version_prefers_wanted_then_highest() -> None:
    available = ["v1.2.0", "v1.10.0", "v1.9.9"]

    assert IntrospectionProvider._pick_version(available) == "v1.10.0"
    assert IntrospectionProvider._pick_version(available, "v1.2.0") == "v1.2.0"
    assert IntrospectionProvider._pick_version(available, "v3.0.0") is None
    assert IntrospectionProvider._pick_version([]) is None
