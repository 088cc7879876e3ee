from __future__ import annotations

from pathlib import Path

import pytest

from moduledoc.driver import Driver
from moduledoc.introspection import ManifestProvider
from moduledoc.stores import MemoryStorage
from tests._fixtures.caddy_world import CORE, manifest_documents
from tests._fixtures.go_modules import GoModuleCache


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def manifest_provider() -> ManifestProvider:
    """Provider serving the trimmed-down Caddy packages."""
    return ManifestProvider.from_documents(*manifest_documents())


@pytest.fixture
def driver(storage: MemoryStorage, manifest_provider: ManifestProvider) -> Driver:
    return Driver(storage, manifest_provider, core_package=CORE)


@pytest.fixture
def loaded_driver(driver: Driver) -> Driver:
    """Driver with the root config type and every module already built."""
    driver.add_type(CORE, "Config")
    driver.load_modules_from(CORE + "/...")
    return driver


@pytest.fixture
def modcache(tmp_path: Path) -> GoModuleCache:
    """Provide an empty module cache rooted at the pytest tmp_path."""
    return GoModuleCache(tmp_path)
