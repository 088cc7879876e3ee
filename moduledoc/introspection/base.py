"""Base classes for introspection providers."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections import deque
from dataclasses import dataclass, field
from typing import Dict, Iterable, Iterator, List, Mapping, Optional, Set, Tuple

from ..errors import ConsistencyError, NotFoundError
from ..logging import get_logger
from ..utils import path_prefixes, qualified_name, version_sort_key
from .descriptors import TypeDeclaration


@dataclass(frozen=True)
class ModuleRef:
    """The module owning a package and the version selected for it."""

    path: str
    version: str = ""


@dataclass
class Unit:
    """One loaded package.

    ``registered`` maps each type passed to a module registration call to
    the source location of that call. ``implementations`` maps each type
    with a module-info method to the static extension id it returns, or to
    None when no id was found.
    """

    path: str
    name: str
    version: str = ""
    module: str = ""
    types: Dict[str, TypeDeclaration] = field(default_factory=dict)
    imports: List[str] = field(default_factory=list)
    registered: Dict[str, str] = field(default_factory=dict)
    implementations: Dict[str, Optional[str]] = field(default_factory=dict)


class IntrospectionProvider(ABC):
    """Contract for providers that expose declared types of source packages.

    Subclasses implement :meth:`_load`; :meth:`resolve` memoizes it per
    ``(pattern, version)`` so concurrent callers share a single load.
    """

    def __init__(self, requirements: Optional[Mapping[str, str]] = None) -> None:
        self._requirements: Dict[str, str] = dict(requirements or {})
        self._units: Dict[Tuple[str, str], List[Unit]] = {}
        self._key_locks: Dict[Tuple[str, str], threading.Lock] = {}
        self._guard = threading.Lock()
        self.logger = get_logger(f"introspection.{type(self).__name__}")

    @abstractmethod
    def _load(self, pattern: str, version: str) -> List[Unit]:
        """Load every unit matching ``pattern``; an empty list when none match."""

    @abstractmethod
    def locate_module(self, package: str) -> ModuleRef:
        """Return the module owning ``package``; raises NotFoundError."""

    @abstractmethod
    def can_resolve(self, package: str) -> bool:
        """Return True when ``package`` is available to this provider."""

    def resolve(self, pattern: str, version: str = "") -> List[Unit]:
        key = (pattern, version)
        with self._guard:
            cached = self._units.get(key)
            if cached is not None:
                return list(cached)
            lock = self._key_locks.setdefault(key, threading.Lock())

        with lock:
            with self._guard:
                cached = self._units.get(key)
            if cached is not None:
                return list(cached)
            units = self._load(pattern, version)
            self.logger.debug("Loaded %d units for %s", len(units), pattern)
            with self._guard:
                if version:
                    for unit in units:
                        if unit.module:
                            self._requirements[unit.module] = version
                self._units[key] = units
        return list(units)

    def requirement_for(self, package: str) -> str:
        """Return the version required for the module owning ``package``, if any."""
        with self._guard:
            for prefix in path_prefixes(package):
                if prefix in self._requirements:
                    return self._requirements[prefix]
        return ""

    @property
    def requirements(self) -> Dict[str, str]:
        with self._guard:
            return dict(self._requirements)

    def lookup_type(self, package: str, name: str, version: str = "") -> TypeDeclaration:
        units = self.resolve(package, version)
        if not units:
            raise NotFoundError(f"package {package} not found", context=package)
        if len(units) > 1:
            raise ConsistencyError(
                f"expected 1 package, but got {len(units)} from pattern {package!r}",
                context=package,
            )
        declaration = units[0].types.get(name)
        if declaration is None:
            raise NotFoundError(
                f"type {name} not found in {package}", context=qualified_name(package, name)
            )
        return declaration

    def iter_units(self, units: Iterable[Unit]) -> Iterator[Unit]:
        """Yield ``units`` followed by everything they import, each once."""
        seen: Set[str] = set()
        queue = deque(units)
        while queue:
            unit = queue.popleft()
            if unit.path in seen:
                continue
            seen.add(unit.path)
            yield unit
            for imported in unit.imports:
                if imported in seen:
                    continue
                if not self.can_resolve(imported):
                    self.logger.debug("Skipping unresolvable import %s of %s", imported, unit.path)
                    continue
                queue.extend(self.resolve(imported))

    def find_extension_registrations(self, unit: Unit) -> Dict[str, str]:
        """Pair registered types with the extension ids their module info declares."""
        for type_name, location in unit.registered.items():
            context = qualified_name(unit.path, type_name)
            if type_name not in unit.implementations:
                raise ConsistencyError(
                    f"module is registered at {location} but does not implement the module interface",
                    context=context,
                )
            if not unit.implementations[type_name]:
                raise ConsistencyError(
                    f"module is registered at {location}, but its module name could not be found",
                    context=context,
                )
        for type_name, module_id in unit.implementations.items():
            context = qualified_name(unit.path, type_name)
            if type_name not in unit.registered:
                raise ConsistencyError(
                    "type has a module info method, but is never registered", context=context
                )
            if not module_id:
                raise ConsistencyError(
                    "type has a module info method, but its module name could not be found",
                    context=context,
                )
        return {type_name: unit.implementations[type_name] or "" for type_name in unit.registered}

    @staticmethod
    def _pick_version(available: Iterable[str], wanted: str = "") -> Optional[str]:
        """Return ``wanted`` when available, else the highest available version."""
        versions = list(available)
        if not versions:
            return None
        if wanted:
            return wanted if wanted in versions else None
        return max(versions, key=version_sort_key)


__all__ = ["IntrospectionProvider", "ModuleRef", "Unit"]
