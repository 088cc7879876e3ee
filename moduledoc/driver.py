"""Public surface that ties providers, builders, storage and queries together."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator, List, Optional

from .builder import DEFAULT_PAYLOAD_TYPE, RepresentationBuilder
from .config import ModuleDocConfig
from .dereference import Dereferencer
from .errors import ConsistencyError, NotFoundError
from .introspection import IntrospectionProvider, NamedType, create_provider
from .introspection.golang import DEFAULT_CORE_PACKAGE
from .logging import get_logger
from .models import ExtensionModule, TraversalResult, Value
from .session import BuildSession
from .stores import JsonFileStorage, Storage, open_storage
from .tags import DEFAULT_EXTENSION_KEY, DEFAULT_SERIALIZATION_KEY
from .traversal import TypeTraverser
from .utils import qualified_name


class Driver:
    """Long-lived entry point for building and querying type documentation.

    Build operations (:meth:`add_type`, :meth:`load_modules_from`) run inside
    a :class:`BuildSession`; pass one explicitly to share caches between
    calls, otherwise each call opens and closes its own. Queries only read
    storage.
    """

    def __init__(
        self,
        storage: Storage,
        provider: IntrospectionProvider,
        *,
        core_package: str = DEFAULT_CORE_PACKAGE,
        root_type: str = "Config",
        payload_type: str = DEFAULT_PAYLOAD_TYPE,
        serialization_key: str = DEFAULT_SERIALIZATION_KEY,
        extension_key: str = DEFAULT_EXTENSION_KEY,
    ) -> None:
        self.storage = storage
        self.provider = provider
        self.core_package = core_package
        self.root_type = root_type
        self.payload_type = payload_type
        self.serialization_key = serialization_key
        self.extension_key = extension_key
        self.dereferencer = Dereferencer(storage)
        self.traverser = TypeTraverser(storage, self.dereferencer)
        self.logger = get_logger("driver")

    @contextmanager
    def session(self) -> Iterator[BuildSession]:
        session = BuildSession(self.storage)
        try:
            yield session
        finally:
            session.close()

    def builder(self, session: BuildSession) -> RepresentationBuilder:
        return RepresentationBuilder(
            session,
            self.provider,
            payload_type=self.payload_type,
            serialization_key=self.serialization_key,
            extension_key=self.extension_key,
        )

    def load_modules_from(
        self,
        package_pattern: str,
        version: str = "",
        *,
        include_imports: bool = True,
        session: Optional[BuildSession] = None,
    ) -> List[ExtensionModule]:
        """Return the modules registered when ``package_pattern`` is imported."""
        with self._session(session) as active:
            units = self.provider.resolve(package_pattern, version)
            if not units:
                raise NotFoundError(
                    f"no packages match {package_pattern}", context=package_pattern
                )
            if include_imports:
                units = list(self.provider.iter_units(units))

            builder = self.builder(active)
            modules: List[ExtensionModule] = []
            for unit in units:
                registrations = self.provider.find_extension_registrations(unit)
                for type_name, module_id in sorted(registrations.items()):
                    representation = builder.build(NamedType(unit.path, type_name))
                    self.storage.set_extension_name(
                        unit.path, type_name, module_id, builder.version_for(unit.path)
                    )
                    modules.append(
                        ExtensionModule(
                            name=module_id,
                            representation=representation,
                            type_name=qualified_name(unit.path, type_name),
                        )
                    )
            self.logger.info(
                "Loaded %d modules from %d packages for %s",
                len(modules),
                len(units),
                package_pattern,
            )
            return modules

    def add_type(
        self,
        package: str,
        type_name: str,
        version: str = "",
        *,
        session: Optional[BuildSession] = None,
    ) -> Value:
        """Build and store ``package.type_name``, returning its expanded value."""
        with self._session(session) as active:
            units = self.provider.resolve(package, version)
            if not units:
                raise NotFoundError(f"package {package} not found", context=package)
            if len(units) != 1:
                raise ConsistencyError(
                    f"expected 1 package, but got {len(units)} from pattern {package!r}",
                    context=package,
                )
            if type_name not in units[0].types:
                raise NotFoundError(
                    f"type {type_name} not found in {package}",
                    context=qualified_name(package, type_name),
                )
            representation = self.builder(active).build(NamedType(package, type_name))
            value = self.dereferencer.dereference(representation)
            self.logger.info("Added type %s", qualified_name(package, type_name))
            return value

    def load_type_by_path(self, config_path: str, version: str = "") -> TraversalResult:
        """Return the value at ``config_path`` below the root config type."""
        start = self.storage.get_type(self.core_package, self.root_type, version)
        if start is None:
            raise NotFoundError(
                "start type not found; add it before querying paths",
                context=qualified_name(self.core_package, self.root_type),
            )
        result = self.traverse_type(config_path, start)
        exact = self.dereferencer.deep_dereference(result.exact)
        return TraversalResult(exact=exact, nearest=result.nearest)

    def traverse_type(self, config_path: str, start: Value) -> TraversalResult:
        return self.traverser.traverse(config_path, start)

    def load_types_by_extension_id(self, extension_id: str) -> List[Value]:
        """Return every type registered under ``extension_id``, fully dereferenced."""
        values = self.storage.get_by_extension_id(extension_id)
        return [self.dereferencer.deep_dereference(value) for value in values]

    def persist(self) -> None:
        if isinstance(self.storage, JsonFileStorage):
            self.storage.persist()

    @contextmanager
    def _session(self, session: Optional[BuildSession]) -> Iterator[BuildSession]:
        if session is not None:
            yield session
            return
        with self.session() as owned:
            yield owned


def create_driver(config: ModuleDocConfig) -> Driver:
    """Assemble a driver from ``.moduledoc.yml`` settings."""
    return Driver(
        open_storage(config.storage.path),
        create_provider(config),
        core_package=config.core.package,
        root_type=config.core.root_type,
        payload_type=config.payload_type,
        serialization_key=config.tags.serialization,
        extension_key=config.tags.extension,
    )


__all__ = ["Driver", "create_driver"]
