"""Builds the type graph from provider descriptors.

Every named type is expanded once per build session: the expanded value is
committed to the session's discovered map and to storage, and callers
receive a placeholder that references it by identity. Identities that are
still being expanded also answer with a placeholder, which is what keeps
self- and mutually-referential types finite.
"""

from __future__ import annotations

from collections import Counter
from typing import Dict, List, Set, Tuple

from .errors import MalformedMetadataError, NotFoundError, UnsupportedShapeError
from .introspection import IntrospectionProvider
from .introspection.descriptors import (
    BASIC_KINDS,
    BasicType,
    InterfaceType,
    MapType,
    NamedType,
    PointerType,
    SliceType,
    StructType,
    TypeDeclaration,
    TypeDescriptor,
    UnsupportedType,
)
from .logging import get_logger
from .models import Kind, StructField, Value
from .session import BuildSession
from .tags import (
    DEFAULT_EXTENSION_KEY,
    DEFAULT_SERIALIZATION_KEY,
    extension_tag,
    serialization_name,
)
from .utils import identity_key, parse_identity, qualified_name, split_last_dot

DEFAULT_PAYLOAD_TYPE = "encoding/json.RawMessage"


class RepresentationBuilder:
    """Converts type descriptors into :class:`~moduledoc.models.Value` nodes."""

    def __init__(
        self,
        session: BuildSession,
        provider: IntrospectionProvider,
        *,
        payload_type: str = DEFAULT_PAYLOAD_TYPE,
        serialization_key: str = DEFAULT_SERIALIZATION_KEY,
        extension_key: str = DEFAULT_EXTENSION_KEY,
    ) -> None:
        self.session = session
        self.provider = provider
        self.payload_type: Tuple[str, str] = split_last_dot(payload_type)
        self.serialization_key = serialization_key
        self.extension_key = extension_key
        self.logger = get_logger("builder")

    def build(self, descriptor: TypeDescriptor) -> Value:
        if isinstance(descriptor, BasicType):
            kind = BASIC_KINDS.get(descriptor.name)
            if kind is None:
                raise UnsupportedShapeError(f"unrecognized basic kind {descriptor.name!r}")
            return Value(kind=kind)
        if isinstance(descriptor, PointerType):
            return self.build(descriptor.elem)
        if isinstance(descriptor, InterfaceType):
            return Value()
        if isinstance(descriptor, NamedType):
            return self._build_named(descriptor)
        if isinstance(descriptor, StructType):
            return self._build_struct(descriptor, owner="struct")
        if isinstance(descriptor, SliceType):
            return Value(kind=Kind.ARRAY, elems=self.build(descriptor.elem))
        if isinstance(descriptor, MapType):
            keys = self.build(descriptor.key)
            elems = self.build(descriptor.elem)
            if keys.kind is Kind.STRING and elems.kind is Kind.MODULE:
                return Value(kind=Kind.MODULE_MAP)
            return Value(kind=Kind.MAP, map_keys=keys, elems=elems)
        if isinstance(descriptor, UnsupportedType):
            raise UnsupportedShapeError(f"cannot represent {descriptor.description}")
        raise UnsupportedShapeError(f"unknown type descriptor {descriptor!r}")

    def version_for(self, package: str) -> str:
        """Return the module version in use for ``package``."""
        cached = self.session.cached_version(package)
        if cached is not None:
            return cached
        module = self.provider.locate_module(package)
        owns = package == module.path or package.startswith(module.path + "/")
        self.session.remember_version(module.path if owns else package, module.version)
        return module.version

    # ------------------------------------------------------------------
    # Named types

    def _build_named(self, named: NamedType) -> Value:
        # the payload marker is never stored, so checking it first is safe and
        # keeps its package out of version resolution
        if (named.package, named.name) == self.payload_type:
            return Value(kind=Kind.MODULE)
        version = self.version_for(named.package)
        identity = identity_key(named.package, named.name, version)

        cached = self._cached_placeholder(named, version, identity)
        if cached is not None:
            return cached

        declaration = self.provider.lookup_type(named.package, named.name, version)
        if declaration.alias:
            return self.build(declaration.underlying)

        if not self.session.claim(identity):
            return Value.placeholder(identity)
        try:
            value = self._expand(declaration, identity)
        except BaseException:
            self.session.release(identity)
            raise

        if self.session.commit(identity, value, named.package, named.name, version):
            self.logger.debug("Committed %s", identity)
        return Value.placeholder(identity)

    def _cached_placeholder(self, named: NamedType, version: str, identity: str) -> Value | None:
        if self.session.is_known(identity):
            return Value.placeholder(identity)
        stored = self.session.storage.get_type(named.package, named.name, version)
        if stored is None:
            return None
        with self.session.lock.write():
            self.session.discovered.setdefault(identity, stored)
        self.logger.debug("Reusing stored type %s", identity)
        return Value.placeholder(identity)

    def _expand(self, declaration: TypeDeclaration, identity: str) -> Value:
        underlying = self._underlying(declaration)
        if isinstance(underlying, StructType):
            value = self._build_struct(underlying, owner=declaration.fqtn)
        else:
            value = self.build(underlying)
            if value.is_placeholder:
                # ``type A *B`` takes the shape of B under its own name
                value = self._expanded(value, context=identity)
        value.type_name = declaration.fqtn
        value.doc = declaration.doc
        return value

    def _underlying(self, declaration: TypeDeclaration) -> TypeDescriptor:
        """Follow ``type A B`` declarations to the first shape that is not a named type."""
        seen: Set[str] = {declaration.fqtn}
        underlying = declaration.underlying
        while isinstance(underlying, NamedType):
            if (underlying.package, underlying.name) == self.payload_type:
                break
            target = self.provider.lookup_type(
                underlying.package, underlying.name, self.version_for(underlying.package)
            )
            if target.fqtn in seen:
                raise UnsupportedShapeError(
                    f"invalid recursive type {declaration.fqtn}", context=declaration.fqtn
                )
            seen.add(target.fqtn)
            underlying = target.underlying
        return underlying

    def _expanded(self, value: Value, *, context: str) -> Value:
        """Return a copy of the expanded value a placeholder refers to."""
        if not value.is_placeholder:
            return value
        identity = value.same_as
        if self.session.is_expanding(identity):
            raise UnsupportedShapeError(f"type {identity} contains itself", context=context)
        with self.session.lock.read():
            found = self.session.discovered.get(identity)
            if found is not None:
                return found.copy()
        package, name, version = parse_identity(identity)
        stored = self.session.storage.get_type(package, name, version)
        if stored is None:
            raise NotFoundError(f"type {identity} is not stored", context=context)
        return stored

    # ------------------------------------------------------------------
    # Structs

    def _build_struct(self, struct: StructType, *, owner: str) -> Value:
        entries: List[Tuple[StructField, bool]] = []
        direct: Dict[str, str] = {}

        for field in struct.fields:
            context = qualified_name(owner, field.name)
            if not field.embedded and not field.exported:
                continue
            name, included = serialization_name(field.tag, self.serialization_key, context=context)
            if not included:
                continue

            # only untagged embedded structs are spliced; encoding/json keeps an
            # embedded field with a tagged name as an ordinary field
            if field.embedded and not name:
                embedded = self._expanded(self.build(field.type), context=context)
                if embedded.kind is not Kind.STRUCT:
                    self.logger.debug("Skipping embedded non-struct field %s", context)
                    continue
                entries.extend((spliced, False) for spliced in embedded.struct_fields or [])
                continue
            if not name or not field.exported:
                continue

            value = self.build(field.type)
            tag = extension_tag(field.tag, self.extension_key, context=context)
            if not tag.is_empty:
                target = value.innermost()
                if tag.namespace is not None:
                    target.module_namespace = tag.namespace
                if tag.inline_key is not None:
                    target.module_inline_key = tag.inline_key

            if name in direct:
                raise MalformedMetadataError(
                    f"fields {direct[name]} and {field.name} both serialize as {name!r}",
                    context=context,
                )
            direct[name] = field.name
            entries.append((StructField(key=name, value=value, doc=field.doc), True))

        # encoding/json rules: direct fields shadow promoted ones, and
        # promoted fields that collide with each other are dropped
        promoted = Counter(entry.key for entry, is_direct in entries if not is_direct)
        fields = [
            entry
            for entry, is_direct in entries
            if is_direct or (entry.key not in direct and promoted[entry.key] == 1)
        ]
        return Value(kind=Kind.STRUCT, struct_fields=fields)


__all__ = ["DEFAULT_PAYLOAD_TYPE", "RepresentationBuilder"]
