"""Introspection providers expose declared types of source packages."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import IntrospectionProvider, ModuleRef, Unit
from .descriptors import (
    BasicType,
    FieldDescriptor,
    InterfaceType,
    MapType,
    NamedType,
    PointerType,
    SliceType,
    StructType,
    TypeDeclaration,
    TypeDescriptor,
    UnsupportedType,
    parse_type_expr,
)
from .golang import GoSourceProvider
from .manifest import ManifestProvider

if TYPE_CHECKING:  # pragma: no cover
    from ..config import ModuleDocConfig


def create_provider(config: "ModuleDocConfig") -> IntrospectionProvider:
    """Instantiate the provider selected by ``provider.kind``."""
    provider = config.provider
    if provider.kind == "manifest":
        return ManifestProvider(provider.manifests, requirements=provider.requirements)
    return GoSourceProvider(
        provider.modcache,
        goroot=provider.goroot,
        requirements=provider.requirements,
        local_modules=provider.modules,
        core_package=config.core.package,
    )


__all__ = [
    "BasicType",
    "FieldDescriptor",
    "GoSourceProvider",
    "InterfaceType",
    "IntrospectionProvider",
    "ManifestProvider",
    "MapType",
    "ModuleRef",
    "NamedType",
    "PointerType",
    "SliceType",
    "StructType",
    "TypeDeclaration",
    "TypeDescriptor",
    "Unit",
    "UnsupportedType",
    "create_provider",
    "parse_type_expr",
]
