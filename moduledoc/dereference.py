"""Resolve placeholders back into expanded values."""

from __future__ import annotations

from typing import FrozenSet

from .errors import NotFoundError
from .logging import get_logger
from .models import Value
from .stores import Storage
from .utils import join_docs, parse_identity, qualified_name


class Dereferencer:
    """Follows ``same_as`` references through storage.

    Namespace and inline key describe the context a type is used in, so
    they travel from the placeholder onto the loaded copy and are never
    written back to storage.
    """

    def __init__(self, storage: Storage) -> None:
        self.storage = storage
        self.logger = get_logger("dereference")

    def dereference(self, value: Value) -> Value:
        if not value.is_placeholder:
            return value
        package, name, version = parse_identity(value.same_as)
        loaded = self.storage.get_type(package, name, version)
        if loaded is None:
            raise NotFoundError(
                f"dereference failed, type {value.same_as} is not stored", context=value.same_as
            )

        # namespace and inline key belong on the leaf that will hold the module
        target = loaded.innermost()
        if value.module_namespace is not None:
            target.module_namespace = value.module_namespace
        if value.module_inline_key is not None:
            target.module_inline_key = value.module_inline_key

        loaded.doc = join_docs(value.doc, loaded.doc)
        return loaded

    def deep_dereference(self, value: Value) -> Value:
        """Dereference ``value`` and everything below it.

        Struct field docs are merged with the docs of the type they hold.
        A reference back to a type that is already being expanded on the
        current path stays a placeholder, so recursive types terminate. That
        includes the type of ``value`` itself when it is already expanded.
        """
        return self._deep(value, frozenset())

    def _deep(self, value: Value, expanding: FrozenSet[str]) -> Value:
        # ``expanding`` holds type names; stored values do not carry versions
        if value.is_placeholder:
            package, name, _ = parse_identity(value.same_as)
            if qualified_name(package, name) in expanding:
                return value
            value = self.dereference(value)
        if value.type_name:
            expanding = expanding | {value.type_name}

        for struct_field in value.struct_fields or []:
            struct_field.value = self._deep(struct_field.value, expanding)
            # unnamed arrays and maps carry no docs; their element type does
            target = struct_field.value
            if not target.type_name:
                target = target.innermost()
            merged = join_docs(struct_field.doc, target.doc)
            target.doc = merged
            if merged:
                struct_field.doc = merged

        if value.map_keys is not None:
            value.map_keys = self._deep(value.map_keys, expanding)
        if value.elems is not None:
            value.elems = self._deep(value.elems, expanding)
        return value


__all__ = ["Dereferencer"]
