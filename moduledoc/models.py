"""Core data models shared across moduledoc components."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional


class Kind(str, Enum):
    """Fundamental shape of a config value.

    Most kinds mirror source primitives; ``module`` and ``module_map`` mark
    extension points whose concrete shape is chosen by configuration.
    """

    BOOL = "bool"
    INT = "int"
    UINT = "uint"
    FLOAT = "float"
    COMPLEX = "complex"
    STRING = "string"

    STRUCT = "struct"
    ARRAY = "array"
    MAP = "map"

    MODULE = "module"
    MODULE_MAP = "module_map"


CONTAINER_KINDS = frozenset({Kind.ARRAY, Kind.MAP})
EXTENSION_KINDS = frozenset({Kind.MODULE, Kind.MODULE_MAP})


@dataclass
class StructField:
    """A single serialized field of a struct value."""

    key: str
    value: "Value"
    doc: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"key": self.key, "value": self.value.to_dict()}
        if self.doc:
            data["doc"] = self.doc
        return data

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "StructField":
        return cls(
            key=str(payload.get("key", "")),
            value=Value.from_dict(payload.get("value") or {}),
            doc=str(payload.get("doc") or ""),
        )


@dataclass
class Value:
    """Describes a config value derived from a source type.

    A value is either a placeholder (``same_as`` names the identity of a
    stored type) or an expanded node whose children match its ``kind``.
    A value with neither kind nor reference accepts any shape.
    """

    kind: Optional[Kind] = None
    type_name: str = ""
    struct_fields: Optional[List[StructField]] = None
    map_keys: Optional["Value"] = None
    elems: Optional["Value"] = None
    doc: str = ""
    same_as: str = ""
    module_namespace: Optional[str] = None
    module_inline_key: Optional[str] = None

    @classmethod
    def placeholder(cls, identity: str) -> "Value":
        return cls(same_as=identity)

    @property
    def is_placeholder(self) -> bool:
        return bool(self.same_as)

    @property
    def is_container(self) -> bool:
        return self.kind in CONTAINER_KINDS

    def field(self, key: str) -> Optional[StructField]:
        for struct_field in self.struct_fields or []:
            if struct_field.key == key:
                return struct_field
        return None

    def innermost(self) -> "Value":
        """Follow ``elems`` through array/map wrappers to the first non-container."""
        current = self
        while current.elems is not None:
            current = current.elems
        return current

    def copy(self) -> "Value":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        if self.kind is not None:
            data["type"] = self.kind.value
        if self.type_name:
            data["type_name"] = self.type_name
        if self.struct_fields:
            data["struct_fields"] = [sf.to_dict() for sf in self.struct_fields]
        if self.map_keys is not None:
            data["map_keys"] = self.map_keys.to_dict()
        if self.elems is not None:
            data["elems"] = self.elems.to_dict()
        if self.doc:
            data["doc"] = self.doc
        if self.same_as:
            data["same_as"] = self.same_as
        # an explicitly empty namespace is meaningful, so only None is omitted
        if self.module_namespace is not None:
            data["module_namespace"] = self.module_namespace
        if self.module_inline_key is not None:
            data["module_inline_key"] = self.module_inline_key
        return data

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Value":
        if not isinstance(payload, dict):
            raise ValueError(f"value payload must be a mapping, got {type(payload).__name__}")
        raw_kind = payload.get("type")
        kind = Kind(raw_kind) if raw_kind else None
        fields_payload = payload.get("struct_fields")
        struct_fields = None
        if isinstance(fields_payload, list):
            struct_fields = [StructField.from_dict(item) for item in fields_payload]
        elif kind is Kind.STRUCT:
            struct_fields = []
        map_keys = payload.get("map_keys")
        elems = payload.get("elems")
        namespace = payload.get("module_namespace")
        inline_key = payload.get("module_inline_key")
        return cls(
            kind=kind,
            type_name=str(payload.get("type_name") or ""),
            struct_fields=struct_fields,
            map_keys=cls.from_dict(map_keys) if map_keys is not None else None,
            elems=cls.from_dict(elems) if elems is not None else None,
            doc=str(payload.get("doc") or ""),
            same_as=str(payload.get("same_as") or ""),
            module_namespace=str(namespace) if namespace is not None else None,
            module_inline_key=str(inline_key) if inline_key is not None else None,
        )


@dataclass
class ExtensionModule:
    """A registered extension implementation and its type representation."""

    name: str
    representation: Value
    type_name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"module_name": self.name}
        structure = self.representation.to_dict()
        if structure:
            data["structure"] = structure
        return data


@dataclass(frozen=True)
class TraversalResult:
    """Outcome of a path query: the exact value and its nearest named type."""

    exact: Value
    nearest: Value

    def __iter__(self) -> Iterator[Value]:
        yield self.exact
        yield self.nearest


__all__ = [
    "CONTAINER_KINDS",
    "EXTENSION_KINDS",
    "ExtensionModule",
    "Kind",
    "StructField",
    "TraversalResult",
    "Value",
]
