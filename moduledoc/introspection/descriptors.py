"""Language-neutral type descriptors produced by introspection providers."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple, Union

from ..errors import MalformedMetadataError
from ..models import Kind
from ..utils import qualified_name, split_last_dot

# basic names mapped to leaf kinds; "error" is an interface and handled apart
BASIC_KINDS: Dict[str, Kind] = {
    "bool": Kind.BOOL,
    "int": Kind.INT,
    "int8": Kind.INT,
    "int16": Kind.INT,
    "int32": Kind.INT,
    "int64": Kind.INT,
    "rune": Kind.INT,
    "uint": Kind.UINT,
    "uint8": Kind.UINT,
    "uint16": Kind.UINT,
    "uint32": Kind.UINT,
    "uint64": Kind.UINT,
    "uintptr": Kind.UINT,
    "byte": Kind.UINT,
    "float32": Kind.FLOAT,
    "float64": Kind.FLOAT,
    "complex64": Kind.COMPLEX,
    "complex128": Kind.COMPLEX,
    "string": Kind.STRING,
}

_INTERFACE_NAMES = {"any", "error", "interface{}"}


@dataclass(frozen=True)
class BasicType:
    name: str


@dataclass(frozen=True)
class PointerType:
    elem: "TypeDescriptor"


@dataclass(frozen=True)
class InterfaceType:
    """Any interface; its concrete shape is unknown statically."""


@dataclass(frozen=True)
class SliceType:
    """Slices and fixed-size arrays alike."""

    elem: "TypeDescriptor"


@dataclass(frozen=True)
class MapType:
    key: "TypeDescriptor"
    elem: "TypeDescriptor"


@dataclass(frozen=True)
class FieldDescriptor:
    """One field of a struct as declared in source."""

    name: str
    type: "TypeDescriptor"
    tag: str = ""
    embedded: bool = False
    exported: bool = True
    doc: str = ""


@dataclass(frozen=True)
class StructType:
    fields: Tuple[FieldDescriptor, ...] = ()


@dataclass(frozen=True)
class NamedType:
    """Reference to a declared type; resolved through the provider."""

    package: str
    name: str

    @property
    def fqtn(self) -> str:
        return qualified_name(self.package, self.name)


@dataclass(frozen=True)
class UnsupportedType:
    """Channels, functions and generic instantiations."""

    description: str


TypeDescriptor = Union[
    BasicType,
    PointerType,
    InterfaceType,
    SliceType,
    MapType,
    StructType,
    NamedType,
    UnsupportedType,
]


@dataclass
class TypeDeclaration:
    """A named type declared in a package.

    ``alias`` marks ``type A = B`` declarations, which introduce no new
    identity of their own.
    """

    package: str
    name: str
    underlying: TypeDescriptor
    doc: str = ""
    alias: bool = False
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def fqtn(self) -> str:
        return qualified_name(self.package, self.name)


def is_exported(name: str) -> bool:
    return bool(name) and name[0].isupper()


def parse_type_expr(
    expr: Union[str, Mapping[str, Any]],
    package: str,
    *,
    imports: Optional[Mapping[str, str]] = None,
) -> TypeDescriptor:
    """Parse a Go-like type expression into a descriptor.

    ``package`` qualifies bare names declared alongside the expression.
    ``imports`` maps short package names to import paths, so ``json.RawMessage``
    resolves to ``encoding/json.RawMessage`` when ``json`` is imported.
    Fully qualified names such as ``github.com/x/y.Name`` are taken as is.
    A mapping with ``fields`` describes an anonymous struct.
    """
    if isinstance(expr, Mapping):
        return StructType(fields=parse_fields(expr.get("fields") or [], package, imports=imports))
    if not isinstance(expr, str):
        raise MalformedMetadataError(f"type expression must be a string, got {expr!r}")
    return _TypeExprParser(expr, package, imports or {}).parse()


def parse_fields(
    raw_fields: Any,
    package: str,
    *,
    imports: Optional[Mapping[str, str]] = None,
) -> Tuple[FieldDescriptor, ...]:
    if not isinstance(raw_fields, list):
        raise MalformedMetadataError(f"struct fields must be a list, got {raw_fields!r}")
    fields: List[FieldDescriptor] = []
    for raw in raw_fields:
        if not isinstance(raw, Mapping):
            raise MalformedMetadataError(f"struct field must be a mapping, got {raw!r}")
        raw_type = raw.get("type")
        if raw_type is None:
            raise MalformedMetadataError(f"struct field {raw!r} has no type")
        descriptor = parse_type_expr(raw_type, package, imports=imports)
        embedded = bool(raw.get("embedded", False))
        name = str(raw.get("name") or "")
        if embedded and not name:
            name = _embedded_name(descriptor)
        if not name:
            raise MalformedMetadataError(f"struct field {raw!r} has no name")
        fields.append(
            FieldDescriptor(
                name=name,
                type=descriptor,
                tag=str(raw.get("tag") or ""),
                embedded=embedded,
                exported=bool(raw.get("exported", is_exported(name))),
                doc=str(raw.get("doc") or ""),
            )
        )
    return tuple(fields)


def _embedded_name(descriptor: TypeDescriptor) -> str:
    if isinstance(descriptor, PointerType):
        return _embedded_name(descriptor.elem)
    if isinstance(descriptor, NamedType):
        return descriptor.name
    if isinstance(descriptor, BasicType):
        return descriptor.name
    return ""


class _TypeExprParser:
    def __init__(self, text: str, package: str, imports: Mapping[str, str]) -> None:
        self._text = text
        self._package = package
        self._imports = imports
        self._pos = 0

    def parse(self) -> TypeDescriptor:
        descriptor = self._parse()
        self._skip_space()
        if self._pos != len(self._text):
            self._fail("unexpected trailing text")
        return descriptor

    def _parse(self) -> TypeDescriptor:
        self._skip_space()
        text = self._text
        if text.startswith("*", self._pos):
            self._pos += 1
            return PointerType(self._parse())
        if text.startswith("[", self._pos):
            close = text.find("]", self._pos)
            if close < 0:
                self._fail("unterminated array or slice")
            length = text[self._pos + 1 : close].strip()
            if length and not (length.isdigit() or length == "..."):
                self._fail(f"invalid array length {length!r}")
            self._pos = close + 1
            return SliceType(self._parse())
        if self._consume_word("map"):
            self._skip_space()
            if not text.startswith("[", self._pos):
                self._fail("expected '[' after map")
            self._pos += 1
            key = self._parse()
            self._skip_space()
            if not text.startswith("]", self._pos):
                self._fail("expected ']' after map key")
            self._pos += 1
            return MapType(key, self._parse())
        if self._consume_word("interface"):
            self._skip_balanced("{", "}")
            return InterfaceType()
        if self._consume_word("chan") or text.startswith("<-", self._pos):
            return self._unsupported("channel")
        if self._consume_word("func"):
            return self._unsupported("function")
        if self._consume_word("struct"):
            self._fail("inline struct types must be declared with 'fields'")

        name = self._read_name()
        if text.startswith("[", self._pos):
            return self._unsupported("generic instantiation")
        if name in _INTERFACE_NAMES:
            return InterfaceType()
        if name in BASIC_KINDS:
            return BasicType(name)
        package, short = split_last_dot(name)
        if not package:
            return NamedType(self._package, short)
        return NamedType(self._imports.get(package, package), short)

    def _read_name(self) -> str:
        start = self._pos
        text = self._text
        while self._pos < len(text) and (
            text[self._pos].isalnum() or text[self._pos] in "_./-~"
        ):
            self._pos += 1
        name = text[start : self._pos]
        if not name or not (name[-1].isalnum() or name[-1] == "_"):
            self._fail("expected a type name")
        return name

    def _consume_word(self, word: str) -> bool:
        end = self._pos + len(word)
        if not self._text.startswith(word, self._pos):
            return False
        if end < len(self._text) and (self._text[end].isalnum() or self._text[end] in "_./"):
            return False
        self._pos = end
        return True

    def _skip_balanced(self, opening: str, closing: str) -> None:
        self._skip_space()
        if not self._text.startswith(opening, self._pos):
            return
        depth = 0
        while self._pos < len(self._text):
            char = self._text[self._pos]
            self._pos += 1
            if char == opening:
                depth += 1
            elif char == closing:
                depth -= 1
                if depth == 0:
                    return
        self._fail(f"unbalanced {opening!r}")

    def _unsupported(self, what: str) -> UnsupportedType:
        description = self._text.strip()
        self._pos = len(self._text)
        return UnsupportedType(f"{what} type {description!r}")

    def _skip_space(self) -> None:
        while self._pos < len(self._text) and self._text[self._pos].isspace():
            self._pos += 1

    def _fail(self, message: str) -> None:
        raise MalformedMetadataError(f"{message} in type expression {self._text!r}")


__all__ = [
    "BASIC_KINDS",
    "BasicType",
    "FieldDescriptor",
    "InterfaceType",
    "MapType",
    "NamedType",
    "PointerType",
    "SliceType",
    "StructType",
    "TypeDeclaration",
    "TypeDescriptor",
    "UnsupportedType",
    "is_exported",
    "parse_fields",
    "parse_type_expr",
]
