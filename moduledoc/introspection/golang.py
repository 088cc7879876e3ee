"""Tree-sitter powered provider that reads Go sources from a module cache."""

from __future__ import annotations

import json
import os
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

import tree_sitter_go
from tree_sitter import Language, Node, Parser

from ..errors import ConsistencyError, MalformedMetadataError, NotFoundError
from ..utils import path_prefixes
from .base import IntrospectionProvider, ModuleRef, Unit
from .descriptors import (
    BASIC_KINDS,
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
    is_exported,
)

GO_LANGUAGE = Language(tree_sitter_go.language())

DEFAULT_CORE_PACKAGE = "github.com/caddyserver/caddy/v2"
REGISTER_FUNCTION = "RegisterModule"
MODULE_INFO_METHOD = "CaddyModule"

_SLICE_NODES = {"slice_type", "array_type", "implicit_length_array_type"}
_INTERFACE_NAMES = {"any", "error"}


@dataclass
class _FileContext:
    path: Path
    source: bytes
    package: str
    imports: Dict[str, str] = field(default_factory=dict)
    unaliased: List[str] = field(default_factory=list)

    def text(self, node: Node) -> str:
        return self.source[node.start_byte : node.end_byte].decode("utf-8", errors="replace")

    def location(self, node: Node) -> str:
        return f"{self.path.name}:{node.start_point[0] + 1}"


class GoSourceProvider(IntrospectionProvider):
    """Loads Go packages without a Go toolchain.

    Packages are looked up in ``local_modules`` (module path -> directory),
    then in ``goroot/src`` for standard-library paths, then in the module
    cache laid out as ``<modcache>/<escaped module path>@<version>``.
    """

    def __init__(
        self,
        modcache: Optional[Path] = None,
        *,
        goroot: Optional[Path] = None,
        requirements: Optional[Mapping[str, str]] = None,
        local_modules: Optional[Mapping[str, Path]] = None,
        core_package: str = DEFAULT_CORE_PACKAGE,
    ) -> None:
        super().__init__(requirements)
        self.modcache = modcache
        self.goroot = goroot
        self.local_modules = dict(local_modules or {})
        self.core_package = core_package
        self._parser = Parser(GO_LANGUAGE)
        self._parser_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Module lookup

    def locate_module(self, package: str) -> ModuleRef:
        found = self._find_module(package, "")
        if found is None:
            raise NotFoundError(f"no module provides package {package}", context=package)
        return found[0]

    def can_resolve(self, package: str) -> bool:
        found = self._find_module(package, "")
        return found is not None and found[1].is_dir()

    def _find_module(self, package: str, version: str) -> Optional[Tuple[ModuleRef, Path]]:
        """Return the owning module and the directory holding ``package``."""
        for prefix in path_prefixes(package):
            if prefix in self.local_modules:
                directory = Path(self.local_modules[prefix]) / _relative(package, prefix)
                return ModuleRef(prefix, ""), directory

        if "." not in package.split("/")[0]:
            if self.goroot is None:
                return None
            return ModuleRef("std", ""), self.goroot / "src" / package

        if self.modcache is None:
            return None
        for prefix in path_prefixes(package):
            escaped = escape_module_path(prefix)
            parent, _, last = escaped.rpartition("/")
            container = self.modcache / parent if parent else self.modcache
            if not container.is_dir():
                continue
            available = [
                entry.name.partition("@")[2]
                for entry in container.iterdir()
                if entry.is_dir() and entry.name.startswith(last + "@")
            ]
            wanted = version or self.requirement_for(prefix)
            chosen = self._pick_version(available, wanted)
            if chosen is None and wanted and not version:
                chosen = self._pick_version(available)
            if chosen is None:
                continue
            directory = container / f"{last}@{chosen}" / _relative(package, prefix)
            if directory.is_dir():
                return ModuleRef(prefix, chosen), directory
        return None

    # ------------------------------------------------------------------
    # Loading

    def _load(self, pattern: str, version: str) -> List[Unit]:
        recursive = pattern.endswith("/...")
        base = pattern[: -len("/...")] if recursive else pattern
        found = self._find_module(base, version)
        if found is None or not found[1].is_dir():
            return []
        ref, directory = found
        if not recursive:
            unit = self._load_package(base, ref, directory)
            return [unit] if unit is not None else []

        units: List[Unit] = []
        for root, dirs, _ in os.walk(directory):
            dirs[:] = sorted(
                name
                for name in dirs
                if name != "testdata"
                and not name.startswith(("_", "."))
                and not (Path(root) / name / "go.mod").exists()
            )
            relative = Path(root).relative_to(directory).as_posix()
            package = base if relative == "." else f"{base}/{relative}"
            unit = self._load_package(package, ref, Path(root))
            if unit is not None:
                units.append(unit)
        return units

    def _load_package(self, package: str, ref: ModuleRef, directory: Path) -> Optional[Unit]:
        files = sorted(
            path
            for path in directory.glob("*.go")
            if path.is_file() and not path.name.endswith("_test.go")
        )
        if not files:
            return None
        unit = Unit(path=package, name="", version=ref.version, module=ref.path)
        imports: set[str] = set()
        for path in files:
            self._parse_file(path, unit, imports)
        unit.imports = sorted(imports)
        self.logger.debug(
            "Parsed %s (%d files, %d types)", package, len(files), len(unit.types)
        )
        return unit

    def _parse_file(self, path: Path, unit: Unit, imports: set[str]) -> None:
        source = path.read_bytes()
        with self._parser_lock:
            tree = self._parser.parse(source)
        ctx = _FileContext(path=path, source=source, package=unit.path)
        root = tree.root_node

        for child in root.named_children:
            if child.type == "package_clause":
                name_node = _first_named(child, "package_identifier")
                name = ctx.text(name_node) if name_node is not None else ""
                if not unit.name:
                    unit.name = name
                elif name and name != unit.name:
                    raise ConsistencyError(
                        f"found packages {unit.name} and {name} in {path.parent}",
                        context=unit.path,
                    )
            elif child.type == "import_declaration":
                self._collect_imports(child, ctx)
        imports.update(ctx.imports.values())
        imports.update(ctx.unaliased)

        for child in root.named_children:
            if child.type == "type_declaration":
                for spec in child.named_children:
                    if spec.type in {"type_spec", "type_alias"}:
                        declaration = self._declaration(spec, child, ctx)
                        unit.types.setdefault(declaration.name, declaration)
            elif child.type == "method_declaration":
                self._collect_module_info(child, unit, ctx)

        for call in _walk(root, "call_expression"):
            registered = self._registered_type(call, ctx)
            if registered is not None:
                unit.registered[registered] = ctx.location(call)

    def _collect_imports(self, declaration: Node, ctx: _FileContext) -> None:
        for spec in _walk(declaration, "import_spec"):
            path_node = spec.child_by_field_name("path")
            if path_node is None:
                continue
            import_path = _string_literal(path_node, ctx)
            name_node = spec.child_by_field_name("name")
            if name_node is None:
                ctx.imports.setdefault(default_package_name(import_path), import_path)
                ctx.unaliased.append(import_path)
                continue
            alias = ctx.text(name_node)
            if alias in {"_", "."}:
                continue
            ctx.imports[alias] = import_path

    def _package_for_qualifier(self, qualifier: str, ctx: _FileContext) -> Optional[str]:
        if qualifier in ctx.imports:
            return ctx.imports[qualifier]
        # package names need not match the last import path element
        for import_path in ctx.unaliased:
            if not self.can_resolve(import_path):
                continue
            units = self.resolve(import_path)
            if units and units[0].name == qualifier:
                ctx.imports[qualifier] = import_path
                return import_path
        return None

    # ------------------------------------------------------------------
    # Types

    def _declaration(self, spec: Node, declaration: Node, ctx: _FileContext) -> TypeDeclaration:
        name_node = spec.child_by_field_name("name")
        type_node = spec.child_by_field_name("type")
        name = ctx.text(name_node) if name_node is not None else ""
        if spec.child_by_field_name("type_parameters") is not None:
            underlying: TypeDescriptor = UnsupportedType(f"generic type {name}")
        elif type_node is None:
            underlying = UnsupportedType(f"type {name} without a definition")
        else:
            underlying = self._descriptor(type_node, ctx)
        doc = _doc_comment(spec, ctx) or _doc_comment(declaration, ctx)
        return TypeDeclaration(
            package=ctx.package,
            name=name,
            underlying=underlying,
            doc=doc,
            alias=spec.type == "type_alias",
        )

    def _descriptor(self, node: Node, ctx: _FileContext) -> TypeDescriptor:
        kind = node.type
        if kind == "type_identifier":
            name = ctx.text(node)
            if name in BASIC_KINDS:
                return BasicType(name)
            if name in _INTERFACE_NAMES:
                return InterfaceType()
            return NamedType(ctx.package, name)
        if kind == "qualified_type":
            package_node = node.child_by_field_name("package")
            name_node = node.child_by_field_name("name")
            qualifier = ctx.text(package_node) if package_node is not None else ""
            package = self._package_for_qualifier(qualifier, ctx)
            if package is None:
                raise MalformedMetadataError(
                    f"unknown package qualifier {qualifier!r}", context=ctx.location(node)
                )
            return NamedType(package, ctx.text(name_node) if name_node is not None else "")
        if kind == "pointer_type":
            return PointerType(self._descriptor(_type_child(node), ctx))
        if kind in _SLICE_NODES:
            element = node.child_by_field_name("element")
            return SliceType(self._descriptor(element, ctx)) if element is not None else UnsupportedType(ctx.text(node))
        if kind == "map_type":
            key = node.child_by_field_name("key")
            value = node.child_by_field_name("value")
            if key is None or value is None:
                return UnsupportedType(ctx.text(node))
            return MapType(self._descriptor(key, ctx), self._descriptor(value, ctx))
        if kind == "interface_type":
            return InterfaceType()
        if kind == "struct_type":
            return StructType(fields=tuple(self._fields(node, ctx)))
        if kind == "parenthesized_type":
            return self._descriptor(_type_child(node), ctx)
        return UnsupportedType(f"{kind.replace('_', ' ')} {ctx.text(node)!r}")

    def _fields(self, struct_node: Node, ctx: _FileContext) -> Iterator[FieldDescriptor]:
        field_list = _first_named(struct_node, "field_declaration_list")
        if field_list is None:
            return
        for declaration in field_list.named_children:
            if declaration.type != "field_declaration":
                continue
            type_node = declaration.child_by_field_name("type")
            if type_node is None:
                continue
            tag_node = declaration.child_by_field_name("tag")
            tag = _string_literal(tag_node, ctx) if tag_node is not None else ""
            doc = _doc_comment(declaration, ctx)
            descriptor = self._descriptor(type_node, ctx)
            names = [ctx.text(name) for name in declaration.children_by_field_name("name")]
            if names:
                for name in names:
                    yield FieldDescriptor(
                        name=name,
                        type=descriptor,
                        tag=tag,
                        exported=is_exported(name),
                        doc=doc,
                    )
                continue
            if any(child.type == "*" for child in declaration.children):
                descriptor = PointerType(descriptor)
            name = _embedded_name(type_node, ctx)
            yield FieldDescriptor(
                name=name,
                type=descriptor,
                tag=tag,
                embedded=True,
                exported=is_exported(name),
                doc=doc,
            )

    # ------------------------------------------------------------------
    # Module registrations

    def _registered_type(self, call: Node, ctx: _FileContext) -> Optional[str]:
        function = call.child_by_field_name("function")
        if function is None:
            return None
        if function.type == "identifier":
            if ctx.text(function) != REGISTER_FUNCTION or ctx.package != self.core_package:
                return None
        elif function.type == "selector_expression":
            selected = function.child_by_field_name("field")
            operand = function.child_by_field_name("operand")
            if selected is None or ctx.text(selected) != REGISTER_FUNCTION:
                return None
            if operand is None or operand.type != "identifier":
                return None
            package = self._package_for_qualifier(ctx.text(operand), ctx)
            if package is None:
                return None
            if package != self.core_package:
                raise ConsistencyError(
                    f"{REGISTER_FUNCTION} call does not resolve to {self.core_package}; "
                    f"resolves to: {package}",
                    context=ctx.location(call),
                )
        else:
            return None

        arguments = call.child_by_field_name("arguments")
        args = [arg for arg in arguments.named_children if arg.type != "comment"] if arguments else []
        if len(args) != 1:
            raise MalformedMetadataError(
                f"wrong number of arguments to {REGISTER_FUNCTION}: {len(args)} (expected 1)",
                context=ctx.location(call),
            )
        return _registered_name(args[0], ctx)

    def _collect_module_info(self, method: Node, unit: Unit, ctx: _FileContext) -> None:
        name_node = method.child_by_field_name("name")
        if name_node is None or ctx.text(name_node) != MODULE_INFO_METHOD:
            return
        receiver = method.child_by_field_name("receiver")
        parameters = (
            [p for p in receiver.named_children if p.type == "parameter_declaration"]
            if receiver is not None
            else []
        )
        if len(parameters) != 1:
            return
        receiver_type = parameters[0].child_by_field_name("type")
        if receiver_type is not None and receiver_type.type == "pointer_type":
            receiver_type = _type_child(receiver_type)
        if receiver_type is None or receiver_type.type != "type_identifier":
            raise MalformedMetadataError(
                "expected identifier or pointer for receiver type",
                context=ctx.location(method),
            )
        type_name = ctx.text(receiver_type)
        unit.implementations[type_name] = self._module_id(method, ctx)

    def _module_id(self, method: Node, ctx: _FileContext) -> Optional[str]:
        body = method.child_by_field_name("body")
        statement = next(_walk(body, "return_statement", skip={"func_literal"}), None) if body else None
        if statement is None:
            raise MalformedMetadataError(
                f"{MODULE_INFO_METHOD} method has no return statement", context=ctx.location(method)
            )
        expressions = _first_named(statement, "expression_list")
        results = (
            [node for node in expressions.named_children if node.type != "comment"]
            if expressions is not None
            else []
        )
        if len(results) != 1:
            raise MalformedMetadataError(
                f"expected exactly 1 return value, got {len(results)}",
                context=ctx.location(statement),
            )
        literal = results[0]
        if literal.type == "unary_expression":
            literal = literal.child_by_field_name("operand") or literal
        if literal.type != "composite_literal":
            raise MalformedMetadataError(
                f"expected composite literal return value, got {ctx.text(literal)!r}",
                context=ctx.location(statement),
            )
        body_node = literal.child_by_field_name("body")
        for element in body_node.named_children if body_node is not None else []:
            if element.type != "keyed_element":
                continue
            parts = [_unwrap_element(part) for part in element.named_children if part.type != "comment"]
            if len(parts) < 2 or ctx.text(parts[0]) != "ID":
                continue
            value = parts[-1]
            if value.type not in {"interpreted_string_literal", "raw_string_literal"}:
                raise MalformedMetadataError(
                    f"module ID must be a static string literal, got {ctx.text(value)!r}",
                    context=ctx.location(value),
                )
            return _string_literal(value, ctx) or None
        return None


def escape_module_path(module_path: str) -> str:
    """Escape upper-case letters the way the Go module cache does."""
    return "".join(f"!{char.lower()}" if char.isupper() else char for char in module_path)


def default_package_name(import_path: str) -> str:
    """Guess a package name from its import path (``gopkg.in/yaml.v3`` -> ``yaml``)."""
    parts = import_path.split("/")
    last = parts[-1]
    if len(parts) > 1 and last.startswith("v") and last[1:].isdigit():
        last = parts[-2]
    last = last.split(".")[0]
    if last.startswith("go-"):
        last = last[3:]
    return last.replace("-", "_")


def _relative(package: str, module: str) -> str:
    return package[len(module) :].lstrip("/")


def _walk(node: Node, node_type: str, *, skip: frozenset[str] | set[str] = frozenset()) -> Iterator[Node]:
    """Yield descendants of ``node`` with ``node_type`` in pre-order."""
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type == node_type:
            yield current
        if current is not node and current.type in skip:
            continue
        stack.extend(reversed(current.named_children))


def _first_named(node: Node, node_type: str) -> Optional[Node]:
    for child in node.named_children:
        if child.type == node_type:
            return child
    return None


def _type_child(node: Node) -> Node:
    for child in node.named_children:
        if child.type != "comment":
            return child
    raise MalformedMetadataError(f"{node.type} without an element type")


def _unwrap_element(node: Node) -> Node:
    if node.type == "literal_element" and node.named_children:
        return node.named_children[0]
    return node


def _embedded_name(type_node: Node, ctx: _FileContext) -> str:
    if type_node.type == "qualified_type":
        name_node = type_node.child_by_field_name("name")
        return ctx.text(name_node) if name_node is not None else ""
    if type_node.type == "generic_type":
        inner = type_node.child_by_field_name("type")
        return _embedded_name(inner, ctx) if inner is not None else ""
    return ctx.text(type_node)


def _registered_name(argument: Node, ctx: _FileContext) -> str:
    node = argument
    if node.type == "unary_expression":
        node = node.child_by_field_name("operand") or node
    if node.type == "composite_literal":
        type_node = node.child_by_field_name("type")
        if type_node is not None and type_node.type == "type_identifier":
            return ctx.text(type_node)
    elif node.type == "call_expression":
        function = node.child_by_field_name("function")
        arguments = node.child_by_field_name("arguments")
        if function is not None and ctx.text(function) == "new" and arguments is not None:
            args = [arg for arg in arguments.named_children if arg.type != "comment"]
            if len(args) == 1 and args[0].type in {"identifier", "type_identifier"}:
                return ctx.text(args[0])
        raise MalformedMetadataError(
            f"unknown function call in {REGISTER_FUNCTION}(): only new() is supported",
            context=ctx.location(argument),
        )
    raise MalformedMetadataError(
        f"unexpected argument to {REGISTER_FUNCTION}(): {ctx.text(argument)!r}; "
        "expected a composite literal or new()",
        context=ctx.location(argument),
    )


def _string_literal(node: Node, ctx: _FileContext) -> str:
    text = ctx.text(node)
    if node.type == "raw_string_literal":
        return text[1:-1].replace("\r", "")
    try:
        value = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedMetadataError(
            f"unsupported string literal {text}", context=ctx.location(node)
        ) from exc
    return str(value)


def _doc_comment(node: Node, ctx: _FileContext) -> str:
    """Return the comment block directly above ``node``, markers removed."""
    comments: List[Node] = []
    row = node.start_point[0]
    sibling = node.prev_named_sibling
    while sibling is not None and sibling.type == "comment":
        if sibling.end_point[0] < row - 1:
            break
        previous = sibling.prev_named_sibling
        if (
            previous is not None
            and previous.type != "comment"
            and previous.end_point[0] == sibling.start_point[0]
        ):
            # trailing comment of the previous line
            break
        comments.append(sibling)
        row = sibling.start_point[0]
        sibling = previous
    lines: List[str] = []
    for comment in reversed(comments):
        text = ctx.text(comment)
        if text.startswith("//"):
            line = text[2:]
            if line.startswith(("go:", "line ", "nolint")):
                continue
            lines.append(line[1:] if line.startswith(" ") else line)
        else:
            lines.extend(line.strip() for line in text[2:-2].splitlines())
    return "\n".join(lines).strip()


__all__ = [
    "DEFAULT_CORE_PACKAGE",
    "GO_LANGUAGE",
    "GoSourceProvider",
    "default_package_name",
    "escape_module_path",
]
