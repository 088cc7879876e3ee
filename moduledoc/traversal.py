"""Answer slash-delimited config path queries against the type graph."""

from __future__ import annotations

from typing import Dict, Optional

from .dereference import Dereferencer
from .errors import AmbiguousRegistrationError, NotFoundError, UnsupportedShapeError
from .logging import get_logger
from .models import EXTENSION_KINDS, Kind, TraversalResult, Value
from .stores import Storage
from .utils import config_path_parts, join_docs


class TypeTraverser:
    """Walks struct fields, container elements and module resolutions."""

    def __init__(self, storage: Storage, dereferencer: Optional[Dereferencer] = None) -> None:
        self.storage = storage
        self.dereferencer = dereferencer or Dereferencer(storage)
        self.logger = get_logger("traversal")

    def traverse(self, path: str, start: Value) -> TraversalResult:
        """Return the value at ``path`` below ``start`` and its nearest named type.

        ``start`` is copied first, so the caller's value is never annotated.
        """
        if start.kind is None or not start.type_name:
            raise UnsupportedShapeError("traversal must start at an actual named type")
        parts = config_path_parts(path)
        value = start.copy()
        if not parts:
            return TraversalResult(exact=value, nearest=value)

        nearest = value
        last = len(parts) - 1
        index = 0
        while index < len(parts):
            part = parts[index]
            consumed = "/" + "/".join(parts[:index])

            value = self.dereferencer.dereference(value)
            if value.type_name:
                nearest = value

            if value.kind is Kind.STRUCT:
                struct_field = value.field(part)
                if struct_field is None:
                    raise NotFoundError(f"struct field {part!r} not found", context=consumed)
                value = struct_field.value
                if index == last:
                    # the field doc is what describes this particular use of the type
                    value.doc = join_docs(value.doc, struct_field.doc)
            elif value.kind in EXTENSION_KINDS:
                namespace = value.module_namespace
                module_id = f"{namespace}.{part}" if namespace else part
                inline_key = value.module_inline_key if index == last else None
                value = self._resolve_module(module_id, consumed)
                value.module_inline_key = inline_key
            elif value.is_container and value.elems is not None:
                value = value.elems
                continue
            else:
                kind = value.kind.value if value.kind is not None else "any"
                raise UnsupportedShapeError(
                    f"traversal not supported into {kind} value with segment {part!r}",
                    context=consumed,
                )
            index += 1

        value = self.dereferencer.dereference(value)
        if value.type_name:
            nearest = value
        return TraversalResult(exact=value, nearest=nearest)

    def _resolve_module(self, module_id: str, consumed: str) -> Value:
        candidates = self.storage.get_by_extension_id(module_id)
        if not candidates:
            raise NotFoundError(f"no module registered with ID {module_id!r}", context=consumed)
        distinct: Dict[str, Value] = {}
        for candidate in candidates:
            distinct.setdefault(candidate.type_name or candidate.same_as, candidate)
        if len(distinct) > 1:
            raise AmbiguousRegistrationError(
                f"module ID {module_id!r} is registered by {len(distinct)} different types",
                sorted(distinct),
                context=consumed,
            )
        self.logger.debug("Resolved module %s", module_id)
        return next(iter(distinct.values()))


__all__ = ["TypeTraverser"]
