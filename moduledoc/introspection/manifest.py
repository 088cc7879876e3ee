"""Introspection provider backed by YAML/JSON type manifests.

A manifest describes one package per document (or several under a
``units:`` list)::

    package: example.com/app/http
    module: example.com/app
    version: v1.2.0
    imports: [encoding/json]
    types:
      App:
        doc: App is the HTTP app.
        module_id: http
        fields:
          - name: Servers
            type: map[string]*Server
            tag: 'json:"servers,omitempty"'
      Handlers:
        type: '[]json.RawMessage'
    registrations: [App]

Type expressions follow Go syntax; bare names refer to the declaring
package and ``json.X`` style names resolve through ``imports``.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import yaml

from ..errors import MalformedMetadataError, NotFoundError
from .base import IntrospectionProvider, ModuleRef, Unit
from .descriptors import StructType, TypeDeclaration, parse_fields, parse_type_expr

_MANIFEST_SUFFIXES = {".yml", ".yaml", ".json"}


class ManifestProvider(IntrospectionProvider):
    """Serves units declared in manifest documents."""

    def __init__(
        self,
        directory: Optional[Path] = None,
        documents: Optional[Sequence[Mapping[str, Any]]] = None,
        *,
        requirements: Optional[Mapping[str, str]] = None,
    ) -> None:
        super().__init__(requirements)
        # package path -> version -> unit
        self._packages: Dict[str, Dict[str, Unit]] = {}
        if directory is not None:
            self._load_directory(directory)
        for index, document in enumerate(documents or []):
            self.add_document(document, source=f"<document {index}>")

    @classmethod
    def from_documents(
        cls,
        *documents: Mapping[str, Any],
        requirements: Optional[Mapping[str, str]] = None,
    ) -> "ManifestProvider":
        return cls(documents=list(documents), requirements=requirements)

    def add_document(self, document: Any, *, source: str = "<memory>") -> None:
        if not isinstance(document, Mapping):
            raise MalformedMetadataError("manifest document must be a mapping", context=source)
        raw_units = document.get("units")
        if raw_units is None:
            raw_units = [document]
        if not isinstance(raw_units, list):
            raise MalformedMetadataError("'units' must be a list", context=source)
        for raw in raw_units:
            unit = _parse_unit(raw, source)
            self._packages.setdefault(unit.path, {})[unit.version] = unit
            self.logger.debug("Registered manifest unit %s@%s", unit.path, unit.version or "-")

    def packages(self) -> List[str]:
        return sorted(self._packages)

    def can_resolve(self, package: str) -> bool:
        return package in self._packages

    def locate_module(self, package: str) -> ModuleRef:
        unit = self._select(package, "")
        if unit is None:
            raise NotFoundError(f"no module provides package {package}", context=package)
        return ModuleRef(path=unit.module, version=unit.version)

    def _load(self, pattern: str, version: str) -> List[Unit]:
        if pattern.endswith("/..."):
            base = pattern[: -len("/...")]
            packages = [
                package
                for package in sorted(self._packages)
                if package == base or package.startswith(base + "/")
            ]
        else:
            packages = [pattern] if pattern in self._packages else []
        units: List[Unit] = []
        for package in packages:
            unit = self._select(package, version)
            if unit is not None:
                units.append(unit)
        return units

    def _select(self, package: str, version: str) -> Optional[Unit]:
        versions = self._packages.get(package)
        if not versions:
            return None
        if version:
            return versions.get(version)
        required = self.requirement_for(package)
        if required and required in versions:
            return versions[required]
        chosen = self._pick_version(versions)
        return versions[chosen] if chosen is not None else None

    def _load_directory(self, directory: Path) -> None:
        if not directory.is_dir():
            raise NotFoundError(f"manifest directory {directory} does not exist")
        for path in sorted(directory.rglob("*")):
            if path.suffix.lower() not in _MANIFEST_SUFFIXES or not path.is_file():
                continue
            text = path.read_text(encoding="utf-8")
            try:
                if path.suffix.lower() == ".json":
                    documents: Iterable[Any] = [json.loads(text)]
                else:
                    documents = [doc for doc in yaml.safe_load_all(text) if doc is not None]
            except (json.JSONDecodeError, yaml.YAMLError) as exc:
                raise MalformedMetadataError(
                    f"could not parse manifest: {exc}", context=str(path)
                ) from exc
            for document in documents:
                self.add_document(document, source=str(path))


def _parse_unit(raw: Any, source: str) -> Unit:
    if not isinstance(raw, Mapping):
        raise MalformedMetadataError("manifest unit must be a mapping", context=source)
    package = raw.get("package")
    if not isinstance(package, str) or not package:
        raise MalformedMetadataError("manifest unit needs a 'package' path", context=source)
    context = f"{source}: {package}"

    imports = _string_list(raw.get("imports"), "imports", context)
    short_names = {_default_package_name(path): path for path in imports}
    module = str(raw.get("module") or package)
    unit = Unit(
        path=package,
        name=str(raw.get("name") or _default_package_name(package)),
        version=str(raw.get("version") or ""),
        module=module,
        imports=imports,
    )

    raw_types = raw.get("types") or {}
    if not isinstance(raw_types, Mapping):
        raise MalformedMetadataError("'types' must be a mapping", context=context)
    for name, spec in raw_types.items():
        type_context = f"{context}.{name}"
        if not isinstance(spec, Mapping):
            spec = {"type": spec}
        if "fields" in spec:
            underlying: Any = StructType(
                fields=parse_fields(spec["fields"] or [], package, imports=short_names)
            )
        elif "type" in spec:
            underlying = parse_type_expr(spec["type"], package, imports=short_names)
        else:
            raise MalformedMetadataError("type needs 'fields' or 'type'", context=type_context)
        unit.types[str(name)] = TypeDeclaration(
            package=package,
            name=str(name),
            underlying=underlying,
            doc=str(spec.get("doc") or ""),
            alias=bool(spec.get("alias", False)),
        )
        if "module_id" in spec:
            module_id = spec["module_id"]
            if module_id is not None and not isinstance(module_id, str):
                raise MalformedMetadataError(
                    f"module id must be a static string, got {module_id!r}",
                    context=type_context,
                )
            unit.implementations[str(name)] = module_id or None

    registrations = raw.get("registrations") or []
    if isinstance(registrations, Mapping):
        unit.registered.update({str(k): str(v) for k, v in registrations.items()})
    else:
        for name in _string_list(registrations, "registrations", context):
            unit.registered[name] = source
    return unit


def _string_list(raw: Any, label: str, context: str) -> List[str]:
    if raw is None:
        return []
    if not isinstance(raw, list) or not all(isinstance(item, str) for item in raw):
        raise MalformedMetadataError(f"'{label}' must be a list of strings", context=context)
    return list(raw)


def _default_package_name(package: str) -> str:
    parts = package.split("/")
    last = parts[-1]
    if len(parts) > 1 and last.startswith("v") and last[1:].isdigit():
        last = parts[-2]
    return last.split(".")[0].replace("-", "_")


__all__ = ["ManifestProvider"]
