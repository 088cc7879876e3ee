"""In-memory storage backend."""

from __future__ import annotations

import threading
from typing import Dict, List, Optional, Tuple

from ..errors import ConsistencyError
from ..models import Value
from ..utils import identity_key
from .base import Storage

TypeKey = Tuple[str, str, str]


class MemoryStorage(Storage):
    """Keeps serialized representations in process memory.

    Values are stored in their wire form and rebuilt on every read, so
    callers can annotate what they receive without touching stored data.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._types: Dict[TypeKey, Dict[str, object]] = {}
        self._extensions: Dict[str, List[TypeKey]] = {}

    def get_type(self, package: str, name: str, version: str = "") -> Optional[Value]:
        with self._lock:
            key = self._resolve_key(package, name, version)
            if key is None:
                return None
            return Value.from_dict(self._types[key])

    def put_type(self, package: str, name: str, version: str, value: Value) -> None:
        key = (package, name, version or "")
        payload = value.to_dict()
        with self._lock:
            # re-inserting keeps "most recently stored" ordering for version fallback
            self._types.pop(key, None)
            self._types[key] = payload
            self._mark_dirty()

    def get_by_extension_id(self, extension_id: str) -> List[Value]:
        values: List[Value] = []
        with self._lock:
            for package, name, version in self._extensions.get(extension_id, []):
                value = self.get_type(package, name, version)
                if value is None:
                    raise ConsistencyError(
                        f"extension {extension_id!r} points at a type that is not stored",
                        context=identity_key(package, name, version),
                    )
                values.append(value)
        return values

    def set_extension_name(
        self, package: str, type_name: str, extension_id: str, version: str = ""
    ) -> None:
        with self._lock:
            key = self._resolve_key(package, type_name, version)
            if key is None:
                raise ConsistencyError(
                    f"cannot register extension {extension_id!r} for a type that was never stored",
                    context=identity_key(package, type_name, version),
                )
            registered = self._extensions.setdefault(extension_id, [])
            if key not in registered:
                registered.append(key)
                self._mark_dirty()

    def extension_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._extensions)

    def __len__(self) -> int:
        with self._lock:
            return len(self._types)

    def _resolve_key(self, package: str, name: str, version: str) -> Optional[TypeKey]:
        if version:
            exact = (package, name, version)
            if exact in self._types:
                return exact
        bare = (package, name, "")
        if bare in self._types:
            return bare
        if version:
            return None
        latest: Optional[TypeKey] = None
        for key in self._types:
            if key[0] == package and key[1] == name:
                latest = key
        return latest

    def _mark_dirty(self) -> None:
        """Hook for persistent subclasses."""


__all__ = ["MemoryStorage"]
