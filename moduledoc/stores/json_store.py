"""JSON-file storage backend for type representations."""

from __future__ import annotations

from datetime import UTC, datetime
import json
from pathlib import Path
from typing import Dict, List

from ..logging import get_logger
from ..models import Value
from .memory import MemoryStorage, TypeKey

_STORE_VERSION = 1


class JsonFileStorage(MemoryStorage):
    """Memory storage that loads from and persists to a JSON document.

    Entries are written only by :meth:`persist`, and only when something
    changed since the last load or persist.
    """

    def __init__(self, path: Path) -> None:
        super().__init__()
        self._path = path
        self._dirty = False
        self._updated: Dict[TypeKey, str] = {}
        self.logger = get_logger("stores.json")
        self._load(path)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def dirty(self) -> bool:
        return self._dirty

    def put_type(self, package: str, name: str, version: str, value: Value) -> None:
        super().put_type(package, name, version, value)
        with self._lock:
            self._updated[(package, name, version or "")] = (
                datetime.now(UTC).isoformat().replace("+00:00", "Z")
            )

    def persist(self) -> None:
        with self._lock:
            if not self._dirty:
                return
            types = [
                {
                    "package": package,
                    "name": name,
                    "version": version,
                    "value": payload,
                    "updated_at": self._updated.get((package, name, version), ""),
                }
                for (package, name, version), payload in self._types.items()
            ]
            extensions = {
                extension_id: [list(key) for key in keys]
                for extension_id, keys in sorted(self._extensions.items())
            }
            payload = {
                "version": _STORE_VERSION,
                "types": types,
                "extensions": extensions,
            }
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            self._dirty = False
        self.logger.debug("Persisted %d types to %s", len(types), self._path)

    def _mark_dirty(self) -> None:
        self._dirty = True

    # ------------------------------------------------------------------
    # Internal helpers

    def _load(self, path: Path) -> None:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return
        except (OSError, json.JSONDecodeError) as exc:
            self.logger.warning("Ignoring unreadable type store %s: %s", path, exc)
            return
        if not isinstance(data, dict) or data.get("version") != _STORE_VERSION:
            return

        records = data.get("types")
        if isinstance(records, list):
            for record in records:
                key = _record_key(record)
                if key is None:
                    continue
                try:
                    # validates the payload before accepting it
                    Value.from_dict(record["value"])
                except (ValueError, TypeError):
                    continue
                self._types[key] = record["value"]
                updated_at = record.get("updated_at")
                if isinstance(updated_at, str):
                    self._updated[key] = updated_at

        extensions = data.get("extensions")
        if isinstance(extensions, dict):
            for extension_id, raw_keys in extensions.items():
                if not isinstance(extension_id, str) or not isinstance(raw_keys, list):
                    continue
                keys: List[TypeKey] = []
                for raw in raw_keys:
                    if (
                        isinstance(raw, list)
                        and len(raw) == 3
                        and all(isinstance(part, str) for part in raw)
                        and tuple(raw) in self._types
                    ):
                        keys.append((raw[0], raw[1], raw[2]))
                if keys:
                    self._extensions[extension_id] = keys
        self._dirty = False


def _record_key(record: object) -> TypeKey | None:
    if not isinstance(record, dict):
        return None
    package = record.get("package")
    name = record.get("name")
    version = record.get("version", "")
    if not isinstance(package, str) or not isinstance(name, str) or not isinstance(version, str):
        return None
    if not isinstance(record.get("value"), dict):
        return None
    return (package, name, version)


__all__ = ["JsonFileStorage"]
