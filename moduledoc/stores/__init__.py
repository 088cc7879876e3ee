"""Storage backends for type representations."""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from .base import Storage
from .json_store import JsonFileStorage
from .memory import MemoryStorage


def open_storage(path: Optional[Path] = None) -> Storage:
    """Return a JSON-file store for ``path``, or an in-memory store without one."""
    if path is None:
        return MemoryStorage()
    return JsonFileStorage(path)


__all__ = ["JsonFileStorage", "MemoryStorage", "Storage", "open_storage"]
