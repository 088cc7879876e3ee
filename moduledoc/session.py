"""Build sessions own the transient caches used while constructing type graphs."""

from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Dict, Iterator, Optional, Set

from .logging import get_logger
from .models import Value
from .stores import Storage
from .utils import path_prefixes


class ReadWriteLock:
    """Allows many concurrent readers or a single writer.

    Waiting writers block new readers so a steady stream of lookups cannot
    starve a commit.
    """

    def __init__(self) -> None:
        self._condition = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._condition:
            while self._writer or self._writers_waiting:
                self._condition.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._condition:
                self._readers -= 1
                if not self._readers:
                    self._condition.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._condition:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._condition.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._condition:
                self._writer = False
                self._condition.notify_all()


class BuildSession:
    """State shared by every builder participating in one build.

    ``discovered`` maps identity keys (``fqtn[@version]``) to the expanded
    values committed during this session, ``pending`` maps identities whose
    expansion is in progress to the threads expanding them, and
    ``module_versions`` caches the module version resolved for each module
    path. All of it is discarded on close; only storage entries outlive the
    session.

    A pending identity only breaks cycles for the thread that claimed it.
    Other threads expand it themselves and the first commit wins.
    """

    def __init__(self, storage: Storage) -> None:
        self.storage = storage
        self.lock = ReadWriteLock()
        self.discovered: Dict[str, Value] = {}
        self.pending: Dict[str, Set[int]] = {}
        self.module_versions: Dict[str, str] = {}
        self.closed = False
        self.logger = get_logger("session")

    def _owns(self, identity: str) -> bool:
        return threading.get_ident() in self.pending.get(identity, ())

    def is_known(self, identity: str) -> bool:
        """Whether ``identity`` is committed or being expanded by the calling thread."""
        with self.lock.read():
            return identity in self.discovered or self._owns(identity)

    def is_expanding(self, identity: str) -> bool:
        with self.lock.read():
            return self._owns(identity)

    def claim(self, identity: str) -> bool:
        """Mark ``identity`` as pending for the calling thread.

        Returns False when the identity is already known to this thread, in
        which case the caller should answer with a placeholder.
        """
        with self.lock.write():
            if identity in self.discovered or self._owns(identity):
                return False
            self.pending.setdefault(identity, set()).add(threading.get_ident())
            return True

    def release(self, identity: str) -> None:
        with self.lock.write():
            self._release(identity)

    def commit(self, identity: str, value: Value, package: str, name: str, version: str) -> bool:
        """Record a finished expansion; returns False if another thread committed first."""
        with self.lock.write():
            self._release(identity)
            if identity in self.discovered:
                return False
            self.discovered[identity] = value
            self.storage.put_type(package, name, version, value)
            return True

    def _release(self, identity: str) -> None:
        owners = self.pending.get(identity)
        if owners is None:
            return
        owners.discard(threading.get_ident())
        if not owners:
            del self.pending[identity]

    def cached_version(self, package_path: str) -> Optional[str]:
        with self.lock.read():
            for prefix in path_prefixes(package_path):
                if prefix in self.module_versions:
                    return self.module_versions[prefix]
        return None

    def remember_version(self, module_path: str, version: str) -> None:
        with self.lock.write():
            self.module_versions[module_path] = version

    def close(self) -> None:
        if self.closed:
            return
        self.logger.debug(
            "Closing build session with %d discovered types", len(self.discovered)
        )
        with self.lock.write():
            self.discovered.clear()
            self.pending.clear()
            self.module_versions.clear()
        self.closed = True

    def __enter__(self) -> "BuildSession":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()


__all__ = ["BuildSession", "ReadWriteLock"]
