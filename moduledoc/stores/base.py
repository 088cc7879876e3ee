"""Storage contract for persisted type representations."""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..models import Value


class Storage(ABC):
    """Durable lookup of type representations and extension registrations.

    Lookups with an empty version must still find versioned entries, and a
    version-qualified entry takes precedence over an unversioned one when
    both exist. Returned values are copies owned by the caller.
    """

    @abstractmethod
    def get_type(self, package: str, name: str, version: str = "") -> Optional[Value]:
        """Return the stored representation of ``package.name`` or None."""

    @abstractmethod
    def put_type(self, package: str, name: str, version: str, value: Value) -> None:
        """Store the expanded representation of ``package.name`` at ``version``."""

    @abstractmethod
    def get_by_extension_id(self, extension_id: str) -> List[Value]:
        """Return every stored type registered under ``extension_id``.

        Extension identifiers are not globally unique, so this can return
        more than one value.
        """

    @abstractmethod
    def set_extension_name(
        self, package: str, type_name: str, extension_id: str, version: str = ""
    ) -> None:
        """Associate an already stored type with an extension identifier."""
