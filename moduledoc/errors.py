"""Error taxonomy shared across moduledoc components."""

from __future__ import annotations

from typing import Optional, Sequence


class ModuleDocError(RuntimeError):
    """Base class for failures raised while building or querying type graphs.

    ``context`` names the config path or type identity that produced the
    failure so it can be diagnosed without re-running with verbose logs.
    """

    def __init__(self, message: str, *, context: Optional[str] = None) -> None:
        self.context = context
        if context:
            message = f"{message} (at {context})"
        super().__init__(message)


class NotFoundError(ModuleDocError):
    """A type, package or extension identifier could not be located."""


class BuildError(ModuleDocError):
    """The representation builder could not model a type."""


class UnsupportedShapeError(BuildError):
    """A type structure (or traversal step) the system cannot model."""


class MalformedMetadataError(BuildError):
    """Field tags or registration metadata could not be parsed statically."""


class AmbiguousRegistrationError(ModuleDocError):
    """An extension identifier resolved to more than one distinct type."""

    def __init__(
        self,
        message: str,
        candidates: Sequence[str],
        *,
        context: Optional[str] = None,
    ) -> None:
        super().__init__(message, context=context)
        self.candidates = list(candidates)


class ConsistencyError(ModuleDocError):
    """Stored data or registrations contradict each other."""


__all__ = [
    "AmbiguousRegistrationError",
    "BuildError",
    "ConsistencyError",
    "MalformedMetadataError",
    "ModuleDocError",
    "NotFoundError",
    "UnsupportedShapeError",
]
