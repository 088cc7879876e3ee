"""Structural documentation of configuration types and their extension modules."""

from .driver import Driver, create_driver
from .errors import (
    AmbiguousRegistrationError,
    BuildError,
    ConsistencyError,
    MalformedMetadataError,
    ModuleDocError,
    NotFoundError,
    UnsupportedShapeError,
)
from .models import ExtensionModule, Kind, StructField, TraversalResult, Value

__all__ = [
    "AmbiguousRegistrationError",
    "BuildError",
    "ConsistencyError",
    "Driver",
    "ExtensionModule",
    "Kind",
    "MalformedMetadataError",
    "ModuleDocError",
    "NotFoundError",
    "StructField",
    "TraversalResult",
    "UnsupportedShapeError",
    "Value",
    "create_driver",
]
