"""Logging utilities for moduledoc commands and services."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Mapping, Set, Tuple

_LOGGER_NAME = "moduledoc"

# component loggers given their own level by the last configure_logging call
_overridden: Set[str] = set()


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the moduledoc hierarchy."""
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


def parse_component_level(entry: str) -> Tuple[str, int]:
    """Parse ``component=LEVEL`` (e.g. ``builder=debug``) into a name and level."""
    component, sep, level_name = entry.partition("=")
    component = component.strip().strip(".")
    level = logging.getLevelName(level_name.strip().upper())
    if not sep or not component or not isinstance(level, int):
        raise ValueError(f"expected COMPONENT=LEVEL, got {entry!r}")
    return component, level


def configure_logging(
    *,
    verbose: bool = False,
    log_file: Path | None = None,
    levels: Mapping[str, int] | None = None,
) -> logging.Logger:
    """Configure the moduledoc logger with console output and an optional file sink.

    ``levels`` overrides the level of single components such as ``builder``
    or ``introspection``; every other component follows ``verbose``.
    """
    level = logging.DEBUG if verbose else logging.INFO
    overrides: Dict[str, int] = dict(levels or {})
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    for name in _overridden:
        get_logger(name).setLevel(logging.NOTSET)
    _overridden.clear()
    for name, component_level in overrides.items():
        get_logger(name).setLevel(component_level)
        _overridden.add(name)

    # Propagated records skip ancestor levels, so handlers admit the most verbose override.
    handler_level = min([level, *overrides.values()])

    # Reset handlers so repeated CLI invocations in one process do not duplicate output.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(handler_level)
    stream_handler.setFormatter(logging.Formatter("[moduledoc] %(levelname)s %(message)s"))
    logger.addHandler(stream_handler)

    if log_file is not None:
        file_handler = logging.FileHandler(log_file, encoding="utf-8")
        file_handler.setLevel(handler_level)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        logger.addHandler(file_handler)

    return logger


__all__ = ["configure_logging", "get_logger", "parse_component_level"]
