"""Struct tag parsing for serialization names and extension-point metadata.

Tags use the conventional ``key:"value" other:"value"`` layout. Two keys
matter here: the serialization key (``json`` by default) that names a field
in config, and the extension key (``caddy`` by default) whose value is a
space-separated list of ``name=value`` pairs such as
``namespace=http.handlers inline_key=handler``.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

from .errors import MalformedMetadataError

DEFAULT_SERIALIZATION_KEY = "json"
DEFAULT_EXTENSION_KEY = "caddy"


@dataclass(frozen=True)
class ExtensionTag:
    """Extension-point metadata declared on a single field."""

    namespace: Optional[str] = None
    inline_key: Optional[str] = None

    @property
    def is_empty(self) -> bool:
        return self.namespace is None and self.inline_key is None


def parse_struct_tag(tag: str, *, context: Optional[str] = None) -> Dict[str, str]:
    """Parse a whole struct tag into its ``key -> value`` pairs."""
    pairs: Dict[str, str] = {}
    index = 0
    length = len(tag)
    while index < length:
        while index < length and tag[index] == " ":
            index += 1
        if index >= length:
            break

        start = index
        while (
            index < length
            and tag[index] > " "
            and tag[index] not in {":", '"'}
            and tag[index] != "\x7f"
        ):
            index += 1
        if index == start or index + 1 >= length or tag[index] != ":" or tag[index + 1] != '"':
            raise MalformedMetadataError(f"malformed struct tag {tag!r}", context=context)
        name = tag[start:index]
        index += 1

        value_start = index
        index += 1
        while index < length and tag[index] != '"':
            if tag[index] == "\\":
                index += 1
            index += 1
        if index >= length:
            raise MalformedMetadataError(
                f"unterminated value for key {name!r} in struct tag {tag!r}", context=context
            )
        quoted = tag[value_start : index + 1]
        index += 1

        if name in pairs:
            raise MalformedMetadataError(
                f"duplicate key {name!r} in struct tag {tag!r}", context=context
            )
        try:
            pairs[name] = json.loads(quoted)
        except json.JSONDecodeError as exc:
            raise MalformedMetadataError(
                f"invalid quoted value {quoted} in struct tag", context=context
            ) from exc
    return pairs


def lookup_tag(tag: str, key: str, *, context: Optional[str] = None) -> Tuple[str, bool]:
    pairs = parse_struct_tag(tag, context=context)
    if key in pairs:
        return pairs[key], True
    return "", False


def serialization_name(
    tag: str, key: str = DEFAULT_SERIALIZATION_KEY, *, context: Optional[str] = None
) -> Tuple[str, bool]:
    """Return the serialized field name and whether the field is included.

    An empty name with ``True`` means the tag does not name the field.
    ``-`` excludes the field entirely.
    """
    name, _ = lookup_tag(tag, key, context=context)
    comma = name.find(",")
    if comma > 0:
        name = name[:comma].strip()
    elif comma == 0:
        name = ""
    if name == "-":
        return "", False
    return name, True


def extension_tag(
    tag: str, key: str = DEFAULT_EXTENSION_KEY, *, context: Optional[str] = None
) -> ExtensionTag:
    """Extract extension-point metadata from the ``caddy``-style tag value."""
    raw, found = lookup_tag(tag, key, context=context)
    if not found:
        return ExtensionTag()
    fields: Dict[str, str] = {}
    for position, pair in enumerate(raw.split(" ")):
        if not pair:
            continue
        name, separator, value = pair.partition("=")
        if not separator:
            raise MalformedMetadataError(
                f"missing key in {pair!r} (pair {position}) of {key} tag", context=context
            )
        if name in fields:
            raise MalformedMetadataError(
                f"duplicate {name!r} in {key} tag {raw!r}", context=context
            )
        fields[name] = value
    return ExtensionTag(
        namespace=fields.get("namespace"),
        inline_key=fields.get("inline_key"),
    )


__all__ = [
    "DEFAULT_EXTENSION_KEY",
    "DEFAULT_SERIALIZATION_KEY",
    "ExtensionTag",
    "extension_tag",
    "lookup_tag",
    "parse_struct_tag",
    "serialization_name",
]
