"""Configuration loading for moduledoc (.moduledoc.yml)."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .builder import DEFAULT_PAYLOAD_TYPE
from .tags import DEFAULT_EXTENSION_KEY, DEFAULT_SERIALIZATION_KEY

CONFIG_FILENAME = ".moduledoc.yml"
PROVIDER_KINDS = ("go", "manifest")


class ConfigError(RuntimeError):
    """Raised when the configuration file cannot be parsed."""


@dataclass
class StorageConfig:
    """Where type representations are persisted; None keeps them in memory."""

    path: Optional[Path] = None


@dataclass
class ProviderConfig:
    """Source of type declarations."""

    kind: str = "go"
    modcache: Optional[Path] = None
    goroot: Optional[Path] = None
    manifests: Optional[Path] = None
    modules: Dict[str, Path] = field(default_factory=dict)
    requirements: Dict[str, str] = field(default_factory=dict)


@dataclass
class CoreConfig:
    """The package registering modules and the type path queries start from."""

    package: str = "github.com/caddyserver/caddy/v2"
    root_type: str = "Config"


@dataclass
class TagConfig:
    serialization: str = DEFAULT_SERIALIZATION_KEY
    extension: str = DEFAULT_EXTENSION_KEY


@dataclass
class ModuleDocConfig:
    """Represents the settings defined in .moduledoc.yml."""

    root: Path
    storage: StorageConfig = field(default_factory=StorageConfig)
    provider: ProviderConfig = field(default_factory=ProviderConfig)
    core: CoreConfig = field(default_factory=CoreConfig)
    tags: TagConfig = field(default_factory=TagConfig)
    payload_type: str = DEFAULT_PAYLOAD_TYPE


def load_config(config_path: Path) -> ModuleDocConfig:
    """Load configuration from disk."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return ModuleDocConfig(root=root, provider=_default_provider())

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{config_file.name} must contain a mapping at the root")

    storage_data = _as_dict(data.get("storage"))
    storage = StorageConfig(path=_as_path(storage_data.get("path"), root))

    provider_data = _as_dict(data.get("provider"))
    kind = (_as_str(provider_data.get("kind")) or "go").lower()
    if kind not in PROVIDER_KINDS:
        raise ConfigError(
            f"Unknown provider kind {kind!r}; expected one of {', '.join(PROVIDER_KINDS)}"
        )
    default = _default_provider()
    provider = ProviderConfig(
        kind=kind,
        modcache=_as_path(provider_data.get("modcache"), root) or default.modcache,
        goroot=_as_path(provider_data.get("goroot"), root) or default.goroot,
        manifests=_as_path(provider_data.get("manifests"), root),
        modules=_as_path_map(provider_data.get("modules"), root),
        requirements=_as_str_map(provider_data.get("requirements")),
    )
    if kind == "manifest" and provider.manifests is None:
        raise ConfigError("provider.manifests is required for the manifest provider")

    core_data = _as_dict(data.get("core"))
    core = CoreConfig()
    if core_data:
        core.package = _as_str(core_data.get("package")) or core.package
        core.root_type = _as_str(core_data.get("root_type")) or core.root_type

    tag_data = _as_dict(data.get("tags"))
    tags = TagConfig()
    if tag_data:
        tags.serialization = _as_str(tag_data.get("serialization")) or tags.serialization
        tags.extension = _as_str(tag_data.get("extension")) or tags.extension

    extension_data = _as_dict(data.get("extensions"))
    payload_type = _as_str(extension_data.get("payload_type")) or DEFAULT_PAYLOAD_TYPE
    if "." not in payload_type:
        raise ConfigError(
            f"extensions.payload_type must be a qualified type name, got {payload_type!r}"
        )

    return ModuleDocConfig(
        root=root,
        storage=storage,
        provider=provider,
        core=core,
        tags=tags,
        payload_type=payload_type,
    )


def _default_provider() -> ProviderConfig:
    """Derive Go locations from the environment the way the go tool does."""
    gopath = os.environ.get("GOPATH") or str(Path.home() / "go")
    modcache = os.environ.get("GOMODCACHE") or str(Path(gopath.split(os.pathsep)[0]) / "pkg" / "mod")
    goroot = os.environ.get("GOROOT")
    return ProviderConfig(
        modcache=Path(modcache).expanduser(),
        goroot=Path(goroot).expanduser() if goroot else None,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Any:
    text = path.read_text(encoding="utf-8")
    if not text.strip():
        return {}
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float, bool)) else None


def _as_path(value: Any, root: Path) -> Optional[Path]:
    raw = _as_str(value)
    if not raw:
        return None
    path = Path(raw).expanduser()
    return path if path.is_absolute() else (root / path).resolve()


def _as_path_map(value: Any, root: Path) -> Dict[str, Path]:
    result: Dict[str, Path] = {}
    for key, raw in _as_dict(value).items():
        path = _as_path(raw, root)
        if path is not None:
            result[str(key)] = path
    return result


def _as_str_map(value: Any) -> Dict[str, str]:
    result: Dict[str, str] = {}
    for key, raw in _as_dict(value).items():
        text = _as_str(raw)
        if text:
            result[str(key)] = text
    return result


__all__ = [
    "CONFIG_FILENAME",
    "ConfigError",
    "CoreConfig",
    "ModuleDocConfig",
    "ProviderConfig",
    "StorageConfig",
    "TagConfig",
    "load_config",
]
