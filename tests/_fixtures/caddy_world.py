"""Manifest documents describing a trimmed-down Caddy configuration tree."""

from __future__ import annotations

import copy
from pathlib import Path
from typing import Any, Dict, List

import yaml

CORE = "github.com/caddyserver/caddy/v2"
HTTP = "github.com/caddyserver/caddy/v2/modules/caddyhttp"
FILESERVER = "github.com/caddyserver/caddy/v2/modules/caddyhttp/fileserver"
VERSION = "v2.7.6"

_CORE_DOCUMENT: Dict[str, Any] = {
    "package": CORE,
    "name": "caddy",
    "module": CORE,
    "version": VERSION,
    "imports": ["encoding/json"],
    "types": {
        "Config": {
            "doc": "Config is the top of Caddy's configuration structure.",
            "fields": [
                {
                    "name": "Admin",
                    "type": "*AdminConfig",
                    "tag": 'json:"admin,omitempty"',
                    "doc": "Admin configures the admin endpoint.",
                },
                {"name": "Logging", "type": "*Logging", "tag": 'json:"logging,omitempty"'},
                {
                    "name": "AppsRaw",
                    "type": "ModuleMap",
                    "tag": 'json:"apps,omitempty" caddy:"namespace="',
                    "doc": "AppsRaw are the apps that Caddy will load and run.",
                },
                {"name": "apps", "type": "map[string]App"},
            ],
        },
        "AdminConfig": {
            "doc": "AdminConfig configures Caddy's API endpoint.",
            "fields": [
                {
                    "name": "Disabled",
                    "type": "bool",
                    "tag": 'json:"disabled,omitempty"',
                    "doc": "If true, the admin endpoint will be completely disabled.",
                },
                {"name": "Listen", "type": "string", "tag": 'json:"listen,omitempty"'},
                {"name": "Config", "type": "*ConfigSettings", "tag": 'json:"config,omitempty"'},
            ],
        },
        "ConfigSettings": {
            "fields": [
                {"name": "Persist", "type": "*bool", "tag": 'json:"persist,omitempty"'},
                {
                    "name": "LoadRaw",
                    "type": "json.RawMessage",
                    "tag": 'json:"load,omitempty" caddy:"namespace=caddy.config_loaders inline_key=module"',
                },
            ]
        },
        "Logging": {
            "fields": [
                {"name": "Logs", "type": "map[string]*CustomLog", "tag": 'json:"logs,omitempty"'},
            ]
        },
        "CustomLog": {
            "doc": "CustomLog represents a custom logger configuration.",
            "fields": [{"name": "Level", "type": "string", "tag": 'json:"level,omitempty"'}],
        },
        "App": {"type": "interface{}", "doc": "App is a thing that Caddy runs."},
        "ModuleMap": {
            "type": "map[string]json.RawMessage",
            "doc": "ModuleMap is a map that can contain multiple modules.",
        },
    },
}

_HTTP_DOCUMENT: Dict[str, Any] = {
    "package": HTTP,
    "name": "caddyhttp",
    "module": CORE,
    "version": VERSION,
    "imports": [CORE, "encoding/json"],
    "types": {
        "App": {
            "doc": "App is a robust, production-ready HTTP server.",
            "module_id": "http",
            "fields": [
                {
                    "name": "HTTPPort",
                    "type": "int",
                    "tag": 'json:"http_port,omitempty"',
                    "doc": "HTTPPort specifies the port to use for HTTP.",
                },
                {
                    "name": "Servers",
                    "type": "map[string]*Server",
                    "tag": 'json:"servers,omitempty"',
                    "doc": "Servers is the list of servers, keyed by arbitrary names.",
                },
            ],
        },
        "Server": {
            "doc": "Server describes an HTTP server.",
            "fields": [
                {"name": "Listen", "type": "[]string", "tag": 'json:"listen,omitempty"'},
                {"name": "Routes", "type": "RouteList", "tag": 'json:"routes,omitempty"'},
            ],
        },
        "RouteList": {"type": "[]Route", "doc": "RouteList is a list of server routes."},
        "Route": {
            "doc": "Route consists of a set of rules for matching HTTP requests.",
            "fields": [
                {"name": "Group", "type": "string", "tag": 'json:"group,omitempty"'},
                {
                    "name": "HandlersRaw",
                    "type": "[]json.RawMessage",
                    "tag": 'json:"handle,omitempty" caddy:"namespace=http.handlers inline_key=handler"',
                    "doc": "The list of handlers for this route.",
                },
                {"name": "Terminal", "type": "bool", "tag": 'json:"terminal,omitempty"'},
            ],
        },
        "StaticResponse": {
            "doc": "StaticResponse implements a simple responder for static responses.",
            "module_id": "http.handlers.static_response",
            "fields": [
                {"name": "StatusCode", "type": "string", "tag": 'json:"status_code,omitempty"'},
                {"name": "Body", "type": "string", "tag": 'json:"body,omitempty"'},
            ],
        },
        "Subroute": {
            "doc": "Subroute implements a handler that compiles and executes routes.",
            "module_id": "http.handlers.subroute",
            "fields": [
                {"name": "Routes", "type": "RouteList", "tag": 'json:"routes,omitempty"'},
            ],
        },
    },
    "registrations": ["App", "StaticResponse", "Subroute"],
}

_FILESERVER_DOCUMENT: Dict[str, Any] = {
    "package": FILESERVER,
    "name": "fileserver",
    "module": CORE,
    "version": VERSION,
    "imports": [HTTP],
    "types": {
        "FileServer": {
            "doc": "FileServer implements a handler that serves static files.",
            "module_id": "http.handlers.file_server",
            "fields": [
                {
                    "name": "Root",
                    "type": "string",
                    "tag": 'json:"root,omitempty"',
                    "doc": "The path to the root of the site.",
                },
                {"name": "Hide", "type": "[]string", "tag": 'json:"hide,omitempty"'},
                {"name": "Browse", "type": "*Browse", "tag": 'json:"browse,omitempty"'},
            ],
        },
        "Browse": {
            "fields": [
                {"name": "TemplateFile", "type": "string", "tag": 'json:"template_file,omitempty"'},
            ]
        },
    },
    "registrations": ["FileServer"],
}


def manifest_documents() -> List[Dict[str, Any]]:
    """Return fresh copies of the manifest documents so tests can mutate them."""
    return copy.deepcopy([_CORE_DOCUMENT, _HTTP_DOCUMENT, _FILESERVER_DOCUMENT])


def write_manifests(directory: Path) -> Path:
    """Write one YAML manifest per package into ``directory``."""
    directory.mkdir(parents=True, exist_ok=True)
    for document in manifest_documents():
        name = document["name"] + ".yml"
        (directory / name).write_text(yaml.safe_dump(document, sort_keys=False), encoding="utf-8")
    return directory


__all__ = [
    "CORE",
    "FILESERVER",
    "HTTP",
    "VERSION",
    "manifest_documents",
    "write_manifests",
]
