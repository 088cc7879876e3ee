"""CLI entrypoints for moduledoc commands."""

from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path
from typing import Any

from .config import ConfigError, load_config
from .driver import Driver, create_driver
from .errors import ModuleDocError
from .logging import configure_logging, parse_component_level


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        default=argparse.SUPPRESS if suppress_default else False,
        help="Increase log verbosity for troubleshooting.",
    )


def _add_version_option(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--version",
        default="",
        help="Module version to use (defaults to the configured or newest one).",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="moduledoc",
        description="Build and query structural documentation of config types.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        default=".",
        help="Path to .moduledoc.yml or the directory holding it.",
    )
    parser.add_argument("--log-file", type=Path, default=None, help="Also write logs to this file.")
    parser.add_argument(
        "--log-level",
        dest="log_levels",
        metavar="COMPONENT=LEVEL",
        action="append",
        type=parse_component_level,
        default=[],
        help="Set the level of one component, e.g. builder=debug. Repeatable.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    add_type_parser = subparsers.add_parser(
        "add-type",
        help="Build and store the representation of a type, e.g. the root config type.",
    )
    _add_verbose_option(add_type_parser, suppress_default=True)
    add_type_parser.add_argument("package", help="Import path of the declaring package.")
    add_type_parser.add_argument("type_name", metavar="TYPE", help="Name of the type.")
    _add_version_option(add_type_parser)

    modules_parser = subparsers.add_parser(
        "modules",
        help="Discover and store the modules registered by matching packages.",
    )
    _add_verbose_option(modules_parser, suppress_default=True)
    modules_parser.add_argument("pattern", help="Package path; a trailing /... matches subpackages.")
    _add_version_option(modules_parser)
    modules_parser.add_argument(
        "--no-imports",
        action="store_true",
        help="Only inspect the matching packages, not the packages they import.",
    )

    lookup_parser = subparsers.add_parser(
        "lookup",
        help="Show the type at a config path below the root config type.",
    )
    _add_verbose_option(lookup_parser, suppress_default=True)
    lookup_parser.add_argument("path", help="Slash-delimited config path, e.g. apps/http/servers.")
    _add_version_option(lookup_parser)

    module_parser = subparsers.add_parser("module", help="Show the types registered under a module ID.")
    _add_verbose_option(module_parser, suppress_default=True)
    module_parser.add_argument("module_id", metavar="ID", help="Module ID, e.g. http.handlers.file_server.")

    serve_parser = subparsers.add_parser("serve", help="Serve lookups over HTTP.")
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1")
    serve_parser.add_argument("--port", type=int, default=8000)

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for moduledoc commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(
        verbose=bool(args.verbose), log_file=args.log_file, levels=dict(args.log_levels)
    )

    try:
        config = load_config(Path(args.config))
    except ConfigError as exc:
        parser.exit(1, f"{exc}\n")

    if args.command == "serve":
        from .service import run_service

        run_service(config, host=args.host, port=args.port)
        return

    try:
        driver = create_driver(config)
        output = _run_command(driver, args)
    except (ModuleDocError, OSError) as exc:
        parser.exit(1, f"moduledoc {args.command} failed: {exc}\nRun with --verbose for more details.\n")
    print(json.dumps(output, indent=2))


def _run_command(driver: Driver, args: argparse.Namespace) -> Any:
    if args.command == "add-type":
        value = driver.add_type(args.package, args.type_name, args.version)
        driver.persist()
        return value.to_dict()
    if args.command == "modules":
        modules = driver.load_modules_from(
            args.pattern, args.version, include_imports=not args.no_imports
        )
        driver.persist()
        return [{"module_name": module.name, "type_name": module.type_name} for module in modules]
    if args.command == "lookup":
        exact, nearest = driver.load_type_by_path(args.path, args.version)
        return {"exact": exact.to_dict(), "nearest": nearest.to_dict()}
    if args.command == "module":
        return [value.to_dict() for value in driver.load_types_by_extension_id(args.module_id)]
    raise ValueError(f"unknown command {args.command!r}")  # pragma: no cover - argparse enforces choices


if __name__ == "__main__":
    main(sys.argv[1:])
