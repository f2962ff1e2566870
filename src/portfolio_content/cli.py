"""
Command-line interface for the portfolio content core.

Provides the `portfolio` command with the following subcommands:
- db init: Create the SQLite database and its tables
- list / show: Print localized records as JSON
- save / delete: Coordinated writes from a JSON file
- tags / stats: Blog tag counts and home page counters
- sitemap: Print sitemap entries as JSON
- serve: Run the JSON web API
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from . import __version__
from .config import Config, ConfigError, load_config
from .coordinator import SaveResult
from .errors import (
    EXIT_CONFIG_ERROR,
    EXIT_ERROR,
    EXIT_SUCCESS,
    EXIT_VALIDATION_ERROR,
    ConflictOnWrite,
    NotFoundError,
    PartialWriteFailure,
    PortfolioError,
    StoreUnavailable,
    ValidationFailure,
)
from .kinds import KINDS
from .logging_config import setup_logging
from .repository import parse_tag_string
from .services import Services, build_services
from .sitemap import build_sitemap
from .store import SQLiteStore

logger = logging.getLogger(__name__)


def _config(args: argparse.Namespace) -> Config:
    return getattr(args, "_config", None) or Config()


def _services(args: argparse.Namespace) -> Services:
    db_path = Path(args.db) if getattr(args, "db", None) else None
    return build_services(_config(args), db_path=db_path)


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False))


def _report(result: SaveResult) -> int:
    """Print a SaveResult and map it to an exit code."""
    if result.success:
        logger.info(result.get_summary())
        print(f"✅ {result.get_summary()}")
        if result.base_id:
            print(f"   id: {result.base_id}")
        return EXIT_SUCCESS

    print(f"❌ {result.get_summary()}")
    if result.partial:
        print(f"   Base record kept: {result.base_id}")
    return _EXIT_BY_ERROR.get(result.error_kind or "", EXIT_ERROR)


_EXIT_BY_ERROR: Dict[str, int] = {
    error.kind: error.exit_code
    for error in (
        NotFoundError, ValidationFailure, ConflictOnWrite, PartialWriteFailure, StoreUnavailable,
    )
}


def db_init_command(args: argparse.Namespace) -> int:
    """
    Execute the db init command.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code.
    """
    db_path = Path(args.db) if args.db else _config(args).db_path

    try:
        result_path = SQLiteStore(db_path).init_schema(force=args.force)
        logger.info(f"Database initialized: {result_path}")
        print(f"✅ Database initialized: {result_path}")
        return EXIT_SUCCESS
    except PortfolioError as e:
        logger.error(f"Error initializing database: {e.message}")
        print(f"❌ Error: {e.message}")
        return e.exit_code


def list_command(args: argparse.Namespace) -> int:
    """Print every record of a kind, resolved for one locale."""
    try:
        services = _services(args)
        locale = args.locale or services.config.locales.default
        views = services.assembler.assemble(args.kind, locale)
        _print_json(views)
        return EXIT_SUCCESS
    except PortfolioError as e:
        logger.error(f"Error listing {args.kind}: {e.message}")
        print(f"❌ Error: {e.message}")
        return e.exit_code


def show_command(args: argparse.Namespace) -> int:
    """Print one record, resolved for one locale."""
    try:
        services = _services(args)
        locale = args.locale or services.config.locales.default
        _print_json(services.assembler.detail(args.kind, args.identifier, locale))
        return EXIT_SUCCESS
    except PortfolioError as e:
        logger.error(f"Error showing {args.kind} {args.identifier}: {e.message}")
        print(f"❌ Error: {e.message}")
        return e.exit_code


def _read_payload(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except OSError as e:
        raise ConfigError(f"Cannot read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"{path} must contain a JSON object")
    return data


def save_command(args: argparse.Namespace) -> int:
    """
    Execute the save command.

    The file holds ``{"shared": {...}, "fields": {...}, "tags": [...]}`` for
    one locale, or ``{"shared": {...}, "translations": {"en": {...}}}`` for
    several locales at once.
    """
    try:
        payload = _read_payload(Path(args.file))
    except ConfigError as e:
        print(f"❌ Error: {e.message}")
        return EXIT_VALIDATION_ERROR

    tags: Optional[List[str]] = None
    if "tags" in payload:
        raw = payload["tags"]
        tags = parse_tag_string(raw) if isinstance(raw, str) else list(raw or [])

    try:
        services = _services(args)
    except PortfolioError as e:
        print(f"❌ Error: {e.message}")
        return e.exit_code

    shared = payload.get("shared") or {}
    if "translations" in payload:
        result = services.coordinator.save_translations(
            args.kind, args.id, shared, payload.get("translations") or {}, tags
        )
    else:
        locale = args.locale or services.config.locales.default
        result = services.coordinator.save_localized_content(
            args.kind, args.id, shared, locale, payload.get("fields") or {}, tags
        )
    return _report(result)


def delete_command(args: argparse.Namespace) -> int:
    """Delete a record with its translations and tags."""
    return _report(_services(args).coordinator.delete_content(args.kind, args.id))


def tags_command(args: argparse.Namespace) -> int:
    """Print blog tags with their usage counts."""
    try:
        counts = _services(args).assembler.tag_counts()
    except PortfolioError as e:
        print(f"❌ Error: {e.message}")
        return e.exit_code

    if args.format == "json":
        _print_json([{"name": name, "count": count} for name, count in counts])
    else:
        print(f"\n🏷️  Tags in database: {len(counts)}")
        for name, count in counts:
            print(f"   • {name}: used {count} times")
    return EXIT_SUCCESS


def stats_command(args: argparse.Namespace) -> int:
    """Print the home page counters."""
    try:
        _print_json(_services(args).assembler.stats())
        return EXIT_SUCCESS
    except PortfolioError as e:
        print(f"❌ Error: {e.message}")
        return e.exit_code


def sitemap_command(args: argparse.Namespace) -> int:
    """Print sitemap entries."""
    try:
        services = _services(args)
        base_url = args.base_url or services.config.site.base_url
        _print_json(
            build_sitemap(services.repositories, base_url, services.config.locales.supported)
        )
        return EXIT_SUCCESS
    except PortfolioError as e:
        print(f"❌ Error: {e.message}")
        return e.exit_code


def serve_command(args: argparse.Namespace) -> int:
    """
    Execute the serve command (start the web API).

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code.
    """
    from .web import run_server

    db_path = Path(args.db) if args.db else None

    try:
        run_server(
            host=args.host,
            port=args.port,
            debug=args.debug,
            config=_config(args),
            db_path=db_path,
        )
        return EXIT_SUCCESS
    except PortfolioError as e:
        logger.error(f"Error starting web server: {e.message}")
        print(f"❌ Error: {e.message}")
        return e.exit_code


def create_parser() -> argparse.ArgumentParser:
    """
    Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="portfolio",
        description="Manage localized portfolio content (posts, projects, skills, profile).",
        epilog="Example: portfolio list skill --locale en",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"portfolio {__version__}"
    )

    # Global options
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output (INFO level logging)"
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug output (DEBUG level logging)"
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress output except errors"
    )
    parser.add_argument(
        "--config", "-c",
        type=str,
        dest="config_file",
        help="Path to config file (default: portfolio.toml)"
    )

    # Shared by every command that touches the database
    db_option = argparse.ArgumentParser(add_help=False)
    db_option.add_argument(
        "--db",
        type=str,
        help="Path to database file (default: data/db/portfolio.db)"
    )

    kind_choices = sorted(KINDS)

    subparsers = parser.add_subparsers(
        dest="command",
        title="commands",
        description="Available commands"
    )

    # DB command group
    db_parser = subparsers.add_parser(
        "db",
        help="Database operations",
        description="Manage the SQLite content database."
    )
    db_subparsers = db_parser.add_subparsers(
        dest="db_command",
        title="db commands",
    )
    db_init_parser = db_subparsers.add_parser(
        "init",
        parents=[db_option],
        help="Initialize a new database"
    )
    db_init_parser.add_argument(
        "--force", "-f",
        action="store_true",
        help="Overwrite existing database"
    )
    db_init_parser.set_defaults(func=db_init_command)

    # List command
    list_parser = subparsers.add_parser(
        "list",
        parents=[db_option],
        help="List records of a kind, resolved for a locale"
    )
    list_parser.add_argument("kind", choices=kind_choices, help="Content kind")
    list_parser.add_argument(
        "--locale", "-l",
        help="Requested locale (default: config default)"
    )
    list_parser.set_defaults(func=list_command)

    # Show command
    show_parser = subparsers.add_parser(
        "show",
        parents=[db_option],
        help="Show one record by id or slug"
    )
    show_parser.add_argument("kind", choices=kind_choices, help="Content kind")
    show_parser.add_argument("identifier", help="Record id or slug")
    show_parser.add_argument(
        "--locale", "-l",
        help="Requested locale (default: config default)"
    )
    show_parser.set_defaults(func=show_command)

    # Save command
    save_parser = subparsers.add_parser(
        "save",
        parents=[db_option],
        help="Create or update a record from a JSON file"
    )
    save_parser.add_argument("kind", choices=kind_choices, help="Content kind")
    save_parser.add_argument(
        "--file", "-f",
        required=True,
        help="JSON file with shared fields and translation(s)"
    )
    save_parser.add_argument(
        "--locale", "-l",
        help="Locale of the translation in the file (default: config default)"
    )
    save_parser.add_argument(
        "--id",
        help="Existing record id; omit to create"
    )
    save_parser.set_defaults(func=save_command)

    # Delete command
    delete_parser = subparsers.add_parser(
        "delete",
        parents=[db_option],
        help="Delete a record with its translations"
    )
    delete_parser.add_argument("kind", choices=kind_choices, help="Content kind")
    delete_parser.add_argument("id", help="Record id")
    delete_parser.set_defaults(func=delete_command)

    # Tags command
    tags_parser = subparsers.add_parser(
        "tags",
        parents=[db_option],
        help="List blog tags with usage counts"
    )
    tags_parser.add_argument(
        "--format",
        choices=["table", "json"],
        default="table",
        help="Output format (default: table)"
    )
    tags_parser.set_defaults(func=tags_command)

    # Stats command
    stats_parser = subparsers.add_parser(
        "stats",
        parents=[db_option],
        help="Show home page counters"
    )
    stats_parser.set_defaults(func=stats_command)

    # Sitemap command
    sitemap_parser = subparsers.add_parser(
        "sitemap",
        parents=[db_option],
        help="Print sitemap entries as JSON"
    )
    sitemap_parser.add_argument(
        "--base-url",
        help="Site origin (default: [site] base_url)"
    )
    sitemap_parser.set_defaults(func=sitemap_command)

    # Serve command
    serve_parser = subparsers.add_parser(
        "serve",
        parents=[db_option],
        help="Run the JSON web API"
    )
    serve_parser.add_argument(
        "--host",
        default="127.0.0.1",
        help="Host to bind to (default: 127.0.0.1)"
    )
    serve_parser.add_argument(
        "--port", "-p",
        type=int,
        default=5000,
        help="Port to listen on (default: 5000)"
    )
    serve_parser.set_defaults(func=serve_command)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Command-line arguments (defaults to sys.argv).

    Returns:
        Exit code.
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    config_path = Path(args.config_file) if args.config_file else None
    try:
        config = load_config(config_path)
    except ConfigError as e:
        setup_logging(verbose=args.verbose, debug=args.debug, quiet=args.quiet)
        logger.error(f"Config error: {e.message}")
        print(f"❌ Config error: {e.message}")
        return EXIT_CONFIG_ERROR
    args._config = config

    setup_logging(config.logging, verbose=args.verbose, debug=args.debug, quiet=args.quiet)

    if hasattr(args, "func"):
        return args.func(args)
    parser.print_help()
    return EXIT_SUCCESS


def main_cli() -> None:
    """
    CLI entry point for setuptools console_scripts.

    Calls main() and exits with the returned code.
    """
    sys.exit(main())


if __name__ == "__main__":
    main_cli()
