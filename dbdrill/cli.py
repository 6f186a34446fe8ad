"""
Command line entry point

    dbdrill [--dsn DSN] [--check] [--debug] [--log-file PATH] [--env MODE] RESOURCES_FILE

Exit status: 0 on success, 2 for configuration problems (resources file,
environment, missing DSN), 1 when the database can't be reached.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional, Sequence

import asyncpg

from . import __version__
from .config import AppConfig, DatabaseConfig, load_app_environment, read_resources_document
from .database import DatabaseConnection
from .errors import ConfigError
from .navigation import Navigator
from .registry import ConfigModel, load

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_UNREACHABLE = 1
EXIT_CONFIG = 2

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
LOG_DATEFMT = "%H:%M:%S"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="dbdrill",
        description="Interactive drill-down browser for PostgreSQL",
    )
    parser.add_argument("resources", metavar="RESOURCES_FILE", help="Resources file (.toml, .yaml or .json)")
    parser.add_argument("--dsn", help="PostgreSQL connection string (default: $DBDRILL_DSN or $DATABASE_URL)")
    parser.add_argument("--check", action="store_true", help="Validate the resources file and exit")
    parser.add_argument("--debug", action="store_true", help="Log at DEBUG level")
    parser.add_argument("--log-file", help="Write logs to this file (default: $DBDRILL_LOG_FILE)")
    parser.add_argument("--env", dest="env_mode", help="Load .env.MODE from the working directory (default: $APP_ENV)")
    parser.add_argument("--version", action="version", version=f"dbdrill {__version__}")
    return parser


def configure_logging(app_config: AppConfig, debug: bool = False, log_file: Optional[str] = None):
    """
    The TUI owns the terminal: full logs only go to a file, otherwise
    warnings and errors go to stderr.
    """
    log_file = log_file or app_config.log_file
    if log_file:
        level = logging.DEBUG if debug else getattr(logging, app_config.log_level, logging.INFO)
        logging.basicConfig(
            level=level,
            format=LOG_FORMAT,
            datefmt=LOG_DATEFMT,
            filename=log_file,
            force=True,
        )
    else:
        logging.basicConfig(
            level=logging.DEBUG if debug else logging.WARNING,
            format=LOG_FORMAT,
            datefmt=LOG_DATEFMT,
            force=True,
        )


def load_resources(path: str) -> ConfigModel:
    """Read, decode and validate the resources file (raises ConfigError)."""
    return load(read_resources_document(path))


def _report(message: str):
    print(message, file=sys.stderr)


async def run_app(config: ConfigModel, db_config: DatabaseConfig, app_config: AppConfig) -> int:
    # imported here so --check works without a terminal
    from .tui.app import DrillApp, textual_logging

    db = DatabaseConnection(db_config)
    try:
        await db.connect()
    except ValueError as e:
        _report(f"❌ Invalid connection string: {e}")
        return EXIT_CONFIG
    except (OSError, asyncio.TimeoutError, asyncpg.PostgresError, asyncpg.InterfaceError) as e:
        _report(f"❌ Cannot connect to {db_config.safe_dsn}: {e}")
        return EXIT_UNREACHABLE

    try:
        navigator = Navigator(config, db, app_config.mnemonic_strategy)
        with textual_logging():
            await DrillApp(navigator).run_async()
    finally:
        await db.disconnect()
    return EXIT_OK


def run(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        load_app_environment(args.env_mode)
        app_config = AppConfig.from_environment()
    except ConfigError as e:
        _report(f"❌ {e}")
        return EXIT_CONFIG

    configure_logging(app_config, debug=args.debug, log_file=args.log_file)

    try:
        config = load_resources(args.resources)
    except ConfigError as e:
        logger.error(f"❌ Invalid resources file ({e.kind}): {e}")
        _report(f"❌ {args.resources}: {e}")
        return EXIT_CONFIG

    if args.check:
        entities = config.sorted_entities()
        print(
            f"✅ {args.resources}: {len(entities)} resources "
            f"({', '.join(entity.name for entity in entities)})"
        )
        return EXIT_OK

    try:
        db_config = DatabaseConfig.from_environment(args.dsn)
    except ConfigError as e:
        _report(f"❌ {e}")
        return EXIT_CONFIG

    if not db_config.dsn:
        _report("❌ No database configured: pass --dsn or set DBDRILL_DSN / DATABASE_URL")
        return EXIT_CONFIG

    return asyncio.run(run_app(config, db_config, app_config))


def main(argv: Optional[Sequence[str]] = None):
    """Entry point for console script"""
    sys.exit(run(argv))


if __name__ == "__main__":
    main()
