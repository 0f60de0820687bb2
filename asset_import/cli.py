#!/usr/bin/env python3
"""
Command line entry point for the SQL asset import.

Reads asset rows from the configured source database and creates or
updates the matching asset records on the instance.

Usage:
    asset-import --file conf.json --concurrent 5
    asset-import --file conf.json --dryrun --debug
"""

import argparse
import functools
import logging
import os
import sys
from logging.handlers import RotatingFileHandler
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError

from xmlmc.api.xmlmc_api import XmlmcError, resolve_instance_endpoint
from xmlmc.facade.xmlmc_facade import XmlmcFacade
from database.adapters.sql_adapter import SqlAdapter, build_connection_string

from . import __version__
from .config import DEFAULT_CONFIG_FILE, load_config
from .coordinator import validate_concurrency
from .exceptions import ConfigurationError, ConfigurationFileNotFoundError
from .importer import AssetImporter

logger = logging.getLogger("asset_import")

LOG_DIR = "logs"
LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
EXIT_NO_CONFIG = 102


def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )


def add_file_handler(log_size_bytes: int = 0, log_dir: str = LOG_DIR) -> logging.Handler:
    """Adds the run log file; rotates when a maximum size is configured."""
    os.makedirs(log_dir, exist_ok=True)
    path = os.path.join(log_dir, "asset_import.log")
    if log_size_bytes > 0:
        handler = RotatingFileHandler(path, maxBytes=log_size_bytes, backupCount=5)
    else:
        handler = logging.FileHandler(path)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    logging.getLogger().addHandler(handler)
    return handler


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Create and update instance asset records from a SQL source"
    )
    parser.add_argument(
        "--file",
        default=DEFAULT_CONFIG_FILE,
        help=f"Name of configuration file to load (default: {DEFAULT_CONFIG_FILE})",
    )
    parser.add_argument(
        "--dryrun",
        action="store_true",
        help="Run the import without creating or updating assets",
    )
    parser.add_argument(
        "--concurrent",
        default="1",
        help="Maximum number of assets to import concurrently, 1-10 (default: 1)",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Output additional debug information to the log",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Print the version and exit",
    )
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    args = parse_args(argv)
    if args.version:
        print(__version__)
        return 0

    configure_logging(args.debug)

    try:
        config = load_config(args.file)
    except ConfigurationFileNotFoundError as e:
        logger.error(str(e))
        return EXIT_NO_CONFIG
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    add_file_handler(config.log_size_bytes)
    logger.info(f"---- XMLMC Database Asset Import Utility v{__version__} ----")
    logger.info(f"Flag - Config File {args.file}")
    logger.info(f"Flag - Dry Run {args.dryrun}")
    logger.info(f"Flag - Concurrent {args.concurrent}")

    try:
        max_concurrent = validate_concurrency(args.concurrent)
        source = SqlAdapter(build_connection_string(config.sql))
    except ConfigurationError as e:
        logger.error(str(e))
        return 1
    except (ImportError, SQLAlchemyError) as e:
        logger.error(f"Unable to create the source database connection: {e}")
        return 1

    try:
        endpoint = config.instance_url or resolve_instance_endpoint(config.instance_id)
    except XmlmcError as e:
        logger.error(f"Unable to resolve instance endpoint: {e}")
        source.close()
        return 1

    facade_factory = functools.partial(
        XmlmcFacade, endpoint, config.api_key, user_id_column=config.user_id_column
    )
    importer = AssetImporter(
        config,
        source,
        facade_factory,
        max_concurrent=max_concurrent,
        dry_run=args.dryrun,
    )
    try:
        importer.run()
    finally:
        source.close()

    logger.info("---- XMLMC Database Asset Import Complete ----")
    return 0


if __name__ == "__main__":
    sys.exit(main())
