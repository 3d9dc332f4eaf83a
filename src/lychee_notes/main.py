#!/usr/bin/env python
"""Main entry point for the Lychee Notes MCP server."""
import argparse
import atexit
import logging
import os
import sys
from pathlib import Path

from lychee_notes import __version__
from lychee_notes.config import config
from lychee_notes.models.db_models import init_db
from lychee_notes.observability import configure_logging, metrics
from lychee_notes.server.mcp_server import LycheeMcpServer


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Lychee Notes MCP Server")
    parser.add_argument(
        "--database-path",
        help="SQLite database file path (':memory:' for a throwaway database)",
        type=str,
        default=os.environ.get("LYCHEE_DATABASE_PATH")
    )
    parser.add_argument(
        "--log-dir",
        help="Directory for rotating log files (console only when omitted)",
        type=str,
        default=os.environ.get("LYCHEE_LOG_DIR")
    )
    parser.add_argument(
        "--log-level",
        help="Logging level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=os.environ.get("LYCHEE_LOG_LEVEL", "INFO")
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    return parser.parse_args(argv)


def update_config(args):
    """Update the global config with command line arguments."""
    if args.database_path:
        config.database_path = Path(args.database_path)
    if args.log_dir:
        config.log_dir = Path(args.log_dir)


def _save_metrics_on_exit():
    """Save metrics to disk on server shutdown, when a metrics file is set."""
    if config.metrics_file is None:
        return
    if metrics.save_metrics(config.get_absolute_path(config.metrics_file)):
        logging.getLogger(__name__).info("Metrics saved to disk on shutdown")


def main(argv=None):
    """Run the Lychee Notes MCP server."""
    args = parse_args(argv)
    update_config(args)

    log_level = getattr(logging, args.log_level.upper(), logging.INFO)
    try:
        configure_logging(log_dir=config.log_dir, level=log_level, console=True)
    except OSError as e:
        # Fall back to basic console logging if file logging fails
        logging.basicConfig(level=log_level)
        logging.getLogger(__name__).warning(f"Failed to configure file logging: {e}")

    logger = logging.getLogger(__name__)
    atexit.register(_save_metrics_on_exit)

    # One engine for the whole process, handed to the server explicitly
    try:
        logger.info(f"Using SQLite database: {config.get_db_url()}")
        engine = init_db(config)
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        sys.exit(1)

    try:
        logger.info("Starting Lychee Notes MCP server")
        server = LycheeMcpServer(engine)
        server.run()
    except Exception as e:
        logger.error(f"Error running server: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
