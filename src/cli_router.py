#!/usr/bin/env python3
"""
CLI Router for the GroupFeeder feed reader.

Modular command architecture for feed ingestion.
"""

import argparse
import logging
import sys
from typing import Optional, List

from groupfeeder.config import ConfigManager
from groupfeeder.container import build_container
from groupfeeder.exceptions import ConfigurationError

from commands import get_command, COMMANDS

logger = logging.getLogger(__name__)


class CLIRouter:
    """
    CLI router for feed reader commands.

    Command structure:
    - python run.py feeds fetch
    - python run.py feeds add https://example.com/feed.xml
    - python run.py db init
    - python run.py health check
    """

    def __init__(self, container=None):
        """
        Initialize CLI router.

        Args:
            container: Service container; built from the environment on first use if None
        """
        self.parser = self._create_parser()
        self._container = container

    def _create_parser(self) -> argparse.ArgumentParser:
        """Create the main argument parser."""
        parser = argparse.ArgumentParser(
            description="GroupFeeder feed ingestion and deduplication",
            formatter_class=argparse.RawDescriptionHelpFormatter,
            epilog=self._get_examples_text()
        )

        subparsers = parser.add_subparsers(
            dest='command',
            help='Available commands',
            metavar='{command}'
        )

        self._add_feeds_parser(subparsers)
        self._add_db_parser(subparsers)
        self._add_health_parser(subparsers)

        return parser

    def _add_feeds_parser(self, subparsers):
        """Add feeds command parser."""
        feeds_parser = subparsers.add_parser(
            'feeds',
            help='Feed fetching, registration and listing'
        )

        feeds_subparsers = feeds_parser.add_subparsers(
            dest='subcommand',
            help='Feed operations',
            metavar='{fetch,fetch-one,add,list,due}'
        )

        # Fetch subcommand
        fetch_parser = feeds_subparsers.add_parser('fetch', help='Fetch all feeds that are due for a refresh')
        fetch_parser.add_argument('--force', action='store_true', help='Fetch every feed, ignoring the refresh interval')

        # Fetch-one subcommand
        fetch_one_parser = feeds_subparsers.add_parser('fetch-one', help='Fetch a single feed now')
        fetch_one_parser.add_argument('feed', help='Feed id or feed url')

        # Add subcommand
        add_parser = feeds_subparsers.add_parser('add', help='Register a new feed by url')
        add_parser.add_argument('url', help='Feed url (http or https)')

        # List subcommands
        list_parser = feeds_subparsers.add_parser('list', help='List all feeds')
        list_parser.add_argument('--json', action='store_true', help='Print feeds as JSON')

        due_parser = feeds_subparsers.add_parser('due', help='List feeds due for a refresh')
        due_parser.add_argument('--json', action='store_true', help='Print feeds as JSON')

    def _add_db_parser(self, subparsers):
        """Add db command parser."""
        db_parser = subparsers.add_parser(
            'db',
            help='Database schema operations'
        )

        db_subparsers = db_parser.add_subparsers(
            dest='subcommand',
            help='Database operations',
            metavar='{init,stats}'
        )

        db_subparsers.add_parser('init', help='Create tables and indexes')
        db_subparsers.add_parser('stats', help='Show feed and article counts')

    def _add_health_parser(self, subparsers):
        """Add health command parser."""
        health_parser = subparsers.add_parser(
            'health',
            help='System health monitoring and diagnostics'
        )

        health_subparsers = health_parser.add_subparsers(
            dest='subcommand',
            help='Health operations',
            metavar='{check,database,config}'
        )

        health_subparsers.add_parser('check', help='Run configuration and database checks')
        health_subparsers.add_parser('database', help='Check database health')
        health_subparsers.add_parser('config', help='Show active configuration')

    def _get_examples_text(self) -> str:
        """Get examples text for help."""
        return """
Examples:
  # Scheduled refresh (cron or CI)
  python run.py feeds fetch

  # Manual runs
  python run.py feeds fetch --force           # Ignore the refresh interval
  python run.py feeds fetch-one 42            # One feed by id
  python run.py feeds add https://example.com/rss.xml

  # Other commands
  python run.py db init
  python run.py health check

"""

    def _get_container(self):
        if self._container is None:
            config_manager = ConfigManager()
            config_manager.update_logging()
            self._container = build_container(config_manager)
        return self._container

    def route_command(self, args: Optional[List[str]] = None) -> int:
        """
        Route command to appropriate handler.

        Args:
            args: Command line arguments (uses sys.argv if None)

        Returns:
            Exit code
        """
        try:
            if args is None:
                args = sys.argv[1:]

            parsed_args = self.parser.parse_args(args)

            if not parsed_args.command:
                self.parser.print_help()
                return 1

            return self._handle_command(parsed_args)

        except SystemExit as e:
            # argparse calls sys.exit() on error or help
            return e.code if e.code is not None else 0
        except ConfigurationError as e:
            logger.error(str(e))
            return 78
        except Exception as e:
            logger.error(f"CLI routing error: {e}", exc_info=True)
            return 1

    def _handle_command(self, args: argparse.Namespace) -> int:
        """Handle command structure."""
        logger.debug(f"Handling command: {args.command}")

        if args.command not in COMMANDS:
            available = ', '.join(COMMANDS.keys())
            logger.error(f"Unknown command '{args.command}'. Available: {available}")
            return 1

        subcommand = getattr(args, 'subcommand', None)
        if not subcommand:
            logger.error(f"No subcommand specified for '{args.command}'")
            try:
                self.parser.parse_args([args.command, '--help'])  # Show help
            except SystemExit:
                pass
            return 1

        command = get_command(args.command, self._get_container())
        return command.execute(subcommand, args)


def main(args: Optional[List[str]] = None) -> int:
    """
    Main CLI entry point.

    Args:
        args: Command line arguments (uses sys.argv if None)

    Returns:
        Exit code
    """
    # Set up logging
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    router = CLIRouter()
    return router.route_command(args)


if __name__ == '__main__':
    exit_code = main()
    sys.exit(exit_code)
