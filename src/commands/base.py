#!/usr/bin/env python3
"""
Base command class for the modular command architecture.

Provides common functionality and interface that all commands inherit.
Uses dependency injection for better testability and maintainability.
"""

import asyncio
import json
import logging
from abc import ABC, abstractmethod
from argparse import Namespace
from typing import Any, List

from groupfeeder.container import build_container
from groupfeeder.exceptions import ConfigurationError, FeedReaderError

logger = logging.getLogger(__name__)


class BaseCommand(ABC):
    """
    Base class for all command endpoints.

    Commands receive the container built by the CLI router and pull the
    store, fetchers and configuration from it.
    """

    def __init__(self, container=None):
        """
        Initialize base command with dependency injection container.

        Args:
            container: Container instance. A fresh one is built if None.
        """
        self.logger = logging.getLogger(self.__class__.__name__)
        self._container = container or build_container()

    @property
    def config(self):
        """Get configuration from container."""
        return self._container.get('config')

    @property
    def store(self):
        """Get feed store from container."""
        return self._container.get('store')

    def require_database(self) -> None:
        if not self.config.has_database():
            raise ConfigurationError('DATABASE_URL', "must be set for this command")

    def run_async(self, coroutine) -> Any:
        """Run a coroutine to completion from synchronous command code."""
        return asyncio.run(coroutine)

    def print_json(self, payload: Any) -> None:
        print(json.dumps(payload, indent=2, ensure_ascii=False, default=str))

    @abstractmethod
    def execute(self, subcommand: str, args: Namespace) -> int:
        """
        Execute the command with given subcommand and arguments.

        Args:
            subcommand: The specific action to perform
            args: Parsed command line arguments

        Returns:
            Exit code (0 for success, non-zero for error)
        """
        pass

    def get_available_subcommands(self) -> List[str]:
        """
        Get list of available subcommands for this command.

        Returns:
            List of subcommand names
        """
        return list(getattr(self, 'SUBCOMMANDS', ()))

    def handle_error(self, error: Exception, context: str = "") -> int:
        """
        Standard error handling for commands.

        Args:
            error: The exception that occurred
            context: Additional context about where the error occurred

        Returns:
            Appropriate exit code
        """
        error_msg = f"{context}: {error}" if context else str(error)

        if isinstance(error, FeedReaderError):
            # Expected failures carry their own context, no traceback needed
            self.logger.error(f"{error_msg} {error.to_dict()['context'] or ''}".rstrip())
        else:
            self.logger.error(error_msg, exc_info=True)

        # Map common exceptions to exit codes
        if isinstance(error, KeyboardInterrupt):
            self.logger.info("Command interrupted by user")
            return 130
        elif isinstance(error, ConfigurationError):
            return 78
        elif isinstance(error, ValueError):
            return 22
        else:
            return 1
