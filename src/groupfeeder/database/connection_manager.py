#!/usr/bin/env python3
"""
Database Connection Manager

Handles the async PostgreSQL connection with lifecycle management and
error recovery. One connection is shared by every component of a process;
psycopg serializes statements on it.
"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Optional, Dict, Any

import psycopg
from psycopg.rows import dict_row

from ..exceptions import DatabaseError

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Manages the store connection with error handling and recovery."""

    def __init__(self, config):
        """
        Initialize connection manager with configuration.

        Args:
            config: DatabaseConfig instance
        """
        self.config = config
        self.connection: Optional[psycopg.AsyncConnection] = None
        self._lock = asyncio.Lock()

    def _connection_string(self) -> str:
        url = self.config.database_url
        if not url:
            raise DatabaseError("DATABASE_URL is not configured", error_code='DATABASE_NOT_CONFIGURED')
        return url

    async def connect(self) -> None:
        """Establish database connection."""
        try:
            self.connection = await psycopg.AsyncConnection.connect(
                self._connection_string(),
                row_factory=dict_row,
                autocommit=True,
                connect_timeout=self.config.connection_timeout
            )
            logger.debug("Database connection established")

        except psycopg.Error as e:
            raise DatabaseError(f"Failed to connect to database: {e}") from e

    async def ensure_connection(self) -> None:
        """Ensure database connection is usable, reconnect if needed."""
        if self.connection is None or self.connection.closed or self.connection.broken:
            if self.connection is not None:
                logger.warning("Database connection lost, reconnecting...")
            await self.connect()

    @asynccontextmanager
    async def get_cursor(self):
        """
        Get database cursor as async context manager.

        Yields:
            Database cursor
        """
        async with self._lock:
            await self.ensure_connection()
        async with self.connection.cursor() as cursor:
            yield cursor

    @asynccontextmanager
    async def transaction(self):
        """
        Execute several statements atomically.

        Statements inside the block must go through the yielded cursor;
        other tasks wait until the transaction finishes.

        Yields:
            Database cursor within transaction
        """
        async with self._lock:
            await self.ensure_connection()
            async with self.connection.transaction():
                async with self.connection.cursor() as cursor:
                    yield cursor

    async def close(self) -> None:
        """Close database connection."""
        if self.connection is not None and not self.connection.closed:
            await self.connection.close()
            logger.debug("Database connection closed")

    async def health_check(self) -> Dict[str, Any]:
        """
        Perform health check on database connection.

        Returns:
            Health status information
        """
        try:
            async with self.get_cursor() as cursor:
                await cursor.execute("SELECT 1 AS test")
                result = await cursor.fetchone()

                await cursor.execute("SELECT version() AS version")
                version_info = await cursor.fetchone()

                return {
                    'connected': True,
                    'test_query': result['test'] == 1,
                    'version': version_info['version']
                }

        except (psycopg.Error, DatabaseError) as e:
            logger.error(f"Database health check failed: {e}")
            return {
                'connected': False,
                'error': str(e)
            }

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()
