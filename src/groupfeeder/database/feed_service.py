#!/usr/bin/env python3
"""
Feed Database Service

Handles all database operations related to feed records.
"""

import logging
from datetime import datetime
from typing import List, Optional, Tuple

import psycopg

from ..exceptions import DatabaseOperationError
from ..models import Feed

logger = logging.getLogger(__name__)

FEED_COLUMNS = "id, url, title, description, last_fetched_at, etag, last_modified"


class FeedService:
    """Service for feed-related database operations."""

    def __init__(self, connection_manager):
        """
        Initialize feed service.

        Args:
            connection_manager: Database connection manager instance
        """
        self.connection_manager = connection_manager

    async def get_feed(self, feed_id: int) -> Optional[Feed]:
        """Find a feed by id."""
        try:
            async with self.connection_manager.get_cursor() as cursor:
                await cursor.execute(f"SELECT {FEED_COLUMNS} FROM feeds WHERE id = %s", (feed_id,))
                row = await cursor.fetchone()
                return Feed.from_row(row) if row else None

        except psycopg.Error as e:
            logger.error(f"Failed to get feed {feed_id}: {e}")
            raise DatabaseOperationError('select', 'feeds', e) from e

    async def get_feed_by_url(self, url: str) -> Optional[Feed]:
        """Find a feed by its unique source URL."""
        try:
            async with self.connection_manager.get_cursor() as cursor:
                await cursor.execute(f"SELECT {FEED_COLUMNS} FROM feeds WHERE url = %s", (url,))
                row = await cursor.fetchone()
                return Feed.from_row(row) if row else None

        except psycopg.Error as e:
            logger.error(f"Failed to get feed by url {url}: {e}")
            raise DatabaseOperationError('select', 'feeds', e) from e

    async def list_feeds(self) -> List[Feed]:
        """All known feeds, ordered by id."""
        try:
            async with self.connection_manager.get_cursor() as cursor:
                await cursor.execute(f"SELECT {FEED_COLUMNS} FROM feeds ORDER BY id")
                return [Feed.from_row(row) for row in await cursor.fetchall()]

        except psycopg.Error as e:
            logger.error(f"Failed to list feeds: {e}")
            raise DatabaseOperationError('select', 'feeds', e) from e

    async def find_due_feeds(self, cutoff: datetime) -> List[Feed]:
        """
        Feeds never fetched or last fetched before the cutoff.

        Args:
            cutoff: Feeds fetched at or after this instant are not due

        Returns:
            Due feeds, never-fetched first, then oldest fetch first
        """
        try:
            async with self.connection_manager.get_cursor() as cursor:
                await cursor.execute(f"""
                    SELECT {FEED_COLUMNS}
                    FROM feeds
                    WHERE last_fetched_at IS NULL OR last_fetched_at < %s
                    ORDER BY last_fetched_at ASC NULLS FIRST, id ASC
                """, (cutoff,))
                return [Feed.from_row(row) for row in await cursor.fetchall()]

        except psycopg.Error as e:
            logger.error(f"Failed to find due feeds: {e}")
            raise DatabaseOperationError('select', 'feeds', e) from e

    async def upsert_feed(self, url: str, title: str, description: Optional[str] = None) -> Tuple[Feed, bool]:
        """
        Create a feed or refresh title/description of an existing one.

        Returns:
            Tuple of (feed, created)
        """
        try:
            async with self.connection_manager.get_cursor() as cursor:
                await cursor.execute(f"""
                    INSERT INTO feeds (url, title, description)
                    VALUES (%s, %s, %s)
                    ON CONFLICT (url)
                    DO UPDATE SET title = EXCLUDED.title, description = EXCLUDED.description
                    RETURNING {FEED_COLUMNS}, (xmax = 0) AS inserted
                """, (url, title, description))
                row = await cursor.fetchone()
                created = bool(row['inserted'])
                logger.info(f"{'Created' if created else 'Updated'} feed {row['id']} for {url}")
                return Feed.from_row(row), created

        except psycopg.Error as e:
            logger.error(f"Failed to upsert feed {url}: {e}")
            raise DatabaseOperationError('upsert', 'feeds', e) from e

    async def update_fetch_state(self, feed_id: int, fetched_at: datetime,
                                 etag: Optional[str], last_modified: Optional[str]) -> None:
        """Record a completed fetch and the cache validators to send next time."""
        try:
            async with self.connection_manager.get_cursor() as cursor:
                await cursor.execute("""
                    UPDATE feeds
                    SET last_fetched_at = %s, etag = %s, last_modified = %s
                    WHERE id = %s
                """, (fetched_at, etag, last_modified, feed_id))

                if cursor.rowcount == 0:
                    logger.warning(f"Feed {feed_id} disappeared before its fetch state was saved")

        except psycopg.Error as e:
            logger.error(f"Failed to update fetch state of feed {feed_id}: {e}")
            raise DatabaseOperationError('update', 'feeds', e) from e
