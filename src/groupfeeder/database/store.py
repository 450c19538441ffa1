#!/usr/bin/env python3
"""
Feed Store

Single interface over the feed and article services. A store is built by
the process bootstrap and handed to every component that needs it.
"""

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import psycopg

from ..exceptions import DatabaseError
from ..models import Article, Feed
from .article_service import ArticleService
from .connection_manager import ConnectionManager
from .feed_service import FeedService
from .schema import SCHEMA_STATEMENTS

logger = logging.getLogger(__name__)


class FeedStore:
    """Persistent store for feeds and articles."""

    def __init__(self, database_config):
        """
        Initialize store with configuration.

        Args:
            database_config: DatabaseConfig instance
        """
        self.connection_manager = ConnectionManager(database_config)
        self.feeds = FeedService(self.connection_manager)
        self.articles = ArticleService(self.connection_manager)

    async def open(self) -> 'FeedStore':
        await self.connection_manager.connect()
        return self

    async def close(self) -> None:
        await self.connection_manager.close()

    async def __aenter__(self):
        return await self.open()

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    # Feed operations

    async def get_feed(self, feed_id: int) -> Optional[Feed]:
        return await self.feeds.get_feed(feed_id)

    async def get_feed_by_url(self, url: str) -> Optional[Feed]:
        return await self.feeds.get_feed_by_url(url)

    async def list_feeds(self) -> List[Feed]:
        return await self.feeds.list_feeds()

    async def find_due_feeds(self, cutoff: datetime) -> List[Feed]:
        return await self.feeds.find_due_feeds(cutoff)

    async def upsert_feed(self, url: str, title: str, description: Optional[str] = None) -> Tuple[Feed, bool]:
        return await self.feeds.upsert_feed(url, title, description)

    async def update_feed_fetch_state(self, feed_id: int, fetched_at: datetime,
                                      etag: Optional[str], last_modified: Optional[str]) -> None:
        await self.feeds.update_fetch_state(feed_id, fetched_at, etag, last_modified)

    # Article operations

    async def find_existing_guids(self, guids: Iterable[str]) -> Set[str]:
        return await self.articles.find_existing_guids(guids)

    async def find_existing_links(self, links: Iterable[str]) -> Set[str]:
        return await self.articles.find_existing_links(links)

    async def find_existing_content_hashes(self, feed_id: int, hashes: Iterable[str]) -> Set[str]:
        return await self.articles.find_existing_content_hashes(feed_id, hashes)

    async def insert_articles(self, articles: List[Article]) -> int:
        return await self.articles.insert_articles(articles)

    async def count_articles(self, feed_id: Optional[int] = None) -> int:
        return await self.articles.count_articles(feed_id)

    # Maintenance

    async def ensure_schema(self) -> None:
        """Create tables and indexes if they do not exist."""
        try:
            async with self.connection_manager.transaction() as cursor:
                for statement in SCHEMA_STATEMENTS:
                    await cursor.execute(statement)
            logger.info("Database schema is up to date")

        except psycopg.Error as e:
            raise DatabaseError(f"Failed to create schema: {e}") from e

    async def health_check(self) -> Dict[str, Any]:
        """Check database connection and return status info with table counts."""
        health_info = await self.connection_manager.health_check()
        if not health_info.get('connected', False):
            return health_info

        try:
            feeds = await self.feeds.list_feeds()
            health_info['tables'] = {
                'feeds': len(feeds),
                'articles': await self.articles.count_articles()
            }
        except DatabaseError as e:
            health_info['tables_error'] = str(e)

        return health_info
