#!/usr/bin/env python3
"""
Article Database Service

Handles all database operations related to articles: batched identity
lookups for deduplication and skip-on-conflict inserts.
"""

import logging
from typing import Iterable, List, Optional, Set

import psycopg
from psycopg import sql

from ..exceptions import DatabaseOperationError
from ..models import Article

logger = logging.getLogger(__name__)

INSERT_COLUMNS = (
    'feed_id', 'guid', 'link', 'content_hash', 'title',
    'description', 'content', 'author', 'pub_date'
)

# Rows per INSERT statement, keeps bind parameters well under the protocol limit
INSERT_CHUNK_SIZE = 500


class ArticleService:
    """Service for article-related database operations."""

    def __init__(self, connection_manager):
        """
        Initialize article service.

        Args:
            connection_manager: Database connection manager instance
        """
        self.connection_manager = connection_manager

    async def _select_existing(self, column: str, values: List[str],
                               feed_id: Optional[int] = None) -> Set[str]:
        if not values:
            return set()

        query = sql.SQL("SELECT DISTINCT {column} AS value FROM articles WHERE {column} = ANY(%s)").format(
            column=sql.Identifier(column)
        )
        params: list = [values]
        if feed_id is not None:
            query = query + sql.SQL(" AND feed_id = %s")
            params.append(feed_id)

        try:
            async with self.connection_manager.get_cursor() as cursor:
                await cursor.execute(query, params)
                return {row['value'] for row in await cursor.fetchall() if row['value']}

        except psycopg.Error as e:
            logger.error(f"Failed to look up existing article {column} values: {e}")
            raise DatabaseOperationError('select', 'articles', e) from e

    async def find_existing_guids(self, guids: Iterable[str]) -> Set[str]:
        """GUIDs already stored by any feed."""
        return await self._select_existing('guid', list(guids))

    async def find_existing_links(self, links: Iterable[str]) -> Set[str]:
        """Links already stored by any feed."""
        return await self._select_existing('link', list(links))

    async def find_existing_content_hashes(self, feed_id: int, hashes: Iterable[str]) -> Set[str]:
        """Content fingerprints already stored by this feed."""
        return await self._select_existing('content_hash', list(hashes), feed_id=feed_id)

    async def insert_articles(self, articles: List[Article]) -> int:
        """
        Insert articles, silently skipping rows that hit a unique constraint.

        A concurrent fetch cycle may have committed the same guid or link
        after our dedup lookups ran; those rows are dropped, not errors.

        Args:
            articles: Articles to insert

        Returns:
            Number of rows actually inserted
        """
        if not articles:
            return 0

        inserted = 0
        try:
            for start in range(0, len(articles), INSERT_CHUNK_SIZE):
                chunk = articles[start:start + INSERT_CHUNK_SIZE]
                row_placeholder = sql.SQL("({})").format(
                    sql.SQL(', ').join(sql.Placeholder() * len(INSERT_COLUMNS))
                )
                query = sql.SQL(
                    "INSERT INTO articles ({columns}) VALUES {rows} ON CONFLICT DO NOTHING RETURNING id"
                ).format(
                    columns=sql.SQL(', ').join(map(sql.Identifier, INSERT_COLUMNS)),
                    rows=sql.SQL(', ').join([row_placeholder] * len(chunk))
                )
                params = []
                for article in chunk:
                    params.extend([
                        article.feed_id,
                        article.guid,
                        article.link,
                        article.content_hash,
                        article.title,
                        article.description,
                        article.content,
                        article.author,
                        article.pub_date
                    ])

                async with self.connection_manager.get_cursor() as cursor:
                    await cursor.execute(query, params)
                    inserted += len(await cursor.fetchall())

        except psycopg.Error as e:
            logger.error(f"Failed to insert articles: {e}")
            raise DatabaseOperationError('insert', 'articles', e) from e

        if inserted < len(articles):
            logger.debug(f"Skipped {len(articles) - inserted} conflicting articles at insert time")
        return inserted

    async def count_articles(self, feed_id: Optional[int] = None) -> int:
        """Count stored articles, optionally for one feed."""
        try:
            async with self.connection_manager.get_cursor() as cursor:
                if feed_id is not None:
                    await cursor.execute("SELECT COUNT(*) AS count FROM articles WHERE feed_id = %s", (feed_id,))
                else:
                    await cursor.execute("SELECT COUNT(*) AS count FROM articles")
                result = await cursor.fetchone()
                return result['count'] if result else 0

        except psycopg.Error as e:
            logger.error(f"Failed to count articles: {e}")
            raise DatabaseOperationError('select', 'articles', e) from e
