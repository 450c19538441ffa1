#!/usr/bin/env python3
"""
Database package for the feed reader.

Provides async PostgreSQL services behind a single FeedStore.
"""

from .connection_manager import ConnectionManager
from .feed_service import FeedService
from .article_service import ArticleService
from .store import FeedStore
from ..exceptions import DatabaseError

__all__ = [
    'ConnectionManager',
    'DatabaseError',
    'FeedService',
    'ArticleService',
    'FeedStore'
]
