#!/usr/bin/env python3
"""
GroupFeeder feed ingestion core.

Polls RSS, Atom, RDF and JSON feeds, normalizes their entries and stores
each new article exactly once.
"""

from .exceptions import (
    FeedReaderError,
    FeedFetchError,
    FeedParseError,
    FetchErrorCode,
    DatabaseError,
    ConfigurationError,
    InvalidFeedUrlError
)
from .models import Feed, Article, CandidateItem, FetchOutcome, FeedExecutionResult, RunSummary
from .normalizer import normalize_items
from .feed_parser import parse_feed
from .deduplication import DedupResolver
from .fetcher import FeedFetcher
from .scheduler import BatchScheduler

__version__ = '1.0.0'

__all__ = [
    'FeedReaderError',
    'FeedFetchError',
    'FeedParseError',
    'FetchErrorCode',
    'DatabaseError',
    'ConfigurationError',
    'InvalidFeedUrlError',
    'Feed',
    'Article',
    'CandidateItem',
    'FetchOutcome',
    'FeedExecutionResult',
    'RunSummary',
    'normalize_items',
    'parse_feed',
    'DedupResolver',
    'FeedFetcher',
    'BatchScheduler'
]
