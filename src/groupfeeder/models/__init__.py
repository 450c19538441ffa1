#!/usr/bin/env python3
"""
Data models for feeds, articles and fetch results.
"""

from .feed import Feed, Article, CandidateItem
from .outcome import FetchOutcome, FeedError, FeedExecutionResult, RunSummary

__all__ = [
    'Feed',
    'Article',
    'CandidateItem',
    'FetchOutcome',
    'FeedError',
    'FeedExecutionResult',
    'RunSummary'
]
