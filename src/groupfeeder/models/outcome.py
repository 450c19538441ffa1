#!/usr/bin/env python3
"""
Fetch outcome and batch run summary models.

These are ephemeral records: produced by the fetcher and the scheduler,
serialized for the caller, never persisted.
"""

from datetime import datetime
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field

from ..exceptions import FetchErrorCode


@dataclass
class FetchOutcome:
    """Result of one successful (or not-modified) feed fetch."""
    feed_id: int
    status: int
    updated: bool
    fetched_at: datetime
    articles_created: int = 0
    articles_skipped: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'feedId': self.feed_id,
            'status': self.status,
            'updated': self.updated,
            'fetchedAt': self.fetched_at.isoformat(),
            'articlesCreated': self.articles_created,
            'articlesSkipped': self.articles_skipped
        }


@dataclass
class FeedError:
    """Structured per-feed failure."""
    code: FetchErrorCode
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {'code': self.code.value, 'message': self.message}


@dataclass
class FeedExecutionResult:
    """Per-feed entry of a batch run: either an outcome or an error."""
    feed_id: int
    data: Optional[FetchOutcome] = None
    error: Optional[FeedError] = None

    @property
    def status(self) -> str:
        return 'success' if self.error is None else 'error'

    @property
    def is_success(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, feed_id: int, data: FetchOutcome) -> 'FeedExecutionResult':
        return cls(feed_id=feed_id, data=data)

    @classmethod
    def failure(cls, feed_id: int, code: FetchErrorCode, message: str) -> 'FeedExecutionResult':
        return cls(feed_id=feed_id, error=FeedError(code=code, message=message))

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {'status': self.status, 'feedId': self.feed_id}
        if self.error is not None:
            result['error'] = self.error.to_dict()
        else:
            result['data'] = self.data.to_dict()
        return result


@dataclass
class RunSummary:
    """Aggregate of one batch run over all due feeds."""
    results: List[FeedExecutionResult] = field(default_factory=list)
    duration_seconds: float = 0.0

    @property
    def total_feeds(self) -> int:
        return len(self.results)

    @property
    def successes(self) -> int:
        return sum(1 for result in self.results if result.is_success)

    @property
    def failures(self) -> int:
        return sum(1 for result in self.results if not result.is_success)

    @property
    def updated_feeds(self) -> int:
        return sum(1 for result in self.results if result.is_success and result.data.updated)

    @property
    def articles_created(self) -> int:
        return sum(result.data.articles_created for result in self.results if result.is_success)

    @property
    def articles_skipped(self) -> int:
        return sum(result.data.articles_skipped for result in self.results if result.is_success)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the JSON shape reported to callers."""
        return {
            'totalFeeds': self.total_feeds,
            'successes': self.successes,
            'failures': self.failures,
            'updatedFeeds': self.updated_feeds,
            'articlesCreated': self.articles_created,
            'articlesSkipped': self.articles_skipped,
            'durationSeconds': round(self.duration_seconds, 3),
            'results': [result.to_dict() for result in self.results]
        }
