#!/usr/bin/env python3
"""
Feed, article and candidate item data models.
"""

from datetime import datetime
from typing import Dict, Any, Optional
from dataclasses import dataclass


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class Feed:
    """A registered feed source, identified by its URL."""
    id: int
    url: str
    title: str
    description: Optional[str] = None
    last_fetched_at: Optional[datetime] = None
    etag: Optional[str] = None
    last_modified: Optional[str] = None

    @classmethod
    def from_row(cls, row: Dict[str, Any]) -> 'Feed':
        """Create Feed from a database row."""
        return cls(
            id=row['id'],
            url=row['url'],
            title=row.get('title') or row['url'],
            description=row.get('description'),
            last_fetched_at=row.get('last_fetched_at'),
            etag=row.get('etag'),
            last_modified=row.get('last_modified')
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'url': self.url,
            'title': self.title,
            'description': self.description,
            'lastFetchedAt': _isoformat(self.last_fetched_at),
            'etag': self.etag,
            'lastModified': self.last_modified
        }


@dataclass
class CandidateItem:
    """
    A normalized feed entry that has not been deduplicated or persisted.

    Only lives for the duration of one fetch cycle.
    """
    link: str
    title: str
    guid: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    author: Optional[str] = None
    pub_date: Optional[datetime] = None
    content_hash: Optional[str] = None

    def __repr__(self):
        return f"CandidateItem(title='{self.title[:50]}', link='{self.link}', guid={self.guid!r})"


@dataclass
class Article:
    """A persisted article owned by one feed."""
    feed_id: int
    link: str
    title: str
    guid: Optional[str] = None
    description: Optional[str] = None
    content: Optional[str] = None
    author: Optional[str] = None
    pub_date: Optional[datetime] = None
    content_hash: Optional[str] = None
    id: Optional[int] = None

    @classmethod
    def from_candidate(cls, feed_id: int, item: CandidateItem) -> 'Article':
        """Bind an accepted candidate to its owning feed."""
        return cls(
            feed_id=feed_id,
            link=item.link,
            title=item.title,
            guid=item.guid,
            description=item.description,
            content=item.content,
            author=item.author,
            pub_date=item.pub_date,
            content_hash=item.content_hash
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            'id': self.id,
            'feedId': self.feed_id,
            'guid': self.guid,
            'link': self.link,
            'title': self.title,
            'description': self.description,
            'content': self.content,
            'author': self.author,
            'pubDate': _isoformat(self.pub_date),
            'contentHash': self.content_hash
        }
