#!/usr/bin/env python3
"""
Feed Registration

Adds a feed by URL: validates the URL, downloads the document once, takes
title and description from the parsed feed and upserts the feed record.
"""

import asyncio
import json
import logging
import urllib.parse
from dataclasses import dataclass
from typing import Any, Dict, Optional

import requests

from .config import FetchConfig
from .exceptions import FeedFetchError, FeedParseError, FetchErrorCode
from .feed_parser import ParsedFeed, parse_feed
from .fetcher import looks_like_json
from .models import Feed
from .normalizer import get_string, read_field, read_string
from .security import FeedUrlValidator

logger = logging.getLogger(__name__)


@dataclass
class RegistrationResult:
    """Registered feed and whether it was newly created."""
    feed: Feed
    created: bool

    def to_dict(self) -> Dict[str, Any]:
        return {'feed': self.feed.to_dict(), 'created': self.created}


def url_host_fallback(url: str) -> str:
    try:
        return urllib.parse.urlparse(url).hostname or url
    except ValueError:
        return url


def feed_field(metadata: Dict[str, Any], key: str) -> Optional[str]:
    """Channel field from the document root, then its info and channel objects."""
    return (
        get_string(metadata.get(key))
        or read_string(read_field(metadata, 'info'), key)
        or read_string(read_field(metadata, 'channel'), key)
    )


class FeedRegistrar:
    """Registers new feeds in the store."""

    def __init__(self, store, fetch_config: Optional[FetchConfig] = None,
                 validator: Optional[FeedUrlValidator] = None,
                 session: Optional[requests.Session] = None):
        self.store = store
        self.config = fetch_config or FetchConfig()
        self.validator = validator or FeedUrlValidator(self.config.allow_private_hosts)
        self.timeout = self.config.feed_timeout_seconds

        self.session = session or requests.Session()
        self.session.headers.update({
            'User-Agent': self.config.user_agent,
            'Accept': self.config.accept_header
        })

    def download(self, url: str) -> ParsedFeed:
        """
        Fetch and parse the feed document.

        Raises:
            FeedFetchError: NETWORK, HTTP_ERROR or PARSE_ERROR
        """
        logger.info(f"Fetching feed from: {url}")
        try:
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
        except requests.HTTPError as e:
            status = e.response.status_code if e.response is not None else None
            raise FeedFetchError(FetchErrorCode.HTTP_ERROR, "Feed responded with an error",
                                 status=status, url=url) from e
        except requests.RequestException as e:
            raise FeedFetchError(FetchErrorCode.NETWORK, "Failed to fetch feed", url=url) from e

        if len(response.content) > self.validator.MAX_RESPONSE_BYTES:
            raise FeedFetchError(FetchErrorCode.PARSE_ERROR,
                                 f"Feed response too large ({len(response.content)} bytes)", url=url)

        body = response.text
        try:
            content: Any = json.loads(body) if looks_like_json(response.headers.get('Content-Type', ''), body) else body
            return parse_feed(content)
        except (ValueError, RecursionError, FeedParseError) as e:
            raise FeedFetchError(FetchErrorCode.PARSE_ERROR, "Failed to parse feed",
                                 status=response.status_code, url=url) from e

    async def register(self, url: str) -> RegistrationResult:
        """
        Register a feed by URL, refreshing title and description if it exists.

        Args:
            url: Feed URL supplied by the user

        Returns:
            RegistrationResult with the stored feed

        Raises:
            InvalidFeedUrlError: If the URL is not allowed
            FeedFetchError: If the document cannot be fetched or parsed
        """
        url = self.validator.check_url(url)
        parsed = await asyncio.to_thread(self.download, url)

        metadata = parsed.feed_metadata()
        title = feed_field(metadata, 'title') or url_host_fallback(url)
        description = feed_field(metadata, 'description') or get_string(metadata.get('subtitle'))

        feed, created = await self.store.upsert_feed(url, title, description)
        logger.info(f"{'Registered new' if created else 'Refreshed existing'} {parsed.format} feed "
                    f"{feed.id}: {feed.title}")
        return RegistrationResult(feed=feed, created=created)
