#!/usr/bin/env python3
"""
Feed Fetch Orchestrator

Runs one fetch cycle for one feed: conditional GET, status branching, body
read, format detection, normalization, dedup, commit and cache validator
update. Every failure leaves the feed's stored state untouched and surfaces
as a FeedFetchError with a stable code.
"""

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import aiohttp
import pytz

from .config import FetchConfig
from .content_hash import ContentHashFunction, content_hasher
from .deduplication import DedupResolver
from .exceptions import FeedFetchError, FeedParseError, FetchErrorCode
from .feed_parser import parse_feed
from .models import Article, Feed, FetchOutcome
from .normalizer import normalize_items
from .security import FeedUrlValidator

logger = logging.getLogger(__name__)

HTTP_NOT_MODIFIED = 304
READ_CHUNK_BYTES = 64 * 1024


def utc_now() -> datetime:
    return datetime.now(pytz.utc)


def looks_like_json(content_type: str, body: str) -> bool:
    """JSON if the server says so or the body opens with an object or array."""
    if 'json' in (content_type or '').lower():
        return True
    return body.lstrip().startswith(('{', '['))


def decode_body(raw: bytes, charset: Optional[str]) -> str:
    """Decode a response body, replacing bytes that do not fit the declared charset."""
    try:
        return raw.decode(charset or 'utf-8', errors='replace')
    except LookupError:
        logger.debug(f"Unknown charset {charset!r}, decoding as utf-8")
        return raw.decode('utf-8', errors='replace')


@dataclass
class FeedResponse:
    """What the fetcher keeps of an HTTP response."""
    status: int
    etag: Optional[str]
    last_modified: Optional[str]
    content_type: str = ''
    body: Optional[str] = None

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300


class FeedFetcher:
    """Fetches feeds over HTTP and commits their new articles."""

    def __init__(self,
                 store,
                 session: Optional[aiohttp.ClientSession] = None,
                 fetch_config: Optional[FetchConfig] = None,
                 hash_function: Optional[ContentHashFunction] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize feed fetcher.

        Args:
            store: FeedStore used for lookups, inserts and feed state
            session: Shared aiohttp session; one is created on __aenter__ if omitted
            fetch_config: User agent, accept header and hash length
            hash_function: Fingerprint function for GUID-less items
            clock: Source of the fetch timestamp
        """
        self.store = store
        self.config = fetch_config or FetchConfig()
        self.hash_function = hash_function or content_hasher(self.config.content_hash_length)
        self.resolver = DedupResolver(store)
        self.clock = clock or utc_now
        self.max_response_bytes = FeedUrlValidator.MAX_RESPONSE_BYTES

        self._session = session
        self._owns_session = False

    async def __aenter__(self):
        if self._session is None:
            self._session = aiohttp.ClientSession(
                timeout=aiohttp.ClientTimeout(total=self.config.feed_timeout_seconds)
            )
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None
            self._owns_session = False

    def build_headers(self, feed: Feed) -> Dict[str, str]:
        """Request headers, including cache validators from the last fetch."""
        headers = {
            'User-Agent': self.config.user_agent,
            'Accept': self.config.accept_header
        }
        if feed.etag:
            headers['If-None-Match'] = feed.etag
        if feed.last_modified:
            headers['If-Modified-Since'] = feed.last_modified
        return headers

    async def read_body(self, response, feed: Feed) -> bytes:
        """Read the body in chunks, refusing anything over max_response_bytes."""
        chunks = []
        size = 0
        async for chunk in response.content.iter_chunked(READ_CHUNK_BYTES):
            size += len(chunk)
            if size > self.max_response_bytes:
                raise FeedFetchError(FetchErrorCode.PARSE_ERROR,
                                     f"Feed response too large (over {self.max_response_bytes} bytes)",
                                     status=response.status, url=feed.url)
            chunks.append(chunk)
        return b''.join(chunks)

    async def request(self, feed: Feed) -> FeedResponse:
        """
        Perform the conditional GET.

        The body is read only for 2xx responses.

        Raises:
            FeedFetchError: NETWORK on transport or body read failure,
                PARSE_ERROR when the body exceeds max_response_bytes
        """
        if self._session is None:
            raise RuntimeError("FeedFetcher needs a session; pass one or use it as async context manager")

        headers = self.build_headers(feed)
        logger.debug(f"Fetching feed {feed.id} from {feed.url} with validators "
                     f"etag={feed.etag!r} last_modified={feed.last_modified!r}")

        try:
            async with self._session.get(feed.url, headers=headers) as response:
                result = FeedResponse(
                    status=response.status,
                    etag=response.headers.get('ETag'),
                    last_modified=response.headers.get('Last-Modified'),
                    content_type=response.headers.get('Content-Type', '')
                )
                if not result.ok:
                    return result

                try:
                    raw = await self.read_body(response, feed)
                except (aiohttp.ClientError, OSError) as e:
                    raise FeedFetchError(FetchErrorCode.NETWORK, "Failed to read feed response body",
                                         status=result.status, url=feed.url) from e
                result.body = decode_body(raw, response.charset)
                return result

        except FeedFetchError:
            raise
        except asyncio.TimeoutError as e:
            raise FeedFetchError(FetchErrorCode.TIMEOUT, f"Timed out fetching feed {feed.url}",
                                 url=feed.url) from e
        except (aiohttp.ClientError, OSError) as e:
            raise FeedFetchError(FetchErrorCode.NETWORK, f"Failed to fetch feed {feed.url}",
                                 url=feed.url) from e

    def parse_body(self, response: FeedResponse):
        """Decode JSON bodies, then detect the format of the document."""
        body = response.body or ''
        try:
            content: Any = json.loads(body) if looks_like_json(response.content_type, body) else body
            return parse_feed(content)
        except (ValueError, RecursionError, FeedParseError) as e:
            raise FeedFetchError(FetchErrorCode.PARSE_ERROR, "Failed to parse feed content",
                                 status=response.status) from e

    async def fetch(self, feed: Feed) -> FetchOutcome:
        """
        Run one fetch cycle for a feed.

        Args:
            feed: Feed to fetch, with its stored cache validators

        Returns:
            FetchOutcome with counts of created and skipped articles

        Raises:
            FeedFetchError: NETWORK, HTTP_ERROR or PARSE_ERROR
        """
        response = await self.request(feed)
        fetched_at = self.clock()

        if response.status == HTTP_NOT_MODIFIED:
            etag = response.etag if response.etag is not None else feed.etag
            last_modified = response.last_modified if response.last_modified is not None else feed.last_modified
            await self.store.update_feed_fetch_state(feed.id, fetched_at, etag, last_modified)
            logger.info(f"Feed {feed.id} not modified")
            return FetchOutcome(feed_id=feed.id, status=response.status, updated=False, fetched_at=fetched_at)

        if not response.ok:
            raise FeedFetchError(FetchErrorCode.HTTP_ERROR, f"Feed responded with status {response.status}",
                                 status=response.status, url=feed.url)

        parsed = self.parse_body(response)
        items = normalize_items(parsed.format, parsed.document, feed.url, self.hash_function)

        accepted = []
        if items:
            accepted = await self.resolver.resolve(feed.id, items)
            if accepted:
                inserted = await self.store.insert_articles(
                    [Article.from_candidate(feed.id, item) for item in accepted]
                )
                if inserted < len(accepted):
                    logger.info(f"Feed {feed.id}: {len(accepted) - inserted} articles were stored concurrently")

        await self.store.update_feed_fetch_state(feed.id, fetched_at, response.etag, response.last_modified)

        outcome = FetchOutcome(
            feed_id=feed.id,
            status=response.status,
            updated=len(accepted) > 0,
            fetched_at=fetched_at,
            articles_created=len(accepted),
            articles_skipped=len(items) - len(accepted)
        )
        logger.info(f"Feed {feed.id} ({parsed.format}): {outcome.articles_created} new, "
                    f"{outcome.articles_skipped} skipped")
        return outcome
