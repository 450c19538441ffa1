import asyncio
import sys
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple, Union

import pytest
from multidict import CIMultiDict

PROJECT_ROOT = Path(__file__).resolve().parents[2]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from groupfeeder.config import FetchConfig  # noqa: E402
from groupfeeder.fetcher import FeedFetcher  # noqa: E402
from groupfeeder.models import Article, Feed  # noqa: E402

FIXED_NOW = datetime(2025, 1, 6, 12, 0, tzinfo=timezone.utc)

FEED_URL = "https://example.com/feed.xml"

RSS_WITH_GUIDS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0" xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel>
    <title>Example News</title>
    <link>https://example.com/</link>
    <description>Latest stories</description>
    <item>
      <title>First story</title>
      <link>https://example.com/stories/1</link>
      <guid isPermaLink="false">story-1</guid>
      <description>Summary one</description>
      <pubDate>Mon, 06 Jan 2025 10:00:00 GMT</pubDate>
      <dc:creator>Jane Doe</dc:creator>
    </item>
    <item>
      <title>Second story</title>
      <link>https://example.com/stories/2</link>
      <guid isPermaLink="false">story-2</guid>
      <description>Summary two</description>
      <pubDate>Mon, 06 Jan 2025 11:00:00 GMT</pubDate>
    </item>
  </channel>
</rss>
"""

ATOM_FEED = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Example</title>
  <id>urn:uuid:feed</id>
  <updated>2025-01-06T12:00:00Z</updated>
  <entry>
    <title>Atom entry</title>
    <id>urn:uuid:entry-1</id>
    <link rel="self" href="https://example.org/self/1"/>
    <link rel="alternate" href="https://example.org/posts/1"/>
    <updated>2025-01-06T12:00:00Z</updated>
    <summary>Atom summary</summary>
    <author><name>Alex Writer</name></author>
  </entry>
</feed>
"""

RDF_FEED = """<?xml version="1.0"?>
<rdf:RDF xmlns:rdf="http://www.w3.org/1999/02/22-rdf-syntax-ns#"
         xmlns="http://purl.org/rss/1.0/"
         xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel rdf:about="https://example.net/">
    <title>RDF Example</title>
    <link>https://example.net/</link>
    <description>RDF feed</description>
  </channel>
  <item rdf:about="https://example.net/a">
    <title>RDF item</title>
    <link>https://example.net/a</link>
    <dc:date>2025-01-06T09:00:00Z</dc:date>
  </item>
</rdf:RDF>
"""

EMPTY_RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0">
  <channel>
    <title>Quiet feed</title>
    <link>https://example.com/</link>
    <description>Nothing yet</description>
  </channel>
</rss>
"""


def json_feed(*items: Dict[str, Any], title: str = "JSON Example") -> Dict[str, Any]:
    return {
        "version": "https://jsonfeed.org/version/1.1",
        "title": title,
        "items": list(items),
    }


class FakeStore:
    """In-memory stand-in for FeedStore with the same unique constraints."""

    def __init__(self) -> None:
        self.feeds: Dict[int, Feed] = {}
        self.articles: List[Article] = []
        self.state_updates: List[Tuple[int, datetime, Optional[str], Optional[str]]] = []
        self.lookups: List[Tuple[str, List[str]]] = []
        self._next_feed_id = 1
        self._next_article_id = 1

    def add_feed(self, url: str = FEED_URL, title: Optional[str] = None, **fields: Any) -> Feed:
        feed = Feed(id=self._next_feed_id, url=url, title=title or url, **fields)
        self.feeds[feed.id] = feed
        self._next_feed_id += 1
        return replace(feed)

    async def get_feed(self, feed_id: int) -> Optional[Feed]:
        feed = self.feeds.get(feed_id)
        return replace(feed) if feed else None

    async def get_feed_by_url(self, url: str) -> Optional[Feed]:
        for feed in self.feeds.values():
            if feed.url == url:
                return replace(feed)
        return None

    async def list_feeds(self) -> List[Feed]:
        return [replace(feed) for _, feed in sorted(self.feeds.items())]

    async def find_due_feeds(self, cutoff: datetime) -> List[Feed]:
        due = [
            feed for feed in self.feeds.values()
            if feed.last_fetched_at is None or feed.last_fetched_at < cutoff
        ]
        due.sort(key=lambda feed: (feed.last_fetched_at is not None, feed.last_fetched_at or cutoff, feed.id))
        return [replace(feed) for feed in due]

    async def upsert_feed(self, url: str, title: str, description: Optional[str] = None) -> Tuple[Feed, bool]:
        for feed in self.feeds.values():
            if feed.url == url:
                feed.title = title
                feed.description = description
                return replace(feed), False
        feed = self.add_feed(url, title, description=description)
        return feed, True

    async def update_feed_fetch_state(self, feed_id: int, fetched_at: datetime,
                                      etag: Optional[str], last_modified: Optional[str]) -> None:
        self.state_updates.append((feed_id, fetched_at, etag, last_modified))
        feed = self.feeds[feed_id]
        feed.last_fetched_at = fetched_at
        feed.etag = etag
        feed.last_modified = last_modified

    async def find_existing_guids(self, guids: Iterable[str]) -> Set[str]:
        wanted = list(guids)
        self.lookups.append(("guid", wanted))
        return {article.guid for article in self.articles if article.guid in set(wanted)}

    async def find_existing_links(self, links: Iterable[str]) -> Set[str]:
        wanted = list(links)
        self.lookups.append(("link", wanted))
        return {article.link for article in self.articles if article.link in set(wanted)}

    async def find_existing_content_hashes(self, feed_id: int, hashes: Iterable[str]) -> Set[str]:
        wanted = list(hashes)
        self.lookups.append(("content_hash", wanted))
        return {
            article.content_hash for article in self.articles
            if article.feed_id == feed_id and article.content_hash in set(wanted)
        }

    async def insert_articles(self, articles: List[Article]) -> int:
        inserted = 0
        for article in articles:
            guids = {stored.guid for stored in self.articles if stored.guid}
            links = {stored.link for stored in self.articles}
            if (article.guid and article.guid in guids) or article.link in links:
                continue
            self.articles.append(replace(article, id=self._next_article_id))
            self._next_article_id += 1
            inserted += 1
        return inserted

    async def count_articles(self, feed_id: Optional[int] = None) -> int:
        return sum(1 for article in self.articles if feed_id is None or article.feed_id == feed_id)


class FakeStream:
    def __init__(self, data: bytes, read_error: Optional[BaseException] = None) -> None:
        self.data = data
        self.read_error = read_error

    async def iter_chunked(self, size: int):
        if self.read_error is not None:
            raise self.read_error
        for start in range(0, len(self.data), size):
            yield self.data[start:start + size]


class FakeResponse:
    def __init__(self, status: int = 200, body: Union[str, bytes] = "", headers: Optional[Dict[str, str]] = None,
                 read_error: Optional[BaseException] = None) -> None:
        self.status = status
        self.headers = CIMultiDict(headers or {})
        data = body.encode("utf-8") if isinstance(body, str) else body
        self.content = FakeStream(data, read_error)

    @property
    def charset(self) -> Optional[str]:
        for param in self.headers.get("Content-Type", "").split(";")[1:]:
            key, _, value = param.strip().partition("=")
            if key.lower() == "charset":
                return value.strip('"')
        return None


class FakeRequestContext:
    def __init__(self, outcome: Any, delay: float) -> None:
        self.outcome = outcome
        self.delay = delay

    async def __aenter__(self) -> FakeResponse:
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> bool:
        return False


class FakeSession:
    """Scripted aiohttp session: each url replays its queued outcomes, repeating the last."""

    def __init__(self) -> None:
        self.routes: Dict[str, List[Any]] = {}
        self.delays: Dict[str, float] = {}
        self.requests: List[Dict[str, Any]] = []

    def add(self, url: str, *outcomes: Any, delay: float = 0.0) -> None:
        self.routes[url] = list(outcomes)
        self.delays[url] = delay

    def get(self, url: str, headers: Optional[Dict[str, str]] = None) -> FakeRequestContext:
        self.requests.append({"url": url, "headers": dict(headers or {})})
        queue = self.routes[url]
        outcome = queue.pop(0) if len(queue) > 1 else queue[0]
        return FakeRequestContext(outcome, self.delays.get(url, 0.0))

    async def close(self) -> None:
        pass


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def fetch_config() -> FetchConfig:
    return FetchConfig()


@pytest.fixture
def fetcher(store: FakeStore, session: FakeSession, fetch_config: FetchConfig) -> FeedFetcher:
    return FeedFetcher(store, session=session, fetch_config=fetch_config, clock=lambda: FIXED_NOW)
