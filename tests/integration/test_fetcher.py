import json
from datetime import timedelta

import aiohttp
import pytest

from groupfeeder.config import DEFAULT_ACCEPT_HEADER
from groupfeeder.exceptions import FeedFetchError, FetchErrorCode
from groupfeeder.fetcher import FeedResponse, decode_body, looks_like_json

from conftest import EMPTY_RSS, FEED_URL, FIXED_NOW, RSS_WITH_GUIDS, FakeResponse, json_feed

RSS_HEADERS = {"Content-Type": "application/rss+xml", "ETag": '"v1"', "Last-Modified": "Mon, 06 Jan 2025 11:00:00 GMT"}


async def test_new_feed_creates_articles_and_stores_validators(store, session, fetcher):
    feed = store.add_feed()
    session.add(FEED_URL, FakeResponse(200, RSS_WITH_GUIDS, RSS_HEADERS))

    outcome = await fetcher.fetch(feed)

    assert outcome.status == 200
    assert outcome.updated is True
    assert outcome.articles_created == 2
    assert outcome.articles_skipped == 0
    assert outcome.fetched_at == FIXED_NOW
    assert [article.guid for article in store.articles] == ["story-1", "story-2"]
    assert all(article.feed_id == feed.id for article in store.articles)
    assert store.state_updates == [(feed.id, FIXED_NOW, '"v1"', "Mon, 06 Jan 2025 11:00:00 GMT")]


async def test_request_headers_include_cache_validators(store, session, fetcher):
    feed = store.add_feed(etag='"v0"', last_modified="Sun, 05 Jan 2025 00:00:00 GMT")
    session.add(FEED_URL, FakeResponse(304))

    await fetcher.fetch(feed)

    headers = session.requests[0]["headers"]
    assert headers["User-Agent"] == "GroupFeeder/1.0"
    assert headers["Accept"] == DEFAULT_ACCEPT_HEADER
    assert headers["If-None-Match"] == '"v0"'
    assert headers["If-Modified-Since"] == "Sun, 05 Jan 2025 00:00:00 GMT"


async def test_first_fetch_sends_no_validators(store, session, fetcher):
    feed = store.add_feed()
    session.add(FEED_URL, FakeResponse(200, EMPTY_RSS))

    await fetcher.fetch(feed)

    headers = session.requests[0]["headers"]
    assert "If-None-Match" not in headers
    assert "If-Modified-Since" not in headers


async def test_not_modified_updates_fetch_time_only(store, session, fetcher):
    earlier = FIXED_NOW - timedelta(hours=1)
    feed = store.add_feed(last_fetched_at=earlier, etag='"v0"', last_modified="old")
    session.add(FEED_URL, FakeResponse(304, headers={"ETag": '"v1"'}))

    outcome = await fetcher.fetch(feed)

    assert outcome.status == 304
    assert outcome.updated is False
    assert outcome.articles_created == 0
    assert outcome.articles_skipped == 0
    assert store.articles == []
    stored = await store.get_feed(feed.id)
    assert stored.last_fetched_at == FIXED_NOW
    assert stored.etag == '"v1"'
    assert stored.last_modified == "old"


async def test_success_without_validators_clears_stored_ones(store, session, fetcher):
    feed = store.add_feed(etag='"v0"', last_modified="old")
    session.add(FEED_URL, FakeResponse(200, EMPTY_RSS))

    await fetcher.fetch(feed)

    stored = await store.get_feed(feed.id)
    assert stored.etag is None
    assert stored.last_modified is None


@pytest.mark.parametrize("status", [404, 410, 500, 503])
async def test_error_status_raises_http_error_and_leaves_feed_untouched(store, session, fetcher, status):
    feed = store.add_feed()
    session.add(FEED_URL, FakeResponse(status, "oops"))

    with pytest.raises(FeedFetchError) as exc_info:
        await fetcher.fetch(feed)

    assert exc_info.value.code == FetchErrorCode.HTTP_ERROR
    assert exc_info.value.status == status
    assert str(status) in exc_info.value.message
    assert store.state_updates == []


@pytest.mark.parametrize("error", [
    aiohttp.ClientConnectionError("refused"),
    aiohttp.ServerDisconnectedError(),
    OSError("dns failure"),
])
async def test_transport_failure_is_network_error(store, session, fetcher, error):
    feed = store.add_feed()
    session.add(FEED_URL, error)

    with pytest.raises(FeedFetchError) as exc_info:
        await fetcher.fetch(feed)

    assert exc_info.value.code == FetchErrorCode.NETWORK
    assert store.state_updates == []


async def test_body_read_failure_is_network_error(store, session, fetcher):
    feed = store.add_feed()
    session.add(FEED_URL, FakeResponse(200, read_error=aiohttp.ClientPayloadError("truncated")))

    with pytest.raises(FeedFetchError) as exc_info:
        await fetcher.fetch(feed)

    assert exc_info.value.code == FetchErrorCode.NETWORK
    assert exc_info.value.message == "Failed to read feed response body"
    assert store.state_updates == []


async def test_invalid_bytes_in_declared_charset_are_replaced(store, session, fetcher):
    feed = store.add_feed()
    body = RSS_WITH_GUIDS.encode("utf-8").replace(b"First story", b"Caf\xe9 story")
    session.add(FEED_URL, FakeResponse(200, body, {"Content-Type": "application/rss+xml; charset=utf-8"}))

    outcome = await fetcher.fetch(feed)

    assert outcome.articles_created == 2
    assert store.articles[0].title == "Caf\ufffd story"
    assert len(store.state_updates) == 1


async def test_oversized_body_is_parse_error(store, session, fetcher):
    feed = store.add_feed()
    fetcher.max_response_bytes = 100
    session.add(FEED_URL, FakeResponse(200, RSS_WITH_GUIDS))

    with pytest.raises(FeedFetchError) as exc_info:
        await fetcher.fetch(feed)

    assert exc_info.value.code == FetchErrorCode.PARSE_ERROR
    assert "too large" in exc_info.value.message
    assert store.state_updates == []


def test_deeply_nested_json_is_parse_error(fetcher):
    response = FeedResponse(200, None, None, "application/json", "[" * 100000)

    with pytest.raises(FeedFetchError) as exc_info:
        fetcher.parse_body(response)

    assert exc_info.value.code == FetchErrorCode.PARSE_ERROR


def test_decode_body_falls_back_to_utf8_for_unknown_charset():
    assert decode_body("caf\u00e9".encode("utf-8"), "no-such-charset") == "caf\u00e9"
    assert decode_body(b"caf\xe9", None) == "caf\ufffd"


@pytest.mark.parametrize("body,content_type", [
    ("<html><body>Not a feed</body></html>", "text/html"),
    ("{broken json", "text/plain"),
    ('{"title": "json without items"}', "application/json"),
    ("", "application/xml"),
])
async def test_unparseable_body_is_parse_error(store, session, fetcher, body, content_type):
    feed = store.add_feed()
    session.add(FEED_URL, FakeResponse(200, body, {"Content-Type": content_type}))

    with pytest.raises(FeedFetchError) as exc_info:
        await fetcher.fetch(feed)

    assert exc_info.value.code == FetchErrorCode.PARSE_ERROR
    assert store.state_updates == []
    assert store.articles == []


async def test_json_feed_detected_by_content_type(store, session, fetcher):
    feed = store.add_feed(url="https://x.com/feed.json")
    body = json.dumps(json_feed({"id": "j1", "url": "/posts/1", "title": "JSON item"}))
    session.add(feed.url, FakeResponse(200, body, {"Content-Type": "application/feed+json"}))

    outcome = await fetcher.fetch(feed)

    assert outcome.articles_created == 1
    assert store.articles[0].link == "https://x.com/posts/1"


async def test_json_feed_detected_by_leading_brace(store, session, fetcher):
    feed = store.add_feed(url="https://x.com/feed")
    body = "\n  " + json.dumps(json_feed({"id": "j1", "url": "https://x.com/1"}))
    session.add(feed.url, FakeResponse(200, body, {"Content-Type": "text/plain"}))

    outcome = await fetcher.fetch(feed)

    assert outcome.articles_created == 1


async def test_feed_without_items_records_fetch(store, session, fetcher):
    feed = store.add_feed()
    session.add(FEED_URL, FakeResponse(200, EMPTY_RSS, {"ETag": '"empty"'}))

    outcome = await fetcher.fetch(feed)

    assert outcome.updated is False
    assert outcome.articles_created == 0
    assert outcome.articles_skipped == 0
    assert store.lookups == []
    assert store.state_updates == [(feed.id, FIXED_NOW, '"empty"', None)]


async def test_refetching_unchanged_feed_creates_nothing(store, session, fetcher):
    feed = store.add_feed()
    session.add(FEED_URL, FakeResponse(200, RSS_WITH_GUIDS))

    first = await fetcher.fetch(feed)
    second = await fetcher.fetch(await store.get_feed(feed.id))

    assert first.articles_created == 2
    assert second.articles_created == 0
    assert second.articles_skipped == 2
    assert second.updated is False
    assert len(store.articles) == 2


async def test_guidless_item_with_new_link_is_caught_by_fingerprint(store, session, fetcher):
    feed = store.add_feed(url="https://x.com/feed.json")
    item = {"title": "Same story", "content_text": "Same text", "date_published": "2025-01-06T10:00:00Z"}
    session.add(
        feed.url,
        FakeResponse(200, json.dumps(json_feed(dict(item, url="https://x.com/story?utm=1")))),
        FakeResponse(200, json.dumps(json_feed(dict(item, url="https://x.com/story?utm=2")))),
    )

    first = await fetcher.fetch(feed)
    second = await fetcher.fetch(await store.get_feed(feed.id))

    assert first.articles_created == 1
    assert store.articles[0].guid is None
    assert store.articles[0].content_hash is not None
    assert len(store.articles[0].content_hash) == 16
    assert second.articles_created == 0
    assert second.articles_skipped == 1


async def test_guid_colliding_with_other_feed_is_skipped(store, session, fetcher):
    other = store.add_feed(url="https://other.com/rss")
    session.add(other.url, FakeResponse(200, RSS_WITH_GUIDS))
    await fetcher.fetch(other)

    feed = store.add_feed()
    mirrored = RSS_WITH_GUIDS.replace("https://example.com/stories/", "https://mirror.com/s/")
    session.add(FEED_URL, FakeResponse(200, mirrored))

    outcome = await fetcher.fetch(feed)

    assert outcome.articles_created == 0
    assert outcome.articles_skipped == 2
    assert await store.count_articles(feed.id) == 0


def test_looks_like_json():
    assert looks_like_json("application/feed+json; charset=utf-8", "<rss/>")
    assert looks_like_json("", "  [1]")
    assert not looks_like_json("application/xml", "<?xml version='1.0'?>")
