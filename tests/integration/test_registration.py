import json
from typing import Any, Dict, List, Optional

import pytest
import requests

from groupfeeder.exceptions import FeedFetchError, FetchErrorCode, InvalidFeedUrlError
from groupfeeder.registration import FeedRegistrar, url_host_fallback
from groupfeeder.security import FeedUrlValidator

from conftest import ATOM_FEED, RSS_WITH_GUIDS, json_feed


def make_response(status: int = 200, body: str = "", content_type: str = "application/rss+xml",
                  url: str = "https://example.com/feed.xml") -> requests.Response:
    response = requests.Response()
    response.status_code = status
    response._content = body.encode("utf-8")
    response.encoding = "utf-8"
    response.headers["Content-Type"] = content_type
    response.url = url
    return response


class FakeRequestsSession:
    def __init__(self, outcome: Any = None) -> None:
        self.headers: Dict[str, str] = {}
        self.outcome = outcome
        self.calls: List[Dict[str, Any]] = []

    def get(self, url: str, timeout: Optional[float] = None) -> requests.Response:
        self.calls.append({"url": url, "timeout": timeout})
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


@pytest.mark.parametrize("url", [
    "https://example.com/feed.xml",
    "http://news.example.org/rss?format=xml",
    "https://172.32.0.1/feed",
    "https://8.8.8.8/feed",
])
def test_public_urls_are_allowed(url):
    assert FeedUrlValidator().validate_url(url)


@pytest.mark.parametrize("url", [
    "",
    "ftp://example.com/feed",
    "file:///etc/passwd",
    "javascript:alert(1)",
    "http://localhost:8080/feed",
    "http://LOCALHOST/feed",
    "http://127.0.0.1/feed",
    "http://10.1.2.3/feed",
    "http://192.168.0.10/feed",
    "http://172.16.0.1/feed",
    "http://172.31.255.255/feed",
    "https:///no-host",
    "https://example.com/" + "a" * 2100,
])
def test_unsafe_urls_are_rejected(url):
    validator = FeedUrlValidator()

    assert not validator.validate_url(url)
    with pytest.raises(InvalidFeedUrlError):
        validator.check_url(url)


def test_private_hosts_allowed_when_configured():
    assert FeedUrlValidator(allow_private_hosts=True).validate_url("http://localhost:8080/feed")
    assert not FeedUrlValidator(allow_private_hosts=True).validate_url("ftp://localhost/feed")


def test_url_host_fallback():
    assert url_host_fallback("https://blog.example.com/feed") == "blog.example.com"
    assert url_host_fallback("not a url") == "not a url"


async def test_register_new_feed_uses_channel_title(store):
    session = FakeRequestsSession(make_response(body=RSS_WITH_GUIDS))
    registrar = FeedRegistrar(store, session=session)

    result = await registrar.register("  https://example.com/feed.xml ")

    assert result.created is True
    assert result.feed.url == "https://example.com/feed.xml"
    assert result.feed.title == "Example News"
    assert result.feed.description == "Latest stories"
    assert session.calls[0]["url"] == "https://example.com/feed.xml"
    assert session.headers["User-Agent"] == "GroupFeeder/1.0"


async def test_registering_twice_updates_existing_feed(store):
    session = FakeRequestsSession(make_response(body=ATOM_FEED))
    registrar = FeedRegistrar(store, session=session)

    first = await registrar.register("https://example.org/atom")
    second = await registrar.register("https://example.org/atom")

    assert first.created is True
    assert second.created is False
    assert second.feed.id == first.feed.id
    assert second.feed.title == "Atom Example"
    assert len(await store.list_feeds()) == 1


async def test_json_feed_without_title_falls_back_to_host(store):
    body = json.dumps({"version": "https://jsonfeed.org/version/1.1", "items": []})
    session = FakeRequestsSession(make_response(body=body, content_type="application/feed+json"))

    result = await FeedRegistrar(store, session=session).register("https://blog.example.com/feed.json")

    assert result.feed.title == "blog.example.com"
    assert result.to_dict()["created"] is True


async def test_json_feed_info_title_is_used(store):
    body = json.dumps(dict(json_feed(), title=None, info={"title": "From info"}))
    session = FakeRequestsSession(make_response(body=body, content_type="application/json"))

    result = await FeedRegistrar(store, session=session).register("https://example.com/feed.json")

    assert result.feed.title == "From info"


async def test_invalid_url_is_rejected_before_fetching(store):
    session = FakeRequestsSession(make_response(body=RSS_WITH_GUIDS))

    with pytest.raises(InvalidFeedUrlError):
        await FeedRegistrar(store, session=session).register("http://127.0.0.1/feed")

    assert session.calls == []
    assert store.feeds == {}


@pytest.mark.parametrize("outcome,code", [
    (requests.ConnectionError("refused"), FetchErrorCode.NETWORK),
    (requests.Timeout("slow"), FetchErrorCode.NETWORK),
    (make_response(status=404, body="missing"), FetchErrorCode.HTTP_ERROR),
    (make_response(body="<html><p>not a feed</p></html>", content_type="text/html"), FetchErrorCode.PARSE_ERROR),
    (make_response(body="[" * 100000, content_type="application/json"), FetchErrorCode.PARSE_ERROR),
])
async def test_registration_failures(store, outcome, code):
    registrar = FeedRegistrar(store, session=FakeRequestsSession(outcome))

    with pytest.raises(FeedFetchError) as exc_info:
        await registrar.register("https://example.com/feed.xml")

    assert exc_info.value.code == code
    assert store.feeds == {}
