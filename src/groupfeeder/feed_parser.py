#!/usr/bin/env python3
"""
Format-detecting feed parser.

Wraps feedparser for XML feeds (RSS, Atom, RDF) and recognizes JSON Feed
documents that were already decoded by the caller. The result is a tagged
pair of format and parsed document; the normalizer only ever sees that pair.
"""

import io
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping

import feedparser

from .exceptions import FeedParseError

logger = logging.getLogger(__name__)

FORMAT_RSS = 'rss'
FORMAT_ATOM = 'atom'
FORMAT_RDF = 'rdf'
FORMAT_JSON = 'json'

FEED_FORMATS = (FORMAT_RSS, FORMAT_ATOM, FORMAT_RDF, FORMAT_JSON)

# feedparser version strings for RSS 0.90 and RSS 1.0, both RDF-based
RDF_VERSIONS = {'rss090', 'rss10'}

# The body reaches us already decoded; re-encoded as UTF-8 it must not be
# re-decoded with the charset from the XML declaration.
DECODED_TEXT_HEADERS = {'content-type': 'application/xml; charset=utf-8'}


@dataclass
class ParsedFeed:
    """A structurally parsed feed document tagged with its format."""
    format: str
    document: Any

    def feed_metadata(self) -> Dict[str, Any]:
        """Channel-level fields (title, description) as a plain mapping."""
        document = self.document
        if not isinstance(document, Mapping):
            return {}
        if self.format == FORMAT_JSON:
            return dict(document)
        channel = document.get('feed')
        return dict(channel) if isinstance(channel, Mapping) else {}


def format_from_version(version: str) -> str:
    """Map a feedparser version string to a format tag."""
    if not version:
        raise FeedParseError("unrecognized feed format")
    if version.startswith('atom'):
        return FORMAT_ATOM
    if version in RDF_VERSIONS:
        return FORMAT_RDF
    if version.startswith('rss') or version == 'cdf':
        return FORMAT_RSS
    if version.startswith('json'):
        return FORMAT_JSON
    raise FeedParseError(f"unsupported feed version {version}")


def parse_json_feed(data: Any) -> ParsedFeed:
    """Accept a decoded JSON value if it is shaped like a JSON Feed."""
    if not isinstance(data, Mapping):
        raise FeedParseError("JSON document is not an object")

    items = data.get('items')
    if not isinstance(items, list):
        raise FeedParseError("JSON document has no items list")

    version = data.get('version')
    if isinstance(version, str) and 'jsonfeed' not in version:
        logger.debug(f"JSON document declares unexpected version {version}")

    return ParsedFeed(format=FORMAT_JSON, document=data)


def parse_xml_feed(text: str) -> ParsedFeed:
    """Parse raw XML feed text with feedparser."""
    try:
        parsed = feedparser.parse(
            io.BytesIO(text.encode('utf-8')),
            response_headers=DECODED_TEXT_HEADERS
        )
    except Exception as e:
        raise FeedParseError("feedparser raised", e) from e

    version = parsed.get('version') or ''
    if not version:
        if parsed.get('bozo'):
            raise FeedParseError("malformed feed document", parsed.get('bozo_exception'))
        raise FeedParseError("unrecognized feed format")

    if parsed.get('bozo'):
        logger.warning(f"Feed parsing warning: {parsed.get('bozo_exception')}")

    return ParsedFeed(format=format_from_version(version), document=parsed)


def parse_feed(content: Any) -> ParsedFeed:
    """
    Detect the format of a feed and parse it.

    Args:
        content: Raw feed text, or an already-decoded JSON value

    Returns:
        ParsedFeed tagged with one of rss, atom, rdf, json

    Raises:
        FeedParseError: If the content is not a recognizable feed
    """
    if isinstance(content, bytes):
        content = content.decode('utf-8', errors='replace')

    if isinstance(content, str):
        if not content.strip():
            raise FeedParseError("empty feed body")
        return parse_xml_feed(content)

    return parse_json_feed(content)
