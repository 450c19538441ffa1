#!/usr/bin/env python3
"""
Feed Entry Normalizer

Converts a parsed, format-tagged feed document into an ordered list of
CandidateItem objects with resolved links, titles, authors, timestamps and
an optional content fingerprint. Performs no I/O.

The parsed document is publisher controlled, so every field access checks
the value's type first; non-string, null or whitespace-only values count as
absent. Each field is read through a fixed fallback chain, and the order of
each chain is part of the contract.
"""

import logging
from abc import ABC
from collections.abc import Mapping
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote, urljoin

import pytz
from dateutil import parser as date_parser

from .content_hash import ContentHashFunction
from .feed_parser import FORMAT_ATOM, FORMAT_JSON, FORMAT_RDF, FORMAT_RSS
from .models import CandidateItem

logger = logging.getLogger(__name__)

# Left unescaped in synthesized guid links besides letters, digits and -_.
GUID_SAFE_CHARS = "!~*'()"


# Field access helpers

def get_string(value: Any) -> Optional[str]:
    """
    Return a trimmed, non-empty string or None.

    Mappings carrying a ``value`` key (feedparser detail objects, text
    constructs) are unwrapped.
    """
    while isinstance(value, Mapping) and 'value' in value:
        value = value.get('value')

    if isinstance(value, str):
        trimmed = value.strip()
        return trimmed or None

    return None


def read_string(source: Any, key: str) -> Optional[str]:
    """Read ``source[key]`` as a string if source is a mapping."""
    if not isinstance(source, Mapping):
        return None
    return get_string(source.get(key))


def read_field(source: Any, key: str) -> Any:
    """Read a raw field if source is a mapping."""
    if not isinstance(source, Mapping):
        return None
    return source.get(key)


def first_string(source: Any, *keys: str) -> Optional[str]:
    """First present string among the given keys, in order."""
    for key in keys:
        value = read_string(source, key)
        if value:
            return value
    return None


def read_namespaced(source: Any, namespace: str, key: str) -> Optional[str]:
    """
    Read a namespaced field such as ``dc:creator``.

    Accepts both the nested shape ``{'dc': {'creator': ...}}`` and the
    flattened ``dc_creator`` key produced by feedparser.
    """
    nested = read_string(read_field(source, namespace), key)
    if nested:
        return nested
    return read_string(source, f"{namespace}_{key}")


# Link resolution

def strip_fragment(url: str) -> str:
    return url.split('#', 1)[0]


def resolve_link(link: Optional[str], feed_url: str, guid: Optional[str]) -> Optional[str]:
    """
    Turn an extracted link into an absolute URL.

    Relative links are resolved against the feed URL. When no link exists
    but a GUID does, a stable pseudo-link is derived from the feed URL so the
    item can still be deduplicated and displayed.
    """
    if link:
        trimmed = link.strip()
        if trimmed:
            try:
                return urljoin(feed_url, trimmed)
            except ValueError:
                return trimmed

    if guid:
        return f"{strip_fragment(feed_url)}#guid={quote(guid, safe=GUID_SAFE_CHARS)}"

    return None


# Dates

def parse_pub_date(value: Optional[str]) -> Optional[datetime]:
    """Parse a feed date string into an aware UTC datetime, or None."""
    if not value:
        return None

    try:
        dt = date_parser.parse(value)
        if dt.tzinfo is None:
            # Assume UTC if no timezone info
            dt = pytz.utc.localize(dt)
        return dt.astimezone(pytz.utc)
    except (ValueError, OverflowError) as e:
        logger.debug(f"Failed to parse date '{value}': {e}")
        return None


def safe_content_hash(hash_function: ContentHashFunction, title: str,
                      description: Optional[str], pub_date: Optional[str]) -> Optional[str]:
    """Run the fingerprint function; any failure means no fingerprint."""
    try:
        content_hash = hash_function(title, description, pub_date)
    except Exception as e:
        logger.warning(f"Content hash generation failed for '{title[:50]}': {e}")
        return None

    if isinstance(content_hash, str) and content_hash:
        return content_hash
    return None


class EntryNormalizer(ABC):
    """
    Normalizes entries of one feed format.

    Subclasses only differ in where they find an entry's link; every other
    field follows the same fallback chains.
    """

    format_name = ''

    def extract_raw_items(self, document: Any) -> List[Any]:
        """Entry list of the document: items, then entries."""
        for key in ('items', 'entries'):
            value = read_field(document, key)
            if isinstance(value, list):
                return value
        return []

    def extract_guid(self, item: Any) -> Optional[str]:
        return first_string(item, 'guid', 'id')

    def extract_link(self, item: Any) -> Optional[str]:
        return read_string(item, 'link')

    def extract_title(self, item: Any) -> Optional[str]:
        return read_string(item, 'title')

    def extract_description(self, item: Any) -> Optional[str]:
        return first_string(item, 'description', 'summary', 'content_text', 'subtitle')

    def extract_content(self, item: Any) -> Optional[str]:
        """Full content: direct string, nested object, feedparser list, then html/text fields."""
        content = read_field(item, 'content')

        if isinstance(content, str):
            direct = get_string(content)
            if direct:
                return direct
        elif isinstance(content, Mapping):
            nested = first_string(content, 'encoded', 'value', 'content')
            if nested:
                return nested
        elif isinstance(content, list):
            for block in content:
                nested = first_string(block, 'encoded', 'value', 'content')
                if nested:
                    return nested

        return first_string(item, 'content_html', 'contentText')

    def extract_author(self, item: Any) -> Optional[str]:
        """Author: scalar, nested name, authors list, then dc:creator."""
        author = read_string(item, 'author')
        if author:
            return author

        for key in ('author', 'author_detail'):
            name = read_string(read_field(item, key), 'name')
            if name:
                return name

        authors = read_field(item, 'authors')
        if isinstance(authors, list):
            for entry in authors:
                name = read_string(entry, 'name')
                if name:
                    return name

        return read_namespaced(item, 'dc', 'creator')

    def extract_pub_date(self, item: Any) -> Optional[str]:
        """Raw publish date string, first of the known aliases."""
        return (
            first_string(item, 'pubDate', 'published', 'updated', 'date_published', 'created')
            or read_namespaced(item, 'dc', 'date')
            or read_namespaced(item, 'dcterms', 'created')
        )

    def normalize_entry(self, item: Any, feed_url: str,
                        hash_function: Optional[ContentHashFunction] = None) -> Optional[CandidateItem]:
        """
        Normalize one raw entry.

        Returns None when neither a link nor a GUID can be derived.
        """
        guid = self.extract_guid(item)
        link = resolve_link(self.extract_link(item), feed_url, guid)
        if not link:
            return None

        title = self.extract_title(item) or link
        description = self.extract_description(item)
        raw_pub_date = self.extract_pub_date(item)

        content_hash = None
        if not guid and hash_function is not None:
            content_hash = safe_content_hash(hash_function, title, description, raw_pub_date)

        return CandidateItem(
            link=link,
            title=title,
            guid=guid,
            description=description,
            content=self.extract_content(item),
            author=self.extract_author(item),
            pub_date=parse_pub_date(raw_pub_date),
            content_hash=content_hash
        )

    def normalize(self, document: Any, feed_url: str,
                  hash_function: Optional[ContentHashFunction] = None) -> List[CandidateItem]:
        """Normalize every entry of a document, in document order."""
        candidates = []
        discarded = 0

        for item in self.extract_raw_items(document):
            candidate = self.normalize_entry(item, feed_url, hash_function)
            if candidate is None:
                discarded += 1
                continue
            candidates.append(candidate)

        if discarded:
            logger.debug(f"Discarded {discarded} {self.format_name} entries without link or guid from {feed_url}")

        return candidates


class RssNormalizer(EntryNormalizer):
    format_name = FORMAT_RSS


class RdfNormalizer(RssNormalizer):
    format_name = FORMAT_RDF


class AtomNormalizer(EntryNormalizer):
    """Atom entries may only carry a list of typed links."""

    format_name = FORMAT_ATOM

    def extract_raw_items(self, document: Any) -> List[Any]:
        items = super().extract_raw_items(document)
        if items:
            return items
        entry = read_field(document, 'entry')
        return entry if isinstance(entry, list) else []

    def extract_link(self, item: Any) -> Optional[str]:
        link = super().extract_link(item)
        if link:
            return link

        links = read_field(item, 'links')
        if not isinstance(links, list):
            return None

        for entry in links:
            if read_string(entry, 'rel') == 'alternate':
                href = read_string(entry, 'href')
                if href:
                    return href
                break

        for entry in links:
            href = read_string(entry, 'href')
            if href:
                return href

        return None


class JsonFeedNormalizer(EntryNormalizer):
    """JSON Feed items link through url or external_url."""

    format_name = FORMAT_JSON

    def extract_link(self, item: Any) -> Optional[str]:
        return super().extract_link(item) or first_string(item, 'url', 'external_url')


NORMALIZERS: Dict[str, EntryNormalizer] = {
    FORMAT_RSS: RssNormalizer(),
    FORMAT_ATOM: AtomNormalizer(),
    FORMAT_RDF: RdfNormalizer(),
    FORMAT_JSON: JsonFeedNormalizer(),
}


def normalize_items(feed_format: str, document: Any, feed_url: str,
                    hash_function: Optional[ContentHashFunction] = None) -> List[CandidateItem]:
    """
    Normalize a parsed feed document into candidate items.

    Args:
        feed_format: One of rss, atom, rdf, json
        document: Parsed feed document
        feed_url: Source URL of the feed, used as base for relative links
        hash_function: Fingerprint function for items without a GUID

    Returns:
        Candidate items in document order, not deduplicated
    """
    normalizer = NORMALIZERS.get(feed_format)
    if normalizer is None:
        raise ValueError(f"Unknown feed format: {feed_format}")
    return normalizer.normalize(document, feed_url, hash_function)
