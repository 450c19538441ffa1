#!/usr/bin/env python3
"""
Content fingerprints for feed items that carry no GUID.
"""

import hashlib
from typing import Callable, Optional

DEFAULT_HASH_LENGTH = 16

ContentHashFunction = Callable[[str, Optional[str], Optional[str]], str]


def generate_content_hash(title: str, description: Optional[str] = None,
                          pub_date: Optional[str] = None,
                          length: int = DEFAULT_HASH_LENGTH) -> str:
    """
    Short sha256 fingerprint over title, description and raw publish date.

    The publish date is the string as it appeared in the feed, not the
    parsed timestamp, so the fingerprint is stable across parser versions.
    """
    content = f"{title}|{description or ''}|{pub_date or ''}"
    return hashlib.sha256(content.encode('utf-8')).hexdigest()[:length]


def content_hasher(length: int = DEFAULT_HASH_LENGTH) -> ContentHashFunction:
    """Build a hash function truncated to a configured length."""
    def _hash(title: str, description: Optional[str] = None, pub_date: Optional[str] = None) -> str:
        return generate_content_hash(title, description, pub_date, length=length)
    return _hash
