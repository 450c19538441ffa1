#!/usr/bin/env python3
"""
Security utilities for feed registration.

Keeps user-supplied feed URLs from pointing the server at itself or at
hosts on private networks.
"""

import re
import logging
import urllib.parse
from typing import Optional

from .exceptions import InvalidFeedUrlError

logger = logging.getLogger(__name__)


class FeedUrlValidator:
    """Validates feed URLs before they are fetched or stored."""

    MAX_URL_LENGTH = 2048

    # Allowed URL schemes
    ALLOWED_SCHEMES = {'http', 'https'}

    BLOCKED_HOSTNAMES = {'localhost'}

    # Loopback and RFC 1918 IPv4 ranges
    PRIVATE_IP_PATTERNS = [
        r'^127\.',
        r'^10\.',
        r'^192\.168\.',
        r'^172\.(1[6-9]|2\d|3[01])\.',
    ]

    # Maximum registration response size (10MB)
    MAX_RESPONSE_BYTES = 10 * 1024 * 1024

    def __init__(self, allow_private_hosts: bool = False):
        self.allow_private_hosts = allow_private_hosts
        self.private_ip_regex = re.compile('|'.join(self.PRIVATE_IP_PATTERNS))

    def rejection_reason(self, url: str) -> Optional[str]:
        """Why a URL must not be used as a feed, or None if it is acceptable."""
        if not url or not url.strip():
            return "url is empty"
        if len(url) > self.MAX_URL_LENGTH:
            return f"url is longer than {self.MAX_URL_LENGTH} characters"

        try:
            parsed = urllib.parse.urlparse(url.strip())
            hostname = parsed.hostname
        except ValueError as e:
            return f"url cannot be parsed ({e})"

        if parsed.scheme.lower() not in self.ALLOWED_SCHEMES:
            return f"scheme '{parsed.scheme}' is not allowed"

        if not hostname:
            return "url has no host"

        if self.allow_private_hosts:
            return None

        if hostname in self.BLOCKED_HOSTNAMES:
            return f"host {hostname} is not allowed"

        if self.private_ip_regex.match(hostname):
            return f"host {hostname} is in a private network range"

        return None

    def validate_url(self, url: str) -> bool:
        """
        Validate that a URL is safe to fetch.

        Returns:
            True if URL is valid and safe, False otherwise
        """
        reason = self.rejection_reason(url)
        if reason:
            logger.warning(f"Blocked feed url {url}: {reason}")
            return False
        return True

    def check_url(self, url: str) -> str:
        """
        Return the trimmed URL or raise.

        Raises:
            InvalidFeedUrlError: If the URL fails validation
        """
        reason = self.rejection_reason(url)
        if reason:
            raise InvalidFeedUrlError(url, reason)
        return url.strip()
