#!/usr/bin/env python3
"""
Dedup Resolver

Decides which candidate items of one fetch cycle are new. Identity is
checked against the store in three batched lookups and against the items
already accepted earlier in the same batch:

- GUID, across all feeds
- link, across all feeds
- content fingerprint, within the owning feed only (GUID-less items)

The first occurrence of an identity in a batch wins.
"""

import asyncio
import logging
from typing import Dict, List, Optional, Set

from .models import CandidateItem

logger = logging.getLogger(__name__)

SKIP_GUID = 'guid'
SKIP_LINK = 'link'
SKIP_CONTENT_HASH = 'content_hash'


class DedupResolver:
    """Filters candidate items down to the ones not stored yet."""

    def __init__(self, store):
        """
        Args:
            store: FeedStore (or any object with the three lookup methods)
        """
        self.store = store

    async def _lookup(self, feed_id: int, items: List[CandidateItem]):
        guids = {item.guid for item in items if item.guid}
        links = {item.link for item in items}
        hashes = {item.content_hash for item in items if not item.guid and item.content_hash}

        return await asyncio.gather(
            self.store.find_existing_guids(sorted(guids)),
            self.store.find_existing_links(sorted(links)),
            self.store.find_existing_content_hashes(feed_id, sorted(hashes))
        )

    @staticmethod
    def skip_reason(item: CandidateItem, seen_guids: Set[str], seen_links: Set[str],
                    seen_hashes: Set[str]) -> Optional[str]:
        """Which identity makes the item a duplicate, or None if it is new."""
        if item.guid and item.guid in seen_guids:
            return SKIP_GUID
        if item.link in seen_links:
            return SKIP_LINK
        if not item.guid and item.content_hash and item.content_hash in seen_hashes:
            return SKIP_CONTENT_HASH
        return None

    async def resolve(self, feed_id: int, items: List[CandidateItem]) -> List[CandidateItem]:
        """
        Return the subsequence of items judged new, in input order.

        Args:
            feed_id: Feed that owns the items; scopes fingerprint matching
            items: Normalized candidates of one fetch cycle

        Returns:
            Accepted candidates
        """
        if not items:
            return []

        existing_guids, existing_links, existing_hashes = await self._lookup(feed_id, items)
        seen_guids = set(existing_guids)
        seen_links = set(existing_links)
        seen_hashes = set(existing_hashes)

        accepted = []
        skipped: Dict[str, int] = {}

        for item in items:
            reason = self.skip_reason(item, seen_guids, seen_links, seen_hashes)
            if reason:
                skipped[reason] = skipped.get(reason, 0) + 1
                continue

            accepted.append(item)
            if item.guid:
                seen_guids.add(item.guid)
            seen_links.add(item.link)
            if not item.guid and item.content_hash:
                seen_hashes.add(item.content_hash)

        if skipped:
            logger.debug(f"Feed {feed_id}: accepted {len(accepted)}/{len(items)} items, skipped by {skipped}")

        return accepted
