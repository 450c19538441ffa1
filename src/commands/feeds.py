#!/usr/bin/env python3
"""
Feeds command for fetching, registering and listing feeds.
"""

from argparse import Namespace
from typing import List, Optional

from .base import BaseCommand
from groupfeeder.models import Feed, RunSummary


class FeedsCommand(BaseCommand):
    """Fetch, register and inspect feeds."""

    SUBCOMMANDS = ('fetch', 'fetch-one', 'add', 'list', 'due')

    def execute(self, subcommand: str, args: Namespace) -> int:
        """Execute feeds subcommand."""
        try:
            if subcommand == "fetch":
                return self.fetch(args)
            elif subcommand == "fetch-one":
                return self.fetch_one(args)
            elif subcommand == "add":
                return self.add(args)
            elif subcommand == "list":
                return self.list(args)
            elif subcommand == "due":
                return self.due(args)
            else:
                available = ", ".join(self.get_available_subcommands())
                self.logger.error(f"Unknown subcommand '{subcommand}'. Available: {available}")
                return 1

        except Exception as e:
            return self.handle_error(e, f"feeds {subcommand}")

    # Fetching

    def fetch(self, args: Namespace) -> int:
        """Run one batch over all due feeds and print the run summary."""
        self.require_database()
        summary = self.run_async(self._run_batch(getattr(args, 'force', False)))
        self.print_json(summary.to_dict())
        return 0 if summary.failures == 0 else 1

    async def _run_batch(self, force: bool) -> RunSummary:
        scheduler = self._container.get('scheduler')
        async with self.store, scheduler.fetcher:
            return await scheduler.run(force=force)

    def fetch_one(self, args: Namespace) -> int:
        """Fetch a single feed by id or url, regardless of when it was last fetched."""
        self.require_database()
        result = self.run_async(self._fetch_one(args.feed))
        if result is None:
            self.logger.error(f"No feed found for '{args.feed}'")
            return 1

        self.print_json(result.to_dict())
        return 0 if result.is_success else 1

    async def _fetch_one(self, reference: str):
        scheduler = self._container.get('scheduler')
        async with self.store as store, scheduler.fetcher:
            feed = await self._find_feed(store, reference)
            if feed is None:
                return None
            return await scheduler.fetch_one(feed)

    @staticmethod
    async def _find_feed(store, reference: str) -> Optional[Feed]:
        reference = reference.strip()
        if reference.isdigit():
            return await store.get_feed(int(reference))
        return await store.get_feed_by_url(reference)

    # Registration

    def add(self, args: Namespace) -> int:
        """Register a feed by URL."""
        self.require_database()
        result = self.run_async(self._register(args.url))

        print(f"{'✅ Added' if result.created else 'ℹ️  Updated'} feed {result.feed.id}: {result.feed.title}")
        print(f"   {result.feed.url}")
        return 0

    async def _register(self, url: str):
        registrar = self._container.get('registrar')
        async with self.store:
            return await registrar.register(url)

    # Listing

    def list(self, args: Namespace) -> int:
        """List all known feeds."""
        self.require_database()
        feeds = self.run_async(self._list_feeds(due_only=False))
        self._print_feeds(feeds, "📡 Feeds", getattr(args, 'json', False))
        return 0

    def due(self, args: Namespace) -> int:
        """List feeds that the next batch would fetch."""
        self.require_database()
        feeds = self.run_async(self._list_feeds(due_only=True))
        self._print_feeds(feeds, "⏰ Feeds due for refresh", getattr(args, 'json', False))
        return 0

    async def _list_feeds(self, due_only: bool) -> List[Feed]:
        async with self.store as store:
            if due_only:
                return await self._container.get('scheduler').find_due_feeds()
            return await store.list_feeds()

    def _print_feeds(self, feeds: List[Feed], heading: str, as_json: bool = False) -> None:
        if as_json:
            self.print_json([feed.to_dict() for feed in feeds])
            return

        print(heading)
        print("=" * 50)
        if not feeds:
            print("  (none)")
            return

        for feed in feeds:
            last_fetched = feed.last_fetched_at.strftime('%Y-%m-%d %H:%M UTC') if feed.last_fetched_at else 'never'
            print(f"  [{feed.id}] {feed.title}")
            print(f"      {feed.url}")
            print(f"      last fetched: {last_fetched}")
