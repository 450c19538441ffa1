#!/usr/bin/env python3
"""
Database command for schema management.
"""

from argparse import Namespace

from .base import BaseCommand


class DbCommand(BaseCommand):
    """Create and inspect the feed database."""

    SUBCOMMANDS = ('init', 'stats')

    def execute(self, subcommand: str, args: Namespace) -> int:
        """Execute db subcommand."""
        try:
            if subcommand == "init":
                return self.init(args)
            elif subcommand == "stats":
                return self.stats(args)
            else:
                available = ", ".join(self.get_available_subcommands())
                self.logger.error(f"Unknown subcommand '{subcommand}'. Available: {available}")
                return 1

        except Exception as e:
            return self.handle_error(e, f"db {subcommand}")

    def init(self, args: Namespace) -> int:
        """Create tables and indexes if they are missing."""
        self.require_database()
        self.run_async(self._init())
        print("✅ Database schema ready")
        return 0

    async def _init(self) -> None:
        async with self.store as store:
            await store.ensure_schema()

    def stats(self, args: Namespace) -> int:
        """Show feed and article counts."""
        self.require_database()
        feeds, articles = self.run_async(self._stats())

        print("📊 Database Statistics")
        print("=" * 50)
        print(f"  Feeds: {len(feeds)}")
        print(f"  Articles: {articles}")
        never_fetched = sum(1 for feed in feeds if feed.last_fetched_at is None)
        if never_fetched:
            print(f"  Never fetched: {never_fetched}")
        return 0

    async def _stats(self):
        async with self.store as store:
            return await store.list_feeds(), await store.count_articles()
