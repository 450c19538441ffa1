#!/usr/bin/env python3
"""
Batch Scheduler

Selects the feeds that are due for a refresh and fetches them in fixed-size
concurrent waves. Every feed runs under its own hard timeout, and a failing
feed is reported in the run summary instead of aborting the batch.
"""

import asyncio
import logging
import time
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Sequence, TypeVar

from .exceptions import FeedFetchError, FetchErrorCode
from .fetcher import utc_now
from .models import Feed, FeedExecutionResult, RunSummary

logger = logging.getLogger(__name__)

UNKNOWN_ERROR_MESSAGE = "Unexpected error while fetching feed"

T = TypeVar('T')


def chunk_waves(items: Sequence[T], size: int) -> List[List[T]]:
    """Split items into consecutive waves; a non-positive size means one wave."""
    if size <= 0:
        return [list(items)]
    return [list(items[index:index + size]) for index in range(0, len(items), size)]


class BatchScheduler:
    """Runs fetch cycles over all due feeds with bounded concurrency."""

    def __init__(self,
                 store,
                 fetcher,
                 refresh_interval: timedelta = timedelta(minutes=15),
                 wave_size: int = 5,
                 feed_timeout: float = 30.0,
                 clock: Optional[Callable[[], datetime]] = None):
        """
        Initialize batch scheduler.

        Args:
            store: FeedStore used for due-feed selection
            fetcher: FeedFetcher running a single feed's cycle
            refresh_interval: Minimum age of the last fetch before a feed is due again
            wave_size: Feeds fetched concurrently per wave
            feed_timeout: Seconds a single feed may take before it is cancelled
            clock: Source of the current time
        """
        self.store = store
        self.fetcher = fetcher
        self.refresh_interval = refresh_interval
        self.wave_size = wave_size
        self.feed_timeout = feed_timeout
        self.clock = clock or utc_now

    @classmethod
    def from_config(cls, store, fetcher, fetch_config) -> 'BatchScheduler':
        return cls(
            store,
            fetcher,
            refresh_interval=timedelta(minutes=fetch_config.refresh_interval_minutes),
            wave_size=fetch_config.wave_size,
            feed_timeout=fetch_config.feed_timeout_seconds
        )

    async def find_due_feeds(self, now: Optional[datetime] = None) -> List[Feed]:
        """Feeds never fetched or fetched before now minus the refresh interval, oldest first."""
        cutoff = (now or self.clock()) - self.refresh_interval
        return await self.store.find_due_feeds(cutoff)

    async def process_feed(self, feed: Feed) -> FeedExecutionResult:
        """
        Fetch one feed under the hard timeout and capture any failure.

        Never raises except for cancellation of the whole batch.
        """
        try:
            outcome = await asyncio.wait_for(self.fetcher.fetch(feed), timeout=self.feed_timeout)
            return FeedExecutionResult.success(feed.id, outcome)

        except asyncio.TimeoutError:
            message = f"Feed fetch exceeded {self.feed_timeout:g}s timeout"
            logger.warning(f"Feed fetch timed out for feed {feed.id}: {message}")
            return FeedExecutionResult.failure(feed.id, FetchErrorCode.TIMEOUT, message)

        except FeedFetchError as e:
            logger.warning(f"Feed fetch failed for feed {feed.id}: [{e.code.value}] {e.message}")
            return FeedExecutionResult.failure(feed.id, e.code, e.message)

        except Exception as e:
            logger.error(f"Unexpected error while fetching feed {feed.id}: {e}", exc_info=True)
            return FeedExecutionResult.failure(feed.id, FetchErrorCode.UNKNOWN, UNKNOWN_ERROR_MESSAGE)

    async def run_feeds(self, feeds: Sequence[Feed]) -> RunSummary:
        """Fetch the given feeds wave by wave and aggregate the results."""
        start_time = time.monotonic()
        results: List[FeedExecutionResult] = []

        waves = chunk_waves(feeds, self.wave_size) if feeds else []
        for number, wave in enumerate(waves, 1):
            logger.info(f"Wave {number}/{len(waves)}: fetching {len(wave)} feeds")
            results.extend(await asyncio.gather(*(self.process_feed(feed) for feed in wave)))

        summary = RunSummary(results=results, duration_seconds=time.monotonic() - start_time)
        logger.info(
            f"Fetched {summary.successes}/{summary.total_feeds} feeds in {summary.duration_seconds:.2f}s: "
            f"{summary.updated_feeds} updated, {summary.articles_created} articles created, "
            f"{summary.articles_skipped} skipped, {summary.failures} failed"
        )
        return summary

    async def run(self, force: bool = False) -> RunSummary:
        """
        Run one batch over all due feeds.

        Args:
            force: Fetch every known feed regardless of its last fetch time

        Returns:
            RunSummary with one result per selected feed
        """
        feeds = await self.store.list_feeds() if force else await self.find_due_feeds()
        if not feeds:
            logger.info("No feeds due for refresh")
            return RunSummary()

        logger.info(f"Refreshing {len(feeds)} feeds in waves of {self.wave_size}")
        return await self.run_feeds(feeds)

    async def fetch_one(self, feed: Feed) -> FeedExecutionResult:
        """Fetch a single feed outside the due filter."""
        return await self.process_feed(feed)
