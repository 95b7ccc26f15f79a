"""Wires storage, scraper, lifecycle manager and scheduler into one service.

This is the surface the HTTP front end talks to:
    async with JobFeeds.from_settings(settings) as feeds:
        await feeds.create_query("golang", "berlin")
        offers = feeds.list_offers("golang", "berlin")
"""
from datetime import UTC, datetime, timedelta
from typing import Any, Self

from loguru import logger

from job_feed.config import Settings
from job_feed.exceptions import StorageError
from job_feed.lifecycle import LifecycleManager
from job_feed.schema import Offer, Query
from job_feed.scheduler import QueryScheduler
from job_feed.scraper import LinkedInScraper, Scraper
from job_feed.storage import FeedStorage, FeedStore


class JobFeeds:
    def __init__(
        self,
        storage: FeedStore,
        scraper: Scraper,
        lifecycle: LifecycleManager,
        scheduler: QueryScheduler,
        listing_window: timedelta = timedelta(days=7),
    ) -> None:
        self.storage = storage
        self.scraper = scraper
        self.lifecycle = lifecycle
        self.scheduler = scheduler
        self._listing_window = listing_window

    @classmethod
    def from_settings(cls, config: Settings, scraper: Scraper | None = None) -> Self:
        storage = FeedStorage(config.db_path)
        scraper = scraper or LinkedInScraper(
            url=config.linkedin_url,
            page_size=config.page_size,
            max_attempts=config.max_attempts,
            backoff_base=config.backoff_base,
            retryable_status_codes=config.retryable_status_codes,
            default_time_window=config.default_time_window,
            timeout=config.request_timeout,
        )
        retention = timedelta(days=config.offer_retention_days)
        lifecycle = LifecycleManager(
            storage,
            scraper,
            query_expiry=timedelta(days=config.query_expiry_days),
            offer_retention=retention,
        )
        scheduler = QueryScheduler(
            storage,
            lifecycle.run_query,
            lifecycle.sweep_offers,
            retry_delay=timedelta(seconds=config.retry_delay),
            first_run_timeout=config.first_run_timeout,
            shutdown_grace=config.shutdown_grace,
            sweep_hour=config.sweep_hour,
        )
        return cls(storage, scraper, lifecycle, scheduler, listing_window=retention)

    async def __aenter__(self) -> Self:
        await self.scraper.__aenter__()
        await self.scheduler.start()
        return self

    async def __aexit__(self, exc_type: Any, *_: Any) -> None:
        await self.scheduler.shutdown()
        await self.scraper.__aexit__(exc_type)

    async def create_query(self, keywords: str, location: str) -> Query:
        """Idempotent; a new query gets its first scrape right away."""
        return await self.scheduler.create_and_schedule(keywords, location)

    def list_offers(self, keywords: str, location: str) -> list[Offer]:
        """Offers posted inside the listing window, newest first. Counts as a read of the feed.

        Raises:
            QueryNotFound
        """
        query = self.storage.get_query(keywords, location)
        try:
            self.storage.update_query_read_timestamp(query.id)
        except StorageError as e:
            logger.error(f"Unable to update read timestamp of query {query.id}: {e}")
        since = (datetime.now(UTC) - self._listing_window).date()
        return self.storage.list_offers(query.id, posted_since=since)
