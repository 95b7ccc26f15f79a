"""Per-cycle decisions for a query: expire it, scrape it, or ask for a retry.

The manager never touches the schedule itself; it reports a RunOutcome and the
scheduler acts on it (drop the tasks, queue a one-off retry, or nothing).
"""
from datetime import UTC, datetime, timedelta

from loguru import logger

from job_feed.exceptions import (
    DuplicateAssociation,
    DuplicateOffer,
    FatalScrapeError,
    QueryNotFound,
    RetryableScrapeError,
    StorageError,
)
from job_feed.schema import Offer, Query, RunOutcome
from job_feed.scraper import Scraper
from job_feed.storage import FeedStore


class LifecycleManager:
    def __init__(
        self,
        storage: FeedStore,
        scraper: Scraper,
        query_expiry: timedelta = timedelta(days=7),
        offer_retention: timedelta = timedelta(days=7),
    ) -> None:
        self._storage = storage
        self._scraper = scraper
        self._query_expiry = query_expiry
        self._offer_retention = offer_retention

    def is_expired(self, query: Query, now: datetime | None = None) -> bool:
        now = now or datetime.now(UTC)
        return now - query.queried_at > self._query_expiry

    async def run_query(self, query_id: int) -> RunOutcome:
        """Run one cycle for the query.

        Returns:
            expired   query unread for too long, deleted, no scrape made
            missing   query no longer in storage
            retry     scrape ran out of retries; partial offers were stored
            failed    fatal scrape or storage error; nothing about the query changed
            completed scrape finished and the run timestamp was bumped
        """
        try:
            query = self._storage.get_query_by_id(query_id)
        except QueryNotFound:
            logger.warning(f"Query {query_id} vanished from storage, dropping its schedule")
            return RunOutcome.missing
        except StorageError as e:
            logger.error(f"Unable to load query {query_id}: {e}")
            return RunOutcome.failed

        if self.is_expired(query):
            return self._expire(query)

        outcome = RunOutcome.completed
        try:
            offers = await self._scraper.scrape(query)
        except RetryableScrapeError as e:
            logger.warning(f"Scrape for query {query.id} will be retried: {e} ({len(e.offers)} partial offers)")
            offers, outcome = e.offers, RunOutcome.retry
        except FatalScrapeError as e:
            logger.error(f"Scrape for query {query.id} failed: {e} ({len(e.offers)} partial offers)")
            offers, outcome = e.offers, RunOutcome.failed

        stored = self.store_offers(query, offers)

        if outcome is not RunOutcome.completed:
            return outcome

        try:
            self._storage.update_query_run_timestamp(query.id)
        except StorageError as e:
            logger.error(f"Unable to update run timestamp of query {query.id}: {e}")
            return RunOutcome.failed

        logger.info(
            f"Completed cycle for query {query.id} '{query.keywords}' in '{query.location}': "
            f"{len(offers)} offers, {stored} new"
        )
        return outcome

    def _expire(self, query: Query) -> RunOutcome:
        try:
            self._storage.delete_query(query.id)
        except StorageError as e:
            logger.error(f"Unable to delete expired query {query.id}, will try again next run: {e}")
            return RunOutcome.failed
        logger.info(
            f"Deleted unused query {query.id} '{query.keywords}' in '{query.location}', "
            f"last read {query.queried_at:%Y-%m-%d %H:%M}"
        )
        return RunOutcome.expired

    def store_offers(self, query: Query, offers: list[Offer]) -> int:
        """Persist offers and link them to the query. Returns how many offers were new.

        A failure on one offer never stops the rest.
        """
        new = 0
        for offer in offers:
            try:
                self._storage.create_offer(offer)
                new += 1
            except DuplicateOffer:
                logger.debug(f"Offer {offer.id} already stored")
            except StorageError as e:
                logger.error(f"Unable to store offer {offer.id} for query {query.id}: {e}")
                continue

            try:
                self._storage.create_association(query.id, offer.id)
            except DuplicateAssociation:
                logger.debug(f"Offer {offer.id} already in feed of query {query.id}")
            except StorageError as e:
                logger.error(f"Unable to link offer {offer.id} to query {query.id}: {e}")
        return new

    async def sweep_offers(self, now: datetime | None = None) -> int:
        """Delete offers older than the retention window."""
        cutoff = (now or datetime.now(UTC)) - self._offer_retention
        try:
            return self._storage.delete_old_offers(cutoff)
        except StorageError as e:
            logger.error(f"Retention sweep failed: {e}")
            return 0
