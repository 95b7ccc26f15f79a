"""Query scheduler: one hourly task per query, one-off retries, daily sweep.

Manages the recurring scrape tasks with APScheduler's AsyncIOScheduler.

Jobs are keyed by query id:
- query-<id>  hourly cron, minute taken from the query's creation time
- first-<id>  one immediate run right after the query is created
- retry-<id>  one-off re-run after a retryable failure
A (keywords, location) tag map is kept as a secondary lookup.

Runs of the same query never overlap: a trigger that fires while that query
is still running is skipped.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime, timedelta

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.date import DateTrigger
from loguru import logger

from job_feed.exceptions import QueryExists, StorageError
from job_feed.schema import Query, RunOutcome
from job_feed.storage import FeedStore

QueryRunner = Callable[[int], Awaitable[RunOutcome]]
Sweeper = Callable[[], Awaitable[int]]

SWEEP_JOB_ID = "offer-retention-sweep"
QUERY_JOB_PREFIX = "query-"


def query_job_id(query_id: int) -> str:
    return f"{QUERY_JOB_PREFIX}{query_id}"


def retry_job_id(query_id: int) -> str:
    return f"retry-{query_id}"


def first_run_job_id(query_id: int) -> str:
    return f"first-{query_id}"


class QueryScheduler:
    """Owns the recurring task of every active query."""

    def __init__(
        self,
        storage: FeedStore,
        runner: QueryRunner,
        sweeper: Sweeper | None = None,
        *,
        retry_delay: timedelta = timedelta(minutes=5),
        first_run_timeout: float = 10.0,
        shutdown_grace: float = 30.0,
        sweep_hour: int = 3,
    ) -> None:
        self._storage = storage
        self._runner = runner
        self._sweeper = sweeper
        self._retry_delay = retry_delay
        self._first_run_timeout = first_run_timeout
        self._shutdown_grace = shutdown_grace
        self._sweep_hour = sweep_hour

        self.scheduler = AsyncIOScheduler(
            timezone=UTC,
            job_defaults={"misfire_grace_time": None, "coalesce": True, "max_instances": 1},
        )
        self._tags: dict[tuple[str, str], int] = {}
        self._running: set[int] = set()
        self._inflight: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Lifecycle of the scheduler itself
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Register every stored query and start the clock. Safe to call on restart."""
        try:
            queries = self._storage.list_queries()
        except StorageError as e:
            logger.error(f"Unable to list queries at startup: {e}")
            queries = []
        for query in queries:
            self._schedule_query(query)

        if self._sweeper is not None:
            self.scheduler.add_job(
                self._sweep,
                trigger=CronTrigger(hour=self._sweep_hour, minute=0, timezone=UTC),
                id=SWEEP_JOB_ID,
                name="Daily offer retention sweep",
                replace_existing=True,
            )

        if not self.scheduler.running:
            self.scheduler.start()
        logger.info(f"Scheduler started with {len(queries)} queries")

    async def shutdown(self) -> None:
        """Stop firing new runs and give in-flight ones the grace period to finish."""
        if not self.scheduler.running:
            return
        self.scheduler.pause()
        pending = {t for t in self._inflight if not t.done()}
        if pending:
            logger.info(f"Waiting up to {self._shutdown_grace:.0f}s for {len(pending)} running tasks")
            _, still_running = await asyncio.wait(pending, timeout=self._shutdown_grace)
            if still_running:
                logger.warning(f"Shutdown grace period exceeded, abandoning {len(still_running)} tasks")
        self.scheduler.shutdown(wait=False)
        # AsyncIOScheduler applies shutdown on the next loop iteration
        await asyncio.sleep(0)
        logger.info("Scheduler shutdown complete")

    # ------------------------------------------------------------------
    # Query scheduling
    # ------------------------------------------------------------------

    async def create_and_schedule(self, keywords: str, location: str) -> Query:
        """Create a query, schedule it and run it once right away.

        An existing (keywords, location) pair is returned untouched. The first run
        is awaited for at most first_run_timeout seconds; past that it keeps going
        in the background.
        """
        try:
            query = self._storage.create_query(keywords, location)
        except QueryExists:
            logger.debug(f"Query '{keywords}' in '{location}' already exists")
            return self._storage.get_query(keywords, location)

        logger.info(f"Created new query {query.id} '{keywords}' in '{location}'")
        self._schedule_query(query)

        done: asyncio.Future[RunOutcome] = asyncio.get_running_loop().create_future()
        self.scheduler.add_job(
            self._execute,
            trigger=DateTrigger(run_date=datetime.now(UTC), timezone=UTC),
            args=[query.id],
            kwargs={"done": done},
            id=first_run_job_id(query.id),
            name=f"First run of query {query.id}",
            replace_existing=True,
        )
        try:
            outcome = await asyncio.wait_for(asyncio.shield(done), timeout=self._first_run_timeout)
            logger.info(f"First run of query {query.id} finished: {outcome}")
        except TimeoutError:
            logger.warning(
                f"First run of query {query.id} still going after {self._first_run_timeout:.0f}s, "
                "continuing in background"
            )
        return query

    def _schedule_query(self, query: Query) -> None:
        trigger = CronTrigger(minute=query.created_at.minute, timezone=UTC)
        self.scheduler.add_job(
            self._execute,
            trigger=trigger,
            args=[query.id],
            id=query_job_id(query.id),
            name=f"{query.keywords} @ {query.location}",
            replace_existing=True,
        )
        self._tags[query.tag] = query.id
        logger.info(f"Scheduled query {query.id} at minute {query.created_at.minute} of every hour")

    def schedule_one_off(self, delay: timedelta, query_id: int) -> datetime:
        """Run the query once after delay, leaving its hourly task as it is."""
        run_at = datetime.now(UTC) + delay
        self.scheduler.add_job(
            self._execute,
            trigger=DateTrigger(run_date=run_at, timezone=UTC),
            args=[query_id],
            id=retry_job_id(query_id),
            name=f"Retry of query {query_id}",
            replace_existing=True,
        )
        logger.info(f"Retry of query {query_id} scheduled at {run_at:%H:%M:%S}")
        return run_at

    def remove(self, query_id: int) -> None:
        """Drop every task of the query."""
        for job_id in (query_job_id(query_id), retry_job_id(query_id), first_run_job_id(query_id)):
            try:
                self.scheduler.remove_job(job_id)
            except JobLookupError:
                pass
        for tag, tagged_id in list(self._tags.items()):
            if tagged_id == query_id:
                del self._tags[tag]

    def remove_by_tag(self, keywords: str, location: str) -> bool:
        """Drop the tasks of the query tagged (keywords, location). False if unknown."""
        query_id = self._tags.get((keywords, location))
        if query_id is None:
            return False
        self.remove(query_id)
        logger.info(f"Removed tasks of query {query_id} '{keywords}' in '{location}'")
        return True

    async def run_now(self, query_id: int) -> RunOutcome:
        """Run the query's task in the caller, with the same bookkeeping as a scheduled run."""
        return await self._execute(query_id)

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def scheduled_queries(self) -> list[int]:
        return sorted(
            int(job.id.removeprefix(QUERY_JOB_PREFIX))
            for job in self.scheduler.get_jobs()
            if job.id.startswith(QUERY_JOB_PREFIX)
        )

    def is_scheduled(self, query_id: int) -> bool:
        return self.scheduler.get_job(query_job_id(query_id)) is not None

    def retry_at(self, query_id: int) -> datetime | None:
        job = self.scheduler.get_job(retry_job_id(query_id))
        return getattr(job, "next_run_time", None) if job else None

    # ------------------------------------------------------------------
    # Task bodies
    # ------------------------------------------------------------------

    async def _execute(self, query_id: int, done: asyncio.Future | None = None) -> RunOutcome:
        outcome = RunOutcome.skipped
        task = asyncio.current_task()
        if task is not None:
            self._inflight.add(task)
        try:
            if query_id in self._running:
                logger.warning(f"Query {query_id} is still running, skipping this trigger")
                return outcome
            self._running.add(query_id)
            try:
                outcome = await self._runner(query_id)
            except Exception:
                logger.exception(f"Unexpected error while running query {query_id}")
                outcome = RunOutcome.failed
            finally:
                self._running.discard(query_id)

            match outcome:
                case RunOutcome.expired | RunOutcome.missing:
                    self.remove(query_id)
                case RunOutcome.retry:
                    self.schedule_one_off(self._retry_delay, query_id)
            return outcome
        finally:
            if done is not None and not done.done():
                done.set_result(outcome)
            if task is not None:
                self._inflight.discard(task)

    async def _sweep(self) -> None:
        if self._sweeper is None:
            return
        task = asyncio.current_task()
        if task is not None:
            self._inflight.add(task)
        try:
            await self._sweeper()
        except Exception:
            logger.exception("Offer retention sweep failed")
        finally:
            if task is not None:
                self._inflight.discard(task)
