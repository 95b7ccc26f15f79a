"""LinkedIn scrape pipeline: paginated fetch + extract with retry/backoff.

Pages are requested at start=0, N, 2N, ... until a page carries fewer than N
job cards. A retryable response is retried on the same page with exponential
backoff; a fatal one aborts the cycle. Either way the offers collected from
earlier pages travel with the raised error.
"""
import asyncio
import itertools
from typing import Any, Self

import httpx
from loguru import logger

from job_feed.config.settings import DEFAULT_RETRYABLE_STATUS_CODES, LINKEDIN_URL, ONE_WEEK_IN_SECONDS
from job_feed.exceptions import FatalScrapeError, RetryableScrapeError
from job_feed.schema import Offer, Query
from job_feed.scraper.extractor import extract_offers
from job_feed.scraper.fetcher import Fetcher, Outcome


class LinkedInScraper:
    """Scraper for the LinkedIn guest job search. Use as an async context manager."""

    HEADERS = {
        "User-Agent": (
            "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
            "AppleWebKit/537.36 (KHTML, like Gecko) "
            "Chrome/124.0.0.0 Safari/537.36"
        ),
        "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
        "Accept-Language": "en-US,en;q=0.9",
    }

    def __init__(
        self,
        *,
        url: str = LINKEDIN_URL,
        page_size: int = 10,
        max_attempts: int = 5,
        backoff_base: float = 1.0,
        retryable_status_codes: frozenset[int] = DEFAULT_RETRYABLE_STATUS_CODES,
        default_time_window: int = ONE_WEEK_IN_SECONDS,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._url = url
        self._page_size = page_size
        self._max_attempts = max(max_attempts, 1)
        self._backoff_base = backoff_base
        self._retryable = retryable_status_codes
        self._default_window = default_time_window
        self._timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._fetcher: Fetcher | None = None

    async def __aenter__(self) -> Self:
        self._client = httpx.AsyncClient(
            headers=self.HEADERS,
            follow_redirects=True,
            timeout=self._timeout,
            transport=self._transport,
        )
        self._fetcher = Fetcher(
            self._client,
            url=self._url,
            retryable_status_codes=self._retryable,
            default_time_window=self._default_window,
        )
        return self

    async def __aexit__(self, exc_type: Any, *_: Any) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
            self._fetcher = None

    def backoff(self, retry: int) -> float:
        """Seconds to wait before the given retry (1 = first retry)."""
        return self._backoff_base * 2 ** (retry - 1)

    async def scrape(self, query: Query) -> list[Offer]:
        """Return every offer the source currently lists for the query.

        Raises:
            RuntimeError if not used as context manager
            RetryableScrapeError when a page ran out of attempts
            FatalScrapeError on a non-retryable response
        """
        offers: list[Offer] = []
        for start in itertools.count(0, self._page_size):
            html = await self._fetch_page(query, start, offers)
            page = extract_offers(html)
            offers.extend(page.offers)
            logger.debug(
                f"Query {query.id} start={start}: {page.cards} cards, {len(page.offers)} kept"
            )
            if page.cards < self._page_size:
                break

        logger.info(f"Scraped {len(offers)} offers for '{query.keywords}' in '{query.location}'")
        return offers

    async def _fetch_page(self, query: Query, start: int, offers: list[Offer]) -> str:
        if not self._fetcher:
            raise RuntimeError("Use 'async with LinkedInScraper() as s:' context manager.")

        result = None
        for attempt in range(1, self._max_attempts + 1):
            result = await self._fetcher.fetch(query, start)
            if result.outcome is Outcome.success:
                return result.body
            if result.outcome is Outcome.fatal:
                raise FatalScrapeError(
                    f"query {query.id} start={start}: {result.reason}", offers=offers
                )
            if attempt == self._max_attempts:
                break
            delay = self.backoff(attempt)
            logger.warning(
                f"Query {query.id} start={start} attempt {attempt}/{self._max_attempts} "
                f"failed ({result.status_code or result.reason}), retrying in {delay:.1f}s"
            )
            await asyncio.sleep(delay)

        reason = result.reason if result else "no attempt made"
        raise RetryableScrapeError(
            f"query {query.id} start={start}: retries exhausted after {self._max_attempts} attempts, last: {reason}",
            offers=offers,
        )
