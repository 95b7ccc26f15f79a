"""Single-page requests against the LinkedIn guest job search.

One call to `Fetcher.fetch` is one HTTP request: no retrying happens here, the
result is only classified so the pipeline can decide what to do next.
"""
from datetime import UTC, datetime
from enum import StrEnum

import httpx
from loguru import logger
from pydantic import BaseModel

from job_feed.config.settings import DEFAULT_RETRYABLE_STATUS_CODES, LINKEDIN_URL, ONE_WEEK_IN_SECONDS
from job_feed.schema import Query

PARAM_KEYWORDS = "keywords"  # Search keywords, ie. "golang"
PARAM_LOCATION = "location"  # Location of the search, ie. "Berlin"
PARAM_START = "start"  # Pagination offset in multiples of the page size, ie. "10"
PARAM_TIME_POSTED = "f_TPR"  # Posted within the last N seconds, "r" prefixed, ie. "r86400"


class Outcome(StrEnum):
    success = "success"
    retryable = "retryable"
    fatal = "fatal"


class FetchResult(BaseModel):
    outcome: Outcome
    status_code: int | None = None
    body: str = ""
    reason: str = ""


def time_window(query: Query, default: int = ONE_WEEK_IN_SECONDS, now: datetime | None = None) -> int:
    """Seconds to look back: the default window for a query that never completed a
    cycle, otherwise exactly the time since its last completed cycle."""
    if query.updated_at is None:
        return default
    now = now or datetime.now(UTC)
    return max(int((now - query.updated_at).total_seconds()), 1)


class Fetcher:
    """Issues one search-page request and classifies the response."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        url: str = LINKEDIN_URL,
        retryable_status_codes: frozenset[int] = DEFAULT_RETRYABLE_STATUS_CODES,
        default_time_window: int = ONE_WEEK_IN_SECONDS,
    ) -> None:
        self._client = client
        self._url = url
        self._retryable = frozenset(retryable_status_codes)
        self._default_window = default_time_window

    def build_params(self, query: Query, start: int, now: datetime | None = None) -> dict[str, str]:
        params = {
            PARAM_KEYWORDS: query.keywords,
            PARAM_LOCATION: query.location,
            PARAM_TIME_POSTED: f"r{time_window(query, self._default_window, now)}",
        }
        if start:
            params[PARAM_START] = str(start)
        return params

    def classify(self, status_code: int) -> Outcome:
        if status_code == httpx.codes.OK:
            return Outcome.success
        if status_code in self._retryable:
            return Outcome.retryable
        return Outcome.fatal

    async def fetch(self, query: Query, start: int) -> FetchResult:
        params = self.build_params(query, start)
        try:
            resp = await self._client.get(self._url, params=params)
        except httpx.TransportError as e:
            logger.warning(f"Transport error for query {query.id} at start={start}: {e!r}")
            return FetchResult(outcome=Outcome.retryable, reason=repr(e))
        except httpx.HTTPError as e:
            # Redirect loops, undecodable bodies: retrying will not help
            logger.error(f"Unusable response for query {query.id} at start={start}: {e!r}")
            return FetchResult(outcome=Outcome.fatal, reason=repr(e))

        outcome = self.classify(resp.status_code)
        if outcome is Outcome.success:
            return FetchResult(outcome=outcome, status_code=resp.status_code, body=resp.text)
        return FetchResult(
            outcome=outcome,
            status_code=resp.status_code,
            reason=f"received status code {resp.status_code}: {resp.text[:200]}",
        )
