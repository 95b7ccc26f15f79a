"""Scraping of the external job source."""
from typing import Any, Protocol, Self

from job_feed.schema import Offer, Query
from job_feed.scraper.linkedin import LinkedInScraper


class Scraper(Protocol):
    async def __aenter__(self) -> Self: ...
    async def __aexit__(self, *_: Any) -> None: ...
    async def scrape(self, query: Query) -> list[Offer]: ...


__all__ = ["LinkedInScraper", "Scraper"]
