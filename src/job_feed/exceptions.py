from job_feed.schema import Offer


class JobFeedException(Exception):
    pass


# ── Storage ───────────────────────────────────────────────────────────────────

class StorageError(JobFeedException):
    """Storage backend failed (connectivity, schema, constraint other than uniqueness)."""


class QueryExists(StorageError):
    pass


class QueryNotFound(StorageError):
    pass


class DuplicateOffer(StorageError):
    pass


class DuplicateAssociation(StorageError):
    pass


# ── Scraping ──────────────────────────────────────────────────────────────────

class ScrapeError(JobFeedException):
    """Scrape cycle aborted. `offers` holds what earlier pages produced."""

    def __init__(self, message: str, offers: list[Offer] | None = None) -> None:
        super().__init__(message)
        self.offers: list[Offer] = offers or []


class RetryableScrapeError(ScrapeError):
    """Transient failure, or a page ran out of attempts. Try the cycle again later."""


class FatalScrapeError(ScrapeError):
    pass
