"""Storage and persistence layer."""
from datetime import date, datetime
from typing import Protocol

from job_feed.schema import Offer, Query
from job_feed.storage.feed_storage import FeedStorage


class FeedStore(Protocol):
    def create_query(self, keywords: str, location: str) -> Query: ...
    def get_query(self, keywords: str, location: str) -> Query: ...
    def get_query_by_id(self, query_id: int) -> Query: ...
    def list_queries(self) -> list[Query]: ...
    def delete_query(self, query_id: int) -> None: ...
    def update_query_read_timestamp(self, query_id: int) -> None: ...
    def update_query_run_timestamp(self, query_id: int) -> None: ...
    def create_offer(self, offer: Offer) -> None: ...
    def create_association(self, query_id: int, offer_id: str) -> None: ...
    def list_offers(self, query_id: int, posted_since: date | None = None) -> list[Offer]: ...
    def count_offers(self) -> int: ...
    def delete_old_offers(self, cutoff: datetime) -> int: ...


__all__ = ["FeedStorage", "FeedStore"]
