import sqlite3
from datetime import UTC, date, datetime, timedelta

import pytest

from job_feed.exceptions import (
    DuplicateAssociation,
    DuplicateOffer,
    QueryExists,
    QueryNotFound,
    StorageError,
)
from job_feed.schema import Offer
from job_feed.storage import FeedStorage


def _offer(offer_id: str, posted_at: date | None = date(2026, 10, 18)) -> Offer:
    return Offer(id=offer_id, title=f"Offer {offer_id}", company="Acme", location="Berlin", posted_at=posted_at)


# ── Queries ────────────────────────────────────────────────────────────────────

def test_create_query(storage):
    query = storage.create_query("golang", "berlin")

    assert query.id > 0
    assert query.keywords == "golang"
    assert query.created_at.tzinfo is not None
    assert query.queried_at == query.created_at
    assert query.updated_at is None


def test_duplicate_query_conflicts(storage):
    storage.create_query("golang", "berlin")

    with pytest.raises(QueryExists):
        storage.create_query("golang", "berlin")

    assert len(storage.list_queries()) == 1


def test_same_keywords_other_location_is_a_new_query(storage):
    a = storage.create_query("golang", "berlin")
    b = storage.create_query("golang", "hamburg")
    assert a.id != b.id


def test_get_query(storage):
    created = storage.create_query("python", "new york")

    assert storage.get_query("python", "new york") == created
    assert storage.get_query_by_id(created.id) == created


def test_get_missing_query(storage):
    with pytest.raises(QueryNotFound):
        storage.get_query("cobol", "the moon")
    with pytest.raises(QueryNotFound):
        storage.get_query_by_id(404)


def test_timestamps_update_independently(storage):
    query = storage.create_query("golang", "berlin")

    storage.update_query_run_timestamp(query.id)
    ran = storage.get_query_by_id(query.id)
    assert ran.updated_at is not None
    assert ran.queried_at == query.queried_at

    storage.update_query_read_timestamp(query.id)
    read = storage.get_query_by_id(query.id)
    assert read.queried_at >= query.queried_at
    assert read.updated_at == ran.updated_at


def test_queries_survive_reopening(tmp_path):
    FeedStorage(tmp_path / "feeds.db").create_query("golang", "berlin")
    assert [q.keywords for q in FeedStorage(tmp_path / "feeds.db").list_queries()] == ["golang"]


# ── Offers and associations ────────────────────────────────────────────────────

def test_same_offer_stored_once_linked_twice(storage):
    berlin = storage.create_query("golang", "berlin")
    remote = storage.create_query("golang", "remote")

    storage.create_offer(_offer("1"))
    with pytest.raises(DuplicateOffer):
        storage.create_offer(_offer("1"))
    storage.create_association(berlin.id, "1")
    storage.create_association(remote.id, "1")

    assert storage.count_offers() == 1
    assert [o.id for o in storage.list_offers(berlin.id)] == ["1"]
    assert [o.id for o in storage.list_offers(remote.id)] == ["1"]


def test_duplicate_association(storage):
    query = storage.create_query("golang", "berlin")
    storage.create_offer(_offer("1"))
    storage.create_association(query.id, "1")

    with pytest.raises(DuplicateAssociation):
        storage.create_association(query.id, "1")


def test_association_to_unknown_offer(storage):
    query = storage.create_query("golang", "berlin")

    with pytest.raises(StorageError) as exc_info:
        storage.create_association(query.id, "missing")

    assert not isinstance(exc_info.value, DuplicateAssociation)


def test_list_offers_newest_first_undated_last(storage):
    query = storage.create_query("golang", "berlin")
    for offer in (_offer("old", date(2026, 10, 1)), _offer("undated", None), _offer("new", date(2026, 10, 18))):
        storage.create_offer(offer)
        storage.create_association(query.id, offer.id)

    assert [o.id for o in storage.list_offers(query.id)] == ["new", "old", "undated"]
    assert [o.id for o in storage.list_offers(query.id, posted_since=date(2026, 10, 12))] == ["new", "undated"]


def test_delete_query_removes_its_links_only(storage):
    berlin = storage.create_query("golang", "berlin")
    remote = storage.create_query("golang", "remote")
    storage.create_offer(_offer("1"))
    storage.create_association(berlin.id, "1")
    storage.create_association(remote.id, "1")

    storage.delete_query(berlin.id)

    with pytest.raises(QueryNotFound):
        storage.get_query_by_id(berlin.id)
    assert storage.list_offers(berlin.id) == []
    assert [o.id for o in storage.list_offers(remote.id)] == ["1"]
    assert storage.count_offers() == 1


# ── Retention ──────────────────────────────────────────────────────────────────

def test_delete_old_offers(storage, tmp_path):
    query = storage.create_query("golang", "berlin")
    now = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)
    offers = [
        _offer("fresh", date(2026, 10, 18)),
        _offer("stale", date(2026, 10, 1)),
        _offer("undated-new", None),
        _offer("undated-old", None),
    ]
    for offer in offers:
        storage.create_offer(offer)
        storage.create_association(query.id, offer.id)
    with sqlite3.connect(tmp_path / "feeds.db") as conn:
        conn.execute(
            "UPDATE offers SET created_at = ? WHERE id = 'undated-old'",
            ((now - timedelta(days=30)).isoformat(),),
        )
        conn.execute("UPDATE offers SET created_at = ? WHERE id != 'undated-old'", (now.isoformat(),))

    deleted = storage.delete_old_offers(now - timedelta(days=7))

    assert deleted == 2
    assert sorted(o.id for o in storage.list_offers(query.id)) == ["fresh", "undated-new"]
    with sqlite3.connect(tmp_path / "feeds.db") as conn:
        links = conn.execute("SELECT COUNT(*) FROM query_offers").fetchone()[0]
    assert links == 2
