"""SQLite-backed storage for queries, offers and their associations.

Uniqueness is enforced by the schema; callers learn about conflicts through
the QueryExists / DuplicateOffer / DuplicateAssociation exceptions.
All timestamps are stored as UTC ISO-8601 strings.
"""

import sqlite3
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, date, datetime
from pathlib import Path

from loguru import logger

from job_feed.exceptions import (
    DuplicateAssociation,
    DuplicateOffer,
    QueryExists,
    QueryNotFound,
    StorageError,
)
from job_feed.schema import Offer, Query
from job_feed.storage.DDL import _DDL


def _now() -> str:
    return datetime.now(UTC).isoformat()


def _is_unique_violation(e: sqlite3.IntegrityError) -> bool:
    msg = str(e)
    return "UNIQUE constraint failed" in msg or "PRIMARY KEY" in msg


class FeedStorage:
    """SQLite storage for the feed data: queries, offers, query↔offer links."""

    def __init__(self, db_path: Path):
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._db_path = db_path
        self._init_db()

    # ------------------------------------------------------------------
    # Infrastructure
    # ------------------------------------------------------------------

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        try:
            conn = sqlite3.connect(self._db_path)
        except sqlite3.Error as e:
            raise StorageError(f"unable to open {self._db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")
        try:
            yield conn
            conn.commit()
        except sqlite3.IntegrityError:
            conn.rollback()
            raise
        except sqlite3.Error as e:
            conn.rollback()
            raise StorageError(str(e)) from e
        except BaseException:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.executescript(_DDL)

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def create_query(self, keywords: str, location: str) -> Query:
        """Insert a new query. Raises QueryExists if (keywords, location) is taken."""
        now = _now()
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "INSERT INTO queries (keywords, location, created_at, queried_at)"
                    " VALUES (?, ?, ?, ?) RETURNING *",
                    (keywords, location, now, now),
                ).fetchone()
        except sqlite3.IntegrityError as e:
            if _is_unique_violation(e):
                raise QueryExists(f"query '{keywords}' in '{location}' already exists") from e
            raise StorageError(str(e)) from e
        return Query.model_validate(dict(row))

    def get_query(self, keywords: str, location: str) -> Query:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM queries WHERE keywords = ? AND location = ?",
                (keywords, location),
            ).fetchone()
        if row is None:
            raise QueryNotFound(f"no query '{keywords}' in '{location}'")
        return Query.model_validate(dict(row))

    def get_query_by_id(self, query_id: int) -> Query:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM queries WHERE id = ?", (query_id,)).fetchone()
        if row is None:
            raise QueryNotFound(f"no query with id {query_id}")
        return Query.model_validate(dict(row))

    def list_queries(self) -> list[Query]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM queries ORDER BY id").fetchall()
        return [Query.model_validate(dict(r)) for r in rows]

    def delete_query(self, query_id: int) -> None:
        """Delete a query; its associations go with it."""
        with self._connect() as conn:
            conn.execute("DELETE FROM queries WHERE id = ?", (query_id,))

    def update_query_read_timestamp(self, query_id: int) -> None:
        with self._connect() as conn:
            conn.execute("UPDATE queries SET queried_at = ? WHERE id = ?", (_now(), query_id))

    def update_query_run_timestamp(self, query_id: int) -> None:
        with self._connect() as conn:
            conn.execute("UPDATE queries SET updated_at = ? WHERE id = ?", (_now(), query_id))

    # ------------------------------------------------------------------
    # Offers
    # ------------------------------------------------------------------

    def create_offer(self, offer: Offer) -> None:
        """Insert an offer. Raises DuplicateOffer if its id is already stored."""
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO offers (id, title, company, location, posted_at, created_at)"
                    " VALUES (?, ?, ?, ?, ?, ?)",
                    (*offer.row, _now()),
                )
        except sqlite3.IntegrityError as e:
            if _is_unique_violation(e):
                raise DuplicateOffer(f"offer {offer.id} already stored") from e
            raise StorageError(str(e)) from e

    def create_association(self, query_id: int, offer_id: str) -> None:
        """Link an offer to a query's feed.

        Raises:
            DuplicateAssociation if the pair already exists
            StorageError if either side does not exist
        """
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT INTO query_offers (query_id, offer_id) VALUES (?, ?)",
                    (query_id, offer_id),
                )
        except sqlite3.IntegrityError as e:
            if _is_unique_violation(e):
                raise DuplicateAssociation(f"offer {offer_id} already linked to query {query_id}") from e
            raise StorageError(str(e)) from e

    def list_offers(self, query_id: int, posted_since: date | None = None) -> list[Offer]:
        """Offers linked to the query, most recently posted first.

        With posted_since, offers posted before that day are left out; offers
        without a posted date are always kept and sort last.
        """
        stmt = (
            "SELECT o.id, o.title, o.company, o.location, o.posted_at FROM offers o"
            " JOIN query_offers qo ON qo.offer_id = o.id"
            " WHERE qo.query_id = ?"
        )
        params: list[object] = [query_id]
        if posted_since is not None:
            stmt += " AND (o.posted_at IS NULL OR o.posted_at >= ?)"
            params.append(posted_since.isoformat())
        stmt += " ORDER BY o.posted_at IS NULL, o.posted_at DESC, o.created_at DESC"
        with self._connect() as conn:
            rows = conn.execute(stmt, params).fetchall()
        return [Offer.model_validate(dict(r)) for r in rows]

    def count_offers(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM offers").fetchone()[0]

    def delete_old_offers(self, cutoff: datetime) -> int:
        """Delete offers posted before the cutoff day, plus undated ones stored before
        the cutoff. Associations are removed by cascade. Returns deleted count."""
        with self._connect() as conn:
            cursor = conn.execute(
                "DELETE FROM offers"
                " WHERE posted_at < ?"
                " OR (posted_at IS NULL AND created_at < ?)",
                (cutoff.date().isoformat(), cutoff.astimezone(UTC).isoformat()),
            )
            deleted = cursor.rowcount
        logger.info(f"Deleted {deleted} offers older than {cutoff:%Y-%m-%d}")
        return deleted
