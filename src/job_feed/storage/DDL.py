_DDL = """
CREATE TABLE IF NOT EXISTS queries (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    keywords    TEXT NOT NULL,
    location    TEXT NOT NULL,
    created_at  TEXT NOT NULL,
    queried_at  TEXT NOT NULL,
    updated_at  TEXT,
    UNIQUE (keywords, location)
);

CREATE TABLE IF NOT EXISTS offers (
    id          TEXT PRIMARY KEY,
    title       TEXT NOT NULL,
    company     TEXT NOT NULL DEFAULT '',
    location    TEXT NOT NULL DEFAULT '',
    posted_at   TEXT,
    created_at  TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS query_offers (
    query_id    INTEGER NOT NULL REFERENCES queries (id) ON DELETE CASCADE,
    offer_id    TEXT NOT NULL REFERENCES offers (id) ON DELETE CASCADE,
    PRIMARY KEY (query_id, offer_id)
);

CREATE INDEX IF NOT EXISTS idx_offers_posted_at ON offers (posted_at);
CREATE INDEX IF NOT EXISTS idx_query_offers_offer ON query_offers (offer_id);
"""
