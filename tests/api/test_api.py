from datetime import date

import pytest
from fastapi.testclient import TestClient

from job_feed.api.main import app
from job_feed.exceptions import QueryNotFound
from job_feed.schema import Offer


class FakeFeeds:
    def __init__(self):
        self.created: list[tuple[str, str]] = []
        self.feeds = {
            ("golang", "berlin"): [
                Offer(id="4012345601", title="Senior Go Engineer", company="Späti GmbH",
                      location="Berlin", posted_at=date(2026, 10, 17)),
            ]
        }

    async def create_query(self, keywords: str, location: str) -> None:
        self.created.append((keywords, location))

    def list_offers(self, keywords: str, location: str) -> list[Offer]:
        try:
            return self.feeds[(keywords, location)]
        except KeyError:
            raise QueryNotFound(f"no query '{keywords}' in '{location}'")


@pytest.fixture
def feeds() -> FakeFeeds:
    fake = FakeFeeds()
    app.state.feeds = fake
    return fake


@pytest.fixture
def client(feeds) -> TestClient:
    # no `with`: the lifespan (real scheduler) stays off
    return TestClient(app)


def test_create_feed_normalizes_params(client, feeds):
    resp = client.post("/feeds", params={"keywords": "  GoLang ", "location": "Berlin"})

    assert resp.status_code == 201
    assert feeds.created == [("golang", "berlin")]
    body = resp.json()
    assert body["keywords"] == "golang"
    assert body["feed"].endswith("/feeds?keywords=golang&location=berlin")


@pytest.mark.parametrize("params", [
    {"keywords": "golang"},
    {"location": "berlin"},
    {"keywords": "", "location": "berlin"},
    {"keywords": "golang", "location": "   "},
])
def test_create_feed_requires_both_params(client, feeds, params):
    resp = client.post("/feeds", params=params)

    assert resp.status_code == 422
    assert feeds.created == []


def test_get_feed(client):
    resp = client.get("/feeds", params={"keywords": "Golang", "location": "berlin "})

    assert resp.status_code == 200
    offers = resp.json()["offers"]
    assert offers == [{
        "id": "4012345601",
        "title": "Senior Go Engineer",
        "company": "Späti GmbH",
        "location": "Berlin",
        "posted_at": "2026-10-17",
    }]


def test_get_unknown_feed(client):
    resp = client.get("/feeds", params={"keywords": "cobol", "location": "the moon"})

    assert resp.status_code == 404
