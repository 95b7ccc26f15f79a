from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Query, Request
from pydantic import BaseModel

from job_feed.config import settings
from job_feed.exceptions import QueryNotFound
from job_feed.feeds import JobFeeds
from job_feed.schema import Offer


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with JobFeeds.from_settings(settings) as feeds:
        app.state.feeds = feeds
        yield


app = FastAPI(lifespan=lifespan)


def _clean(value: str) -> str:
    return value.strip().lower()


class FeedCreated(BaseModel):
    keywords: str
    location: str
    feed: str


class Feed(BaseModel):
    keywords: str
    location: str
    offers: list[Offer]


# ── Feeds ────────────────────────────────────────────────────────────────────

@app.post("/feeds", status_code=201)
async def create_feed(
    request: Request,
    keywords: str = Query(min_length=1),
    location: str = Query(min_length=1),
) -> FeedCreated:
    keywords, location = _clean(keywords), _clean(location)
    if not keywords or not location:
        raise HTTPException(status_code=422, detail="keywords and location must not be blank")
    await request.app.state.feeds.create_query(keywords, location)
    feed_url = request.url_for("get_feed").include_query_params(keywords=keywords, location=location)
    return FeedCreated(keywords=keywords, location=location, feed=str(feed_url))


@app.get("/feeds")
async def get_feed(
    request: Request,
    keywords: str = Query(min_length=1),
    location: str = Query(min_length=1),
) -> Feed:
    keywords, location = _clean(keywords), _clean(location)
    try:
        offers = request.app.state.feeds.list_offers(keywords, location)
    except QueryNotFound:
        raise HTTPException(status_code=404, detail=f"no feed for '{keywords}' in '{location}'")
    return Feed(keywords=keywords, location=location, offers=offers)
