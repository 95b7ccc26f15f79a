"""Parses a LinkedIn guest search result page into offers."""
from datetime import date

from bs4 import BeautifulSoup, Tag
from loguru import logger
from pydantic import BaseModel

from job_feed.schema import Offer

CARD_SELECTOR = ".base-search-card"


class ExtractedPage(BaseModel):
    offers: list[Offer]
    cards: int  # job cards seen on the page, complete or not


def text(selector: str, soup: Tag) -> str:
    el = soup.select_one(selector)
    return el.get_text(" ", strip=True) if el else ""


def _offer_id(item: Tag) -> str:
    # data-entity-urn looks like "urn:li:jobPosting:4012345678"
    el = item.select_one("[data-entity-urn]")
    if el is None:
        return ""
    return str(el.get("data-entity-urn") or "").rsplit(":", 1)[-1].strip()


def _posted_at(item: Tag) -> date | None:
    el = item.select_one("time[datetime]")
    if el is None:
        return None
    try:
        return date.fromisoformat(str(el["datetime"]).strip())
    except ValueError:
        return None


def extract_offers(html: str) -> ExtractedPage:
    """Return every complete job card of the page.

    Cards without an id or a title are dropped without error.
    """
    soup = BeautifulSoup(html, "html.parser")
    offers: list[Offer] = []
    cards = 0
    for item in soup.find_all("li"):
        if item.select_one(CARD_SELECTOR) is None:
            continue
        cards += 1
        offer_id = _offer_id(item)
        title = text(".base-search-card__title", item)
        if not offer_id or not title:
            logger.debug(f"Dropping incomplete job card (id={offer_id!r}, title={title!r})")
            continue
        offers.append(
            Offer(
                id=offer_id,
                title=title,
                company=text(".base-search-card__subtitle a", item) or text(".base-search-card__subtitle", item),
                location=text(".job-search-card__location", item),
                posted_at=_posted_at(item),
            )
        )
    return ExtractedPage(offers=offers, cards=cards)
