from collections.abc import Callable
from datetime import UTC, datetime

import pytest

from job_feed.schema import Query
from job_feed.storage import FeedStorage


def _card(
    offer_id: str | None,
    title: str | None,
    company: str = "Späti GmbH",
    location: str = "Berlin, Berlin, Germany",
    posted: str = "2026-10-18",
) -> str:
    """One LinkedIn guest-search result item. None leaves the field out of the markup."""
    urn = f' data-entity-urn="urn:li:jobPosting:{offer_id}"' if offer_id is not None else ""
    title_tag = (
        f'<h3 class="base-search-card__title">\n            {title}\n          </h3>'
        if title is not None
        else ""
    )
    return f"""
<li>
  <div class="base-card relative w-full base-card--link base-search-card base-search-card--link job-search-card"{urn}>
    <a class="base-card__full-link" href="https://de.linkedin.com/jobs/view/{offer_id}"></a>
    <div class="base-search-card__info">
      {title_tag}
      <h4 class="base-search-card__subtitle">
        <a class="hidden-nested-link" href="https://de.linkedin.com/company/x">
          {company}
        </a>
      </h4>
      <div class="base-search-card__metadata">
        <span class="job-search-card__location">
          {location}
        </span>
        <time class="job-search-card__listdate" datetime="{posted}">
          1 day ago
        </time>
      </div>
    </div>
  </div>
</li>"""


def _page(count: int, start: int = 0) -> str:
    return "".join(_card(str(4000000000 + start + i), f"Golang Developer #{start + i}") for i in range(count))


@pytest.fixture
def make_card() -> Callable[..., str]:
    return _card


@pytest.fixture
def make_page() -> Callable[[int, int], str]:
    """make_page(count, start) -> html with `count` complete cards, ids offset by start."""
    return _page


@pytest.fixture
def storage(tmp_path) -> FeedStorage:
    return FeedStorage(tmp_path / "feeds.db")


@pytest.fixture
def query() -> Query:
    now = datetime.now(UTC)
    return Query(id=1, keywords="golang", location="berlin", created_at=now, queried_at=now)
