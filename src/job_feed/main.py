"""Command line entry point.

  serve  run the HTTP API together with the query scheduler
  scrape run one scrape cycle for a keywords/location pair and print the offers
  sweep  delete offers older than the retention window once
"""

import argparse
import asyncio
import sys
from datetime import UTC, datetime

import uvicorn
from loguru import logger

from job_feed.config import settings
from job_feed.exceptions import ScrapeError
from job_feed.feeds import JobFeeds
from job_feed.schema import Query
from job_feed.utils import setup_logger


async def scrape_main(keywords: str, location: str) -> None:
    """One pipeline cycle, nothing stored."""
    feeds = JobFeeds.from_settings(settings)
    now = datetime.now(UTC)
    query = Query(id=0, keywords=keywords, location=location, created_at=now, queried_at=now)
    async with feeds.scraper as scraper:
        try:
            offers = await scraper.scrape(query)
        except ScrapeError as e:
            logger.error(f"Scrape stopped early: {e}")
            offers = e.offers
    for offer in offers:
        posted = offer.posted_at.isoformat() if offer.posted_at else "?"
        print(f"{posted}  {offer.id:>12}  {offer.title} @ {offer.company} ({offer.location})")
    logger.info(f"{len(offers)} offers")


async def sweep_main() -> None:
    feeds = JobFeeds.from_settings(settings)
    deleted = await feeds.lifecycle.sweep_offers()
    logger.info(
        f"Retention sweep removed {deleted} offers older than {settings.offer_retention_days} days, "
        f"{feeds.storage.count_offers()} kept"
    )


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="job-feed",
        description="Self-refreshing job search feeds",
    )
    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    serve_parser = subparsers.add_parser("serve", help="Run the API and the query scheduler")
    serve_parser.add_argument("--host", default=settings.api_host)
    serve_parser.add_argument("--port", type=int, default=settings.api_port)

    scrape_parser = subparsers.add_parser("scrape", help="Run one scrape cycle and print the offers")
    scrape_parser.add_argument("--keywords", required=True)
    scrape_parser.add_argument("--location", required=True)

    subparsers.add_parser("sweep", help="Delete offers older than the retention window")

    return parser.parse_args()


def cli() -> None:
    """CLI entry point."""
    args = parse_args()
    setup_logger(settings.log_level, settings.log_file)

    match args.command:
        case "serve":
            uvicorn.run("job_feed.api.main:app", host=args.host, port=args.port)
        case "scrape":
            asyncio.run(scrape_main(args.keywords.strip().lower(), args.location.strip().lower()))
        case "sweep":
            asyncio.run(sweep_main())
        case _:
            print("Please specify a command: serve, scrape or sweep")
            print("  Example: job-feed scrape --keywords golang --location berlin")
            sys.exit(1)


if __name__ == "__main__":
    cli()
