"""Entry point for the job crawler.

Usage:
    python -m jobcrawler.main crawl                    # crawl the configured searches
    python -m jobcrawler.main crawl --dry-run          # list searches without fetching
    python -m jobcrawler.main mark-stale               # deactivate postings unseen for 7 days
    python -m jobcrawler.main run                      # crawl, then mark stale
    python -m jobcrawler.main search react node --location "%remote%"
    python -m jobcrawler.main stats
    python -m jobcrawler.main --config my.yaml crawl   # use custom config

Scheduling is left to the host (cron, systemd timers, ...): each command
runs once and exits.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys

from jobcrawler.classifier import Classifier
from jobcrawler.config import ConfigError, CrawlerConfig, load_config
from jobcrawler.crawler import CrawlOrchestrator
from jobcrawler.extractor import ListingExtractor
from jobcrawler.fetcher import PageFetcher
from jobcrawler.repository import Repository, RepositoryError
from jobcrawler.sink import RepositorySink
from jobcrawler.urls import site_origin

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO") -> None:
    """Configure logging for the crawler."""
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def positive_int(value: str) -> int:
    """argparse type for page counts."""
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    if number < 1:
        raise argparse.ArgumentTypeError(f"expected a positive integer, got {value!r}")
    return number


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Job Crawler: discover job postings and keep a deduplicated, "
        "staleness-aware repository of them."
    )
    parser.add_argument(
        "--config",
        type=str,
        default=None,
        help="Path to config.yaml (default: config.yaml in project root)",
    )
    parser.add_argument(
        "--db",
        type=str,
        default=None,
        help="Override the SQLite database path (default: from config)",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Enable debug-level logging",
    )

    sub = parser.add_subparsers(dest="command", required=True)

    crawl = sub.add_parser("crawl", help="Crawl the configured searches into the repository")
    crawl.add_argument("--max-pages", type=positive_int, default=None, help="Override search.max_pages")
    crawl.add_argument(
        "--dry-run",
        action="store_true",
        help="List the searches that would run without fetching anything",
    )

    sub.add_parser("mark-stale", help="Mark postings not seen within the staleness window inactive")

    run = sub.add_parser("run", help="Crawl, then mark stale postings inactive")
    run.add_argument("--max-pages", type=positive_int, default=None, help="Override search.max_pages")

    search = sub.add_parser("search", help="Search active postings by keyword")
    search.add_argument("keywords", nargs="+", help="Keywords (any match)")
    search.add_argument("--location", default="%", help="SQL LIKE pattern, e.g. '%%remote%%'")
    search.add_argument("--limit", type=int, default=50)

    sub.add_parser("stats", help="Print repository statistics")

    return parser.parse_args(argv)


def build_orchestrator(config: CrawlerConfig, fetcher: PageFetcher) -> CrawlOrchestrator:
    """Wire up the crawl pipeline from configuration."""
    return CrawlOrchestrator(
        fetcher=fetcher,
        extractor=ListingExtractor(origin=site_origin(config.site.base_url)),
        classifier=Classifier(config.keyword_dictionary()),
        source=config.site.name,
        base_url=config.site.base_url,
        search_path=config.site.search_path,
        page_size=config.site.page_size,
        delay_seconds=config.request_delay_seconds,
    )


def run_crawl(config: CrawlerConfig, repository: Repository, max_pages: int | None = None) -> int:
    spec = config.search_spec(max_pages)
    logger.info("Search keywords: %s", ", ".join(spec.keywords))
    logger.info("Search locations: %s", ", ".join(spec.locations))

    with PageFetcher(
        timeout=config.request_timeout_seconds,
        max_redirects=config.max_redirects,
        user_agent=config.user_agent,
    ) as fetcher:
        orchestrator = build_orchestrator(config, fetcher)
        total = asyncio.run(orchestrator.crawl(spec, RepositorySink(repository)))

    logger.info("=== Crawl completed. Jobs found: %d ===", total)
    return total


def run_mark_stale(repository: Repository) -> int:
    count = repository.mark_stale()
    logger.info("=== Cleanup completed. Marked %d jobs as inactive ===", count)
    return count


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as exc:
        setup_logging()
        logger.error("Invalid configuration: %s", exc)
        return 1

    setup_logging("DEBUG" if args.verbose else config.log_level)
    if args.db:
        config.database_path = args.db

    if args.command == "crawl" and args.dry_run:
        spec = config.search_spec(args.max_pages)
        logger.info("=== Dry Run ===")
        for keyword, location in spec.pairs:
            logger.info("  %r in %r (up to %d pages)", keyword, location, spec.max_pages)
        logger.info("Dry run complete, no crawling performed.")
        return 0

    repository = Repository(config.database_path, staleness=config.staleness)
    try:
        repository.ping()
    except RepositoryError as exc:
        logger.error("Cannot start without database connection: %s", exc)
        return 1
    logger.info("Database connection successful (%s)", config.database_path)

    try:
        if args.command == "crawl":
            run_crawl(config, repository, args.max_pages)
        elif args.command == "mark-stale":
            run_mark_stale(repository)
        elif args.command == "run":
            run_crawl(config, repository, args.max_pages)
            run_mark_stale(repository)
        elif args.command == "search":
            for posting in repository.search(args.keywords, args.location, args.limit):
                print(json.dumps(posting.to_dict(), ensure_ascii=False))
        elif args.command == "stats":
            print(json.dumps(repository.stats().to_dict(), indent=2))
    except (RepositoryError, ValueError) as exc:
        logger.error("%s failed: %s", args.command, exc)
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
