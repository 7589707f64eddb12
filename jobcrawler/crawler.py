"""Crawl orchestrator: search terms x locations x pages.

For each keyword (outer) and location (inner), fetches up to
``max_pages`` result pages, extracts and classifies the postings, and hands
each one to the sink.

Failure isolation:
  - a failed fetch abandons the remaining pages of that (keyword, location)
    pair only; later pairs still run
  - a sink failure is logged and the posting still counts
  - bad markup degrades to fewer (or zero) postings, never an exception

Rate limiting: one orchestrator never starts two fetches less than
``delay_seconds`` apart. The delay is taken before every fetch except the
first, so nothing is slept after the final request of a crawl.

Everything is sequential: one fetch in flight and one sink call at a time.
Parallel crawls need their own orchestrators (each owns its timer).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from urllib.parse import urlencode

from jobcrawler.classifier import Classifier
from jobcrawler.extractor import ListingExtractor
from jobcrawler.fetcher import FetchError, PageFetcher
from jobcrawler.models import SearchSpec
from jobcrawler.sink import PostingSink

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 10


class CrawlOrchestrator:
    """Drives one site's paginated search through fetch -> extract -> classify -> sink."""

    def __init__(
        self,
        fetcher: PageFetcher,
        extractor: ListingExtractor,
        classifier: Classifier,
        source: str,
        base_url: str,
        search_path: str = "/jobs",
        page_size: int = DEFAULT_PAGE_SIZE,
        delay_seconds: float = 3.0,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.fetcher = fetcher
        self.extractor = extractor
        self.classifier = classifier
        self.source = source
        self.base_url = base_url.rstrip("/")
        self.search_path = "/" + search_path.lstrip("/")
        self.page_size = page_size
        self.delay_seconds = delay_seconds
        self._sleep = sleep

    def build_search_url(self, keyword: str, location: str, page_index: int = 0) -> str:
        params = {"q": keyword, "l": location, "start": str(page_index * self.page_size)}
        return f"{self.base_url}{self.search_path}?{urlencode(params)}"

    async def crawl(self, spec: SearchSpec, sink: PostingSink) -> int:
        """Run the search and return how many postings were handed to the sink."""
        total = 0
        fetches = 0

        for keyword, location in spec.pairs:
            logger.info("[%s] Crawling %r in %r", self.source, keyword, location)

            for page_index in range(spec.max_pages):
                if fetches:
                    await self._sleep(self.delay_seconds)
                fetches += 1

                url = self.build_search_url(keyword, location, page_index)
                try:
                    markup = await asyncio.to_thread(self.fetcher.fetch, url)
                except FetchError as exc:
                    logger.error(
                        "[%s] Page %d for %r in %r failed (%s), skipping remaining pages: %s",
                        self.source, page_index + 1, keyword, location, exc.kind.value, exc,
                    )
                    break

                count = await self._process_page(markup, sink)
                logger.info("[%s] Page %d: Found %d jobs", self.source, page_index + 1, count)
                total += count

        if total == 0:
            logger.warning(
                "[%s] Crawl finished with zero postings; the listing markup may have changed",
                self.source,
            )
        else:
            logger.info("[%s] Crawl finished: %d postings", self.source, total)
        return total

    async def _process_page(self, markup: str, sink: PostingSink) -> int:
        try:
            postings = self.extractor.extract(markup)
        except Exception as exc:
            logger.error("[%s] Extraction failed, treating page as empty: %s", self.source, exc)
            return 0

        for raw in postings:
            posting = self.classifier.classify(raw, self.source)
            try:
                await sink.persist(posting)
            except Exception as exc:
                logger.error("[%s] Error saving job %s: %s", self.source, posting.url, exc)
        return len(postings)
