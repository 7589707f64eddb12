"""Tests for the crawl orchestrator with a scripted fetcher and sink."""

from __future__ import annotations

import asyncio

import pytest

from jobcrawler.classifier import Classifier
from jobcrawler.crawler import CrawlOrchestrator
from jobcrawler.extractor import ListingExtractor
from jobcrawler.fetcher import FailureKind, FetchError
from jobcrawler.models import SearchSpec, Seniority

BASE_URL = "https://www.indeed.com"


def _page(*jobs: tuple[str, str]) -> str:
    cards = "".join(
        f'<div class="job_seen_beacon"><h2 class="jobTitle"><a href="{href}">{title}</a></h2>'
        f'<span class="companyName">Acme</span><div class="companyLocation">Remote</div></div>'
        for title, href in jobs
    )
    return f"<html><body>{cards}</body></html>"


class ScriptedFetcher:
    """Returns canned pages; raises FetchError for URLs marked as failing."""

    def __init__(self, pages: dict[str, str] | None = None, failing: set[str] | None = None):
        self.pages = pages or {}
        self.failing = failing or set()
        self.requested: list[str] = []

    def fetch(self, url: str) -> str:
        self.requested.append(url)
        if url in self.failing:
            raise FetchError(url, FailureKind.HTTP_STATUS, "503", status_code=503)
        return self.pages.get(url, "<html></html>")


class RecordingSink:
    def __init__(self, fail_urls: set[str] | None = None):
        self.fail_urls = fail_urls or set()
        self.persisted = []

    async def persist(self, posting) -> None:
        if posting.url in self.fail_urls:
            raise RuntimeError("database unavailable")
        self.persisted.append(posting)


class RecordingSleep:
    def __init__(self):
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


def _orchestrator(fetcher, sleep=None, delay=3.0) -> CrawlOrchestrator:
    return CrawlOrchestrator(
        fetcher=fetcher,
        extractor=ListingExtractor(origin=BASE_URL),
        classifier=Classifier(),
        source="indeed",
        base_url=BASE_URL,
        delay_seconds=delay,
        sleep=sleep or RecordingSleep(),
    )


def _url(orch: CrawlOrchestrator, keyword: str, location: str, page: int) -> str:
    return orch.build_search_url(keyword, location, page)


# --- URL building ---


def test_build_search_url_uses_page_offset():
    orch = _orchestrator(ScriptedFetcher())
    assert orch.build_search_url("python dev", "New York, NY", 0) == (
        "https://www.indeed.com/jobs?q=python+dev&l=New+York%2C+NY&start=0"
    )
    assert orch.build_search_url("python", "Remote", 2).endswith("start=20")


# --- Happy path ---


def test_crawl_classifies_and_counts_postings():
    fetcher = ScriptedFetcher()
    orch = _orchestrator(fetcher)
    fetcher.pages = {
        _url(orch, "node", "Remote", 0): _page(
            ("Senior Node.js Developer", "/viewjob?jk=1"),
            ("Engineering Manager, Kubernetes", "/viewjob?jk=2"),
        ),
        _url(orch, "node", "Remote", 1): _page(("Junior Python Developer", "/viewjob?jk=3")),
    }
    sink = RecordingSink()

    total = asyncio.run(orch.crawl(SearchSpec(["node"], ["Remote"], max_pages=2), sink))

    assert total == 3
    assert [p.title for p in sink.persisted] == [
        "Senior Node.js Developer",
        "Engineering Manager, Kubernetes",
        "Junior Python Developer",
    ]
    first = sink.persisted[0]
    assert first.keywords == {"node"}
    assert first.seniority is Seniority.SENIOR
    assert first.source == "indeed"
    assert sink.persisted[1].seniority is Seniority.MANAGEMENT
    assert sink.persisted[2].seniority is Seniority.ENTRY


def test_crawl_order_keyword_outer_location_inner():
    fetcher = ScriptedFetcher()
    orch = _orchestrator(fetcher)
    spec = SearchSpec(["a", "b"], ["x", "y"], max_pages=2)

    asyncio.run(orch.crawl(spec, RecordingSink()))

    expected = [
        _url(orch, kw, loc, page)
        for kw in ("a", "b")
        for loc in ("x", "y")
        for page in (0, 1)
    ]
    assert fetcher.requested == expected


# --- Rate limiting ---


def test_delay_between_every_fetch_but_not_after_last():
    fetcher = ScriptedFetcher()
    sleep = RecordingSleep()
    orch = _orchestrator(fetcher, sleep=sleep, delay=2.5)

    asyncio.run(orch.crawl(SearchSpec(["a", "b"], ["x"], max_pages=3), RecordingSink()))

    assert len(fetcher.requested) == 6
    # Between pages within a pair and between pairs; none after the final fetch
    assert sleep.delays == [2.5] * 5


def test_single_request_crawl_never_sleeps():
    sleep = RecordingSleep()
    orch = _orchestrator(ScriptedFetcher(), sleep=sleep)

    asyncio.run(orch.crawl(SearchSpec(["a"], ["x"], max_pages=1), RecordingSink()))

    assert sleep.delays == []


# --- Failure isolation ---


def test_page_failure_aborts_only_that_pair():
    fetcher = ScriptedFetcher()
    sleep = RecordingSleep()
    orch = _orchestrator(fetcher, sleep=sleep)
    fetcher.pages = {
        _url(orch, "x", "y", 0): _page(("Backend Engineer", "/viewjob?jk=10")),
        _url(orch, "x", "z", 0): _page(("Frontend Engineer", "/viewjob?jk=20")),
    }
    fetcher.failing = {_url(orch, "x", "y", 1)}
    sink = RecordingSink()

    total = asyncio.run(orch.crawl(SearchSpec(["x"], ["y", "z"], max_pages=3), sink))

    # Page 1 of (x, y) delivered; page 3 of (x, y) never requested
    assert _url(orch, "x", "y", 2) not in fetcher.requested
    # The next pair still ran in full
    assert fetcher.requested[-3:] == [_url(orch, "x", "z", p) for p in range(3)]
    assert [p.title for p in sink.persisted] == ["Backend Engineer", "Frontend Engineer"]
    assert total == 2
    # Five fetches in total, one delay before each fetch after the first
    assert len(sleep.delays) == 4


def test_sink_failure_is_logged_and_still_counted():
    fetcher = ScriptedFetcher()
    orch = _orchestrator(fetcher)
    fetcher.pages = {
        _url(orch, "go", "Remote", 0): _page(
            ("Go Developer", "/viewjob?jk=1"),
            ("Golang Engineer", "/viewjob?jk=2"),
        ),
    }
    sink = RecordingSink(fail_urls={"https://www.indeed.com/viewjob"})

    total = asyncio.run(orch.crawl(SearchSpec(["go"], ["Remote"], max_pages=1), sink))

    assert total == 2
    assert sink.persisted == []


def test_unrecognized_markup_counts_zero():
    fetcher = ScriptedFetcher()
    orch = _orchestrator(fetcher)
    fetcher.pages = {_url(orch, "a", "x", 0): "<html><body><p>Layout changed</p></body></html>"}

    total = asyncio.run(orch.crawl(SearchSpec(["a"], ["x"], max_pages=1), RecordingSink()))

    assert total == 0


def test_extractor_crash_is_treated_as_empty_page():
    class ExplodingExtractor:
        def extract(self, markup):
            raise RuntimeError("boom")

    orch = CrawlOrchestrator(
        fetcher=ScriptedFetcher(),
        extractor=ExplodingExtractor(),
        classifier=Classifier(),
        source="indeed",
        base_url=BASE_URL,
        sleep=RecordingSleep(),
    )

    assert asyncio.run(orch.crawl(SearchSpec(["a"], ["x"], max_pages=2), RecordingSink())) == 0


def test_sink_calls_are_sequential():
    in_flight = 0
    max_in_flight = 0

    class SlowSink:
        async def persist(self, posting):
            nonlocal in_flight, max_in_flight
            in_flight += 1
            max_in_flight = max(max_in_flight, in_flight)
            await asyncio.sleep(0)
            in_flight -= 1

    fetcher = ScriptedFetcher()
    orch = _orchestrator(fetcher)
    fetcher.pages = {
        _url(orch, "a", "x", 0): _page(
            ("Python Developer", "/viewjob/1"),
            ("Rust Developer", "/viewjob/2"),
            ("Java Developer", "/viewjob/3"),
        ),
    }

    assert asyncio.run(orch.crawl(SearchSpec(["a"], ["x"], max_pages=1), SlowSink())) == 3
    assert max_in_flight == 1


@pytest.mark.parametrize("max_pages", [1, 4])
def test_fetch_count_matches_pages_when_all_succeed(max_pages):
    fetcher = ScriptedFetcher()
    orch = _orchestrator(fetcher)

    asyncio.run(orch.crawl(SearchSpec(["a"], ["x", "y"], max_pages=max_pages), RecordingSink()))

    assert len(fetcher.requested) == 2 * max_pages
