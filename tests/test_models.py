"""Tests for the crawler data models."""

import pytest

from jobcrawler.models import ClassifiedPosting, RawPosting, SearchSpec, Seniority


def test_search_spec_freezes_lists():
    spec = SearchSpec(keywords=["python", "go"], locations=["Remote"], max_pages=3)
    assert spec.keywords == ("python", "go")
    assert spec.locations == ("Remote",)
    assert spec.max_pages == 3


def test_search_spec_rejects_non_positive_pages():
    with pytest.raises(ValueError):
        SearchSpec(keywords=["x"], locations=["y"], max_pages=0)


def test_search_spec_pairs_keyword_outer_location_inner():
    spec = SearchSpec(keywords=["a", "b"], locations=["x", "y"], max_pages=1)
    assert spec.pairs == [("a", "x"), ("a", "y"), ("b", "x"), ("b", "y")]


def test_classified_posting_from_raw():
    raw = RawPosting(
        title="Senior Python Developer",
        company="Acme",
        location="Remote",
        url="https://example.com/jobs/1",
    )
    posting = ClassifiedPosting.from_raw(
        raw, keywords={"python"}, seniority=Seniority.SENIOR, source="indeed"
    )
    assert posting.title == raw.title
    assert posting.keywords == frozenset({"python"})
    assert posting.seniority is Seniority.SENIOR
    assert posting.source == "indeed"


def test_to_dict():
    posting = ClassifiedPosting(
        title="Go Engineer",
        company="Acme",
        location="Austin, TX",
        url="https://example.com/jobs/2",
        keywords=frozenset({"go", "kubernetes"}),
        seniority=Seniority.MID,
        source="indeed",
    )
    d = posting.to_dict()
    assert d["keywords"] == ["go", "kubernetes"]
    assert d["seniority"] == "mid"
    assert d["url"] == "https://example.com/jobs/2"
