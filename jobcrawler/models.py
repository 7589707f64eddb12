"""Data models for the job crawler pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum


class Seniority(str, Enum):
    """Seniority level inferred from a posting title."""

    ENTRY = "entry"
    MID = "mid"
    SENIOR = "senior"
    STAFF = "staff"
    MANAGEMENT = "management"


@dataclass(frozen=True)
class SearchSpec:
    """One crawl invocation: keywords x locations x pages.

    Immutable so the orchestrator can't drift from what the caller asked for.
    """

    keywords: tuple[str, ...]
    locations: tuple[str, ...]
    max_pages: int = 2

    def __post_init__(self) -> None:
        # Accept lists from config and freeze them
        object.__setattr__(self, "keywords", tuple(self.keywords))
        object.__setattr__(self, "locations", tuple(self.locations))
        if not isinstance(self.max_pages, int) or self.max_pages < 1:
            raise ValueError(f"max_pages must be a positive integer, got {self.max_pages!r}")

    @property
    def pairs(self) -> list[tuple[str, str]]:
        """(keyword, location) pairs in crawl order: keyword outer, location inner."""
        return [(kw, loc) for kw in self.keywords for loc in self.locations]


@dataclass(frozen=True)
class RawPosting:
    """A single listing as scraped, before classification."""

    title: str
    company: str
    location: str
    url: str

    def __repr__(self) -> str:
        return (
            f"RawPosting(title={self.title!r}, company={self.company!r}, "
            f"location={self.location!r})"
        )


@dataclass(frozen=True)
class ClassifiedPosting:
    """A RawPosting tagged with keywords, seniority and its source site."""

    title: str
    company: str
    location: str
    url: str
    keywords: frozenset[str] = field(default_factory=frozenset)
    seniority: Seniority = Seniority.MID
    source: str = ""

    @classmethod
    def from_raw(
        cls,
        raw: RawPosting,
        keywords: frozenset[str],
        seniority: Seniority,
        source: str,
    ) -> ClassifiedPosting:
        return cls(
            title=raw.title,
            company=raw.company,
            location=raw.location,
            url=raw.url,
            keywords=frozenset(keywords),
            seniority=seniority,
            source=source,
        )

    def to_dict(self) -> dict:
        """Serialize to a plain dictionary."""
        d = asdict(self)
        d["keywords"] = sorted(self.keywords)
        d["seniority"] = self.seniority.value
        return d


@dataclass(frozen=True)
class StoredPosting:
    """A ClassifiedPosting as persisted in the repository."""

    id: int
    title: str
    company: str
    location: str
    url: str
    keywords: frozenset[str]
    seniority: Seniority
    source: str
    is_active: bool
    last_verified_at: datetime
    created_at: datetime

    def to_dict(self) -> dict:
        d = asdict(self)
        d["keywords"] = sorted(self.keywords)
        d["seniority"] = self.seniority.value
        d["last_verified_at"] = self.last_verified_at.isoformat()
        d["created_at"] = self.created_at.isoformat()
        return d


@dataclass(frozen=True)
class RepositoryStats:
    """Aggregate counts over the repository."""

    total: int
    active: int
    distinct_companies: int
    distinct_sources: int

    def to_dict(self) -> dict:
        return asdict(self)
