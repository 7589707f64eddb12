"""Listing extractor for search result pages.

The target site's markup is unversioned and changes often, so cards are
located with an ordered chain of structural strategies. The first strategy
that matches at least one element wins; results are never merged across
strategies.

Known layouts (in order tried):
  1. Indeed result beacons:  <div class="job_seen_beacon">
  2. Indeed result content:  <td class="resultContent">
  3. Cards with a job id:    <div data-jk="..."> / <li data-job-id="...">
  4. Listing item classes:   .job-listing / .job-item / .career-item
  5. Job card containers:    div[class*=JobCard], article[class*=job], li[class*=job]
  6. Openings:               .opening / .position

If none match, headings that read like job titles (engineer, developer,
analyst, manager, designer, scientist) are located and each heading's
enclosing container is treated as a card.

A broken card is skipped; a broken page yields no postings. Nothing in
here raises on bad markup.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Callable
from typing import NamedTuple

from bs4 import BeautifulSoup, Tag

from jobcrawler.models import RawPosting
from jobcrawler.urls import normalize_url

logger = logging.getLogger(__name__)

NOT_SPECIFIED = "Not specified"

_JOB_NOUNS = re.compile(r"engineer|developer|analyst|manager|designer|scientist", re.IGNORECASE)

_LOCATION_PATTERN = re.compile(
    r"\b(Remote|Hybrid"
    r"|[A-Z][a-z]+\s+[A-Z][a-z]+,\s*[A-Z]{2}"  # Two Words, ST
    r"|[A-Z][a-z]+,\s*[A-Z]{2})\b"              # City, ST
)

_HEADING_TAGS = ["h1", "h2", "h3", "h4"]


class CardStrategy(NamedTuple):
    """A named structural pattern: parsed document -> candidate card elements."""

    name: str
    find: Callable[[BeautifulSoup], list[Tag]]


def _css(selector: str) -> Callable[[BeautifulSoup], list[Tag]]:
    def find(soup: BeautifulSoup) -> list[Tag]:
        return list(soup.select(selector))

    return find


def find_heading_cards(soup: BeautifulSoup) -> list[Tag]:
    """Fallback: containers of headings whose text contains a job-like noun."""
    cards: list[Tag] = []
    seen: set[int] = set()
    for heading in soup.find_all(_HEADING_TAGS):
        if not _JOB_NOUNS.search(heading.get_text(" ", strip=True)):
            continue
        container = heading.parent if isinstance(heading.parent, Tag) else heading
        if container.name in ("body", "html", "[document]"):
            container = heading
        if id(container) in seen:
            continue
        seen.add(id(container))
        cards.append(container)
    return cards


CARD_STRATEGIES: tuple[CardStrategy, ...] = (
    CardStrategy("indeed-beacon", _css(".job_seen_beacon")),
    CardStrategy("indeed-result-content", _css(".resultContent")),
    CardStrategy("job-id-attribute", _css("[data-jk], [data-job-id]")),
    CardStrategy("listing-item", _css(".job-listing, .job-item, .career-item")),
    CardStrategy("job-card", _css("div[class*='JobCard'], article[class*='job'], li[class*='job']")),
    CardStrategy("opening", _css(".opening, .position")),
)

FALLBACK_STRATEGY = CardStrategy("heading-heuristic", find_heading_cards)


class ListingExtractor:
    """Turns a search results page into RawPostings."""

    def __init__(
        self,
        origin: str,
        strategies: tuple[CardStrategy, ...] = CARD_STRATEGIES,
        fallback: CardStrategy | None = FALLBACK_STRATEGY,
    ):
        self.origin = origin
        self.strategies = strategies
        self.fallback = fallback

    def extract(self, markup: str) -> list[RawPosting]:
        """Parse ``markup`` and return every posting that has a title and a URL."""
        if not markup or not markup.strip():
            return []

        try:
            soup = BeautifulSoup(markup, "html.parser")
        except Exception as exc:
            logger.warning("Could not parse page markup: %s", exc)
            return []

        strategy, cards = self._find_cards(soup)
        if not cards:
            logger.debug("No job cards found by any strategy")
            return []

        logger.debug("Found %d job cards using strategy: %s", len(cards), strategy)

        postings: list[RawPosting] = []
        for card in cards:
            try:
                posting = self._parse_card(card)
            except Exception as exc:
                logger.debug("Error parsing job card: %s", exc)
                continue
            if posting is not None:
                postings.append(posting)
        return postings

    def _find_cards(self, soup: BeautifulSoup) -> tuple[str, list[Tag]]:
        chain = self.strategies + ((self.fallback,) if self.fallback else ())
        for strategy in chain:
            try:
                cards = strategy.find(soup)
            except Exception as exc:
                logger.debug("Strategy %s failed: %s", strategy.name, exc)
                continue
            if cards:
                return strategy.name, cards
        return "", []

    def _parse_card(self, card: Tag) -> RawPosting | None:
        title = _extract_title(card)
        url = normalize_url(_first_href(card), self.origin)

        if not title or not url:
            logger.debug("Discarding card (title=%r, url=%r)", title, url)
            return None

        return RawPosting(
            title=title,
            company=_labeled_text(card, "company", exclude="location"),
            location=_extract_location(card),
            url=url,
        )


# ── Field helpers ──────────────────────────────────────────────────────────


def _labels(el: Tag) -> str:
    """Lowercased class names and data-testid of an element."""
    classes = el.get("class") or []
    if isinstance(classes, str):
        classes = [classes]
    return " ".join(list(classes) + [el.get("data-testid") or ""]).lower()


def _labeled_child(card: Tag, label: str, exclude: str | None = None) -> Tag | None:
    """Innermost descendant whose class/data-testid mentions ``label``."""
    for el in card.find_all(True):
        labels = _labels(el)
        if label not in labels or (exclude and exclude in labels):
            continue
        if not el.get_text(strip=True):
            continue
        # Wrappers like class="company_location" hold a more specific child
        if any(label in _labels(child) for child in el.find_all(True)):
            continue
        return el
    return None


def _labeled_text(card: Tag, label: str, exclude: str | None = None) -> str:
    el = _labeled_child(card, label, exclude)
    return _clean(el.get_text(" ", strip=True)) if el else ""


def _extract_title(card: Tag) -> str:
    # Explicit title: a heading inside the card, or anything labeled "title"
    if card.name in _HEADING_TAGS:
        labeled = card
    else:
        labeled = _job_heading(card) or _labeled_child(card, "title")
    if labeled is not None:
        # Indeed puts the clean title in a title attribute on an inner span
        titled = labeled.find(attrs={"title": True})
        if titled is not None and titled.get("title", "").strip():
            return _clean(titled["title"])
        text = _clean(labeled.get_text(" ", strip=True))
        if text:
            return text

    link = _first_link(card)
    if link is not None:
        text = _clean(link.get_text(" ", strip=True))
        if text:
            return text

    for line in card.get_text("\n").split("\n"):
        line = _clean(line)
        if line:
            return line
    return ""


def _job_heading(card: Tag) -> Tag | None:
    """First heading that reads like a job title, else the first heading."""
    headings = card.find_all(_HEADING_TAGS)
    for heading in headings:
        if _JOB_NOUNS.search(heading.get_text(" ", strip=True)):
            return heading
    return headings[0] if headings else None


def _extract_location(card: Tag) -> str:
    location = _labeled_text(card, "location")
    if location:
        return location

    # Per text node, so "QA Analyst" + "Seattle, WA" can't run together
    for text in card.stripped_strings:
        match = _LOCATION_PATTERN.search(text)
        if match:
            return match.group(0)
    return NOT_SPECIFIED


def _first_link(card: Tag) -> Tag | None:
    if card.name == "a" and card.get("href"):
        return card
    heading = card if card.name in _HEADING_TAGS else _job_heading(card)
    if heading is not None:
        link = heading.find("a", href=True) or heading.find_parent("a", href=True)
        # Only a link inside the card; an enclosing one is the last resort below
        if link is not None and any(parent is card for parent in link.parents):
            return link
    link = card.find("a", href=True)
    if link is not None:
        return link
    # A heading wrapped in a link: <a href=...><h3>Title</h3></a>
    return card.find_parent("a", href=True)


def _first_href(card: Tag) -> str | None:
    link = _first_link(card)
    return link.get("href") if link is not None else None


def _clean(text: str) -> str:
    return re.sub(r"\s+", " ", text or "").strip()
