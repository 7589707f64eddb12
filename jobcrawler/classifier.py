"""Keyword and seniority classification for posting titles.

Pure text -> tags functions. No I/O and no state beyond the keyword
dictionary, which is built once at startup and only ever read afterwards.

Seniority uses ordered categories with explicit precedence (first match
wins):

  1. management: manager(s), director(s), vp (svp, evp, avp), head of, chief
  2. staff: staff, principal, architect
  3. senior: senior, sr., lead
  4. entry: junior, jr., entry, associate, intern
  5. mid (default)

so "Senior Engineering Manager" is management, not senior.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Mapping, Iterable
from dataclasses import dataclass
from types import MappingProxyType

from jobcrawler.models import ClassifiedPosting, RawPosting, Seniority

logger = logging.getLogger(__name__)

# canonical token -> spelling variants
DEFAULT_TECH_KEYWORDS: dict[str, tuple[str, ...]] = {
    # Programming languages
    "javascript": ("javascript",),
    "typescript": ("typescript",),
    "python": ("python",),
    "java": ("java",),
    "go": ("go", "golang"),
    "rust": ("rust",),
    "c++": ("c++",),
    "c#": ("c#",),
    "php": ("php",),
    "ruby": ("ruby",),
    "swift": ("swift",),
    "kotlin": ("kotlin",),
    "scala": ("scala",),
    # Frontend
    "react": ("react",),
    "vue": ("vue", "vuejs", "vue.js"),
    "angular": ("angular",),
    "next": ("nextjs", "next.js"),
    "svelte": ("svelte",),
    "html": ("html",),
    "css": ("css",),
    # Backend
    "node": ("node", "nodejs", "node.js"),
    "express": ("express",),
    "django": ("django",),
    "flask": ("flask",),
    "spring": ("spring",),
    "fastapi": ("fastapi",),
    "rails": ("rails",),
    # Databases
    "sql": ("sql",),
    "postgresql": ("postgresql", "postgres"),
    "mysql": ("mysql",),
    "mongodb": ("mongodb",),
    "redis": ("redis",),
    "elasticsearch": ("elasticsearch",),
    # Cloud & DevOps
    "aws": ("aws",),
    "azure": ("azure",),
    "gcp": ("gcp",),
    "docker": ("docker",),
    "kubernetes": ("kubernetes", "k8s"),
    "ci/cd": ("ci/cd",),
    "jenkins": ("jenkins",),
    "terraform": ("terraform",),
    "ansible": ("ansible",),
    # Mobile
    "ios": ("ios",),
    "android": ("android",),
    "react native": ("react native",),
    "flutter": ("flutter",),
    # Other
    "api": ("api",),
    "rest": ("rest",),
    "graphql": ("graphql",),
    "microservices": ("microservices",),
    "agile": ("agile",),
    "git": ("git",),
    "linux": ("linux",),
}

_SENIORITY_PATTERNS: tuple[tuple[Seniority, re.Pattern[str]], ...] = (
    (Seniority.MANAGEMENT, re.compile(r"\b(?:[sea]?vp|managers?|directors?|head of|chief)\b", re.IGNORECASE)),
    (Seniority.STAFF, re.compile(r"\b(staff|principal|architect)\b", re.IGNORECASE)),
    (Seniority.SENIOR, re.compile(r"\b(senior|sr\.|lead)(?!\w)", re.IGNORECASE)),
    (Seniority.ENTRY, re.compile(r"\b(junior|jr\.|entry|associate|intern(?:ship)?)(?!\w)", re.IGNORECASE)),
)


@dataclass(frozen=True)
class KeywordDictionary:
    """Immutable technology-term dictionary: canonical token -> variants."""

    terms: Mapping[str, tuple[str, ...]]

    def __post_init__(self) -> None:
        frozen = {}
        for canonical, variants in self.terms.items():
            canonical = canonical.strip().lower()
            if not canonical:
                raise ValueError("Keyword dictionary contains an empty canonical token")
            if isinstance(variants, str):
                variants = (variants,)
            spellings = {v.strip().lower() for v in variants if v and v.strip()} or {canonical}
            # Longest first so "node.js" is tried before "node"
            frozen[canonical] = tuple(sorted(spellings, key=lambda s: (-len(s), s)))
        object.__setattr__(self, "terms", MappingProxyType(frozen))

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Iterable[str]] | None) -> KeywordDictionary:
        """Build from a config mapping; None or empty means the defaults."""
        if not raw:
            return DEFAULT_DICTIONARY
        return cls({k: tuple(v or ()) for k, v in raw.items()})

    def __len__(self) -> int:
        return len(self.terms)


DEFAULT_DICTIONARY = KeywordDictionary(DEFAULT_TECH_KEYWORDS)


def _variant_pattern(variants: tuple[str, ...]) -> re.Pattern[str]:
    # \b doesn't work around "c++" / "c#", so use explicit word-char lookarounds
    alternation = "|".join(re.escape(v) for v in variants)
    return re.compile(rf"(?<!\w)(?:{alternation})(?!\w)", re.IGNORECASE)


class Classifier:
    """Tags postings with canonical tech keywords and a seniority level."""

    def __init__(self, dictionary: KeywordDictionary = DEFAULT_DICTIONARY):
        self.dictionary = dictionary
        self._patterns = [
            (canonical, _variant_pattern(variants))
            for canonical, variants in dictionary.terms.items()
        ]
        logger.debug("Classifier loaded %d keyword terms", len(dictionary))

    def extract_keywords(self, text: str | None) -> frozenset[str]:
        """Canonical keyword tokens found in ``text`` (whole-word, case-insensitive)."""
        if not text:
            return frozenset()
        return frozenset(
            canonical for canonical, pattern in self._patterns if pattern.search(text)
        )

    @staticmethod
    def detect_seniority(text: str | None) -> Seniority:
        """Seniority level for a title; mid when nothing matches."""
        if not text:
            return Seniority.MID
        for level, pattern in _SENIORITY_PATTERNS:
            if pattern.search(text):
                return level
        return Seniority.MID

    def classify(self, raw: RawPosting, source: str) -> ClassifiedPosting:
        return ClassifiedPosting.from_raw(
            raw,
            keywords=self.extract_keywords(raw.title),
            seniority=self.detect_seniority(raw.title),
            source=source,
        )


_default_classifier = Classifier()


def extract_keywords(text: str | None) -> frozenset[str]:
    """extract_keywords using the built-in dictionary."""
    return _default_classifier.extract_keywords(text)


def detect_seniority(text: str | None) -> Seniority:
    return Classifier.detect_seniority(text)
