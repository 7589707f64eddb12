"""Configuration loader for the job crawler.

Reads config.yaml and returns typed configuration objects that the CLI
uses to wire up the fetcher, extractor, classifier, orchestrator and
repository.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path
from typing import Any

import yaml

from jobcrawler.classifier import KeywordDictionary
from jobcrawler.fetcher import DEFAULT_USER_AGENT
from jobcrawler.models import SearchSpec

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent.parent / "config.yaml"

DB_PATH_ENV = "JOBCRAWLER_DB_PATH"


class ConfigError(ValueError):
    """config.yaml is present but unusable."""


@dataclass
class SiteConfig:
    """The listings site being crawled."""

    name: str = "indeed"
    base_url: str = "https://www.indeed.com"
    search_path: str = "/jobs"
    page_size: int = 10  # results per page; the "start" offset steps by this


@dataclass
class SearchConfig:
    """What to search for on each run."""

    keywords: list[str] = field(
        default_factory=lambda: ["software engineer", "full stack developer", "backend", "frontend"]
    )
    locations: list[str] = field(default_factory=lambda: ["Remote"])
    max_pages: int = 2


@dataclass
class CrawlerConfig:
    """Top-level crawler configuration."""

    site: SiteConfig = field(default_factory=SiteConfig)
    search: SearchConfig = field(default_factory=SearchConfig)
    database_path: str = "data/jobs.db"
    log_level: str = "INFO"
    request_delay_seconds: float = 3.0  # polite delay between HTTP requests
    request_timeout_seconds: float = 10.0
    max_redirects: int = 5
    user_agent: str = DEFAULT_USER_AGENT
    staleness_days: int = 7
    tech_keywords: dict[str, list[str]] = field(default_factory=dict)

    def search_spec(self, max_pages: int | None = None) -> SearchSpec:
        return SearchSpec(
            keywords=tuple(self.search.keywords),
            locations=tuple(self.search.locations),
            max_pages=max_pages if max_pages is not None else self.search.max_pages,
        )

    def keyword_dictionary(self) -> KeywordDictionary:
        return KeywordDictionary.from_mapping(self.tech_keywords)

    @property
    def staleness(self) -> timedelta:
        return timedelta(days=self.staleness_days)


def load_config(path: Path | str | None = None) -> CrawlerConfig:
    """Load and validate the crawler configuration from a YAML file."""
    config_path = Path(path) if path else DEFAULT_CONFIG_PATH

    if not config_path.exists():
        logger.warning("Config file not found at %s, using defaults", config_path)
        return _apply_env(CrawlerConfig())

    with open(config_path, "r") as f:
        try:
            raw = yaml.safe_load(f)
        except yaml.YAMLError as exc:
            raise ConfigError(f"Could not parse {config_path}: {exc}") from exc

    if not raw:
        return _apply_env(CrawlerConfig())
    if not isinstance(raw, dict):
        raise ConfigError(f"{config_path} must contain a mapping at the top level")

    defaults = CrawlerConfig()

    site_raw = _section(raw, "site")
    site = SiteConfig(
        name=site_raw.get("name", defaults.site.name),
        base_url=site_raw.get("base_url", defaults.site.base_url),
        search_path=site_raw.get("search_path", defaults.site.search_path),
        page_size=_positive_int(site_raw.get("page_size", defaults.site.page_size), "site.page_size"),
    )

    search_raw = _section(raw, "search")
    search = SearchConfig(
        keywords=_string_list(search_raw.get("keywords", defaults.search.keywords), "search.keywords"),
        locations=_string_list(search_raw.get("locations", defaults.search.locations), "search.locations"),
        max_pages=_positive_int(search_raw.get("max_pages", defaults.search.max_pages), "search.max_pages"),
    )

    tech_keywords = raw.get("tech_keywords") or {}
    if not isinstance(tech_keywords, dict):
        raise ConfigError("tech_keywords must map canonical tokens to lists of variants")

    config = CrawlerConfig(
        site=site,
        search=search,
        database_path=raw.get("database_path", defaults.database_path),
        log_level=raw.get("log_level", defaults.log_level),
        request_delay_seconds=float(raw.get("request_delay_seconds", defaults.request_delay_seconds)),
        request_timeout_seconds=float(raw.get("request_timeout_seconds", defaults.request_timeout_seconds)),
        max_redirects=_positive_int(raw.get("max_redirects", defaults.max_redirects), "max_redirects"),
        user_agent=raw.get("user_agent", defaults.user_agent),
        staleness_days=_positive_int(raw.get("staleness_days", defaults.staleness_days), "staleness_days"),
        tech_keywords={str(k): _string_list(v or [], f"tech_keywords.{k}") for k, v in tech_keywords.items()},
    )
    return _apply_env(config)


def _apply_env(config: CrawlerConfig) -> CrawlerConfig:
    db_path = os.environ.get(DB_PATH_ENV)
    if db_path:
        config.database_path = db_path
    return config


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name) or {}
    if not isinstance(value, dict):
        raise ConfigError(f"'{name}' must be a mapping")
    return value


def _positive_int(value: Any, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ConfigError(f"'{name}' must be a positive integer, got {value!r}")
    return value


def _string_list(value: Any, name: str) -> list[str]:
    if isinstance(value, str):
        return [value]
    if not isinstance(value, list) or not all(isinstance(v, str) for v in value):
        raise ConfigError(f"'{name}' must be a list of strings")
    return list(value)
