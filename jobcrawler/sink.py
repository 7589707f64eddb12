"""Where classified postings go once the crawler has them."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from jobcrawler.models import ClassifiedPosting
from jobcrawler.repository import Repository

logger = logging.getLogger(__name__)


class PostingSink(Protocol):
    """Persists one ClassifiedPosting. May raise; the crawler logs and moves on."""

    async def persist(self, posting: ClassifiedPosting) -> None:
        ...


class RepositorySink:
    """PostingSink backed by the SQLite repository."""

    def __init__(self, repository: Repository):
        self.repository = repository

    async def persist(self, posting: ClassifiedPosting) -> None:
        posting_id = await asyncio.to_thread(self.repository.upsert, posting)
        logger.debug("Saved job #%d: %s at %s", posting_id, posting.title, posting.company)
