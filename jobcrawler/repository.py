"""SQLite repository of discovered postings.

One row per logical posting, keyed by normalized URL:

  - ``upsert`` inserts on first sighting; later sightings refresh
    ``last_verified_at``, reactivate the row and replace the keyword set and
    seniority. Title, company, location and source from the first insert are
    kept as-is.
  - ``mark_stale`` deactivates rows not seen within the staleness window
    (7 days by default). Rows are never deleted.
  - ``search`` / ``stats`` read the active set.

Keywords live in a side table so that search can intersect them in SQL.
Timestamps are stored as fixed-width ISO-8601 UTC strings, which sort
chronologically as text.
"""

from __future__ import annotations

import contextlib
import logging
import os
import sqlite3
from collections.abc import Callable, Iterable, Iterator
from datetime import datetime, timedelta, timezone

from jobcrawler.models import ClassifiedPosting, RepositoryStats, Seniority, StoredPosting
from jobcrawler.urls import normalize_url

logger = logging.getLogger(__name__)

DEFAULT_STALENESS = timedelta(days=7)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS postings (
      id INTEGER PRIMARY KEY,
      url TEXT NOT NULL UNIQUE,
      title TEXT NOT NULL,
      company TEXT NOT NULL DEFAULT '',
      location TEXT,
      seniority TEXT NOT NULL DEFAULT 'mid',
      source TEXT NOT NULL,
      is_active INTEGER NOT NULL DEFAULT 1,
      last_verified_at TEXT NOT NULL,
      created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS posting_keywords (
      posting_id INTEGER NOT NULL REFERENCES postings(id) ON DELETE CASCADE,
      keyword TEXT NOT NULL,
      PRIMARY KEY (posting_id, keyword)
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_postings_active ON postings (is_active)",
    "CREATE INDEX IF NOT EXISTS idx_postings_company ON postings (company)",
    "CREATE INDEX IF NOT EXISTS idx_postings_source ON postings (source)",
    "CREATE INDEX IF NOT EXISTS idx_postings_last_verified ON postings (last_verified_at)",
    "CREATE INDEX IF NOT EXISTS idx_posting_keywords_keyword ON posting_keywords (keyword)",
)


class RepositoryError(Exception):
    """The posting store could not be read or written."""


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_db_time(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _from_db_time(value: str) -> datetime:
    return datetime.fromisoformat(value)


class Repository:
    """Posting store backed by a single SQLite file."""

    def __init__(
        self,
        sqlite_path: str,
        staleness: timedelta = DEFAULT_STALENESS,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.sqlite_path = sqlite_path
        self.staleness = staleness
        self.clock = clock

    # ------------------------------------------------------------------
    # Setup
    # ------------------------------------------------------------------

    def init(self) -> None:
        """Create the database file and schema. Safe to call multiple times."""
        d = os.path.dirname(os.path.abspath(self.sqlite_path)) or "."
        try:
            os.makedirs(d, exist_ok=True)
        except OSError as exc:
            raise RepositoryError(f"Cannot create database directory {d}: {exc}") from exc
        with self._connection("init") as conn:
            for statement in _SCHEMA:
                conn.execute(statement)

    def ping(self) -> None:
        """Raise RepositoryError if the database can't be opened and queried."""
        self.init()
        with self._connection("ping") as conn:
            conn.execute("SELECT 1").fetchone()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def upsert(self, posting: ClassifiedPosting) -> int:
        """Insert or refresh a posting; returns its id.

        Repeated upserts of the same normalized URL leave exactly one row.
        """
        url = normalize_url(posting.url)
        if not url:
            raise RepositoryError(f"Posting has no usable URL: {posting.url!r}")

        now = _to_db_time(self.clock())
        keywords = sorted({kw.lower() for kw in posting.keywords})

        with self._connection("upsert") as conn:
            conn.execute("BEGIN IMMEDIATE")
            row = conn.execute("SELECT id FROM postings WHERE url = ?", (url,)).fetchone()
            if row is None:
                cur = conn.execute(
                    """
                    INSERT INTO postings (
                      url, title, company, location, seniority, source,
                      is_active, last_verified_at, created_at
                    ) VALUES (?, ?, ?, ?, ?, ?, 1, ?, ?)
                    """,
                    (
                        url,
                        posting.title,
                        posting.company or "",
                        posting.location,
                        posting.seniority.value,
                        posting.source,
                        now,
                        now,
                    ),
                )
                posting_id = int(cur.lastrowid)
                logger.debug("Inserted posting #%d %s", posting_id, url)
            else:
                posting_id = int(row["id"])
                conn.execute(
                    """
                    UPDATE postings
                       SET last_verified_at = ?, is_active = 1, seniority = ?
                     WHERE id = ?
                    """,
                    (now, posting.seniority.value, posting_id),
                )
                conn.execute("DELETE FROM posting_keywords WHERE posting_id = ?", (posting_id,))
                logger.debug("Refreshed posting #%d %s", posting_id, url)

            conn.executemany(
                "INSERT INTO posting_keywords (posting_id, keyword) VALUES (?, ?)",
                [(posting_id, kw) for kw in keywords],
            )
            conn.execute("COMMIT")

        return posting_id

    def mark_stale(self) -> int:
        """Deactivate active rows not verified within the staleness window.

        Returns the number of rows that transitioned to inactive.
        """
        cutoff = _to_db_time(self.clock() - self.staleness)
        with self._connection("mark_stale") as conn:
            cur = conn.execute(
                """
                UPDATE postings
                   SET is_active = 0
                 WHERE is_active = 1
                   AND last_verified_at < ?
                """,
                (cutoff,),
            )
            count = cur.rowcount
        logger.info("Marked %d postings inactive (not seen since %s)", count, cutoff)
        return count

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def get(self, url: str) -> StoredPosting | None:
        """Look up a posting by URL (normalized before lookup)."""
        normalized = normalize_url(url)
        if not normalized:
            return None
        with self._connection("get") as conn:
            row = conn.execute("SELECT * FROM postings WHERE url = ?", (normalized,)).fetchone()
            if row is None:
                return None
            return self._hydrate(conn, [row])[0]

    def search(
        self,
        keywords: Iterable[str],
        location_pattern: str = "%",
        limit: int = 50,
    ) -> list[StoredPosting]:
        """Active postings sharing a keyword with the query, newest-verified first.

        ``location_pattern`` is a SQL LIKE pattern (case-insensitive), e.g.
        ``"%remote%"``.
        """
        terms = sorted({kw.strip().lower() for kw in keywords if kw and kw.strip()})
        if not terms or limit <= 0:
            return []

        placeholders = ", ".join("?" for _ in terms)
        query = f"""
            SELECT p.* FROM postings p
             WHERE p.is_active = 1
               AND p.location LIKE ?
               AND EXISTS (
                 SELECT 1 FROM posting_keywords k
                  WHERE k.posting_id = p.id AND k.keyword IN ({placeholders})
               )
             ORDER BY p.last_verified_at DESC, p.id DESC
             LIMIT ?
        """
        with self._connection("search") as conn:
            rows = conn.execute(query, (location_pattern or "%", *terms, limit)).fetchall()
            return self._hydrate(conn, rows)

    def stats(self) -> RepositoryStats:
        with self._connection("stats") as conn:
            row = conn.execute(
                """
                SELECT COUNT(*) AS total,
                       COALESCE(SUM(is_active), 0) AS active,
                       COUNT(DISTINCT NULLIF(company, '')) AS distinct_companies,
                       COUNT(DISTINCT source) AS distinct_sources
                  FROM postings
                """
            ).fetchone()
        return RepositoryStats(
            total=int(row["total"]),
            active=int(row["active"]),
            distinct_companies=int(row["distinct_companies"]),
            distinct_sources=int(row["distinct_sources"]),
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    @contextlib.contextmanager
    def _connection(self, op: str) -> Iterator[sqlite3.Connection]:
        """Open a connection for one operation; DB errors become RepositoryError."""
        conn = None
        try:
            # isolation_level=None gives autocommit mode; transactions are explicit.
            conn = sqlite3.connect(self.sqlite_path, timeout=30.0, isolation_level=None)
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA journal_mode=WAL;")
            conn.execute("PRAGMA synchronous=NORMAL;")
            conn.execute("PRAGMA foreign_keys=ON;")
            yield conn
        except sqlite3.Error as exc:
            if conn is not None and conn.in_transaction:
                conn.rollback()
            logger.error("Repository %s failed on %s: %r", op, self.sqlite_path, exc)
            raise RepositoryError(f"{op} failed: {exc}") from exc
        finally:
            if conn is not None:
                conn.close()

    @staticmethod
    def _hydrate(conn: sqlite3.Connection, rows: list[sqlite3.Row]) -> list[StoredPosting]:
        if not rows:
            return []

        ids = [row["id"] for row in rows]
        placeholders = ", ".join("?" for _ in ids)
        keywords: dict[int, set[str]] = {i: set() for i in ids}
        for kw_row in conn.execute(
            f"SELECT posting_id, keyword FROM posting_keywords WHERE posting_id IN ({placeholders})",
            ids,
        ):
            keywords[kw_row["posting_id"]].add(kw_row["keyword"])

        return [
            StoredPosting(
                id=row["id"],
                title=row["title"],
                company=row["company"],
                location=row["location"],
                url=row["url"],
                keywords=frozenset(keywords[row["id"]]),
                seniority=Seniority(row["seniority"]),
                source=row["source"],
                is_active=bool(row["is_active"]),
                last_verified_at=_from_db_time(row["last_verified_at"]),
                created_at=_from_db_time(row["created_at"]),
            )
            for row in rows
        ]
