"""
SQLite FTS5 page index.
- Crawler-compatible schema (pages, images, pages_fts kept in sync by triggers)
- Executes planned retrieval statements and returns plain row dicts
- Vocabulary sampling for spelling suggestions
- Bulk page/media insertion for ingestion
- All sqlite3 failures surface as IndexUnavailableError
"""

import logging
import os
import sqlite3
import threading
from typing import Any, Dict, Iterable, List, Optional, Tuple

from searchcore.services.planner import SQL_LOWER_FUNCTION, QueryPlan, unicode_lower

logger = logging.getLogger("index")

_SCHEMA = """
CREATE TABLE IF NOT EXISTS pages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    url TEXT UNIQUE NOT NULL,
    title TEXT,
    description TEXT,
    content TEXT,
    raw_html TEXT,
    favicon TEXT,
    crawled_at DATETIME DEFAULT CURRENT_TIMESTAMP
);

CREATE TABLE IF NOT EXISTS images (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    page_id INTEGER,
    image_url TEXT,
    FOREIGN KEY(page_id) REFERENCES pages(id)
);

CREATE VIRTUAL TABLE IF NOT EXISTS pages_fts USING fts5(
    title,
    description,
    content,
    content='pages',
    content_rowid='id'
);

CREATE TRIGGER IF NOT EXISTS pages_ai AFTER INSERT ON pages BEGIN
    INSERT INTO pages_fts(rowid, title, description, content)
    VALUES (new.id, new.title, new.description, new.content);
END;

CREATE TRIGGER IF NOT EXISTS pages_ad AFTER DELETE ON pages BEGIN
    INSERT INTO pages_fts(pages_fts, rowid, title, description, content)
    VALUES ('delete', old.id, old.title, old.description, old.content);
END;

CREATE TRIGGER IF NOT EXISTS pages_au AFTER UPDATE ON pages BEGIN
    INSERT INTO pages_fts(pages_fts, rowid, title, description, content)
    VALUES ('delete', old.id, old.title, old.description, old.content);
    INSERT INTO pages_fts(rowid, title, description, content)
    VALUES (new.id, new.title, new.description, new.content);
END;

CREATE INDEX IF NOT EXISTS idx_pages_url ON pages(url);
CREATE INDEX IF NOT EXISTS idx_images_page_id ON images(page_id);
"""


class IndexUnavailableError(RuntimeError):
    """The page index could not be read or written."""


class PageIndex:
    """Thread-safe access to the crawler's SQLite database."""

    def __init__(self, db_path: str) -> None:
        """
        Initialize PageIndex.

        Args:
            db_path: Path to the SQLite database; created with the crawler schema if missing
        """
        self.db_path = db_path
        self._db_lock = threading.Lock()
        directory = os.path.dirname(self.db_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        self._init_db()

    # ---------------------- Database Setup ----------------------
    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.create_function(SQL_LOWER_FUNCTION, 1, unicode_lower, deterministic=True)
        return conn

    def _init_db(self) -> None:
        try:
            with self._db_lock, self._connect() as conn:
                conn.executescript(_SCHEMA)
                conn.execute("PRAGMA journal_mode=WAL;")
                conn.execute("PRAGMA synchronous=NORMAL;")
                conn.commit()
        except sqlite3.Error as e:
            raise IndexUnavailableError(f"Failed to initialize page index: {e}") from e
        logger.info("Page index initialized at %s", self.db_path)

    # ---------------------- Retrieval ----------------------
    def fetch(self, plan: QueryPlan) -> List[Dict[str, Any]]:
        """Run a planned statement; returns one dict per row."""
        try:
            with self._db_lock, self._connect() as conn:
                conn.row_factory = sqlite3.Row
                rows = [dict(row) for row in conn.execute(plan.sql, plan.params)]
        except sqlite3.Error as e:
            logger.error("Index query failed (%s): %s", plan.kind, e)
            raise IndexUnavailableError(str(e)) from e
        logger.info("Index query (%s) returned %d rows", plan.kind, len(rows))
        return rows

    def fetch_one(self, plan: QueryPlan) -> Optional[Dict[str, Any]]:
        rows = self.fetch(plan)
        return rows[0] if rows else None

    def sample_vocabulary(self, limit: int = 1000) -> List[Tuple[Optional[str], Optional[str]]]:
        """Distinct (title, description) pairs used to build the spelling vocabulary."""
        try:
            with self._db_lock, self._connect() as conn:
                cur = conn.execute(
                    "SELECT DISTINCT title, description FROM pages LIMIT ?", (limit,)
                )
                return [(row[0], row[1]) for row in cur.fetchall()]
        except sqlite3.Error as e:
            raise IndexUnavailableError(str(e)) from e

    def count(self) -> int:
        try:
            with self._db_lock, self._connect() as conn:
                return int(conn.execute("SELECT COUNT(*) FROM pages").fetchone()[0])
        except sqlite3.Error as e:
            raise IndexUnavailableError(str(e)) from e

    def ping(self) -> None:
        """Raise IndexUnavailableError if the database cannot be queried."""
        try:
            with self._db_lock, self._connect() as conn:
                conn.execute("SELECT 1").fetchone()
        except sqlite3.Error as e:
            raise IndexUnavailableError(str(e)) from e

    # ---------------------- Writes ----------------------
    def add_pages(self, pages: Iterable[Dict[str, Any]]) -> Tuple[int, int]:
        """
        Insert pages and their media. Pages whose URL already exists are skipped.
        Returns (inserted_count, skipped_count).
        """
        inserted = 0
        skipped = 0
        try:
            with self._db_lock, self._connect() as conn:
                for page in pages:
                    cur = conn.execute(
                        """
                        INSERT OR IGNORE INTO pages (url, title, description, content, favicon)
                        VALUES (?, ?, ?, ?, ?)
                        """,
                        (
                            page["url"],
                            page.get("title"),
                            page.get("description"),
                            page.get("content"),
                            page.get("favicon"),
                        ),
                    )
                    if cur.rowcount != 1:
                        skipped += 1
                        continue
                    page_id = cur.lastrowid
                    conn.executemany(
                        "INSERT INTO images (page_id, image_url) VALUES (?, ?)",
                        [(page_id, url) for url in page.get("images") or []],
                    )
                    inserted += 1
                conn.commit()
        except sqlite3.Error as e:
            logger.exception("Failed to persist pages")
            raise IndexUnavailableError(str(e)) from e
        logger.info("Persisted %d pages (skipped %d)", inserted, skipped)
        return inserted, skipped
