"""
Local Store Module

SQLite-backed embedded store for highlights, the sync queue and bookmarks.
Every public operation runs in its own transaction; failures are raised as
LocalStoreError since there is no fallback persistence tier.
"""

import logging
import os
import sqlite3
from contextlib import contextmanager
from typing import Any, Iterator, List, Optional

from ..errors import LocalStoreError

logger = logging.getLogger(__name__)

MEMORY_DB = ":memory:"

_SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS highlights (
        id TEXT PRIMARY KEY,                  -- client-generated highlight id
        owner_key TEXT NOT NULL,              -- remote reference id, cache id or session sentinel
        page INTEGER NOT NULL,                -- 1-based page number
        kind TEXT NOT NULL,                   -- 'text' or 'area'
        rects TEXT NOT NULL,                  -- JSON list of base-space rects
        color TEXT NOT NULL,
        text TEXT NOT NULL DEFAULT '',
        base_width REAL,                      -- logical page size at capture time
        base_height REAL,
        remote_id TEXT,
        created_at INTEGER NOT NULL,          -- epoch milliseconds
        synced INTEGER NOT NULL DEFAULT 0
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_highlights_owner ON highlights(owner_key)",
    "CREATE INDEX IF NOT EXISTS idx_highlights_owner_page ON highlights(owner_key, page)",
    "CREATE INDEX IF NOT EXISTS idx_highlights_remote ON highlights(remote_id)",
    """
    CREATE TABLE IF NOT EXISTS sync_queue (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        action TEXT NOT NULL,                 -- 'save' or 'delete'
        payload TEXT,                         -- JSON wire payload for saves
        local_id TEXT,                        -- highlight to patch once a save succeeds
        target_id TEXT,                       -- remote id to delete
        retry_count INTEGER NOT NULL DEFAULT 0,
        last_error TEXT,
        status TEXT NOT NULL DEFAULT 'pending',
        timestamp INTEGER NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_sync_queue_timestamp ON sync_queue(timestamp)",
    "CREATE INDEX IF NOT EXISTS idx_sync_queue_retry ON sync_queue(retry_count)",
    """
    CREATE TABLE IF NOT EXISTS bookmarks (
        id TEXT PRIMARY KEY,
        owner_key TEXT NOT NULL,
        page INTEGER NOT NULL,
        title TEXT NOT NULL,
        created_at INTEGER NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_bookmarks_owner ON bookmarks(owner_key)",
]


class LocalStore:
    """
    Connection management and schema for the local SQLite database.

    File databases are opened per operation. An in-memory database keeps a
    single connection for the lifetime of the store, otherwise every
    operation would see an empty database.
    """

    def __init__(self, db_path: str = "data/highlights.db"):
        """
        Initialize the store and create the schema if needed.

        Args:
            db_path (str): Path to the SQLite database file, or ":memory:".
                          The directory will be created if it doesn't exist.
        """
        self.db_path = db_path
        self._shared: Optional[sqlite3.Connection] = None
        self._ensure_data_dir()
        self._init_schema()

    def _ensure_data_dir(self):
        if self.db_path == MEMORY_DB:
            return
        data_dir = os.path.dirname(self.db_path)
        if data_dir and not os.path.exists(data_dir):
            os.makedirs(data_dir)

    def _connect(self) -> sqlite3.Connection:
        if self.db_path == MEMORY_DB:
            if self._shared is None:
                self._shared = sqlite3.connect(MEMORY_DB)
                self._shared.row_factory = sqlite3.Row
            return self._shared
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run a block inside one transaction.

        Commits on success, rolls back on any exception. sqlite3 errors are
        re-raised as LocalStoreError.
        """
        try:
            conn = self._connect()
        except sqlite3.Error as e:
            raise LocalStoreError(f"Cannot open local store {self.db_path}: {e}") from e

        try:
            yield conn
            conn.commit()
        except sqlite3.Error as e:
            conn.rollback()
            logger.error(f"Local store error: {e}")
            raise LocalStoreError(str(e)) from e
        except Exception:
            conn.rollback()
            raise
        finally:
            if conn is not self._shared:
                conn.close()

    def fetch_all(self, query: str, params: tuple = ()) -> List[sqlite3.Row]:
        with self.transaction() as conn:
            return conn.execute(query, params).fetchall()

    def fetch_one(self, query: str, params: tuple = ()) -> Optional[sqlite3.Row]:
        with self.transaction() as conn:
            return conn.execute(query, params).fetchone()

    def execute(self, query: str, params: tuple = ()) -> Any:
        """Execute a write statement and return the cursor's rowcount"""
        with self.transaction() as conn:
            return conn.execute(query, params).rowcount

    def _init_schema(self):
        with self.transaction() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)

            # Rows written before geometry was versioned are treated as legacy
            columns = [row[1] for row in conn.execute("PRAGMA table_info(highlights)")]
            if "geometry_version" not in columns:
                logger.info("Adding geometry_version column to highlights table...")
                conn.execute(
                    "ALTER TABLE highlights ADD COLUMN geometry_version INTEGER NOT NULL DEFAULT 1"
                )

    def close(self):
        if self._shared is not None:
            self._shared.close()
            self._shared = None
