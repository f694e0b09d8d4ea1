# src/cache/sqlite_store.py - v1
"""SQLite-based cache store (CACHE_BACKEND=sqlite).

Uses stdlib sqlite3, no external dependency. Both caches can share one
database file; rows are partitioned by namespace.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path

from shelfscan.cache.base_cache_store import BaseCacheStore, Document

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS cache_documents (
    namespace TEXT NOT NULL,
    key TEXT NOT NULL,
    data TEXT NOT NULL,
    updated_at TEXT DEFAULT CURRENT_TIMESTAMP,
    PRIMARY KEY (namespace, key)
);
"""


class SqliteCacheStore(BaseCacheStore):
    """SQLite-backed cache store."""

    def __init__(self, db_path: Path | str, namespace: str) -> None:
        super().__init__(namespace)
        if str(db_path) == ":memory:":
            self._conn = sqlite3.connect(":memory:")
        else:
            path = Path(db_path).expanduser()
            path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(path))
            self._conn.execute("PRAGMA journal_mode=WAL")
        self._conn.executescript(_SCHEMA)

    async def get(self, key: str) -> Document | None:
        """Retrieve a document by key."""
        cursor = self._conn.execute(
            "SELECT data FROM cache_documents WHERE namespace = ? AND key = ?",
            (self._namespace, key),
        )
        row = cursor.fetchone()
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except json.JSONDecodeError as e:
            logger.warning("Failed to deserialize cache entry %s/%s: %s", self._namespace, key, e)
            return None

    async def set(self, key: str, document: Document) -> None:
        """Store a document (upsert)."""
        self._conn.execute(
            """INSERT OR REPLACE INTO cache_documents (namespace, key, data, updated_at)
               VALUES (?, ?, ?, CURRENT_TIMESTAMP)""",
            (self._namespace, key, json.dumps(document, default=str)),
        )
        self._conn.commit()

    async def delete(self, key: str) -> bool:
        """Remove a document."""
        cursor = self._conn.execute(
            "DELETE FROM cache_documents WHERE namespace = ? AND key = ?",
            (self._namespace, key),
        )
        self._conn.commit()
        return cursor.rowcount > 0

    async def keys(self) -> list[str]:
        """List all keys in this namespace."""
        cursor = self._conn.execute(
            "SELECT key FROM cache_documents WHERE namespace = ?", (self._namespace,)
        )
        return [row[0] for row in cursor.fetchall()]

    def close(self) -> None:
        """Close the database connection."""
        self._conn.close()
