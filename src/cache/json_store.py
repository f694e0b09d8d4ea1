# src/cache/json_store.py - v1
"""JSON file-based cache store (CACHE_BACKEND=json).

Stores each document as an individual JSON file under
CACHE_ROOT/<namespace>/. File names are derived from a digest of the
key, and the key itself is kept inside the file for listing.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path

from shelfscan.cache.base_cache_store import BaseCacheStore, Document

logger = logging.getLogger(__name__)


class JsonCacheStore(BaseCacheStore):
    """File-based cache store using JSON files."""

    def __init__(self, cache_root: Path | str, namespace: str) -> None:
        super().__init__(namespace)
        self._root = Path(cache_root).expanduser() / namespace
        self._root.mkdir(parents=True, exist_ok=True)

    async def get(self, key: str) -> Document | None:
        """Retrieve a document by key."""
        path = self._entry_path(key)
        if not path.exists():
            return None
        try:
            payload = json.loads(path.read_text(encoding="utf-8"))
            return payload["document"]
        except (json.JSONDecodeError, KeyError, TypeError) as e:
            logger.warning("Failed to read cache entry %s/%s: %s", self._namespace, key, e)
            return None

    async def set(self, key: str, document: Document) -> None:
        """Store a document, replacing the file atomically."""
        path = self._entry_path(key)
        tmp = path.with_suffix(".tmp")
        tmp.write_text(
            json.dumps({"key": key, "document": document}, default=str),
            encoding="utf-8",
        )
        tmp.replace(path)

    async def delete(self, key: str) -> bool:
        """Remove a document."""
        path = self._entry_path(key)
        if path.exists():
            path.unlink()
            return True
        return False

    async def keys(self) -> list[str]:
        """List all keys in this namespace."""
        keys: list[str] = []
        if not self._root.is_dir():
            return keys

        for path in self._root.glob("*.json"):
            try:
                keys.append(json.loads(path.read_text(encoding="utf-8"))["key"])
            except (json.JSONDecodeError, KeyError, TypeError):
                logger.warning("Skipping unreadable cache file %s", path.name)
        return keys

    def _entry_path(self, key: str) -> Path:
        """Return file path for a cache key."""
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()[:32]
        return self._root / f"{digest}.json"
