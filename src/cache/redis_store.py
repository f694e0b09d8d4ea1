# src/cache/redis_store.py - v1
"""Redis-based cache store (CACHE_BACKEND=redis).

Requires 'redis' package: pip install redis.
Suitable for multi-instance deployments sharing one cache.
"""

from __future__ import annotations

import json
import logging

from shelfscan.cache.base_cache_store import BaseCacheStore, Document

logger = logging.getLogger(__name__)

_KEY_PREFIX = "shelfscan:cache:"


class RedisCacheStore(BaseCacheStore):
    """Redis-backed cache store."""

    def __init__(self, redis_url: str, namespace: str) -> None:
        super().__init__(namespace)
        try:
            import redis
        except ImportError as e:
            raise ImportError(
                "redis package required: pip install redis"
            ) from e

        self._client = redis.Redis.from_url(redis_url, decode_responses=True)
        self._prefix = f"{_KEY_PREFIX}{namespace}:"
        self._index_key = f"{self._prefix}__index__"

    async def get(self, key: str) -> Document | None:
        """Retrieve a document by key."""
        data = self._client.get(f"{self._prefix}{key}")
        if data is None:
            return None
        try:
            return json.loads(data)
        except json.JSONDecodeError as e:
            logger.warning("Failed to deserialize cache entry %s/%s: %s", self._namespace, key, e)
            return None

    async def set(self, key: str, document: Document) -> None:
        """Store a document."""
        self._client.set(f"{self._prefix}{key}", json.dumps(document, default=str))
        # Index set backs keys()
        self._client.sadd(self._index_key, key)

    async def delete(self, key: str) -> bool:
        """Remove a document."""
        removed = self._client.delete(f"{self._prefix}{key}")
        self._client.srem(self._index_key, key)
        return bool(removed)

    async def keys(self) -> list[str]:
        """List all keys in this namespace."""
        return sorted(self._client.smembers(self._index_key))

    def close(self) -> None:
        """Close the Redis connection."""
        self._client.close()
