# src/cache/cache_factory.py - v1
"""Factory for cache store instantiation."""

from __future__ import annotations

from shelfscan.cache.base_cache_store import BaseCacheStore
from shelfscan.config.settings import Settings

IDENTITY_NAMESPACE = "identity"
DIMENSION_NAMESPACE = "dimensions"


def create_cache_store(
    namespace: str, settings: Settings | None = None
) -> BaseCacheStore:
    """Instantiate the configured cache backend for one namespace.

    Args:
        namespace: Collection name (identity or dimensions).
        settings: Application settings. Defaults to the in-memory backend.

    Returns:
        Configured BaseCacheStore implementation.
    """
    backend = "memory" if settings is None else settings.cache_backend

    if backend == "memory":
        from shelfscan.cache.memory_store import MemoryCacheStore
        return MemoryCacheStore(namespace=namespace)

    if backend == "json":
        from shelfscan.cache.json_store import JsonCacheStore
        return JsonCacheStore(cache_root=settings.cache_root, namespace=namespace)

    if backend == "sqlite":
        from shelfscan.cache.sqlite_store import SqliteCacheStore
        db_path = settings.cache_root.expanduser() / "shelfscan_cache.db"
        return SqliteCacheStore(db_path=db_path, namespace=namespace)

    if backend == "redis":
        from shelfscan.cache.redis_store import RedisCacheStore
        if not settings.cache_redis_url:
            raise ValueError(
                "CACHE_REDIS_URL must be set when CACHE_BACKEND=redis"
            )
        return RedisCacheStore(redis_url=settings.cache_redis_url, namespace=namespace)

    raise ValueError(f"Unsupported cache backend: {backend!r}")
