# src/cache/memory_store.py - v1
"""In-process cache store (CACHE_BACKEND=memory).

Documents are deep-copied on the way in and out so callers can never
mutate cached state by accident. Contents vanish with the process.
"""

from __future__ import annotations

import copy

from shelfscan.cache.base_cache_store import BaseCacheStore, Document


class MemoryCacheStore(BaseCacheStore):
    """Dict-backed cache store for tests and single-process deployments."""

    def __init__(self, namespace: str = "default") -> None:
        super().__init__(namespace)
        self._data: dict[str, Document] = {}

    async def get(self, key: str) -> Document | None:
        document = self._data.get(key)
        return copy.deepcopy(document) if document is not None else None

    async def set(self, key: str, document: Document) -> None:
        self._data[key] = copy.deepcopy(document)

    async def delete(self, key: str) -> bool:
        return self._data.pop(key, None) is not None

    async def keys(self) -> list[str]:
        return list(self._data)
