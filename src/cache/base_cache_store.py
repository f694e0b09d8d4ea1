# src/cache/base_cache_store.py - v1
"""Abstract document cache interface.

A store holds JSON-compatible documents under string keys inside one
namespace. The identity cache and the dimension cache each get their
own store instance, so keys never collide across the two.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

Document = dict[str, Any]


class BaseCacheStore(ABC):
    """Unified interface for document cache backends."""

    def __init__(self, namespace: str) -> None:
        self._namespace = namespace

    @property
    def namespace(self) -> str:
        return self._namespace

    @abstractmethod
    async def get(self, key: str) -> Document | None:
        """Retrieve a document, or None if absent or unreadable."""

    @abstractmethod
    async def set(self, key: str, document: Document) -> None:
        """Store a document (last write wins)."""

    @abstractmethod
    async def delete(self, key: str) -> bool:
        """Remove a document. Returns True if it existed."""

    @abstractmethod
    async def keys(self) -> list[str]:
        """List every key in this namespace."""

    def close(self) -> None:
        """Release backend resources."""
