# tests/integration/conftest.py - v1
"""Fixtures wiring the real SQLite repository and SQLite cache stores.

Vision and web discovery stay faked (see tests/conftest.py); everything
else is the production code path, persisted under tmp_path so a second
service built over the same directory sees the first one's data.
"""

from __future__ import annotations

import pytest

from shelfscan.api.facade import build_service
from shelfscan.config.settings import Settings
from shelfscan.storage.sqlite_repository import SqliteProductRepository


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        cache_backend="sqlite",
        cache_root=tmp_path / "cache",
        repository_path=tmp_path / "products.db",
        repository_base_delay_ms=1,
        dimension_max_attempts=1,
        event_log_path=tmp_path / "events.jsonl",
    )


@pytest.fixture
def make_service(settings, visual, discovery):
    """Build a service over the tmp_path stores; call again to 'restart'."""

    def make(**overrides):
        return build_service(
            overrides.pop("settings", settings),
            repository=SqliteProductRepository(settings.repository_path),
            visual_analyzer=visual,
            discovery=discovery,
            **overrides,
        )

    return make


@pytest.fixture
def product_db(settings) -> SqliteProductRepository:
    """Direct handle on the product database, for seeding and inspection."""
    return SqliteProductRepository(settings.repository_path)
