# tests/unit/memory/test_memory_factory.py — v1
"""Tests for memory/memory_factory.py."""

from __future__ import annotations

import pytest

from deepthink.config.settings import ConfigurationError
from deepthink.memory.memory_factory import create_memory_store
from deepthink.memory.sqlite_store import SqliteMemoryStore


class TestCreateMemoryStore:
    def test_sqlite(self, settings):
        assert isinstance(create_memory_store(settings), SqliteMemoryStore)

    def test_sqlite_without_path(self, settings):
        settings.memory_db_path = None
        with pytest.raises(ConfigurationError, match="MEMORY_DB_PATH"):
            create_memory_store(settings)

    def test_redis_without_url(self, settings):
        settings.memory_backend = "redis"
        with pytest.raises(ConfigurationError, match="MEMORY_REDIS_URL"):
            create_memory_store(settings)

    def test_unknown_backend(self, settings):
        settings.memory_backend = "mongo"  # type: ignore[assignment]
        with pytest.raises(ConfigurationError, match="Unsupported memory backend"):
            create_memory_store(settings)
