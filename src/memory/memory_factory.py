# src/memory/memory_factory.py — v1
"""Factory for memory store instantiation."""

from __future__ import annotations

from deepthink.config.settings import ConfigurationError, Settings
from deepthink.memory.base_memory_store import BaseMemoryStore


def create_memory_store(settings: Settings) -> BaseMemoryStore:
    """Instantiate the configured memory backend.

    Args:
        settings: Application settings.

    Returns:
        Configured BaseMemoryStore implementation.

    Raises:
        ConfigurationError: If the backend location is missing or unknown.
    """
    backend = settings.memory_backend

    if backend == "sqlite":
        from deepthink.memory.sqlite_store import SqliteMemoryStore
        if settings.memory_db_path is None:
            raise ConfigurationError(
                "MEMORY_DB_PATH must be set when MEMORY_BACKEND=sqlite"
            )
        return SqliteMemoryStore(db_path=settings.memory_db_path)

    if backend == "redis":
        from deepthink.memory.redis_store import RedisMemoryStore
        if not settings.memory_redis_url:
            raise ConfigurationError(
                "MEMORY_REDIS_URL must be set when MEMORY_BACKEND=redis"
            )
        return RedisMemoryStore(
            redis_url=settings.memory_redis_url,
            password=settings.memory_api_key or None,
        )

    raise ConfigurationError(f"Unsupported memory backend: {backend!r}")
