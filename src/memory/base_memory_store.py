# src/memory/base_memory_store.py — v2
"""Abstract durable memory store interface.

Two logical tables: `memories` (artifacts used for context retrieval, keyed
by content hash and owner) and `reasoning_chains` (one record per completed
run). Both are insert-only; implementations must not read-modify-write.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from deepthink.core.models import MemoryRecord


class BaseMemoryStore(ABC):
    """Unified interface for memory storage backends."""

    @abstractmethod
    async def insert_memory(self, record: MemoryRecord) -> bool:
        """Store a memory unless its owner already holds the same content.

        The write is a single insert-if-absent on (content_hash, user_id).
        Returns True if a new record was written.
        """

    @abstractmethod
    async def query_memories(
        self, user_id: str | None = None, limit: int = 8
    ) -> list[MemoryRecord]:
        """Memories of a user (or unowned ones), best first.

        Ordering: retrieval_score desc (missing last), importance desc,
        created_at desc.
        """

    @abstractmethod
    async def get_memories_by_hash(self, content_hash: str) -> list[MemoryRecord]:
        """All memory records sharing a content hash (at most one per owner)."""

    @abstractmethod
    async def insert_reasoning_chain(self, record: dict[str, Any]) -> None:
        """Append a reasoning_chains record (must carry 'trace_id')."""

    @abstractmethod
    async def get_reasoning_chain(self, trace_id: str) -> dict[str, Any] | None:
        """Fetch a persisted reasoning chain by trace id."""

    @abstractmethod
    async def count_reasoning_chains(self) -> int:
        """Number of persisted reasoning chains."""

    async def close(self) -> None:
        """Release backend resources."""
        return None


def sort_memories(records: list[MemoryRecord]) -> list[MemoryRecord]:
    """Apply the canonical retrieval ordering in-process."""
    return sorted(
        records,
        key=lambda r: (
            r.retrieval_score is not None,
            r.retrieval_score or 0.0,
            r.importance,
            r.created_at,
        ),
        reverse=True,
    )
