# src/evidence/memory_source.py — v1
"""Evidence from earlier memories whose content mentions the query keywords."""

from __future__ import annotations

import logging

from deepthink.core.models import Evidence
from deepthink.evidence.base_evidence_source import EvidenceSource
from deepthink.memory.base_memory_store import BaseMemoryStore
from deepthink.memory.fingerprint import normalize_text

logger = logging.getLogger(__name__)

DEFAULT_SCAN_LIMIT = 50


class MemoryEvidenceSource(EvidenceSource):
    """Rank stored memories by the fraction of keywords they contain.

    Args:
        store: Memory store to scan.
        user_id: Restrict to this user's memories (plus unowned ones).
        scan_limit: How many of the best memories to consider.
        excerpt_chars: Max characters kept per excerpt.
    """

    def __init__(
        self,
        store: BaseMemoryStore,
        user_id: str | None = None,
        scan_limit: int = DEFAULT_SCAN_LIMIT,
        excerpt_chars: int = 200,
    ) -> None:
        self._store = store
        self._user_id = user_id
        self._scan_limit = scan_limit
        self._excerpt_chars = excerpt_chars

    @property
    def name(self) -> str:
        return "memory"

    async def search(self, keywords: list[str], top_k: int = 5) -> list[Evidence]:
        terms = {normalize_text(k) for k in keywords if normalize_text(k)}
        if not terms:
            return []

        records = await self._store.query_memories(self._user_id, limit=self._scan_limit)
        hits: list[Evidence] = []
        for record in records:
            text = normalize_text(record.content)
            matched = sum(1 for t in terms if t in text)
            if matched == 0:
                continue
            hits.append(
                Evidence(
                    source=f"memory:{record.id}",
                    excerpt=record.content[: self._excerpt_chars],
                    relevance=matched / len(terms),
                    kind="memory",
                )
            )

        hits.sort(key=lambda e: e.relevance, reverse=True)
        logger.debug("Memory evidence: %d hits from %d records", len(hits), len(records))
        return hits[:top_k]
