# src/evidence/base_evidence_source.py — v1
"""Capability interface for anything that can supply ranked Evidence.

The orchestrator depends only on this interface, never on file-system
paths or a specific corpus format.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from deepthink.core.models import Evidence


class DocumentationUnavailable(Exception):
    """Corpus could not be read; callers recover with an empty evidence set."""


class EvidenceSource(ABC):
    """Unified interface for evidence providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Source identifier used in logs and sources-consulted descriptors."""

    @abstractmethod
    async def search(self, keywords: list[str], top_k: int = 5) -> list[Evidence]:
        """Return up to top_k Evidence records, most relevant first.

        Raises:
            DocumentationUnavailable: If the underlying corpus is unreadable.
        """
