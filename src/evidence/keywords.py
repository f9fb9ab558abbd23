# src/evidence/keywords.py — v1
"""Query keyword extraction driving documentation search."""

from __future__ import annotations

import re

# Domain concepts looked up verbatim in the lowercased query.
KNOWN_CONCEPTS: tuple[str, ...] = (
    "memory", "reasoning", "orchestration", "agent", "provenance",
    "confidence", "compression", "retrieval", "embedding", "cognitive",
    "knowledge", "inference", "validation", "hierarchy", "indexing",
    "snapshot", "tag", "graph", "kernel", "intent", "evidence",
    "verification", "entropy", "budget", "pipeline",
)

_TECHNICAL_TERM = re.compile(r"[A-Z][A-Za-z]+")


def extract_keywords(query: str) -> list[str]:
    """Known concepts found in the query plus capitalised technical terms.

    Returns lowercased, de-duplicated keywords in first-seen order.
    """
    lowered = query.lower()
    found = [c for c in KNOWN_CONCEPTS if c in lowered]
    technical = [t.lower() for t in _TECHNICAL_TERM.findall(query)]
    return list(dict.fromkeys(found + technical))
