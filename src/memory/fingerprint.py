# src/memory/fingerprint.py — v1
"""Content hashing for memory records.

Memories are keyed by the SHA-256 of their exact content, so storing the
same string twice always yields the same key.
"""

from __future__ import annotations

import hashlib
import math
import re


def content_hash(content: str) -> str:
    """SHA-256 hex digest of the raw UTF-8 content (pure, deterministic)."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def estimate_tokens(content: str) -> int:
    """Rough token estimate: one token per four characters."""
    return math.ceil(len(content) / 4)


def normalize_text(text: str) -> str:
    """Normalize text: lowercase, strip whitespace and punctuation."""
    text = text.lower()
    text = re.sub(r"[^\w\s]", "", text)
    text = re.sub(r"\s+", " ", text).strip()
    return text
