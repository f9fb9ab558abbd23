# src/core/similarity.py — v3
"""Similarity primitives used by the scorers.

Two families, both mapped into [0, 1]:
- lexical overlap of lowercase whitespace tokens (cheap, default);
- cosine similarity of embedding vectors (numpy), negatives clipped to 0.
"""

from __future__ import annotations

import logging

import numpy as np

logger = logging.getLogger(__name__)


def tokenize(text: str) -> list[str]:
    """Lowercase whitespace tokens."""
    return text.lower().split()


def lexical_overlap(text_a: str, text_b: str) -> float:
    """|A ∩ B| / max(|A|, |B|) over distinct tokens.

    Two empty texts are treated as identical (1.0).
    """
    tokens_a = set(tokenize(text_a))
    tokens_b = set(tokenize(text_b))
    denominator = max(len(tokens_a), len(tokens_b))
    if denominator == 0:
        return 1.0
    return len(tokens_a & tokens_b) / denominator


def cosine_similarity_matrix(embeddings: np.ndarray) -> np.ndarray:
    """Compute pairwise cosine similarity matrix.

    Args:
        embeddings: 2D array of shape (n_samples, n_features).

    Returns:
        Similarity matrix of shape (n_samples, n_samples) with values in [-1, 1].

    Raises:
        ValueError: If embeddings is not a 2D array.
    """
    if embeddings.ndim != 2:
        raise ValueError(f"Expected 2D array, got {embeddings.ndim}D")
    if embeddings.shape[0] == 0:
        return np.empty((0, 0), dtype=np.float64)

    norms = np.linalg.norm(embeddings, axis=1, keepdims=True)
    norms = np.maximum(norms, 1e-10)
    normalized = embeddings / norms
    return normalized @ normalized.T


def consecutive_cosine(embeddings: np.ndarray) -> list[float]:
    """Cosine similarity of each row with the next one, clipped to [0, 1]."""
    if embeddings.shape[0] < 2:
        return []
    matrix = cosine_similarity_matrix(np.asarray(embeddings, dtype=np.float64))
    values = [float(matrix[i, i + 1]) for i in range(matrix.shape[0] - 1)]
    return [min(max(v, 0.0), 1.0) for v in values]
