# tests/unit/core/test_similarity.py — v1
"""Tests for core/similarity.py."""

from __future__ import annotations

import numpy as np
import pytest

from deepthink.core.similarity import (
    consecutive_cosine,
    cosine_similarity_matrix,
    lexical_overlap,
    tokenize,
)


class TestLexicalOverlap:
    def test_identical(self):
        assert lexical_overlap("a b c", "C B A") == 1.0

    def test_partial(self):
        assert lexical_overlap("a b c d", "a b") == 0.5

    def test_disjoint(self):
        assert lexical_overlap("a", "b") == 0.0

    def test_both_empty(self):
        assert lexical_overlap("", "  ") == 1.0

    def test_tokenize(self):
        assert tokenize("Hello  World") == ["hello", "world"]


class TestCosine:
    def test_matrix(self):
        m = cosine_similarity_matrix(np.array([[1.0, 0.0], [0.0, 1.0], [1.0, 1.0]]))
        assert m.shape == (3, 3)
        assert m[0, 0] == pytest.approx(1.0)
        assert m[0, 1] == pytest.approx(0.0)
        assert m[0, 2] == pytest.approx(1 / np.sqrt(2))

    def test_requires_2d(self):
        with pytest.raises(ValueError, match="2D"):
            cosine_similarity_matrix(np.array([1.0, 2.0]))

    def test_empty(self):
        assert cosine_similarity_matrix(np.empty((0, 3))).shape == (0, 0)

    def test_consecutive_clipped(self):
        values = consecutive_cosine(np.array([[1.0, 0.0], [-1.0, 0.0], [-1.0, 0.0]]))
        assert values == [0.0, pytest.approx(1.0)]

    def test_consecutive_single_row(self):
        assert consecutive_cosine(np.array([[1.0, 2.0]])) == []
