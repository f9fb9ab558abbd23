# src/pipeline/scoring.py — v2
"""Metric calculators and the pluggable Scorer strategy.

Per-step metrics:
  confidence   0.5 + 0.3 * index/total + min(len/500, 0.2), capped at 1.0
  coherence    min(sentences/10, 1.0)
  density      distinct tokens / total tokens

Run-level metrics (compute_verification):
  confidence           min(mean(step confidence) * 1.1, 1.0)
  provenance coverage  cited available sources / available sources
  semantic entropy     1 - mean(similarity(step_i, step_i+1))
  coherence            mean(step coherence)

These are heuristics, not calibrated estimators. Swap the Scorer to change
them without touching the executor.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Callable, Sequence

import numpy as np

from deepthink.core.models import Evidence, ReasoningStep, StepMetrics, VerificationResult
from deepthink.core.similarity import consecutive_cosine, lexical_overlap, tokenize

BASE_CONFIDENCE = 0.5
POSITION_WEIGHT = 0.3
LENGTH_BONUS_CAP = 0.2
LENGTH_BONUS_CHARS = 500
COHERENCE_SENTENCES = 10
AGGREGATE_BONUS = 1.1
EXCERPT_MATCH_CHARS = 50

_CITATION = re.compile(r"\[cite:([^\]]+)\]")
_SENTENCE_SPLIT = re.compile(r"[.!?]+")


def _clamp(value: float) -> float:
    return min(max(value, 0.0), 1.0)


# === PER-STEP METRICS ===


def step_confidence(output: str, index: int, total: int) -> float:
    """Position-based confidence: later stages count as more settled."""
    position = index / total if total > 0 else 0.0
    length_bonus = min(len(output) / LENGTH_BONUS_CHARS, LENGTH_BONUS_CAP)
    return _clamp(BASE_CONFIDENCE + position * POSITION_WEIGHT + length_bonus)


def coherence_score(output: str) -> float:
    sentences = [s for s in _SENTENCE_SPLIT.split(output) if s.strip()]
    return _clamp(len(sentences) / COHERENCE_SENTENCES)


def information_density(output: str) -> float:
    tokens = tokenize(output)
    if not tokens:
        return 0.0
    return len(set(tokens)) / len(tokens)


def extract_citations(text: str) -> list[str]:
    """[cite:source] markers, de-duplicated in order of appearance."""
    return list(dict.fromkeys(m.strip() for m in _CITATION.findall(text) if m.strip()))


# === RUN-LEVEL METRICS ===


def aggregate_confidence(
    confidences: Sequence[float], recency_weighted: bool = False
) -> float:
    """Mean step confidence scaled by a small bonus, clamped to 1.0.

    With recency_weighted, step i weighs (i + 1).
    """
    if not confidences:
        return 0.0
    if recency_weighted:
        weights = range(1, len(confidences) + 1)
        mean = sum(w * c for w, c in zip(weights, confidences)) / sum(weights)
    else:
        mean = sum(confidences) / len(confidences)
    return _clamp(mean * AGGREGATE_BONUS)


def provenance_coverage(steps: Sequence[ReasoningStep], evidence: Sequence[Evidence]) -> float:
    """Fraction of available sources cited by at least one step.

    A source counts as cited when a [cite:...] marker names it (whole id or
    basename), or when the step text contains its identifier or the opening
    of its excerpt.
    Returns 0.0 when no sources were available.
    """
    sources: dict[str, str] = {}
    for item in evidence:
        sources.setdefault(item.source, item.excerpt)
    if not sources:
        return 0.0

    citations = [c.lower() for s in steps for c in s.citations]
    all_text = " ".join(s.output for s in steps).lower()

    cited = 0
    for source, excerpt in sources.items():
        key = source.lower()
        opening = excerpt[:EXCERPT_MATCH_CHARS].strip().lower()
        if (
            any(_cites(c, key) for c in citations)
            or key in all_text
            or (opening and opening in all_text)
        ):
            cited += 1
    return cited / len(sources)


def _cites(citation: str, source: str) -> bool:
    """Whole-id or basename match; "md" never cites "raft.md"."""
    if citation == source:
        return True
    return citation.rsplit("/", 1)[-1] == source.rsplit("/", 1)[-1]


def semantic_entropy(
    outputs: Sequence[str],
    similarity: Callable[[str, str], float] = lexical_overlap,
) -> float:
    """1 - mean similarity of consecutive outputs (0 = identical, 1 = disjoint)."""
    if len(outputs) < 2:
        return 0.0
    sims = [_clamp(similarity(a, b)) for a, b in zip(outputs, outputs[1:])]
    return _clamp(1.0 - sum(sims) / len(sims))


def mean_coherence(steps: Sequence[ReasoningStep]) -> float:
    if not steps:
        return 0.0
    return _clamp(sum(s.coherence for s in steps) / len(steps))


# === STRATEGIES ===


class Scorer(ABC):
    """Scoring strategy consumed by the executor."""

    recency_weighted: bool = False

    @abstractmethod
    def score_step(self, output: str, index: int, total: int) -> StepMetrics:
        """Per-step confidence, coherence and density."""

    @abstractmethod
    def semantic_entropy(self, outputs: Sequence[str]) -> float:
        """Topic drift across consecutive outputs, in [0, 1]."""

    def verify(
        self, steps: Sequence[ReasoningStep], evidence: Sequence[Evidence]
    ) -> VerificationResult:
        """Aggregate a finished run."""
        return VerificationResult(
            confidence=aggregate_confidence(
                [s.confidence for s in steps], recency_weighted=self.recency_weighted
            ),
            provenance_coverage=provenance_coverage(steps, evidence),
            semantic_entropy=self.semantic_entropy([s.output for s in steps]),
            coherence=mean_coherence(steps),
        )


class HeuristicScorer(Scorer):
    """Position/length confidence and lexical-overlap entropy."""

    def __init__(self, recency_weighted: bool = False) -> None:
        self.recency_weighted = recency_weighted

    def score_step(self, output: str, index: int, total: int) -> StepMetrics:
        return StepMetrics(
            confidence=step_confidence(output, index, total),
            coherence=coherence_score(output),
            information_density=information_density(output),
        )

    def semantic_entropy(self, outputs: Sequence[str]) -> float:
        return semantic_entropy(outputs)


class EmbeddingScorer(HeuristicScorer):
    """Heuristic step scores with embedding-cosine entropy.

    Args:
        embed: Maps a list of texts to a (n, dim) array.
    """

    def __init__(
        self,
        embed: Callable[[list[str]], np.ndarray],
        recency_weighted: bool = False,
    ) -> None:
        super().__init__(recency_weighted=recency_weighted)
        self._embed = embed

    def semantic_entropy(self, outputs: Sequence[str]) -> float:
        if len(outputs) < 2:
            return 0.0
        sims = consecutive_cosine(np.asarray(self._embed(list(outputs))))
        return _clamp(1.0 - sum(sims) / len(sims))


def hashing_embedder(dim: int = 256) -> Callable[[list[str]], np.ndarray]:
    """Dependency-free bag-of-words embedder (token hashing trick).

    Deterministic across processes (does not use Python's salted hash()).
    """
    import hashlib

    def embed(texts: list[str]) -> np.ndarray:
        matrix = np.zeros((len(texts), dim), dtype=np.float64)
        for row, text in enumerate(texts):
            for token in tokenize(text):
                digest = hashlib.md5(token.encode("utf-8")).digest()  # noqa: S324
                matrix[row, int.from_bytes(digest[:4], "little") % dim] += 1.0
        return matrix

    return embed


def create_scorer(kind: str = "heuristic") -> Scorer:
    """Instantiate a scorer by name (SCORER setting)."""
    if kind == "heuristic":
        return HeuristicScorer()
    if kind == "embedding":
        return EmbeddingScorer(hashing_embedder())
    raise ValueError(f"Unsupported scorer: {kind!r}")
