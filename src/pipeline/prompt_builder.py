# src/pipeline/prompt_builder.py — v1
"""Stage prompt construction with a bounded window of prior outputs.

Each stage has a fixed system template in pipeline/prompts/<stage_id>.txt.
The user prompt carries the query, the retrieved context and the most
recent prior outputs. The window is capped three ways (step count, chars
per step, total chars); the oldest steps are dropped first.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Sequence

from deepthink.config.stages import get_stage
from deepthink.core.models import Evidence, ReasoningStep, VerificationResult

logger = logging.getLogger(__name__)

_PROMPTS_DIR = Path(__file__).parent / "prompts"
_CLARIFY_TEMPLATE = "clarify"
_TRUNCATION_MARK = " [...]"


def format_evidence(evidence: Sequence[Evidence]) -> str:
    """Render evidence as numbered [DOC-n: source] / [MEM-n: source] blocks."""
    blocks: list[str] = []
    doc_n = mem_n = 0
    for item in evidence:
        if item.kind == "documentation":
            doc_n += 1
            label = f"DOC-{doc_n}"
        else:
            mem_n += 1
            label = f"MEM-{mem_n}"
        blocks.append(f"[{label}: {item.source}]\n{item.excerpt}")
    return "\n\n".join(blocks)


class StagePromptBuilder:
    """Build (system, user) prompt pairs for pipeline stages.

    Args:
        prompts_dir: Directory holding <stage_id>.txt system templates.
        max_prior_steps: Max number of prior outputs included.
        max_chars_per_step: Each prior output is truncated to this length.
        max_prior_chars: Total budget for all prior outputs together.
    """

    def __init__(
        self,
        prompts_dir: Path | None = None,
        max_prior_steps: int = 4,
        max_chars_per_step: int = 1200,
        max_prior_chars: int = 4000,
    ) -> None:
        self._prompts_dir = prompts_dir or _PROMPTS_DIR
        self._max_prior_steps = max_prior_steps
        self._max_chars_per_step = max_chars_per_step
        self._max_prior_chars = max_prior_chars
        self._templates: dict[str, str] = {}

    def build(
        self,
        stage_id: str,
        query: str,
        context: str,
        prior_steps: Sequence[ReasoningStep],
    ) -> tuple[str, str]:
        """Return the (system, user) prompt pair for one stage.

        Raises:
            KeyError: If stage_id is not a known stage.
        """
        stage = get_stage(stage_id)
        system = self._load_template(stage.id)

        sections = [f"User question:\n{query}"]
        if context.strip():
            sections.append(f"Available context:\n{context}")
        window = self.prior_window(prior_steps)
        if window:
            rendered = "\n\n".join(
                f"--- {get_stage(sid).name} ---\n{text}" for sid, text in window
            )
            sections.append(f"Previous stages:\n{rendered}")
        sections.append(f"Your task: {stage.description}.")
        return system, "\n\n".join(sections)

    def build_clarify(
        self,
        query: str,
        verification: VerificationResult,
        prior_steps: Sequence[ReasoningStep],
        max_questions: int,
    ) -> tuple[str, str]:
        """Prompt pair for generating clarifying questions."""
        system = self._load_template(_CLARIFY_TEMPLATE).format(
            max_questions=max_questions
        )
        breakdown = (
            f"- confidence: {verification.confidence:.2f}\n"
            f"- provenance coverage: {verification.provenance_coverage:.2f}\n"
            f"- semantic entropy: {verification.semantic_entropy:.2f}\n"
            f"- coherence: {verification.coherence:.2f}"
        )
        sections = [f"User question:\n{query}", f"Uncertainty breakdown:\n{breakdown}"]
        window = self.prior_window(prior_steps)
        if window:
            sections.append(
                "Reasoning so far:\n" + "\n\n".join(text for _, text in window)
            )
        return system, "\n\n".join(sections)

    def prior_window(self, prior_steps: Sequence[ReasoningStep]) -> list[tuple[str, str]]:
        """Select (stage_id, text) for the bounded prior-output window.

        Walks from the newest step backwards so the oldest are dropped first,
        then returns the kept steps in chronological order.
        """
        if self._max_prior_steps <= 0:
            return []

        kept: list[tuple[str, str]] = []
        remaining = self._max_prior_chars
        for step in reversed(prior_steps[-self._max_prior_steps :]):
            text = _truncate(step.output, self._max_chars_per_step)
            if len(text) > remaining:
                break
            kept.append((step.stage_id, text))
            remaining -= len(text)

        dropped = len(prior_steps) - len(kept)
        if dropped:
            logger.debug("Prompt window: kept %d steps, dropped %d", len(kept), dropped)
        kept.reverse()
        return kept

    def _load_template(self, name: str) -> str:
        if name not in self._templates:
            path = self._prompts_dir / f"{name}.txt"
            self._templates[name] = path.read_text(encoding="utf-8").strip()
        return self._templates[name]


def _truncate(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[: max(limit - len(_TRUNCATION_MARK), 0)] + _TRUNCATION_MARK
