# src/pipeline/decision.py — v1
"""Decision gate: the single branch point between Answer and Clarify.

confidence >= threshold  -> Answer (assembled from existing step outputs)
confidence <  threshold  -> Clarify with 1..max_questions questions from
                            one extra completion call
"""

from __future__ import annotations

import logging
import re
from typing import Sequence

from deepthink.core.models import Decision, DecisionKind, ReasoningStep, VerificationResult
from deepthink.llm.base_client import BaseLLMClient
from deepthink.llm.models import Message
from deepthink.pipeline.prompt_builder import StagePromptBuilder

logger = logging.getLogger(__name__)

DEFAULT_THRESHOLD = 0.75
CLARIFY_TEMPERATURE = 0.4

_LIST_PREFIX = re.compile(r"^\s*(?:[-*•]|\d+[.)])\s*")


class DecisionGate:
    """Compare aggregate confidence to a threshold and pick the branch.

    Args:
        threshold: Minimum aggregate confidence for an Answer.
        max_questions: Upper bound on clarifying questions (1 or 2).
        clarify_max_tokens: Token cap of the clarification call.
        prompt_builder: Builds the clarification prompt.
    """

    def __init__(
        self,
        threshold: float = DEFAULT_THRESHOLD,
        max_questions: int = 2,
        clarify_max_tokens: int = 256,
        prompt_builder: StagePromptBuilder | None = None,
    ) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be in [0, 1], got {threshold}")
        if max_questions < 1:
            raise ValueError("max_questions must be at least 1")
        self.threshold = threshold
        self.max_questions = max_questions
        self.clarify_max_tokens = clarify_max_tokens
        self._prompts = prompt_builder or StagePromptBuilder()

    def should_answer(self, verification: VerificationResult) -> bool:
        return verification.confidence >= self.threshold

    async def decide(
        self,
        verification: VerificationResult,
        query: str,
        steps: Sequence[ReasoningStep],
        llm: BaseLLMClient,
    ) -> Decision:
        """Return Answer, or Clarify with generated questions.

        Raises:
            UpstreamError: If the clarification call fails.
        """
        if self.should_answer(verification):
            logger.info(
                "Decision: answer (confidence %.3f >= %.2f)",
                verification.confidence, self.threshold,
            )
            return Decision(kind=DecisionKind.ANSWER)

        system, user = self._prompts.build_clarify(
            query, verification, steps, self.max_questions
        )
        response = await llm.complete(
            messages=[Message(role="user", content=user)],
            system=system,
            max_tokens=self.clarify_max_tokens,
            temperature=CLARIFY_TEMPERATURE,
        )
        questions = parse_questions(response.content, self.max_questions)
        if not questions:
            questions = [fallback_question(query)]
            logger.warning("Clarification call returned no usable question, using fallback")

        logger.info(
            "Decision: clarify (confidence %.3f < %.2f), %d question(s)",
            verification.confidence, self.threshold, len(questions),
        )
        return Decision(
            kind=DecisionKind.CLARIFY,
            questions=tuple(questions),
            tokens_used=response.total_tokens,
        )


def parse_questions(text: str, limit: int) -> list[str]:
    """Extract up to `limit` questions, one per line, list markers removed.

    Lines ending with '?' win; otherwise the first non-empty lines are used.
    """
    lines = [_LIST_PREFIX.sub("", line).strip() for line in text.splitlines()]
    lines = [line for line in lines if line]
    questions = [line for line in lines if line.endswith("?")] or lines
    return list(dict.fromkeys(questions))[:limit]


def fallback_question(query: str) -> str:
    subject = query.strip()
    if len(subject) > 80:
        subject = subject[:77].rstrip() + "..."
    return f'Could you give more detail about what you need regarding "{subject}"?'
